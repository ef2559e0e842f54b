"""Queueing, smart routing and dead-letter handling for a blockchain transaction relay."""

from __future__ import annotations

__version__ = "0.1.0"
