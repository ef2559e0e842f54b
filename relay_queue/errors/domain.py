from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ErrorCategory(StrEnum):
    """Whether a failed dispatch may succeed if attempted again."""

    RETRYABLE = "RETRYABLE"
    NON_RETRYABLE = "NON_RETRYABLE"


class ClassificationResult(BaseModel):
    """Outcome of classifying one failure. Never persisted."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: ErrorCategory
    reason: str = Field(min_length=1, description="Human readable reason for the category")
    original_message: str = Field(description="Message extracted from the failure")
    http_status: int | None = Field(default=None, description="HTTP status, when the failure carried one")

    @property
    def is_retryable(self) -> bool:
        return self.category is ErrorCategory.RETRYABLE


@dataclass(frozen=True, slots=True)
class ErrorPattern:
    pattern: re.Pattern[str]
    description: str

    @classmethod
    def of(cls, regex: str, description: str) -> ErrorPattern:
        return cls(re.compile(regex, re.IGNORECASE), description)

    def matches(self, message: str) -> bool:
        return self.pattern.search(message) is not None


@dataclass(frozen=True, slots=True)
class TextFailure:
    """A failure that is nothing more than a string."""

    text: str


@dataclass(frozen=True, slots=True)
class PlainFailure:
    """An exception without any HTTP information attached."""

    message: str


@dataclass(frozen=True, slots=True)
class HttpFailure:
    """A failure from an HTTP client: status plus the decoded response body."""

    status: int | None
    message: str
    body_message: str | None = None
    body_error: str | None = None


type FailureShape = TextFailure | PlainFailure | HttpFailure
