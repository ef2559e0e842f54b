from __future__ import annotations

from .config import DiscoveryConfig, RoutingConfig
from .discovery import EndpointDiscovery
from .domain import EndpointSource, RelayerEndpointInfo, RoutingTarget
from .health import EndpointProber, RelayerHealthCache
from .router import SmartRouter

__all__ = [
    "DiscoveryConfig",
    "EndpointDiscovery",
    "EndpointProber",
    "EndpointSource",
    "RelayerEndpointInfo",
    "RelayerHealthCache",
    "RoutingConfig",
    "RoutingTarget",
    "SmartRouter",
]
