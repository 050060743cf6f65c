"""Per-feature services composed of client runs and snapshot reads."""
from .dns import DNSService
from .ip_filter import IPFilterService
from .static_route import StaticRouteService
from .system import SystemService

__all__ = ["DNSService", "IPFilterService", "StaticRouteService", "SystemService"]
