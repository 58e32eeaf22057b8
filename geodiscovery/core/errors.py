"""Typed failures raised by the discovery core.

I/O failures (geolocation, source fetches) are caught at their boundary and
turned into degraded states. Calculation failures propagate to the caller.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for every error raised by the discovery core."""


class GeolocationUnavailable(DiscoveryError):
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(f"geolocation unavailable: {reason}" + (f" ({detail})" if detail else ""))


class SourceFetchFailed(DiscoveryError):
    def __init__(self, source: str, detail: str | None = None):
        self.source = source
        self.detail = detail
        super().__init__(f"source '{source}' failed" + (f": {detail}" if detail else ""))


class InvalidFilterRange(DiscoveryError):
    """A range constraint whose lower bound exceeds its upper bound."""


class InvalidAmortizationInput(DiscoveryError, ValueError):
    pass


class InvalidCoordinate(DiscoveryError, ValueError):
    pass


class MapNotReady(DiscoveryError):
    """Marker operation attempted while the map surface cannot render."""
