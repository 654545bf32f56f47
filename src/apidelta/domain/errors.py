from __future__ import annotations

from typing import Literal

ErrorKind = Literal["configuration", "transport", "comparison", "cell"]


class ApiDeltaError(Exception):
    """Base class; `kind` is what gets recorded on a ComparisonRecord."""

    kind: ErrorKind = "cell"


class ConfigurationError(ApiDeltaError):
    """Endpoint key not resolvable for a platform, missing base URL, bad config."""

    kind: ErrorKind = "configuration"


class TransportError(ApiDeltaError):
    """Network-level failure (timeout, DNS, refused). The only retryable error."""

    kind: ErrorKind = "transport"


class ComparisonError(ApiDeltaError):
    """The differencer blew up on an unexpected input shape."""

    kind: ErrorKind = "comparison"
