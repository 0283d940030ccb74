"""Exception types for sheetchat-server.

Only ``ConfigurationError`` and ``GatewayError`` surface to the user as
failed turns. ``AdapterError`` and ``UnsupportedInvocation`` are raised and
caught inside the capability adapter, where they become tool-result text the
model can react to.
"""

from enum import Enum


class ConfigurationError(Exception):
    """Required configuration (the model service credential) is missing."""


class GatewayErrorKind(str, Enum):
    """Classification of model service failures."""

    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"


class GatewayError(Exception):
    """A model service round trip failed or returned nothing usable.

    Attributes:
        kind: Failure classification
        detail: Human-readable description of the underlying failure
    """

    def __init__(self, kind: GatewayErrorKind, detail: str) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value!r}, detail={self.detail!r})"


class AdapterError(Exception):
    """A single invocation could not be carried out."""


class UnsupportedInvocation(AdapterError):
    """The model asked for a capability that is not in the registry."""


class DuplicateCapabilityError(ValueError):
    """Two capabilities were registered under the same name."""
