"""Error taxonomy for Distribution reconciliation."""


class CDNError(Exception):
    """Base class for every error raised while reconciling a Distribution."""

    reason = "Error"


class ResolutionError(CDNError):
    """An input (origin, class) could not be determined."""

    reason = "ResolutionFailed"


class ValidationError(CDNError):
    """An input is malformed and needs an operator fix (bad TLS secret, unknown kind)."""

    reason = "InvalidReference"


class ProviderError(CDNError):
    """A remote CDN API call failed."""

    reason = "ProviderError"

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.code = code


class ConflictError(ProviderError):
    """A remote create collided with an existing object."""

    reason = "Conflict"


class NotFoundError(ProviderError):
    """A tracked remote object no longer exists."""

    reason = "NotFound"
