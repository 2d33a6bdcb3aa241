"""
Core SDK exceptions.

Used to distinguish caller mistakes (configuration, preconditions) from
infrastructure failures (network, storage) and from the redemption flow,
which is the only path where money changes hands.
"""

from typing import Optional


class ApposaurError(Exception):
    """Base exception for all SDK errors."""
    pass


class ConfigurationError(ApposaurError):
    """Raised for an unsupported platform, a rejected API key or invalid settings."""
    pass


class NotInitializedError(ApposaurError):
    """Raised when a network-backed operation runs before initialize()."""
    pass


class RequestError(ApposaurError):
    """Raised when an HTTP request still fails after all retry attempts.

    Carries either the last HTTP status or the last transport exception.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
        self.attempts = attempts

    @property
    def is_transport_error(self) -> bool:
        return self.status is None


class ResponseParseError(ApposaurError):
    """Raised when a successful response body is not valid JSON. Never retried."""

    def __init__(self, message: str, *, endpoint: str, status: int):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class StorageError(ApposaurError):
    """Raised when the persistent key-value store fails."""
    pass


class PreconditionError(ApposaurError):
    """Raised when an operation requires state that does not exist yet."""
    pass


class MissingRegisteredUserError(PreconditionError):
    """No registered app user id is persisted on this device."""
    pass


class MissingActiveSubscriptionError(PreconditionError):
    """No active subscription product is known to this SDK instance."""
    pass


class NoPurchasesFound(ApposaurError):
    """The platform returned no available purchases."""
    pass


class RedemptionError(ApposaurError):
    """Raised when a reward redemption aborts before the confirm call."""
    pass
