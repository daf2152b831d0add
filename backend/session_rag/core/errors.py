"""Domain error taxonomy.

Every error raised by the service layer derives from ``AppError`` and
carries the HTTP status the API boundary answers with in ``http_status``.
Only ``ProviderError`` exposes a ``status_code``: the status returned by
the external provider, which is what the retry policy inspects.
"""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Bad or missing input. Never retried."""

    http_status = 400


class MissingQueryError(ValidationError):
    """Search was requested without a query."""


class EmptyInputError(ValidationError):
    """Blank text was handed to the embedding client."""


class NotFoundError(AppError):
    """A referenced session or entry does not exist."""

    http_status = 404


class RateLimitExceededError(AppError):
    """The local sliding-window limiter rejected a provider call."""

    http_status = 429

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(AppError):
    """An external provider call failed."""

    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PayloadError(ProviderError):
    """The provider answered, but the response was malformed."""


class DimensionMismatchError(AppError):
    """Two vectors of different length were compared.

    Indicates drift between the stored and the live embedding dimensions.
    """

    http_status = 500
