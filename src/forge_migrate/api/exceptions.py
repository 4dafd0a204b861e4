"""Forge migration exceptions."""

from typing import Optional


class ForgeMigrateError(Exception):
    """Base exception for the forge migration tool."""

    pass


class ConfigError(ForgeMigrateError):
    """Invalid or incomplete configuration, raised before any network call."""

    pass


class ForgeAPIError(ForgeMigrateError):
    """Base exception for forge HTTP API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        body: Optional[str] = None,
    ):
        """Initialize forge API error.

        Args:
            message: Error message
            status_code: HTTP status code
            url: URL of the failed request
            body: Response body snippet
        """
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class ForgeAuthenticationError(ForgeAPIError):
    """Authentication or authorization error (401/403)."""

    pass


class ForgeNotFoundError(ForgeAPIError):
    """Resource not found error."""

    pass


class ForgeConflictError(ForgeAPIError):
    """Resource already exists (409)."""

    pass


class ForgeRateLimitError(ForgeAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ForgeServerError(ForgeAPIError):
    """Server side error (5xx)."""

    pass


class ForgeTransportError(ForgeAPIError):
    """Network failure or timeout before a response was received."""

    pass


class ForgeDecodeError(ForgeAPIError):
    """Response body could not be decoded into the expected shape."""

    pass


class FetchError(ForgeMigrateError):
    """Listing the source repositories failed. Fatal for the run."""

    def __init__(
        self,
        message: str,
        forge: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.forge = forge
        self.url = url
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.forge:
            parts.append(f'forge={self.forge}')
        if self.url:
            parts.append(f'url={self.url}')
        if self.status_code is not None:
            parts.append(f'status={self.status_code}')
        if self.body:
            parts.append(f'body={self.body!r}')
        return ' '.join(parts)


class FetchTransportError(FetchError):
    """Network failure or timeout while listing repositories."""

    pass


class FetchHTTPError(FetchError):
    """The forge answered the listing request with a non-2xx status."""

    pass


class FetchDecodeError(FetchError):
    """The listing response body was not a list of repository records."""

    pass


class MigrateError(ForgeMigrateError):
    """Migrating a single repository failed. Recorded per repository."""

    retryable = False

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.repository = repository
        self.status_code = status_code
        self.cause = cause


class AuthError(MigrateError):
    """Target forge rejected the credentials (401/403)."""

    pass


class ConflictError(MigrateError):
    """A repository with the same name already exists at the destination."""

    pass


class TransientError(MigrateError):
    """Network failure, timeout, rate limit or 5xx. Eligible for retry."""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class MalformedRequestError(MigrateError):
    """The request was invalid, either locally or according to the forge."""

    pass


class ImportFailedError(MigrateError):
    """The target accepted the import but reported failure or never finished."""

    pass
