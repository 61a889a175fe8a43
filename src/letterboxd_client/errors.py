"""Exception hierarchy shared by the fetcher, extractors and collectors."""


class LetterboxdError(Exception):
    """Base class for every error raised by letterboxd_client."""


class FetchError(LetterboxdError):
    """A page could not be fetched."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Connection, timeout or protocol failure before a response arrived."""


class HTTPStatusError(FetchError):
    """The server answered with a non-2xx status."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class RateLimitedError(HTTPStatusError):
    """Too many requests. Check rate limits and the configured User-Agent."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = 429,
                 retry_after: int | None = None):
        super().__init__(message, url=url, status_code=status_code)
        self.retry_after = retry_after


class SoftBlockError(RateLimitedError):
    """A 200 response that is really a captcha or "please wait" page."""


class NotFoundError(HTTPStatusError):
    """The requested entry does not exist."""


class ExtractionError(LetterboxdError):
    """A fetched page did not have the expected structure."""


class PaginationNotFoundError(ExtractionError):
    """Neither pagination strategy found a current page."""


class EnhancementError(LetterboxdError):
    """Secondary lookup for a partially known entity failed."""


class ValidationError(LetterboxdError, ValueError):
    """Request options were rejected before any network call."""


class BatchError(LetterboxdError):
    """A batch sub-stream failed while the batch was set to abort on errors."""

    def __init__(self, message: str, source: str, cause: BaseException):
        super().__init__(message)
        self.source = source
        self.cause = cause
