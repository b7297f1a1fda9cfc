"""Error taxonomy for the harvest pipeline."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure classes; statistics aggregate on these."""

    NETWORK_EXHAUSTED = "network_exhausted"
    BAD_STATUS = "bad_status"
    PARSE_FAILURE = "parse_failure"
    ENCODING_FAILURE = "encoding_failure"
    # Anything outside the classes above, e.g. an unusable URL
    UNEXPECTED = "unexpected"


class HarvestError(RuntimeError):
    """Base class for item- and category-level harvest failures."""

    kind: ErrorKind

    def __init__(self, url: str, detail: str = ""):
        self.url = url
        self.detail = detail
        message = f"{self.kind.value} for {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NetworkExhausted(HarvestError):
    """Raised when every fetch attempt failed at the transport level."""

    kind = ErrorKind.NETWORK_EXHAUSTED

    def __init__(self, url: str, attempts: int, cause: Optional[BaseException] = None):
        self.attempts = attempts
        self.cause = cause
        detail = f"failed after {attempts} attempts"
        if cause is not None:
            detail = f"{detail} ({type(cause).__name__}: {cause})"
        super().__init__(url, detail)


class BadStatus(HarvestError):
    """Raised on a non-2xx HTTP response."""

    kind = ErrorKind.BAD_STATUS

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP {status_code}")


class ParseFailure(HarvestError):
    """Raised when a page cannot be parsed into a document."""

    kind = ErrorKind.PARSE_FAILURE


class EncodingFailure(HarvestError):
    """Raised when page bytes cannot be decoded to text."""

    kind = ErrorKind.ENCODING_FAILURE


class CategoryWalkError(RuntimeError):
    """Raised when a category walk aborts; the category contributes nothing."""

    def __init__(self, category_name: str, category_url: str, page: int, cause: BaseException):
        super().__init__(f"category {category_name!r} failed on page {page}: {cause}")
        self.category_name = category_name
        self.category_url = category_url
        self.page = page
        self.cause = cause


class CategoryDiscoveryError(RuntimeError):
    """Raised when no category list could be obtained. Fatal for a run."""
