from collections.abc import Generator
from contextlib import contextmanager

import httpx
from botocore.exceptions import BotoCoreError, ClientError


class CatalogFeedError(Exception):
    """Base exception for all catalogfeed errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConfigurationError(CatalogFeedError):
    """
    Raised when a target cannot be served with the available configuration:
    no integration matches the URL, or the operation is not supported on the host.
    """


class TransportError(CatalogFeedError):
    """Raised when an HTTP or object store call fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code
        self.url = url


class DiscoveryError(CatalogFeedError):
    """Raised when no file matching a search pattern can be found."""

    def __init__(
        self, pattern: str, message: str | None = None, original_error: Exception | None = None
    ) -> None:
        super().__init__(message or f"Could not find an .ndjson file matching {pattern}", original_error)
        self.pattern = pattern


class PaginationError(CatalogFeedError):
    """Raised when a paginated walk cannot make progress (cursor loop or page cap)."""

    def __init__(
        self, message: str, pages_fetched: int = 0, original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)
        self.pages_fetched = pages_fetched


class CollatorParseError(CatalogFeedError):
    """Raised when a line of a newline delimited JSON file is not valid JSON."""

    def __init__(
        self, url: str, line_number: int, original_error: Exception | None = None
    ) -> None:
        super().__init__(f"Invalid JSON on line {line_number} of {url}", original_error)
        self.url = url
        self.line_number = line_number


@contextmanager
def handle_http_errors(url: str) -> Generator[None, None, None]:
    """
    Context manager that catches httpx exceptions
    and raises a TransportError carrying the URL and status code.

    Args:
        url: URL of the request, used for error messages

    Usage:
        with handle_http_errors(url):
            response = await client.get(url)
            response.raise_for_status()
    """
    try:
        yield
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise TransportError(
            f"Unexpected response when fetching {url}. "
            f"Expected 200 but got {status} - {e.response.reason_phrase}",
            status_code=status,
            url=url,
            original_error=e,
        ) from e
    except httpx.TimeoutException as e:
        raise TransportError(
            f"Timeout error accessing {url}: {e!s}", url=url, original_error=e
        ) from e
    except httpx.RequestError as e:
        raise TransportError(
            f"Network error accessing {url}: {e!s}", url=url, original_error=e
        ) from e


@contextmanager
def handle_s3_errors(url: str) -> Generator[None, None, None]:
    """
    Context manager that catches botocore errors raised by S3 calls
    and raises the appropriate CatalogFeedError subclass.

    Missing buckets and keys surface as DiscoveryError, everything else as TransportError.
    """
    try:
        yield
    except ClientError as e:
        error = e.response.get("Error", {})
        error_code = error.get("Code", "Unknown")
        error_message = error.get("Message", str(e))

        if error_code in ("NoSuchBucket", "NoSuchKey", "404"):
            raise DiscoveryError(
                pattern=url,
                message=f"S3 object not found for {url}: {error_message}",
                original_error=e,
            ) from e

        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        raise TransportError(
            f"S3 error ({error_code}) accessing {url}: {error_message}",
            status_code=status,
            url=url,
            original_error=e,
        ) from e
    except BotoCoreError as e:
        raise TransportError(f"S3 error accessing {url}: {e!s}", url=url, original_error=e) from e
