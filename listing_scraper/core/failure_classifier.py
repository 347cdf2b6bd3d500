"""
Failure Classification for Acquisition Operations

Maps raw outcomes of outbound requests (HTTP status codes and ``requests``
exceptions) onto a closed set of failure types, and defines the exceptions
the fetcher raises for each of them.
"""

import logging
from enum import Enum

import requests

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS_CODES = (429, 503)


class FailureType(Enum):
    """Enumeration of possible failure types in acquisition operations."""

    UNRECOGNIZED_FORMAT = "unrecognized_format"
    NO_RESULTS = "no_results"
    PAGE_NOT_FOUND = "page_not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    UNEXPECTED_STATUS = "unexpected_status"
    PARSE_ERROR = "parse_error"
    ELEMENT_MISSING = "element_missing"
    PERSISTENCE_ERROR = "persistence_error"


class FetchError(Exception):
    """A single outbound request did not yield a usable 200 response."""

    failure_type = FailureType.UNEXPECTED_STATUS

    def __init__(self, message: str, url: str = "", status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NotFoundError(FetchError):
    failure_type = FailureType.PAGE_NOT_FOUND


class RateLimitedError(FetchError):
    failure_type = FailureType.RATE_LIMITED


class FetchTimeoutError(FetchError):
    failure_type = FailureType.TIMEOUT


class UnexpectedResponseError(FetchError):
    failure_type = FailureType.UNEXPECTED_STATUS


class NetworkError(FetchError):
    failure_type = FailureType.NETWORK_ERROR


class ExtractionError(Exception):
    """The fetched document could not be parsed at all."""


class ProductAlreadyExistsError(Exception):
    """A product with the same normalized identifier is already stored."""

    def __init__(self, existing_ref: dict):
        super().__init__(f"Product already exists: {existing_ref.get('asin')}")
        self.existing_ref = existing_ref


def classify_status(status_code: int) -> FailureType | None:
    """Return the failure type for an HTTP status, or None for exactly 200."""
    if status_code == 200:
        return None
    if status_code == 404:
        return FailureType.PAGE_NOT_FOUND
    if status_code in RATE_LIMIT_STATUS_CODES:
        return FailureType.RATE_LIMITED
    return FailureType.UNEXPECTED_STATUS


def error_for_status(status_code: int, url: str) -> FetchError | None:
    """Build the typed error for a non-200 status."""
    failure_type = classify_status(status_code)
    if failure_type is None:
        return None
    if failure_type == FailureType.PAGE_NOT_FOUND:
        return NotFoundError(f"Page not found: {url}", url, status_code)
    if failure_type == FailureType.RATE_LIMITED:
        return RateLimitedError(f"Rate limited ({status_code}): {url}", url, status_code)
    return UnexpectedResponseError(f"Unexpected status {status_code}: {url}", url, status_code)


def classify_exception(exception: Exception, url: str = "") -> FetchError:
    """
    Classify an exception raised while talking to the remote site.

    Args:
        exception: The exception raised by the HTTP layer
        url: The URL being requested

    Returns:
        A FetchError subclass describing the failure
    """
    if isinstance(exception, FetchError):
        return exception
    if isinstance(exception, requests.Timeout):
        return FetchTimeoutError(f"Timed out: {url}", url)
    if isinstance(exception, requests.ConnectionError):
        return NetworkError(f"Connection failed: {exception}", url)
    if isinstance(exception, requests.RequestException):
        return NetworkError(f"Request failed: {exception}", url)

    error_str = str(exception).lower()
    if "timeout" in error_str or "timed out" in error_str:
        return FetchTimeoutError(f"Timed out: {url}", url)

    logger.debug(f"Unclassified exception for {url}: {exception!r}")
    return UnexpectedResponseError(f"Unexpected error: {exception}", url)
