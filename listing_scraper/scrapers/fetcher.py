"""
Single-attempt page fetching with camouflage headers.

Every fetch is one request: no redirects are followed and anything other
than a 200 is raised as a typed FetchError. Retrying is the caller's
decision.
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, quote_plus, urlencode, urlsplit, urlunsplit

import requests

from listing_scraper.core.context import AcquisitionContext
from listing_scraper.core.failure_classifier import classify_exception, error_for_status

logger = logging.getLogger(__name__)


@dataclass
class Document:
    url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)


def add_cache_buster(url: str, params: dict[str, str]) -> str:
    """Merge extra query parameters into ``url``, replacing same-named ones."""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class Fetcher:
    """Fetches catalog pages using the context's current browser identity."""

    def __init__(self, context: AcquisitionContext, session: requests.Session | None = None):
        self.context = context
        self.session = session or requests.Session()
        self.timeout = context.config.fetch_timeout
        self.base_url = context.config.base_url.rstrip("/")

    def search_url(self, code: str) -> str:
        return f"{self.base_url}/s?k={quote_plus(code)}"

    def product_url(self, asin: str) -> str:
        return f"{self.base_url}/dp/{asin}"

    def fetch(self, url: str) -> Document:
        """
        Fetch ``url`` once.

        Raises:
            NotFoundError: 404
            RateLimitedError: 429 or 503
            FetchTimeoutError: the request exceeded the timeout
            UnexpectedResponseError / NetworkError: anything else
        """
        target = add_cache_buster(url, self.context.cache_buster_params())
        headers = self.context.page_headers()

        try:
            response = self.session.get(
                target, headers=headers, timeout=self.timeout, allow_redirects=False
            )
        except Exception as e:
            error = classify_exception(e, url)
            logger.warning(f"Fetch failed url={url} failure={error.failure_type.value}: {e}")
            raise error from e

        error = error_for_status(response.status_code, url)
        if error is not None:
            logger.warning(f"Fetch rejected url={url} status={response.status_code}")
            raise error

        logger.debug(f"Fetched url={url} bytes={len(response.content or b'')}")
        return Document(
            url=url,
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )
