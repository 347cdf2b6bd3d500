"""
Product image acquisition.

Images are downloaded one at a time, each with its own pause and a single
attempt. A failed download is recorded and the loop moves on; positions
always refer to the deduplicated image list.
"""

import logging
from io import BytesIO

import requests
from PIL import Image, UnidentifiedImageError

from listing_scraper.core.context import AcquisitionContext
from listing_scraper.core.failure_classifier import classify_exception, error_for_status
from listing_scraper.scrapers.models.product import ImageAcquisitionResult, ImageCounts

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"
GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
PIL_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def storage_key(code: str, position: int, content_type: str) -> str:
    """Blob key for an image: ``{code}/{position + 1}.{ext}``."""
    extension = content_type.split("/")[-1].split(";")[0].strip() or "jpg"
    return f"{code}/{position + 1}.{extension}"


def sniff_content_type(data: bytes) -> str | None:
    """Detect the image type from the bytes themselves."""
    try:
        with Image.open(BytesIO(data)) as img:
            return PIL_CONTENT_TYPES.get(img.format or "", None)
    except (UnidentifiedImageError, OSError):
        return None


def _content_type_for(header_value: str | None, data: bytes) -> str:
    """
    Work out the content type of a downloaded image.

    Raises:
        ValueError: the body is not an image (e.g. an HTML block page)
    """
    declared = (header_value or "").split(";")[0].strip().lower()
    if declared.startswith("image/"):
        return declared
    if declared in GENERIC_CONTENT_TYPES:
        return sniff_content_type(data) or DEFAULT_CONTENT_TYPE
    raise ValueError(f"not an image (content-type {declared})")


class ImageAcquirer:
    """Downloads product images with per-image failure isolation."""

    def __init__(self, context: AcquisitionContext, session: requests.Session | None = None):
        self.context = context
        self.session = session or requests.Session()
        self.timeout = context.config.image_timeout

    def acquire_all(
        self, code: str, urls: list[str], max_images: int | None = None
    ) -> list[ImageAcquisitionResult]:
        """Download the first ``max_images`` URLs, one result per position."""
        limit = self.context.config.max_images if max_images is None else max_images
        selected = urls[:limit]

        logger.info(
            f"Starting image acquisition code={code} total_images={len(urls)} "
            f"will_acquire={len(selected)}"
        )

        results = []
        for position, url in enumerate(selected):
            self.context.pause_for_image(position)
            results.append(self.acquire_one(code, position, url))

        counts = ImageCounts.from_results(results)
        logger.info(
            f"Image acquisition complete code={code} attempted={counts.attempted} "
            f"successful={counts.succeeded} failed={counts.failed}"
        )
        return results

    def acquire_one(self, code: str, position: int, url: str) -> ImageAcquisitionResult:
        headers = self.context.image_headers()
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            error = error_for_status(response.status_code, url)
            if error is not None:
                raise error
            data = response.content
            if not data:
                raise ValueError("empty body")
            content_type = _content_type_for(response.headers.get("Content-Type"), data)
        except Exception as e:
            reason = self._failure_reason(e, url)
            logger.warning(
                f"Failed to download image {position + 1} code={code} url={url} reason={reason}"
            )
            return ImageAcquisitionResult(
                source_url=url, position=position, success=False, failure_reason=reason
            )

        logger.debug(f"Image {position + 1} downloaded code={code} size={len(data)}")
        return ImageAcquisitionResult(
            source_url=url,
            position=position,
            success=True,
            data=data,
            content_type=content_type,
            storage_key=storage_key(code, position, content_type),
        )

    @staticmethod
    def _failure_reason(error: Exception, url: str) -> str:
        if isinstance(error, ValueError):
            return str(error)
        classified = classify_exception(error, url)
        return f"{classified.failure_type.value}: {classified}"
