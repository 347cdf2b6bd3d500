"""
Closed set of outcomes returned by the acquisition pipeline.

Callers dispatch on the concrete type; every variant carries a
human-readable ``message`` and, where waiting makes sense, ``wait_seconds``.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from listing_scraper.core.admission import DENIAL_MESSAGES, DenialReason
from listing_scraper.core.failure_classifier import FailureType
from listing_scraper.core.identifiers import Identifier
from listing_scraper.scrapers.models.product import (
    ImageAcquisitionResult,
    ImageCounts,
    ScrapedProduct,
)


@dataclass
class Success:
    identifier: Identifier
    asin: str
    product: ScrapedProduct
    product_ref: dict[str, Any]
    images: list[ImageAcquisitionResult] = field(default_factory=list)
    counts: ImageCounts = field(default_factory=lambda: ImageCounts(0, 0, 0))

    @property
    def message(self) -> str:
        return (
            f"Acquired {self.asin}: {self.product.title[:60]} "
            f"({self.counts.succeeded}/{self.counts.attempted} images)"
        )


@dataclass
class AlreadyExists:
    existing_ref: dict[str, Any]

    @property
    def message(self) -> str:
        return f"Product {self.existing_ref.get('asin')} already exists"


@dataclass
class AdmissionDenied:
    reason: DenialReason
    wait_seconds: int

    @property
    def message(self) -> str:
        return f"{DENIAL_MESSAGES[self.reason]}. Try again in {self.wait_seconds} seconds"


@dataclass
class NotFound:
    identifier: Identifier

    @property
    def message(self) -> str:
        return f"No product found for {self.identifier.kind.value} {self.identifier.code}"


@dataclass
class RateLimited:
    wait_seconds: int

    @property
    def message(self) -> str:
        return f"Rate limited by the catalog site. Try again in {self.wait_seconds} seconds"


@dataclass
class Failed:
    reason: str
    failure_type: FailureType

    @property
    def message(self) -> str:
        return self.reason


AcquisitionResult = Union[Success, AlreadyExists, AdmissionDenied, NotFound, RateLimited, Failed]
