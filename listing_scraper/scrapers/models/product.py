"""
Value objects produced by extraction and image acquisition.

These are transient: they are handed to the persistence and blob sinks and
not retained by the pipeline afterwards.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Dimensions:
    length: float
    width: float
    height: float
    unit: str  # INCH or CENTIMETER


@dataclass(frozen=True)
class Weight:
    value: float
    unit: str  # POUND or KILOGRAM


@dataclass
class ScrapedProduct:
    """Structured data extracted from one product page."""

    title: str
    price: float | None = None
    images: list[str] = field(default_factory=list)
    description: str | None = None
    bullets: list[str] = field(default_factory=list)
    brand: str | None = None
    upc: str | None = None
    dimensions: Dimensions | None = None
    weight: Weight | None = None

    def raw_data(self) -> dict[str, Any]:
        """Extra fields kept alongside the stored product."""
        data: dict[str, Any] = {"bullets": list(self.bullets)}
        if self.dimensions:
            data["dimensions"] = {
                "length": self.dimensions.length,
                "width": self.dimensions.width,
                "height": self.dimensions.height,
                "unit": self.dimensions.unit,
            }
        if self.weight:
            data["weight"] = {"value": self.weight.value, "unit": self.weight.unit}
        return data


@dataclass
class ImageAcquisitionResult:
    """Outcome of downloading one image.

    ``position`` is the index in the deduplicated image list and does not
    shift when earlier images fail.
    """

    source_url: str
    position: int
    success: bool
    data: bytes | None = None
    content_type: str | None = None
    storage_key: str | None = None
    failure_reason: str | None = None
    public_url: str | None = None


@dataclass(frozen=True)
class ImageCounts:
    attempted: int
    succeeded: int
    failed: int
    stored: int = 0

    @classmethod
    def from_results(cls, results: list[ImageAcquisitionResult]) -> "ImageCounts":
        succeeded = sum(1 for r in results if r.success)
        return cls(
            attempted=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            stored=sum(1 for r in results if r.public_url),
        )
