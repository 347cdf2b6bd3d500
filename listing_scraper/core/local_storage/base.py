from abc import ABC, abstractmethod
from typing import Any


class ProductSink(ABC):
    """Durable product storage used by the acquisition pipeline."""

    @abstractmethod
    def find_existing(self, asin: str) -> dict[str, Any] | None:
        """Return a reference to the stored product with this ASIN, if any."""

    @abstractmethod
    def create_product(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Store a new product and return its stored reference.

        Raises:
            ProductAlreadyExistsError: a product with the same ASIN exists
        """

    @abstractmethod
    def attach_image(
        self, product_id: str, position: int, image_url: str, storage_path: str
    ) -> dict[str, Any]:
        """Record a stored image against a product."""


class ImageSink(ABC):
    """Blob storage for product images."""

    @abstractmethod
    def put(self, code: str, position: int, data: bytes, content_type: str) -> str:
        """Store image bytes and return a publicly resolvable URL."""
