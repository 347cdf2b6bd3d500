"""
Reference implementations of the persistence and blob storage sinks.

The pipeline only depends on the ProductSink and ImageSink interfaces;
these local implementations back the command-line tool and the tests.
"""

from .base import ImageSink, ProductSink
from .image_store import LocalImageStore
from .product_store import ProductStore

__all__ = [
    "ImageSink",
    "LocalImageStore",
    "ProductSink",
    "ProductStore",
]
