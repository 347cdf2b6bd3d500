"""
Product identifier classification.

Turns raw user input (a scanned barcode, a typed code or a pasted catalog
URL) into a typed, normalized identifier. Pattern order matters: the first
matching rule wins.
"""

import re
from dataclasses import dataclass
from enum import Enum

from listing_scraper.core.failure_classifier import FailureType


class IdentifierKind(Enum):
    ASIN = "ASIN"
    FNSKU = "FNSKU"
    UPC = "UPC"
    EAN = "EAN"
    SKU = "SKU"


@dataclass(frozen=True)
class Identifier:
    kind: IdentifierKind
    code: str

    @property
    def is_catalog_id(self) -> bool:
        """True when the code can be used directly as a catalog page id."""
        return self.kind == IdentifierKind.ASIN


@dataclass(frozen=True)
class Rejection:
    reason: FailureType
    raw_input: str

    @property
    def message(self) -> str:
        return (
            f"Unrecognized code format: {self.raw_input!r}. "
            "Supported: ASIN, FNSKU, UPC, EAN, SKU or a catalog URL"
        )


_ALNUM_RULES: list[tuple[re.Pattern, IdentifierKind]] = [
    (re.compile(r"^B[A-Z0-9]{9}$", re.IGNORECASE | re.ASCII), IdentifierKind.ASIN),
    (re.compile(r"^X[A-Z0-9]{9}$", re.IGNORECASE | re.ASCII), IdentifierKind.FNSKU),
    (re.compile(r"^[A-Z0-9]{10}$", re.IGNORECASE | re.ASCII), IdentifierKind.ASIN),
]

_NUMERIC_RULES: list[tuple[re.Pattern, IdentifierKind]] = [
    (re.compile(r"^\d{12}$", re.ASCII), IdentifierKind.UPC),
    (re.compile(r"^\d{13}$", re.ASCII), IdentifierKind.EAN),
    (re.compile(r"^\d{6,8}$", re.ASCII), IdentifierKind.UPC),
]

_SKU_PATTERN = re.compile(r"^[A-Z0-9_-]{3,}$", re.IGNORECASE | re.ASCII)

CATALOG_URL_PATTERNS = [
    re.compile(r"/dp/([A-Z0-9]{10})", re.IGNORECASE | re.ASCII),
    re.compile(r"/gp/product/([A-Z0-9]{10})", re.IGNORECASE | re.ASCII),
    re.compile(r"/ASIN/([A-Z0-9]{10})", re.IGNORECASE | re.ASCII),
    re.compile(r"[?&]ASIN=([A-Z0-9]{10})", re.IGNORECASE | re.ASCII),
]


def classify(raw_input: str) -> Identifier | Rejection:
    """Classify raw input into an Identifier, or a Rejection if nothing matches.

    Never raises for string input.
    """
    trimmed = (raw_input or "").strip()

    for pattern, kind in _ALNUM_RULES:
        if pattern.match(trimmed):
            return Identifier(kind, trimmed.upper())

    for pattern, kind in _NUMERIC_RULES:
        if pattern.match(trimmed):
            return Identifier(kind, trimmed)

    if _SKU_PATTERN.match(trimmed):
        return Identifier(IdentifierKind.SKU, trimmed.upper())

    asin = asin_from_url(trimmed)
    if asin:
        return Identifier(IdentifierKind.ASIN, asin)

    return Rejection(FailureType.UNRECOGNIZED_FORMAT, trimmed)


def asin_from_url(text: str) -> str | None:
    """Pull an embedded ASIN out of a catalog URL."""
    for pattern in CATALOG_URL_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).upper()
    return None
