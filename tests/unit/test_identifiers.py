"""
Unit tests for product identifier classification
"""

import random
import string

import pytest

from listing_scraper.core.failure_classifier import FailureType
from listing_scraper.core.identifiers import (
    Identifier,
    IdentifierKind,
    Rejection,
    asin_from_url,
    classify,
)


class TestClassify:
    """Test classification of raw input into identifiers."""

    @pytest.mark.parametrize(
        "raw, kind, code",
        [
            ("B08N5WRWNW", IdentifierKind.ASIN, "B08N5WRWNW"),
            ("b08n5wrwnw", IdentifierKind.ASIN, "B08N5WRWNW"),
            ("  B08N5WRWNW \n", IdentifierKind.ASIN, "B08N5WRWNW"),
            ("X001ABCDEF", IdentifierKind.FNSKU, "X001ABCDEF"),
            ("0123456789", IdentifierKind.ASIN, "0123456789"),
            ("A1B2C3D4E5", IdentifierKind.ASIN, "A1B2C3D4E5"),
            ("012345678905", IdentifierKind.UPC, "012345678905"),
            ("4006381333931", IdentifierKind.EAN, "4006381333931"),
            ("1234567", IdentifierKind.UPC, "1234567"),
            ("my-sku_42", IdentifierKind.SKU, "MY-SKU_42"),
        ],
    )
    def test_recognized_forms(self, raw, kind, code):
        """Test each supported form is classified and normalized."""
        assert classify(raw) == Identifier(kind, code)

    def test_rules_checked_in_order(self):
        """Test a code starting with B is an ASIN even though it is also a valid SKU."""
        assert classify("BABCDEFGHI").kind == IdentifierKind.ASIN
        assert classify("XABCDEFGHI").kind == IdentifierKind.FNSKU
        # 10 digits match the generic ASIN rule before any numeric rule
        assert classify("1234567890").kind == IdentifierKind.ASIN

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.amazon.com/Example-Widget/dp/B08N5WRWNW/ref=sr_1_1?keywords=widget",
            "https://www.amazon.com/gp/product/B08N5WRWNW",
            "https://www.amazon.com/exec/obidos/ASIN/B08N5WRWNW",
            "https://www.amazon.com/something?tag=x&ASIN=b08n5wrwnw",
        ],
    )
    def test_catalog_urls(self, url):
        """Test catalog URLs yield the embedded ASIN."""
        assert classify(url) == Identifier(IdentifierKind.ASIN, "B08N5WRWNW")

    @pytest.mark.parametrize("raw", ["", "   ", "ab", "hello world", "!!!", "https://example.com/"])
    def test_unrecognized_input_is_rejected(self, raw):
        """Test junk input produces a Rejection rather than an exception."""
        result = classify(raw)

        assert isinstance(result, Rejection)
        assert result.reason == FailureType.UNRECOGNIZED_FORMAT
        assert "Unrecognized code format" in result.message

    def test_short_digit_runs_fall_through_to_sku(self):
        assert classify("12345") == Identifier(IdentifierKind.SKU, "12345")

    def test_none_input_is_rejected(self):
        assert isinstance(classify(None), Rejection)

    def test_only_asin_is_catalog_id(self):
        assert Identifier(IdentifierKind.ASIN, "B08N5WRWNW").is_catalog_id
        assert not Identifier(IdentifierKind.UPC, "012345678905").is_catalog_id
        assert not Identifier(IdentifierKind.FNSKU, "X001ABCDEF").is_catalog_id


class TestAsinFromUrl:
    def test_no_match(self):
        assert asin_from_url("https://www.amazon.com/s?k=widget") is None

    def test_uppercases(self):
        assert asin_from_url("/dp/b07organic") == "B07ORGANIC"


class TestTotality:
    """Test classification over arbitrary input."""

    def test_random_printable_input(self):
        rng = random.Random(20240611)
        alphabets = [string.printable, string.ascii_letters + string.digits, string.digits, "BXbx0123456789-_ "]

        for _ in range(3000):
            alphabet = rng.choice(alphabets)
            raw = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 200)))

            result = classify(raw)

            assert isinstance(result, (Identifier, Rejection))
            if isinstance(result, Rejection):
                assert result.reason == FailureType.UNRECOGNIZED_FORMAT
                continue
            assert result.code.isascii()
            if result.kind in (IdentifierKind.UPC, IdentifierKind.EAN):
                assert result.code.isdigit()
            else:
                assert result.code == result.code.upper()

    @pytest.mark.parametrize(
        "raw",
        [
            "١٢٣٤٥٦٧٨٩٠١٢",
            "B08N5WRWNſ",
            "ıııııııııı",
            "０１２３４５６",
        ],
    )
    def test_non_ascii_lookalikes_are_rejected(self, raw):
        """Test digits and letters outside ASCII never produce a code."""
        assert isinstance(classify(raw), Rejection)

    def test_catalog_url_with_non_ascii_asin_is_rejected(self):
        assert asin_from_url("https://www.amazon.com/dp/B08N5WRWNſ") is None
