"""
Unit tests for Amazon product page extraction and search result recovery
"""

import pytest
from bs4 import BeautifulSoup

from listing_scraper.core.failure_classifier import ExtractionError
from listing_scraper.scrapers.amazon import (
    collect_images,
    extract,
    get_strategies,
    has_no_search_results,
    is_plausible_asin,
    normalize_image_url,
    parse_document,
    recover_asin,
)
from listing_scraper.scrapers.fetcher import Document
from listing_scraper.scrapers.models.product import Dimensions, Weight


def page(html: str, url: str = "https://www.amazon.com/dp/B08N5WRWNW") -> Document:
    return Document(url=url, status_code=200, text=html)


class TestExtract:
    """Test full-page extraction."""

    def test_product_page(self, product_page_html, expected_images):
        product = extract(page(product_page_html), "B08N5WRWNW")

        assert product.title == "Example Widget"
        assert product.price == 19.99
        assert product.images == expected_images
        assert product.brand == "Acme"
        assert product.bullets == ["Sturdy steel frame", "Fits in any drawer"]
        assert product.description == "A widget for every occasion."
        assert product.dimensions == Dimensions(10.0, 5.0, 2.0, "INCH")
        assert product.weight == Weight(0.75, "POUND")

    def test_upc_takes_first_matching_row(self, product_page_html):
        assert extract(page(product_page_html), "B08N5WRWNW").upc == "012345678905"

    def test_missing_fields_are_absent(self):
        product = extract(page("<html><body><p>nothing here</p></body></html>"), "B000000001")

        assert product.title == ""
        assert product.price is None
        assert product.images == []
        assert product.bullets == []
        assert product.brand is None
        assert product.description is None
        assert product.upc is None
        assert product.dimensions is None
        assert product.weight is None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_document_raises(self, text):
        with pytest.raises(ExtractionError):
            parse_document(Document(url="u", status_code=200, text=text))

    def test_failing_strategy_is_skipped(self, product_page_html, monkeypatch):
        from listing_scraper.scrapers import amazon

        def broken(soup):
            raise RuntimeError("boom")

        monkeypatch.setitem(
            amazon._STRATEGIES,
            "title",
            [("broken", broken, False), *amazon._STRATEGIES["title"]],
        )

        assert extract(page(product_page_html), "B08N5WRWNW").title == "Example Widget"


class TestPrice:
    def test_fraction_defaults_to_zero(self):
        html = '<span class="a-price"><span class="a-price-whole">1,299.</span></span>'

        assert extract(page(html), "B08N5WRWNW").price == 1299.0

    def test_core_price_block_preferred(self):
        html = """
        <span class="a-price"><span class="a-price-whole">5</span><span class="a-price-fraction">00</span></span>
        <div id="corePrice_feature_div">
          <span class="a-price"><span class="a-price-whole">24</span><span class="a-price-fraction">50</span></span>
        </div>
        """

        assert extract(page(html), "B08N5WRWNW").price == 24.5

    def test_price_strategies_in_order(self):
        names = [func.__name__ for func in get_strategies("price")]

        assert names == ["price_from_core_price_block", "price_from_first_price_element"]


class TestImages:
    """Test image URL normalization and deduplication."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            (
                "https://m.media-amazon.com/images/I/71abc._AC_SL1500_.jpg",
                "https://m.media-amazon.com/images/I/71abc.jpg",
            ),
            (
                "https://m.media-amazon.com/images/I/71abc._SL500_.png",
                "https://m.media-amazon.com/images/I/71abc.png",
            ),
            (
                "//m.media-amazon.com/images/I/71abc._AC_US40_.jpg",
                "https://m.media-amazon.com/images/I/71abc.jpg",
            ),
            ("https://m.media-amazon.com/images/I/71abc.jpg", "https://m.media-amazon.com/images/I/71abc.jpg"),
            ("data:image/gif;base64,R0lGOD", ""),
            ("https://m.media-amazon.com/images/G/01/x-locale/grey-pixel.gif", ""),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize_image_url(self, url, expected):
        assert normalize_image_url(url) == expected

    def test_size_variants_deduplicated_in_discovery_order(self):
        html = """
        <div id="altImages">
          <img src="https://m.media-amazon.com/images/I/B2._AC_US40_.jpg">
          <img src="https://m.media-amazon.com/images/I/A1._AC_US40_.jpg">
        </div>
        <script>var data = {"colorImages": {"initial": [
          {"hiRes":"https://m.media-amazon.com/images/I/A1._AC_SL1500_.jpg"},
          {"large":"https://m.media-amazon.com/images/I/C3._AC_.jpg"}]}};</script>
        """
        soup = parse_document(page(html))

        assert collect_images(soup) == [
            "https://m.media-amazon.com/images/I/B2.jpg",
            "https://m.media-amazon.com/images/I/A1.jpg",
            "https://m.media-amazon.com/images/I/C3.jpg",
        ]

    def test_hero_image_only_used_as_fallback(self):
        html = '<img id="landingImage" src="https://m.media-amazon.com/images/I/H1._AC_SX425_.jpg">'
        soup = parse_document(page(html))

        assert collect_images(soup) == ["https://m.media-amazon.com/images/I/H1.jpg"]

    def test_malformed_dynamic_image_map_is_ignored(self):
        html = """
        <div id="imageBlock"><img id="landingImage" data-a-dynamic-image="{not json"
             src="https://m.media-amazon.com/images/I/H1.jpg"></div>
        """
        soup = parse_document(page(html))

        assert collect_images(soup) == ["https://m.media-amazon.com/images/I/H1.jpg"]


class TestDetails:
    def test_brand_from_byline_prefix(self):
        html = '<a id="bylineInfo">Brand: Contoso</a>'

        assert extract(page(html), "B08N5WRWNW").brand == "Contoso"

    def test_brand_from_attribute_table(self):
        html = '<table><tr class="po-brand"><td class="a-span3">Brand</td><td class="a-span9">Fabrikam</td></tr></table>'

        assert extract(page(html), "B08N5WRWNW").brand == "Fabrikam"

    def test_description_falls_back_to_truncated_bullets(self):
        long_text = "word " * 200
        html = f'<div id="feature-bullets"><ul><li><span class="a-list-item">{long_text}</span></li></ul></div>'

        description = extract(page(html), "B08N5WRWNW").description

        assert len(description) == 500

    def test_detail_bullets_weight_in_grams(self):
        html = """
        <div id="detailBullets_feature_div"><ul>
          <li><span><span class="a-text-bold">Item Weight \u200f : \u200e</span><span>450 Grams</span></span></li>
          <li><span><span class="a-text-bold">Item model number :</span><span>W-1</span></span></li>
        </ul></div>
        """

        assert extract(page(html), "B08N5WRWNW").weight == Weight(0.45, "KILOGRAM")

    def test_dimensions_in_centimeters(self):
        html = "<table><tr><th>Package Dimensions</th><td>30 x 20.5 x 4 cm; 1.2 Kilograms</td></tr></table>"
        product = extract(page(html), "B08N5WRWNW")

        assert product.dimensions == Dimensions(30.0, 20.5, 4.0, "CENTIMETER")
        assert product.weight == Weight(1.2, "KILOGRAM")


class TestSearchRecovery:
    """Test ASIN recovery from search result pages."""

    def test_skips_placeholders_and_sponsored(self, search_page_html):
        document = page(search_page_html, "https://www.amazon.com/s?k=012345678905")

        assert recover_asin(document) == "B07ORGANIC"

    def test_no_results_page(self, no_results_html):
        assert recover_asin(page(no_results_html)) is None

    def test_spelling_correction_page_still_has_results(self):
        """Test a 'No results for X' banner does not hide the corrected results."""
        html = """
        <div class="s-main-slot">
          <div class="s-no-results">No results for widgit. Showing results for widget.</div>
          <div data-asin="B07ORGANIC" data-component-type="s-search-result">
            <h2><a class="a-link-normal" href="/Widget/dp/B07ORGANIC">Widget</a></h2>
          </div>
        </div>
        """

        assert recover_asin(page(html)) == "B07ORGANIC"

    def test_no_results_phrase_in_page_text_alone(self):
        html = """
        <p>Customers searching for "no results for" also bought</p>
        <div data-asin="B07ORGANIC" data-component-type="s-search-result"></div>
        """

        assert recover_asin(page(html)) == "B07ORGANIC"

    def test_no_results_block_detection(self, no_results_html):
        assert has_no_search_results(BeautifulSoup(no_results_html, "html.parser"))
        assert not has_no_search_results(BeautifulSoup("<p>No results for you</p>", "html.parser"))

    def test_link_fallback(self):
        html = """
        <div class="s-result-list">
          <h2><a class="a-link-normal" href="/sspa/click?url=%2Fdp%2FB0SPONSOR1">Ad</a></h2>
          <h2><a class="a-link-normal" href="/Thing/dp/B0LINKED01/ref=sr_1_2">Thing</a></h2>
        </div>
        """

        assert recover_asin(page(html)) == "B0LINKED01"

    def test_custom_validator(self, search_page_html):
        document = page(search_page_html)

        assert recover_asin(document, is_valid=lambda code: code.startswith("Z")) is None

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("B07ORGANIC", True),
            ("0000000000", False),
            ("0123456789", False),
            ("B07", False),
            ("B07ORGANI!", False),
            (None, False),
        ],
    )
    def test_is_plausible_asin(self, code, expected):
        assert is_plausible_asin(code) is expected
