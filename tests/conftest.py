"""
Pytest configuration and fixtures for listing_scraper tests
"""

import random

import pytest

from listing_scraper.core.context import AcquisitionContext
from listing_scraper.scrapers.models.config import AcquisitionConfig

START_TIME = 1_700_000_000.0

PRODUCT_ASIN = "B08N5WRWNW"
IMAGE_A = "https://m.media-amazon.com/images/I/71abcDEF01L"
IMAGE_B = "https://m.media-amazon.com/images/I/81xyzGHI02L"

PRODUCT_PAGE_HTML = f"""
<html>
<head><title>Amazon.com: Example Widget</title></head>
<body>
  <span id="productTitle">  Example Widget  </span>
  <a id="bylineInfo" href="/stores/Acme">Visit the Acme Store</a>
  <div id="corePriceDisplay_desktop_feature_div">
    <span class="a-price">
      <span class="a-price-whole">19<span class="a-price-decimal">.</span></span>
      <span class="a-price-fraction">99</span>
    </span>
  </div>
  <div id="imageBlock">
    <img id="landingImage" src="{IMAGE_A}._AC_SX425_.jpg"
         data-a-dynamic-image='{{"{IMAGE_A}._AC_SL1500_.jpg": [1500, 1500]}}'>
    <div id="altImages">
      <ul>
        <li><img src="{IMAGE_A}._AC_US40_.jpg"></li>
        <li><img src="{IMAGE_B}._AC_US40_.jpg"></li>
      </ul>
    </div>
  </div>
  <div id="feature-bullets">
    <ul>
      <li><span class="a-list-item"> Sturdy steel frame </span></li>
      <li><span class="a-list-item">Fits in any drawer</span></li>
    </ul>
  </div>
  <div id="productDescription"><p>A widget for every occasion.</p></div>
  <table id="productDetails_techSpec_section_1">
    <tr><th>Product Dimensions</th><td>10 x 5 x 2 inches; 12 Ounces</td></tr>
    <tr><th>UPC</th><td>012345678905</td></tr>
    <tr><th>EAN</th><td>0012345678905</td></tr>
  </table>
</body>
</html>
"""

SEARCH_PAGE_HTML = """
<html><body>
  <div class="s-main-slot">
    <div data-asin="" class="s-widget"></div>
    <div data-asin="0000000000" data-component-type="s-search-result"></div>
    <div data-asin="B0SPONSOR1" data-component-type="s-search-result">
      <span class="puis-sponsored-label-text">Sponsored</span>
      <h2><a class="a-link-normal" href="/sspa/click?spc=1">Promoted thing</a></h2>
    </div>
    <div data-asin="B07ORGANIC" data-component-type="s-search-result">
      <h2><a class="a-link-normal" href="/Widget/dp/B07ORGANIC/ref=sr_1_1">Widget</a></h2>
    </div>
  </div>
</body></html>
"""

NO_RESULTS_HTML = """
<html><body>
  <div class="s-no-results">No results for 999999999999. Try checking your spelling.</div>
</body></html>
"""


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, text="", content=None, headers=None):
        self.status_code = status_code
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = headers or {}


class FakeSession:
    """
    Stand-in for requests.Session.

    ``routes`` is an ordered list of (url substring, response or exception);
    the first matching route answers. Every call is recorded.
    """

    def __init__(self, routes=None):
        self.routes = list(routes or [])
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        for fragment, answer in self.routes:
            if fragment in url:
                if isinstance(answer, Exception):
                    raise answer
                return answer
        return FakeResponse(404, "not found")

    def urls(self):
        return [url for url, _ in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def config():
    return AcquisitionConfig(simulate_human=False)


@pytest.fixture
def context(config, rng, clock, sleeps):
    return AcquisitionContext(config, rng=rng, clock=clock, sleep=sleeps.append)


@pytest.fixture
def product_page_html():
    return PRODUCT_PAGE_HTML


@pytest.fixture
def search_page_html():
    return SEARCH_PAGE_HTML


@pytest.fixture
def no_results_html():
    return NO_RESULTS_HTML


@pytest.fixture
def jpeg_bytes():
    """A tiny real JPEG."""
    from io import BytesIO

    from PIL import Image

    buffer = BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def expected_images():
    """The product page's images after normalization and deduplication."""
    return [f"{IMAGE_A}.jpg", f"{IMAGE_B}.jpg"]
