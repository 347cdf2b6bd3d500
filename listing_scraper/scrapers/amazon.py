"""
Amazon product page extraction.

Each field is filled by an ordered list of independent strategies. Scalar
fields take the first non-empty strategy result; images take the union of
all strategies, normalized and deduplicated in discovery order. A strategy
that fails is logged and skipped, never fatal.
"""

import json
import logging
import re
from collections import defaultdict
from typing import Any, Callable

from bs4 import BeautifulSoup

from listing_scraper.core.failure_classifier import ExtractionError
from listing_scraper.core.identifiers import asin_from_url
from listing_scraper.scrapers.fetcher import Document
from listing_scraper.scrapers.models.product import Dimensions, ScrapedProduct, Weight
from listing_scraper.utils.general.text import clean_string, truncate

logger = logging.getLogger(__name__)

DESCRIPTION_FALLBACK_LENGTH = 500

# Resolution tokens such as ._SL500_. or ._AC_SX425_.
SIZE_MODIFIER = re.compile(r"\._[A-Z0-9_,]+_\.")
SIZE_MODIFIER_JPG = re.compile(r"\._[A-Z0-9_,]+\.jpg")

SKIPPED_IMAGE_MARKERS = ["play-icon", "360_icon", "grey-pixel", "transparent-pixel", "no-image"]

SPONSORED_SELECTORS = (
    ".s-sponsored-label-info, .sbv-sponsored, [data-sponsored='true'], "
    ".puis-sponsored-label-text, .puis-label-sponsored, .AdHolder"
)

NO_RESULTS_PHRASES = [
    "no results for",
    "did not match any products",
    "no search results",
    "we couldn't find any matches",
    "no products found",
]

DIMENSIONS_PATTERN = re.compile(
    r"([\d.]+)\s*\"?\s*[xX×]\s*([\d.]+)\s*\"?\s*[xX×]\s*([\d.]+)\s*\"?\s*"
    r"(inches|inch|in\b|centimeters|centimetres|cm\b)",
    re.IGNORECASE,
)
WEIGHT_PATTERN = re.compile(
    r"([\d.]+)\s*(pounds?|lbs?|ounces?|oz|kilograms?|kg|grams?|g)\b", re.IGNORECASE
)

Strategy = Callable[[BeautifulSoup], Any]

_STRATEGIES: dict[str, list[tuple[str, Strategy, bool]]] = defaultdict(list)


def strategy(field_name: str, fallback: bool = False):
    """Register an extraction strategy for a field, in declaration order.

    A ``fallback`` image strategy only runs when earlier ones found nothing.
    """

    def decorator(func: Strategy) -> Strategy:
        _STRATEGIES[field_name].append((func.__name__, func, fallback))
        return func

    return decorator


def get_strategies(field_name: str) -> list[Strategy]:
    return [func for _, func, _ in _STRATEGIES[field_name]]


def normalize_image_url(url: str | None) -> str:
    """Strip size modifiers so resolution variants of one image compare equal."""
    if not url:
        return ""
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    if not url.startswith(("http://", "https://")):
        return ""
    if any(marker in url.lower() for marker in SKIPPED_IMAGE_MARKERS):
        return ""
    cleaned = SIZE_MODIFIER.sub(".", url, count=1)
    return SIZE_MODIFIER_JPG.sub(".jpg", cleaned, count=1)


def is_plausible_asin(code: str | None) -> bool:
    """Default validity check for ASINs recovered from search results.

    Search pages carry placeholder ids (all zeros, leading zero) on
    non-product tiles.
    """
    if not code or len(code) != 10 or not code.isalnum():
        return False
    if set(code) == {"0"} or code.startswith("0"):
        return False
    return True


def _text(soup: BeautifulSoup, selector: str) -> str:
    element = soup.select_one(selector)
    return clean_string(element.get_text(" ")) if element else ""


def _labeled_rows(soup: BeautifulSoup) -> list[tuple[str, str]]:
    """(label, value) pairs from attribute tables and detail bullet lists."""
    rows = []
    for tr in soup.select("tr"):
        label = tr.find("th")
        value = tr.find("td")
        if label and value:
            rows.append((clean_string(label.get_text(" ")), clean_string(value.get_text(" "))))

    for item in soup.select("#detailBullets_feature_div li, #detailBulletsWrapper_feature_div li"):
        bold = item.select_one(".a-text-bold")
        if not bold:
            continue
        label = clean_string(bold.get_text(" ")).rstrip(": ").strip()
        value_span = bold.find_next_sibling("span")
        value = clean_string(value_span.get_text(" ")) if value_span else ""
        rows.append((label, value))
    return rows


# --- Title ---


@strategy("title")
def title_from_product_title(soup: BeautifulSoup) -> str:
    return _text(soup, "#productTitle")


# --- Price ---


def _compose_price(container) -> float | None:
    if container is None:
        return None
    whole_el = container.select_one(".a-price .a-price-whole")
    if whole_el is None:
        return None
    whole = re.sub(r"[^0-9]", "", whole_el.get_text())
    if not whole:
        return None
    fraction_el = container.select_one(".a-price .a-price-fraction")
    fraction = re.sub(r"[^0-9]", "", fraction_el.get_text()) if fraction_el else ""
    return float(f"{whole}.{fraction or '00'}")


@strategy("price")
def price_from_core_price_block(soup: BeautifulSoup) -> float | None:
    return _compose_price(
        soup.select_one("#corePriceDisplay_desktop_feature_div, #corePrice_feature_div")
    )


@strategy("price")
def price_from_first_price_element(soup: BeautifulSoup) -> float | None:
    return _compose_price(soup)


# --- Images ---


@strategy("images")
def images_from_dynamic_image_map(soup: BeautifulSoup) -> list[str]:
    urls = []
    for element in soup.select(
        "#imageBlock[data-a-dynamic-image], #imageBlock [data-a-dynamic-image], "
        "#landingImage[data-a-dynamic-image]"
    ):
        try:
            image_map = json.loads(element["data-a-dynamic-image"])
        except (ValueError, TypeError):
            logger.warning("Failed to parse dynamic image map")
            continue
        if isinstance(image_map, dict):
            urls.extend(image_map.keys())
    return urls


@strategy("images")
def images_from_thumbnail_strip(soup: BeautifulSoup) -> list[str]:
    return [img.get("src", "") for img in soup.select("#altImages img")]


@strategy("images")
def images_from_inline_scripts(soup: BeautifulSoup) -> list[str]:
    urls = []
    for script in soup.find_all("script", src=False):
        content = script.string or script.get_text() or ""
        if "colorImages" not in content and "ImageBlockATF" not in content:
            continue
        urls.extend(re.findall(r'"hiRes":"(https://[^"]+)"', content))
        urls.extend(re.findall(r'"large":"(https://[^"]+)"', content))
    return urls


@strategy("images", fallback=True)
def images_from_hero_image(soup: BeautifulSoup) -> list[str]:
    candidates = []
    landing = soup.select_one("#landingImage")
    if landing is not None:
        candidates.append(landing.get("src"))
    front = soup.select_one("#imgBlkFront")
    if front is not None:
        candidates.append(front.get("src"))
    hires = soup.select_one("img[data-old-hires]")
    if hires is not None:
        candidates.append(hires.get("data-old-hires"))
    for candidate in candidates:
        if normalize_image_url(candidate):
            return [candidate]
    return []


# --- Bullets ---


@strategy("bullets")
def bullets_from_feature_block(soup: BeautifulSoup) -> list[str]:
    bullets = []
    for item in soup.select("#feature-bullets ul li span.a-list-item"):
        text = clean_string(item.get_text(" "))
        if text:
            bullets.append(text)
    return bullets


# --- Brand ---


def _clean_brand(text: str) -> str:
    text = re.sub(r"^(Brand|Visit the|by)\s*:?\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+Store$", "", text, flags=re.IGNORECASE)
    return text.strip()


@strategy("brand")
def brand_from_byline(soup: BeautifulSoup) -> str:
    return _clean_brand(_text(soup, "#bylineInfo"))


@strategy("brand")
def brand_from_attribute_table(soup: BeautifulSoup) -> str:
    return _text(soup, "tr.po-brand td.a-span9")


# --- Description ---


@strategy("description")
def description_from_description_block(soup: BeautifulSoup) -> str:
    paragraphs = soup.select("#productDescription p")
    return clean_string(" ".join(p.get_text(" ") for p in paragraphs))


@strategy("description")
def description_from_bullets_block(soup: BeautifulSoup) -> str:
    return truncate(_text(soup, "#feature-bullets"), DESCRIPTION_FALLBACK_LENGTH)


# --- UPC ---


@strategy("upc")
def upc_from_labeled_rows(soup: BeautifulSoup) -> str | None:
    for label, value in _labeled_rows(soup):
        upper = label.upper()
        if ("UPC" in upper or "EAN" in upper) and value:
            return value
    return None


# --- Dimensions and weight ---


def _to_dimensions(text: str) -> Dimensions | None:
    match = DIMENSIONS_PATTERN.search(text)
    if not match:
        return None
    length, width, height = (float(match.group(i)) for i in (1, 2, 3))
    unit = "CENTIMETER" if match.group(4).lower().startswith("c") else "INCH"
    return Dimensions(length, width, height, unit)


def _to_weight(text: str) -> Weight | None:
    match = WEIGHT_PATTERN.search(text)
    if not match:
        return None
    value = float(match.group(1))
    unit = match.group(2).lower()
    if unit.startswith(("ounce", "oz")):
        return Weight(round(value / 16, 2), "POUND")
    if unit.startswith(("pound", "lb")):
        return Weight(round(value, 2), "POUND")
    if unit.startswith(("kilogram", "kg")):
        return Weight(round(value, 2), "KILOGRAM")
    return Weight(round(value / 1000, 3), "KILOGRAM")


@strategy("dimensions")
def dimensions_from_labeled_rows(soup: BeautifulSoup) -> Dimensions | None:
    for label, value in _labeled_rows(soup):
        if "dimension" in label.lower():
            dimensions = _to_dimensions(value)
            if dimensions:
                return dimensions
    return None


@strategy("weight")
def weight_from_weight_rows(soup: BeautifulSoup) -> Weight | None:
    for label, value in _labeled_rows(soup):
        if "weight" in label.lower():
            weight = _to_weight(value)
            if weight:
                return weight
    return None


@strategy("weight")
def weight_from_dimension_rows(soup: BeautifulSoup) -> Weight | None:
    # "10 x 5 x 2 inches; 1.5 Pounds"
    for label, value in _labeled_rows(soup):
        if "dimension" in label.lower() and ";" in value:
            weight = _to_weight(value.split(";", 1)[1])
            if weight:
                return weight
    return None


# --- Merging ---


def _run(func: Strategy, soup: BeautifulSoup, code: str) -> Any:
    try:
        return func(soup)
    except Exception as e:
        logger.warning(f"Extraction strategy {func.__name__} failed code={code}: {e}")
        return None


def first_non_empty(field_name: str, soup: BeautifulSoup, code: str = "") -> Any:
    for _, func, _ in _STRATEGIES[field_name]:
        value = _run(func, soup, code)
        if value:
            return value
    return None


def collect_images(soup: BeautifulSoup, code: str = "") -> list[str]:
    """Union of all image strategies, normalized, in first-discovery order."""
    seen: dict[str, None] = {}
    for name, func, fallback in _STRATEGIES["images"]:
        if fallback and seen:
            continue
        found = _run(func, soup, code) or []
        before = len(seen)
        for url in found:
            cleaned = normalize_image_url(url)
            if cleaned:
                seen.setdefault(cleaned, None)
        logger.debug(f"Image strategy {name} code={code} found={len(found)} new={len(seen) - before}")
    return list(seen)


def parse_document(document: Document) -> BeautifulSoup:
    if not isinstance(document.text, str) or not document.text.strip():
        raise ExtractionError(f"Empty document from {document.url}")
    try:
        return BeautifulSoup(document.text, "html.parser")
    except Exception as e:
        raise ExtractionError(f"Unparseable document from {document.url}: {e}") from e


def extract(document: Document, identifier_code: str) -> ScrapedProduct:
    """
    Extract a product from a fetched product page.

    Missing fields come back as None or empty values; only an unparseable
    document raises ExtractionError.
    """
    soup = parse_document(document)

    product = ScrapedProduct(
        title=first_non_empty("title", soup, identifier_code) or "",
        price=first_non_empty("price", soup, identifier_code),
        images=collect_images(soup, identifier_code),
        description=first_non_empty("description", soup, identifier_code),
        bullets=first_non_empty("bullets", soup, identifier_code) or [],
        brand=first_non_empty("brand", soup, identifier_code),
        upc=first_non_empty("upc", soup, identifier_code),
        dimensions=first_non_empty("dimensions", soup, identifier_code),
        weight=first_non_empty("weight", soup, identifier_code),
    )

    logger.info(
        f"Scraped product code={identifier_code} title={product.title[:50]!r} "
        f"price={product.price} images={len(product.images)}"
    )
    return product


# --- Search result recovery ---


def has_no_search_results(soup: BeautifulSoup) -> bool:
    """True when the page carries Amazon's dedicated no-results block."""
    for selector in (".s-no-results", "[data-component-type='s-no-results']"):
        element = soup.select_one(selector)
        if element and any(p in element.get_text(" ").lower() for p in NO_RESULTS_PHRASES):
            return True
    return False


def _is_sponsored(element) -> bool:
    if element.select_one(SPONSORED_SELECTORS):
        return True
    if "AdHolder" in (element.get("class") or []):
        return True
    return any("/sspa/click?" in (a.get("href") or "") for a in element.select("a[href]"))


def recover_asin(
    document: Document,
    is_valid: Callable[[str], bool] = is_plausible_asin,
    identifier_code: str = "",
) -> str | None:
    """
    Find the first organic result's ASIN on a search results page.

    Result tiles win over any no-results banner: a spell-corrected search
    says "No results for X" and still lists results for the correction.
    """
    soup = parse_document(document)

    for element in soup.select("[data-asin]"):
        candidate = (element.get("data-asin") or "").strip().upper()
        if not candidate or _is_sponsored(element):
            continue
        if is_valid(candidate):
            logger.info(f"Found ASIN from search code={identifier_code} asin={candidate}")
            return candidate

    for link in soup.select("h2 a.a-link-normal[href], a.a-link-normal[href*='/dp/']"):
        href = link.get("href") or ""
        if "/sspa/click?" in href:
            continue
        candidate = asin_from_url(href)
        if candidate and is_valid(candidate):
            logger.info(f"Found ASIN from product link code={identifier_code} asin={candidate}")
            return candidate

    if has_no_search_results(soup):
        logger.info(f"Search returned no results code={identifier_code}")
    else:
        logger.warning(f"No valid ASIN found in search results code={identifier_code}")
    return None
