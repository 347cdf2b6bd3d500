"""
eBay draft-listing CSV export.

Produces a file in the format of eBay's "draft listings" bulk upload
template from stored products and their images.
"""

import logging
from datetime import date
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_ID = "175837"
DEFAULT_PRICE = "9.99"
TITLE_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 500
MAX_BULLETS = 8

INFO_ROWS = [
    "#INFO,Version=0.0.2,Template= eBay-draft-listings-template_US,,,,,,,,",
    "#INFO Action and Category ID are required fields. 1) Set Action to Draft 2) Please find "
    "the category ID for your listings here: "
    "https://pages.ebay.com/sellerinformation/news/categorychanges.html,,,,,,,,,,",
    "\"#INFO After you've successfully uploaded your draft from the Seller Hub Reports tab, "
    'complete your drafts to active listings here: https://www.ebay.com/sh/lst/drafts",,,,,,,,,,',
    "#INFO,,,,,,,,,,",
]

HEADER = (
    "Action(SiteID=US|Country=US|Currency=USD|Version=1193|CC=UTF-8),Custom label (SKU),"
    "Category ID,Title,UPC,Price,Quantity,Item photo URL,Condition ID,Description,Format"
)

HTML_ESCAPES = [
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
]


def escape_csv_field(value: str | None) -> str:
    """Quote a field containing a comma, quote or newline; double inner quotes."""
    if not value:
        return ""
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def escape_html(text: str | None) -> str:
    if not text:
        return ""
    for char, entity in HTML_ESCAPES:
        text = text.replace(char, entity)
    return text


def build_html_description(product: dict[str, Any]) -> str:
    parts = ["<p>"]
    if product.get("brand"):
        parts.append(f"<strong>Brand:</strong> {escape_html(product['brand'])}<br>")
    parts.append("</p>")

    raw = product.get("raw_amazon_data") or {}
    bullets = raw.get("bullets") if isinstance(raw, dict) else None
    if isinstance(bullets, list):
        parts.append("<p><strong>Key Features:</strong></p>")
        parts.append("<ul>")
        for bullet in bullets[:MAX_BULLETS]:
            cleaned = escape_html(str(bullet).strip())
            if cleaned:
                parts.append(f"<li>{cleaned}</li>")
        parts.append("</ul>")

    if product.get("description"):
        cleaned = escape_html(product["description"][:DESCRIPTION_MAX_LENGTH])
        if cleaned:
            parts.append(f"<p>{cleaned}</p>")

    parts.append("<p><strong>Condition:</strong> Brand New, Factory Sealed</p>")
    parts.append("<p><strong>Shipping:</strong> Fast and secure shipping</p>")
    return "".join(parts)


def _format_price(price: float | None) -> str:
    # A zero price falls back to the default as well
    if not price:
        return DEFAULT_PRICE
    return f"{price:.2f}"


def build_row(product: dict[str, Any], images: list[dict[str, Any]]) -> str:
    product_images = sorted(
        (img for img in images if img.get("product_id") == product.get("id")),
        key=lambda img: img.get("position", 0),
    )
    # Pipe-joined URLs are written unquoted
    image_urls = "|".join(img["image_url"] for img in product_images)

    row = [
        "Draft",
        escape_csv_field(product.get("asin") or ""),
        product.get("category_id") or DEFAULT_CATEGORY_ID,
        escape_csv_field((product.get("title") or "")[:TITLE_MAX_LENGTH]),
        product.get("upc") or "",
        _format_price(product.get("ebay_price")),
        str(product.get("quantity") or 1),
        image_urls,
        "NEW",
        escape_csv_field(build_html_description(product)),
        "FixedPrice",
    ]
    return ",".join(row)


def generate_ebay_draft_csv(products: list[dict[str, Any]], images: list[dict[str, Any]]) -> str:
    """
    Render products as an eBay draft-listings CSV document.

    Args:
        products: Stored product rows (as returned by ProductStore.list_products)
        images: Stored image rows for those products

    Returns:
        The CSV text, newline separated, without a trailing newline
    """
    logger.info(f"Generating eBay draft CSV product_count={len(products)}")
    data_rows = [build_row(product, images) for product in products]
    csv_text = "\n".join([*INFO_ROWS, HEADER, *data_rows])
    logger.info(f"CSV generation complete product_count={len(products)} csv_length={len(csv_text)}")
    return csv_text


def export_filename(count: int, on: date | None = None) -> str:
    """``YYYY-MM-DD_{count}_drafts.csv``"""
    day = on or date.today()
    return f"{day.isoformat()}_{count}_drafts.csv"
