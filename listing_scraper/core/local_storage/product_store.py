"""
SQLite product store.

Holds acquired products and their image records, and serves the export
side (selecting products and marking them exported).
"""

import json
import logging
import os
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from listing_scraper.core.failure_classifier import ProductAlreadyExistsError
from listing_scraper.core.local_storage.base import ProductSink

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    asin TEXT NOT NULL UNIQUE,
    sku TEXT NOT NULL UNIQUE,
    upc TEXT,
    title TEXT NOT NULL,
    description TEXT,
    brand TEXT,
    category_id TEXT,
    amazon_price REAL,
    ebay_price REAL,
    quantity INTEGER DEFAULT 1,
    weight_value REAL,
    weight_unit TEXT,
    length REAL,
    width REAL,
    height REAL,
    dimension_unit TEXT,
    condition_id TEXT DEFAULT 'NEW',
    format TEXT DEFAULT 'FixedPrice',
    status TEXT NOT NULL DEFAULT 'INACTIVE' CHECK (status IN ('INACTIVE', 'POSTED', 'SOLD')),
    raw_amazon_data TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    exported_at TEXT,
    posted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_products_status ON products(status);
CREATE TABLE IF NOT EXISTS product_images (
    id TEXT PRIMARY KEY,
    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    image_url TEXT NOT NULL,
    storage_path TEXT NOT NULL,
    position INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_product_images_position ON product_images(product_id, position);
"""

PRODUCT_COLUMNS = [
    "asin",
    "sku",
    "upc",
    "title",
    "description",
    "brand",
    "category_id",
    "amazon_price",
    "ebay_price",
    "quantity",
    "weight_value",
    "weight_unit",
    "length",
    "width",
    "height",
    "dimension_unit",
    "condition_id",
    "format",
    "status",
    "raw_amazon_data",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProductStore(ProductSink):
    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)
        self._lock = threading.Lock()

    def close(self):
        self.conn.close()

    def find_existing(self, asin: str) -> dict[str, Any] | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT id, asin, title FROM products WHERE asin = ?", (asin,)
            ).fetchone()
        return dict(row) if row else None

    def create_product(self, record: dict[str, Any]) -> dict[str, Any]:
        values = {column: record.get(column) for column in PRODUCT_COLUMNS}
        values["quantity"] = values["quantity"] if values["quantity"] is not None else 1
        values["condition_id"] = values["condition_id"] or "NEW"
        values["format"] = values["format"] or "FixedPrice"
        values["status"] = values["status"] or "INACTIVE"
        if isinstance(values["raw_amazon_data"], dict):
            values["raw_amazon_data"] = json.dumps(values["raw_amazon_data"])

        product_id = str(uuid.uuid4())
        timestamp = _now()
        columns = ["id", *PRODUCT_COLUMNS, "created_at", "updated_at"]
        params = [product_id, *(values[c] for c in PRODUCT_COLUMNS), timestamp, timestamp]

        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        f"INSERT INTO products ({', '.join(columns)}) "
                        f"VALUES ({', '.join('?' for _ in columns)})",
                        params,
                    )
            except sqlite3.IntegrityError as e:
                existing = self.conn.execute(
                    "SELECT id, asin, title FROM products WHERE asin = ?", (values["asin"],)
                ).fetchone()
                if existing:
                    raise ProductAlreadyExistsError(dict(existing)) from e
                raise

        logger.info(f"Product created asin={values['asin']} id={product_id}")
        return {"id": product_id, "asin": values["asin"], "title": values["title"]}

    def attach_image(
        self, product_id: str, position: int, image_url: str, storage_path: str
    ) -> dict[str, Any]:
        record = {
            "id": str(uuid.uuid4()),
            "product_id": product_id,
            "image_url": image_url,
            "storage_path": storage_path,
            "position": position,
            "created_at": _now(),
        }
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT INTO product_images (id, product_id, image_url, storage_path, position, "
                "created_at) VALUES (:id, :product_id, :image_url, :storage_path, :position, "
                ":created_at)",
                record,
            )
        return record

    def list_products(self, product_ids: list[str] | None = None) -> list[dict[str, Any]]:
        """Products in creation order, optionally restricted to ``product_ids``."""
        query = "SELECT * FROM products"
        params: list[Any] = []
        if product_ids:
            query += f" WHERE id IN ({', '.join('?' for _ in product_ids)})"
            params = list(product_ids)
        query += " ORDER BY created_at ASC"
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        products = []
        for row in rows:
            product = dict(row)
            if product.get("raw_amazon_data"):
                product["raw_amazon_data"] = json.loads(product["raw_amazon_data"])
            products.append(product)
        return products

    def images_for(self, product_ids: list[str]) -> list[dict[str, Any]]:
        if not product_ids:
            return []
        placeholders = ", ".join("?" for _ in product_ids)
        with self._lock:
            rows = self.conn.execute(
                f"SELECT * FROM product_images WHERE product_id IN ({placeholders}) "
                "ORDER BY position ASC",
                list(product_ids),
            ).fetchall()
        return [dict(row) for row in rows]

    def mark_exported(self, product_ids: list[str]) -> None:
        if not product_ids:
            return
        placeholders = ", ".join("?" for _ in product_ids)
        timestamp = _now()
        with self._lock, self.conn:
            self.conn.execute(
                f"UPDATE products SET exported_at = ?, updated_at = ? WHERE id IN ({placeholders})",
                [timestamp, timestamp, *product_ids],
            )
