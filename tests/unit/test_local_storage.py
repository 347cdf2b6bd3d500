"""
Unit tests for the SQLite product store and local image store.
"""

import pytest

from listing_scraper.core.failure_classifier import ProductAlreadyExistsError
from listing_scraper.core.local_storage import LocalImageStore, ProductStore


def product_record(asin="B08N5WRWNW", **overrides):
    record = {
        "asin": asin,
        "sku": f"AMZ-{asin}",
        "title": "Example Widget",
        "amazon_price": 19.99,
        "ebay_price": 14.99,
        "raw_amazon_data": {"bullets": ["Sturdy steel frame"]},
    }
    record.update(overrides)
    return record


@pytest.fixture
def store(tmp_path):
    product_store = ProductStore(str(tmp_path / "db" / "listings.db"))
    yield product_store
    product_store.close()


class TestProductStore:
    """Test create-if-absent persistence."""

    def test_create_and_find(self, store):
        ref = store.create_product(product_record())

        assert ref["asin"] == "B08N5WRWNW"
        assert store.find_existing("B08N5WRWNW") == {
            "id": ref["id"],
            "asin": "B08N5WRWNW",
            "title": "Example Widget",
        }
        assert store.find_existing("B000000001") is None

    def test_defaults_applied(self, store):
        ref = store.create_product(product_record())

        product = store.list_products([ref["id"]])[0]
        assert product["status"] == "INACTIVE"
        assert product["condition_id"] == "NEW"
        assert product["format"] == "FixedPrice"
        assert product["quantity"] == 1
        assert product["raw_amazon_data"] == {"bullets": ["Sturdy steel frame"]}
        assert product["exported_at"] is None

    def test_duplicate_asin_rejected_not_overwritten(self, store):
        first = store.create_product(product_record())

        with pytest.raises(ProductAlreadyExistsError) as exc_info:
            store.create_product(product_record(title="Other title"))

        assert exc_info.value.existing_ref["id"] == first["id"]
        assert len(store.list_products()) == 1
        assert store.list_products()[0]["title"] == "Example Widget"

    def test_images_ordered_by_position(self, store):
        ref = store.create_product(product_record())
        store.attach_image(ref["id"], 2, "https://cdn/3.jpeg", "B08N5WRWNW/3.jpeg")
        store.attach_image(ref["id"], 0, "https://cdn/1.jpeg", "B08N5WRWNW/1.jpeg")

        images = store.images_for([ref["id"]])

        assert [img["position"] for img in images] == [0, 2]
        assert images[0]["storage_path"] == "B08N5WRWNW/1.jpeg"
        assert store.images_for([]) == []

    def test_mark_exported(self, store):
        first = store.create_product(product_record())
        second = store.create_product(product_record("B07ORGANIC"))

        store.mark_exported([first["id"]])

        exported = {p["asin"]: p["exported_at"] for p in store.list_products()}
        assert exported["B08N5WRWNW"] is not None
        assert exported["B07ORGANIC"] is None
        assert [p["id"] for p in store.list_products([second["id"]])] == [second["id"]]

    def test_in_memory_database(self):
        store = ProductStore(":memory:")
        try:
            store.create_product(product_record())
            assert store.find_existing("B08N5WRWNW")
        finally:
            store.close()


class TestLocalImageStore:
    def test_put_writes_file_and_returns_url(self, tmp_path):
        image_store = LocalImageStore(str(tmp_path), "https://cdn.example.com/product-images/")

        url = image_store.put("B08N5WRWNW", 1, b"\xff\xd8data", "image/jpeg")

        assert url == "https://cdn.example.com/product-images/B08N5WRWNW/2.jpeg"
        assert (tmp_path / "B08N5WRWNW" / "2.jpeg").read_bytes() == b"\xff\xd8data"
        assert image_store.list_keys("B08N5WRWNW") == ["B08N5WRWNW/2.jpeg"]

    def test_put_overwrites(self, tmp_path):
        image_store = LocalImageStore(str(tmp_path))
        image_store.put("B08N5WRWNW", 0, b"old", "image/png")
        url = image_store.put("B08N5WRWNW", 0, b"new", "image/png")

        assert url.startswith("file://")
        assert (tmp_path / "B08N5WRWNW" / "1.png").read_bytes() == b"new"

    def test_list_keys_unknown_code(self, tmp_path):
        assert LocalImageStore(str(tmp_path)).list_keys("NOPE") == []
