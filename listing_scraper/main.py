#!/usr/bin/env python3
"""
listing-scraper command-line entry point.

    listing-scraper classify CODE
    listing-scraper acquire CODE [CODE ...]
    listing-scraper export [--ids ID ...] [--out DIR]
    listing-scraper limits
"""

import argparse
import logging
import os
import sys
import time

from listing_scraper.core.context import AcquisitionContext
from listing_scraper.core.identifiers import Rejection, classify
from listing_scraper.core.local_storage import LocalImageStore, ProductStore
from listing_scraper.scrapers.models.config import AcquisitionConfig, StorageConfig
from listing_scraper.scrapers.models.results import AdmissionDenied, Failed, RateLimited
from listing_scraper.scrapers.pipeline import AcquisitionPipeline
from listing_scraper.utils.files.ebay_csv import export_filename, generate_ebay_draft_csv
from listing_scraper.utils.general.display import (
    display_acquisition_summary,
    display_classification,
    display_error,
    display_limits,
    display_result,
    display_stats,
    display_success,
)

LOG_FORMAT = "%(asctime)s [%(levelname)-5s] [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listing-scraper",
        description="Acquire Amazon product data and images for marketplace listings",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify_parser = subparsers.add_parser("classify", help="Classify a product code")
    classify_parser.add_argument("code", help="ASIN, FNSKU, UPC, EAN, SKU or catalog URL")

    acquire_parser = subparsers.add_parser("acquire", help="Acquire products by code")
    acquire_parser.add_argument("codes", nargs="+", help="Codes to acquire, in order")
    acquire_parser.add_argument(
        "--no-delays",
        action="store_true",
        help="Skip human-cadence pauses (testing only)",
    )

    export_parser = subparsers.add_parser("export", help="Export stored products as eBay drafts")
    export_parser.add_argument("--ids", nargs="*", help="Product ids to export (default: all)")
    export_parser.add_argument("--out", default=".", help="Output directory")

    subparsers.add_parser("limits", help="Show the configured request budget")
    return parser


def run_acquire(codes: list[str], no_delays: bool = False) -> int:
    overrides = {"simulate_human": False} if no_delays else {}
    config = AcquisitionConfig.from_env(**overrides)
    storage = StorageConfig.from_env()
    context = AcquisitionContext(config)
    store = ProductStore(storage.database_path)
    pipeline = AcquisitionPipeline(
        context, store, LocalImageStore(storage.image_dir, storage.public_base_url)
    )

    start_time = time.time()
    results = []
    try:
        for index, code in enumerate(codes, 1):
            result = pipeline.acquire(code)
            results.append(result)
            display_result(result, code, index, len(codes))
            if isinstance(result, (AdmissionDenied, RateLimited)):
                logger.info(f"Stopping batch, retry in {result.wait_seconds}s")
                break
    finally:
        store.close()

    display_acquisition_summary(results, start_time)
    display_stats(context.stats())
    return 1 if any(isinstance(r, Failed) for r in results) else 0


def run_export(ids: list[str] | None, out_dir: str) -> int:
    storage = StorageConfig.from_env()
    store = ProductStore(storage.database_path)
    try:
        products = store.list_products(ids or None)
        if not products:
            display_error("No products to export")
            return 1
        product_ids = [p["id"] for p in products]
        csv_text = generate_ebay_draft_csv(products, store.images_for(product_ids))

        os.makedirs(out_dir, exist_ok=True)
        path = os.path.join(out_dir, export_filename(len(products)))
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(csv_text)
        store.mark_exported(product_ids)
    finally:
        store.close()

    display_success(f"Exported {len(products)} products to {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    if args.command == "classify":
        classified = classify(args.code)
        display_classification(args.code, classified)
        return 1 if isinstance(classified, Rejection) else 0
    if args.command == "acquire":
        return run_acquire(args.codes, args.no_delays)
    if args.command == "export":
        return run_export(args.ids, args.out)
    if args.command == "limits":
        display_limits(AcquisitionConfig.from_env())
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
