"""
Acquisition pipeline: one raw identifier in, one result variant out.

Classified -> Gated -> Fetching (search?, product) -> Extracted ->
ImagesAcquiring -> Done. A denial is terminal and not an error; any fetch
or parse failure ends in Failed. Nothing in here retries.
"""

import logging
from enum import Enum
from typing import Any, Callable

from listing_scraper.core.camouflage import ActionKind
from listing_scraper.core.context import AcquisitionContext
from listing_scraper.core.failure_classifier import (
    ExtractionError,
    FailureType,
    FetchError,
    ProductAlreadyExistsError,
)
from listing_scraper.core.identifiers import Identifier, Rejection, classify
from listing_scraper.core.local_storage.base import ImageSink, ProductSink
from listing_scraper.scrapers.amazon import extract, is_plausible_asin, recover_asin
from listing_scraper.scrapers.fetcher import Fetcher
from listing_scraper.scrapers.models.product import (
    ImageAcquisitionResult,
    ImageCounts,
    ScrapedProduct,
)
from listing_scraper.scrapers.models.results import (
    AcquisitionResult,
    AdmissionDenied,
    AlreadyExists,
    Failed,
    NotFound,
    RateLimited,
    Success,
)
from listing_scraper.utils.images.processing import ImageAcquirer

logger = logging.getLogger(__name__)

SKU_PREFIX = "AMZ-"


class PipelineStage(Enum):
    CLASSIFIED = "classified"
    GATED = "gated"
    FETCHING = "fetching"
    EXTRACTED = "extracted"
    IMAGES_ACQUIRING = "images_acquiring"
    DONE = "done"
    FAILED = "failed"


def derived_price(price: float | None, discount: float) -> float | None:
    """Listing price after the configured discount, rounded to cents."""
    if price is None:
        return None
    return round(price * (1 - discount), 2)


class AcquisitionPipeline:
    """
    Drives a single identifier through classification, admission, fetching,
    extraction and image acquisition, then hands the product to the sinks.

    Several pipelines may run concurrently as long as they share one
    AcquisitionContext.
    """

    def __init__(
        self,
        context: AcquisitionContext,
        product_sink: ProductSink,
        image_sink: ImageSink,
        fetcher: Fetcher | None = None,
        image_acquirer: ImageAcquirer | None = None,
        asin_validator: Callable[[str], bool] = is_plausible_asin,
    ):
        self.context = context
        self.product_sink = product_sink
        self.image_sink = image_sink
        self.fetcher = fetcher or Fetcher(context)
        self.image_acquirer = image_acquirer or ImageAcquirer(context)
        self.asin_validator = asin_validator

    def acquire(self, raw_input: str) -> AcquisitionResult:
        classified = classify(raw_input)
        if isinstance(classified, Rejection):
            logger.warning(f"Classification rejected input={raw_input!r}")
            return self._fail(classified.message, classified.reason)
        identifier = classified
        self._transition(PipelineStage.CLASSIFIED, identifier)

        if identifier.is_catalog_id:
            existing = self._find_existing(identifier.code)
            if existing:
                return existing

        # Allowing reserves a slot in the budget; it is held until the pages are fetched
        decision = self.context.admit()
        if not decision.allowed:
            logger.info(
                f"Admission denied code={identifier.code} reason={decision.reason.value} "
                f"wait_seconds={decision.wait_seconds}"
            )
            return AdmissionDenied(decision.reason, decision.wait_seconds)
        self._transition(PipelineStage.GATED, identifier)

        try:
            asin, outcome = self._fetch_pages(identifier)
        finally:
            self.context.release()
        if not isinstance(outcome, ScrapedProduct):
            return outcome
        product = outcome
        self._transition(PipelineStage.EXTRACTED, identifier)

        try:
            product_ref = self.product_sink.create_product(self._product_record(asin, product))
        except ProductAlreadyExistsError as e:
            logger.info(f"Product already exists asin={asin}")
            return AlreadyExists(e.existing_ref)
        except Exception as e:
            return self._persistence_failed(f"Could not save product {asin}", e)

        self._transition(PipelineStage.IMAGES_ACQUIRING, identifier)
        results = self.image_acquirer.acquire_all(asin, product.images)
        self._store_images(asin, product_ref, results)
        counts = ImageCounts.from_results(results)

        self._transition(PipelineStage.DONE, identifier)
        return Success(
            identifier=identifier,
            asin=asin,
            product=product,
            product_ref=product_ref,
            images=results,
            counts=counts,
        )

    def _fetch_pages(self, identifier: Identifier):
        """Search if needed, then fetch and extract the product page."""
        self._transition(PipelineStage.FETCHING, identifier)
        self.context.pause(ActionKind.PAGE_LOAD)
        self.context.pause_jitter()

        if identifier.is_catalog_id:
            asin = identifier.code
        else:
            outcome = self._search(identifier)
            if not isinstance(outcome, str):
                return None, outcome
            asin = outcome
            existing = self._find_existing(asin)
            if existing:
                return asin, existing

        return asin, self._fetch_product(identifier, asin)

    def _find_existing(self, asin: str) -> AcquisitionResult | None:
        try:
            existing = self.product_sink.find_existing(asin)
        except Exception as e:
            return self._persistence_failed(f"Could not look up product {asin}", e)
        if not existing:
            return None
        logger.info(f"Product already exists asin={asin}")
        return AlreadyExists(existing)

    def _search(self, identifier: Identifier):
        """Resolve a non-catalog identifier to an ASIN via the search page."""
        self.context.pause_typing(identifier.code)
        try:
            document = self.fetcher.fetch(self.fetcher.search_url(identifier.code))
        except FetchError as e:
            return self._fetch_failed(identifier, e)

        self.context.pause_reading("brief")
        try:
            asin = recover_asin(document, self.asin_validator, identifier.code)
        except ExtractionError as e:
            return self._fail(f"Could not parse search results: {e}", FailureType.PARSE_ERROR)

        if not asin:
            logger.info(f"No product found via search code={identifier.code}")
            return NotFound(identifier)
        return asin

    def _fetch_product(self, identifier: Identifier, asin: str):
        try:
            document = self.fetcher.fetch(self.fetcher.product_url(asin))
        except FetchError as e:
            return self._fetch_failed(identifier, e)

        self.context.pause_reading("detailed")
        self.context.pause_scrolling()
        try:
            product = extract(document, asin)
        except ExtractionError as e:
            self.context.record_error()
            return self._fail(f"Could not parse product page: {e}", FailureType.PARSE_ERROR)

        if not product.title:
            # A page without a title is almost always a captcha or block page
            self.context.record_error()
            return self._fail(
                f"Product title missing for {asin}, the page may be a captcha",
                FailureType.ELEMENT_MISSING,
            )

        self.context.record_success()
        return product

    def _fetch_failed(self, identifier: Identifier, error: FetchError) -> AcquisitionResult:
        wait_seconds = self.context.record_error(error.status_code)
        if error.failure_type == FailureType.PAGE_NOT_FOUND:
            self._transition(PipelineStage.FAILED, identifier)
            return NotFound(identifier)
        if error.failure_type == FailureType.RATE_LIMITED:
            self._transition(PipelineStage.FAILED, identifier)
            return RateLimited(wait_seconds)
        return self._fail(str(error), error.failure_type)

    def _product_record(self, asin: str, product: ScrapedProduct) -> dict[str, Any]:
        config = self.context.config
        record: dict[str, Any] = {
            "asin": asin,
            "sku": f"{SKU_PREFIX}{asin}",
            "title": product.title,
            "description": product.description,
            "brand": product.brand,
            "upc": product.upc,
            "amazon_price": product.price,
            "ebay_price": derived_price(product.price, config.price_discount),
            "quantity": config.default_quantity,
            "condition_id": "NEW",
            "format": "FixedPrice",
            "status": "INACTIVE",
            "raw_amazon_data": product.raw_data(),
        }
        if product.weight:
            record["weight_value"] = product.weight.value
            record["weight_unit"] = product.weight.unit
        if product.dimensions:
            record["length"] = product.dimensions.length
            record["width"] = product.dimensions.width
            record["height"] = product.dimensions.height
            record["dimension_unit"] = product.dimensions.unit
        return record

    def _store_images(
        self, asin: str, product_ref: dict[str, Any], results: list[ImageAcquisitionResult]
    ) -> None:
        for result in results:
            if not result.success:
                continue
            try:
                url = self.image_sink.put(asin, result.position, result.data, result.content_type)
                self.product_sink.attach_image(
                    product_ref["id"], result.position, url, result.storage_key
                )
                result.public_url = url
            except Exception as e:
                logger.error(
                    f"Failed to store image {result.position + 1} asin={asin}: {e}",
                    exc_info=True,
                )
            finally:
                result.data = None

    def _persistence_failed(self, reason: str, error: Exception) -> Failed:
        logger.error(f"{reason}: {error}", exc_info=True)
        return Failed(f"{reason}: {error}", FailureType.PERSISTENCE_ERROR)

    def _fail(self, reason: str, failure_type: FailureType) -> Failed:
        logger.warning(f"Acquisition failed failure={failure_type.value}: {reason}")
        return Failed(reason, failure_type)

    def _transition(self, stage: PipelineStage, identifier: Identifier) -> None:
        logger.debug(f"Pipeline stage={stage.value} kind={identifier.kind.value} code={identifier.code}")
