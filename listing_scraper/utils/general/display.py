"""
Acquisition Display Utility

Console rendering of pipeline results, budget statistics and progress for
the command-line tool.
"""

import time
from typing import Any, Callable, Optional

from listing_scraper.core.identifiers import Identifier, Rejection
from listing_scraper.scrapers.models.config import AcquisitionConfig
from listing_scraper.scrapers.models.results import (
    AcquisitionResult,
    AdmissionDenied,
    AlreadyExists,
    Failed,
    NotFound,
    RateLimited,
    Success,
)


def display_result(
    result: AcquisitionResult,
    raw_input: str,
    index: Optional[int] = None,
    total: Optional[int] = None,
    log_callback: Optional[Callable[[str], None]] = None,
) -> None:
    """
    Display one acquisition result.

    Args:
        result: Result returned by AcquisitionPipeline.acquire
        raw_input: The code the user supplied
        index: Current item index (1-based) for progress display
        total: Total number of codes being acquired
        log_callback: Optional callback function for logging (defaults to print)
    """
    output = log_callback if log_callback else print
    progress = f"[{index}/{total}] " if index is not None and total is not None else ""

    if isinstance(result, Success):
        title = result.product.title
        if len(title) > 60:
            title = title[:57] + "..."
        output(f"📦 {progress}{raw_input} -> ASIN {result.asin}")
        output(f"   📝 Title: {title}")
        if result.product.brand:
            output(f"   🏷️  Brand: {result.product.brand}")
        price = f"${result.product.price:.2f}" if result.product.price is not None else "N/A"
        output(f"   💲 Price: {price}")
        counts = result.counts
        output(f"   🖼️  Images: {counts.succeeded}/{counts.attempted} downloaded, {counts.stored} stored")
        if counts.failed:
            output(f"   ⚠️  {counts.failed} image(s) failed")
    elif isinstance(result, AlreadyExists):
        output(f"♻️  {progress}{raw_input}: {result.message}")
    elif isinstance(result, (AdmissionDenied, RateLimited)):
        output(f"⏳ {progress}{raw_input}: {result.message}")
    elif isinstance(result, NotFound):
        output(f"🔍 {progress}{raw_input}: {result.message}")
    elif isinstance(result, Failed):
        output(f"❌ {progress}{raw_input}: {result.message} ({result.failure_type.value})")
    output("")


def display_classification(
    raw_input: str,
    classified: Identifier | Rejection,
    log_callback: Optional[Callable[[str], None]] = None,
) -> None:
    output = log_callback if log_callback else print
    if isinstance(classified, Rejection):
        output(f"❌ {classified.message}")
    else:
        output(f"✅ {raw_input!r} -> {classified.kind.value} {classified.code}")


def display_stats(stats: dict[str, Any], log_callback: Optional[Callable[[str], None]] = None) -> None:
    output = log_callback if log_callback else print
    output("📊 Request budget:")
    output(f"   ⏱️  This hour: {stats['hourly_count']}")
    output(f"   📅 Today: {stats['daily_count']}")
    output(f"   📈 Total: {stats['total_requests']} ({stats['error_count']} errors, {stats['error_rate']})")
    output(f"   🕵️  Identity: {stats['current_user_agent']}")


def display_limits(config: AcquisitionConfig, log_callback: Optional[Callable[[str], None]] = None) -> None:
    """Display the configured budget. Usage counters only live for one acquire run."""
    output = log_callback if log_callback else print
    output("⚙️  Request budget limits:")
    output(f"   ⏱️  Per hour: {config.hourly_limit} acquisitions")
    output(f"   🚨 Error-rate breaker: above {config.error_rate_threshold:.0%}, cooldown {config.error_cooldown_seconds}s")
    output(f"   🔄 Identity rotation: every {config.identity_rotation_seconds}s")
    output(f"   🐢 Human delays: {'on' if config.simulate_human else 'off'}")


def display_acquisition_summary(
    results: list[AcquisitionResult],
    start_time: float,
    log_callback: Optional[Callable[[str], None]] = None,
) -> None:
    """
    Display a summary of a batch of acquisitions.

    Args:
        results: Results in input order
        start_time: Time when the batch started (from time.time())
        log_callback: Optional callback function for logging (defaults to print)
    """
    output = log_callback if log_callback else print

    total_time = time.time() - start_time
    successful = [r for r in results if isinstance(r, Success)]
    existing = sum(1 for r in results if isinstance(r, AlreadyExists))
    waiting = [r for r in results if isinstance(r, (AdmissionDenied, RateLimited))]
    failed = len(results) - len(successful) - existing - len(waiting)

    output("📊 Acquisition Summary:")
    output(f"   ⏱️  Total time: {total_time:.1f} seconds")
    output(f"   ✅ Acquired: {len(successful)} products")
    if existing:
        output(f"   ♻️  Already stored: {existing}")
    if waiting:
        longest = max(r.wait_seconds for r in waiting)
        output(f"   ⏳ Deferred: {len(waiting)} (retry in {longest}s)")
    output(f"   ❌ Failed: {failed}")

    if successful:
        total_images = sum(r.counts.succeeded for r in successful)
        output(f"   🖼️  Total images: {total_images} (avg: {total_images / len(successful):.1f} per product)")
    output("")


def display_error(message: str, code: Optional[str] = None, log_callback: Optional[Callable[[str], None]] = None) -> None:
    output = log_callback if log_callback else print
    if code:
        output(f"❌ Error processing {code}: {message}")
    else:
        output(f"❌ Error: {message}")


def display_success(message: str, log_callback: Optional[Callable[[str], None]] = None) -> None:
    output = log_callback if log_callback else print
    output(f"✅ {message}")
