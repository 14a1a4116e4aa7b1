"""
Ingestion Pipeline Orchestrator
===============================

Runs one ingestion pass over a list of feed sources:

    fetch -> parse -> classify -> extract dates -> upsert

Feeds are processed concurrently up to ``ingestion.parallel_feeds``; items
inside a feed are handled one at a time in document order. A failure is
contained to the feed or item that produced it and counted in the run
summary. Cancellation is cooperative and checked after every item, so a
cancelled run keeps everything it already merged.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from ..config.settings import SarkariFeedSettings, get_settings
from ..database.models import ContentKind
from ..ingestion.classifier import classify
from ..ingestion.date_extractor import extract_dates
from ..ingestion.feed_parser import FeedParser, RawFeedItem
from ..storage.record_store import RecordStore, UpsertOutcome
from ..utils.logging import LoggerAdapter, PerformanceLogger, get_logger_for_component
from ..utils.exceptions import (
    FetchError,
    ItemSkipped,
    MergeError,
    ParseError,
    is_retryable_error,
)

from .feed_fetcher import FeedFetcher
from .record_upserter import RecordUpserter


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FeedRunResult:
    """Outcome of one feed within a run."""

    feed_url: str
    fetch_ok: bool = False
    error_kind: Optional[str] = None  # "fetch", "parse" or "internal"
    error: Optional[str] = None
    attempts: int = 0
    fetch_seconds: Optional[float] = None
    items_seen: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    merge_failures: int = 0
    skip_reasons: Dict[str, int] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def merged(self) -> int:
        return self.inserted + self.updated

    @property
    def failed(self) -> bool:
        return self.error_kind is not None

    def record_skip(self, reason: str) -> None:
        self.skipped += 1
        self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + 1

    def record_outcome(self, outcome: UpsertOutcome) -> None:
        if outcome is UpsertOutcome.INSERTED:
            self.inserted += 1
        else:
            self.updated += 1


@dataclass
class RunSummary:
    """Aggregate statistics for one ingestion run."""

    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    feeds: List[FeedRunResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def feeds_total(self) -> int:
        return len(self.feeds)

    @property
    def feeds_failed(self) -> int:
        return sum(1 for feed in self.feeds if feed.failed)

    @property
    def feeds_succeeded(self) -> int:
        return sum(1 for feed in self.feeds if feed.fetch_ok and not feed.failed)

    @property
    def all_feeds_failed(self) -> bool:
        return bool(self.feeds) and self.feeds_failed == len(self.feeds)

    @property
    def items_seen(self) -> int:
        return sum(feed.items_seen for feed in self.feeds)

    @property
    def inserted(self) -> int:
        return sum(feed.inserted for feed in self.feeds)

    @property
    def updated(self) -> int:
        return sum(feed.updated for feed in self.feeds)

    @property
    def merged(self) -> int:
        return self.inserted + self.updated

    @property
    def skipped(self) -> int:
        return sum(feed.skipped for feed in self.feeds)

    @property
    def merge_failures(self) -> int:
        return sum(feed.merge_failures for feed in self.feeds)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Flat statistics for logging."""
        return {
            "run_id": self.run_id,
            "feeds_total": self.feeds_total,
            "feeds_failed": self.feeds_failed,
            "items_seen": self.items_seen,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "merge_failures": self.merge_failures,
            "cancelled": self.cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class IngestionPipeline:
    """Complete ingestion pass orchestrator."""

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[SarkariFeedSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        upserter: Optional[RecordUpserter] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize ingestion pipeline.

        Args:
            store: Record store receiving merged records
            settings: Application settings (default: global settings)
            fetcher: Feed fetcher (default: built from settings)
            parser: Feed parser
            upserter: Record upserter (default: writes to ``store``)
            clock: Source of the ingestion instant, for tests
        """
        self.settings = settings or get_settings()
        self.store = store
        self.fetcher = fetcher or FeedFetcher(settings=self.settings)
        self.parser = parser or FeedParser()
        self.upserter = upserter or RecordUpserter(store, settings=self.settings)
        self.clock = clock or utc_now

        ingestion = self.settings.ingestion
        self.parallel_feeds = ingestion.parallel_feeds
        self.fetch_retries = ingestion.fetch_retries
        self.retry_backoff_seconds = ingestion.retry_backoff_seconds

        self.logger = get_logger_for_component("pipeline")

    async def run(
        self, feed_urls: List[str], cancel_event: Optional[asyncio.Event] = None
    ) -> RunSummary:
        """Run one ingestion pass.

        Args:
            feed_urls: Feed sources, in configured order
            cancel_event: Set to stop the run at the next item boundary

        Returns:
            RunSummary with per-feed results in ``feed_urls`` order
        """
        now = self.clock()
        summary = RunSummary(run_id=uuid.uuid4().hex[:12], started_at=now)
        logger = self.logger.bind(run_id=summary.run_id)

        logger.info(
            f"Starting ingestion run over {len(feed_urls)} feeds",
            extra={"event": "run_started", "feed_count": len(feed_urls)},
        )

        if feed_urls:
            async with self.fetcher.get_session() as session:
                semaphore = asyncio.Semaphore(self.parallel_feeds)

                async def process_with_semaphore(url: str) -> FeedRunResult:
                    async with semaphore:
                        if cancel_event is not None and cancel_event.is_set():
                            return FeedRunResult(feed_url=url, cancelled=True)
                        return await self._process_feed(url, session, now, cancel_event, logger)

                tasks = [process_with_semaphore(url) for url in feed_urls]
                results = await asyncio.gather(*tasks, return_exceptions=True)

            for url, result in zip(feed_urls, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.error(
                        f"Unexpected error processing feed {url}: {result}",
                        exc_info=result,
                        extra={"event": "fetch_failed", "feed_url": url},
                    )
                    result = FeedRunResult(
                        feed_url=url, error_kind="internal", error=str(result)
                    )
                summary.feeds.append(result)

        summary.cancelled = cancel_event is not None and cancel_event.is_set()
        summary.finished_at = self.clock()

        if summary.cancelled:
            logger.warning(
                f"Ingestion run cancelled after merging {summary.merged} records",
                extra={"event": "run_cancelled", **summary.to_dict()},
            )
        else:
            logger.info(
                f"Ingestion run completed: {summary.merged} merged "
                f"({summary.inserted} new, {summary.updated} updated), "
                f"{summary.skipped} skipped, {summary.merge_failures} merge failures, "
                f"{summary.feeds_failed}/{summary.feeds_total} feeds failed "
                f"in {summary.duration_seconds:.2f}s",
                extra={"event": "run_completed", **summary.to_dict()},
            )

        if summary.merged == 0 and feed_urls:
            logger.warning(
                "Ingestion run merged no records",
                extra={"event": "run_empty", "feeds_failed": summary.feeds_failed},
            )

        return summary

    async def _process_feed(
        self,
        feed_url: str,
        session: aiohttp.ClientSession,
        now: datetime,
        cancel_event: Optional[asyncio.Event],
        run_logger: LoggerAdapter,
    ) -> FeedRunResult:
        result = FeedRunResult(feed_url=feed_url)
        logger = run_logger.bind(feed_url=feed_url)

        fetch_timer = PerformanceLogger(logger, f"fetch of {feed_url}", event="feed_fetch")
        try:
            with fetch_timer:
                payload = await self._fetch_with_retry(feed_url, session, result, logger)
        except FetchError as e:
            result.fetch_seconds = fetch_timer.duration
            result.error_kind = "fetch"
            result.error = e.message
            logger.error(
                f"Feed fetch failed for {feed_url} after {result.attempts} attempt(s): {e.message}",
                extra={
                    "event": "fetch_failed",
                    "error_code": e.error_code.value if e.error_code else None,
                    "attempts": result.attempts,
                },
            )
            return result

        result.fetch_ok = True
        result.fetch_seconds = fetch_timer.duration

        def on_skip(skipped: ItemSkipped) -> None:
            result.items_seen += 1
            result.record_skip(skipped.reason)

        try:
            items = self.parser.parse(payload, feed_url=feed_url, on_skip=on_skip)
        except ParseError as e:
            result.error_kind = "parse"
            result.error = e.message
            logger.error(
                f"Feed parse failed for {feed_url}: {e.message}",
                extra={"event": "parse_failed"},
            )
            return result

        for item in items:
            result.items_seen += 1
            await self._process_item(item, now, result, logger)

            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break

        logger.info(
            f"Feed {feed_url}: {result.items_seen} items, {result.inserted} new, "
            f"{result.updated} updated, {result.skipped} skipped, "
            f"{result.merge_failures} merge failures",
            extra={
                "event": "feed_completed",
                "fetch_seconds": result.fetch_seconds,
                "items_seen": result.items_seen,
                "inserted": result.inserted,
                "updated": result.updated,
                "skipped": result.skipped,
                "merge_failures": result.merge_failures,
                "cancelled": result.cancelled,
            },
        )
        return result

    async def _fetch_with_retry(
        self,
        feed_url: str,
        session: aiohttp.ClientSession,
        result: FeedRunResult,
        logger: LoggerAdapter,
    ) -> bytes:
        """Fetch with exponential backoff on retryable transport errors."""
        attempt = 0
        while True:
            result.attempts += 1
            try:
                return await self.fetcher.fetch(feed_url, session)
            except FetchError as e:
                if attempt >= self.fetch_retries or not is_retryable_error(e):
                    raise

                delay = self.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    f"Fetch attempt {attempt + 1} failed for {feed_url}: {e.message}; "
                    f"retrying in {delay:.1f}s",
                    extra={"attempt": attempt + 1},
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _process_item(
        self,
        item: RawFeedItem,
        now: datetime,
        result: FeedRunResult,
        logger: LoggerAdapter,
    ) -> None:
        kind = classify(item.title, item.categories)

        if kind is ContentKind.UNKNOWN:
            result.record_skip(ItemSkipped.UNCLASSIFIED)
            logger.info(
                f"Skipping unclassified item: {item.title}",
                extra={
                    "event": "item_skipped",
                    "reason": ItemSkipped.UNCLASSIFIED,
                    "external_key": item.link,
                },
            )
            return

        dates = extract_dates(item.description) if kind.needs_dates else None

        try:
            outcome = await asyncio.to_thread(self.upserter.merge, kind, item, dates, now)
        except MergeError as e:
            result.merge_failures += 1
            logger.error(
                f"Failed to merge {kind.value} item {e.external_key}: {e.message}",
                extra={
                    "event": "merge_failed",
                    "external_key": e.external_key,
                    "kind": kind.value,
                },
            )
            return
        except Exception as e:
            result.merge_failures += 1
            logger.error(
                f"Unexpected error merging {kind.value} item {item.link}: {e}",
                exc_info=True,
                extra={
                    "event": "merge_failed",
                    "external_key": item.link,
                    "kind": kind.value,
                },
            )
            return

        result.record_outcome(outcome)
        logger.info(
            f"Merged {kind.value} item ({outcome.value}): {item.title}",
            extra={
                "event": "item_merged",
                "external_key": item.link,
                "kind": kind.value,
                "outcome": outcome.value,
            },
        )
