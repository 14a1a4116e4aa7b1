"""
Ingestion Pipeline Integration Tests
====================================

Full runs (fetch -> parse -> classify -> extract -> upsert) against a real
SQLite record store, with canned feed payloads instead of the network.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from sarkarifeed.database.models import ContentKind, OpeningStatus, ResultType
from sarkarifeed.ingestion.feed_parser import FeedParser
from sarkarifeed.processing.pipeline import IngestionPipeline
from sarkarifeed.utils.exceptions import ErrorCode, FetchError, ItemSkipped

from conftest import SAMPLE_RSS_FEED, MALFORMED_ENTRY_RSS_FEED, NOT_A_FEED


FEED_A = "https://feeds.example.gov.in/a.xml"
FEED_B = "https://feeds.example.gov.in/b.xml"

pytestmark = pytest.mark.integration


def network_error(url):
    return FetchError("Network error: connection refused", feed_url=url)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def build_pipeline(record_store, test_settings, fake_fetcher_factory, clock):
    def _build(responses, store=None, parser=None):
        fetcher = fake_fetcher_factory(responses)
        pipeline = IngestionPipeline(
            store or record_store,
            settings=test_settings,
            fetcher=fetcher,
            parser=parser,
            clock=clock,
        )
        return pipeline, fetcher

    return _build


class TestIngestionRun:
    """End-to-end behaviour of a single run."""

    @pytest.mark.asyncio
    async def test_records_merged_by_kind(self, build_pipeline, record_store, fixed_now):
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]})

        summary = await pipeline.run([FEED_A])

        assert summary.inserted == 3
        assert summary.skipped == 1
        assert summary.feeds[0].skip_reasons == {ItemSkipped.UNCLASSIFIED: 1}
        assert record_store.count(ContentKind.JOB) == 1
        assert record_store.count(ContentKind.RESULT) == 1
        assert record_store.count(ContentKind.ADMISSION) == 1

        job = record_store.get(ContentKind.JOB, "https://example.gov.in/ssc-cgl-2024")
        assert job.start_date == datetime(2024, 8, 1, tzinfo=timezone.utc)
        assert job.end_date == datetime(2024, 8, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert job.status is OpeningStatus.ACTIVE
        assert job.department == "Staff Selection Commission"

        result = record_store.get(ContentKind.RESULT, "https://example.gov.in/upsc-prelims-result")
        assert result.result_date == datetime(2024, 7, 31, 9, 0, tzinfo=timezone.utc)
        assert result.result_type is ResultType.RESULT
        assert result.exam_date is None

        admission = record_store.get(ContentKind.ADMISSION, "https://example.gov.in/du-admission")
        assert admission.status is OpeningStatus.UPCOMING
        assert admission.institute == "General"

    @pytest.mark.asyncio
    async def test_unclassified_item_never_reaches_store(self, build_pipeline, record_store):
        spy_store = MagicMock(wraps=record_store)
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]}, store=spy_store)

        await pipeline.run([FEED_A])

        stored_keys = [call.args[1] for call in spy_store.upsert.call_args_list]
        assert "https://example.gov.in/newsletter" not in stored_keys
        assert len(stored_keys) == 3

    @pytest.mark.asyncio
    async def test_failed_feed_does_not_affect_other_feed(self, build_pipeline, record_store):
        pipeline, _ = build_pipeline({
            FEED_A: [network_error(FEED_A)],
            FEED_B: [SAMPLE_RSS_FEED],
        })

        summary = await pipeline.run([FEED_A, FEED_B])

        feed_a, feed_b = summary.feeds
        assert feed_a.feed_url == FEED_A
        assert feed_a.error_kind == "fetch"
        assert not feed_a.fetch_ok
        assert feed_b.fetch_ok
        assert feed_b.inserted == 3
        assert summary.feeds_failed == 1
        assert not summary.all_feeds_failed
        assert record_store.count(ContentKind.JOB) == 1

    @pytest.mark.asyncio
    async def test_parse_failure_contained_to_feed(self, build_pipeline):
        pipeline, _ = build_pipeline({FEED_A: [NOT_A_FEED], FEED_B: [SAMPLE_RSS_FEED]})

        summary = await pipeline.run([FEED_A, FEED_B])

        assert summary.feeds[0].error_kind == "parse"
        assert summary.feeds[0].fetch_ok
        assert summary.feeds[1].inserted == 3

    @pytest.mark.asyncio
    async def test_all_feeds_failed(self, build_pipeline):
        pipeline, _ = build_pipeline({
            FEED_A: [network_error(FEED_A)],
            FEED_B: [network_error(FEED_B)],
        })

        summary = await pipeline.run([FEED_A, FEED_B])

        assert summary.all_feeds_failed
        assert summary.merged == 0

    @pytest.mark.asyncio
    async def test_empty_run_logged_separately_from_completion(self, build_pipeline, caplog):
        pipeline, _ = build_pipeline({
            FEED_A: [network_error(FEED_A)],
            FEED_B: [network_error(FEED_B)],
        })

        with caplog.at_level(logging.INFO, logger="sarkarifeed"):
            await pipeline.run([FEED_A, FEED_B])

        events = [getattr(r, "event", None) for r in caplog.records]
        assert events.count("run_completed") == 1
        assert events.count("run_empty") == 1
        empty = next(r for r in caplog.records if getattr(r, "event", None) == "run_empty")
        assert empty.levelno == logging.WARNING
        assert empty.feeds_failed == 2

    @pytest.mark.asyncio
    async def test_productive_run_not_flagged_empty(self, build_pipeline, caplog):
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]})

        with caplog.at_level(logging.INFO, logger="sarkarifeed"):
            await pipeline.run([FEED_A])

        events = [getattr(r, "event", None) for r in caplog.records]
        assert "run_empty" not in events
        assert events.count("run_completed") == 1

    @pytest.mark.asyncio
    async def test_fetch_duration_recorded(self, build_pipeline):
        pipeline, _ = build_pipeline({
            FEED_A: [SAMPLE_RSS_FEED],
            FEED_B: [network_error(FEED_B)],
        })

        summary = await pipeline.run([FEED_A, FEED_B])

        assert summary.feeds[0].fetch_seconds is not None
        assert summary.feeds[0].fetch_seconds >= 0
        assert summary.feeds[1].failed
        assert summary.feeds[1].fetch_seconds is not None

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, build_pipeline, record_store):
        pipeline, _ = build_pipeline({FEED_A: [MALFORMED_ENTRY_RSS_FEED]})

        summary = await pipeline.run([FEED_A])
        feed = summary.feeds[0]

        assert feed.items_seen == 3
        assert feed.inserted == 1
        assert feed.skip_reasons == {ItemSkipped.MALFORMED: 2}
        assert record_store.get(ContentKind.JOB, "https://example.gov.in/rrb-group-d") is not None

    @pytest.mark.asyncio
    async def test_no_feeds(self, build_pipeline):
        pipeline, fetcher = build_pipeline({})

        summary = await pipeline.run([])

        assert summary.feeds == []
        assert not summary.all_feeds_failed
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_summary_timing_and_identity(self, build_pipeline, fixed_now):
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]})

        first = await pipeline.run([FEED_A])
        second = await pipeline.run([FEED_A])

        assert first.run_id != second.run_id
        assert first.started_at == fixed_now
        assert first.finished_at == fixed_now
        assert first.to_dict()["inserted"] == 3


class TestIdempotence:
    """Re-ingesting the same feed."""

    @pytest.mark.asyncio
    async def test_second_run_updates_without_duplicates(self, build_pipeline, record_store):
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]})

        first = await pipeline.run([FEED_A])
        job_after_first = record_store.get(ContentKind.JOB, "https://example.gov.in/ssc-cgl-2024")
        second = await pipeline.run([FEED_A])
        job_after_second = record_store.get(ContentKind.JOB, "https://example.gov.in/ssc-cgl-2024")

        assert first.inserted == 3 and first.updated == 0
        assert second.inserted == 0 and second.updated == 3
        assert job_after_second == job_after_first
        assert record_store.count(ContentKind.JOB) == 1
        assert record_store.count(ContentKind.RESULT) == 1
        assert record_store.count(ContentKind.ADMISSION) == 1

    @pytest.mark.asyncio
    async def test_status_recomputed_on_later_run(
        self, record_store, test_settings, fake_fetcher_factory, fixed_now
    ):
        instants = iter([fixed_now, fixed_now, fixed_now + timedelta(days=20), fixed_now + timedelta(days=20)])
        pipeline = IngestionPipeline(
            record_store,
            settings=test_settings,
            fetcher=fake_fetcher_factory({FEED_A: [SAMPLE_RSS_FEED]}),
            clock=lambda: next(instants),
        )
        key = "https://example.gov.in/ssc-cgl-2024"

        await pipeline.run([FEED_A])
        assert record_store.get(ContentKind.JOB, key).status is OpeningStatus.ACTIVE

        await pipeline.run([FEED_A])
        assert record_store.get(ContentKind.JOB, key).status is OpeningStatus.CLOSED


class TestRetries:
    """Scheduler-level fetch retry policy."""

    @pytest.mark.asyncio
    async def test_transient_fetch_error_retried(self, build_pipeline):
        pipeline, fetcher = build_pipeline({FEED_A: [network_error(FEED_A), SAMPLE_RSS_FEED]})

        summary = await pipeline.run([FEED_A])

        assert fetcher.calls == [FEED_A, FEED_A]
        assert summary.feeds[0].attempts == 2
        assert summary.feeds[0].inserted == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, build_pipeline):
        pipeline, fetcher = build_pipeline({FEED_A: [network_error(FEED_A)]})

        summary = await pipeline.run([FEED_A])

        # one attempt plus fetch_retries=1
        assert len(fetcher.calls) == 2
        assert summary.feeds[0].error_kind == "fetch"

    @pytest.mark.asyncio
    async def test_not_found_not_retried(self, build_pipeline):
        not_found = FetchError(
            "HTTP 404: Not Found",
            feed_url=FEED_A,
            error_code=ErrorCode.FEED_NOT_FOUND,
            recoverable=False,
        )
        pipeline, fetcher = build_pipeline({FEED_A: [not_found]})

        summary = await pipeline.run([FEED_A])

        assert fetcher.calls == [FEED_A]
        assert summary.feeds[0].attempts == 1


class TestMergeFailures:

    @pytest.mark.asyncio
    async def test_store_failure_contained_to_item(self, build_pipeline, record_store):
        from sarkarifeed.utils.exceptions import DatabaseError

        real_upsert = record_store.upsert

        def flaky_upsert(kind, external_key, record):
            if kind is ContentKind.RESULT:
                raise DatabaseError("disk I/O error")
            return real_upsert(kind, external_key, record)

        spy_store = MagicMock(wraps=record_store)
        spy_store.upsert.side_effect = flaky_upsert
        pipeline, _ = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]}, store=spy_store)

        summary = await pipeline.run([FEED_A])

        assert summary.merge_failures == 1
        assert summary.inserted == 2
        assert record_store.count(ContentKind.RESULT) == 0
        assert record_store.count(ContentKind.ADMISSION) == 1


class CancellingParser(FeedParser):
    """Sets the cancel event as soon as the first item is handed out."""

    def __init__(self, cancel_event: asyncio.Event):
        super().__init__()
        self.cancel_event = cancel_event

    def parse(self, payload, feed_url="", on_skip=None):
        items = super().parse(payload, feed_url=feed_url, on_skip=on_skip)

        def cancelling():
            for item in items:
                self.cancel_event.set()
                yield item

        return cancelling()


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_stops_between_items(self, build_pipeline, record_store):
        cancel_event = asyncio.Event()
        pipeline, _ = build_pipeline(
            {FEED_A: [SAMPLE_RSS_FEED]}, parser=CancellingParser(cancel_event)
        )

        summary = await pipeline.run([FEED_A], cancel_event=cancel_event)

        assert summary.cancelled
        assert summary.feeds[0].cancelled
        assert summary.inserted == 1
        # Already-merged work is kept
        assert record_store.count(ContentKind.JOB) == 1
        assert record_store.count(ContentKind.RESULT) == 0

    @pytest.mark.asyncio
    async def test_cancel_before_start_skips_feeds(self, build_pipeline):
        cancel_event = asyncio.Event()
        cancel_event.set()
        pipeline, fetcher = build_pipeline({FEED_A: [SAMPLE_RSS_FEED]})

        summary = await pipeline.run([FEED_A], cancel_event=cancel_event)

        assert summary.cancelled
        assert fetcher.calls == []
        assert summary.merged == 0
