"""
Record Upserter
===============

Builds the canonical record for a classified item and merges it into the
record store, keyed by the item's link.

Defaults applied when the description yields no dates:
- start date: the ingestion instant
- end date: the ingestion instant plus ``default_window_days``

An extracted window whose start date falls after its end date is
discarded and both defaults apply.

Status is derived from the record's dates on every write, so a re-ingested
item moves between upcoming/active/closed as time passes.
"""

import sqlite3
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..config.settings import SarkariFeedSettings, get_settings
from ..database.models import (
    AdmissionRecord,
    BilingualText,
    ContentKind,
    JobRecord,
    NormalizedRecord,
    ResultRecord,
    ResultType,
)
from ..ingestion.date_extractor import ExtractedDates
from ..ingestion.feed_parser import RawFeedItem
from ..storage.record_store import RecordStore, UpsertOutcome
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ItemSkipped, MergeError


DEFAULT_ORIGIN = "General"


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


class RecordUpserter:
    """Maps classified items to records and writes them to a store."""

    def __init__(self, store: RecordStore, settings: Optional[SarkariFeedSettings] = None):
        """Initialize record upserter.

        Args:
            store: Record store receiving the writes
            settings: Application settings (default: global settings)
        """
        settings = settings or get_settings()
        self.store = store
        self.default_window = timedelta(days=settings.ingestion.default_window_days)
        self.result_archive_days = settings.ingestion.result_archive_days
        self.logger = get_logger_for_component("record_upserter")

    def build_record(
        self,
        kind: ContentKind,
        item: RawFeedItem,
        dates: Optional[ExtractedDates] = None,
        now: Optional[datetime] = None,
    ) -> NormalizedRecord:
        """Build the record for ``item`` with defaults and derived status.

        Raises:
            ItemSkipped: If ``kind`` is ``ContentKind.UNKNOWN``
        """
        now = now or datetime.now(timezone.utc)
        dates = dates or ExtractedDates()

        origin = item.categories[0] if item.categories else DEFAULT_ORIGIN
        common = dict(
            external_key=item.link,
            title=BilingualText(en=item.title),
            description=BilingualText(en=item.description),
        )

        if kind is ContentKind.JOB:
            start, end = self._window(dates, now, item.link)
            record = JobRecord(department=origin, start_date=start, end_date=end, **common)
        elif kind is ContentKind.ADMISSION:
            start, end = self._window(dates, now, item.link)
            record = AdmissionRecord(institute=origin, start_date=start, end_date=end, **common)
        elif kind is ContentKind.RESULT:
            record = ResultRecord(
                organization=origin,
                result_type=ResultType.from_title(item.title),
                result_date=item.published_at or now,
                **common,
            )
        else:
            raise ItemSkipped(
                f"Item is not classifiable: {item.title}",
                reason=ItemSkipped.UNCLASSIFIED,
                external_key=item.link,
                title=item.title,
            )

        record.refresh_status(now, self.result_archive_days)
        return record

    def _window(self, dates: ExtractedDates, now: datetime, external_key: str):
        default_start, default_end = now, now + self.default_window

        if dates.start_date and dates.end_date and dates.start_date > dates.end_date:
            self.logger.warning(
                f"Discarding inverted application window for {external_key}: "
                f"start {dates.start_date} is after end {dates.end_date}",
                extra={"event": "dates_inverted", "external_key": external_key},
            )
            return default_start, default_end

        start = start_of_day(dates.start_date) if dates.start_date else default_start
        end = end_of_day(dates.end_date) if dates.end_date else default_end
        return start, end

    def merge(
        self,
        kind: ContentKind,
        item: RawFeedItem,
        dates: Optional[ExtractedDates] = None,
        now: Optional[datetime] = None,
    ) -> UpsertOutcome:
        """Create or replace the stored record for ``item``.

        Args:
            kind: Classification of the item
            item: Parsed feed item
            dates: Extracted application window, for jobs and admissions
            now: Ingestion instant (default: current time)

        Returns:
            Whether the record was inserted or updated

        Raises:
            ItemSkipped: If ``kind`` is ``ContentKind.UNKNOWN``
            MergeError: If the store write fails
        """
        record = self.build_record(kind, item, dates, now)

        try:
            outcome = self.store.upsert(kind, record.external_key, record)
        except (DatabaseError, sqlite3.Error) as e:
            raise MergeError(
                f"Failed to store {kind.value} record: {e}",
                external_key=record.external_key,
                kind=kind.value,
            ) from e

        self.logger.debug(
            f"Merged {kind.value} record ({outcome.value}): {record.external_key}"
        )
        return outcome
