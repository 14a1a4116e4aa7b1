"""
SarkariFeed Ingestion Scheduler
===============================

Triggers ingestion runs on a fixed interval and on demand.

The scheduler is either idle or running a single pass. A trigger that
arrives while a run is active is skipped and counted, never queued, so
runs never overlap and a slow run cannot build up a backlog of ticks.

Features:
- Interval ticks with an optional immediate run at start
- Manual triggers sharing the same no-overlap guard
- Cooperative cancellation of the active run
"""

import asyncio
from enum import Enum
from typing import List, Optional, Set

from ..processing.pipeline import IngestionPipeline, RunSummary
from ..utils.logging import get_logger_for_component


class SchedulerState(str, Enum):
    """Scheduler lifecycle state."""
    IDLE = "idle"
    RUNNING = "running"


class IngestionScheduler:
    """Periodic, non-overlapping ingestion runner."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        feed_urls: Optional[List[str]] = None,
        interval_minutes: Optional[float] = None,
        run_on_start: Optional[bool] = None,
    ):
        """Initialize scheduler.

        Args:
            pipeline: Pipeline executing each run
            feed_urls: Feed sources (default from the pipeline's settings)
            interval_minutes: Minutes between ticks (default from config)
            run_on_start: Fire one run as soon as ``run_forever`` starts
        """
        ingestion = pipeline.settings.ingestion
        self.pipeline = pipeline
        self.feed_urls = list(feed_urls if feed_urls is not None else ingestion.feed_urls)
        self.interval_minutes = interval_minutes or ingestion.interval_minutes
        self.run_on_start = ingestion.run_on_start if run_on_start is None else run_on_start
        self.logger = get_logger_for_component("scheduler")

        self._lock = asyncio.Lock()
        self._state = SchedulerState.IDLE
        self._cancel_event: Optional[asyncio.Event] = None
        self._stop_event = asyncio.Event()
        self._tick_tasks: Set[asyncio.Task] = set()

        self.skipped_ticks = 0
        self.runs_completed = 0
        self.last_summary: Optional[RunSummary] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    async def trigger(self, reason: str = "manual") -> Optional[RunSummary]:
        """Run one ingestion pass unless one is already active.

        Args:
            reason: Why the run was requested, for logs

        Returns:
            The run summary, or None when the trigger was skipped or the run
            failed unexpectedly
        """
        if self._lock.locked():
            self.skipped_ticks += 1
            self.logger.warning(
                f"Skipping {reason} trigger: a run is already in progress",
                extra={
                    "event": "tick_skipped",
                    "reason": reason,
                    "skipped_ticks": self.skipped_ticks,
                },
            )
            return None

        async with self._lock:
            self._state = SchedulerState.RUNNING
            self._cancel_event = asyncio.Event()
            self.logger.info(f"Ingestion run triggered ({reason})", extra={"reason": reason})

            try:
                summary = await self.pipeline.run(self.feed_urls, cancel_event=self._cancel_event)
                self.last_summary = summary
                self.runs_completed += 1
                return summary

            except Exception as e:
                self.logger.error(
                    f"Ingestion run ({reason}) failed: {e}",
                    extra={"reason": reason, "error": str(e)},
                    exc_info=True,
                )
                return None

            finally:
                self._cancel_event = None
                self._state = SchedulerState.IDLE

    async def run_forever(self) -> None:
        """Fire ticks every ``interval_minutes`` until ``stop()`` is called."""
        self._stop_event.clear()
        interval_seconds = self.interval_minutes * 60

        self.logger.info(
            f"Scheduler started: {len(self.feed_urls)} feeds every {self.interval_minutes} minutes",
            extra={"interval_minutes": self.interval_minutes, "feed_count": len(self.feed_urls)},
        )

        if self.run_on_start:
            self._fire_tick("startup")

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                self._fire_tick("interval")

        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)

        self.logger.info(
            f"Scheduler stopped after {self.runs_completed} runs, {self.skipped_ticks} skipped ticks"
        )

    def _fire_tick(self, reason: str) -> None:
        # Ticks run in the background so an overlapping tick is observed and skipped
        task = asyncio.create_task(self.trigger(reason))
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    def request_cancel(self) -> bool:
        """Ask the active run to stop at its next item boundary.

        Returns:
            True if a run was active
        """
        if self._cancel_event is None:
            return False
        self._cancel_event.set()
        self.logger.info("Cancellation requested for active run")
        return True

    def stop(self) -> None:
        """Stop ticking and cancel the active run, if any."""
        self._stop_event.set()
        self.request_cancel()
