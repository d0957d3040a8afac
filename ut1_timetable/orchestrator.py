"""
Scrape several consecutive weeks of the planning in parallel and merge them.

One setup session reads the grid container; its size is then reused for
every week of the run. Each week gets its own page session on a bounded
thread pool. Week failures are logged and reported, never raised; only a
missing container aborts the run.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .errors import ContainerUnavailable
from .grid_geometry import GridContainer, monday_anchor
from .models import CalendarEvent, OutcomeStatus, ScrapeReport, WeekOutcome, WeekTarget
from .week_scrape import WeekScrapeWorker

logger = logging.getLogger(__name__)


def week_targets(anchor: datetime, week_count: int) -> List[WeekTarget]:
    """
    Targets for the ``week_count`` weeks starting with the anchor's week.

    ISO numbers are read from the calendar, so they wrap from 52 (or 53) to 1.
    """
    return [
        WeekTarget(iso_week=(anchor + timedelta(weeks=offset)).isocalendar()[1], offset=offset)
        for offset in range(week_count)
    ]


class ScrapeOrchestrator:
    """
    :param page_factory: zero-argument callable returning a page accessor
        context manager, opened on the planning of the current week.
    :param max_workers: upper bound on concurrent page sessions.
    :param join_timeout: seconds to wait for all weeks; weeks still running
        afterwards are reported as failed. ``None`` waits forever.
    """

    def __init__(
        self,
        page_factory: Callable,
        max_workers: int = 4,
        join_timeout: Optional[float] = None,
    ):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.page_factory = page_factory
        self.max_workers = max_workers
        self.join_timeout = join_timeout

    def read_container(self) -> GridContainer:
        try:
            with self.page_factory() as page:
                return page.get_container_dimensions()
        except ContainerUnavailable:
            raise
        except Exception as e:
            raise ContainerUnavailable(f"Cannot open the planning to read its grid: {e}") from e

    def _scrape_week(self, container: GridContainer, target: WeekTarget, anchor: datetime) -> WeekOutcome:
        with self.page_factory() as page:
            return WeekScrapeWorker(page, container, target, anchor).run()

    def _dispatch(
        self, container: GridContainer, targets: List[WeekTarget], anchor: datetime
    ) -> List[WeekOutcome]:
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(targets)), thread_name_prefix="week"
        )
        try:
            futures = {
                pool.submit(self._scrape_week, container, target, anchor): target
                for target in targets
            }
            wait(futures, timeout=self.join_timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        outcomes: List[WeekOutcome] = []
        for future, target in futures.items():
            # Weeks finishing between wait() and here still count.
            if not future.done() or future.cancelled():
                outcomes.append(WeekOutcome(target, OutcomeStatus.FAILED, error="timed out"))
                continue
            try:
                outcomes.append(future.result())
            except Exception as e:
                outcomes.append(
                    WeekOutcome(target, OutcomeStatus.FAILED, error=f"{type(e).__name__}: {e}")
                )
        return outcomes

    def run_report(self, week_count: int, now: Optional[datetime] = None) -> ScrapeReport:
        """Scrape ``week_count`` weeks starting with the week of ``now``."""
        if week_count <= 0:
            raise ValueError(f"week_count must be positive, got {week_count}")
        now = now or datetime.now()

        container = self.read_container()
        logger.info(
            "Planning grid %dx%d px, %d days", container.width_px, container.height_px, container.day_count
        )
        anchor = monday_anchor(now, container.start_hour)
        targets = week_targets(anchor, week_count)
        logger.info("Scraping weeks %s", ", ".join(str(t.iso_week) for t in targets))

        report = ScrapeReport(self._dispatch(container, targets, anchor))
        for outcome in report.failed_weeks:
            logger.warning("Week %d failed: %s", outcome.target.iso_week, outcome.error)
        return report

    def run(self, week_count: int, now: Optional[datetime] = None) -> List[CalendarEvent]:
        return self.run_report(week_count, now).events
