"""Tests for orchestrator.py – concurrent multi-week scraping."""
import itertools
import threading
import time
import pytest
from datetime import datetime

from ut1_timetable.errors import ContainerUnavailable, PageAccessError
from ut1_timetable.models import OutcomeStatus, RawCell, ScrapeReport
import ut1_timetable.orchestrator as orchestrator_module
from ut1_timetable.orchestrator import ScrapeOrchestrator, week_targets

from fakes import FakePage, FakePlanning, cell

NOW = datetime(2026, 10, 14, 15, 0)  # Wednesday of ISO week 42


def _five_weeks(**kwargs) -> FakePlanning:
    weeks = {f"({n})": [cell(0, 0, 40, f"Course {n}"), cell(300, 200, 60, f"TD {n}")] for n in range(42, 47)}
    return FakePlanning(weeks, current="(42)", **kwargs)


class TestWeekTargets:
    def test_consecutive_weeks(self):
        targets = week_targets(datetime(2026, 10, 12, 7), 3)
        assert [(t.iso_week, t.offset, t.is_current_week) for t in targets] == [
            (42, 0, True),
            (43, 1, False),
            (44, 2, False),
        ]
        assert targets[1].label == "(43)"

    def test_year_rollover(self):
        # 2026 has 53 ISO weeks
        targets = week_targets(datetime(2026, 12, 28, 7), 3)
        assert [t.iso_week for t in targets] == [53, 1, 2]
        assert [t.offset for t in targets] == [0, 1, 2]


class TestRun:
    def test_merges_all_weeks(self):
        planning = _five_weeks()
        events = ScrapeOrchestrator(planning.factory(), max_workers=5).run(5, now=NOW)

        assert len(events) == 10
        assert {e.course for e in events} >= {f"Course {n}" for n in range(42, 47)}
        assert events == sorted(events, key=lambda e: (e.start, e.course, e.room))
        first = [e for e in events if e.course == "Course 44"][0]
        assert first.start == datetime(2026, 10, 26, 6, 0)

    def test_every_session_is_closed(self):
        planning = _five_weeks()
        ScrapeOrchestrator(planning.factory(), max_workers=2).run(5, now=NOW)
        assert planning.opened == 6  # setup session + one per week
        assert planning.closed == 6

    def test_partial_failure_is_isolated(self):
        planning = _five_weeks(missing_buttons=("(44)",))
        report = ScrapeOrchestrator(planning.factory()).run_report(5, now=NOW)

        courses = {e.course for e in report.events}
        assert courses == {f"{kind} {n}" for kind in ("Course", "TD") for n in (42, 43, 45, 46)}
        assert [o.target.iso_week for o in report.failed_weeks] == [44]
        assert "PaginationNotFound" in report.failed_weeks[0].error

    def test_driver_error_is_isolated(self):
        planning = _five_weeks(broken_weeks=("(46)",))
        report = ScrapeOrchestrator(planning.factory()).run_report(5, now=NOW)
        assert len(report.events) == 8
        assert [o.target.iso_week for o in report.failed_weeks] == [46]

    def test_zero_cell_week_does_not_affect_others(self):
        planning = _five_weeks()
        planning.weeks["(43)"] = []
        report = ScrapeOrchestrator(planning.factory()).run_report(5, now=NOW)

        statuses = {o.target.iso_week: o.status for o in report.outcomes}
        assert statuses[43] is OutcomeStatus.EMPTY
        assert report.failed_weeks == []
        assert len(report.events) == 8

    def test_malformed_cell_does_not_affect_week(self):
        planning = _five_weeks()
        planning.weeks["(42)"].append(RawCell(0, 0, 40, "<b>Only title</b>"))
        report = ScrapeOrchestrator(planning.factory()).run_report(1, now=NOW)
        outcome = report.outcomes[0]
        assert outcome.status is OutcomeStatus.OK
        assert len(outcome.events) == 2
        assert len(outcome.skipped_cells) == 1

    def test_single_week(self):
        planning = _five_weeks()
        events = ScrapeOrchestrator(planning.factory()).run(1, now=NOW)
        assert {e.course for e in events} == {"Course 42", "TD 42"}


class TestFatalErrors:
    @pytest.mark.parametrize("count", [0, -1])
    def test_week_count_must_be_positive(self, count):
        with pytest.raises(ValueError):
            ScrapeOrchestrator(_five_weeks().factory()).run(count, now=NOW)

    def test_container_unavailable(self):
        planning = _five_weeks(container_error=ContainerUnavailable("no grid"))
        with pytest.raises(ContainerUnavailable, match="no grid"):
            ScrapeOrchestrator(planning.factory()).run(5, now=NOW)

    def test_login_failure_while_reading_container(self):
        def factory():
            raise PageAccessError("login failed")

        with pytest.raises(ContainerUnavailable, match="login failed"):
            ScrapeOrchestrator(factory).run(5, now=NOW)

    def test_invalid_pool_size(self):
        with pytest.raises(ValueError):
            ScrapeOrchestrator(_five_weeks().factory(), max_workers=0)


class TestConcurrency:
    def test_pool_is_bounded(self):
        planning = _five_weeks()
        lock = threading.Lock()
        active = {"now": 0, "max": 0}

        class SlowPage(FakePage):
            def __enter__(self):
                with lock:
                    active["now"] += 1
                    active["max"] = max(active["max"], active["now"])
                return super().__enter__()

            def __exit__(self, *exc):
                with lock:
                    active["now"] -= 1
                super().__exit__(*exc)

            def list_event_cells(self):
                time.sleep(0.05)
                return super().list_event_cells()

        events = ScrapeOrchestrator(lambda: SlowPage(planning), max_workers=2).run(5, now=NOW)
        assert len(events) == 10
        assert active["max"] <= 2

    def test_join_timeout_reports_stuck_week(self):
        planning = _five_weeks()
        release = threading.Event()

        class StuckPage(FakePage):
            def list_event_cells(self):
                if self.shown == "(43)":
                    release.wait(5)
                return super().list_event_cells()

        try:
            report = ScrapeOrchestrator(
                lambda: StuckPage(planning), max_workers=5, join_timeout=0.5
            ).run_report(3, now=NOW)
        finally:
            release.set()

        assert [o.target.iso_week for o in report.failed_weeks] == [43]
        assert report.failed_weeks[0].error == "timed out"
        assert {e.course for e in report.events} == {"Course 42", "TD 42", "Course 44", "TD 44"}

    def test_week_finishing_right_after_the_timeout_is_kept(self, monkeypatch):
        planning = _five_weeks()
        release = threading.Event()
        real_wait = orchestrator_module.wait

        class LatePage(FakePage):
            def list_event_cells(self):
                if self.shown == "(43)":
                    release.wait(5)
                return super().list_event_cells()

        def late_wait(fs, timeout=None):
            # week 43 completes after the timed wait has already returned
            result = real_wait(fs, timeout=timeout)
            release.set()
            real_wait(fs)
            return result

        monkeypatch.setattr(orchestrator_module, "wait", late_wait)
        report = ScrapeOrchestrator(
            lambda: LatePage(planning), max_workers=3, join_timeout=0.2
        ).run_report(3, now=NOW)

        assert report.failed_weeks == []
        assert {e.course for e in report.events} >= {"Course 43", "TD 43"}


class TestMergeOrder:
    def test_merge_is_order_independent(self):
        planning = _five_weeks(missing_buttons=("(45)",))
        report = ScrapeOrchestrator(planning.factory()).run_report(4, now=NOW)
        expected = set(report.events)

        for permutation in itertools.permutations(report.outcomes):
            merged = ScrapeReport(list(permutation)).events
            assert set(merged) == expected
            assert merged == report.events
