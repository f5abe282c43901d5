"""Tests for window classification and adherence arithmetic."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from sar.domains.adherence.domain_logic.adherence_models import AdherenceRecord
from sar.domains.adherence.domain_logic.completion import (
    calculate_adherence_percent,
    classify_window,
)
from sar.domains.adherence.domain_logic.report_models import (
    EventStreamWindow,
    SessionCompletionState as S,
)

START = datetime(2022, 3, 10, 0, 0, tzinfo=timezone.utc)
END = START + timedelta(days=1)
BEFORE = START - timedelta(hours=1)
DURING = START + timedelta(hours=6)
AFTER = END + timedelta(hours=1)


def _record(**kwargs) -> AdherenceRecord:
    return AdherenceRecord("guid", **kwargs)


def _windows(*states: S) -> list[EventStreamWindow]:
    return [EventStreamWindow(f"i{n}", "w", state, date(2022, 3, 1)) for n, state in enumerate(states)]


class TestClassifyWindow:
    def test_no_record_before_start_is_not_yet_available(self):
        assert classify_window(None, BEFORE, START, END) is S.NOT_YET_AVAILABLE

    def test_no_record_inside_window_is_unstarted(self):
        assert classify_window(None, DURING, START, END) is S.UNSTARTED

    def test_no_record_after_end_is_expired(self):
        assert classify_window(None, AFTER, START, END) is S.EXPIRED

    def test_end_is_exclusive(self):
        assert classify_window(None, END, START, END) is S.EXPIRED

    def test_declined_wins_over_finished(self):
        record = _record(started_on=DURING, finished_on=DURING, declined=True)
        assert classify_window(record, DURING, START, END) is S.DECLINED

    def test_finished_is_completed_even_after_end(self):
        record = _record(started_on=DURING, finished_on=DURING)
        assert classify_window(record, AFTER, START, END) is S.COMPLETED

    def test_started_inside_window(self):
        assert classify_window(_record(started_on=DURING), DURING, START, END) is S.STARTED

    def test_started_but_window_passed_is_abandoned(self):
        assert classify_window(_record(started_on=DURING), AFTER, START, END) is S.ABANDONED

    def test_persistent_window_never_expires(self):
        assert classify_window(None, AFTER, START, END, persistent=True) is S.UNSTARTED
        assert classify_window(_record(started_on=DURING), AFTER, START, END, persistent=True) is S.STARTED

    def test_open_ended_window_never_expires(self):
        assert classify_window(None, AFTER + timedelta(days=365), START, None) is S.UNSTARTED

    def test_unstarted_record_behaves_like_no_record(self):
        assert classify_window(_record(), AFTER, START, END) is S.EXPIRED


class TestAdherencePercent:
    def test_no_windows_is_none(self):
        assert calculate_adherence_percent([]) is None

    def test_completed_and_declined_count(self):
        # 3 of 6, with pending windows still in the denominator
        windows = _windows(S.COMPLETED, S.COMPLETED, S.DECLINED, S.STARTED, S.NOT_YET_AVAILABLE, S.EXPIRED)
        assert calculate_adherence_percent(windows) == 50

    def test_started_and_not_yet_available_do_not_count(self):
        windows = _windows(S.COMPLETED, S.DECLINED, S.STARTED, S.NOT_YET_AVAILABLE, S.NOT_YET_AVAILABLE, S.EXPIRED)
        assert calculate_adherence_percent(windows) == 33

    def test_rounds_half_up(self):
        # 1/8 = 12.5%
        assert calculate_adherence_percent(_windows(S.COMPLETED, *[S.EXPIRED] * 7)) == 13

    def test_rounds_down_below_half(self):
        # 1/3 = 33.3%
        assert calculate_adherence_percent(_windows(S.COMPLETED, S.EXPIRED, S.EXPIRED)) == 33

    def test_all_adherent(self):
        assert calculate_adherence_percent(_windows(S.COMPLETED, S.DECLINED)) == 100

    def test_abandoned_is_not_adherent(self):
        assert calculate_adherence_percent(_windows(S.ABANDONED, S.COMPLETED)) == 50
