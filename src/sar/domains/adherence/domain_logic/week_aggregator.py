"""Groups scheduled days into study weeks and builds the weekly display rows."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from sar.domains.adherence.domain_logic.completion import calculate_adherence_percent
from sar.domains.adherence.domain_logic.report_models import (
    NON_TERMINAL_STATES,
    EventStreamDay,
    NextActivity,
    StudyReportWeek,
    WeeklyAdherenceReportRow,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7

RowKey = tuple[str | None, str | None, str | None, int | None]


def _row_key(day: EventStreamDay) -> RowKey:
    return (day.session_guid, day.start_event_id, day.study_burst_id, day.study_burst_num)


def _has_pending_window(day: EventStreamDay) -> bool:
    return any(window.state in NON_TERMINAL_STATES for window in day.time_windows)


def make_row(day: EventStreamDay, week_in_study: int) -> WeeklyAdherenceReportRow:
    """Build the display row for a day, labelled for the given week."""
    name = day.session_name or ""
    if day.study_burst_id is not None:
        burst = f"{day.study_burst_id} {day.study_burst_num}"
        label = f"{burst} / Week {week_in_study} / {name}"
        searchable = f":{day.study_burst_id}:{burst}:Week {week_in_study}:{name}:"
    else:
        label = f"{name} / Week {week_in_study}"
        searchable = f":{name}:Week {week_in_study}:"
    return WeeklyAdherenceReportRow(
        label=label,
        searchable_label=searchable,
        session_guid=day.session_guid or "",
        session_name=name,
        start_event_id=day.start_event_id or "",
        week_in_study=week_in_study,
        study_burst_id=day.study_burst_id,
        study_burst_num=day.study_burst_num,
        session_symbol=day.session_symbol,
    )


def row_sort_key(row: WeeklyAdherenceReportRow, insertion_index: int) -> tuple:
    """Bursts first (by id, then iteration), then session name; ties keep insertion order."""
    return (
        row.study_burst_id is None,
        (row.study_burst_id or "").casefold(),
        row.study_burst_num or 0,
        row.session_name.casefold(),
        insertion_index,
    )


class WeekAggregator:
    """Buckets days into 7-day study weeks counted from an anchor date.

    Week 1 starts on the anchor date. Days before the anchor fall in week 0
    or negative weeks.

    Usage::

        aggregator = WeekAggregator(anchor_date, today, duration_days=28)
        weeks = aggregator.aggregate(stream.days)
        current = aggregator.week_report(weeks)
    """

    def __init__(self, anchor_date: date, today: date, duration_days: int | None = None) -> None:
        self.anchor_date = anchor_date
        self.today = today
        self._duration_days = duration_days

    def week_in_study(self, value: date) -> int:
        return (value - self.anchor_date).days // DAYS_PER_WEEK + 1

    def week_start(self, week_in_study: int) -> date:
        return self.anchor_date + timedelta(days=DAYS_PER_WEEK * (week_in_study - 1))

    def _empty_week(self, week_in_study: int) -> StudyReportWeek:
        return StudyReportWeek(start_date=self.week_start(week_in_study), week_in_study=week_in_study)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(self, days: Iterable[EventStreamDay]) -> list[StudyReportWeek]:
        """Group days by week, fill the weeks implied by the study duration, build rows.

        Returns weeks ordered by week number.
        """
        weeks: dict[int, StudyReportWeek] = {}
        for day in days:
            number = self.week_in_study(day.start_date)
            day.week = number
            week = weeks.get(number)
            if week is None:
                week = weeks[number] = self._empty_week(number)
            week.by_day_entries[(day.start_date - week.start_date).days].append(day)

        if weeks and self._duration_days:
            duration_weeks = -(-self._duration_days // DAYS_PER_WEEK)
            for number in range(1, duration_weeks + 1):
                if number not in weeks:
                    weeks[number] = self._empty_week(number)

        ordered = [weeks[number] for number in sorted(weeks)]
        for week in ordered:
            self.build_rows(week)
            week.adherence_percent = self.weekly_adherence(week)
        return ordered

    def build_rows(self, week: StudyReportWeek) -> None:
        """Derive sorted rows for the week and pad every day slot to match them.

        Each slot ends up with, in row order, the days of that row or a
        placeholder day when the row has nothing scheduled on that slot.
        """
        rows: dict[RowKey, WeeklyAdherenceReportRow] = {}
        for day in week.days():
            key = _row_key(day)
            if key not in rows:
                rows[key] = make_row(day, week.week_in_study)

        ordered = sorted(
            enumerate(rows.items()),
            key=lambda item: row_sort_key(item[1][1], item[0]),
        )
        row_keys = [key for _, (key, _row) in ordered]
        week.rows = [row for _, (_key, row) in ordered]
        week.searchable_labels = {row.searchable_label for row in week.rows}

        for slot in range(DAYS_PER_WEEK):
            scheduled = [day for day in week.by_day_entries.get(slot, []) if not day.is_placeholder]
            padded: list[EventStreamDay] = []
            for key in row_keys:
                matching = [day for day in scheduled if _row_key(day) == key]
                if matching:
                    padded.extend(matching)
                else:
                    padded.append(EventStreamDay(start_date=week.start_date + timedelta(days=slot)))
            week.by_day_entries[slot] = padded

    def weekly_adherence(self, week: StudyReportWeek) -> int | None:
        """Adherence for the week; None for weeks that have not begun."""
        if week.start_date > self.today:
            return None
        return calculate_adherence_percent(week.windows())

    # ------------------------------------------------------------------
    # Current week
    # ------------------------------------------------------------------

    def week_report(self, weeks: list[StudyReportWeek]) -> tuple[StudyReportWeek, list[EventStreamDay]]:
        """Snapshot of the week containing today, with unfinished work carried forward.

        Days from earlier weeks that still have non-terminal windows are copied
        into slot 0, keeping only those windows and their original start date.

        Returns:
            The report week and the list of carried-over days.
        """
        number = self.week_in_study(self.today)
        source = next((week for week in weeks if week.week_in_study == number), None)
        report = self._empty_week(number)
        if source is not None:
            for slot in range(DAYS_PER_WEEK):
                report.by_day_entries[slot] = [
                    day.copy() for day in source.by_day_entries.get(slot, []) if not day.is_placeholder
                ]

        carried: list[EventStreamDay] = []
        for week in weeks:
            if week.start_date >= report.start_date:
                continue
            for day in week.days():
                pending = [w for w in day.time_windows if w.state in NON_TERMINAL_STATES]
                if pending:
                    copy = day.copy(pending)
                    copy.week = report.week_in_study
                    carried.append(copy)
        report.by_day_entries[0].extend(carried)
        if carried:
            logger.debug("Carried %d unfinished days into week %d", len(carried), number)

        self.build_rows(report)
        report.adherence_percent = self.weekly_adherence(report)
        return report, carried

    def next_activity(
        self,
        weeks: list[StudyReportWeek],
        current_week: StudyReportWeek,
    ) -> NextActivity | None:
        """First row with outstanding work that starts after the current week.

        Only reported while the participant is between activities. Returns
        None whenever the week containing today has scheduled rows of its own.
        """
        if any(week.week_in_study == current_week.week_in_study and week.rows for week in weeks):
            return None
        boundary = current_week.start_date + timedelta(days=DAYS_PER_WEEK - 1)
        best: tuple | None = None
        best_activity: NextActivity | None = None
        for week in weeks:
            for order, row in enumerate(week.rows):
                for day in week.days():
                    if day.start_date <= boundary or not _has_pending_window(day):
                        continue
                    if (row.session_guid, row.start_event_id, row.study_burst_id, row.study_burst_num) != (
                        day.session_guid,
                        day.start_event_id,
                        day.study_burst_id,
                        day.study_burst_num,
                    ):
                        continue
                    rank = (day.start_date, week.week_in_study, order)
                    if best is None or rank < best:
                        best = rank
                        best_activity = NextActivity(row=row, start_date=day.start_date)
        return best_activity

    def finalize(self, week: StudyReportWeek, carried: Iterable[EventStreamDay] = ()) -> None:
        """Clear fields only needed for row building and mark today's days."""
        carried_ids = {id(day) for day in carried}
        for slot in range(DAYS_PER_WEEK):
            for day in week.by_day_entries.get(slot, []):
                day.clear_transient_fields()
                if id(day) in carried_ids:
                    day.is_today = week.start_date == self.today
                else:
                    day.is_today = day.start_date == self.today
