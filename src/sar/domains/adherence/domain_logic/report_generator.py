"""Study adherence report generation.

Combines the event index, the day stream and the weekly aggregation into a
single StudyAdherenceReport. The generator holds no state between calls; the
same inputs always produce the same report.
"""

from __future__ import annotations

import logging
from datetime import date

from sar.domains.adherence.domain_logic.adherence_models import AdherenceState, Schedule
from sar.domains.adherence.domain_logic.completion import calculate_adherence_percent
from sar.domains.adherence.domain_logic.day_stream import DayStream, DayStreamBuilder
from sar.domains.adherence.domain_logic.event_index import EventIndex
from sar.domains.adherence.domain_logic.periods import InvalidPeriodError
from sar.domains.adherence.domain_logic.report_models import (
    DateRange,
    ParticipantStudyProgress,
    StudyAdherenceReport,
)
from sar.domains.adherence.domain_logic.week_aggregator import WeekAggregator

logger = logging.getLogger(__name__)


def _date_range(stream: DayStream, study_start: date | None) -> DateRange | None:
    """From the first scheduled day to the last window end, widened to the study start."""
    if not stream.days:
        return None
    try:
        start = min(day.start_date for day in stream.days)
        end = max(window.end_date for window in stream.windows())
        if study_start is not None:
            start = min(start, study_start)
            end = max(end, study_start)
        if start > end:
            raise ValueError(f"start {start} is after end {end}")
        return DateRange(start_date=start, end_date=end)
    except ValueError:
        logger.warning("Could not compute report date range; using the day stream bounds", exc_info=True)
        dates = [day.start_date for day in stream.days]
        dates.extend(window.end_date for window in stream.windows())
        return DateRange(start_date=min(dates), end_date=max(dates))


class StudyAdherenceReportGenerator:
    """Builds the multi-week adherence report for one participant.

    Usage::

        generator = StudyAdherenceReportGenerator()
        report = generator.generate(state, schedule)
        payload = report.to_dict()
    """

    def generate(self, state: AdherenceState, schedule: Schedule) -> StudyAdherenceReport:
        index = EventIndex(state)
        stream = DayStreamBuilder(state, schedule, index).build()

        study_start = index.resolve_study_start_event()
        anchor = study_start or index.earliest_event()
        if study_start is None and anchor is not None:
            logger.warning(
                "Study start event %r has not happened; anchoring weeks on the earliest event",
                state.study_start_event_id,
            )
        anchor_date = anchor.date() if anchor is not None else index.today
        aggregator = WeekAggregator(anchor_date, index.today, self._duration_days(schedule, anchor_date))

        windows = stream.windows()
        progression = (
            ParticipantStudyProgress.IN_PROGRESS if windows else ParticipantStudyProgress.UNSTARTED
        )

        weeks = aggregator.aggregate(stream.days)
        week_report, carried = aggregator.week_report(weeks)
        next_activity = aggregator.next_activity(weeks, week_report)

        for week in weeks:
            aggregator.finalize(week)
        aggregator.finalize(week_report, carried)

        adherence_percent = None
        if progression is ParticipantStudyProgress.UNSTARTED:
            week_report.adherence_percent = None
        else:
            adherence_percent = calculate_adherence_percent(windows)

        unset_event_ids = set(stream.unset_event_ids)
        unscheduled_sessions = set(stream.unscheduled_sessions)
        if not state.metadata:
            unset_event_ids, unscheduled_sessions = self._unscheduled_from_schedule(schedule, index)

        report = StudyAdherenceReport(
            progression=progression,
            week_report=week_report,
            adherence_percent=adherence_percent,
            date_range=_date_range(stream, study_start.date() if study_start is not None else None),
            unset_event_ids=unset_event_ids,
            unscheduled_sessions=unscheduled_sessions,
            event_timestamps=dict(stream.event_timestamps),
            weeks=weeks,
            next_activity=next_activity,
        )
        logger.info(
            "Adherence report for schedule %s: %s, %s%%, %d weeks",
            schedule.guid,
            progression.value,
            adherence_percent,
            len(weeks),
        )
        return report

    @staticmethod
    def _duration_days(schedule: Schedule, anchor_date: date) -> int | None:
        try:
            duration = schedule.duration_period()
        except InvalidPeriodError:
            logger.warning("Ignoring invalid schedule duration %r", schedule.duration)
            return None
        if duration is None:
            return None
        return duration.days_from(anchor_date)

    @staticmethod
    def _unscheduled_from_schedule(schedule: Schedule, index: EventIndex) -> tuple[set[str], set[str]]:
        """Sessions whose triggering events have not happened, read from the schedule."""
        unset_event_ids: set[str] = set()
        unscheduled_sessions: set[str] = set()
        for session in schedule.sessions:
            missing = [e for e in schedule.session_event_ids(session) if e not in index]
            if missing:
                unset_event_ids.update(missing)
                unscheduled_sessions.add(session.name)
        return unset_event_ids, unscheduled_sessions


def generate_report(state: AdherenceState, schedule: Schedule) -> StudyAdherenceReport:
    """Generate an adherence report with a fresh generator."""
    return StudyAdherenceReportGenerator().generate(state, schedule)
