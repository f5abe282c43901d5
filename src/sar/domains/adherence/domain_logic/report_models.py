"""Report models produced by the adherence report generator.

Every model serializes through ``to_dict()`` using the camelCase wire names
consumed by client applications.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class SessionCompletionState(str, Enum):
    NOT_YET_AVAILABLE = "not_yet_available"
    UNSTARTED = "unstarted"
    STARTED = "started"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"
    DECLINED = "declined"


# States that can still change as time passes or the participant acts
NON_TERMINAL_STATES = frozenset({
    SessionCompletionState.NOT_YET_AVAILABLE,
    SessionCompletionState.UNSTARTED,
    SessionCompletionState.STARTED,
})

# States that count toward adherence
ADHERENT_STATES = frozenset({
    SessionCompletionState.COMPLETED,
    SessionCompletionState.DECLINED,
})


class ParticipantStudyProgress(str, Enum):
    UNSTARTED = "unstarted"
    IN_PROGRESS = "in_progress"


def _date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


# ---------------------------------------------------------------------------
# Day stream
# ---------------------------------------------------------------------------

@dataclass
class EventStreamWindow:
    session_instance_guid: str
    time_window_guid: str
    state: SessionCompletionState
    end_date: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionInstanceGuid": self.session_instance_guid,
            "timeWindowGuid": self.time_window_guid,
            "state": self.state.value,
            "endDate": _date(self.end_date),
        }


@dataclass
class EventStreamDay:
    """A calendar day on which one session is scheduled from one event.

    ``session_name``, ``session_symbol``, the study burst fields and ``week``
    are only needed while rows are built and are cleared afterwards. A day
    without a ``session_guid`` is a placeholder that pads an empty slot.
    """

    start_date: date
    start_event_id: str | None = None
    session_guid: str | None = None
    session_name: str | None = None
    session_symbol: str | None = None
    study_burst_id: str | None = None
    study_burst_num: int | None = None
    week: int | None = None
    is_today: bool = False
    time_windows: list[EventStreamWindow] = field(default_factory=list)

    @property
    def is_placeholder(self) -> bool:
        return self.session_guid is None

    def copy(self, windows: list[EventStreamWindow] | None = None) -> EventStreamDay:
        return EventStreamDay(
            start_date=self.start_date,
            start_event_id=self.start_event_id,
            session_guid=self.session_guid,
            session_name=self.session_name,
            session_symbol=self.session_symbol,
            study_burst_id=self.study_burst_id,
            study_burst_num=self.study_burst_num,
            week=self.week,
            is_today=self.is_today,
            time_windows=list(self.time_windows if windows is None else windows),
        )

    def clear_transient_fields(self) -> None:
        self.session_name = None
        self.session_symbol = None
        self.study_burst_id = None
        self.study_burst_num = None
        self.week = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "startDate": _date(self.start_date),
            "startEventId": self.start_event_id,
            "sessionGuid": self.session_guid,
            "today": self.is_today,
            "timeWindows": [w.to_dict() for w in self.time_windows],
        }
        # Transient fields only appear before they are cleared
        if self.session_name is not None:
            data["sessionName"] = self.session_name
        if self.session_symbol is not None:
            data["sessionSymbol"] = self.session_symbol
        if self.study_burst_id is not None:
            data["studyBurstId"] = self.study_burst_id
            data["studyBurstNum"] = self.study_burst_num
        if self.week is not None:
            data["week"] = self.week
        return data


# ---------------------------------------------------------------------------
# Weeks
# ---------------------------------------------------------------------------

@dataclass
class WeeklyAdherenceReportRow:
    label: str
    searchable_label: str
    session_guid: str
    session_name: str
    start_event_id: str
    week_in_study: int
    study_burst_id: str | None = None
    study_burst_num: int | None = None
    session_symbol: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "searchableLabel": self.searchable_label,
            "sessionGuid": self.session_guid,
            "sessionName": self.session_name,
            "startEventId": self.start_event_id,
            "weekInStudy": self.week_in_study,
            "studyBurstId": self.study_burst_id,
            "studyBurstNum": self.study_burst_num,
            "sessionSymbol": self.session_symbol,
        }


@dataclass
class NextActivity:
    """The first upcoming row after the current week, with its start date."""

    row: WeeklyAdherenceReportRow
    start_date: date

    def to_dict(self) -> dict[str, Any]:
        data = self.row.to_dict()
        data["startDate"] = _date(self.start_date)
        return data


@dataclass
class StudyReportWeek:
    start_date: date
    week_in_study: int
    adherence_percent: int | None = None
    rows: list[WeeklyAdherenceReportRow] = field(default_factory=list)
    by_day_entries: dict[int, list[EventStreamDay]] = field(
        default_factory=lambda: {day: [] for day in range(7)}
    )
    searchable_labels: set[str] = field(default_factory=set)

    def days(self) -> list[EventStreamDay]:
        """All non-placeholder days, slot by slot."""
        return [
            day
            for slot in range(7)
            for day in self.by_day_entries.get(slot, [])
            if not day.is_placeholder
        ]

    def windows(self) -> list[EventStreamWindow]:
        return [window for day in self.days() for window in day.time_windows]

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": _date(self.start_date),
            "weekInStudy": self.week_in_study,
            "adherencePercent": self.adherence_percent,
            "rows": [row.to_dict() for row in self.rows],
            "byDayEntries": {
                str(slot): [day.to_dict() for day in self.by_day_entries.get(slot, [])]
                for slot in range(7)
            },
            "searchableLabels": sorted(self.searchable_labels),
        }


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class DateRange:
    start_date: date
    end_date: date

    def to_dict(self) -> dict[str, Any]:
        return {"startDate": _date(self.start_date), "endDate": _date(self.end_date)}


@dataclass
class StudyAdherenceReport:
    """Complete multi-week adherence report for one participant."""

    progression: ParticipantStudyProgress
    week_report: StudyReportWeek
    adherence_percent: int | None = None
    date_range: DateRange | None = None
    unset_event_ids: set[str] = field(default_factory=set)
    unscheduled_sessions: set[str] = field(default_factory=set)
    event_timestamps: dict[str, datetime] = field(default_factory=dict)
    weeks: list[StudyReportWeek] = field(default_factory=list)
    next_activity: NextActivity | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "adherencePercent": self.adherence_percent,
            "progression": self.progression.value,
            "dateRange": self.date_range.to_dict() if self.date_range else None,
            "unsetEventIds": sorted(self.unset_event_ids),
            "unscheduledSessions": sorted(self.unscheduled_sessions),
            "eventTimestamps": {
                event_id: _timestamp(ts)
                for event_id, ts in sorted(self.event_timestamps.items())
            },
            "weeks": [week.to_dict() for week in self.weeks],
            "weekReport": self.week_report.to_dict(),
            "nextActivity": self.next_activity.to_dict() if self.next_activity else None,
        }
