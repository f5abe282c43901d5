"""Builds the stream of scheduled days from timeline metadata.

Each metadata entry is placed on the calendar relative to the event that
triggers it and classified against the participant's adherence records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from sar.domains.adherence.domain_logic.adherence_models import (
    AdherenceRecord,
    AdherenceState,
    Schedule,
    TimelineMetadata,
)
from sar.domains.adherence.domain_logic.completion import classify_window
from sar.domains.adherence.domain_logic.event_index import EventIndex
from sar.domains.adherence.domain_logic.periods import InvalidPeriodError, Period, parse_period
from sar.domains.adherence.domain_logic.report_models import EventStreamDay, EventStreamWindow
from sar.domains.adherence.domain_logic.session_state import SessionState

logger = logging.getLogger(__name__)


@dataclass
class DayStream:
    """Scheduled days in metadata order, plus what could not be scheduled."""

    days: list[EventStreamDay] = field(default_factory=list)
    unscheduled_sessions: set[str] = field(default_factory=set)
    unset_event_ids: set[str] = field(default_factory=set)
    event_timestamps: dict[str, datetime] = field(default_factory=dict)

    def windows(self) -> list[EventStreamWindow]:
        return [window for day in self.days for window in day.time_windows]


class DayStreamBuilder:
    """Turns timeline metadata into classified EventStreamDays.

    Usage::

        index = EventIndex(state)
        stream = DayStreamBuilder(state, schedule, index).build()
    """

    def __init__(
        self,
        state: AdherenceState,
        schedule: Schedule,
        index: EventIndex | None = None,
    ) -> None:
        self._state = state
        self._schedule = schedule
        self._index = index if index is not None else EventIndex(state)
        self._duration = self._schedule_duration()

    def _schedule_duration(self) -> Period | None:
        try:
            return self._schedule.duration_period()
        except InvalidPeriodError:
            logger.warning(
                "Schedule %s has an invalid duration %r; ignoring it",
                self._schedule.guid,
                self._schedule.duration,
            )
            return None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _records_by_guid(self) -> dict[str, AdherenceRecord]:
        records: dict[str, AdherenceRecord] = {}
        for record in self._state.adherence_records:
            if record.instance_guid in records:
                logger.debug("Duplicate adherence record for %s ignored", record.instance_guid)
                continue
            records[record.instance_guid] = record
        return records

    def _session_records(self, records: dict[str, AdherenceRecord]) -> dict[str, AdherenceRecord]:
        """Session records derived from assessment records, by session instance."""
        assessments: dict[str, set[str]] = {}
        for meta in self._state.metadata:
            if meta.assessment_instance_guid is not None:
                assessments.setdefault(meta.session_instance_guid, set()).add(
                    meta.assessment_instance_guid
                )

        derived: dict[str, AdherenceRecord] = {}
        for session_instance_guid, assessment_guids in assessments.items():
            state = SessionState(len(assessment_guids))
            for guid in assessment_guids:
                if guid in records:
                    state.add(records[guid])
            record = state.session_record(session_instance_guid)
            if record is not None:
                derived[session_instance_guid] = record
        return derived

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def _expiration(self, meta: TimelineMetadata, schedule_expiration: str | None) -> Period | None:
        expiration = meta.expiration or schedule_expiration
        if not expiration:
            return None
        try:
            return parse_period(expiration)
        except InvalidPeriodError:
            logger.warning(
                "Invalid expiration %r for %s; treating the window as open-ended",
                expiration,
                meta.session_instance_guid,
            )
            return None

    def _open_ended_end_date(self, event_date: date, start_date: date) -> date:
        # Last day of the study, counted from the triggering event
        if self._duration is None or self._duration.is_zero:
            return start_date
        end_date = self._duration.add_to(event_date) - timedelta(days=1)
        return max(end_date, start_date)

    def _window(
        self,
        meta: TimelineMetadata,
        event_date: date,
        start_date: date,
        record: AdherenceRecord | None,
    ) -> EventStreamWindow:
        schedule_window = self._schedule.time_window(meta.time_window_guid)
        start_time = schedule_window.start_time if schedule_window else time(0, 0)
        persistent = meta.time_window_persistent or (
            schedule_window is not None and schedule_window.persistent
        )
        expiration = self._expiration(meta, schedule_window.expiration if schedule_window else None)

        window_start = datetime.combine(start_date, start_time, tzinfo=self._index.time_zone)
        if expiration is not None:
            window_end = expiration.add_to(window_start)
            # An end at exactly midnight belongs to the previous day
            end_date = max((window_end - timedelta(microseconds=1)).date(), start_date)
        else:
            window_end = None
            end_date = self._open_ended_end_date(event_date, start_date)

        state = classify_window(
            record,
            self._index.now,
            window_start,
            window_end,
            persistent=persistent,
        )
        return EventStreamWindow(
            session_instance_guid=meta.session_instance_guid,
            time_window_guid=meta.time_window_guid,
            state=state,
            end_date=end_date,
        )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> DayStream:
        stream = DayStream()
        records = self._records_by_guid()
        derived = self._session_records(records)
        session_level = {
            m.session_instance_guid
            for m in self._state.metadata
            if m.assessment_instance_guid is None
        }

        days_by_key: dict[tuple[str, str, date], EventStreamDay] = {}
        first_event_for: dict[tuple[str, datetime], str] = {}
        emitted: set[tuple[str, str, str]] = set()

        for meta in self._state.metadata:
            # Assessment entries only feed the session record when the session has its own entry
            if meta.assessment_instance_guid is not None and meta.session_instance_guid in session_level:
                continue
            emit_key = (meta.session_instance_guid, meta.time_window_guid, meta.start_event_id)
            if emit_key in emitted:
                continue

            event_ts = self._index.timestamp(meta.start_event_id)
            if event_ts is None:
                stream.unscheduled_sessions.add(meta.session_name)
                stream.unset_event_ids.add(meta.start_event_id)
                continue

            first_event = first_event_for.setdefault(
                (meta.session_instance_guid, event_ts), meta.start_event_id
            )
            if first_event != meta.start_event_id:
                logger.debug(
                    "Skipping %s via %s: already scheduled at the same time via %s",
                    meta.session_instance_guid,
                    meta.start_event_id,
                    first_event,
                )
                continue
            emitted.add(emit_key)

            event_date = event_ts.date()
            start_date = event_date + timedelta(days=meta.day_offset)
            record = records.get(meta.session_instance_guid) or derived.get(meta.session_instance_guid)
            window = self._window(meta, event_date, start_date, record)

            day_key = (meta.start_event_id, meta.session_guid, start_date)
            day = days_by_key.get(day_key)
            if day is None:
                day = EventStreamDay(
                    start_date=start_date,
                    start_event_id=meta.start_event_id,
                    session_guid=meta.session_guid,
                    session_name=meta.session_name,
                    session_symbol=meta.session_symbol,
                    study_burst_id=meta.study_burst_id,
                    study_burst_num=meta.study_burst_num,
                    is_today=start_date == self._index.today,
                )
                days_by_key[day_key] = day
                stream.days.append(day)
            day.time_windows.append(window)
            stream.event_timestamps[meta.start_event_id] = event_ts

        logger.debug(
            "Built %d scheduled days (%d unscheduled sessions)",
            len(stream.days),
            len(stream.unscheduled_sessions),
        )
        return stream
