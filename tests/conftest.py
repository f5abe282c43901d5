"""Shared test fixtures for study adherence tests."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, time
from pathlib import Path
from typing import Any

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from sar.domains.adherence.domain_logic.adherence_models import (  # noqa: E402
    ActivityEvent,
    AdherenceRecord,
    AdherenceState,
    Schedule,
    Session,
    StudyBurst,
    TimelineMetadata,
    TimeWindow,
)

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_CLIENT_TIME_ZONE", "")
    monkeypatch.setenv("SAR_LOG_LEVEL", "info")


# ---------------------------------------------------------------------------
# Reference study
#
# Four scheduled sessions plus one triggered by an event that never happens.
# The study burst repeats three times, one week apart.
# ---------------------------------------------------------------------------

CLIENT_TIME_ZONE = "America/Chicago"
NOW = datetime.fromisoformat("2022-03-15T01:00:00.000-08:00")

INITIAL_SURVEY = "pqVRM8cV-buumqQvUGwRsQ"
BASELINE_TAPPING = "xyvAcmEYAVAzCMfGhf187g"
BURST_TAPPING_1 = "freUhgN8OBMQOuUJBY_b4Q"
BURST_TAPPING_2 = "B01W5ru8Cjr8DAbODKcMKA"
BURST_TAPPING_3 = "sdOEXR4pJ-EyQQF8YmjwFw"
FINAL_SURVEY = "7aD28QS4xd0GLZELfIh0-Q"
SUPPLEMENTAL_SURVEY = "supplementalSurveyInstance"

BURST_EVENTS = [f"study_burst:Study Burst:0{n}" for n in (1, 2, 3)]


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


def make_events(include: set[str] | None = None) -> tuple[ActivityEvent, ...]:
    """Reference events; ``include`` restricts them to the given ids."""
    events = [
        ActivityEvent("timeline_retrieved", _ts("2022-03-01T16:23:15.999-08:00"), "timeline_retrieved"),
        ActivityEvent("custom:event2", _ts("2022-03-10T16:23:15.999-08:00"), "custom"),
        ActivityEvent(BURST_EVENTS[0], _ts("2022-03-08T16:23:15.999-08:00"), "study_burst"),
        ActivityEvent(BURST_EVENTS[1], _ts("2022-03-15T16:23:15.999-08:00"), "study_burst"),
        ActivityEvent(BURST_EVENTS[2], _ts("2022-03-22T16:23:15.999-08:00"), "study_burst"),
    ]
    if include is None:
        return tuple(events)
    return tuple(e for e in events if e.event_id in include)


def make_metadata() -> tuple[TimelineMetadata, ...]:
    burst = [
        TimelineMetadata(
            session_instance_guid=guid,
            session_guid="burstTappingGuid",
            session_name="Study Burst Tapping Test",
            start_event_id=BURST_EVENTS[num - 1],
            time_window_guid="win3",
            day_offset=0,
            schedule_guid="scheduleGuid",
            study_burst_id="Study Burst",
            study_burst_num=num,
        )
        for num, guid in ((1, BURST_TAPPING_1), (2, BURST_TAPPING_2), (3, BURST_TAPPING_3))
    ]
    return (
        TimelineMetadata(INITIAL_SURVEY, "initialSurveyGuid", "Initial Survey",
                         "timeline_retrieved", "win1", 1, "scheduleGuid"),
        TimelineMetadata(BASELINE_TAPPING, "baselineGuid", "Baseline Tapping Test",
                         "timeline_retrieved", "win2", 2, "scheduleGuid"),
        *burst,
        TimelineMetadata(FINAL_SURVEY, "finalSurveyGuid", "Final Survey",
                         "timeline_retrieved", "win4", 24, "scheduleGuid"),
        TimelineMetadata(SUPPLEMENTAL_SURVEY, "session5", "Supplemental Survey",
                         "custom:event1", "win5", 0, "scheduleGuid"),
    )


def make_records() -> tuple[AdherenceRecord, ...]:
    return (
        AdherenceRecord(INITIAL_SURVEY, _ts("2022-03-02T10:00:00-08:00"), _ts("2022-03-02T10:05:00-08:00")),
        AdherenceRecord(BASELINE_TAPPING, _ts("2022-03-03T10:00:00-08:00"), _ts("2022-03-03T10:05:00-08:00")),
        AdherenceRecord(BURST_TAPPING_1, declined=True),
        AdherenceRecord(BURST_TAPPING_2, started_on=_ts("2022-03-15T00:45:00-08:00")),
    )


def make_schedule(*, initial_expiration: str | None = "P1D", duration: str | None = "P4W") -> Schedule:
    return Schedule(
        guid="scheduleGuid",
        name="Tapping Study",
        duration=duration,
        sessions=(
            Session("initialSurveyGuid", "Initial Survey", ("timeline_retrieved",),
                    time_windows=(TimeWindow("win1", time(0, 0), initial_expiration),)),
            Session("baselineGuid", "Baseline Tapping Test", ("timeline_retrieved",),
                    time_windows=(TimeWindow("win2", time(0, 0), "P1D"),)),
            Session("burstTappingGuid", "Study Burst Tapping Test", study_burst_ids=("Study Burst",),
                    time_windows=(TimeWindow("win3", time(0, 0), "P1D"),)),
            Session("finalSurveyGuid", "Final Survey", ("timeline_retrieved",),
                    time_windows=(TimeWindow("win4", time(0, 0), "P3D"),)),
            Session("session5", "Supplemental Survey", ("custom:event1",),
                    time_windows=(TimeWindow("win5", time(0, 0), "PT12H"),)),
        ),
        study_bursts=(StudyBurst("Study Burst", "timeline_retrieved", "P1W", "P1W", 3),),
    )


def make_state(
    *,
    now: datetime = NOW,
    events: tuple[ActivityEvent, ...] | None = None,
    metadata: tuple[TimelineMetadata, ...] | None = None,
    records: tuple[AdherenceRecord, ...] | None = None,
    study_start_event_id: str | None = "timeline_retrieved",
    client_time_zone: str | None = CLIENT_TIME_ZONE,
) -> AdherenceState:
    return AdherenceState(
        now=now,
        metadata=make_metadata() if metadata is None else metadata,
        events=make_events() if events is None else events,
        adherence_records=make_records() if records is None else records,
        study_start_event_id=study_start_event_id,
        client_time_zone=client_time_zone,
    )


def make_state_document() -> dict[str, Any]:
    """Wire (camelCase) rendition of the reference state."""
    return {
        "studyStartEventId": "timeline_retrieved",
        "clientTimeZone": CLIENT_TIME_ZONE,
        "now": NOW.isoformat(),
        "events": [
            {"eventId": e.event_id, "timestamp": e.timestamp.isoformat(), "objectType": e.object_type}
            for e in make_events()
        ],
        "metadata": [
            {
                "sessionInstanceGuid": m.session_instance_guid,
                "sessionGuid": m.session_guid,
                "sessionName": m.session_name,
                "sessionStartEventId": m.start_event_id,
                "timeWindowGuid": m.time_window_guid,
                "sessionInstanceStartDay": m.day_offset,
                "scheduleGuid": m.schedule_guid,
                "studyBurstId": m.study_burst_id,
                "studyBurstNum": m.study_burst_num,
            }
            for m in make_metadata()
        ],
        "adherenceRecords": [
            {
                "instanceGuid": r.instance_guid,
                "startedOn": r.started_on.isoformat() if r.started_on else None,
                "finishedOn": r.finished_on.isoformat() if r.finished_on else None,
                "declined": r.declined,
            }
            for r in make_records()
        ],
    }


def make_schedule_document() -> dict[str, Any]:
    """Wire (camelCase) rendition of the reference schedule."""
    schedule = make_schedule()
    return {
        "guid": schedule.guid,
        "name": schedule.name,
        "duration": schedule.duration,
        "sessions": [
            {
                "guid": s.guid,
                "name": s.name,
                "startEventIds": list(s.start_event_ids),
                "studyBurstIds": list(s.study_burst_ids),
                "timeWindows": [
                    {"guid": w.guid, "startTime": w.start_time.strftime("%H:%M"), "expiration": w.expiration}
                    for w in s.time_windows
                ],
            }
            for s in schedule.sessions
        ],
        "studyBursts": [
            {
                "identifier": b.identifier,
                "originEventId": b.origin_event_id,
                "delay": b.delay,
                "interval": b.interval,
                "occurrences": b.occurrences,
            }
            for b in schedule.study_bursts
        ],
    }


@pytest.fixture
def reference_state() -> AdherenceState:
    return make_state()


@pytest.fixture
def reference_schedule() -> Schedule:
    return make_schedule()


@pytest.fixture
def state_factory() -> Callable[..., AdherenceState]:
    return make_state


@pytest.fixture
def schedule_factory() -> Callable[..., Schedule]:
    return make_schedule


@pytest.fixture
def state_document() -> dict[str, Any]:
    return make_state_document()


@pytest.fixture
def schedule_document() -> dict[str, Any]:
    return make_schedule_document()
