"""State loader: builds AdherenceState and Schedule from wire documents.

Documents use camelCase keys (``sessionInstanceGuid``); snake_case keys are
accepted as well. Files may be YAML or JSON (JSON is valid YAML).
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from pathlib import Path
from typing import Any

import yaml

from sar.domains.adherence.domain_logic.adherence_models import (
    ActivityEvent,
    AdherenceRecord,
    AdherenceState,
    Schedule,
    Session,
    StudyBurst,
    TimelineMetadata,
    TimeWindow,
)

logger = logging.getLogger(__name__)


class StateLoadError(Exception):
    """Raised when a state or schedule document cannot be parsed."""


def _get(data: dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up a camelCase key, falling back to its snake_case spelling."""
    if key in data:
        return data[key]
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in key)
    return data.get(snake, default)


def _require(data: dict[str, Any], key: str, context: str) -> Any:
    value = _get(data, key)
    if value is None or value == "":
        raise StateLoadError(f"{context}: missing required field '{key}'")
    return value


def _timestamp(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise StateLoadError(f"Invalid timestamp for '{field_name}': {value!r}") from exc


def _time_of_day(value: Any) -> time:
    if value is None or value == "":
        return time(0, 0)
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # YAML 1.1 reads unquoted 08:00 as sexagesimal minutes
        return time(value // 60 % 24, value % 60)
    try:
        return time.fromisoformat(str(value))
    except ValueError as exc:
        raise StateLoadError(f"Invalid startTime: {value!r}") from exc


def _int_or_none(value: Any, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise StateLoadError(f"Invalid integer for '{field_name}': {value!r}") from exc


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = _get(data, key) or []
    if not isinstance(value, list):
        raise StateLoadError(f"Field '{key}' must be a list")
    return value


# ---------------------------------------------------------------------------
# Adherence state
# ---------------------------------------------------------------------------

def _event(data: dict[str, Any]) -> ActivityEvent:
    event_id = _require(data, "eventId", "event")
    timestamp = _timestamp(_require(data, "timestamp", f"event {event_id}"), "timestamp")
    return ActivityEvent(
        event_id=event_id,
        timestamp=timestamp,
        object_type=_get(data, "objectType", "custom"),
    )


def _metadata(data: dict[str, Any]) -> TimelineMetadata:
    guid = _require(data, "sessionInstanceGuid", "metadata")
    context = f"metadata {guid}"
    start_event_id = _get(data, "sessionStartEventId") or _require(data, "startEventId", context)
    day_offset = _get(data, "dayOffset")
    if day_offset is None:
        day_offset = _get(data, "sessionInstanceStartDay")
    return TimelineMetadata(
        session_instance_guid=guid,
        session_guid=_require(data, "sessionGuid", context),
        session_name=_get(data, "sessionName", ""),
        start_event_id=start_event_id,
        time_window_guid=_get(data, "timeWindowGuid", ""),
        day_offset=_int_or_none(day_offset, "dayOffset") or 0,
        schedule_guid=_get(data, "scheduleGuid", ""),
        assessment_instance_guid=_get(data, "assessmentInstanceGuid"),
        time_window_persistent=bool(_get(data, "timeWindowPersistent", False)),
        expiration=_get(data, "expiration"),
        study_burst_id=_get(data, "studyBurstId"),
        study_burst_num=_int_or_none(_get(data, "studyBurstNum"), "studyBurstNum"),
        session_symbol=_get(data, "sessionSymbol"),
    )


def _record(data: dict[str, Any]) -> AdherenceRecord:
    return AdherenceRecord(
        instance_guid=_require(data, "instanceGuid", "adherence record"),
        started_on=_timestamp(_get(data, "startedOn"), "startedOn"),
        finished_on=_timestamp(_get(data, "finishedOn"), "finishedOn"),
        declined=bool(_get(data, "declined", False)),
    )


def state_from_dict(
    data: dict[str, Any],
    *,
    default_time_zone: str | None = None,
) -> AdherenceState:
    """Build an AdherenceState from a wire document.

    Args:
        data: Document with ``now``, ``events``, ``metadata`` and ``adherenceRecords``.
        default_time_zone: Used when the document has no ``clientTimeZone``.

    Raises:
        StateLoadError: a required field is missing or malformed.
    """
    if not isinstance(data, dict):
        raise StateLoadError("Adherence state must be a mapping")
    return AdherenceState(
        now=_timestamp(_require(data, "now", "state"), "now"),
        metadata=tuple(_metadata(m) for m in _list(data, "metadata")),
        events=tuple(_event(e) for e in _list(data, "events")),
        adherence_records=tuple(_record(r) for r in _list(data, "adherenceRecords")),
        study_start_event_id=_get(data, "studyStartEventId"),
        client_time_zone=_get(data, "clientTimeZone") or default_time_zone or None,
    )


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

def _time_window(data: dict[str, Any]) -> TimeWindow:
    return TimeWindow(
        guid=_require(data, "guid", "time window"),
        start_time=_time_of_day(_get(data, "startTime")),
        expiration=_get(data, "expiration"),
        persistent=bool(_get(data, "persistent", False)),
    )


def _session(data: dict[str, Any]) -> Session:
    guid = _require(data, "guid", "session")
    return Session(
        guid=guid,
        name=_get(data, "name", guid),
        start_event_ids=tuple(_list(data, "startEventIds")),
        study_burst_ids=tuple(_list(data, "studyBurstIds")),
        time_windows=tuple(_time_window(w) for w in _list(data, "timeWindows")),
    )


def _study_burst(data: dict[str, Any]) -> StudyBurst:
    return StudyBurst(
        identifier=_require(data, "identifier", "study burst"),
        origin_event_id=_get(data, "originEventId", ""),
        delay=_get(data, "delay"),
        interval=_get(data, "interval"),
        occurrences=_int_or_none(_get(data, "occurrences"), "occurrences") or 0,
    )


def schedule_from_dict(data: dict[str, Any]) -> Schedule:
    """Build a Schedule from a wire document.

    Raises:
        StateLoadError: a required field is missing or malformed.
    """
    if not isinstance(data, dict):
        raise StateLoadError("Schedule must be a mapping")
    return Schedule(
        guid=_require(data, "guid", "schedule"),
        name=_get(data, "name", ""),
        duration=_get(data, "duration"),
        sessions=tuple(_session(s) for s in _list(data, "sessions")),
        study_bursts=tuple(_study_burst(b) for b in _list(data, "studyBursts")),
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def _read_document(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise StateLoadError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise StateLoadError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise StateLoadError(f"{path} does not contain a mapping")
    return data


def load_state_file(path: str | Path, *, default_time_zone: str | None = None) -> AdherenceState:
    """Parse a YAML or JSON file into an AdherenceState."""
    state = state_from_dict(_read_document(path), default_time_zone=default_time_zone)
    logger.info(
        "Loaded adherence state from %s (%d events, %d metadata entries)",
        path,
        len(state.events),
        len(state.metadata),
    )
    return state


def load_schedule_file(path: str | Path) -> Schedule:
    """Parse a YAML or JSON file into a Schedule."""
    schedule = schedule_from_dict(_read_document(path))
    logger.info("Loaded schedule %s from %s", schedule.guid, path)
    return schedule
