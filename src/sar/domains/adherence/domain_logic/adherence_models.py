"""Input models for adherence reporting: events, timeline metadata, records, schedule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timezone

from sar.domains.adherence.domain_logic.periods import Period, parse_period

# Study burst iteration events are named study_burst:<burstId>:<NN>
STUDY_BURST_EVENT_PREFIX = "study_burst"


def study_burst_event_id(burst_id: str, iteration: int) -> str:
    """Event id of one iteration of a study burst (iterations are 1-based)."""
    return f"{STUDY_BURST_EVENT_PREFIX}:{burst_id}:{iteration:02d}"


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Participant state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityEvent:
    """A timestamped participant event that anchors sessions."""

    event_id: str
    timestamp: datetime
    object_type: str = "custom"


@dataclass(frozen=True)
class TimelineMetadata:
    """One schedulable session instance x time window, precomputed from a schedule."""

    session_instance_guid: str
    session_guid: str
    session_name: str
    start_event_id: str
    time_window_guid: str
    day_offset: int = 0
    schedule_guid: str = ""
    assessment_instance_guid: str | None = None
    time_window_persistent: bool = False
    expiration: str | None = None        # ISO-8601 period, overrides the schedule window
    study_burst_id: str | None = None
    study_burst_num: int | None = None
    session_symbol: str | None = None


@dataclass(frozen=True)
class AdherenceRecord:
    """Completion record for a session or assessment instance."""

    instance_guid: str
    started_on: datetime | None = None
    finished_on: datetime | None = None
    declined: bool = False

    @property
    def is_unstarted(self) -> bool:
        return self.started_on is None and self.finished_on is None and not self.declined


@dataclass(frozen=True)
class AdherenceState:
    """Everything needed to compute one participant's adherence report.

    Built once per request. Sequences are stored as tuples and a naive
    ``now`` is treated as UTC.
    """

    now: datetime
    metadata: tuple[TimelineMetadata, ...] = ()
    events: tuple[ActivityEvent, ...] = ()
    adherence_records: tuple[AdherenceRecord, ...] = ()
    study_start_event_id: str | None = None
    client_time_zone: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "now", ensure_aware(self.now))
        object.__setattr__(self, "metadata", tuple(self.metadata))
        object.__setattr__(self, "events", tuple(self.events))
        object.__setattr__(self, "adherence_records", tuple(self.adherence_records))


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimeWindow:
    guid: str
    start_time: time = time(0, 0)
    expiration: str | None = None
    persistent: bool = False


@dataclass(frozen=True)
class Session:
    guid: str
    name: str
    start_event_ids: tuple[str, ...] = ()
    study_burst_ids: tuple[str, ...] = ()
    time_windows: tuple[TimeWindow, ...] = ()


@dataclass(frozen=True)
class StudyBurst:
    """A repeating event series; iteration N fires study_burst:<identifier>:<NN>."""

    identifier: str
    origin_event_id: str = ""
    delay: str | None = None
    interval: str | None = None
    occurrences: int = 0

    def event_ids(self) -> list[str]:
        return [study_burst_event_id(self.identifier, n) for n in range(1, self.occurrences + 1)]


@dataclass(frozen=True)
class Schedule:
    """Schedule definition: supplies window timing, duration and bursts."""

    guid: str
    name: str = ""
    duration: str | None = None
    sessions: tuple[Session, ...] = ()
    study_bursts: tuple[StudyBurst, ...] = ()

    def duration_period(self) -> Period | None:
        if not self.duration:
            return None
        return parse_period(self.duration)

    def time_window(self, guid: str) -> TimeWindow | None:
        for session in self.sessions:
            for window in session.time_windows:
                if window.guid == guid:
                    return window
        return None

    def study_burst(self, identifier: str) -> StudyBurst | None:
        for burst in self.study_bursts:
            if burst.identifier == identifier:
                return burst
        return None

    def session_event_ids(self, session: Session) -> list[str]:
        """Every event id that can trigger the session, including burst iterations."""
        event_ids = list(session.start_event_ids)
        for burst_id in session.study_burst_ids:
            burst = self.study_burst(burst_id)
            if burst is not None:
                event_ids.extend(burst.event_ids())
        return event_ids
