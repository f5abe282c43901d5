"""Lookup of participant events by id, expressed in the client's time zone."""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sar.domains.adherence.domain_logic.adherence_models import AdherenceState, ensure_aware

logger = logging.getLogger(__name__)


def resolve_time_zone(name: str | None) -> ZoneInfo | None:
    """Return the named IANA zone, or None if the name is empty or unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Ignoring unknown client time zone %r", name)
        return None


class EventIndex:
    """Timezone-adjusted event timestamps keyed by event id.

    When the state carries a valid client time zone every timestamp (and
    ``now``) is re-expressed in that zone; otherwise each keeps its own offset.
    Calendar dates are always taken from the adjusted value.
    """

    def __init__(self, state: AdherenceState) -> None:
        self._zone = resolve_time_zone(state.client_time_zone)
        self._study_start_event_id = state.study_start_event_id
        self._now = self.localize(state.now)
        self._timestamps: dict[str, datetime] = {}
        for event in state.events:
            self._timestamps[event.event_id] = self.localize(event.timestamp)
        self._referenced = [m.start_event_id for m in state.metadata]

    def localize(self, value: datetime) -> datetime:
        value = ensure_aware(value)
        if self._zone is not None:
            return value.astimezone(self._zone)
        return value

    @property
    def time_zone(self) -> tzinfo:
        """Zone used to place window start times on the calendar."""
        return self._zone if self._zone is not None else self._now.tzinfo

    @property
    def now(self) -> datetime:
        return self._now

    @property
    def today(self) -> date:
        return self._now.date()

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._timestamps

    def timestamp(self, event_id: str) -> datetime | None:
        return self._timestamps.get(event_id)

    def local_date(self, event_id: str) -> date | None:
        ts = self._timestamps.get(event_id)
        return ts.date() if ts is not None else None

    def days_since_event(self, event_id: str) -> int | None:
        """Calendar days from the event's date to today (negative if in the future)."""
        event_date = self.local_date(event_id)
        if event_date is None:
            return None
        return (self.today - event_date).days

    def resolve_study_start_event(self) -> datetime | None:
        """Timestamp of the study start, which anchors week numbering.

        The configured study start event if present; the earliest event when
        none is configured; None when the configured event has not happened.
        """
        if self._study_start_event_id:
            return self._timestamps.get(self._study_start_event_id)
        return self.earliest_event()

    def earliest_event(self) -> datetime | None:
        """Timestamp of the first recorded event, or None when there are none."""
        if not self._timestamps:
            return None
        return min(self._timestamps.values())

    def unset_event_ids(self) -> set[str]:
        """Event ids referenced by timeline metadata with no recorded event."""
        return {event_id for event_id in self._referenced if event_id not in self._timestamps}
