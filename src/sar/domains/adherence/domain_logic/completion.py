"""Completion state classification and adherence arithmetic."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sar.domains.adherence.domain_logic.adherence_models import AdherenceRecord
from sar.domains.adherence.domain_logic.report_models import (
    ADHERENT_STATES,
    EventStreamWindow,
    SessionCompletionState,
)


@dataclass(frozen=True)
class WindowContext:
    """Facts about one window at ``now``, evaluated by the decision table."""

    declined: bool
    finished: bool
    started: bool
    before_start: bool
    past_end: bool


# Evaluated top to bottom; the first matching row wins.
DECISION_TABLE: tuple[tuple[Callable[[WindowContext], bool], SessionCompletionState], ...] = (
    (lambda c: c.declined, SessionCompletionState.DECLINED),
    (lambda c: c.finished, SessionCompletionState.COMPLETED),
    (lambda c: c.started and c.past_end, SessionCompletionState.ABANDONED),
    (lambda c: c.started, SessionCompletionState.STARTED),
    (lambda c: c.before_start, SessionCompletionState.NOT_YET_AVAILABLE),
    (lambda c: c.past_end, SessionCompletionState.EXPIRED),
)


def classify_window(
    record: AdherenceRecord | None,
    now: datetime,
    window_start: datetime,
    window_end: datetime | None,
    *,
    persistent: bool = False,
) -> SessionCompletionState:
    """Return the completion state of a window.

    Persistent windows and windows without an end never expire.
    """
    context = WindowContext(
        declined=record is not None and record.declined,
        finished=record is not None and record.finished_on is not None,
        started=record is not None and record.started_on is not None,
        before_start=now < window_start,
        past_end=window_end is not None and not persistent and now >= window_end,
    )
    for predicate, state in DECISION_TABLE:
        if predicate(context):
            return state
    return SessionCompletionState.UNSTARTED


def calculate_adherence_percent(windows: Iterable[EventStreamWindow]) -> int | None:
    """Percentage of windows that were completed or declined, rounded half up.

    Returns None when there are no windows.
    """
    total = 0
    adherent = 0
    for window in windows:
        total += 1
        if window.state in ADHERENT_STATES:
            adherent += 1
    if total == 0:
        return None
    # Integer half-up rounding of 100 * adherent / total
    return (adherent * 200 + total) // (total * 2)
