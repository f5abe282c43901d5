"""Roll-up of assessment-level records into a session-level record."""

from __future__ import annotations

from datetime import datetime

from sar.domains.adherence.domain_logic.adherence_models import AdherenceRecord


class SessionState:
    """Tracks the records of the assessments in one session instance.

    Usage::

        state = SessionState(assessment_count=2)
        for record in assessment_records:
            state.add(record)
        session_record = state.session_record("sessionInstanceGuid")
    """

    def __init__(self, assessment_count: int) -> None:
        self._assessment_count = assessment_count
        self._records: list[AdherenceRecord] = []

    def add(self, record: AdherenceRecord) -> None:
        self._records.append(record)

    @property
    def is_unstarted(self) -> bool:
        return all(record.is_unstarted for record in self._records)

    @property
    def is_declined(self) -> bool:
        declined = sum(1 for record in self._records if record.declined)
        return self._assessment_count > 0 and declined >= self._assessment_count

    @property
    def is_finished(self) -> bool:
        finished = sum(1 for record in self._records if record.finished_on is not None)
        return self._assessment_count > 0 and finished >= self._assessment_count

    @property
    def earliest(self) -> datetime | None:
        started = [r.started_on for r in self._records if r.started_on is not None]
        return min(started) if started else None

    @property
    def latest(self) -> datetime | None:
        finished = [r.finished_on for r in self._records if r.finished_on is not None]
        return max(finished) if finished else None

    def session_record(self, instance_guid: str) -> AdherenceRecord | None:
        """Derive the session record, or None if nothing has happened yet."""
        if self.is_declined:
            return AdherenceRecord(
                instance_guid=instance_guid,
                started_on=self.earliest,
                finished_on=self.latest,
                declined=True,
            )
        if self.is_unstarted:
            return None
        if self.is_finished:
            return AdherenceRecord(
                instance_guid=instance_guid,
                started_on=self.earliest,
                finished_on=self.latest,
            )
        # Some assessments begun, not all finished
        return AdherenceRecord(
            instance_guid=instance_guid,
            started_on=self.earliest or self.latest,
        )
