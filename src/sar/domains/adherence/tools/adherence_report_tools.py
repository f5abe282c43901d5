"""MCP tools for study adherence reports.

Callers pass the participant's adherence state and the study schedule as
wire documents (or file paths) and receive the report as JSON.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from sar.core.config.settings import Settings
from sar.domains.adherence.connectors import (
    StateLoadError,
    load_schedule_file,
    load_state_file,
    schedule_from_dict,
    state_from_dict,
)
from sar.domains.adherence.domain_logic.periods import InvalidPeriodError
from sar.domains.adherence.domain_logic.report_generator import StudyAdherenceReportGenerator

logger = logging.getLogger(__name__)


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def register_adherence_report_tools(
    mcp: FastMCP,
    generator: StudyAdherenceReportGenerator,
    settings: Settings,
) -> None:
    """Register study adherence report tools on the MCP server."""
    default_zone = settings.default_client_time_zone or None

    def _resolve(path: str) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = Path(settings.data_dir).expanduser() / candidate
        return candidate

    @mcp.tool
    async def study_adherence_report(state: dict[str, Any], schedule: dict[str, Any]) -> str:
        """Build a participant's week-by-week study adherence report.

        Args:
            state: Adherence state with ``now``, ``events``, ``metadata``,
                ``adherenceRecords`` and optional ``studyStartEventId`` /
                ``clientTimeZone``.
            schedule: Schedule with ``guid``, ``duration``, ``sessions`` and
                ``studyBursts``.
        """
        start_time = time.monotonic()
        try:
            adherence_state = state_from_dict(state, default_time_zone=default_zone)
            study_schedule = schedule_from_dict(schedule)
            report = generator.generate(adherence_state, study_schedule)
        except (StateLoadError, InvalidPeriodError) as exc:
            logger.warning("Rejected adherence report request: %s", exc)
            return _error(str(exc))
        logger.debug("study_adherence_report took %.1fms", (time.monotonic() - start_time) * 1000)
        return json.dumps(report.to_dict(), indent=2)

    @mcp.tool
    async def weekly_adherence_report(state: dict[str, Any], schedule: dict[str, Any]) -> str:
        """Return only the current week of the adherence report, with unfinished
        sessions from earlier weeks carried forward.

        Args:
            state: Adherence state document.
            schedule: Schedule document.
        """
        try:
            adherence_state = state_from_dict(state, default_time_zone=default_zone)
            study_schedule = schedule_from_dict(schedule)
            report = generator.generate(adherence_state, study_schedule)
        except (StateLoadError, InvalidPeriodError) as exc:
            logger.warning("Rejected weekly adherence report request: %s", exc)
            return _error(str(exc))
        payload = report.week_report.to_dict()
        payload["progression"] = report.progression.value
        return json.dumps(payload, indent=2)

    @mcp.tool
    async def study_adherence_report_from_files(state_path: str, schedule_path: str) -> str:
        """Build an adherence report from YAML or JSON files.

        Relative paths are resolved against the configured data directory.

        Args:
            state_path: Adherence state file.
            schedule_path: Schedule file.
        """
        try:
            adherence_state = load_state_file(_resolve(state_path), default_time_zone=default_zone)
            study_schedule = load_schedule_file(_resolve(schedule_path))
            report = generator.generate(adherence_state, study_schedule)
        except (StateLoadError, InvalidPeriodError) as exc:
            logger.warning("Rejected file-based adherence report: %s", exc)
            return _error(str(exc))
        return json.dumps(report.to_dict(), indent=2)
