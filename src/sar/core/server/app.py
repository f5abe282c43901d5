"""Study Adherence MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from sar.core.config.settings import Settings, get_settings
from sar.domains.adherence.domain_logic.report_generator import StudyAdherenceReportGenerator
from sar.domains.adherence.tools.adherence_report_tools import register_adherence_report_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Study Adherence Reports"
SERVER_VERSION = "0.1.0"


def create_app(*, settings_override: Settings | None = None) -> FastMCP:
    """Create and configure the study adherence MCP server.

    1. Creates the FastMCP server instance
    2. Creates the report generator
    3. Registers the health check and adherence report tools
    """
    settings = settings_override if settings_override is not None else get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Study adherence reporting server. Aggregates a participant's scheduled "
            "sessions, activity events and completion records into week-by-week "
            "adherence reports with the current week and next upcoming activity."
        ),
    )

    generator = StudyAdherenceReportGenerator()

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "default_client_time_zone": settings.default_client_time_zone or None,
        }

    register_adherence_report_tools(server, generator, settings)
    logger.info("Adherence report tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when accessed (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
