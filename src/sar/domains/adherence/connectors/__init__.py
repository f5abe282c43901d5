"""Adherence state connectors: turn wire documents and files into engine inputs."""

from __future__ import annotations

from sar.domains.adherence.connectors.state_loader import (
    StateLoadError,
    load_schedule_file,
    load_state_file,
    schedule_from_dict,
    state_from_dict,
)

__all__ = [
    "StateLoadError",
    "load_schedule_file",
    "load_state_file",
    "schedule_from_dict",
    "state_from_dict",
]
