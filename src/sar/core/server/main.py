"""Server entry point: ``sar-server`` or ``python -m sar.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address
from pathlib import Path

from sar.core.config.settings import Settings, get_settings
from sar.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse to serve participant adherence data beyond this machine.

    Raises:
        RuntimeError: ``sar_host`` is not a loopback address and
            ``sar_allow_insecure_bind`` is not set.
    """
    if settings.sar_allow_insecure_bind or _is_loopback_host(settings.sar_host):
        return
    raise RuntimeError(
        f"Refusing to serve adherence reports on {settings.sar_host!r}: the report tools "
        "have no auth layer and expose participant schedules and completion records. "
        "Bind to 127.0.0.1, or set SAR_ALLOW_INSECURE_BIND=true to override (unsafe)."
    )


def run() -> None:
    """Start the adherence report server over Streamable HTTP."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.sar_log_level.upper(), logging.INFO))
    check_bind_address(settings)

    logger.info(
        "Serving adherence reports on %s:%d (state files under %s, default client zone %s)",
        settings.sar_host,
        settings.sar_port,
        Path(settings.data_dir).resolve(),
        settings.default_client_time_zone or "none",
    )
    create_app(settings_override=settings).run(
        transport="streamable-http",
        host=settings.sar_host,
        port=settings.sar_port,
    )


if __name__ == "__main__":
    run()
