"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Study adherence reporting server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback; participant adherence data should not be exposed
    # to your LAN/WAN unless you opt into `0.0.0.0` explicitly.
    sar_host: str = "127.0.0.1"
    sar_port: int = 8001
    sar_log_level: str = "info"
    # If binding to non-loopback, refuse to start unless this is set true
    # (there is currently no auth layer).
    sar_allow_insecure_bind: bool = False

    # Reporting
    # IANA zone applied to states that do not carry a clientTimeZone
    default_client_time_zone: str = ""
    # Base directory for relative state/schedule paths given to file tools
    data_dir: str = "."


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
