"""Dashboard configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_PREFIX = "NAUTILUS_"


@dataclass
class DashboardConfig:
    """Settings for the dashboard API.

    All fields can be overridden via environment variables prefixed with
    ``NAUTILUS_`` (e.g., ``NAUTILUS_PORT=9000``). ``database_url`` also
    falls back to the plain ``DATABASE_URL`` variable.
    """

    host: str = "127.0.0.1"
    port: int = 5000
    database_url: str = "sqlite:///nautilus.db"
    dev_mode: bool = False
    require_auth: bool = False
    scheduler_enabled: bool = False
    cors_origins: str = "http://localhost:5173"  # comma-separated, dev mode only

    @classmethod
    def from_env(cls) -> DashboardConfig:
        """Create config from environment variables."""
        kwargs: dict[str, str | int | bool] = {}
        for fld in cls.__dataclass_fields__:
            env_key = f"{ENV_PREFIX}{fld.upper()}"
            val = os.environ.get(env_key)
            if val is None and fld == "database_url":
                val = os.environ.get("DATABASE_URL")
            if val is None:
                continue
            fld_type = cls.__dataclass_fields__[fld].type
            if fld_type == "int":
                kwargs[fld] = int(val)
            elif fld_type == "bool":
                kwargs[fld] = val.lower() in ("1", "true", "yes")
            else:
                kwargs[fld] = val
        return cls(**kwargs)
