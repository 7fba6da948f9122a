"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class RelaySettings:
    server_salt: str
    host: str
    port: int
    offline_grace_seconds: float
    call_creator_role: str
    cors_origins: tuple[str, ...]
    log_level: str


def _split_origins(raw: str) -> tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def load_settings() -> RelaySettings:
    port_raw = os.getenv("CALLRELAY_PORT", "3000")
    grace_raw = os.getenv("CALLRELAY_OFFLINE_GRACE_SECONDS", "2")
    return RelaySettings(
        server_salt=os.getenv("CALLRELAY_SERVER_SALT", "dev-salt"),
        host=os.getenv("CALLRELAY_HOST", "127.0.0.1"),
        port=int(port_raw),
        offline_grace_seconds=float(grace_raw),
        call_creator_role=os.getenv("CALLRELAY_CALL_CREATOR_ROLE", "Technician"),
        cors_origins=_split_origins(os.getenv("CALLRELAY_CORS_ORIGINS", "*")),
        log_level=os.getenv("CALLRELAY_LOG_LEVEL", "INFO").upper(),
    )
