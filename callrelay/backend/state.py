"""Snapshot builders for call and user listings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from callrelay.backend.models import UserRecord
from callrelay.backend.presence import PresenceRegistry
from callrelay.backend.sessions import CallSession


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_call_snapshot(session: CallSession, now: datetime | None = None) -> dict[str, Any]:
    """Return the JSON projection of a live call for the listing endpoint."""
    current = now if now is not None else _utc_now()
    duration = current - session.started_at
    return {
        "callId": session.id,
        "users": list(session.participants),
        "startTime": session.started_at.isoformat(),
        "durationMs": int(duration.total_seconds() * 1000),
        "annotations": session.annotations.snapshot(),
        "status": session.status.value,
    }


def build_user_status(record: UserRecord, presence: PresenceRegistry) -> dict[str, Any]:
    return {
        "id": record.username,
        "username": record.username,
        "role": record.role,
        "status": "online" if presence.is_online(record.username) else "offline",
    }
