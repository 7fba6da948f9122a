"""Domain models for presence, call sessions and directory contracts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class CallStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


@dataclass(frozen=True)
class PresenceEntry:
    user_id: str
    connection_id: str


@dataclass(frozen=True)
class UserRecord:
    username: str
    role: str
    password_hash: str


@dataclass(frozen=True)
class Annotation:
    id: str
    text: str
    x: float
    y: float
    author_id: str
    object_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "from": self.author_id,
            "objectId": self.object_id,
        }
