"""User directory interfaces and the in-memory implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from callrelay.backend.models import UserRecord
from callrelay.backend.security import hash_password, verify_password

TECHNICIAN = "Technician"
EXPERT = "Expert"

DEFAULT_USERS: tuple[tuple[str, str, str], ...] = (
    ("user1", "P", TECHNICIAN),
    ("user2", "P", EXPERT),
    ("user3", "p3", EXPERT),
)


class UserDirectory(Protocol):
    def authenticate(self, username: str, password: str) -> str | None:
        """Return the user's role when credentials match."""

    def role_of(self, username: str) -> str | None:
        """Return the user's role, or None for unknown users."""

    def list_by_role(self, role: str) -> list[UserRecord]:
        """Return every user holding ``role`` in directory order."""

    def list_users(self) -> list[UserRecord]:
        """Return every known user in directory order."""


@dataclass
class InMemoryUserDirectory:
    server_salt: str

    def __post_init__(self) -> None:
        self._users: dict[str, UserRecord] = {}

    def add_user(self, username: str, password: str, role: str) -> UserRecord:
        record = UserRecord(
            username=username,
            role=role,
            password_hash=hash_password(password, self.server_salt),
        )
        self._users[username] = record
        return record

    def authenticate(self, username: str, password: str) -> str | None:
        record = self._users.get(username)
        if record is None:
            return None
        if not verify_password(password, record.password_hash, self.server_salt):
            return None
        return record.role

    def role_of(self, username: str) -> str | None:
        record = self._users.get(username)
        return record.role if record is not None else None

    def list_by_role(self, role: str) -> list[UserRecord]:
        return [record for record in self._users.values() if record.role == role]

    def list_users(self) -> list[UserRecord]:
        return list(self._users.values())


def create_directory(
    server_salt: str,
    users: Iterable[tuple[str, str, str]] = DEFAULT_USERS,
) -> InMemoryUserDirectory:
    directory = InMemoryUserDirectory(server_salt=server_salt)
    for username, password, role in users:
        directory.add_user(username=username, password=password, role=role)
    return directory
