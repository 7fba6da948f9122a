"""Error taxonomy for signaling failures reported back to a connection."""

from __future__ import annotations


class RelayError(Exception):
    """Base error; ``message`` is what the originating client receives."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MessageValidationError(RelayError):
    pass


class NotFoundError(RelayError):
    pass


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class ForbiddenError(RelayError):
    pass


class InvalidStateError(RelayError):
    pass
