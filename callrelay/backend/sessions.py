"""Call session lifecycle: pending -> active -> destroyed."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from callrelay.backend.annotations import AnnotationStore
from callrelay.backend.directory import UserDirectory
from callrelay.backend.errors import ForbiddenError, InvalidStateError, NotFoundError, UserNotFoundError
from callrelay.backend.hub import ConnectionHub
from callrelay.backend.models import Annotation, CallStatus
from callrelay.backend.presence import PresenceRegistry

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CallSession:
    id: str
    status: CallStatus
    participants: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utc_now)
    annotations: AnnotationStore = field(default_factory=AnnotationStore)

    def add_participant(self, user_id: str) -> bool:
        if user_id in self.participants:
            return False
        self.participants.append(user_id)
        return True

    def remove_participant(self, user_id: str) -> bool:
        if user_id not in self.participants:
            return False
        self.participants.remove(user_id)
        return True


class CallSessionManager:
    def __init__(
        self,
        hub: ConnectionHub,
        presence: PresenceRegistry,
        directory: UserDirectory,
        call_creator_role: str,
    ) -> None:
        self._hub = hub
        self._presence = presence
        self._directory = directory
        self._call_creator_role = call_creator_role
        self._sessions: dict[str, CallSession] = {}

    def get(self, call_id: str) -> CallSession | None:
        return self._sessions.get(call_id)

    def sessions(self) -> list[CallSession]:
        return list(self._sessions.values())

    def sessions_for(self, user_id: str) -> list[CallSession]:
        return [session for session in self._sessions.values() if user_id in session.participants]

    def create_pending_session(self, initiator_id: str) -> CallSession:
        if self._directory.role_of(initiator_id) != self._call_creator_role:
            raise ForbiddenError(f"Only {self._call_creator_role}s can create calls")
        session = CallSession(id=str(uuid.uuid4()), status=CallStatus.PENDING, participants=[initiator_id])
        self._sessions[session.id] = session
        logger.info("Call %s created by %s", session.id, initiator_id)
        return session

    def request_call(self, call_id: str, from_user: str, to_user: str) -> None:
        session = self._sessions.get(call_id)
        if session is None:
            raise NotFoundError("Call not found")
        if session.status is not CallStatus.PENDING:
            raise InvalidStateError("Invalid or non-pending call")
        target = self._presence.resolve(to_user)
        if target is None:
            raise UserNotFoundError(to_user)
        logger.info("Call request from %s to %s for call %s", from_user, to_user, call_id)
        self._hub.send(target, "call-request", {"callId": call_id, "from": from_user})

    def respond_to_call(
        self,
        call_id: str,
        from_user: str,
        to_user: str,
        accepted: bool,
        connection_id: str,
    ) -> None:
        session = self._sessions.get(call_id)
        if session is None:
            raise NotFoundError("Call not found")
        target = self._presence.resolve(to_user)
        if target is None:
            raise UserNotFoundError(to_user)
        if session.status is not CallStatus.PENDING:
            raise InvalidStateError("Call is not awaiting a response")
        if accepted and from_user in session.participants:
            raise InvalidStateError(f"User {from_user} already joined call {call_id}")

        logger.info(
            "Call response from %s to %s: %s",
            from_user,
            to_user,
            "Accepted" if accepted else "Cancelled",
        )
        self._hub.send(target, "call-response", {"callId": call_id, "from": from_user, "accepted": accepted})
        if not accepted:
            self._destroy(call_id)
            return

        session.status = CallStatus.ACTIVE
        session.add_participant(from_user)
        self._hub.join_group(call_id, connection_id)
        if to_user in session.participants:
            self._hub.join_group(call_id, target)
        self._hub.send_group(
            call_id,
            "user-joined",
            {
                "callId": call_id,
                "userId": from_user,
                "role": self._directory.role_of(from_user),
                "totalUsers": len(session.participants),
            },
        )

    def join_direct(self, call_id: str, user_id: str, role: str, connection_id: str) -> CallSession:
        """Join without a request/response handshake, creating the call if needed."""
        if self._presence.resolve(user_id) != connection_id:
            self._presence.register(user_id, connection_id)

        session = self._sessions.get(call_id)
        if session is None:
            session = CallSession(id=call_id, status=CallStatus.ACTIVE)
            self._sessions[call_id] = session
            logger.info("Call %s started by direct join of %s", call_id, user_id)
        session.add_participant(user_id)
        self._hub.join_group(call_id, connection_id)

        self._hub.send_group(
            call_id,
            "user-joined",
            {"callId": call_id, "userId": user_id, "role": role, "totalUsers": len(session.participants)},
            exclude=connection_id,
        )
        self._hub.send(
            connection_id,
            "existing-users",
            {"callId": call_id, "users": [uid for uid in session.participants if uid != user_id]},
        )
        self._hub.send(
            connection_id,
            "existing-annotations",
            {"callId": call_id, "annotations": session.annotations.snapshot()},
        )
        logger.info("Call %s now has %d users: %s", call_id, len(session.participants), session.participants)
        return session

    def leave(self, call_id: str, user_id: str) -> None:
        session = self._sessions.get(call_id)
        if session is None:
            return
        session.remove_participant(user_id)
        if not session.participants:
            self._destroy(call_id)
        else:
            logger.info("Call %s now has %d users: %s", call_id, len(session.participants), session.participants)

    def end_call(self, call_id: str, user_id: str | None, to_user: str | None, connection_id: str) -> None:
        logger.info("User %s ending call %s", user_id, call_id)
        target = self._presence.resolve(to_user)
        if target is not None:
            self._hub.send(target, "call-ended", {"callId": call_id, "from": user_id})
        self._hub.leave_group(call_id, connection_id)
        if user_id is not None:
            self.leave(call_id, user_id)
        self._hub.send(
            connection_id,
            "call-ended-successfully",
            {"callId": call_id, "message": "Call ended. You are still connected."},
        )

    def remove_user_everywhere(self, user_id: str) -> None:
        for session in self.sessions_for(user_id):
            self._hub.send_group(session.id, "user-left", {"callId": session.id, "userId": user_id})
            self.leave(session.id, user_id)

    def upsert_annotation(self, call_id: str, annotation: Annotation, connection_id: str) -> Annotation | None:
        session = self._sessions.get(call_id)
        if session is None:
            logger.debug("Ignoring annotation %s for unknown call %s", annotation.id, call_id)
            return None
        stored = session.annotations.upsert(annotation)
        self._hub.send_group(call_id, "annotation", annotation.to_wire(), exclude=connection_id)
        return stored

    def _destroy(self, call_id: str) -> None:
        if self._sessions.pop(call_id, None) is not None:
            self._hub.drop_group(call_id)
            logger.info("Call %s removed", call_id)
