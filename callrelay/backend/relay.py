"""Inbound event dispatch and the relay server that owns all signaling state."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from fastapi import WebSocket
from pydantic import ValidationError

from callrelay.backend.config import RelaySettings
from callrelay.backend.directory import UserDirectory, create_directory
from callrelay.backend.errors import MessageValidationError, RelayError, UserNotFoundError
from callrelay.backend.hub import Connection, ConnectionHub
from callrelay.backend.models import Annotation
from callrelay.backend.presence import PresenceRegistry, Scheduler, loop_scheduler
from callrelay.backend.protocol import (
    AnnotationMessage,
    AnswerMessage,
    CallRequestMessage,
    CallResponseMessage,
    EndCallMessage,
    IceCandidateMessage,
    InboundMessage,
    JoinCallMessage,
    LogoutMessage,
    OfferMessage,
    PingMessage,
    RegisterMessage,
    RelayedMessage,
)
from callrelay.backend.sessions import CallSessionManager

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], None]


class SignalingRelay:
    """Routes one inbound event at a time to the presence and session layers."""

    def __init__(self, hub: ConnectionHub, presence: PresenceRegistry, sessions: CallSessionManager) -> None:
        self._hub = hub
        self._presence = presence
        self._sessions = sessions
        self._routes: dict[str, tuple[type[InboundMessage], Handler]] = {
            "register": (RegisterMessage, self._on_register),
            "reconnect-after-call": (RegisterMessage, self._on_register),
            "call-request": (CallRequestMessage, self._on_call_request),
            "call-response": (CallResponseMessage, self._on_call_response),
            "join-call": (JoinCallMessage, self._on_join_call),
            "offer": (OfferMessage, self.forward),
            "answer": (AnswerMessage, self.forward),
            "ice-candidate": (IceCandidateMessage, self.forward),
            "annotation": (AnnotationMessage, self._on_annotation),
            "end-call": (EndCallMessage, self._on_end_call),
            "logout": (LogoutMessage, self._on_logout),
            "ping": (PingMessage, self._on_ping),
        }

    def handle_text(self, connection_id: str, raw: str) -> None:
        try:
            envelope = json.loads(raw)
        except ValueError:
            self._send_error(connection_id, "Malformed message")
            return
        if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
            self._send_error(connection_id, "Malformed message")
            return
        self.dispatch(connection_id, envelope["event"], envelope.get("data"))

    def dispatch(self, connection_id: str, event: str, data: Any) -> None:
        route = self._routes.get(event)
        if route is None:
            self._send_error(connection_id, f"Unknown event: {event}")
            return
        model, handler = route
        logger.debug("Event %s from %s: %s", event, connection_id, data)
        try:
            message = self._parse(model, data)
            handler(connection_id, message)
        except RelayError as exc:
            logger.info("Rejected %s from %s: %s", event, connection_id, exc.message)
            self._send_error(connection_id, exc.message)

    def forward(self, connection_id: str, message: RelayedMessage) -> None:
        """Forward an opaque negotiation payload to the resolved target."""
        target = self._presence.resolve(message.to)
        if target is None:
            raise UserNotFoundError(message.to)
        logger.info("Forwarding %s in call %s to %s", message.forward_event, message.call_id, message.to)
        self._hub.send(
            target,
            message.forward_event,
            {
                message.payload_field: getattr(message, message.payload_field),
                "from": self._identity(connection_id),
                "callId": message.call_id,
            },
        )

    def _parse(self, model: type[InboundMessage], data: Any) -> InboundMessage:
        try:
            return model.model_validate(data if data is not None else {})
        except ValidationError as exc:
            raise MessageValidationError(model.missing_message) from exc

    def _identity(self, connection_id: str) -> str | None:
        connection = self._hub.get(connection_id)
        return connection.user_id if connection is not None else None

    def _bind(self, connection_id: str, user_id: str, role: str | None = None) -> None:
        connection = self._hub.get(connection_id)
        if connection is None:
            return
        connection.user_id = user_id
        if role is not None:
            connection.role = role

    def _send_error(self, connection_id: str, message: str) -> None:
        self._hub.send(connection_id, "error", {"message": message})

    def _on_register(self, connection_id: str, message: RegisterMessage) -> None:
        self._bind(connection_id, message.user_id)
        self._presence.register(message.user_id, connection_id)

    def _on_call_request(self, connection_id: str, message: CallRequestMessage) -> None:
        self._sessions.request_call(message.call_id, message.from_user, message.to)

    def _on_call_response(self, connection_id: str, message: CallResponseMessage) -> None:
        self._sessions.respond_to_call(
            message.call_id,
            message.from_user,
            message.to,
            message.accepted,
            connection_id,
        )

    def _on_join_call(self, connection_id: str, message: JoinCallMessage) -> None:
        self._bind(connection_id, message.user_id, message.role)
        self._sessions.join_direct(message.call_id, message.user_id, message.role, connection_id)

    def _on_annotation(self, connection_id: str, message: AnnotationMessage) -> None:
        annotation = Annotation(
            id=message.id,
            text=message.text,
            x=message.x,
            y=message.y,
            author_id=message.from_user,
            object_id=message.object_id,
        )
        self._sessions.upsert_annotation(message.call_id, annotation, connection_id)

    def _on_end_call(self, connection_id: str, message: EndCallMessage) -> None:
        self._sessions.end_call(message.call_id, self._identity(connection_id), message.to, connection_id)

    def _on_logout(self, connection_id: str, message: LogoutMessage) -> None:
        connection = self._hub.get(connection_id)
        if connection is not None and connection.user_id == message.user_id:
            connection.user_id = None
        self._presence.logout(message.user_id)

    def _on_ping(self, connection_id: str, message: PingMessage) -> None:
        self._hub.send(connection_id, "pong", {})


class RelayServer:
    """Single owner of the hub, presence registry, directory and call sessions."""

    def __init__(
        self,
        settings: RelaySettings,
        directory: UserDirectory | None = None,
        scheduler: Scheduler = loop_scheduler,
    ) -> None:
        self.settings = settings
        self.started_at = time.monotonic()
        self.hub = ConnectionHub()
        self.directory = directory if directory is not None else create_directory(settings.server_salt)
        self.presence = PresenceRegistry(
            hub=self.hub,
            grace_seconds=settings.offline_grace_seconds,
            scheduler=scheduler,
        )
        self.sessions = CallSessionManager(
            hub=self.hub,
            presence=self.presence,
            directory=self.directory,
            call_creator_role=settings.call_creator_role,
        )
        self.relay = SignalingRelay(hub=self.hub, presence=self.presence, sessions=self.sessions)

    async def open(self, websocket: WebSocket) -> Connection:
        return await self.hub.connect(websocket)

    def receive(self, connection_id: str, raw: str) -> None:
        self.relay.handle_text(connection_id, raw)

    def close(self, connection_id: str) -> None:
        """Drop the connection and arm the grace-period offline check."""
        connection = self.hub.disconnect(connection_id)
        if connection is None or connection.user_id is None:
            return
        self.presence.schedule_offline_check(
            user_id=connection.user_id,
            connection_id=connection_id,
            on_offline=self.sessions.remove_user_everywhere,
        )

    def uptime(self) -> float:
        return time.monotonic() - self.started_at
