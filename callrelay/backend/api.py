"""FastAPI endpoints for login, call creation, listings and the signaling socket."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import load_settings
from .directory import EXPERT
from .errors import ForbiddenError
from .relay import RelayServer
from .state import build_call_snapshot, build_user_status

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(CamelModel):
    user_id: str
    role: str
    message: str


class CreateCallRequest(CamelModel):
    user_id: str = Field(min_length=1)


class CreateCallResponse(CamelModel):
    call_id: str


class UserStatus(CamelModel):
    id: str
    username: str
    role: str
    status: str


class ExpertsResponse(CamelModel):
    total_experts: int
    experts: list[UserStatus]


class UsersStatusResponse(CamelModel):
    total_users: int
    online_users: int
    users: list[UserStatus]


class CallsResponse(CamelModel):
    total_calls: int
    total_users: int
    calls: list[dict[str, Any]]


class HealthResponse(CamelModel):
    status: str
    timestamp: str
    uptime: float


def _default_server() -> RelayServer:
    return RelayServer(settings=load_settings())


def create_app(server: RelayServer | None = None) -> FastAPI:
    app = FastAPI(title="Call Relay API", version="0.1.0")
    relay_server = server if server is not None else _default_server()
    app.state.relay_server = relay_server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(relay_server.settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    def get_server() -> RelayServer:
        return relay_server

    def user_statuses(local_server: RelayServer, role: str | None = None) -> list[UserStatus]:
        directory = local_server.directory
        records = directory.list_users() if role is None else directory.list_by_role(role)
        return [UserStatus.model_validate(build_user_status(record, local_server.presence)) for record in records]

    @app.post("/login", response_model=LoginResponse)
    def login(payload: LoginRequest, local_server: RelayServer = Depends(get_server)) -> LoginResponse:
        role = local_server.directory.authenticate(username=payload.username, password=payload.password)
        if role is None:
            raise HTTPException(status_code=401, detail="Invalid username or password")
        return LoginResponse(user_id=payload.username, role=role, message="Login successful")

    @app.post("/api/create-call", response_model=CreateCallResponse)
    def create_call(
        payload: CreateCallRequest,
        local_server: RelayServer = Depends(get_server),
    ) -> CreateCallResponse:
        try:
            session = local_server.sessions.create_pending_session(initiator_id=payload.user_id)
        except ForbiddenError as exc:
            raise HTTPException(status_code=403, detail=exc.message) from exc
        return CreateCallResponse(call_id=session.id)

    @app.get("/api/experts", response_model=ExpertsResponse)
    def list_experts(local_server: RelayServer = Depends(get_server)) -> ExpertsResponse:
        experts = user_statuses(local_server, role=EXPERT)
        return ExpertsResponse(total_experts=len(experts), experts=experts)

    @app.get("/api/calls", response_model=CallsResponse)
    def list_calls(local_server: RelayServer = Depends(get_server)) -> CallsResponse:
        now = datetime.now(timezone.utc)
        calls = [build_call_snapshot(session, now=now) for session in local_server.sessions.sessions()]
        return CallsResponse(
            total_calls=len(calls),
            total_users=len(local_server.presence.online_users()),
            calls=calls,
        )

    @app.get("/api/users/status", response_model=UsersStatusResponse)
    def list_user_status(local_server: RelayServer = Depends(get_server)) -> UsersStatusResponse:
        users = user_statuses(local_server)
        return UsersStatusResponse(
            total_users=len(users),
            online_users=sum(1 for user in users if user.status == "online"),
            users=users,
        )

    @app.get("/health", response_model=HealthResponse)
    def health(local_server: RelayServer = Depends(get_server)) -> HealthResponse:
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            uptime=local_server.uptime(),
        )

    @app.websocket("/ws")
    async def signaling_ws(websocket: WebSocket, local_server: RelayServer = Depends(get_server)) -> None:
        connection = await local_server.open(websocket)
        writer = asyncio.create_task(local_server.hub.pump(connection))
        try:
            while True:
                raw = await websocket.receive_text()
                local_server.receive(connection.id, raw)
        except WebSocketDisconnect as exc:
            logger.debug("Websocket %s closed with code %s", connection.id, exc.code)
        finally:
            local_server.close(connection.id)
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer

    return app


app = create_app()
