import asyncio

from callrelay.backend.hub import Connection, ConnectionHub


def _drain(connection: Connection) -> list[dict]:
    messages = []
    while not connection.outbox.empty():
        messages.append(connection.outbox.get_nowait())
    return messages


def test_send_enqueues_envelope_for_known_connection() -> None:
    hub = ConnectionHub()
    connection = hub.open()

    delivered = hub.send(connection.id, "pong", {})

    assert delivered is True
    assert _drain(connection) == [{"event": "pong", "data": {}}]


def test_send_to_unknown_connection_is_dropped() -> None:
    hub = ConnectionHub()

    assert hub.send("missing", "pong", {}) is False


def test_broadcast_reaches_every_connection() -> None:
    hub = ConnectionHub()
    first = hub.open()
    second = hub.open()

    hub.broadcast("user-status-change", {"userId": "user1", "status": "online"})

    assert len(_drain(first)) == 1
    assert len(_drain(second)) == 1


def test_send_group_skips_excluded_and_non_members() -> None:
    hub = ConnectionHub()
    author = hub.open()
    peer = hub.open()
    outsider = hub.open()
    hub.join_group("call-1", author.id)
    hub.join_group("call-1", peer.id)

    hub.send_group("call-1", "annotation", {"id": "a1"}, exclude=author.id)

    assert _drain(author) == []
    assert _drain(peer) == [{"event": "annotation", "data": {"id": "a1"}}]
    assert _drain(outsider) == []


def test_disconnect_removes_connection_from_groups_and_closes_outbox() -> None:
    hub = ConnectionHub()
    connection = hub.open()
    hub.join_group("call-1", connection.id)

    closed = hub.disconnect(connection.id)

    assert closed is connection
    assert hub.get(connection.id) is None
    assert hub.group_members("call-1") == set()
    assert _drain(connection) == [None]
    assert hub.disconnect(connection.id) is None


def test_join_group_ignores_unknown_connection() -> None:
    hub = ConnectionHub()

    hub.join_group("call-1", "missing")

    assert hub.group_members("call-1") == set()


class _FakeWebSocket:
    def __init__(self, fail_after: int | None = None, error: Exception | None = None) -> None:
        self.sent: list[dict] = []
        self.fail_after = fail_after
        self.error = error if error is not None else RuntimeError("socket closed")

    async def send_json(self, data: dict) -> None:
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise self.error
        self.sent.append(data)


def test_pump_writes_queued_envelopes_until_disconnect() -> None:
    async def scenario() -> _FakeWebSocket:
        hub = ConnectionHub()
        websocket = _FakeWebSocket()
        connection = hub.open(websocket=websocket)
        hub.send(connection.id, "pong", {})
        hub.send(connection.id, "error", {"message": "x"})
        hub.disconnect(connection.id)
        await hub.pump(connection)
        return websocket

    websocket = asyncio.run(scenario())

    assert [envelope["event"] for envelope in websocket.sent] == ["pong", "error"]


def test_pump_stops_on_stale_socket() -> None:
    async def scenario() -> _FakeWebSocket:
        hub = ConnectionHub()
        websocket = _FakeWebSocket(fail_after=1)
        connection = hub.open(websocket=websocket)
        hub.send(connection.id, "pong", {})
        hub.send(connection.id, "pong", {})
        await asyncio.wait_for(hub.pump(connection), timeout=1)
        return websocket

    websocket = asyncio.run(scenario())

    assert len(websocket.sent) == 1


def test_pump_returns_when_socket_write_fails_unexpectedly() -> None:
    async def scenario() -> _FakeWebSocket:
        hub = ConnectionHub()
        websocket = _FakeWebSocket(fail_after=0, error=ConnectionResetError("peer reset"))
        connection = hub.open(websocket=websocket)
        hub.send(connection.id, "pong", {})
        hub.send(connection.id, "pong", {})
        await asyncio.wait_for(hub.pump(connection), timeout=1)
        return websocket

    websocket = asyncio.run(scenario())

    assert websocket.sent == []
