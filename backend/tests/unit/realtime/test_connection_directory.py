import pytest

from app.core.constants import CHAT_NAMESPACE, NOTIFICATION_NAMESPACE
from app.realtime.connection import Connection, ConnectionUser
from app.realtime.directory import ConnectionDirectory

from tests.helpers.realtime import FakeWebSocket


def _bound(directory: ConnectionDirectory, user_id: str, namespace: str = CHAT_NAMESPACE):
    ws = FakeWebSocket()
    connection = Connection(ws, namespace)
    connection.bind(ConnectionUser(id=user_id, username=user_id))
    directory.register(connection)
    return connection, ws


class TestListConnections:
    def test_namespace_and_user_filters(self) -> None:
        directory = ConnectionDirectory()
        a1, _ = _bound(directory, "a")
        a2, _ = _bound(directory, "a")
        b1, _ = _bound(directory, "b")
        note, _ = _bound(directory, "a", NOTIFICATION_NAMESPACE)
        anonymous = Connection(FakeWebSocket(), CHAT_NAMESPACE)
        directory.register(anonymous)

        assert {c.id for c in directory.list_connections(CHAT_NAMESPACE)} == {
            a1.id,
            a2.id,
            b1.id,
            anonymous.id,
        }
        assert {c.id for c in directory.list_connections(CHAT_NAMESPACE, ["a"])} == {a1.id, a2.id}
        assert [c.id for c in directory.list_connections(NOTIFICATION_NAMESPACE)] == [note.id]
        assert directory.list_connections(CHAT_NAMESPACE, []) == []

    def test_closed_and_unregistered_excluded(self) -> None:
        directory = ConnectionDirectory()
        live, _ = _bound(directory, "a")
        dead, _ = _bound(directory, "a")
        gone, _ = _bound(directory, "a")
        dead.closed = True
        directory.unregister(gone)

        assert [c.id for c in directory.list_connections(CHAT_NAMESPACE, ["a"])] == [live.id]
        assert directory.get(CHAT_NAMESPACE, dead.id) is None
        assert directory.get(CHAT_NAMESPACE, live.id) is live
        assert directory.count(CHAT_NAMESPACE) == 1

    def test_rebinding_to_another_user_drops_rooms(self) -> None:
        connection = Connection(FakeWebSocket(), CHAT_NAMESPACE)
        connection.bind(ConnectionUser(id="a", username="a"))
        connection.join("room-1")
        connection.bind(ConnectionUser(id="a", username="a"))
        assert connection.in_room("room-1")

        connection.bind(ConnectionUser(id="b", username="b"))
        assert connection.rooms == set()


class TestEmit:
    @pytest.mark.asyncio
    async def test_emit_to_room_with_exclude(self) -> None:
        directory = ConnectionDirectory()
        a, ws_a = _bound(directory, "a")
        b, ws_b = _bound(directory, "b")
        c, ws_c = _bound(directory, "c")
        a.join("r1")
        b.join("r1")

        sent = await directory.emit_to_room(CHAT_NAMESPACE, "r1", "newRead", {"x": 1}, exclude=a.id)

        assert sent == 1
        assert ws_a.sent == []
        assert ws_b.sent == [{"event": "newRead", "data": {"x": 1}}]
        assert ws_c.sent == []
        assert directory.user_ids_in_room(CHAT_NAMESPACE, "r1") == {"a", "b"}

    @pytest.mark.asyncio
    async def test_emit_to_users_reaches_every_connection(self) -> None:
        directory = ConnectionDirectory()
        _, ws1 = _bound(directory, "a")
        _, ws2 = _bound(directory, "a")
        _, other = _bound(directory, "b")

        sent = await directory.emit_to_users(CHAT_NAMESPACE, ["a"], "getChats", [])

        assert sent == 2
        assert ws1.frames("getChats") == [[]]
        assert ws2.frames("getChats") == [[]]
        assert other.sent == []

    @pytest.mark.asyncio
    async def test_failed_send_marks_connection_closed(self) -> None:
        directory = ConnectionDirectory()
        connection, ws = _bound(directory, "a")
        ws.closed = True

        assert await connection.emit("getChats", []) is False
        assert connection.closed is True
        assert directory.list_connections(CHAT_NAMESPACE) == []
        # Later sends are no-ops
        assert await connection.emit("getChats", []) is False


class TestCloseUserConnections:
    @pytest.mark.asyncio
    async def test_closes_siblings_in_namespace_only(self) -> None:
        directory = ConnectionDirectory()
        keep, keep_ws = _bound(directory, "a")
        sibling, sibling_ws = _bound(directory, "a")
        other_user, other_ws = _bound(directory, "b")
        note, note_ws = _bound(directory, "a", NOTIFICATION_NAMESPACE)

        closed = await directory.close_user_connections(CHAT_NAMESPACE, "a", exclude=keep.id)

        assert closed == 1
        assert sibling_ws.closed is True
        assert sibling.closed is True
        assert directory.get(CHAT_NAMESPACE, sibling.id) is None
        assert keep_ws.closed is False
        assert other_ws.closed is False
        assert note_ws.closed is False
