import pytest

from app.core.constants import CHAT_NAMESPACE, NOTIFICATION_NAMESPACE
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.services.read_state_service import ReadStateService
from tests.helpers.realtime import FakeWebSocket, frame, token_for


@pytest.fixture
def pair(unit_db, make_user):
    alice, bob = make_user("alice"), make_user("bob")
    conversation, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])
    return alice, bob, conversation


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_pushes_chat_list_then_identity(self, login, pair) -> None:
        alice, _, conversation = pair

        connection, ws = await login(alice)

        assert connection.user_id == alice.id
        assert ws.events() == ["getChats", "login"]
        chats = ws.frames("getChats")[0]
        assert [c["conversation"]["id"] for c in chats] == [conversation.id]
        user = ws.frames("login")[0]["user"]
        assert user["id"] == alice.id
        assert user["username"] == "alice"

    @pytest.mark.asyncio
    async def test_chat_list_keys_are_camel_case(self, login, pair, unit_db) -> None:
        alice, bob, conversation = pair
        MessageService(unit_db).send_message(alice.id, conversation.id, "hi")

        _, ws = await login(bob)

        entry = ws.frames("getChats")[0][0]
        assert set(entry) == {"conversation", "unreadCount", "isMute", "lastMessage"}
        assert "roomId" in entry["conversation"]
        assert entry["lastMessage"]["seenByAll"] is False
        assert entry["lastMessage"]["conversationId"] == conversation.id

    @pytest.mark.asyncio
    async def test_bad_token_leaves_connection_unbound(self, hub, open_connection) -> None:
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, frame("login", {"accessToken": "not-a-jwt"}))

        assert connection.is_bound is False
        assert ws.frames("login") == [
            {"error": "Could not validate credentials", "code": "UnauthorizedException"}
        ]

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, hub, open_connection, make_user) -> None:
        ghost = make_user("ghost", is_active=False)
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, frame("login", {"accessToken": token_for(ghost)}))

        assert connection.is_bound is False
        assert "error" in ws.frames("login")[0]

    @pytest.mark.asyncio
    async def test_missing_token_is_validation_error(self, hub, open_connection) -> None:
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, frame("login", {}))

        assert ws.frames("login")[0]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_events_before_login_rejected(self, hub, open_connection) -> None:
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, frame("getChats"))

        assert ws.frames("getChats") == [{"error": "Login required", "code": "UnauthorizedException"}]


class TestFrames:
    @pytest.mark.asyncio
    async def test_malformed_frame(self, hub, open_connection) -> None:
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, "{not json")
        await hub.chat.dispatch(connection, '["login"]')

        assert [f["code"] for f in ws.frames("error")] == ["MALFORMED_FRAME", "MALFORMED_FRAME"]

    @pytest.mark.asyncio
    async def test_unknown_event(self, hub, open_connection) -> None:
        connection, ws = open_connection()

        await hub.chat.dispatch(connection, frame("dance"))

        assert ws.frames("error") == [{"error": "Unknown event: dance", "code": "UNKNOWN_EVENT"}]

    @pytest.mark.asyncio
    async def test_notification_namespace_only_knows_login(self, login, hub, make_user) -> None:
        connection, ws = await login(make_user("alice"), NOTIFICATION_NAMESPACE)

        assert ws.events() == ["login"]
        await hub.notifications.dispatch(connection, frame("getChats"))
        assert ws.frames("error")[0]["code"] == "UNKNOWN_EVENT"


class TestRooms:
    @pytest.mark.asyncio
    async def test_non_member_cannot_join(self, login, hub, pair, make_user) -> None:
        _, _, conversation = pair
        connection, ws = await login(make_user("mallory"))

        await hub.chat.dispatch(connection, frame("joinRoom", {"id": conversation.room_id}))

        assert ws.frames("joinRoom")[0]["code"] == "NOT_A_MEMBER"
        assert connection.rooms == set()

    @pytest.mark.asyncio
    async def test_unknown_room(self, login, hub, pair) -> None:
        alice, _, _ = pair
        connection, ws = await login(alice)

        await hub.chat.dispatch(connection, frame("joinRoom", {"id": "nowhere"}))

        assert ws.frames("joinRoom")[0]["code"] == "ROOM_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_join_marks_read_and_announces(self, login, hub, pair, unit_db) -> None:
        alice, bob, conversation = pair
        MessageService(unit_db).send_message(alice.id, conversation.id, "hi bob")
        alice_conn, alice_ws = await login(alice)
        await hub.chat.dispatch(alice_conn, frame("joinRoom", {"id": conversation.room_id}))
        bob_conn, bob_ws = await login(bob)
        alice_ws.clear()
        bob_ws.clear()

        await hub.chat.dispatch(bob_conn, frame("joinRoom", {"id": conversation.room_id}))

        assert bob_ws.frames("joinRoom") == [{"success": True}]
        assert bob_conn.in_room(conversation.room_id)
        assert ReadStateService(unit_db).unread_count(bob.id, conversation.id) == 0
        announced = alice_ws.frames("newRead")
        assert [m["userId"] for m in announced] == [bob.id]
        assert bob_ws.frames("newRead") == []
        assert alice_ws.frames("getChats")[0][0]["lastMessage"]["seenByAll"] is True
        assert bob_ws.frames("getChats")[0][0]["unreadCount"] == 0

    @pytest.mark.asyncio
    async def test_out_room(self, login, hub, pair) -> None:
        alice, _, conversation = pair
        connection, ws = await login(alice)
        await hub.chat.dispatch(connection, frame("joinRoom", {"id": conversation.room_id}))

        await hub.chat.dispatch(connection, frame("outRoom", {"id": conversation.room_id}))

        assert ws.frames("outRoom") == [{"success": True}]
        assert not connection.in_room(conversation.room_id)

    @pytest.mark.asyncio
    async def test_out_room_unknown_room(self, login, hub, pair) -> None:
        alice, _, _ = pair
        connection, ws = await login(alice)

        await hub.chat.dispatch(connection, frame("outRoom", {"id": "nowhere"}))

        assert ws.frames("outRoom") == [{"error": "Room not found", "code": "ROOM_NOT_FOUND"}]

    @pytest.mark.asyncio
    async def test_out_room_non_member(self, login, hub, pair, make_user) -> None:
        _, _, conversation = pair
        connection, ws = await login(make_user("mallory"))

        await hub.chat.dispatch(connection, frame("outRoom", {"id": conversation.room_id}))

        assert ws.frames("outRoom")[0]["code"] == "NOT_A_MEMBER"


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_chats(self, login, hub, pair) -> None:
        alice, _, conversation = pair
        connection, ws = await login(alice)
        ws.clear()

        await hub.chat.dispatch(connection, frame("getChats"))

        chats = ws.frames("getChats")[0]
        assert chats[0]["conversation"]["roomId"] == conversation.room_id
        assert chats[0]["unreadCount"] == 0

    @pytest.mark.asyncio
    async def test_get_chat_history(self, login, hub, pair, unit_db) -> None:
        alice, bob, conversation = pair
        for n in range(3):
            MessageService(unit_db).send_message(alice.id, conversation.id, f"m{n}")
        connection, ws = await login(bob)

        await hub.chat.dispatch(
            connection, frame("getChat", {"id": conversation.id, "limit": 2, "offset": 0})
        )

        detail = ws.frames("getChat")[0]
        assert [m["content"] for m in detail["messages"]] == ["m2", "m1"]
        assert detail["remaining"] is True
        assert detail["chat"]["id"] == conversation.id

    @pytest.mark.asyncio
    async def test_get_chat_for_outsider(self, login, hub, pair, make_user) -> None:
        _, _, conversation = pair
        connection, ws = await login(make_user("eve"))

        await hub.chat.dispatch(connection, frame("getChat", {"id": conversation.id}))

        assert ws.frames("getChat")[0]["code"] == "NOT_A_MEMBER"


class TestReadEvents:
    @pytest.mark.asyncio
    async def test_read_announces_to_room_except_reader(self, login, hub, pair, unit_db) -> None:
        alice, bob, conversation = pair
        MessageService(unit_db).send_message(alice.id, conversation.id, "ping")
        alice_conn, alice_ws = await login(alice)
        bob_conn, bob_ws = await login(bob)
        for conn in (alice_conn, bob_conn):
            conn.join(conversation.room_id)
        alice_ws.clear()
        bob_ws.clear()

        await hub.chat.dispatch(bob_conn, frame("read", {"id": conversation.id}))

        assert bob_ws.frames("read") == [{"success": True}]
        assert [m["userId"] for m in alice_ws.frames("newRead")] == [bob.id]
        assert bob_ws.frames("newRead") == []
        assert ReadStateService(unit_db).unread_count(bob.id, conversation.id) == 0
        assert alice_ws.frames("getChats") and bob_ws.frames("getChats")

    @pytest.mark.asyncio
    async def test_force_read_clears_every_conversation(
        self, login, hub, unit_db, make_user
    ) -> None:
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        service = ConversationService(unit_db)
        first, _ = service.resolve_conversation(alice.id, [bob.id])
        second, _ = service.resolve_conversation(carol.id, [bob.id])
        MessageService(unit_db).send_message(alice.id, first.id, "one")
        MessageService(unit_db).send_message(carol.id, second.id, "two")
        connection, ws = await login(bob)

        await hub.chat.dispatch(connection, frame("forceRead"))

        assert ws.frames("forceRead") == [{"success": True}]
        read_state = ReadStateService(unit_db)
        assert read_state.unread_count(bob.id, first.id) == 0
        assert read_state.unread_count(bob.id, second.id) == 0


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_offline_room_member_gets_updated_chat_list(self, login, hub, pair) -> None:
        alice, bob, conversation = pair
        alice_conn, alice_ws = await login(alice)
        _, bob_ws = await login(bob)
        alice_ws.clear()
        bob_ws.clear()

        await hub.chat.dispatch(
            alice_conn, frame("sendMessage", {"id": conversation.id, "content": "hello"})
        )

        # Nobody joined the room, so nobody sees newMessage
        assert alice_ws.frames("newMessage") == []
        assert bob_ws.frames("newMessage") == []
        bob_entry = bob_ws.frames("getChats")[-1][0]
        assert bob_entry["unreadCount"] == 1
        assert bob_entry["lastMessage"]["content"] == "hello"
        assert bob_entry["lastMessage"]["seenByAll"] is False
        assert alice_ws.frames("getChats")[-1][0]["unreadCount"] == 0

    @pytest.mark.asyncio
    async def test_present_member_auto_reads(self, login, hub, pair, unit_db) -> None:
        alice, bob, conversation = pair
        alice_conn, alice_ws = await login(alice)
        bob_conn, bob_ws = await login(bob)
        bob_conn.join(conversation.room_id)
        alice_ws.clear()
        bob_ws.clear()

        await hub.chat.dispatch(
            alice_conn, frame("sendMessage", {"id": conversation.id, "content": "you there?"})
        )

        assert bob_ws.events()[0] == "newMessage"
        message = bob_ws.frames("newMessage")[0]
        assert message["content"] == "you there?"
        assert message["member"]["user"]["username"] == "alice"
        assert [m["userId"] for m in bob_ws.frames("newRead")] == [bob.id]
        assert bob_ws.frames("getChats")[-1][0]["unreadCount"] == 0
        assert alice_ws.frames("getChats")[-1][0]["lastMessage"]["seenByAll"] is True
        assert ReadStateService(unit_db).unread_count(bob.id, conversation.id) == 0

    @pytest.mark.asyncio
    async def test_reply_and_targets(self, login, hub, pair, unit_db) -> None:
        alice, bob, conversation = pair
        original = MessageService(unit_db).send_message(alice.id, conversation.id, "question")
        bob_conn, bob_ws = await login(bob)
        bob_conn.join(conversation.room_id)

        await hub.chat.dispatch(
            bob_conn,
            frame(
                "sendMessage",
                {
                    "id": conversation.id,
                    "content": "answer",
                    "targetMessageId": original.message.id,
                },
            ),
        )

        reply = bob_ws.frames("newMessage")[0]
        assert reply["targetMessageId"] == original.message.id
        assert reply["targetMessage"]["content"] == "question"

    @pytest.mark.asyncio
    async def test_non_member_gets_error_and_nothing_is_pushed(
        self, login, hub, pair, make_user
    ) -> None:
        alice, _, conversation = pair
        _, alice_ws = await login(alice)
        mallory_conn, mallory_ws = await login(make_user("mallory"))
        alice_ws.clear()

        await hub.chat.dispatch(
            mallory_conn, frame("sendMessage", {"id": conversation.id, "content": "spam"})
        )

        assert mallory_ws.frames("sendMessage")[0]["code"] == "NOT_A_MEMBER"
        assert alice_ws.sent == []

    @pytest.mark.asyncio
    async def test_payload_validation(self, login, hub, pair) -> None:
        alice, _, _ = pair
        connection, ws = await login(alice)

        await hub.chat.dispatch(connection, frame("sendMessage", {"content": "where to?"}))

        assert ws.frames("sendMessage")[0]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_fanout_failure_is_not_reported_to_sender(
        self, login, hub, pair, monkeypatch
    ) -> None:
        alice, _, conversation = pair
        alice_conn, alice_ws = await login(alice)
        alice_conn.join(conversation.room_id)
        alice_ws.clear()

        async def broken(*args, **kwargs):
            raise RuntimeError("fan-out down")

        monkeypatch.setattr(hub.notifier, "auto_read_present", broken)

        await hub.chat.dispatch(
            alice_conn, frame("sendMessage", {"id": conversation.id, "content": "still stored"})
        )

        assert alice_ws.frames("newMessage")[0]["content"] == "still stored"
        assert alice_ws.frames("sendMessage") == []


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_closes_same_namespace_siblings(self, login, hub, make_user) -> None:
        alice, bob = make_user("alice"), make_user("bob")
        first, first_ws = await login(alice)
        second, second_ws = await login(alice)
        note, note_ws = await login(alice, NOTIFICATION_NAMESPACE)
        _, bob_ws = await login(bob)

        await hub.chat.on_disconnect(first)

        assert second_ws.closed is True
        assert hub.directory.get(CHAT_NAMESPACE, first.id) is None
        assert hub.directory.get(CHAT_NAMESPACE, second.id) is None
        assert note_ws.closed is False
        assert hub.directory.get(NOTIFICATION_NAMESPACE, note.id) is note
        assert bob_ws.closed is False

    @pytest.mark.asyncio
    async def test_serve_pumps_frames_until_disconnect(self, hub, pair) -> None:
        alice, _, _ = pair
        ws = FakeWebSocket()
        ws.feed(frame("login", {"accessToken": token_for(alice)}))
        ws.feed(frame("getChats"))
        ws.feed(None)

        await hub.chat.serve(ws)

        assert ws.accepted is True
        assert ws.events() == ["getChats", "login", "getChats"]
        assert hub.directory.count(CHAT_NAMESPACE) == 0
