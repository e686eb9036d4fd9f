import pytest

from app.core.config import settings
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.models.message import Message
from app.repositories.factory import RepositoryFactory
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService, SendMessageStage


@pytest.fixture
def pair(unit_db, make_user):
    alice, bob = make_user("alice"), make_user("bob")
    conversation, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])
    return alice, bob, conversation


def _message_count(unit_db, conversation_id: str) -> int:
    return RepositoryFactory.create_message_repository(unit_db).count_for_conversation(
        conversation_id
    )


class TestSendMessage:
    def test_returns_hydrated_message(self, unit_db, pair) -> None:
        alice, bob, conversation = pair

        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "hello")

        assert sent.stage == SendMessageStage.READMARKS_CREATED
        assert sent.room_id == conversation.room_id
        assert sent.conversation_id == conversation.id
        assert sent.message.content == "hello"
        assert sent.message.sender_id == alice.id
        assert sent.message.member is not None
        assert sent.message.member.user.username == "alice"

    def test_non_member_rejected_without_writes(self, unit_db, pair, make_user) -> None:
        _, _, conversation = pair
        mallory = make_user("mallory")

        with pytest.raises(ForbiddenException):
            MessageService(unit_db).send_message(mallory.id, conversation.id, "let me in")

        assert _message_count(unit_db, conversation.id) == 0

    def test_unknown_conversation(self, unit_db, pair) -> None:
        alice, _, _ = pair
        with pytest.raises(NotFoundException):
            MessageService(unit_db).send_message(alice.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ", "x")

    def test_empty_message_rejected(self, unit_db, pair) -> None:
        alice, _, conversation = pair
        with pytest.raises(ValidationException):
            MessageService(unit_db).send_message(alice.id, conversation.id, "   ")

    def test_missing_attachment_aborts_before_persist(self, unit_db, pair) -> None:
        alice, _, conversation = pair

        with pytest.raises(NotFoundException) as exc:
            MessageService(unit_db).send_message(
                alice.id, conversation.id, "see file", attachment_ids=["01HZZZZZZZZZZZZZZZZZZZZZZZ"]
            )

        assert exc.value.code == "ATTACHMENT_NOT_FOUND"
        assert _message_count(unit_db, conversation.id) == 0

    def test_attachments_linked_to_message_and_conversation(
        self, unit_db, pair, make_attachment
    ) -> None:
        alice, _, conversation = pair
        attachment = make_attachment(alice)

        sent = MessageService(unit_db).send_message(
            alice.id, conversation.id, "", attachment_ids=[attachment.id]
        )

        unit_db.refresh(attachment)
        assert attachment.message_id == sent.message.id
        assert attachment.conversation_id == conversation.id
        assert [a.id for a in sent.message.attachments] == [attachment.id]

    def test_reply_links_target(self, unit_db, pair) -> None:
        alice, bob, conversation = pair
        service = MessageService(unit_db)
        original = service.send_message(alice.id, conversation.id, "question?")

        reply = service.send_message(
            bob.id, conversation.id, "answer", target_message_id=original.message.id
        )

        assert reply.message.target_message_id == original.message.id
        assert reply.message.target_message.content == "question?"
        target = unit_db.get(Message, original.message.id)
        assert [r.id for r in target.replies] == [reply.message.id]

    def test_reply_target_from_other_conversation_leaves_nothing(
        self, unit_db, pair, make_user
    ) -> None:
        alice, bob, conversation = pair
        carol = make_user("carol")
        other, _ = ConversationService(unit_db).resolve_conversation(alice.id, [carol.id])
        service = MessageService(unit_db)
        foreign = service.send_message(alice.id, other.id, "elsewhere")

        with pytest.raises(NotFoundException) as exc:
            service.send_message(bob.id, conversation.id, "re", target_message_id=foreign.message.id)

        assert exc.value.code == "TARGET_MESSAGE_NOT_FOUND"
        assert _message_count(unit_db, conversation.id) == 0

    def test_profanity_masked_before_storage(self, unit_db, pair, monkeypatch) -> None:
        alice, _, conversation = pair
        monkeypatch.setattr(settings, "profanity_words_raw", "darn,heck")

        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "Darn it, what the heck")

        assert sent.message.content == "**** it, what the ****"

    def test_masking_failure_does_not_block_send(self, unit_db, pair, monkeypatch) -> None:
        alice, _, conversation = pair

        def explode(text):
            raise RuntimeError("regex blew up")

        monkeypatch.setattr("app.services.message_service.mask_profanity", explode)

        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "raw text")

        assert sent.message.content == "raw text"


class TestGetChat:
    def test_pages_newest_first(self, unit_db, pair) -> None:
        alice, bob, conversation = pair
        service = MessageService(unit_db)
        for n in range(5):
            service.send_message(alice.id, conversation.id, f"m{n}")

        first = service.get_chat(bob.id, conversation.id, limit=2, offset=0)
        last = service.get_chat(bob.id, conversation.id, limit=2, offset=4)

        assert [m.content for m in first.messages] == ["m4", "m3"]
        assert first.remaining is True
        assert [m.content for m in last.messages] == ["m0"]
        assert last.remaining is False
        assert first.chat.id == conversation.id

    def test_defaults_and_clamp(self, unit_db, pair, monkeypatch) -> None:
        alice, _, conversation = pair
        monkeypatch.setattr(settings, "chat_page_limit", 2)
        monkeypatch.setattr(settings, "chat_max_page_limit", 3)
        service = MessageService(unit_db)
        for n in range(4):
            service.send_message(alice.id, conversation.id, f"m{n}")

        assert len(service.get_chat(alice.id, conversation.id).messages) == 2
        assert len(service.get_chat(alice.id, conversation.id, limit=50).messages) == 3

    def test_non_member_forbidden(self, unit_db, pair, make_user) -> None:
        _, _, conversation = pair
        with pytest.raises(ForbiddenException):
            MessageService(unit_db).get_chat(make_user("eve").id, conversation.id)

    def test_soft_deleted_messages_hidden(self, unit_db, pair) -> None:
        alice, _, conversation = pair
        service = MessageService(unit_db)
        keep = service.send_message(alice.id, conversation.id, "keep")
        drop = service.send_message(alice.id, conversation.id, "drop")

        RepositoryFactory.create_message_repository(unit_db).delete(drop.message.id)
        detail = service.get_chat(alice.id, conversation.id)

        assert [m.id for m in detail.messages] == [keep.message.id]
        assert detail.remaining is False


class TestGetMessage:
    def test_member_sees_message(self, unit_db, pair) -> None:
        alice, bob, conversation = pair
        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "hi")

        assert MessageService(unit_db).get_message(bob.id, sent.message.id).content == "hi"

    def test_outsider_forbidden(self, unit_db, pair, make_user) -> None:
        alice, _, conversation = pair
        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "private")

        with pytest.raises(ForbiddenException):
            MessageService(unit_db).get_message(make_user("eve").id, sent.message.id)
