from datetime import datetime, timedelta, timezone

import pytest

from app.core.enums import CourseStatus
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.models.course import Lesson
from app.models.message import Message
from app.services.chat_list_service import ChatListService
from app.services.conversation_service import ConversationService
from app.services.heart_service import HEART_TARGETS, HeartService
from app.services.message_service import MessageService


class TestChatList:
    def test_receiver_sees_unread_and_last_message(self, unit_db, make_user) -> None:
        alice, bob = make_user("alice"), make_user("bob")
        conversation, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])

        MessageService(unit_db).send_message(alice.id, conversation.id, "hello")
        bob_list = ChatListService(unit_db).chat_list_for(bob.id)
        alice_list = ChatListService(unit_db).chat_list_for(alice.id)

        assert len(bob_list) == 1
        entry = bob_list[0]
        assert entry.conversation.id == conversation.id
        assert entry.unread_count == 1
        assert entry.last_message.content == "hello"
        assert entry.last_message.seen_by_all is False
        assert alice_list[0].unread_count == 0

    def test_ordering_puts_unmessaged_last(self, unit_db, make_user) -> None:
        alice, bob, carol, dave = (make_user(n) for n in ("alice", "bob", "carol", "dave"))
        service = ConversationService(unit_db)
        quiet, _ = service.resolve_conversation(alice.id, [dave.id])
        older, _ = service.resolve_conversation(alice.id, [bob.id])
        newer, _ = service.resolve_conversation(alice.id, [carol.id])
        messages = MessageService(unit_db)
        old_sent = messages.send_message(bob.id, older.id, "old")
        messages.send_message(carol.id, newer.id, "new")

        stale = unit_db.get(Message, old_sent.message.id)
        stale.updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
        unit_db.flush()

        ids = [entry.conversation.id for entry in ChatListService(unit_db).chat_list_for(alice.id)]

        assert ids == [newer.id, older.id, quiet.id]

    def test_unapproved_course_chat_hidden(self, unit_db, make_user, make_course) -> None:
        owner = make_user("instructor")
        draft = make_course(owner, name="Draft", status=CourseStatus.DRAFT)
        live = make_course(owner, name="Live", status=CourseStatus.APPROVED)
        service = ConversationService(unit_db)
        hidden, _ = service.create_course_group(draft.id, owner.id)
        shown, _ = service.create_course_group(live.id, owner.id)

        ids = [entry.conversation.id for entry in ChatListService(unit_db).chat_list_for(owner.id)]

        assert shown.id in ids
        assert hidden.id not in ids

    def test_removed_member_loses_entry(self, unit_db, make_user) -> None:
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        service = ConversationService(unit_db)
        group, _ = service.resolve_conversation(alice.id, [bob.id, carol.id])

        service.remove_member(group.id, alice.id, carol.id)

        assert ChatListService(unit_db).chat_list_for(carol.id) == []
        members = ChatListService(unit_db).chat_list_for(alice.id)[0].conversation.members
        assert {m.user_id for m in members} == {alice.id, bob.id}


class TestHearts:
    def test_capability_table_covers_every_target(self) -> None:
        assert {tag.value for tag in HEART_TARGETS} == {"lesson", "course", "message"}

    def test_toggle_lesson_heart(self, unit_db, make_user, make_course) -> None:
        owner, fan = make_user("instructor"), make_user("fan")
        lesson = Lesson(course_id=make_course(owner).id, lesson_name="Loops")
        unit_db.add(lesson)
        unit_db.flush()
        service = HeartService(unit_db)

        assert service.toggle_heart(fan.id, "lesson", lesson.id) == (True, 1)
        assert service.toggle_heart(owner.id, "LESSON", lesson.id) == (True, 2)
        assert service.toggle_heart(fan.id, "lesson", lesson.id) == (False, 1)

    def test_unknown_target_tag(self, unit_db, make_user) -> None:
        with pytest.raises(ValidationException):
            HeartService(unit_db).toggle_heart(make_user().id, "comment", "x")

    def test_target_must_exist_in_its_table(self, unit_db, make_user, make_course) -> None:
        owner = make_user("instructor")
        course = make_course(owner)
        with pytest.raises(NotFoundException):
            # A course id is not a lesson id
            HeartService(unit_db).toggle_heart(owner.id, "lesson", course.id)

    def test_message_heart_requires_membership(self, unit_db, make_user) -> None:
        alice, bob, eve = make_user("alice"), make_user("bob"), make_user("eve")
        conversation, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])
        sent = MessageService(unit_db).send_message(alice.id, conversation.id, "like me")
        service = HeartService(unit_db)

        with pytest.raises(ForbiddenException):
            service.toggle_heart(eve.id, "message", sent.message.id)
        assert service.toggle_heart(bob.id, "message", sent.message.id) == (True, 1)

        hydrated = MessageService(unit_db).get_message(alice.id, sent.message.id)
        assert [h.user_id for h in hydrated.hearts] == [bob.id]
