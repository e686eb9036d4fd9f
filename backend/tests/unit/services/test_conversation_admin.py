import pytest

from app.core.enums import ConversationType, CourseStatus, MemberRole, MemberStatus
from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.repositories.factory import RepositoryFactory
from app.services.conversation_service import ConversationService, course_room_key
from app.services.message_service import MessageService
from app.services.read_state_service import ReadStateService


@pytest.fixture
def group(unit_db, make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    conversation, _ = ConversationService(unit_db).resolve_conversation(
        alice.id, [bob.id, carol.id]
    )
    return alice, bob, carol, conversation


class TestUpdateConversation:
    def test_admin_renames(self, unit_db, group) -> None:
        alice, _, _, conversation = group

        updated = ConversationService(unit_db).update_conversation(
            conversation.id, alice.id, conversation_name="  Study buddies ", avatar_file_id="f-1"
        )

        assert updated.conversation_name == "Study buddies"
        assert updated.avatar_file_id == "f-1"

    def test_regular_member_forbidden(self, unit_db, group) -> None:
        _, bob, _, conversation = group
        with pytest.raises(ForbiddenException):
            ConversationService(unit_db).update_conversation(
                conversation.id, bob.id, conversation_name="Mine now"
            )

    def test_blocked_words_rejected(self, unit_db, group) -> None:
        alice, _, _, conversation = group
        with pytest.raises(ValidationException) as exc:
            ConversationService(unit_db).update_conversation(
                conversation.id, alice.id, conversation_name="damn group"
            )
        assert exc.value.code == "BLOCKED_WORDS"

    def test_empty_name_and_no_changes_rejected(self, unit_db, group) -> None:
        alice, _, _, conversation = group
        service = ConversationService(unit_db)
        with pytest.raises(ValidationException):
            service.update_conversation(conversation.id, alice.id, conversation_name="   ")
        with pytest.raises(ValidationException):
            service.update_conversation(conversation.id, alice.id)


class TestMembership:
    def test_add_members_skips_unknown_and_active(self, unit_db, group, make_user) -> None:
        alice, bob, _, conversation = group
        dave = make_user("dave")

        added = ConversationService(unit_db).add_members(
            conversation.id,
            alice.id,
            [(dave.id, None), (bob.id, None), ("01HZZZZZZZZZZZZZZZZZZZZZZZ", "admin")],
        )

        assert [m.user_id for m in added] == [dave.id]
        assert added[0].role == MemberRole.REGULAR.value
        assert dave.id in ConversationService(unit_db).active_user_ids(conversation.id)

    def test_new_member_history_is_pre_read(self, unit_db, group, make_user) -> None:
        alice, _, _, conversation = group
        MessageService(unit_db).send_message(alice.id, conversation.id, "before dave")
        dave = make_user("dave")

        ConversationService(unit_db).add_members(conversation.id, alice.id, [(dave.id, None)])

        read_state = ReadStateService(unit_db)
        assert read_state.unread_count(dave.id, conversation.id) == 0
        MessageService(unit_db).send_message(alice.id, conversation.id, "after dave")
        assert read_state.unread_count(dave.id, conversation.id) == 1

    def test_add_member_conflict_when_active(self, unit_db, group) -> None:
        _, bob, _, conversation = group
        with pytest.raises(ConflictException):
            ConversationService(unit_db).add_member(conversation, bob.id)

    def test_removed_member_reactivated_in_place(self, unit_db, group) -> None:
        alice, _, carol, conversation = group
        service = ConversationService(unit_db)
        removed = service.remove_member(conversation.id, alice.id, carol.id)
        assert removed.status == MemberStatus.REMOVED.value

        added = service.add_members(conversation.id, alice.id, [(carol.id, None)])

        assert [m.id for m in added] == [removed.id]
        assert added[0].status == MemberStatus.ACTIVE.value

    def test_add_members_only_for_groups(self, unit_db, make_user) -> None:
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        direct, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])
        with pytest.raises(ValidationException):
            ConversationService(unit_db).add_members(direct.id, alice.id, [(carol.id, None)])

    def test_remove_rules(self, unit_db, group) -> None:
        alice, bob, carol, conversation = group
        service = ConversationService(unit_db)

        with pytest.raises(ForbiddenException):
            service.remove_member(conversation.id, bob.id, carol.id)
        with pytest.raises(ValidationException):
            service.remove_member(conversation.id, alice.id, alice.id)
        service.remove_member(conversation.id, alice.id, carol.id)
        with pytest.raises(NotFoundException):
            service.remove_member(conversation.id, alice.id, carol.id)

    def test_last_admin_leaving_promotes_successor(self, unit_db, group) -> None:
        alice, bob, carol, conversation = group
        service = ConversationService(unit_db)

        left = service.leave_conversation(conversation.id, alice.id)

        assert left.status == MemberStatus.REMOVED.value
        remaining = {m.user_id: m.role for m in conversation.active_members}
        assert set(remaining) == {bob.id, carol.id}
        assert MemberRole.ADMIN.value in remaining.values()

    def test_direct_cannot_be_left(self, unit_db, make_user) -> None:
        alice, bob = make_user("alice"), make_user("bob")
        direct, _ = ConversationService(unit_db).resolve_conversation(alice.id, [bob.id])
        with pytest.raises(ValidationException):
            ConversationService(unit_db).leave_conversation(direct.id, alice.id)

    def test_toggle_mute(self, unit_db, group) -> None:
        _, bob, _, conversation = group
        service = ConversationService(unit_db)

        assert service.toggle_mute(conversation.id, bob.id).is_mute is True
        assert service.toggle_mute(conversation.id, bob.id).is_mute is False

    def test_lookups_enforce_membership(self, unit_db, group, make_user) -> None:
        _, bob, _, conversation = group
        service = ConversationService(unit_db)

        _, member = service.get_by_room_for_member(conversation.room_id, bob.id)
        assert member.user_id == bob.id
        with pytest.raises(ForbiddenException):
            service.get_for_member(conversation.id, make_user("eve").id)
        with pytest.raises(NotFoundException):
            service.get_by_room_for_member("group_missing", bob.id)


class TestCourseGroups:
    def test_owner_creates_course_chat_once(self, unit_db, make_user, make_course) -> None:
        owner = make_user("instructor")
        course = make_course(owner)
        service = ConversationService(unit_db)

        conversation, created = service.create_course_group(course.id, owner.id)
        again, created_again = service.create_course_group(course.id, owner.id)

        assert created is True
        assert created_again is False
        assert again.id == conversation.id
        assert conversation.room_id == course_room_key(course.id) == f"course-{course.id}"
        assert conversation.conversation_type == ConversationType.COURSE_GROUP.value
        assert conversation.member_for(owner.id).role == MemberRole.ADMIN.value

    def test_only_owner_creates(self, unit_db, make_user, make_course) -> None:
        course = make_course(make_user("instructor"))
        with pytest.raises(ForbiddenException):
            ConversationService(unit_db).create_course_group(course.id, make_user("student").id)

    def test_unknown_course(self, unit_db, make_user) -> None:
        with pytest.raises(NotFoundException):
            ConversationService(unit_db).create_course_group(
                "01HZZZZZZZZZZZZZZZZZZZZZZZ", make_user("instructor").id
            )

    def test_enroll_adds_regular_member_with_read_history(
        self, unit_db, make_user, make_course
    ) -> None:
        owner, buyer = make_user("instructor"), make_user("student")
        course = make_course(owner)
        service = ConversationService(unit_db)
        conversation, _ = service.create_course_group(course.id, owner.id)
        MessageService(unit_db).send_message(owner.id, conversation.id, "welcome")

        joined = service.enroll_course_member(course.id, buyer.id)
        joined_again = service.enroll_course_member(course.id, buyer.id)

        assert [c.id for c in joined] == [conversation.id]
        assert joined_again == []
        member = RepositoryFactory.create_chat_member_repository(unit_db).get_active_membership(
            conversation.id, buyer.id
        )
        assert member.role == MemberRole.REGULAR.value
        assert ReadStateService(unit_db).unread_count(buyer.id, conversation.id) == 0

    def test_course_chat_can_be_left(self, unit_db, make_user, make_course) -> None:
        owner, buyer = make_user("instructor"), make_user("student")
        course = make_course(owner, status=CourseStatus.APPROVED)
        service = ConversationService(unit_db)
        conversation, _ = service.create_course_group(course.id, owner.id)
        service.enroll_course_member(course.id, buyer.id)

        service.leave_conversation(conversation.id, buyer.id)

        assert service.is_active_member(conversation.id, buyer.id) is False
