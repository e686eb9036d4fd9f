# backend/app/services/conversation_service.py
"""
Conversation Service for the chat core.

Handles business logic for conversations including:
- Resolving a participant set to exactly one conversation (self-archive,
  direct, group), creating it when needed
- Membership administration (add, remove, leave, mute)
- Renaming and avatar changes
- Course group chats (created with the course, joined on purchase)

Callers fan out the refreshed chat lists after each mutation; this service
only reports which users are affected.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import ulid

from ..core.constants import (
    COURSE_ROOM_PREFIX,
    DIRECT_ROOM_PREFIX,
    GROUP_ROOM_PREFIX,
    MAX_CONVERSATION_NAME_LENGTH,
    SELF_ARCHIVE_ROOM_PREFIX,
)
from ..core.enums import ConversationType, MemberRole, MemberStatus
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ServiceException,
    ValidationException,
)
from ..models.conversation import ChatMember, Conversation
from ..repositories.chat_member_repository import ChatMemberRepository
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.course_repository import CourseRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.user_repository import UserRepository
from ..utils.profanity import contains_profanity
from .base import BaseService
from .read_state_service import ReadStateService

logger = logging.getLogger(__name__)

SELF_ARCHIVE_NAME = "Saved messages"
_LEAVABLE_TYPES = {ConversationType.GROUP.value, ConversationType.COURSE_GROUP.value}


def _lost_create_race(exc: ServiceException) -> bool:
    """True when a rolled-back create hit a unique constraint (room key taken)."""
    cause = exc.__cause__
    return isinstance(cause, RepositoryException) and isinstance(cause.__cause__, IntegrityError)


def direct_room_key(user_a: str, user_b: str) -> str:
    """Canonical room key of a direct conversation; independent of argument order."""
    low, high = sorted((user_a, user_b))
    return f"{DIRECT_ROOM_PREFIX}{low}_{high}"


def self_archive_room_key(user_id: str) -> str:
    return f"{SELF_ARCHIVE_ROOM_PREFIX}{user_id}"


def course_room_key(course_id: str) -> str:
    return f"{COURSE_ROOM_PREFIX}{course_id}"


def normalize_participants(requester_id: str, user_ids: Any) -> List[str]:
    """
    Validate and canonicalize a requested participant list.

    The requester is always included and moved to the front; duplicates are
    dropped keeping first occurrence order.

    Raises:
        ValidationException: non-list input, empty list or non-string ids
    """
    if not isinstance(user_ids, (list, tuple)):
        raise ValidationException("userIds must be an array of user ids")
    if not user_ids:
        raise ValidationException("userIds must contain at least one user id")

    participants = [requester_id]
    for user_id in user_ids:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationException("userIds must contain non-empty strings")
        user_id = user_id.strip()
        if user_id not in participants:
            participants.append(user_id)
    return participants


class ConversationService(BaseService):
    """
    Service for resolving and administering conversations.

    Access rules:
    - Only ACTIVE members see or act on a conversation
    - Rename, add and remove require the ADMIN member role
    """

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        member_repository: Optional[ChatMemberRepository] = None,
        user_repository: Optional[UserRepository] = None,
        course_repository: Optional[CourseRepository] = None,
        read_state_service: Optional[ReadStateService] = None,
    ):
        """
        Initialize conversation service.

        Args:
            db: Database session
            conversation_repository: Optional repository for conversations
            member_repository: Optional repository for memberships
            user_repository: Optional repository for users
            course_repository: Optional repository for courses
            read_state_service: Optional read-state service (history backfill)
        """
        super().__init__(db)
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.member_repository = member_repository or RepositoryFactory.create_chat_member_repository(
            db
        )
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.course_repository = course_repository or RepositoryFactory.create_course_repository(db)
        self.read_state_service = read_state_service or ReadStateService(db)

    # ==========================================
    # Resolution
    # ==========================================

    @BaseService.measure_operation("resolve_conversation")
    def resolve_conversation(self, requester_id: str, user_ids: Any) -> Tuple[Conversation, bool]:
        """
        Map a requested participant set to exactly one conversation.

        Args:
            requester_id: The calling user, always a participant
            user_ids: Requested participant ids (any order, duplicates allowed)

        Returns:
            Tuple of (conversation, created) where created is True if new

        Raises:
            ValidationException: malformed participant list
            NotFoundException: a participant does not exist
        """
        participants = normalize_participants(requester_id, user_ids)
        users = self.user_repository.get_by_ids(participants)
        known = {user.id for user in users}
        missing = [user_id for user_id in participants if user_id not in known]
        if missing:
            raise NotFoundException(
                "User not found", code="USER_NOT_FOUND", details={"user_ids": missing}
            )
        usernames = {user.id: user.username for user in users}

        if len(participants) == 1:
            return self.ensure_self_archive(requester_id)
        if len(participants) == 2:
            return self._resolve_direct(participants[0], participants[1], usernames)
        return self._resolve_group(requester_id, participants, usernames)

    @BaseService.measure_operation("ensure_self_archive")
    def ensure_self_archive(self, user_id: str) -> Tuple[Conversation, bool]:
        """At most one SELF_ARCHIVE conversation ever exists per user."""
        existing = self.conversation_repository.find_self_archive(user_id)
        if existing is not None:
            return existing, False
        if self.user_repository.get_by_id(user_id) is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        conversation = self._create(
            room_id=self_archive_room_key(user_id),
            conversation_type=ConversationType.SELF_ARCHIVE,
            name=SELF_ARCHIVE_NAME,
            members=[(user_id, MemberRole.ADMIN)],
        )
        if conversation is None:
            return self._require_room(self_archive_room_key(user_id)), False
        return conversation, True

    def _resolve_direct(
        self, user_a: str, user_b: str, usernames: dict
    ) -> Tuple[Conversation, bool]:
        room_id = direct_room_key(user_a, user_b)
        existing = self.conversation_repository.get_by_room_id(room_id)
        if existing is not None:
            return existing, False

        conversation = self._create(
            room_id=room_id,
            conversation_type=ConversationType.DIRECT,
            name=self._display_name([user_a, user_b], usernames),
            # Role is nominal for direct messages
            members=[(user_a, MemberRole.ADMIN), (user_b, MemberRole.ADMIN)],
        )
        if conversation is None:
            return self._require_room(room_id), False
        return conversation, True

    def _resolve_group(
        self, requester_id: str, participants: List[str], usernames: dict
    ) -> Tuple[Conversation, bool]:
        wanted = set(participants)
        for candidate in self.conversation_repository.find_groups_for_member(requester_id):
            if set(candidate.active_user_ids) == wanted:
                return candidate, False

        members = [(requester_id, MemberRole.ADMIN)] + [
            (user_id, MemberRole.REGULAR) for user_id in participants if user_id != requester_id
        ]
        conversation = self._create(
            room_id=f"{GROUP_ROOM_PREFIX}{ulid.ULID()}",
            conversation_type=ConversationType.GROUP,
            name=self._display_name(participants, usernames),
            members=members,
        )
        if conversation is None:
            raise ServiceException("Failed to create group conversation")
        return conversation, True

    def _create(
        self,
        room_id: str,
        conversation_type: ConversationType,
        name: str,
        members: Sequence[Tuple[str, MemberRole]],
        course_id: Optional[str] = None,
    ) -> Optional[Conversation]:
        """
        Insert a conversation with its ACTIVE members.

        Returns None when another writer created the same room key first
        (unique violation); the caller re-reads the winner.
        """
        try:
            with self.transaction():
                conversation = self.conversation_repository.create(
                    room_id=room_id,
                    conversation_type=conversation_type.value,
                    conversation_name=name,
                    course_id=course_id,
                )
                for user_id, role in members:
                    self.member_repository.create(
                        conversation_id=conversation.id,
                        user_id=user_id,
                        role=role.value,
                        status=MemberStatus.ACTIVE.value,
                    )
        except ServiceException as exc:
            if not _lost_create_race(exc):
                raise
            self.logger.warning(f"Conversation create lost a race on room {room_id}: {exc}")
            return None

        self.db.refresh(conversation)
        self.log_operation(
            "create_conversation",
            conversation_id=conversation.id,
            room_id=room_id,
            conversation_type=conversation_type.value,
        )
        return conversation

    def _require_room(self, room_id: str) -> Conversation:
        conversation = self.conversation_repository.get_by_room_id(room_id)
        if conversation is None:
            raise ServiceException(f"Conversation for room {room_id} could not be created")
        return conversation

    @staticmethod
    def _display_name(user_ids: Iterable[str], usernames: dict) -> str:
        name = ", ".join(usernames.get(user_id, user_id) for user_id in user_ids)
        return name[:MAX_CONVERSATION_NAME_LENGTH]

    # ==========================================
    # Lookups with access control
    # ==========================================

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversation_repository.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundException("Conversation not found", code="CONVERSATION_NOT_FOUND")
        return conversation

    def get_for_member(self, conversation_id: str, user_id: str) -> Tuple[Conversation, ChatMember]:
        """
        Load a conversation the user is an ACTIVE member of.

        Raises:
            NotFoundException: no such conversation
            ForbiddenException: user is not an active member
        """
        conversation = self.get_conversation(conversation_id)
        member = self._require_active_member(conversation, user_id)
        return conversation, member

    def get_by_room_for_member(self, room_id: str, user_id: str) -> Tuple[Conversation, ChatMember]:
        conversation = self.conversation_repository.get_by_room_id(room_id)
        if conversation is None:
            raise NotFoundException("Room not found", code="ROOM_NOT_FOUND")
        member = self._require_active_member(conversation, user_id)
        return conversation, member

    def active_user_ids(self, conversation_id: str) -> List[str]:
        return [m.user_id for m in self.member_repository.list_active_members(conversation_id)]

    def is_active_member(self, conversation_id: str, user_id: str) -> bool:
        return self.member_repository.get_active_membership(conversation_id, user_id) is not None

    @staticmethod
    def _require_active_member(conversation: Conversation, user_id: str) -> ChatMember:
        member = conversation.member_for(user_id)
        if member is None or not member.is_active:
            raise ForbiddenException(
                "You are not a member of this conversation", code="NOT_A_MEMBER"
            )
        return member

    def _require_admin(self, conversation: Conversation, user_id: str) -> ChatMember:
        member = self._require_active_member(conversation, user_id)
        if not member.is_admin:
            raise ForbiddenException(
                "Only conversation admins can do this", code="ADMIN_REQUIRED"
            )
        return member

    # ==========================================
    # Administration
    # ==========================================

    @BaseService.measure_operation("update_conversation")
    def update_conversation(
        self,
        conversation_id: str,
        requester_id: str,
        conversation_name: Optional[str] = None,
        avatar_file_id: Optional[str] = None,
    ) -> Conversation:
        """
        Rename a conversation and/or change its avatar.

        Raises:
            ForbiddenException: requester is not an admin member
            ValidationException: empty name, name with blocked words, or nothing to change
        """
        conversation = self.get_conversation(conversation_id)
        self._require_admin(conversation, requester_id)

        changes = {}
        if conversation_name is not None:
            name = conversation_name.strip()
            if not name:
                raise ValidationException("Conversation name cannot be empty")
            if contains_profanity(name):
                raise ValidationException(
                    "Conversation name contains blocked words", code="BLOCKED_WORDS"
                )
            changes["conversation_name"] = name[:MAX_CONVERSATION_NAME_LENGTH]
        if avatar_file_id is not None:
            changes["avatar_file_id"] = avatar_file_id or None
        if not changes:
            raise ValidationException("Nothing to update")

        with self.transaction():
            self.conversation_repository.update(conversation.id, **changes)
        self.log_operation("update_conversation", conversation_id=conversation.id, **changes)
        return conversation

    def add_member(
        self, conversation: Conversation, user_id: str, role: MemberRole = MemberRole.REGULAR
    ) -> ChatMember:
        """
        Add or re-activate one member. Does not commit.

        A REMOVED or PENDING row is re-activated in place; history before the
        join is backfilled as already read.

        Raises:
            ConflictException: the user is already an ACTIVE member
        """
        member = self.member_repository.get_membership(conversation.id, user_id)
        if member is not None and member.is_active:
            raise ConflictException("User is already a member", code="ALREADY_MEMBER")

        if member is None:
            member = self.member_repository.create(
                conversation_id=conversation.id,
                user_id=user_id,
                role=role.value,
                status=MemberStatus.ACTIVE.value,
            )
            self.db.expire(conversation, ["members"])
        else:
            member.status = MemberStatus.ACTIVE.value
            member.role = role.value
            self.db.flush()

        self.read_state_service.backfill_for_member(member)
        return member

    @BaseService.measure_operation("add_members")
    def add_members(
        self,
        conversation_id: str,
        requester_id: str,
        users: Sequence[Tuple[str, Optional[str]]],
    ) -> List[ChatMember]:
        """
        Add members to a GROUP conversation.

        Unknown users and users that are already active are skipped.

        Args:
            users: (user_id, role) pairs; role defaults to REGULAR

        Returns:
            Newly added or re-activated members
        """
        conversation = self.get_conversation(conversation_id)
        if conversation.conversation_type != ConversationType.GROUP.value:
            raise ValidationException("Members can only be added to group conversations")
        self._require_admin(conversation, requester_id)

        known = {u.id for u in self.user_repository.get_by_ids([user_id for user_id, _ in users])}
        added: List[ChatMember] = []
        with self.transaction():
            for user_id, role in users:
                if user_id not in known:
                    self.logger.info(f"Skipping unknown user {user_id} for {conversation_id}")
                    continue
                try:
                    member_role = MemberRole(role) if role else MemberRole.REGULAR
                except ValueError:
                    raise ValidationException(f"Unknown member role: {role}")
                try:
                    added.append(self.add_member(conversation, user_id, member_role))
                except ConflictException:
                    self.logger.debug(f"User {user_id} already active in {conversation_id}")
        self.log_operation("add_members", conversation_id=conversation_id, added=len(added))
        return added

    @BaseService.measure_operation("remove_member")
    def remove_member(self, conversation_id: str, requester_id: str, user_id: str) -> ChatMember:
        """
        Admin removes a REGULAR member from a GROUP conversation.

        Raises:
            ValidationException: not a group, or the admin targets themselves (use leave)
            ForbiddenException: requester is not admin, or target is an admin
            NotFoundException: target is not an active member
        """
        conversation = self.get_conversation(conversation_id)
        if conversation.conversation_type != ConversationType.GROUP.value:
            raise ValidationException("Members can only be removed from group conversations")
        self._require_admin(conversation, requester_id)
        if user_id == requester_id:
            raise ValidationException("Use leave to exit a conversation")

        member = conversation.member_for(user_id)
        if member is None or not member.is_active:
            raise NotFoundException("Member not found", code="MEMBER_NOT_FOUND")
        if member.is_admin:
            raise ForbiddenException("Admins cannot be removed", code="ADMIN_NOT_REMOVABLE")

        with self.transaction():
            member.status = MemberStatus.REMOVED.value
        self.log_operation("remove_member", conversation_id=conversation_id, user_id=user_id)
        return member

    @BaseService.measure_operation("leave_conversation")
    def leave_conversation(self, conversation_id: str, user_id: str) -> ChatMember:
        """
        The caller leaves a GROUP or COURSE_GROUP conversation.

        When the last admin of a group leaves, the longest-standing remaining
        member becomes admin.

        Raises:
            ValidationException: DIRECT and SELF_ARCHIVE conversations cannot be left
        """
        conversation = self.get_conversation(conversation_id)
        if conversation.conversation_type not in _LEAVABLE_TYPES:
            raise ValidationException(
                "This conversation cannot be left", code="CONVERSATION_NOT_LEAVABLE"
            )
        member = self._require_active_member(conversation, user_id)

        with self.transaction():
            member.status = MemberStatus.REMOVED.value
            remaining = [m for m in conversation.active_members if m.id != member.id]
            if member.is_admin and remaining and not any(m.is_admin for m in remaining):
                successor = min(remaining, key=lambda m: (m.created_at.replace(tzinfo=None), m.id))
                successor.role = MemberRole.ADMIN.value
                self.logger.info(f"Promoted {successor.user_id} to admin of {conversation_id}")
        self.log_operation("leave_conversation", conversation_id=conversation_id, user_id=user_id)
        return member

    @BaseService.measure_operation("toggle_mute")
    def toggle_mute(self, conversation_id: str, user_id: str) -> ChatMember:
        conversation = self.get_conversation(conversation_id)
        member = self._require_active_member(conversation, user_id)
        with self.transaction():
            member.is_mute = not member.is_mute
        return member

    # ==========================================
    # Course group chats
    # ==========================================

    @BaseService.measure_operation("create_course_group")
    def create_course_group(self, course_id: str, owner_id: str) -> Tuple[Conversation, bool]:
        """
        Create the course's group chat with the owner as admin.

        Idempotent: an existing course room is returned as-is.
        """
        course = self.course_repository.get_by_id(course_id)
        if course is None:
            raise NotFoundException("Course not found", code="COURSE_NOT_FOUND")
        if course.owner_id != owner_id:
            raise ForbiddenException(
                "Only the course owner can open its chat", code="NOT_COURSE_OWNER"
            )

        room_id = course_room_key(course_id)
        existing = self.conversation_repository.get_by_room_id(room_id)
        if existing is not None:
            return existing, False

        conversation = self._create(
            room_id=room_id,
            conversation_type=ConversationType.COURSE_GROUP,
            name=course.course_name[:MAX_CONVERSATION_NAME_LENGTH],
            members=[(owner_id, MemberRole.ADMIN)],
            course_id=course_id,
        )
        if conversation is None:
            return self._require_room(room_id), False
        return conversation, True

    @BaseService.measure_operation("enroll_course_member")
    def enroll_course_member(self, course_id: str, user_id: str) -> List[Conversation]:
        """
        Add a buyer to every group chat of the course.

        Returns:
            Conversations the user was added to (already-active ones excluded)
        """
        joined: List[Conversation] = []
        conversations = self.conversation_repository.list_by_course(course_id)
        with self.transaction():
            for conversation in conversations:
                try:
                    self.add_member(conversation, user_id, MemberRole.REGULAR)
                    joined.append(conversation)
                except ConflictException:
                    continue
        self.log_operation("enroll_course_member", course_id=course_id, user_id=user_id, joined=len(joined))
        return joined
