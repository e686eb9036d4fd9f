"""
Soft-delete support.

Models mixing in ``SoftDeleteMixin`` are hidden from every ORM SELECT by a
session-level default criterion. Pass ``execution_options(include_deleted=True)``
to a query to see deleted rows.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

INCLUDE_DELETED = "include_deleted"


class SoftDeleteMixin:
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = datetime.now(timezone.utc)


@event.listens_for(Session, "do_orm_execute")
def _filter_soft_deleted(execute_state: ORMExecuteState) -> None:
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
        and not execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.deleted_at.is_(None),
                include_aliases=True,
            )
        )
