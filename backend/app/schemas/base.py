"""
Base schemas with standardized settings for consistent payloads.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StandardizedModel(BaseModel):  # type: ignore[misc]
    """Base model for outgoing payloads, read straight from ORM rows.

    Fields serialize under camelCase aliases (``unreadCount``,
    ``lastMessage.seenByAll``); construction accepts the snake_case names.
    """

    model_config = ConfigDict(
        use_enum_values=True,
        populate_by_name=True,
        from_attributes=True,
        alias_generator=to_camel,
    )


class InputModel(BaseModel):  # type: ignore[misc]
    """Base for client input: unknown keys are dropped, defaults validated.

    Field aliases carry the camelCase names clients send (``accessToken``);
    the snake_case names are accepted too.
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        validate_default=True,
        validate_assignment=True,
    )
