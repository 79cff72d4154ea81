"""
Base model classes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Type
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Value object exchanged with the model and the HTTP layer.

    Fields are snake_case in Python and camelCase on the wire.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",  # Models love to add fields of their own
        use_enum_values=True,
        str_strip_whitespace=True,
    )

    def to_json_dict(self) -> dict:
        """Export for API responses and storage."""
        return self.model_dump(mode="json", by_alias=True)


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class BaseEntity(TimestampMixin, CamelModel):
    """
    Base for all persistent entities.

    Subclasses define their own id field with appropriate type.
    """
    model_config = ConfigDict(validate_assignment=True)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = datetime.now()


def coerce_enum(value: Any, enum_cls: Type[Enum], default: Optional[Enum]) -> Any:
    """Map free-form model output onto an enum, falling back to `default`."""
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    if not text or text in ("null", "none"):
        return None
    for member in enum_cls:
        if member.value == text:
            return member
    return default


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and (not value.strip() or value.strip().lower() == "null"):
        return None
    return value
