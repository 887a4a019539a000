"""Input checks shared by the set and lookup engines.

Routers validate request bodies with pydantic first; these checks guard the
engines when they are called directly (bulk items, scripts, tests).
"""
import re
import uuid
from typing import Optional, Union

from app.errors import InvalidName, ValidationError

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
VALUE_MAX_LENGTH = 255


def validate_name(name: object, field: str = "name") -> str:
    if not isinstance(name, str) or not name:
        raise InvalidName(
            "Name is required",
            details=[{"field": field, "message": "Name is required"}],
        )
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidName(
            "Name too long",
            details=[{"field": field, "message": f"Name must be at most {NAME_MAX_LENGTH} characters"}],
        )
    if not NAME_PATTERN.match(name):
        raise InvalidName(
            "Invalid name",
            details=[{
                "field": field,
                "message": "Name can only contain letters, numbers, hyphens, and underscores",
            }],
        )
    return name


def validate_description(description: Optional[str]) -> Optional[str]:
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            "Description too long",
            details=[{"field": "description", "message": f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"}],
        )
    return description or None


def validate_value(value: object, field: str = "value") -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(
            f"{field} is required",
            details=[{"field": field, "message": "Value is required"}],
        )
    if len(value) > VALUE_MAX_LENGTH:
        raise ValidationError(
            f"{field} too long",
            details=[{"field": field, "message": f"Value must be at most {VALUE_MAX_LENGTH} characters"}],
        )
    return value


def parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    """Return `value` as a UUID, or None when it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
