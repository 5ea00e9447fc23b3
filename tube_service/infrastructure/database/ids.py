"""
ObjectId helpers
"""
from typing import Any

from bson import ObjectId

from ...domain.errors import InvalidReference


def is_valid_id(value: Any) -> bool:
    return isinstance(value, ObjectId) or (isinstance(value, str) and ObjectId.is_valid(value))


def parse_object_id(value: Any, label: str = "id") -> ObjectId:
    """Convert a string reference to an ObjectId, rejecting malformed ones"""
    if isinstance(value, ObjectId):
        return value
    if not is_valid_id(value):
        raise InvalidReference(f"Invalid {label}", errors=[f"{label} is not a valid reference"])
    return ObjectId(value)
