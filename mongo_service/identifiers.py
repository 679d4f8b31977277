"""
Conversions between public record identifiers and MongoDB ObjectIds.

The public ``id`` of a record is always the string form of its ``_id``.
Parsing happens before any store call so a malformed identifier fails
fast with InvalidIdentifierError.
"""

import logging
from typing import Any, Dict, Mapping, Union

from bson import ObjectId
from bson.errors import InvalidId

from .errors import InvalidIdentifierError

logger = logging.getLogger(__name__)

Identifier = Union[str, ObjectId]


def to_object_id(value: Identifier) -> ObjectId:
    """Parse a public identifier into an ObjectId.

    Args:
        value: ObjectId instance or its 24-character hex string form

    Returns:
        The corresponding ObjectId

    Raises:
        InvalidIdentifierError: If value cannot be parsed
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        logger.warning(
            "Rejected non-string record identifier",
            extra={"identifier_type": type(value).__name__},
        )
        raise InvalidIdentifierError(value)
    try:
        return ObjectId(value)
    except InvalidId as e:
        logger.warning(
            "Rejected malformed record identifier",
            extra={"identifier": value},
        )
        raise InvalidIdentifierError(value) from e


def add_virtual_id(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy the store identifier into a public ``id`` string field.

    Returns a shallow copy; the input mapping is not mutated.
    """
    return {**document, "id": str(document["_id"])}
