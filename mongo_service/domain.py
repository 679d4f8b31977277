"""
Domain models defined as Pydantic models.

- Record: base class every record schema extends. Declares the public
  string ``id`` and the validation policy (strict types, unknown fields
  ignored).
- QueryOptions: limit / skip / sort options for multi-record reads.
- PatchItem: one (identifier, partial document) pair for batched patches.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
import pymongo


SortDirection = Literal[1, -1, "asc", "ascending", "desc", "descending"]

_DIRECTIONS = {
    1: pymongo.ASCENDING,
    -1: pymongo.DESCENDING,
    "asc": pymongo.ASCENDING,
    "ascending": pymongo.ASCENDING,
    "desc": pymongo.DESCENDING,
    "descending": pymongo.DESCENDING,
}


class Record(BaseModel):
    """Base schema for records persisted by a RecordService.

    Subclasses declare their own fields. The ``id`` field is derived from
    the store's ``_id`` at read time and is never written as a stored
    field.

    Example:
        >>> class Article(Record):
        ...     title: str
        ...     views: int = 0
    """

    model_config = ConfigDict(extra="ignore", strict=True)

    id: str


class QueryOptions(BaseModel):
    """Options for RecordService.get_many.

    Absent options impose no constraint. When several are present they
    apply in cursor order: sort, then skip, then limit.
    """

    model_config = ConfigDict(extra="forbid")

    limit: Optional[int] = Field(default=None, ge=0)
    skip: Optional[int] = Field(default=None, ge=0)
    sort: Optional[Dict[str, SortDirection]] = None

    @field_validator("sort")
    @classmethod
    def sort_must_not_be_empty(
        cls, v: Optional[Dict[str, SortDirection]]
    ) -> Optional[Dict[str, SortDirection]]:
        if v is not None and not v:
            raise ValueError("Sort must name at least one field")
        return v

    def sort_spec(self) -> List[Tuple[str, int]]:
        """Sort as a pymongo key/direction list, preserving field order."""
        if not self.sort:
            return []
        return [
            (field, _DIRECTIONS[direction])
            for field, direction in self.sort.items()
        ]


class PatchItem(BaseModel):
    """Identifier plus partial document for RecordService.patch_many_by_id"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Union[str, ObjectId]
    data: Any
