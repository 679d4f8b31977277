"""
Repository interfaces defined as Protocols.

- DocumentCollection: the subset of the motor / pymongo async collection
  API the record service calls. Motor's AsyncIOMotorCollection, pymongo's
  AsyncCollection and the in-memory fake used in tests all satisfy it.
- RecordRepository: the operation set every record service exposes.
  Extensions may add methods on top, never remove these.

Architectural Notes:

- These are pure interfaces with no implementation details
- Depending on the protocol rather than on motor keeps the service
  testable without a running MongoDB
- Filters and update documents use MongoDB's own query language; no
  wrapper DSL is defined here
"""

from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Type,
    Union,
    runtime_checkable,
)

from pydantic import BaseModel

from .domain import PatchItem, QueryOptions, Record
from .identifiers import Identifier

Filter = Mapping[str, Any]


@runtime_checkable
class DocumentCursor(Protocol):
    """Cursor returned by DocumentCollection.find"""

    def sort(self, key_or_list: Any, direction: Any = None) -> Any:
        """Order results. Returns the cursor for chaining."""
        ...

    def skip(self, skip: int) -> Any:
        """Skip the first ``skip`` results. Returns the cursor."""
        ...

    def limit(self, limit: int) -> Any:
        """Return at most ``limit`` results. Returns the cursor."""
        ...

    async def to_list(self, length: Optional[int] = None) -> List[Any]:
        """Exhaust the cursor into a list."""
        ...


@runtime_checkable
class DocumentCollection(Protocol):
    """
    Protocol defining the collection interface used by the record service.

    This protocol captures only the methods we actually use, making the
    dependency explicit and testable.
    """

    async def insert_one(self, document: Any, *args: Any, **kwargs: Any) -> Any:
        """Insert one document.

        Returns:
            Result exposing ``inserted_id``

        Raises:
            DuplicateKeyError: If the ``_id`` or a unique index collides
        """
        ...

    async def insert_many(
        self, documents: Iterable[Any], *args: Any, **kwargs: Any
    ) -> Any:
        """Insert documents in one batch.

        Returns:
            Result exposing ``inserted_ids`` in input order
        """
        ...

    async def update_one(
        self, filter: Any, update: Any, *args: Any, **kwargs: Any
    ) -> Any:
        """Apply an update document to the first match."""
        ...

    async def bulk_write(
        self, requests: Sequence[Any], *args: Any, **kwargs: Any
    ) -> Any:
        """Submit several write operations in one round-trip."""
        ...

    async def delete_one(self, filter: Any, *args: Any, **kwargs: Any) -> Any:
        """Delete the first match.

        Returns:
            Result exposing ``deleted_count``
        """
        ...

    async def find_one(
        self, filter: Any = None, *args: Any, **kwargs: Any
    ) -> Optional[Any]:
        """Return the first matching document or None."""
        ...

    def find(self, *args: Any, **kwargs: Any) -> Any:
        """Return a DocumentCursor over matching documents."""
        ...


@runtime_checkable
class RecordRepository(Protocol):
    """Validated CRUD operations over one collection.

    Records are returned as plain dicts: the stored document with a public
    ``id`` string added next to ``_id``.
    """

    async def create_one(
        self,
        document: Union[Mapping[str, Any], BaseModel],
        _id: Optional[Identifier] = None,
    ) -> str:
        """Validate and insert one record.

        Args:
            document: Record fields; ``id`` is ignored
            _id: Explicit store identifier for the new record

        Returns:
            Identifier of the new record

        Implementation Notes:
        - Validation happens before the store is touched
        - The stored document never holds an ``id`` field
        """
        ...

    async def create_many(
        self, documents: Sequence[Union[Mapping[str, Any], BaseModel]]
    ) -> List[str]:
        """Validate and insert several records in one batch.

        Returns:
            Identifiers in the same order as ``documents``
        """
        ...

    async def patch_one_by_id(
        self, id: Identifier, document: Union[Mapping[str, Any], BaseModel]
    ) -> Optional[Dict[str, Any]]:
        """Merge-update one record and return its new state.

        Returns:
            Updated record, or None if no record has that identifier
        """
        ...

    async def patch_many_by_id(
        self,
        items: Sequence[
            Union[PatchItem, Tuple[Identifier, Any], Mapping[str, Any]]
        ],
    ) -> None:
        """Merge-update several records in one batch.

        Identifiers that match nothing are ignored silently.
        """
        ...

    async def delete_one_by_id(self, id: Identifier) -> bool:
        """Delete one record.

        Returns:
            True if a record was removed, False if none matched
        """
        ...

    async def get_one_by_id(self, id: Identifier) -> Optional[Dict[str, Any]]:
        """Retrieve a record by identifier, or None."""
        ...

    async def get_one(self, filter: Filter) -> Optional[Dict[str, Any]]:
        """Retrieve the first record matching a MongoDB filter, or None."""
        ...

    async def get_many(
        self,
        filter: Filter,
        options: Optional[Union[QueryOptions, Mapping[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Retrieve every record matching a MongoDB filter."""
        ...

    async def get_validated_data(
        self,
        data: Any,
        schema: Optional[Type[BaseModel]] = None,
        partial: bool = False,
    ) -> Dict[str, Any]:
        """Validate input and return the document to persist."""
        ...

    def get_schema(self) -> Type[Record]:
        """Return the schema the service was built with."""
        ...

    def get_schema_without_id(self) -> Type[Record]:
        """Return the schema used to validate creates."""
        ...

    def add_virtual_id(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Attach the public ``id`` to a stored document."""
        ...
