"""
Record service: validated CRUD over one MongoDB collection.

``create_record_service`` pairs a Record schema with a collection resolver
and returns a RecordService. Every operation follows the same path:

    caller input -> schema validation -> store call -> result reshaping

Validation is strict (no type coercion) and reports every violation.
Fields the schema does not declare are dropped. Stored documents never
hold an ``id`` field; the public ``id`` is derived from ``_id`` on every
read.

The collection is resolved again on every call, so connection lifecycle
belongs entirely to the resolver. Store failures are not retried here;
they surface immediately as StorageError.

Example:
    >>> class Article(Record):
    ...     title: str
    ...     views: int = 0
    >>> articles = create_record_service(
    ...     schema=Article,
    ...     collection=lambda: db["articles"],
    ...     extend=lambda base: {
    ...         "get_popular": lambda: base.get_many(
    ...             {"views": {"$gte": 100}}, {"sort": {"views": -1}}
    ...         ),
    ...     },
    ... )
    >>> article_id = await articles.create_one({"title": "Hello"})
    >>> await articles.get_one_by_id(article_id)
    {'_id': ObjectId('...'), 'title': 'Hello', 'views': 0, 'id': '...'}
"""

import asyncio
import copy
import inspect
import logging
from contextlib import contextmanager
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from pydantic import BaseModel, ValidationError
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

from .domain import PatchItem, QueryOptions, Record
from .errors import (
    DuplicateRecordError,
    RecordValidationError,
    StorageError,
)
from .identifiers import Identifier, add_virtual_id, to_object_id
from .repositories import DocumentCollection, Filter
from .schema import (
    derive_partial_schema,
    derive_schema_without_id,
    validate_record_data,
)

logger = logging.getLogger(__name__)

CollectionResolver = Callable[
    [], Union[DocumentCollection, Awaitable[DocumentCollection]]
]
Extension = Callable[["RecordService"], Mapping[str, Callable[..., Any]]]

DUPLICATE_KEY_CODE = 11000


def _is_duplicate_key(error: PyMongoError) -> bool:
    if isinstance(error, DuplicateKeyError):
        return True
    if isinstance(error, BulkWriteError):
        write_errors = error.details.get("writeErrors", [])
        return any(
            write_error.get("code") == DUPLICATE_KEY_CODE
            for write_error in write_errors
        )
    return False


class RecordService:
    """
    Validated CRUD operations for one Record schema and one collection.

    Instances are built by create_record_service. Extending a service
    returns a new one whose extension operations take precedence over the
    methods defined here.
    """

    def __init__(
        self, schema: Type[Record], collection: CollectionResolver
    ) -> None:
        """Initialize the service.

        Args:
            schema: Record subclass describing valid records
            collection: Zero-argument callable returning the collection,
                or an awaitable of it

        Raises:
            TypeError: If schema is not a Record subclass or collection is
                not callable
        """
        if not (isinstance(schema, type) and issubclass(schema, Record)):
            raise TypeError(
                f"Schema must be a Record subclass, got {schema!r}"
            )
        if not callable(collection):
            raise TypeError("Collection resolver must be callable")

        self._schema = schema
        self._collection_resolver = collection
        self._schema_without_id = derive_schema_without_id(schema)
        self._partial_schema = derive_partial_schema(schema)
        self.extensions: Dict[str, Callable[..., Any]] = {}

        logger.debug(
            "Initializing RecordService",
            extra={
                "schema": schema.__name__,
                "fields": list(schema.model_fields),
            },
        )

    # Collection and schema access

    async def get_collection(self) -> DocumentCollection:
        """Resolve the collection for the current call."""
        collection = self._collection_resolver()
        if inspect.isawaitable(collection):
            collection = await collection
        return collection  # type: ignore[return-value]

    def get_schema(self) -> Type[Record]:
        return self._schema

    def get_schema_without_id(self) -> Type[Record]:
        """Schema used for create validation: ``id`` optional, never stored."""
        return self._schema_without_id

    def get_partial_schema(self) -> Type[Record]:
        """Schema used for patch validation: every field optional."""
        return self._partial_schema

    # Low-level helpers

    async def get_validated_data(
        self,
        data: Any,
        schema: Optional[Type[BaseModel]] = None,
        partial: bool = False,
    ) -> Dict[str, Any]:
        """Validate input against a schema.

        Args:
            data: Mapping or pydantic model with the input fields
            schema: Schema to use, the id-less schema by default
            partial: Keep only fields present in the input

        Returns:
            Validated document ready to persist, without ``id``

        Raises:
            RecordValidationError: With every violation found
        """
        return validate_record_data(
            schema or self._schema_without_id, data, partial=partial
        )

    def add_virtual_id(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        return add_virtual_id(record)

    @contextmanager
    def _storage_errors(
        self, operation: str, **log_data: Any
    ) -> Iterator[None]:
        """Translate pymongo failures into StorageError subclasses."""
        try:
            yield
        except PyMongoError as e:
            extra = {
                "schema": self._schema.__name__,
                "operation": operation,
                "error_type": type(e).__name__,
                "error": str(e),
                **log_data,
            }
            if _is_duplicate_key(e):
                logger.error("Duplicate key on record write", extra=extra)
                raise DuplicateRecordError(
                    f"Duplicate key during {operation}: {e}",
                    operation=operation,
                ) from e
            logger.error("Record store operation failed", extra=extra)
            raise StorageError(
                f"Store operation {operation} failed: {e}",
                operation=operation,
            ) from e

    # Writes

    async def create_one(
        self,
        document: Union[Mapping[str, Any], BaseModel],
        _id: Optional[Identifier] = None,
    ) -> str:
        """Validate and insert one record.

        Args:
            document: Record fields; a supplied ``id`` is validated but
                never stored
            _id: Explicit store identifier for the new record

        Returns:
            String form of the inserted ``_id``

        Raises:
            InvalidIdentifierError: If ``_id`` is malformed
            RecordValidationError: If the document fails validation
            DuplicateRecordError: If ``_id`` or a unique index collides
            StorageError: If the insert fails for another reason
        """
        object_id = to_object_id(_id) if _id is not None else None
        validated = await self.get_validated_data(
            document, self._schema_without_id
        )
        validated.pop("id", None)
        if object_id is not None:
            validated["_id"] = object_id

        with self._storage_errors("insert_one"):
            collection = await self.get_collection()
            result = await collection.insert_one(validated)

        record_id = str(result.inserted_id)
        logger.info(
            "Record created",
            extra={"schema": self._schema.__name__, "record_id": record_id},
        )
        return record_id

    async def create_many(
        self, documents: Sequence[Union[Mapping[str, Any], BaseModel]]
    ) -> List[str]:
        """Validate and insert several records with one ordered insert.

        All documents are validated before anything is written; the first
        failure is raised and nothing is inserted.

        Returns:
            Identifiers in the same order as ``documents``
        """
        if not documents:
            return []

        validated = await asyncio.gather(
            *(
                self.get_validated_data(document, self._schema_without_id)
                for document in documents
            )
        )
        for item in validated:
            item.pop("id", None)

        with self._storage_errors("insert_many", count=len(validated)):
            collection = await self.get_collection()
            result = await collection.insert_many(list(validated), ordered=True)

        record_ids = [str(inserted_id) for inserted_id in result.inserted_ids]
        logger.info(
            "Records created",
            extra={"schema": self._schema.__name__, "count": len(record_ids)},
        )
        return record_ids

    async def patch_one_by_id(
        self, id: Identifier, document: Union[Mapping[str, Any], BaseModel]
    ) -> Optional[Dict[str, Any]]:
        """Merge-update one record and return its new state.

        Only the fields present in ``document`` change. A patch that
        matches no record is not an error.

        Returns:
            The updated record, or None if no record has that identifier
        """
        object_id = to_object_id(id)
        validated = await self.get_validated_data(
            document, self._partial_schema, partial=True
        )

        if validated:
            with self._storage_errors("update_one", record_id=str(object_id)):
                collection = await self.get_collection()
                result = await collection.update_one(
                    {"_id": object_id}, {"$set": validated}
                )
            logger.debug(
                "Record patch submitted",
                extra={
                    "schema": self._schema.__name__,
                    "record_id": str(object_id),
                    "fields": list(validated),
                    "matched_count": getattr(result, "matched_count", None),
                },
            )
        else:
            logger.debug(
                "Empty patch, skipping update",
                extra={
                    "schema": self._schema.__name__,
                    "record_id": str(object_id),
                },
            )

        return await self.get_one_by_id(object_id)

    async def patch_many_by_id(self, items: Sequence[Any]) -> None:
        """Merge-update several records with one bulk write.

        Args:
            items: PatchItem instances, ``(id, data)`` tuples or
                ``{"id": ..., "data": ...}`` mappings

        Identifiers that match nothing are ignored, as the store does.
        Every patch is validated before anything is written.
        """
        patches = [self._as_patch_item(item) for item in items]
        object_ids = [to_object_id(patch.id) for patch in patches]
        validated = await asyncio.gather(
            *(
                self.get_validated_data(
                    patch.data, self._partial_schema, partial=True
                )
                for patch in patches
            )
        )

        operations = [
            UpdateOne({"_id": object_id}, {"$set": data})
            for object_id, data in zip(object_ids, validated)
            if data
        ]
        if not operations:
            logger.debug(
                "No patch operations to submit",
                extra={"schema": self._schema.__name__, "count": len(items)},
            )
            return

        with self._storage_errors("bulk_write", count=len(operations)):
            collection = await self.get_collection()
            await collection.bulk_write(operations, ordered=True)

        logger.info(
            "Record patches submitted",
            extra={
                "schema": self._schema.__name__,
                "count": len(operations),
            },
        )

    @staticmethod
    def _as_patch_item(item: Any) -> PatchItem:
        if isinstance(item, PatchItem):
            return item
        try:
            if isinstance(item, tuple):
                record_id, data = item
                return PatchItem(id=record_id, data=data)
            return PatchItem.model_validate(item)
        except ValueError as e:
            raise RecordValidationError(
                f"Validation error: invalid patch item {item!r}: {e}",
                errors=(
                    e.errors(include_url=False)
                    if isinstance(e, ValidationError)
                    else []
                ),
                schema_name=PatchItem.__name__,
            ) from e

    async def delete_one_by_id(self, id: Identifier) -> bool:
        """Delete one record.

        Returns:
            True if a record was removed, False if none matched
        """
        object_id = to_object_id(id)
        with self._storage_errors("delete_one", record_id=str(object_id)):
            collection = await self.get_collection()
            result = await collection.delete_one({"_id": object_id})

        deleted = result.deleted_count > 0
        if deleted:
            logger.info(
                "Record deleted",
                extra={
                    "schema": self._schema.__name__,
                    "record_id": str(object_id),
                },
            )
        else:
            logger.debug(
                "No record to delete",
                extra={
                    "schema": self._schema.__name__,
                    "record_id": str(object_id),
                },
            )
        return deleted

    # Reads

    async def get_one_by_id(self, id: Identifier) -> Optional[Dict[str, Any]]:
        """Retrieve a record by identifier.

        Returns:
            The record with ``id`` attached, or None if absent

        Raises:
            InvalidIdentifierError: If ``id`` is malformed
        """
        object_id = to_object_id(id)
        return await self.get_one({"_id": object_id})

    async def get_one(self, filter: Filter) -> Optional[Dict[str, Any]]:
        """Retrieve the first record matching a MongoDB filter.

        The filter is passed to the store unmodified.
        """
        with self._storage_errors("find_one"):
            collection = await self.get_collection()
            document = await collection.find_one(filter)
        if document is None:
            return None
        return self.add_virtual_id(document)

    async def get_many(
        self,
        filter: Filter,
        options: Optional[Union[QueryOptions, Mapping[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Retrieve every record matching a MongoDB filter.

        Args:
            filter: MongoDB query document, passed through unmodified
            options: QueryOptions or an equivalent mapping. Sort applies
                first, then skip, then limit

        Returns:
            Records with ``id`` attached; empty list if none match

        Raises:
            RecordValidationError: If options are malformed
        """
        query_options = self._as_query_options(options)

        with self._storage_errors("find"):
            collection = await self.get_collection()
            cursor = collection.find(filter)
            if query_options.sort:
                cursor = cursor.sort(query_options.sort_spec())
            if query_options.skip:
                cursor = cursor.skip(query_options.skip)
            if query_options.limit:
                cursor = cursor.limit(query_options.limit)
            documents = await cursor.to_list(length=None)

        logger.debug(
            "Records fetched",
            extra={
                "schema": self._schema.__name__,
                "count": len(documents),
                "options": query_options.model_dump(exclude_none=True),
            },
        )
        return [self.add_virtual_id(document) for document in documents]

    @staticmethod
    def _as_query_options(
        options: Optional[Union[QueryOptions, Mapping[str, Any]]],
    ) -> QueryOptions:
        if options is None:
            return QueryOptions()
        if isinstance(options, QueryOptions):
            return options
        try:
            return QueryOptions.model_validate(options)
        except ValidationError as e:
            raise RecordValidationError(
                f"Validation error: {e}",
                errors=e.errors(include_url=False),
                schema_name=QueryOptions.__name__,
            ) from e

    # Extension

    def extend(self, extension: Extension) -> "RecordService":
        """Compose this service with operations produced by an extension hook.

        The hook receives this service unchanged, so an extension may wrap
        a base operation of the same name. The operations are installed
        on a new service; this one is left untouched.

        Args:
            extension: Callable receiving this service and returning a
                mapping of operation name to callable

        Returns:
            A new service holding the base operations plus the extension
            operations, the latter taking precedence on name clashes

        Raises:
            TypeError: If the hook returns something other than a mapping
                of identifier names to callables
        """
        operations = extension(self)
        if not isinstance(operations, Mapping):
            raise TypeError(
                "Extension must return a mapping of operation names to "
                f"callables, got {type(operations).__name__}"
            )

        for name, operation in operations.items():
            if not isinstance(name, str) or not name.isidentifier():
                raise TypeError(f"Invalid extension operation name {name!r}")
            if not callable(operation):
                raise TypeError(f"Extension operation {name!r} is not callable")

        composed = copy.copy(self)
        composed.extensions = {**self.extensions, **operations}
        for name, operation in operations.items():
            if hasattr(self, name):
                logger.debug(
                    "Extension overrides base operation",
                    extra={"schema": self._schema.__name__, "operation": name},
                )
            setattr(composed, name, operation)

        return composed


def create_record_service(
    schema: Type[Record],
    collection: CollectionResolver,
    extend: Optional[Extension] = None,
) -> RecordService:
    """Build a RecordService, optionally extended with extra operations.

    Args:
        schema: Record subclass describing valid records
        collection: Zero-argument callable returning the collection (or an
            awaitable of it); called once per operation
        extend: Optional hook receiving the base service and returning a
            mapping of additional named operations. Extension names win
            over base operation names

    Returns:
        The configured service
    """
    service = RecordService(schema, collection)
    if extend is None:
        return service
    return service.extend(extend)
