"""
Validated CRUD services over MongoDB collections.

Pair a pydantic Record schema with a collection and get create, read,
patch and delete operations that validate input before it reaches the
store and expose the store's ``_id`` as a public ``id`` string.

    from mongo_service import Record, create_record_service

    class Article(Record):
        title: str
        views: int = 0

    articles = create_record_service(
        schema=Article,
        collection=connection.collection_resolver("articles"),
    )
"""

from .connection import MongoConnection, sanitize_mongodb_url
from .domain import PatchItem, QueryOptions, Record, SortDirection
from .errors import (
    DuplicateRecordError,
    InvalidIdentifierError,
    RecordServiceError,
    RecordValidationError,
    StorageError,
)
from .identifiers import add_virtual_id, to_object_id
from .logging_setup import setup_logging
from .repositories import DocumentCollection, DocumentCursor, RecordRepository
from .service import RecordService, create_record_service

__all__ = [
    # Service
    "RecordService",
    "create_record_service",
    # Domain
    "Record",
    "QueryOptions",
    "PatchItem",
    "SortDirection",
    # Protocols
    "DocumentCollection",
    "DocumentCursor",
    "RecordRepository",
    # Errors
    "RecordServiceError",
    "RecordValidationError",
    "InvalidIdentifierError",
    "StorageError",
    "DuplicateRecordError",
    # Helpers
    "add_virtual_id",
    "to_object_id",
    "MongoConnection",
    "sanitize_mongodb_url",
    "setup_logging",
]
