"""
Exceptions raised by the record service.

Callers can tell three failure families apart:

- **RecordValidationError**: the input broke the schema. Raised before the
  store is touched. Carries every field-level violation, not just the
  first one.
- **InvalidIdentifierError**: an identifier could not be parsed into a
  MongoDB ObjectId. Also raised before the store is touched, so "bad
  input" never looks like "store unavailable".
- **StorageError**: the store call itself failed (duplicate key, lost
  connection, write concern errors, ...). The original pymongo exception
  is kept as ``__cause__``.
"""

from typing import Any, Dict, List, Optional


class RecordServiceError(Exception):
    """Base class for every error raised by the record service"""

    pass


class RecordValidationError(RecordServiceError):
    """Raised when input data fails schema validation.

    Attributes:
        errors: Aggregated field-level violations in pydantic's
            ``ValidationError.errors()`` format
        schema_name: Name of the schema the data was validated against
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        schema_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.schema_name = schema_name

    @property
    def fields(self) -> List[str]:
        """Dotted locations of every failing field, in report order."""
        return [
            ".".join(str(part) for part in error.get("loc", ()))
            for error in self.errors
        ]


class InvalidIdentifierError(RecordServiceError, ValueError):
    """Raised when an identifier is not a valid ObjectId"""

    def __init__(self, value: Any) -> None:
        super().__init__(
            f"Invalid record identifier {value!r}: expected an ObjectId or "
            "a 24-character hex string"
        )
        self.value = value


class StorageError(RecordServiceError):
    """Raised when the underlying document store operation fails.

    Attributes:
        operation: Name of the collection method that failed
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation


class DuplicateRecordError(StorageError):
    """Raised when an insert collides with an existing unique key"""

    pass
