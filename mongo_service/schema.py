"""
Schema derivation and validation for record writes.

Every write validates against a schema derived from the user's Record
subclass:

- The id-less schema keeps every field and validator of the original but
  turns ``id`` into an optional, never-dumped field. Creates use it.
- The partial schema additionally makes every field optional. Patches use
  it and only fields the caller actually supplied are returned.

Both schemas validate strictly (no coercion) and report all violations
together. Fields not declared in the schema are dropped.
"""

import logging
from typing import Annotated, Any, Dict, Optional, Type

from pydantic import BaseModel, Field, ValidationError, create_model

from .domain import Record
from .errors import RecordValidationError

logger = logging.getLogger(__name__)

ID_FIELD = "id"


def _hidden_id() -> Any:
    return (Optional[str], Field(default=None, exclude=True))


def derive_schema_without_id(schema: Type[Record]) -> Type[Record]:
    """Build the write schema for creates.

    Args:
        schema: Record subclass supplied by the caller

    Returns:
        Subclass of ``schema`` whose ``id`` field is optional and excluded
        from dumps. When present in the input, ``id`` must still be a
        string.
    """
    return create_model(  # type: ignore[call-overload, no-any-return]
        f"{schema.__name__}WithoutId",
        __base__=schema,
        __module__=schema.__module__,
        **{ID_FIELD: _hidden_id()},
    )


def derive_partial_schema(schema: Type[Record]) -> Type[Record]:
    """Build the write schema for patches.

    Each field keeps its type and constraints but no longer is required.
    Defaults are not applied: dumps of the partial schema use
    ``exclude_unset`` so absent fields stay untouched in storage.
    """
    definitions: Dict[str, Any] = {ID_FIELD: _hidden_id()}
    for name, info in schema.model_fields.items():
        if name == ID_FIELD:
            continue
        annotation = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        definitions[name] = (annotation, Field(default=None, alias=info.alias))

    return create_model(  # type: ignore[call-overload, no-any-return]
        f"{schema.__name__}Patch",
        __base__=schema,
        __module__=schema.__module__,
        **definitions,
    )


def validate_record_data(
    schema: Type[BaseModel], data: Any, partial: bool = False
) -> Dict[str, Any]:
    """Validate raw input and return the document to persist.

    Args:
        schema: Schema to validate against (normally a derived one)
        data: Mapping or pydantic model holding the input
        partial: Only return fields present in the input

    Returns:
        Dict of declared, validated fields, never containing ``id``

    Raises:
        RecordValidationError: With every violation when validation fails
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=partial)

    logger.debug(
        "Validating record data",
        extra={
            "schema": schema.__name__,
            "partial": partial,
            "data_keys": (
                list(data.keys()) if isinstance(data, dict) else "not_dict"
            ),
        },
    )

    try:
        validated = schema.model_validate(data, strict=True)
    except ValidationError as e:
        logger.warning(
            "Record validation failed",
            extra={
                "schema": schema.__name__,
                "error_count": e.error_count(),
                "validation_errors": e.errors(include_url=False),
            },
        )
        raise RecordValidationError(
            f"Validation error: {e}",
            errors=e.errors(include_url=False),
            schema_name=schema.__name__,
        ) from e

    declared = set(type(validated).model_fields) - {ID_FIELD}
    return validated.model_dump(include=declared, exclude_unset=partial)
