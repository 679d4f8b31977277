"""
Logging configuration driven by environment variables.

The library itself only creates module-level loggers under
``mongo_service``. Applications that want the same setup everywhere call
setup_logging() once at startup.
"""

import logging
import os
from typing import List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_log_level(level: Union[str, int]) -> Optional[int]:
    """Numeric level for a level name or number, None if unknown."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else None


def setup_logging(
    level: Optional[Union[str, int]] = None,
    log_format: Optional[str] = None,
    service_level: Optional[Union[str, int]] = None,
) -> int:
    """Configure root logging from arguments or LOG_LEVEL / LOG_FORMAT.

    Args:
        level: Level name or number, overriding LOG_LEVEL
        log_format: Format string, overriding LOG_FORMAT
        service_level: Separate level for the ``mongo_service`` loggers,
            overriding MONGO_SERVICE_LOG_LEVEL. Defaults to the root level

    Returns:
        The numeric root level that was applied. Unknown level names fall
        back to INFO and are reported as a warning once logging is set up.
    """
    requested = level or os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    numeric_level = resolve_log_level(requested)
    invalid: List[Tuple[Union[str, int], str]] = []
    if numeric_level is None:
        invalid.append((requested, "INFO"))

    logging.basicConfig(
        level=numeric_level if numeric_level is not None else logging.INFO,
        format=log_format or os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        force=True,
    )

    requested_service = service_level or os.environ.get(
        "MONGO_SERVICE_LOG_LEVEL"
    )
    service_numeric = None
    if requested_service:
        service_numeric = resolve_log_level(requested_service)
        if service_numeric is None:
            invalid.append((requested_service, "the root level"))
    package_logger = logging.getLogger(__name__.rpartition(".")[0])
    package_logger.setLevel(
        service_numeric if service_numeric is not None else logging.NOTSET
    )

    for name, fallback in invalid:
        logger.warning(
            "Invalid log level %r, defaulting to %s",
            name,
            fallback,
            extra={"log_level": name},
        )

    applied = logging.getLogger().level
    logger.info(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(applied),
            "service_log_level": logging.getLevelName(
                package_logger.getEffectiveLevel()
            ),
        },
    )
    return applied
