"""
MongoDB connection helper built on Motor (async driver).

Applications own the connection lifecycle. MongoConnection is a small
convenience for the common case: it creates the client lazily, hands out
collection resolvers for create_record_service, and reports health.

Configuration comes from constructor arguments first, then environment
variables:

- MONGODB_URL (default ``mongodb://localhost:27017``)
- MONGODB_DATABASE (default ``mongo_service``)
"""

import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

DEFAULT_MONGODB_URL = "mongodb://localhost:27017"
DEFAULT_MONGODB_DATABASE = "mongo_service"


class MongoConnection:
    """
    Lazily created Motor client bound to one database.

    The client is created on first use and reused until close(). Collection
    resolvers returned by collection_resolver() look the collection up on
    every call, so closing and reopening the connection is transparent to
    record services holding a resolver.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        database: Optional[str] = None,
        **client_options: Any,
    ) -> None:
        self._url = url or os.environ.get("MONGODB_URL", DEFAULT_MONGODB_URL)
        self._database_name = database or os.environ.get(
            "MONGODB_DATABASE", DEFAULT_MONGODB_DATABASE
        )
        self._client_options = client_options
        self._client: Optional[AsyncIOMotorClient] = None

        logger.debug(
            "MongoConnection initialized",
            extra={
                "url": sanitize_mongodb_url(self._url),
                "database": self._database_name,
            },
        )

    @property
    def database_name(self) -> str:
        return self._database_name

    def get_client(self) -> AsyncIOMotorClient:
        """Return the Motor client, creating it on first use."""
        if self._client is None:
            logger.debug(
                "Creating new Motor client instance",
                extra={"url": sanitize_mongodb_url(self._url)},
            )
            self._client = AsyncIOMotorClient(
                self._url, **self._client_options
            )
        return self._client

    def get_database(self) -> AsyncIOMotorDatabase:
        return self.get_client()[self._database_name]

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        return self.get_database()[name]

    def collection_resolver(
        self, name: str
    ) -> Callable[[], Awaitable[AsyncIOMotorCollection]]:
        """Build a resolver for create_record_service.

        Args:
            name: Collection name

        Returns:
            Async zero-argument callable returning the collection
        """

        async def resolve() -> AsyncIOMotorCollection:
            return self.get_collection(name)

        resolve.__name__ = f"resolve_{name}"
        return resolve

    async def ping(self) -> bool:
        """Check whether the server answers a ping.

        Returns:
            True if the server responded, False otherwise
        """
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(
                "MongoDB ping failed",
                extra={
                    "url": sanitize_mongodb_url(self._url),
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info(
                "MongoDB connection closed",
                extra={"database": self._database_name},
            )

    def describe(self) -> Dict[str, str]:
        """Connection information safe to log or expose."""
        return {
            "status": (
                "connected" if self._client is not None else "disconnected"
            ),
            "url": sanitize_mongodb_url(self._url),
            "database": self._database_name,
        }


def sanitize_mongodb_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)
    if "@" not in rest:
        return url

    credentials, host = rest.rsplit("@", 1)
    if ":" not in credentials:
        return url

    username = credentials.split(":", 1)[0]
    return f"{scheme}://{username}:***@{host}"
