"""
MongoDB access for the relationship service.

One shared Motor client backs the friends, families, family_requests, users and
notifications collections. The stores log every query through the
``log_query_*`` helpers so slow or failing relationship writes show up under
``[DB_PERFORMANCE]``.
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from photo_circle.config import settings
from photo_circle.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

MAX_POOL_SIZE = 50
MIN_POOL_SIZE = 5


class DatabaseManager:
    """Owns the Motor client and tells the protocol layer whether transactions are usable."""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3
        # Set after connect(); True when connected to a replica set or mongos
        self.transactions_supported: Optional[bool] = None

    def _connection_string(self) -> str:
        if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
            password = settings.MONGODB_PASSWORD.get_secret_value()
            return (
                f"mongodb://{settings.MONGODB_USERNAME}:"
                f"{password}@"
                f"{settings.MONGODB_URL.replace('mongodb://', '')}"
            )
        return settings.MONGODB_URL

    async def connect(self):
        """Open the client, retrying with exponential backoff on selection timeouts."""
        start_time = time.time()
        db_logger.info("Connecting to MongoDB database %s", settings.MONGODB_DATABASE)

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("MongoDB connect attempt %d of %d", attempt + 1, self._connection_retries)

                self.client = AsyncIOMotorClient(
                    self._connection_string(),
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=MAX_POOL_SIZE,
                    minPoolSize=MIN_POOL_SIZE,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start
                self.transactions_supported = await self._detect_transaction_support()

                perf_logger.info(
                    "MongoDB ready after %.3fs (ping took %.3fs)", time.time() - start_time, ping_duration
                )
                db_logger.info(
                    "Connected to MongoDB database: %s (transactions supported: %s)",
                    settings.MONGODB_DATABASE,
                    self.transactions_supported,
                )
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                perf_logger.warning(
                    "Connection attempt %d failed after %.3fs", attempt + 1, time.time() - attempt_start
                )
                db_logger.warning(
                    "MongoDB connect attempt %d of %d failed: %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("Giving up on MongoDB after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Retrying MongoDB connect in %.1fs", backoff_time)
                await asyncio.sleep(backoff_time)

    async def _detect_transaction_support(self) -> bool:
        """Replica-set members and mongos routers support multi-document transactions."""
        try:
            hello = await self.client.admin.command({"hello": 1})
        except PyMongoError as e:
            db_logger.warning("Could not detect transaction support, assuming none: %s", e)
            return False
        return bool(hello.get("setName") or hello.get("msg") == "isdbgrid")

    async def disconnect(self):
        """Close the client. Safe to call when never connected."""
        if self.client is None:
            db_logger.warning("No MongoDB client to close")
            return
        self.client.close()
        self.client = None
        self.database = None
        db_logger.info("MongoDB client closed")

    async def health_check(self) -> bool:
        """Ping the server; used by GET /health."""
        if self.client is None:
            health_logger.warning("Health check: not connected")
            return False
        start_time = time.time()
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            health_logger.error("Health check ping failed after %.3fs: %s", time.time() - start_time, e)
            return False
        perf_logger.debug("Health check ping took %.3fs", time.time() - start_time)
        return True

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """Collection handle for the stores; raises RuntimeError before connect()."""
        if self.database is None:
            db_logger.error("Collection '%s' requested before MongoDB connected", collection_name)
            raise RuntimeError("Database not connected")
        return self.database[collection_name]

    async def create_indexes(self):
        """Indexes for member lookups, invitation lookups and the notification feed."""
        start_time = time.time()
        db_logger.info("Ensuring relationship indexes")

        families = self.get_collection(settings.FAMILIES_COLLECTION)
        await self._create_index_if_not_exists(families, "members", {})
        await self._create_index_if_not_exists(families, "created_by", {})

        family_requests = self.get_collection(settings.FAMILY_REQUESTS_COLLECTION)
        await self._create_index_if_not_exists(family_requests, "received.family_id", {})

        notifications = self.get_collection(settings.NOTIFICATIONS_COLLECTION)
        await self._create_index_if_not_exists(notifications, [("recipient_id", 1), ("created_at", -1)], {})

        perf_logger.info("Relationship indexes ensured in %.3fs", time.time() - start_time)

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ):
        """Ensure one index; a failure is logged and startup continues."""
        start_time = time.time()
        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Index %s on %s ready in %.3fs", field_spec, collection.name, time.time() - start_time)
        except PyMongoError as e:
            db_logger.warning("Index %s on %s not created: %s", field_spec, collection.name, e)

    def log_query_start(self, collection_name: str, operation: str, query: Optional[Dict] = None) -> float:
        """Log a store query and return its start time for log_query_success / log_query_error."""
        db_logger.debug(
            "%s on '%s' query=%s",
            operation,
            collection_name,
            self._sanitize_query_for_logging(query) if query else {},
        )
        return time.time()

    def log_query_success(
        self,
        collection_name: str,
        operation: str,
        start_time: float,
        result_count: Optional[int] = None,
        result_info: Optional[str] = None,
    ):
        """Log the duration of a finished store query."""
        duration = time.time() - start_time
        if result_count is not None:
            perf_logger.debug(
                "%s on '%s' completed in %.3fs (%d documents)", operation, collection_name, duration, result_count
            )
        else:
            perf_logger.debug("%s on '%s' completed in %.3fs", operation, collection_name, duration)
        if result_info:
            db_logger.debug("%s on '%s': %s", operation, collection_name, result_info)

    def log_query_error(
        self, collection_name: str, operation: str, start_time: float, error: Exception, query: Optional[Dict] = None
    ):
        """Log a failed store query with its duration and the redacted query."""
        duration = time.time() - start_time
        perf_logger.error("%s on '%s' failed after %.3fs", operation, collection_name, duration)
        db_logger.error(
            "%s on '%s' failed after %.3fs: %s query=%s",
            operation,
            collection_name,
            duration,
            error,
            self._sanitize_query_for_logging(query) if query else {},
        )

    def _sanitize_query_for_logging(self, query: Dict[str, Any]) -> Dict[str, Any]:
        """Redact credential-like and email keys before a query reaches the logs."""
        if not isinstance(query, dict):
            return {}

        sensitive_fields = {"password", "token", "secret", "email"}

        sanitized: Dict[str, Any] = {}
        for key, value in query.items():
            if any(sensitive_field in key.lower() for sensitive_field in sensitive_fields):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_query_for_logging(value)
            else:
                sanitized[key] = value
        return sanitized


db_manager = DatabaseManager()
