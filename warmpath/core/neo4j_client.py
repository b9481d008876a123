"""Neo4j driver and session management for the relationship graph."""

import asyncio
from typing import Any, Optional

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession
from neo4j.exceptions import (
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)

from warmpath.core.config import Neo4jSettings, settings
from warmpath.core.exceptions import ConfigurationError
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

TRANSIENT_ERRORS = (ServiceUnavailable, SessionExpired, TransientError)


class Neo4jClientManager:
    """Manages the Neo4j driver and sessions."""

    _driver: Optional[AsyncDriver] = None
    _settings: Neo4jSettings = settings.neo4j

    # Node labels written by the graph constructor
    NODE_LABELS = ["Person", "Firm", "School"]

    # Properties looked up by path finding and mutual-connection ingestion
    INDEXED_PROPERTIES = {
        "Person": ["name", "linkedin_url", "is_seed"],
        "Firm": ["name"],
        "School": ["name"],
    }

    @classmethod
    def configure(cls, neo4j_settings: Neo4jSettings) -> None:
        """Use different connection settings. Takes effect on the next driver creation."""
        cls._settings = neo4j_settings

    @classmethod
    async def get_driver(cls) -> AsyncDriver:
        """Get or create Neo4j driver."""
        if cls._driver is None:
            if not cls._settings.host or not cls._settings.username:
                raise ConfigurationError("NEO4J_HOST and NEO4J_USERNAME must be set")
            uri = cls._settings.uri
            cls._driver = AsyncGraphDatabase.driver(
                uri,
                auth=(cls._settings.username, cls._settings.password),
            )
            LOGGER.info("Neo4j driver initialized", extra={"uri": uri})
        return cls._driver

    @classmethod
    async def close(cls) -> None:
        """Close Neo4j driver."""
        if cls._driver:
            await cls._driver.close()
            cls._driver = None
            LOGGER.info("Neo4j driver closed")

    @classmethod
    async def get_session(cls, database: Optional[str] = None) -> AsyncSession:
        """Get Neo4j async session."""
        driver = await cls.get_driver()
        return driver.session(database=database or cls._settings.database)

    @classmethod
    async def ensure_constraints(cls) -> None:
        """Ensure node ids are unique per label so MERGE stays idempotent."""
        driver = await cls.get_driver()

        async with driver.session(database=cls._settings.database) as session:
            for label in cls.NODE_LABELS:
                constraint_name = f"constraint_{label.lower()}_id_unique"
                cypher = (
                    f"CREATE CONSTRAINT {constraint_name} IF NOT EXISTS "
                    f"FOR (n:{label}) REQUIRE n.id IS UNIQUE"
                )
                try:
                    await session.run(cypher)
                    LOGGER.info(f"Ensured constraint for {label}", extra={"constraint": constraint_name})
                except Exception as e:
                    LOGGER.error(f"Failed to create constraint for {label}: {e}")

    @classmethod
    async def ensure_indexes(cls) -> None:
        """Ensure lookup indexes used by path finding and mutual ingestion."""
        driver = await cls.get_driver()

        async with driver.session(database=cls._settings.database) as session:
            for label, properties in cls.INDEXED_PROPERTIES.items():
                for prop in properties:
                    index_name = f"idx_{label.lower()}_{prop}"
                    try:
                        await session.run(
                            f"CREATE INDEX {index_name} IF NOT EXISTS FOR (n:{label}) ON (n.{prop})"
                        )
                    except Exception as e:
                        LOGGER.error(f"Failed to create index {index_name}: {e}")

            LOGGER.info("Ensured indexes for all node labels")

    @classmethod
    async def run_query(
        cls,
        query: str,
        parameters: dict[str, Any] | None = None,
        database: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Execute a Cypher query with retry logic for transient failures.

        Args:
            query: Cypher query string
            parameters: Query parameters dictionary
            database: Database name (defaults to configured database)
            max_retries: Maximum retry attempts for transient errors
            retry_delay: Initial delay between retries in seconds (exponential backoff)

        Returns:
            List of result records as dictionaries

        Raises:
            ServiceUnavailable: Neo4j service is unavailable after retries
            Exception: Non-transient errors
        """
        parameters = parameters or {}
        db = database or cls._settings.database
        max_retries = max_retries or cls._settings.max_retries
        retry_delay = cls._settings.retry_delay if retry_delay is None else retry_delay

        for attempt in range(max_retries):
            try:
                async with await cls.get_session(database=db) as session:
                    result = await session.run(query, parameters)
                    return await result.data()

            except TRANSIENT_ERRORS as e:
                if attempt == max_retries - 1:
                    LOGGER.error(
                        f"Neo4j query failed after {max_retries} attempts",
                        extra={
                            "query": query[:100],
                            "error": str(e),
                            "attempts": max_retries,
                        },
                    )
                    raise

                wait_time = retry_delay * (2**attempt)
                LOGGER.warning(
                    f"Neo4j transient error, retrying in {wait_time}s",
                    extra={
                        "attempt": attempt + 1,
                        "max_retries": max_retries,
                        "error": str(e),
                    },
                )
                await asyncio.sleep(wait_time)

            except Exception as e:
                LOGGER.error(
                    "Neo4j query failed with non-transient error",
                    extra={
                        "query": query[:100],
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise

        return []


async def init_neo4j(ensure_schema: bool = True) -> None:
    """Initialize Neo4j connection and ensure constraints and indexes."""
    await Neo4jClientManager.get_driver()
    if ensure_schema:
        await Neo4jClientManager.ensure_constraints()
        await Neo4jClientManager.ensure_indexes()


async def close_neo4j() -> None:
    """Close Neo4j connection."""
    await Neo4jClientManager.close()
