"""Database connection module for the Learning Hub."""

from src.core.database.async_cassandra import (
    FEATURE_TABLES_CQL,
    AsyncCassandraConnection,
    init_async_cassandra,
    shutdown_async_cassandra,
)


__all__ = [
    "FEATURE_TABLES_CQL",
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "shutdown_async_cassandra",
]
