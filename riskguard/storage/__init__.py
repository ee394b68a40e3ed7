"""
Storage components for the risk scoring pipeline.
"""

from typing import Any, Dict, NamedTuple, Optional

from .base import AccountProfileStore, AlertRepository, TransactionRepository
from .memory import (
    InMemoryAccountProfileStore,
    InMemoryAlertRepository,
    InMemoryTransactionRepository,
)
from .redis_store import (
    RedisAccountProfileStore,
    RedisAlertRepository,
    RedisTransactionRepository,
    create_redis_client,
)
from .retry import RetryPolicy, call_with_retry


class Stores(NamedTuple):
    profiles: AccountProfileStore
    transactions: TransactionRepository
    alerts: AlertRepository


def build_stores(
    storage_config: Optional[Dict[str, Any]] = None,
    redis_config: Optional[Dict[str, Any]] = None,
) -> Stores:
    """Create the stores selected by the `storage.backend` setting."""
    storage_config = storage_config or {}
    backend = storage_config.get("backend", "memory")

    if backend == "memory":
        return Stores(
            profiles=InMemoryAccountProfileStore(),
            transactions=InMemoryTransactionRepository(),
            alerts=InMemoryAlertRepository(),
        )

    if backend == "redis":
        client = create_redis_client(redis_config)
        return Stores(
            profiles=RedisAccountProfileStore(
                client, ttl_seconds=storage_config.get("profile_ttl_seconds")
            ),
            transactions=RedisTransactionRepository(
                client,
                history_ttl_seconds=int(
                    storage_config.get("history_ttl_seconds", 86400)
                ),
            ),
            alerts=RedisAlertRepository(client),
        )

    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    "AccountProfileStore",
    "AlertRepository",
    "TransactionRepository",
    "InMemoryAccountProfileStore",
    "InMemoryAlertRepository",
    "InMemoryTransactionRepository",
    "RedisAccountProfileStore",
    "RedisAlertRepository",
    "RedisTransactionRepository",
    "create_redis_client",
    "RetryPolicy",
    "call_with_retry",
    "Stores",
    "build_stores",
]
