"""Factory for TTL store backends."""

from ai_core.config.settings import Settings
from ai_core.stores.store import InMemoryTTLStore, TTLStore


def get_ttl_store(settings: Settings) -> TTLStore:
    """Build the store backing rate-limit windows."""
    backend = settings.rate_store_backend

    if backend == "memory":
        return InMemoryTTLStore()

    if backend == "dynamodb":
        # Lazy import to avoid boto3 dependency when not needed
        from ai_core.stores.dynamodb_store import DynamoDBTTLStore
        return DynamoDBTTLStore(
            table_name=settings.rate_limit_table_name,
            region=settings.aws_region,
        )

    raise ValueError(f"Unknown rate store backend: {backend}")
