"""Query cache, key taxonomy, and batched invalidation."""

from packsync.infrastructure.cache.invalidation_batcher import (
    BatchedInvalidationManager,
    BatchState,
    InvalidationBatch,
)
from packsync.infrastructure.cache.query_cache import QueryCache
from packsync.infrastructure.cache.query_keys import (
    InvalidationPlan,
    QueryKey,
    Resource,
    coarse_resources,
    plan_invalidation,
)

__all__ = [
    "BatchState",
    "BatchedInvalidationManager",
    "InvalidationBatch",
    "InvalidationPlan",
    "QueryCache",
    "QueryKey",
    "Resource",
    "coarse_resources",
    "plan_invalidation",
]
