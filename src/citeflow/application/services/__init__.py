"""Application services used by the indexing workflow."""

from .identifier_chunker import chunk_identifiers, chunked, group_by_type
from .lookup_engine import (
    DEFAULT_LOOKUP_PRIORITY,
    LookupEngine,
    LookupFailure,
    LookupRequest,
    LookupResult,
)
from .rate_limiter import RateLimiter
from .reference_deduplicator import ReferenceDeduplicator, UniqueReference
from .work_matcher import DEFAULT_EQUIVALENCE_RULES, EquivalenceRule, WorkMatcher

__all__ = [
    "chunk_identifiers",
    "chunked",
    "group_by_type",
    "DEFAULT_LOOKUP_PRIORITY",
    "LookupEngine",
    "LookupFailure",
    "LookupRequest",
    "LookupResult",
    "RateLimiter",
    "ReferenceDeduplicator",
    "UniqueReference",
    "DEFAULT_EQUIVALENCE_RULES",
    "EquivalenceRule",
    "WorkMatcher",
]
