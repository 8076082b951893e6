"""Pure domain types: identifiers, the OCI codec and indexing records."""

from .errors import (
    CiteflowError,
    CodecError,
    NoUsableIdentifierError,
    NothingParsedError,
    NothingResolvedError,
    ProviderCallError,
    RateLimitedError,
    UserAbort,
)
from .indexing import (
    BibliographicRecord,
    Citation,
    IndexedWork,
    IndexerCapabilities,
    MatchFailure,
    ParsableReference,
    ParsedReference,
    RateLimitPolicy,
)
from .pid import ALL_TYPES, FETCHABLE_TYPES, PID, PIDType, SHOWABLE_TYPES

__all__ = [
    "ALL_TYPES",
    "FETCHABLE_TYPES",
    "SHOWABLE_TYPES",
    "PID",
    "PIDType",
    "BibliographicRecord",
    "Citation",
    "IndexedWork",
    "IndexerCapabilities",
    "MatchFailure",
    "ParsableReference",
    "ParsedReference",
    "RateLimitPolicy",
    "CiteflowError",
    "CodecError",
    "NoUsableIdentifierError",
    "NothingParsedError",
    "NothingResolvedError",
    "ProviderCallError",
    "RateLimitedError",
    "UserAbort",
]
