"""Application ports (interfaces) used by the application layer."""

from .document_port import (
    AutoConfirm,
    CitationBatch,
    ConfirmationPort,
    DocumentPort,
    MatcherPort,
)
from .indexer_port import IndexerPort, ManualParsingIndexer, SearchableIndexer
from .lookup_port import BatchRecordSource, RecordResolver, ResolverRegistry

__all__ = [
    "AutoConfirm",
    "CitationBatch",
    "ConfirmationPort",
    "DocumentPort",
    "MatcherPort",
    "IndexerPort",
    "ManualParsingIndexer",
    "SearchableIndexer",
    "BatchRecordSource",
    "RecordResolver",
    "ResolverRegistry",
]
