"""Application workflows."""

from .indexer_pipeline import (
    IdentifierRefreshReport,
    IndexerPipeline,
    IndexerProgress,
    IndexerRunReport,
)

__all__ = [
    "IdentifierRefreshReport",
    "IndexerPipeline",
    "IndexerProgress",
    "IndexerRunReport",
]
