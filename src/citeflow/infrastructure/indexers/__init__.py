"""Concrete citation indexer providers."""

from typing import Dict, Type

from .crossref_indexer import CrossrefIndexer
from .openalex_indexer import OpenAlexIndexer
from .opencitations_indexer import OpenCitationsIndexer
from .semantic_scholar_indexer import SemanticScholarIndexer

INDEXERS: Dict[str, Type] = {
    "openalex": OpenAlexIndexer,
    "semantic": SemanticScholarIndexer,
    "crossref": CrossrefIndexer,
    "opencitations": OpenCitationsIndexer,
}

__all__ = [
    "CrossrefIndexer",
    "OpenAlexIndexer",
    "OpenCitationsIndexer",
    "SemanticScholarIndexer",
    "INDEXERS",
]
