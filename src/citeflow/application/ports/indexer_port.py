"""
Indexer port interface.

Defines the interface every citation indexer provider implements. The
orchestration engine only ever talks to providers through these protocols,
so tests can drive it with plain fake objects.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from citeflow.application.ports.document_port import DocumentPort
from citeflow.domain.indexing import (
    IndexedWork,
    IndexerCapabilities,
    ParsableReference,
    ParsedReference,
)
from citeflow.domain.pid import PID


@runtime_checkable
class IndexerPort(Protocol):
    """Abstract interface for all indexer providers."""

    @property
    def capabilities(self) -> IndexerCapabilities:
        """Return the provider capability record."""
        ...

    async def fetch(self, identifiers: Sequence[PID]) -> List[IndexedWork]:
        """
        Fetch the works (and their reference lists) for a chunk of identifiers.

        Args:
            identifiers: Identifiers of one chunk, already grouped by type
                when the provider requires it

        Returns:
            The works the provider knows about, in any order
        """
        ...


@runtime_checkable
class SearchableIndexer(Protocol):
    """Provider that can look a document up by free text."""

    async def search(self, document: DocumentPort) -> Optional[IndexedWork]: ...


@runtime_checkable
class ManualParsingIndexer(Protocol):
    """Provider that can turn its own raw reference payloads into records."""

    async def manual_parse(
        self, references: Sequence[ParsableReference]
    ) -> List[ParsedReference]: ...
