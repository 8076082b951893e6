"""Record source/resolver interfaces used by the lookup engine."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from citeflow.domain.indexing import BibliographicRecord
from citeflow.domain.pid import PID, PIDType


@runtime_checkable
class BatchRecordSource(Protocol):
    """A search API that resolves many identifiers of one type per call."""

    @property
    def batch_types(self) -> Sequence[PIDType]: ...

    @property
    def batch_size(self) -> int: ...

    async def resolve_batch(
        self, pid_type: PIDType, ids: Sequence[str]
    ) -> List[BibliographicRecord]: ...

    def extract_id(self, record: BibliographicRecord, pid_type: PIDType) -> Optional[str]:
        """Re-extract the identifier of *pid_type* from a returned record."""
        ...


@runtime_checkable
class RecordResolver(Protocol):
    """Resolves a single identifier."""

    async def resolve(self, pid: PID) -> Optional[BibliographicRecord]: ...


@runtime_checkable
class ResolverRegistry(Protocol):
    """Discovers the resolver for an identifier type."""

    def get(self, pid_type: PIDType) -> Optional[RecordResolver]: ...
