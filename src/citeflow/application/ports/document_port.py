"""
Document-side collaborator interfaces.

The host library owns its documents and their persistence. The engine sees a
document only through DocumentPort, appends citations only through the
CitationBatch handle returned by ``begin_batch()``, and asks the optional
matcher and the confirmation port for decisions it cannot make itself.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from citeflow.domain.indexing import BibliographicRecord, Citation
from citeflow.domain.pid import PID, PIDType


@runtime_checkable
class CitationBatch(Protocol):
    """Deferred-write scope: appends are buffered until ``flush()``."""

    def append(self, citations: Sequence[Citation]) -> None: ...

    def flush(self) -> None:
        """Persist everything appended so far, once. The handle is spent afterwards."""
        ...


@runtime_checkable
class DocumentPort(Protocol):
    """A citing document in the host library."""

    @property
    def key(self) -> str: ...

    @property
    def title(self) -> str: ...

    @property
    def pids(self) -> List[PID]: ...

    @property
    def citations(self) -> List[Citation]: ...

    def get_best_pid(self, ordered_types: Sequence[PIDType]) -> Optional[PID]: ...

    def set_pid(self, pid: PID) -> None:
        """Store a newly discovered identifier on the document."""
        ...

    def begin_batch(self) -> CitationBatch: ...


@runtime_checkable
class MatcherPort(Protocol):
    """Finds existing library entries that look like a bibliographic record."""

    def find_candidates(self, record: BibliographicRecord) -> List[str]: ...


@runtime_checkable
class ConfirmationPort(Protocol):
    """Asks the operator before risky steps."""

    def confirm_overwrite(self, provider: str, documents_with_citations: int) -> bool: ...

    def confirm_additions(
        self,
        provider: str,
        documents_to_update: int,
        documents_total: int,
        citations_to_add: int,
    ) -> bool: ...


class AutoConfirm:
    """Confirmation port that approves everything (batch jobs, tests)."""

    def confirm_overwrite(self, provider: str, documents_with_citations: int) -> bool:
        return True

    def confirm_additions(
        self,
        provider: str,
        documents_to_update: int,
        documents_total: int,
        citations_to_add: int,
    ) -> bool:
        return True
