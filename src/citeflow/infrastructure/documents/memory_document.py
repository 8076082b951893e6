"""
In-memory document.

Stands in for a host library entry: the CLI builds throw-away documents
from identifiers given on the command line, and tests use it to observe
what the pipeline writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from citeflow.domain.indexing import Citation
from citeflow.domain.pid import PID, PIDType, best_pid

logger = logging.getLogger(__name__)


class InMemoryCitationBatch:
    """Buffers citations for one document until ``flush()``."""

    def __init__(self, document: "InMemoryDocument"):
        self._document = document
        self._pending: List[Citation] = []
        self._flushed = False

    def append(self, citations: Sequence[Citation]) -> None:
        if self._flushed:
            raise RuntimeError(f"Citation batch for {self._document.key} was already flushed")
        self._pending.extend(citations)

    def flush(self) -> None:
        if self._flushed:
            raise RuntimeError(f"Citation batch for {self._document.key} was already flushed")
        self._flushed = True
        self._document._commit(self._pending)
        self._pending = []


@dataclass
class InMemoryDocument:
    key: str
    title: str = ""
    pids: List[PID] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    # number of flushes that reached the document
    flush_count: int = 0

    def get_pid(self, pid_type: PIDType) -> Optional[PID]:
        return best_pid(self.pids, (pid_type,))

    def get_best_pid(self, ordered_types: Sequence[PIDType]) -> Optional[PID]:
        return best_pid(self.pids, ordered_types)

    def set_pid(self, pid: PID) -> None:
        """Replace any identifier of the same type."""
        cleaned = PID(pid.type, pid.id).cleaned()
        if cleaned is None:
            raise ValueError(f"Refusing to store invalid identifier {pid}")
        self.pids = [p for p in self.pids if p.type != cleaned.type]
        self.pids.append(cleaned)

    def begin_batch(self) -> InMemoryCitationBatch:
        return InMemoryCitationBatch(self)

    def _commit(self, citations: Sequence[Citation]) -> None:
        self.citations.extend(citations)
        self.flush_count += 1
        logger.debug(f"Document {self.key}: {len(citations)} citations written")
