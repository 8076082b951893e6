"""
Reference deduplication service.

Many documents in one batch often cite the same work. References are keyed
by the provider's primary id so that each one is parsed exactly once and
the result fanned out to every citing document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from citeflow.domain.indexing import IndexedWork, ParsableReference

logger = logging.getLogger(__name__)


@dataclass
class UniqueReference:
    reference: ParsableReference
    citing_keys: List[str] = field(default_factory=list)


class ReferenceDeduplicator:
    """Collapse references across documents by provider primary id."""

    def __init__(self):
        self._index: Dict[str, UniqueReference] = {}

    def reset(self) -> None:
        self._index.clear()

    def deduplicate(
        self,
        matched: Sequence[Tuple[str, IndexedWork]],
    ) -> Tuple[Dict[str, UniqueReference], int]:
        """
        Deduplicate references of matched works.

        Args:
            matched: (document key, matched work) pairs

        Returns:
            Tuple of (primary id -> unique reference, count of duplicates collapsed)
        """
        self.reset()
        duplicates_count = 0

        for document_key, work in matched:
            for reference in work.references:
                existing = self._index.get(reference.primary_id)
                if existing is None:
                    self._index[reference.primary_id] = UniqueReference(
                        reference=reference, citing_keys=[document_key]
                    )
                    continue

                duplicates_count += 1
                self._merge_reference(existing.reference, reference)
                if document_key not in existing.citing_keys:
                    existing.citing_keys.append(document_key)

        total = sum(work.reference_count for _, work in matched)
        logger.info(
            f"Reference deduplication complete: {total} → {len(self._index)} "
            f"({duplicates_count} duplicates collapsed)"
        )
        return dict(self._index), duplicates_count

    @staticmethod
    def _merge_reference(existing: ParsableReference, new: ParsableReference) -> None:
        """Fill in identifiers and payload the first copy lacked."""
        known = {pid.comparable for pid in existing.external_ids if pid.comparable}
        for pid in new.external_ids:
            if pid.comparable and pid.comparable not in known:
                existing.external_ids.append(pid)
                known.add(pid.comparable)
        if existing.raw_object is None and new.raw_object is not None:
            existing.raw_object = new.raw_object
