"""
Matching of provider works back to the documents that asked for them.

Works are indexed by the comparable form of every identifier they carry. A
document's chosen identifier is looked up directly first; on a miss the
equivalence rules are tried in order and the first hit wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from citeflow.domain.indexing import IndexedWork
from citeflow.domain.pid import PID, PIDType, arxiv_id_from_doi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquivalenceRule:
    """Rewrite an identifier of one type into an equivalent one of another."""

    name: str
    from_type: PIDType
    to_type: PIDType
    transform: Callable[[str], Optional[str]]

    def apply(self, pid: PID) -> Optional[PID]:
        if pid.type != self.from_type:
            return None
        clean = pid.clean_id
        if not clean:
            return None
        mapped = self.transform(clean)
        return PID(self.to_type, mapped) if mapped else None


def _openalex_to_mag(openalex_id: str) -> Optional[str]:
    # A MAG id, when one exists, is the OpenAlex key without the leading W
    if openalex_id[:1].upper() != "W" or not openalex_id[1:].isdigit():
        return None
    return openalex_id[1:]


DEFAULT_EQUIVALENCE_RULES: tuple[EquivalenceRule, ...] = (
    EquivalenceRule("openalex-mag", PIDType.OPENALEX, PIDType.MAG, _openalex_to_mag),
    EquivalenceRule("doi-arxiv", PIDType.DOI, PIDType.ARXIV, arxiv_id_from_doi),
)


class WorkMatcher:
    """Index of works keyed by comparable identifier."""

    def __init__(self, rules: Sequence[EquivalenceRule] = DEFAULT_EQUIVALENCE_RULES):
        self.rules = tuple(rules)
        self._index: Dict[str, IndexedWork] = {}

    def reset(self) -> None:
        self._index.clear()

    def index(self, works: Sequence[IndexedWork]) -> None:
        """Add works to the index. The first work seen for a key keeps it."""
        for work in works:
            for pid in work.identifiers:
                key = pid.comparable
                if key and key not in self._index:
                    self._index[key] = work

    def match(self, pid: PID) -> Optional[IndexedWork]:
        key = pid.comparable
        if not key:
            return None

        work = self._index.get(key)
        if work is not None:
            return work

        for rule in self.rules:
            equivalent = rule.apply(pid)
            if equivalent is None or not equivalent.comparable:
                continue
            work = self._index.get(equivalent.comparable)
            if work is not None:
                logger.debug(f"Matched {pid} through rule {rule.name} ({equivalent})")
                return work
        return None

    def __len__(self) -> int:
        return len(self._index)

    def keys(self) -> List[str]:
        return list(self._index)
