"""
Citation indexing domain models.

Contains the transient data structures that flow through an indexing run:
- RateLimitPolicy / IndexerCapabilities: what a provider can do
- IndexedWork / ParsableReference: what a provider returns
- BibliographicRecord / ParsedReference: what the lookup engine produces
- Citation: what gets merged into a document
- MatchFailure: a document whose identifier matched no returned work
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from citeflow.domain.pid import PID, PIDType


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum concurrency and minimum spacing between dispatches."""

    max_concurrent: int = 1
    min_interval_s: float = 0.0


@dataclass(frozen=True)
class IndexerCapabilities:
    """Static description of an indexer provider."""

    name: str
    supported_types: tuple[PIDType, ...]
    own_type: PIDType
    chunk_size: int = 50
    grouping_required: bool = False
    rate_limit: RateLimitPolicy = field(default_factory=RateLimitPolicy)


@dataclass
class ParsableReference:
    """One outgoing reference as returned by a provider."""

    primary_id: str
    external_ids: List[PID] = field(default_factory=list)
    raw_object: Any = None
    oci: Optional[str] = None


@dataclass
class IndexedWork:
    """A work as known by one provider, with its outgoing references."""

    primary_id: str
    identifiers: List[PID] = field(default_factory=list)
    references: List[ParsableReference] = field(default_factory=list)

    @property
    def reference_count(self) -> int:
        return len(self.references)


@dataclass
class BibliographicRecord:
    """Normalized bibliographic metadata for a cited work."""

    title: str = ""
    item_type: str = "journalArticle"
    authors: List[str] = field(default_factory=list)
    year: Optional[int] = None
    venue: Optional[str] = None
    pids: List[PID] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    def get_pid(self, pid_type: PIDType) -> Optional[PID]:
        for pid in self.pids:
            if pid.type == pid_type and pid.clean_id:
                return pid
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "item_type": self.item_type,
            "authors": self.authors,
            "year": self.year,
            "venue": self.venue,
            "pids": [{"type": p.type.value, "id": p.id} for p in self.pids],
        }


@dataclass
class ParsedReference:
    primary_id: str
    item: BibliographicRecord


@dataclass
class Citation:
    """A citing-document → cited-record link."""

    item: BibliographicRecord
    pids: List[PID] = field(default_factory=list)
    oci: Optional[str] = None
    linked_key: Optional[str] = None

    def comparables(self) -> set[str]:
        keys = set()
        for pid in [*self.item.pids, *self.pids]:
            key = pid.comparable
            if key:
                keys.add(key)
        return keys

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item.to_dict(),
            "pids": [{"type": p.type.value, "id": p.id} for p in self.pids],
            "oci": self.oci,
            "linked_key": self.linked_key,
        }


@dataclass(frozen=True)
class MatchFailure:
    """A document whose identifier matched nothing, even after fallbacks."""

    document_key: str
    pid: str

    def to_dict(self) -> Dict[str, str]:
        return {"document_key": self.document_key, "pid": self.pid}
