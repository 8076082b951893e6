"""Grouping and chunking of identifiers before they are sent to a provider."""

from __future__ import annotations

from typing import Dict, List, Sequence, TypeVar

from citeflow.domain.pid import PID, PIDType

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split *items* into consecutive lists of at most *size* elements."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def group_by_type(pids: Sequence[PID]) -> Dict[PIDType, List[PID]]:
    """Bucket identifiers by type, keeping first-seen type order."""
    groups: Dict[PIDType, List[PID]] = {}
    for pid in pids:
        groups.setdefault(pid.type, []).append(pid)
    return groups


def chunk_identifiers(
    pids: Sequence[PID],
    chunk_size: int,
    *,
    grouping_required: bool = False,
) -> List[List[PID]]:
    """
    Split identifiers into request-sized chunks.

    When *grouping_required* is set every chunk holds a single identifier
    type; otherwise the combined list is chunked as-is.
    """
    if not grouping_required:
        return chunked(list(pids), chunk_size)

    chunks: List[List[PID]] = []
    for group in group_by_type(pids).values():
        chunks.extend(chunked(group, chunk_size))
    return chunks
