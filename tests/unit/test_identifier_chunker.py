from __future__ import annotations

import pytest

from citeflow.application.services.identifier_chunker import (
    chunk_identifiers,
    chunked,
    group_by_type,
)
from citeflow.domain.pid import PID, PIDType


def _dois(n):
    return [PID(PIDType.DOI, f"10.1000/{i}") for i in range(n)]


def _arxivs(n):
    return [PID(PIDType.ARXIV, f"2101.{i:05d}") for i in range(n)]


def test_chunked_sizes():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunked([1], 0)


def test_group_by_type_keeps_first_seen_order():
    pids = [_arxivs(1)[0], *_dois(2)]
    groups = group_by_type(pids)
    assert list(groups) == [PIDType.ARXIV, PIDType.DOI]
    assert len(groups[PIDType.DOI]) == 2


def test_grouped_chunks_are_homogeneous():
    pids = _dois(150) + _arxivs(100)
    chunks = chunk_identifiers(pids, 90, grouping_required=True)

    assert [len(c) for c in chunks] == [90, 60, 90, 10]
    for chunk in chunks:
        assert len({pid.type for pid in chunk}) == 1


def test_ungrouped_chunks_mix_types():
    pids = _dois(150) + _arxivs(100)
    chunks = chunk_identifiers(pids, 90)

    assert [len(c) for c in chunks] == [90, 90, 70]
    assert {pid.type for pid in chunks[1]} == {PIDType.DOI, PIDType.ARXIV}
