from __future__ import annotations

import pytest

from citeflow.application.ports.document_port import CitationBatch, DocumentPort
from citeflow.domain.indexing import BibliographicRecord, Citation
from citeflow.domain.pid import PID, PIDType
from citeflow.infrastructure.documents import InMemoryDocument


def _citation(title):
    return Citation(item=BibliographicRecord(title=title))


def test_satisfies_document_port():
    document = InMemoryDocument(key="D1")
    assert isinstance(document, DocumentPort)
    assert isinstance(document.begin_batch(), CitationBatch)


def test_batch_writes_once_on_flush():
    document = InMemoryDocument(key="D1")
    batch = document.begin_batch()
    batch.append([_citation("a")])
    batch.append([_citation("b")])

    assert document.citations == []
    batch.flush()

    assert [c.item.title for c in document.citations] == ["a", "b"]
    assert document.flush_count == 1


def test_spent_batch_rejects_use():
    document = InMemoryDocument(key="D1")
    batch = document.begin_batch()
    batch.flush()

    with pytest.raises(RuntimeError):
        batch.append([_citation("late")])
    with pytest.raises(RuntimeError):
        batch.flush()


def test_set_pid_cleans_and_replaces_same_type():
    document = InMemoryDocument(key="D1", pids=[PID(PIDType.DOI, "10.1000/old")])

    document.set_pid(PID(PIDType.DOI, "https://doi.org/10.1000/NEW"))
    document.set_pid(PID(PIDType.OPENALEX, "https://openalex.org/W7"))

    assert [str(p) for p in document.pids] == ["DOI:10.1000/new", "OpenAlex:W7"]


def test_set_pid_rejects_invalid():
    document = InMemoryDocument(key="D1")
    with pytest.raises(ValueError):
        document.set_pid(PID(PIDType.QID, "not-a-qid"))
    assert document.pids == []


def test_best_pid():
    document = InMemoryDocument(
        key="D1", pids=[PID(PIDType.DOI, "10.1000/a"), PID(PIDType.MAG, "123")]
    )
    assert document.get_best_pid((PIDType.MAG, PIDType.DOI)).type == PIDType.MAG
    assert document.get_pid(PIDType.QID) is None
