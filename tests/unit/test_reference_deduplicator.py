"""
Tests for cross-document reference deduplication.
"""

from citeflow.application.services.reference_deduplicator import ReferenceDeduplicator
from citeflow.domain.indexing import IndexedWork, ParsableReference
from citeflow.domain.pid import PID, PIDType


def _ref(primary_id, *pids, raw=None):
    return ParsableReference(primary_id=primary_id, external_ids=list(pids), raw_object=raw)


class TestReferenceDeduplicator:
    def setup_method(self):
        self.dedup = ReferenceDeduplicator()

    def test_shared_reference_collapsed(self):
        shared_a = _ref("R-shared", PID(PIDType.DOI, "10.1000/shared"))
        shared_b = _ref("R-shared", PID(PIDType.DOI, "10.1000/shared"))
        matched = [
            ("D1", IndexedWork("W1", references=[_ref("R1"), shared_a])),
            ("D2", IndexedWork("W2", references=[shared_b, _ref("R4")])),
        ]

        unique, duplicates = self.dedup.deduplicate(matched)

        assert sorted(unique) == ["R-shared", "R1", "R4"]
        assert duplicates == 1
        assert unique["R-shared"].citing_keys == ["D1", "D2"]

    def test_identifiers_merged_from_later_copies(self):
        first = _ref("R1", PID(PIDType.DOI, "10.1000/x"))
        second = _ref("R1", PID(PIDType.DOI, "10.1000/X"), PID(PIDType.ARXIV, "2101.00001"), raw={"a": 1})
        matched = [
            ("D1", IndexedWork("W1", references=[first])),
            ("D2", IndexedWork("W2", references=[second])),
        ]

        unique, _ = self.dedup.deduplicate(matched)

        merged = unique["R1"].reference
        assert [p.type for p in merged.external_ids] == [PIDType.DOI, PIDType.ARXIV]
        assert merged.raw_object == {"a": 1}

    def test_repeat_within_one_document(self):
        matched = [("D1", IndexedWork("W1", references=[_ref("R1"), _ref("R1")]))]
        unique, duplicates = self.dedup.deduplicate(matched)
        assert duplicates == 1
        assert unique["R1"].citing_keys == ["D1"]

    def test_each_call_starts_fresh(self):
        self.dedup.deduplicate([("D1", IndexedWork("W1", references=[_ref("R1")]))])
        unique, duplicates = self.dedup.deduplicate([("D2", IndexedWork("W2", references=[_ref("R2")]))])
        assert list(unique) == ["R2"]
        assert duplicates == 0

    def test_empty(self):
        assert self.dedup.deduplicate([]) == ({}, 0)
