from __future__ import annotations

from citeflow.application.services.work_matcher import (
    DEFAULT_EQUIVALENCE_RULES,
    EquivalenceRule,
    WorkMatcher,
)
from citeflow.domain.indexing import IndexedWork
from citeflow.domain.pid import PID, PIDType


def _work(primary_id, *pids):
    return IndexedWork(primary_id=primary_id, identifiers=list(pids))


class TestWorkMatcher:
    def setup_method(self):
        self.matcher = WorkMatcher()

    def test_direct_match_ignores_formatting(self):
        work = _work("S1", PID(PIDType.DOI, "10.1000/XYZ"))
        self.matcher.index([work])
        assert self.matcher.match(PID(PIDType.DOI, "https://doi.org/10.1000/xyz")) is work

    def test_openalex_falls_back_to_mag(self):
        work = _work("S1", PID(PIDType.MAG, "123"))
        self.matcher.index([work])
        assert self.matcher.match(PID(PIDType.OPENALEX, "W123")) is work

    def test_arxiv_doi_falls_back_to_arxiv_id(self):
        work = _work("S1", PID(PIDType.ARXIV, "2101.00001"))
        self.matcher.index([work])
        assert self.matcher.match(PID(PIDType.DOI, "10.48550/arXiv.2101.00001")) is work

    def test_direct_match_beats_rule(self):
        by_mag = _work("S1", PID(PIDType.MAG, "123"))
        by_openalex = _work("S2", PID(PIDType.OPENALEX, "W123"))
        self.matcher.index([by_mag, by_openalex])
        assert self.matcher.match(PID(PIDType.OPENALEX, "W123")) is by_openalex

    def test_first_work_keeps_shared_key(self):
        first = _work("S1", PID(PIDType.DOI, "10.1000/x"))
        second = _work("S2", PID(PIDType.DOI, "10.1000/X"))
        self.matcher.index([first, second])
        assert self.matcher.match(PID(PIDType.DOI, "10.1000/x")) is first
        assert len(self.matcher) == 1

    def test_no_match(self):
        self.matcher.index([_work("S1", PID(PIDType.DOI, "10.1000/x"))])
        assert self.matcher.match(PID(PIDType.DOI, "10.1000/y")) is None
        assert self.matcher.match(PID(PIDType.DOI, "garbage")) is None

    def test_reset_clears_index(self):
        self.matcher.index([_work("S1", PID(PIDType.DOI, "10.1000/x"))])
        self.matcher.reset()
        assert self.matcher.keys() == []

    def test_custom_rules(self):
        rule = EquivalenceRule("pmid-mag", PIDType.PMID, PIDType.MAG, lambda value: value)
        matcher = WorkMatcher((*DEFAULT_EQUIVALENCE_RULES, rule))
        work = _work("S1", PID(PIDType.MAG, "42"))
        matcher.index([work])
        assert matcher.match(PID(PIDType.PMID, "42")) is work


def test_rule_only_applies_to_its_source_type():
    rule = DEFAULT_EQUIVALENCE_RULES[0]
    assert rule.apply(PID(PIDType.DOI, "10.1000/x")) is None
    mapped = rule.apply(PID(PIDType.OPENALEX, "W99"))
    assert mapped.type == PIDType.MAG
    assert mapped.id == "99"
