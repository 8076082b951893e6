"""
Unit tests for persistent identifier cleaning, comparison and selection.
"""

from __future__ import annotations

import pytest

from citeflow.domain.pid import (
    PID,
    PIDType,
    arxiv_doi,
    arxiv_id_from_doi,
    best_pid,
    normalize_isbn,
    parse_pid,
)


class TestCleaning:
    """Type-specific normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("10.1000/XYZ", "10.1000/xyz"),
            ("https://doi.org/10.1000/XYZ", "10.1000/xyz"),
            ("http://dx.doi.org/10.1000/abc", "10.1000/abc"),
            ("doi:10.1000/abc.", "10.1000/abc"),
            ("  10.1000/abc,  ", "10.1000/abc"),
        ],
    )
    def test_doi(self, raw, expected):
        assert PID(PIDType.DOI, raw).clean_id == expected

    def test_doi_without_prefix_is_invalid(self):
        assert PID(PIDType.DOI, "not a doi").clean_id is None
        assert PID(PIDType.DOI, "").clean_id is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("arXiv:2101.00001v2", "2101.00001"),
            ("https://arxiv.org/abs/2101.00001v3", "2101.00001"),
            ("2101.00001", "2101.00001"),
            ("hep-th/9901001", "hep-th/9901001"),
        ],
    )
    def test_arxiv_drops_version(self, raw, expected):
        assert PID(PIDType.ARXIV, raw).clean_id == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://openalex.org/W123", "W123"),
            ("https://openalex.org/works/w123", "W123"),
            ("w123", "W123"),
            ("123", "W123"),
        ],
    )
    def test_openalex(self, raw, expected):
        assert PID(PIDType.OPENALEX, raw).clean_id == expected

    def test_openalex_rejects_other_entities(self):
        assert PID(PIDType.OPENALEX, "A123").clean_id is None

    @pytest.mark.parametrize("raw,expected", [("q42", "Q42"), ("42", "Q42"), ("Q42", "Q42")])
    def test_qid(self, raw, expected):
        assert PID(PIDType.QID, raw).clean_id == expected

    def test_qid_invalid(self):
        assert PID(PIDType.QID, "Qx").clean_id is None

    @pytest.mark.parametrize(
        "raw",
        [
            "br/062104388184",
            "BR/062104388184",
            "omid:br/062104388184",
            "https://opencitations.net/meta/br/062104388184",
            "062104388184",
        ],
    )
    def test_omid(self, raw):
        assert PID(PIDType.OMID, raw).clean_id == "br/062104388184"

    def test_omid_must_follow_supplier_layout(self):
        assert PID(PIDType.OMID, "br/123").clean_id is None
        assert PID(PIDType.OMID, "https://example.org/nothing").clean_id is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("978-0-262-03384-8", "9780262033848"),
            ("ISBN 0-262-03384-4", "0262033844"),
            ("0306406152", "0306406152"),
        ],
    )
    def test_isbn_checksum(self, raw, expected):
        assert normalize_isbn(raw) == expected

    def test_isbn_bad_checksum(self):
        assert PID(PIDType.ISBN, "9780262033849").clean_id is None
        assert PID(PIDType.ISBN, "0306406153").clean_id is None

    @pytest.mark.parametrize(
        "raw",
        [
            "5815332",
            "PMC5815332",
            "pmc5815332",
            "PMCID:PMC5815332",
            "https://www.ncbi.nlm.nih.gov/pmc/articles/PMC5815332/",
        ],
    )
    def test_pmcid_always_carries_prefix(self, raw):
        assert PID(PIDType.PMCID, raw).clean_id == "PMC5815332"

    def test_bare_and_prefixed_pmcid_compare_equal(self):
        bare = PID(PIDType.PMCID, "5815332")
        prefixed = PID(PIDType.PMCID, "PMC5815332")
        assert bare.comparable == prefixed.comparable == "pmcid:pmc5815332"
        assert PID.equal(bare, prefixed)
        assert PID(PIDType.PMCID, "PMCabc").clean_id is None

    def test_pass_through_types(self):
        assert PID(PIDType.PMID, "12345").clean_id == "12345"
        assert PID(PIDType.CORPUS_ID, "215416146").clean_id == "215416146"
        assert PID(PIDType.MAG, "").clean_id is None

    @pytest.mark.parametrize(
        "pid_type,raw",
        [
            (PIDType.DOI, "https://doi.org/10.1000/XYZ"),
            (PIDType.ARXIV, "arXiv:2101.00001v2"),
            (PIDType.OPENALEX, "https://openalex.org/W123"),
            (PIDType.QID, "q42"),
            (PIDType.OMID, "omid:br/062104388184"),
            (PIDType.ISBN, "978-0-262-03384-8"),
            (PIDType.MAG, "2741809807"),
            (PIDType.PMCID, "5815332"),
        ],
    )
    def test_cleaning_is_idempotent(self, pid_type, raw):
        once = PID(pid_type, raw).clean_id
        assert PID(pid_type, once).clean_id == once


class TestComparison:
    def test_comparable_equivalence(self):
        a = PID(PIDType.DOI, "10.1000/XYZ")
        b = PID(PIDType.DOI, "https://doi.org/10.1000/xyz")
        assert a.comparable == b.comparable == "doi:10.1000/xyz"
        assert PID.equal(a, b)

    def test_types_never_compare_equal(self):
        assert not PID.equal(PID(PIDType.MAG, "123"), PID(PIDType.PMID, "123"))

    def test_invalid_ids_have_no_comparable(self):
        invalid = PID(PIDType.DOI, "garbage")
        assert invalid.comparable is None
        assert not PID.equal(invalid, PID(PIDType.DOI, "garbage"))

    def test_comparable_is_lowercase(self):
        assert PID(PIDType.OPENALEX, "W123").comparable == "openalex:w123"


class TestUrls:
    def test_doi_url_escapes_reserved_characters(self):
        pid = PID(PIDType.DOI, "10.1000/a#b?c%d")
        assert pid.url == "https://doi.org/10.1000/a%23b%3fc%25d"

    def test_resolver_urls(self):
        assert PID(PIDType.ARXIV, "2101.00001v1").url == "https://arxiv.org/abs/2101.00001"
        assert PID(PIDType.QID, "Q42").url == "https://www.wikidata.org/wiki/Q42"
        assert PID(PIDType.OPENALEX, "W1").url == "https://openalex.org/works/W1"
        assert PID(PIDType.CORPUS_ID, "1").url == "https://api.semanticscholar.org/CorpusID:1"
        assert (
            PID(PIDType.OMID, "br/062104388184").url
            == "https://opencitations.net/meta/br/062104388184"
        )

    def test_no_url_for_pubmed_or_invalid(self):
        assert PID(PIDType.PMID, "12345").url is None
        assert PID(PIDType.DOI, "garbage").url is None


class TestHelpers:
    def test_cleaned_rewrites_in_place(self):
        pid = PID(PIDType.DOI, "https://doi.org/10.1000/XYZ")
        assert pid.cleaned() is pid
        assert pid.id == "10.1000/xyz"

    def test_cleaned_rejects_invalid(self):
        assert PID(PIDType.QID, "nope").cleaned() is None

    def test_type_coerced_from_string(self):
        assert PID("DOI", "10.1000/x").type == PIDType.DOI

    def test_str(self):
        assert str(PID(PIDType.ARXIV, "2101.00001")) == "arXiv:2101.00001"

    def test_arxiv_doi_round_trip(self):
        doi = arxiv_doi("2101.00001")
        assert doi == "10.48550/arxiv.2101.00001"
        assert arxiv_id_from_doi("10.48550/arXiv.2101.00001") == "2101.00001"
        assert arxiv_id_from_doi("10.1000/xyz") is None

    def test_best_pid_follows_priority(self):
        pids = [PID(PIDType.DOI, "10.1000/x"), PID(PIDType.OPENALEX, "W1")]
        assert best_pid(pids, (PIDType.OPENALEX, PIDType.DOI)).type == PIDType.OPENALEX
        assert best_pid(pids, (PIDType.DOI, PIDType.OPENALEX)).type == PIDType.DOI

    def test_best_pid_skips_invalid(self):
        pids = [PID(PIDType.OPENALEX, "garbage"), PID(PIDType.DOI, "10.1000/x")]
        assert best_pid(pids, (PIDType.OPENALEX, PIDType.DOI)).type == PIDType.DOI
        assert best_pid(pids, (PIDType.QID,)) is None

    def test_parse_pid(self):
        pid = parse_pid("doi:10.1000/xyz")
        assert pid.type == PIDType.DOI
        assert pid.id == "10.1000/xyz"
        assert parse_pid("ARXIV:2101.00001").type == PIDType.ARXIV
        assert parse_pid("corpusid:1").type == PIDType.CORPUS_ID

    @pytest.mark.parametrize("text", ["no-separator", "doi:", "handle:1234/5"])
    def test_parse_pid_rejects(self, text):
        with pytest.raises(ValueError):
            parse_pid(text)
