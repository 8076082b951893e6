"""
Unit tests for the Open Citation Identifier codec.
"""

from __future__ import annotations

import pytest

from citeflow.domain import oci
from citeflow.domain.errors import CodecError
from citeflow.domain.pid import PID, PIDType


class TestEncodeId:
    def test_character_codes(self):
        assert oci.encode_id("1000/a") == "010000003610"
        assert oci.encode_id("A") == "37"

    def test_decode_is_inverse(self):
        text = "1000/ABC-xyz.(1)"
        assert oci.decode_id(oci.encode_id(text)) == text

    def test_unmappable_character(self):
        with pytest.raises(oci.OCICodecError):
            oci.encode_id("1000/é")

    def test_dangling_digit(self):
        with pytest.raises(oci.OCICodecError):
            oci.decode_id("010")

    def test_unknown_code(self):
        with pytest.raises(oci.OCICodecError):
            oci.decode_id("99")

    def test_table_is_prefix_free(self):
        codes = list(oci.LOOKUP.values())
        assert len(set(codes)) == len(codes)
        assert all(len(code) == 2 for code in codes)


class TestEncode:
    def test_crossref_dois(self):
        value = oci.encode("crossref", "10.1000/a", "10.1000/b")
        assert value == "020010000003610-020010000003611"

    def test_wikidata_qids(self):
        assert oci.encode("wikidata", "Q42", "Q1") == "01042-0101"

    def test_occ_omids(self):
        assert oci.encode("occ", "br/0601", "br/0602") == "0300601-0300602"

    def test_accepts_pid_objects(self):
        value = oci.encode("wikidata", PID(PIDType.QID, "Q42"), PID(PIDType.QID, "Q1"))
        assert value == "01042-0101"

    def test_mixed_pid_types_rejected(self):
        with pytest.raises(oci.OCICodecError):
            oci.encode("crossref", PID(PIDType.DOI, "10.1000/a"), PID(PIDType.QID, "Q1"))

    def test_unknown_supplier(self):
        with pytest.raises(oci.OCICodecError, match="Unsupported"):
            oci.encode("pubmed", "10.1000/a", "10.1000/b")

    def test_wrong_identifier_for_supplier(self):
        with pytest.raises(oci.OCICodecError):
            oci.encode("wikidata", "10.1000/a", "Q1")


class TestDecode:
    def test_round_trip_crossref(self):
        decoded = oci.decode(oci.encode("crossref", "10.1000/XYZ", "10.5555/ABC.1"))
        assert decoded.citing_id == "10.1000/xyz"
        assert decoded.cited_id == "10.5555/abc.1"
        assert decoded.id_type == PIDType.DOI
        assert decoded.supplier == "crossref"

    def test_round_trip_wikidata(self):
        decoded = oci.decode("01042-0101")
        assert (decoded.citing_id, decoded.cited_id) == ("Q42", "Q1")
        assert decoded.id_type == PIDType.QID

    def test_oci_prefix_is_stripped(self):
        assert oci.decode("oci:01042-0101").citing_id == "Q42"

    @pytest.mark.parametrize("value", ["abc", "", "01042", "01042-", "0104a-0101"])
    def test_malformed(self, value):
        with pytest.raises(CodecError):
            oci.decode(value)

    def test_prefix_mismatch(self):
        with pytest.raises(oci.OCICodecError, match="different suppliers"):
            oci.decode("010123-999456")

    def test_unknown_prefix(self):
        with pytest.raises(oci.OCICodecError, match="No supplier"):
            oci.decode("999123-999456")

    def test_supplier_must_match(self):
        with pytest.raises(oci.OCICodecError, match="does not match"):
            oci.decode("01042-0101", "crossref")
        assert oci.decode("01042-0101", "wikidata").supplier == "wikidata"

    def test_codec_error_is_value_error(self):
        with pytest.raises(ValueError):
            oci.decode("abc")

    def test_resolver_url(self):
        assert oci.resolver_url("01042-0101") == "https://opencitations.net/oci?oci=01042-0101"
        with pytest.raises(oci.OCICodecError):
            oci.resolver_url("abc")
