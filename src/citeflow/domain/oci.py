"""
Open Citation Identifier (OCI) codec.

An OCI names one citation as ``<supplier><citing>-<supplier><cited>``, where
the supplier is a three-digit code and each side is either the character-wise
encoding of a DOI (without its ``10.`` prefix) or the numeric tail of a
simple identifier such as a Wikidata QID.

See https://opencitations.net/oci
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass
from typing import Dict, Optional, Union

from citeflow.domain.errors import CodecError
from citeflow.domain.pid import PID, PIDType, normalize_doi, normalize_omid, normalize_qid


class OCICodecError(CodecError):
    """Malformed OCI, unknown supplier or unencodable identifier."""


@dataclass(frozen=True)
class OCISupplier:
    prefix: str
    name: str
    id_type: PIDType


SUPPLIERS: tuple[OCISupplier, ...] = (
    OCISupplier("010", "wikidata", PIDType.QID),
    OCISupplier("020", "crossref", PIDType.DOI),
    OCISupplier("030", "occ", PIDType.OMID),
    OCISupplier("040", "dryad", PIDType.DOI),
    OCISupplier("050", "croci", PIDType.DOI),
)

OCI_RESOLVER_URL = "https://opencitations.net/oci?oci="

_OCI_RE = re.compile(r"^(\d{3})(\d+)-(\d{3})(\d+)$")
_SIMPLE_TAIL_RE = {
    PIDType.QID: re.compile(r"^Q(\d+)$"),
    PIDType.OMID: re.compile(r"^br/(\d+)$"),
}
_SIMPLE_HEAD = {
    PIDType.QID: "Q",
    PIDType.OMID: "br/",
}


def _build_lookup() -> Dict[str, str]:
    chars = (
        string.digits
        + string.ascii_lowercase
        + "/"
        + string.ascii_uppercase
        + "-._;():<>#+[]%\"'*,=&@!?~$^`{}|\\"
    )
    return {ch: f"{code:02d}" for code, ch in enumerate(chars)}


def _check_prefix_free(table: Dict[str, str]) -> None:
    """The greedy decoder only works if no code starts another, longer code."""
    codes = list(table.values())
    if len(set(codes)) != len(codes):
        raise OCICodecError("OCI lookup table maps two characters to the same code")
    for code in codes:
        for other in codes:
            if other != code and other.startswith(code):
                raise OCICodecError(f"OCI code {code} is a prefix of {other}")


LOOKUP: Dict[str, str] = _build_lookup()
_check_prefix_free(LOOKUP)
_REVERSE_LOOKUP: Dict[str, str] = {code: ch for ch, code in LOOKUP.items()}


@dataclass(frozen=True)
class DecodedOCI:
    citing_id: str
    cited_id: str
    id_type: PIDType
    supplier: str


def get_supplier(name: str) -> OCISupplier:
    for supplier in SUPPLIERS:
        if supplier.name == name:
            return supplier
    raise OCICodecError(f"Unsupported OCI supplier: {name}")


def _supplier_by_prefix(prefix: str) -> OCISupplier:
    for supplier in SUPPLIERS:
        if supplier.prefix == prefix:
            return supplier
    raise OCICodecError(f"No supplier found for prefix {prefix}")


def encode_id(text: str) -> str:
    """Map every character to its two-digit code."""
    encoded = []
    for ch in text:
        code = LOOKUP.get(ch)
        if code is None:
            raise OCICodecError(f"Could not find code for character {ch!r}")
        encoded.append(code)
    return "".join(encoded)


def decode_id(digits: str) -> str:
    """Greedy inverse of :func:`encode_id`."""
    decoded = []
    buffer = ""
    for digit in digits:
        buffer += digit
        ch = _REVERSE_LOOKUP.get(buffer)
        if ch is not None:
            decoded.append(ch)
            buffer = ""
    if buffer:
        raise OCICodecError(f"Could not find character for code {buffer}")
    return "".join(decoded)


def _encode_side(supplier: OCISupplier, value: str) -> str:
    if supplier.id_type == PIDType.DOI:
        doi = normalize_doi(value) or ""
        if not doi.startswith("10."):
            raise OCICodecError(f"Unexpected DOI format: {value!r}")
        tail = doi[3:]
        if not tail:
            raise OCICodecError(f"Unexpected DOI format: {value!r}")
        return encode_id(tail)

    if supplier.id_type == PIDType.QID:
        clean = normalize_qid(value)
    else:
        clean = normalize_omid(value)
    match = _SIMPLE_TAIL_RE[supplier.id_type].match(clean or "")
    if not match:
        raise OCICodecError(f"Unexpected {supplier.id_type.value} format: {value!r}")
    return match.group(1)


def encode(
    supplier_name: str,
    citing_id: Union[PID, str],
    cited_id: Union[PID, str],
) -> str:
    """Build the OCI for a citing/cited pair asserted by *supplier_name*."""
    if isinstance(citing_id, PID) or isinstance(cited_id, PID):
        if not (
            isinstance(citing_id, PID)
            and isinstance(cited_id, PID)
            and citing_id.type == cited_id.type
        ):
            raise OCICodecError("Citing and cited IDs must be of the same type")
        citing_id, cited_id = citing_id.id, cited_id.id

    supplier = get_supplier(supplier_name)
    citing = _encode_side(supplier, citing_id)
    cited = _encode_side(supplier, cited_id)
    return f"{supplier.prefix}{citing}-{supplier.prefix}{cited}"


def _decode_side(supplier: OCISupplier, digits: str) -> str:
    if supplier.id_type == PIDType.DOI:
        return "10." + decode_id(digits)
    return _SIMPLE_HEAD[supplier.id_type] + digits


def decode(oci: str, supplier_name: Optional[str] = None) -> DecodedOCI:
    """Split an OCI back into its citing and cited identifiers."""
    text = (oci or "").strip()
    if text.lower().startswith("oci:"):
        text = text[4:]
    match = _OCI_RE.match(text)
    if not match:
        raise OCICodecError(f"Wrong OCI format: {oci!r}")

    citing_prefix, citing, cited_prefix, cited = match.groups()
    if citing_prefix != cited_prefix:
        raise OCICodecError("Citing and cited prefixes are from different suppliers")
    supplier = _supplier_by_prefix(citing_prefix)
    if supplier_name and supplier_name != supplier.name:
        raise OCICodecError(
            f"Inferred supplier {supplier.name} does not match provided {supplier_name}"
        )

    return DecodedOCI(
        citing_id=_decode_side(supplier, citing),
        cited_id=_decode_side(supplier, cited),
        id_type=supplier.id_type,
        supplier=supplier.name,
    )


def resolver_url(oci: str) -> str:
    decode(oci)
    return OCI_RESOLVER_URL + oci
