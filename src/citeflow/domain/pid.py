"""
Persistent identifier (PID) value type.

A PID pairs an identifier type with a raw value. Everything else (the clean
form, the comparable key and the resolver URL) is derived on access, so a
PID can be built from untrusted input and validated later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence


class PIDType(str, Enum):
    """Supported persistent identifier types."""

    DOI = "DOI"
    ISBN = "ISBN"
    QID = "QID"
    OMID = "OMID"
    ARXIV = "arXiv"
    OPENALEX = "OpenAlex"
    MAG = "MAG"
    CORPUS_ID = "CorpusID"
    PMID = "PMID"
    PMCID = "PMCID"


ALL_TYPES: tuple[PIDType, ...] = (
    PIDType.DOI,
    PIDType.ISBN,
    PIDType.QID,
    PIDType.OMID,
    PIDType.ARXIV,
    PIDType.OPENALEX,
    PIDType.MAG,
    PIDType.CORPUS_ID,
    PIDType.PMID,
    PIDType.PMCID,
)

# PMID and PMCID are not shown: citations cannot be fetched from them
SHOWABLE_TYPES: tuple[PIDType, ...] = (
    PIDType.DOI,
    PIDType.ISBN,
    PIDType.QID,
    PIDType.OMID,
    PIDType.ARXIV,
    PIDType.OPENALEX,
    PIDType.CORPUS_ID,
)

FETCHABLE_TYPES: tuple[PIDType, ...] = (
    PIDType.QID,
    PIDType.OMID,
    PIDType.OPENALEX,
    PIDType.DOI,
    PIDType.CORPUS_ID,
)


_DOI_RE = re.compile(r"10(?:\.\d{4,})?/\S*[^\s.,]", re.IGNORECASE)
_ARXIV_ID_RE = re.compile(
    r"\b(?P<full>(?P<id>[-A-Za-z.]+/\d{7}|\d{4}\.\d{4,5})(?:v(?P<version>\d+))?)(?!\d)"
)
_OMID_RE = re.compile(r"br/\d+")
_OMID_VALID_RE = re.compile(r"^br/06[1-9]*0\d+$")
_OPENALEX_URL_RE = re.compile(r"[Ww]\d+")
_ARXIV_DOI_PREFIX = "10.48550/arxiv."

# Each reserved character is escaped once; "#" becomes "%23"
_DOI_URL_ESCAPES = str.maketrans({"#": "%23", "?": "%3f", "%": "%25", '"': "%22"})


def normalize_doi(value: str | None) -> Optional[str]:
    """Extract a DOI from a bare value, a ``doi:`` prefix or a doi.org URL."""
    text = (value or "").strip()
    if not text:
        return None

    lowered = text.lower()
    idx = lowered.find("doi.org/")
    if idx >= 0:
        text = text[idx + len("doi.org/") :]

    match = _DOI_RE.search(text)
    if not match:
        return None
    return match.group(0).lower()


def normalize_arxiv_id(value: str | None) -> Optional[str]:
    """Return the arXiv id without its version suffix."""
    text = (value or "").strip()
    if not text:
        return None
    match = _ARXIV_ID_RE.search(text)
    if not match:
        return None
    return match.group("id")


def normalize_openalex_id(value: str | None) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        return None
    if re.match(r"^https?:", text):
        match = _OPENALEX_URL_RE.search(text)
        text = match.group(0) if match else ""
    text = text.upper()
    if not text.startswith("W"):
        text = f"W{text}"
    if not re.fullmatch(r"W\d+", text):
        return None
    return text


def normalize_qid(value: str | None) -> Optional[str]:
    qid = (value or "").strip().upper()
    if not qid.startswith("Q"):
        qid = f"Q{qid}"
    if not re.fullmatch(r"Q\d+", qid):
        return None
    return qid


def normalize_omid(value: str | None) -> Optional[str]:
    omid = (value or "").strip().lower()
    match = _OMID_RE.search(omid)
    if match:
        omid = match.group(0)
    elif re.match(r"^https?:", omid):
        return None
    if not omid.startswith("br/"):
        omid = f"br/{omid}"
    if not _OMID_VALID_RE.match(omid):
        return None
    return omid


def normalize_pmcid(value: str | None) -> Optional[str]:
    """Return the PubMed Central id as ``PMC<digits>``, with or without a prefix in *value*."""
    text = (value or "").strip().rstrip("/").rsplit("/", 1)[-1].upper()
    if text.startswith("PMCID:"):
        text = text[len("PMCID:") :]
    if not text.startswith("PMC"):
        text = f"PMC{text}"
    if not re.fullmatch(r"PMC\d+", text):
        return None
    return text


def normalize_isbn(value: str | None) -> Optional[str]:
    """Return the bare ISBN-10/13 if its checksum is valid."""
    text = re.sub(r"[\s\-]", "", (value or "").strip()).upper()
    if text.startswith("ISBN"):
        text = text[4:].lstrip(":")

    if re.fullmatch(r"\d{9}[\dX]", text):
        total = sum(
            (10 - i) * (10 if ch == "X" else int(ch)) for i, ch in enumerate(text)
        )
        return text if total % 11 == 0 else None

    if re.fullmatch(r"97[89]\d{10}", text):
        total = sum((3 if i % 2 else 1) * int(ch) for i, ch in enumerate(text))
        return text if total % 10 == 0 else None

    return None


def arxiv_doi(arxiv_id: str) -> str:
    """DataCite DOI assigned to every arXiv preprint."""
    return f"{_ARXIV_DOI_PREFIX}{arxiv_id}".lower()


def arxiv_id_from_doi(doi: str | None) -> Optional[str]:
    clean = normalize_doi(doi)
    if not clean or not clean.startswith(_ARXIV_DOI_PREFIX):
        return None
    return normalize_arxiv_id(clean[len(_ARXIV_DOI_PREFIX) :])


@dataclass
class PID:
    """A typed persistent identifier."""

    type: PIDType
    id: str

    def __post_init__(self) -> None:
        if not isinstance(self.type, PIDType):
            self.type = PIDType(self.type)

    @property
    def clean_id(self) -> Optional[str]:
        """The type-specific normalized id, or None if the id is invalid."""
        if self.type == PIDType.DOI:
            return normalize_doi(self.id)
        if self.type == PIDType.ISBN:
            return normalize_isbn(self.id)
        if self.type == PIDType.QID:
            return normalize_qid(self.id)
        if self.type == PIDType.OMID:
            return normalize_omid(self.id)
        if self.type == PIDType.ARXIV:
            return normalize_arxiv_id(self.id)
        if self.type == PIDType.OPENALEX:
            return normalize_openalex_id(self.id)
        if self.type == PIDType.PMCID:
            return normalize_pmcid(self.id)
        return self.id or None

    @property
    def comparable(self) -> Optional[str]:
        """Equality key used to match identifiers across providers."""
        clean = self.clean_id
        if not clean:
            return None
        return f"{self.type.value}:{clean}".lower()

    @property
    def url(self) -> Optional[str]:
        clean = self.clean_id
        if not clean:
            return None
        if self.type == PIDType.DOI:
            return "https://doi.org/" + clean.translate(_DOI_URL_ESCAPES)
        if self.type == PIDType.OMID:
            return "https://opencitations.net/meta/" + clean
        if self.type == PIDType.OPENALEX:
            return "https://openalex.org/works/" + clean
        if self.type == PIDType.ARXIV:
            return "https://arxiv.org/abs/" + clean
        if self.type == PIDType.QID:
            return "https://www.wikidata.org/wiki/" + clean
        if self.type == PIDType.CORPUS_ID:
            return "https://api.semanticscholar.org/CorpusID:" + clean
        return None

    def cleaned(self) -> Optional["PID"]:
        """Replace the raw id with its clean form.

        Returns self, or None when the id cannot be cleaned (so callers can
        reject bad input before storing it).
        """
        clean = self.clean_id
        if not clean:
            return None
        self.id = clean
        return self

    @staticmethod
    def equal(a: "PID", b: "PID") -> bool:
        if a.type != b.type:
            return False
        a_clean, b_clean = a.clean_id, b.clean_id
        return bool(a_clean and b_clean and a_clean.lower() == b_clean.lower())

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


def best_pid(pids: Iterable[PID], ordered_types: Sequence[PIDType]) -> Optional[PID]:
    """Pick the first usable identifier following the type priority order."""
    candidates = list(pids)
    for pid_type in ordered_types:
        for pid in candidates:
            if pid.type == pid_type and pid.clean_id:
                return pid
    return None


def parse_pid(text: str) -> PID:
    """Parse ``"<type>:<value>"`` (type is case-insensitive)."""
    raw_type, sep, value = (text or "").partition(":")
    if not sep or not value.strip():
        raise ValueError(f"Expected <type>:<value>, got {text!r}")
    for pid_type in PIDType:
        if pid_type.value.lower() == raw_type.strip().lower():
            return PID(pid_type, value.strip())
    raise ValueError(f"Unknown identifier type: {raw_type}")
