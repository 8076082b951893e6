# src/citeflow/infrastructure/indexers/crossref_indexer.py
"""
Crossref citation indexer.

``GET /works/<doi>`` returns the deposited reference list. References that
carry a DOI or ISBN are resolved by the lookup engine; the rest are parsed
from their structured fields.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from citeflow.domain.indexing import (
    BibliographicRecord,
    IndexedWork,
    IndexerCapabilities,
    ParsableReference,
    ParsedReference,
    RateLimitPolicy,
)
from citeflow.domain.pid import PID, PIDType
from citeflow.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

CROSSREF_API_URL = "https://api.crossref.org"
# Public pool allows 50 req/s; stay well below
CROSSREF_POLICY = RateLimitPolicy(max_concurrent=5, min_interval_s=0.1)


class CrossrefClient(APIClient):
    def __init__(self, *, mailto: Optional[str] = None, timeout: float = 30, max_retries: int = 3, session=None):
        super().__init__(
            CROSSREF_API_URL,
            provider="Crossref",
            timeout=timeout,
            max_retries=max_retries,
            policy=CROSSREF_POLICY,
            session=session,
        )
        self.mailto = mailto

    async def work(self, doi: str) -> Dict[str, Any]:
        params = {"mailto": self.mailto} if self.mailto else None
        data = await self.get(f"works/{quote(doi, safe='/')}", params=params)
        return (data or {}).get("message") or {}


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value)[:4])
    except (TypeError, ValueError):
        return None


def parse_crossref_reference(raw: Dict[str, Any]) -> BibliographicRecord:
    """
    Build a record from a structured Crossref reference.

    Raises:
        ValueError: the reference is unstructured or of an unknown kind
    """
    if raw.get("journal-title"):
        item_type = "journalArticle"
        title = raw.get("article-title") or raw.get("volume-title") or ""
        venue = raw["journal-title"]
    elif raw.get("volume-title"):
        item_type = "book"
        title = raw["volume-title"]
        venue = None
    elif raw.get("unstructured"):
        raise ValueError("Unstructured Crossref references are not supported")
    else:
        raise ValueError(
            "Crossref reference has neither `journal-title` nor `volume-title`"
        )

    return BibliographicRecord(
        title=title,
        item_type=item_type,
        authors=[raw["author"]] if raw.get("author") else [],
        year=_to_int(raw.get("year")),
        venue=venue,
        raw=raw,
    )


class CrossrefIndexer:
    """Crossref provider. One DOI per request."""

    CAPABILITIES = IndexerCapabilities(
        name="Crossref",
        supported_types=(PIDType.DOI,),
        own_type=PIDType.DOI,
        chunk_size=1,
        grouping_required=True,
        rate_limit=CROSSREF_POLICY,
    )

    def __init__(self, client: Optional[CrossrefClient] = None, *, mailto: Optional[str] = None):
        self.client = client or CrossrefClient(mailto=mailto)

    @property
    def capabilities(self) -> IndexerCapabilities:
        return self.CAPABILITIES

    async def fetch(self, identifiers: Sequence[PID]) -> List[IndexedWork]:
        works = []
        for pid in identifiers:
            doi = pid.clean_id
            if pid.type != PIDType.DOI or not doi:
                continue
            message = await self.client.work(doi)
            if not message:
                continue
            work_doi = message.get("DOI") or doi
            references = [
                self._to_reference(work_doi, index, raw)
                for index, raw in enumerate(message.get("reference") or [])
            ]
            works.append(
                IndexedWork(
                    primary_id=work_doi.lower(),
                    identifiers=[PID(PIDType.DOI, work_doi)],
                    references=references,
                )
            )
        return works

    @staticmethod
    def _to_reference(citing_doi: str, index: int, raw: Dict[str, Any]) -> ParsableReference:
        external_ids = []
        if raw.get("DOI"):
            external_ids.append(PID(PIDType.DOI, raw["DOI"]))
        if raw.get("ISBN"):
            external_ids.append(PID(PIDType.ISBN, raw["ISBN"]))

        identified = next((p.comparable for p in external_ids if p.comparable), None)
        primary_id = identified or f"{citing_doi.lower()}#{raw.get('key') or index}"
        return ParsableReference(primary_id=primary_id, external_ids=external_ids, raw_object=raw)

    async def manual_parse(self, references: Sequence[ParsableReference]) -> List[ParsedReference]:
        parsed = []
        for reference in references:
            try:
                record = parse_crossref_reference(reference.raw_object or {})
            except ValueError as e:
                logger.debug(f"Skipping Crossref reference {reference.primary_id}: {e}")
                continue
            parsed.append(ParsedReference(primary_id=reference.primary_id, item=record))
        return parsed

    async def close(self) -> None:
        await self.client.close()
