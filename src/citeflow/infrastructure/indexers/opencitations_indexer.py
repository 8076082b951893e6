# src/citeflow/infrastructure/indexers/opencitations_indexer.py
"""
OpenCitations citation indexer.

References come from the Index API; every row carries the OCI of the
citation, which is kept on the merged citation. References known only by
their OMID are parsed through the Meta API.

API documentation: https://api.opencitations.net/
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from citeflow.application.services.identifier_chunker import chunked
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

OPENCITATIONS_API_URL = "https://api.opencitations.net"
OPENCITATIONS_POLICY = RateLimitPolicy(max_concurrent=3, min_interval_s=0.35)
META_BATCH_SIZE = 25

_QUERY_PREFIXES = {
    PIDType.DOI: "doi",
    PIDType.OMID: "omid",
    PIDType.PMID: "pmid",
}

_PID_PREFIXES = {
    "doi": PIDType.DOI,
    "omid": PIDType.OMID,
    "pmid": PIDType.PMID,
    "pmcid": PIDType.PMCID,
    "isbn": PIDType.ISBN,
    "wikidata": PIDType.QID,
    "openalex": PIDType.OPENALEX,
}

_META_TYPES = {
    "journal article": "journalArticle",
    "book": "book",
    "book chapter": "bookSection",
    "proceedings article": "conferencePaper",
    "dissertation": "thesis",
    "report": "report",
    "dataset": "dataset",
}

# "Journal Name [issn:1234-5678]" -> "Journal Name"
_BRACKETED_IDS_RE = re.compile(r"\s*\[[^\]]*\]")


def parse_pid_list(value: Optional[str]) -> List[PID]:
    """Parse a space separated ``prefix:value`` identifier list."""
    pids = []
    for token in (value or "").split():
        prefix, sep, ident = token.partition(":")
        pid_type = _PID_PREFIXES.get(prefix.lower())
        if sep and pid_type is not None and ident:
            pids.append(PID(pid_type, ident))
    return pids


def meta_to_record(row: Dict[str, Any]) -> BibliographicRecord:
    authors = []
    for author in (row.get("author") or "").split(";"):
        name = _BRACKETED_IDS_RE.sub("", author).strip()
        if name:
            authors.append(name)

    year = None
    pub_date = row.get("pub_date") or ""
    if pub_date[:4].isdigit():
        year = int(pub_date[:4])

    venue = _BRACKETED_IDS_RE.sub("", row.get("venue") or "").strip() or None
    return BibliographicRecord(
        title=row.get("title") or "",
        item_type=_META_TYPES.get((row.get("type") or "").lower(), "journalArticle"),
        authors=authors,
        year=year,
        venue=venue,
        pids=parse_pid_list(row.get("id")),
        raw=row,
    )


class OpenCitationsClient(APIClient):
    def __init__(self, *, access_token: Optional[str] = None, timeout: float = 30, max_retries: int = 3, session=None):
        super().__init__(
            OPENCITATIONS_API_URL,
            provider="OpenCitations",
            api_key=access_token,
            api_key_header="authorization",
            timeout=timeout,
            max_retries=max_retries,
            policy=OPENCITATIONS_POLICY,
            session=session,
        )

    async def references(self, pid: PID) -> Optional[List[Dict[str, Any]]]:
        """Reference rows for a work, or None if the work is unknown."""
        data = await self.get(f"index/v2/references/{_QUERY_PREFIXES[pid.type]}:{pid.clean_id}")
        return data if isinstance(data, list) else None

    async def metadata(self, omids: Sequence[str]) -> List[Dict[str, Any]]:
        ids = "__".join(f"omid:{omid}" for omid in omids)
        data = await self.get(f"meta/v1/metadata/{ids}")
        return data if isinstance(data, list) else []


class OpenCitationsIndexer:
    """OpenCitations provider. One identifier per request."""

    CAPABILITIES = IndexerCapabilities(
        name="OpenCitations",
        supported_types=(PIDType.DOI, PIDType.OMID, PIDType.PMID),
        own_type=PIDType.OMID,
        chunk_size=1,
        grouping_required=True,
        rate_limit=OPENCITATIONS_POLICY,
    )

    def __init__(self, client: Optional[OpenCitationsClient] = None, *, access_token: Optional[str] = None):
        self.client = client or OpenCitationsClient(access_token=access_token)

    @property
    def capabilities(self) -> IndexerCapabilities:
        return self.CAPABILITIES

    async def fetch(self, identifiers: Sequence[PID]) -> List[IndexedWork]:
        works = []
        for pid in identifiers:
            if pid.type not in _QUERY_PREFIXES or not pid.clean_id:
                continue
            rows = await self.client.references(pid)
            if rows is None:
                continue

            identifiers_seen = {pid.comparable}
            work_ids = [PID(pid.type, pid.clean_id)]
            if rows:
                for citing in parse_pid_list(rows[0].get("citing")):
                    if citing.comparable and citing.comparable not in identifiers_seen:
                        identifiers_seen.add(citing.comparable)
                        work_ids.append(citing)

            works.append(
                IndexedWork(
                    primary_id=str(work_ids[0]),
                    identifiers=work_ids,
                    references=[r for r in (self._to_reference(row) for row in rows) if r],
                )
            )
        return works

    @staticmethod
    def _to_reference(row: Dict[str, Any]) -> Optional[ParsableReference]:
        cited = parse_pid_list(row.get("cited"))
        if not cited:
            return None
        omid = next((p for p in cited if p.type == PIDType.OMID and p.clean_id), None)
        primary_id = omid.clean_id if omid else (cited[0].comparable or row.get("cited", ""))
        return ParsableReference(
            primary_id=primary_id,
            external_ids=cited,
            raw_object=row,
            oci=row.get("oci"),
        )

    async def manual_parse(self, references: Sequence[ParsableReference]) -> List[ParsedReference]:
        """Resolve OMID-only references through OpenCitations Meta."""
        by_omid: Dict[str, ParsableReference] = {}
        for reference in references:
            for pid in reference.external_ids:
                if pid.type == PIDType.OMID and pid.clean_id:
                    by_omid.setdefault(pid.clean_id, reference)
                    break

        parsed = []
        for batch in chunked(list(by_omid), META_BATCH_SIZE):
            for row in await self.client.metadata(batch):
                record = meta_to_record(row)
                omid = record.get_pid(PIDType.OMID)
                reference = by_omid.get(omid.clean_id) if omid else None
                if reference is not None and record.title:
                    parsed.append(ParsedReference(primary_id=reference.primary_id, item=record))
        return parsed

    async def close(self) -> None:
        await self.client.close()
