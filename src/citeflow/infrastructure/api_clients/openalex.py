# src/citeflow/infrastructure/api_clients/openalex.py
"""
OpenAlex works API.

API documentation: https://docs.openalex.org/
Rate limit: 10 req/s (polite pool with email), 100K/day
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from citeflow.application.services.rate_limiter import RateLimiter
from citeflow.domain.indexing import BibliographicRecord, RateLimitPolicy
from citeflow.domain.pid import (
    PID,
    PIDType,
    normalize_doi,
    normalize_openalex_id,
    normalize_pmcid,
)

from .base import APIClient

logger = logging.getLogger(__name__)

OPENALEX_API_URL = "https://api.openalex.org"
OPENALEX_POLICY = RateLimitPolicy(max_concurrent=10, min_interval_s=0.1)
# OR-filters accept at most 50 values
OPENALEX_MAX_FILTER_VALUES = 50

FILTER_KEYS: Dict[PIDType, str] = {
    PIDType.OPENALEX: "ids.openalex",
    PIDType.DOI: "doi",
    PIDType.MAG: "ids.mag",
    PIDType.PMID: "ids.pmid",
    PIDType.PMCID: "ids.pmcid",
}

_ITEM_TYPES = {
    "article": "journalArticle",
    "review": "journalArticle",
    "letter": "journalArticle",
    "editorial": "journalArticle",
    "book": "book",
    "book-chapter": "bookSection",
    "dissertation": "thesis",
    "preprint": "preprint",
    "dataset": "dataset",
    "report": "report",
    "standard": "standard",
}


def _last_segment(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).rstrip("/")
    return text.rsplit("/", 1)[-1] or None


def work_identifiers(data: Dict[str, Any]) -> List[PID]:
    """All identifiers OpenAlex knows for a work."""
    ids = data.get("ids") or {}
    pids: List[PID] = []

    openalex_id = normalize_openalex_id(ids.get("openalex") or data.get("id"))
    if openalex_id:
        pids.append(PID(PIDType.OPENALEX, openalex_id))

    doi = normalize_doi(ids.get("doi") or data.get("doi"))
    if doi:
        pids.append(PID(PIDType.DOI, doi))

    if ids.get("mag"):
        pids.append(PID(PIDType.MAG, str(ids["mag"])))

    pmid = _last_segment(ids.get("pmid"))
    if pmid:
        pids.append(PID(PIDType.PMID, pmid))

    pmcid = normalize_pmcid(ids.get("pmcid"))
    if pmcid:
        pids.append(PID(PIDType.PMCID, pmcid))

    return pids


def work_to_record(data: Dict[str, Any]) -> BibliographicRecord:
    """Convert an OpenAlex work into a BibliographicRecord."""
    authors = []
    for authorship in data.get("authorships") or []:
        author = authorship.get("author") or {}
        if author.get("display_name"):
            authors.append(author["display_name"])

    venue = None
    if data.get("primary_location"):
        source = data["primary_location"].get("source") or {}
        venue = source.get("display_name")

    return BibliographicRecord(
        title=data.get("title") or data.get("display_name") or "",
        item_type=_ITEM_TYPES.get(data.get("type") or "", "journalArticle"),
        authors=authors,
        year=data.get("publication_year"),
        venue=venue,
        pids=work_identifiers(data),
        raw=data,
    )


def filter_value(pid_type: PIDType, clean_id: str) -> str:
    """Value as accepted by the OpenAlex filter for *pid_type*."""
    if pid_type == PIDType.PMCID and clean_id.upper().startswith("PMC"):
        return clean_id[3:]
    return clean_id


class OpenAlexClient(APIClient):
    """OpenAlex ``/works`` endpoint."""

    def __init__(
        self,
        *,
        mailto: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        limiter: Optional[RateLimiter] = None,
        session=None,
    ):
        super().__init__(
            OPENALEX_API_URL,
            provider="OpenAlex",
            timeout=timeout,
            max_retries=max_retries,
            limiter=limiter,
            policy=OPENALEX_POLICY,
            session=session,
        )
        self.mailto = mailto

    def _params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.mailto:
            params["mailto"] = self.mailto
        return params

    async def works_by_ids(self, pid_type: PIDType, ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch works whose *pid_type* identifier is one of *ids* (one call per 50)."""
        key = FILTER_KEYS.get(pid_type)
        if key is None:
            raise ValueError(f"OpenAlex cannot filter by {pid_type.value}")

        results: List[Dict[str, Any]] = []
        values = [filter_value(pid_type, i) for i in ids if i]
        for start in range(0, len(values), OPENALEX_MAX_FILTER_VALUES):
            batch = values[start : start + OPENALEX_MAX_FILTER_VALUES]
            data = await self.get(
                "works",
                params=self._params(
                    {
                        "filter": f"{key}:{'|'.join(batch)}",
                        "per_page": OPENALEX_MAX_FILTER_VALUES,
                    }
                ),
            )
            results.extend((data or {}).get("results") or [])
        return results

    async def search_title(self, title: str) -> Optional[Dict[str, Any]]:
        """Best title-search hit, or None."""
        if not title.strip():
            return None
        # Commas separate filters, so they cannot appear inside the value
        query = title.replace(",", " ")
        data = await self.get(
            "works",
            params=self._params({"filter": f"title.search:{query}", "per_page": 1}),
        )
        results = (data or {}).get("results") or []
        return results[0] if results else None
