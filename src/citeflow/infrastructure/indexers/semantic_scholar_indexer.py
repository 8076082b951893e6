# src/citeflow/infrastructure/indexers/semantic_scholar_indexer.py
"""
Semantic Scholar citation indexer.

Uses the Academic Graph batch endpoint, which accepts up to 500 mixed
identifiers per call (but returns at most 9999 references per call, hence
the smaller chunk size).
API documentation: https://api.semanticscholar.org/api-docs/
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from citeflow.application.ports.document_port import DocumentPort
from citeflow.domain.errors import ProviderCallError
from citeflow.domain.indexing import (
    BibliographicRecord,
    IndexedWork,
    IndexerCapabilities,
    ParsableReference,
    ParsedReference,
    RateLimitPolicy,
)
from citeflow.domain.pid import PID, PIDType, arxiv_id_from_doi
from citeflow.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org/graph/v1"
SEMANTIC_SCHOLAR_POLICY = RateLimitPolicy(max_concurrent=1, min_interval_s=1.1)

BATCH_FIELDS = "references,externalIds,title,references.externalIds,references.title,references.authors,references.year,references.venue"


class SemanticScholarClient(APIClient):
    def __init__(self, api_key: Optional[str] = None, *, timeout: float = 30, max_retries: int = 3, session=None):
        super().__init__(
            SEMANTIC_SCHOLAR_API_URL,
            provider="Semantic Scholar",
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            policy=SEMANTIC_SCHOLAR_POLICY,
            session=session,
        )

    def error_for_status(self, status: int, text: str) -> ProviderCallError:
        if status == 403:
            return ProviderCallError(
                self.provider,
                "Received a 403 Forbidden response from Semantic Scholar. "
                "Check that your API key is valid.",
                status=status,
            )
        return super().error_for_status(status, text)


def lookup_string(pid: PID) -> str:
    """Identifier in the ``<KIND>:<id>`` form the graph API expects."""
    clean = pid.clean_id or pid.id
    if pid.type == PIDType.DOI:
        # arXiv DOIs are not indexed as DOIs
        arxiv_id = arxiv_id_from_doi(clean)
        return f"ARXIV:{arxiv_id}" if arxiv_id else f"DOI:{clean}"
    if pid.type == PIDType.ARXIV:
        return f"ARXIV:{clean}"
    if pid.type == PIDType.MAG:
        return f"MAG:{clean}"
    if pid.type == PIDType.CORPUS_ID:
        return f"CorpusId:{clean}"
    if pid.type == PIDType.PMID:
        return f"PMID:{clean}"
    if pid.type == PIDType.PMCID:
        # Semantic Scholar takes the bare number
        return f"PMCID:{clean[3:]}"
    if pid.type == PIDType.OPENALEX:
        # A MAG id, if any, is the OpenAlex key without its leading W
        return f"MAG:{clean[1:]}"
    raise ValueError(f"Unsupported identifier type for Semantic Scholar: {pid.type.value}")


def map_identifiers(external_ids: Optional[Dict[str, Any]]) -> List[PID]:
    if not external_ids:
        return []
    pids: List[PID] = []
    if external_ids.get("DOI"):
        pids.append(PID(PIDType.DOI, external_ids["DOI"]))
    if external_ids.get("ArXiv"):
        pids.append(PID(PIDType.ARXIV, external_ids["ArXiv"]))
    if external_ids.get("PubMed"):
        pids.append(PID(PIDType.PMID, str(external_ids["PubMed"])))
    if external_ids.get("PubMedCentral"):
        pids.append(PID(PIDType.PMCID, str(external_ids["PubMedCentral"])))
    if external_ids.get("MAG"):
        pids.append(PID(PIDType.MAG, str(external_ids["MAG"])))
    if external_ids.get("CorpusId"):
        pids.append(PID(PIDType.CORPUS_ID, str(external_ids["CorpusId"])))
    return pids


class SemanticScholarIndexer:
    """
    Semantic Scholar provider.

    Rate limit: 1 req/s with an API key
    """

    CAPABILITIES = IndexerCapabilities(
        name="Semantic Scholar",
        supported_types=(
            PIDType.CORPUS_ID,
            PIDType.DOI,
            PIDType.ARXIV,
            PIDType.MAG,
            PIDType.PMID,
            PIDType.PMCID,
            # last resort: only works if the paper also existed in MAG
            PIDType.OPENALEX,
        ),
        own_type=PIDType.CORPUS_ID,
        chunk_size=100,
        grouping_required=False,
        rate_limit=SEMANTIC_SCHOLAR_POLICY,
    )

    def __init__(self, client: Optional[SemanticScholarClient] = None, api_key: Optional[str] = None):
        self.client = client or SemanticScholarClient(api_key=api_key)

    @property
    def capabilities(self) -> IndexerCapabilities:
        return self.CAPABILITIES

    async def fetch(self, identifiers: Sequence[PID]) -> List[IndexedWork]:
        ids = [lookup_string(pid) for pid in identifiers]
        try:
            papers = await self.client.post(
                "paper/batch", json_data={"ids": ids}, params={"fields": BATCH_FIELDS}
            )
        except ProviderCallError as e:
            # 400 means none of the ids were found
            if e.status == 400:
                logger.info(f"Semantic Scholar knows none of {len(ids)} identifiers")
                return []
            raise

        works = []
        for paper in papers if isinstance(papers, list) else []:
            if not paper:
                continue
            paper_id = paper.get("paperId") or ""
            references = [
                self._to_reference(paper_id, index, raw)
                for index, raw in enumerate(paper.get("references") or [])
            ]
            works.append(
                IndexedWork(
                    primary_id=paper_id,
                    identifiers=map_identifiers(paper.get("externalIds")),
                    references=references,
                )
            )
        logger.info(f"Semantic Scholar returned {len(works)} works for {len(ids)} identifiers")
        return works

    @staticmethod
    def _to_reference(citing_id: str, index: int, reference: Dict[str, Any]) -> ParsableReference:
        # Without a paperId the entry is a fragment Semantic Scholar could not match
        return ParsableReference(
            primary_id=reference.get("paperId") or f"{citing_id}#{index}",
            external_ids=map_identifiers(reference.get("externalIds")),
            raw_object=reference,
        )

    async def search(self, document: DocumentPort) -> Optional[IndexedWork]:
        if not document.title:
            return None
        data = await self.client.get(
            "paper/search/match",
            params={"query": document.title, "fields": "externalIds,title"},
        )
        matches = (data or {}).get("data") or []
        if not matches:
            return None
        paper = matches[0]
        return IndexedWork(
            primary_id=paper.get("paperId") or "",
            identifiers=map_identifiers(paper.get("externalIds")),
        )

    async def manual_parse(self, references: Sequence[ParsableReference]) -> List[ParsedReference]:
        """Build records straight from the reference payloads."""
        parsed = []
        for reference in references:
            raw = reference.raw_object or {}
            title = (raw.get("title") or "").strip()
            if not title:
                continue
            parsed.append(
                ParsedReference(
                    primary_id=reference.primary_id,
                    item=BibliographicRecord(
                        title=title,
                        authors=[a["name"] for a in raw.get("authors") or [] if a.get("name")],
                        year=raw.get("year"),
                        venue=raw.get("venue") or None,
                        pids=list(reference.external_ids),
                        raw=raw,
                    ),
                )
            )
        return parsed

    async def close(self) -> None:
        await self.client.close()
