# src/citeflow/infrastructure/indexers/openalex_indexer.py
"""
OpenAlex citation indexer.

Works are fetched by OR-filter on one identifier type at a time; every
``referenced_works`` entry becomes a reference keyed by its OpenAlex id,
which the lookup engine later resolves in batches.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from citeflow.application.ports.document_port import DocumentPort
from citeflow.application.services.identifier_chunker import group_by_type
from citeflow.domain.indexing import IndexedWork, IndexerCapabilities, ParsableReference
from citeflow.domain.pid import PID, PIDType, normalize_openalex_id
from citeflow.infrastructure.api_clients.openalex import (
    OPENALEX_POLICY,
    OpenAlexClient,
    work_identifiers,
)

logger = logging.getLogger(__name__)


class OpenAlexIndexer:
    """
    OpenAlex provider.

    API: https://api.openalex.org/works
    Rate limit: 10 req/s (polite pool with email)
    """

    CAPABILITIES = IndexerCapabilities(
        name="OpenAlex",
        supported_types=(
            PIDType.OPENALEX,
            PIDType.DOI,
            PIDType.MAG,
            PIDType.PMID,
            PIDType.PMCID,
        ),
        own_type=PIDType.OPENALEX,
        chunk_size=50,
        grouping_required=True,
        rate_limit=OPENALEX_POLICY,
    )

    def __init__(self, client: Optional[OpenAlexClient] = None, *, mailto: Optional[str] = None):
        self.client = client or OpenAlexClient(mailto=mailto)

    @property
    def capabilities(self) -> IndexerCapabilities:
        return self.CAPABILITIES

    async def fetch(self, identifiers: Sequence[PID]) -> List[IndexedWork]:
        works: List[IndexedWork] = []
        for pid_type, pids in group_by_type(identifiers).items():
            ids = [pid.clean_id for pid in pids if pid.clean_id]
            if not ids:
                continue
            for data in await self.client.works_by_ids(pid_type, ids):
                work = self._to_work(data)
                if work is not None:
                    works.append(work)
        logger.info(f"OpenAlex returned {len(works)} works for {len(identifiers)} identifiers")
        return works

    async def search(self, document: DocumentPort) -> Optional[IndexedWork]:
        """Look a document up by title."""
        if not document.title:
            return None
        data = await self.client.search_title(document.title)
        return self._to_work(data) if data else None

    def _to_work(self, data: Dict[str, Any]) -> Optional[IndexedWork]:
        identifiers = work_identifiers(data)
        primary = next((p for p in identifiers if p.type == PIDType.OPENALEX), None)
        if primary is None:
            return None

        references = []
        for raw in data.get("referenced_works") or []:
            openalex_id = normalize_openalex_id(raw)
            if openalex_id:
                references.append(
                    ParsableReference(
                        primary_id=openalex_id,
                        external_ids=[PID(PIDType.OPENALEX, openalex_id)],
                    )
                )
        return IndexedWork(primary_id=primary.id, identifiers=identifiers, references=references)

    async def close(self) -> None:
        await self.client.close()
