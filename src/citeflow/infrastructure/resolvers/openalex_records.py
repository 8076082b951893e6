# src/citeflow/infrastructure/resolvers/openalex_records.py
"""OpenAlex as the batch record source of the lookup engine."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from citeflow.domain.indexing import BibliographicRecord
from citeflow.domain.pid import PIDType
from citeflow.infrastructure.api_clients.openalex import (
    FILTER_KEYS,
    OPENALEX_MAX_FILTER_VALUES,
    OpenAlexClient,
    work_to_record,
)

logger = logging.getLogger(__name__)


class OpenAlexRecordSource:
    """Resolves OpenAlex, MAG, DOI, PMID, PMCID (and arXiv, as DOI) in batches."""

    def __init__(
        self,
        client: Optional[OpenAlexClient] = None,
        *,
        mailto: Optional[str] = None,
        batch_size: int = OPENALEX_MAX_FILTER_VALUES,
    ):
        self.client = client or OpenAlexClient(mailto=mailto)
        self._batch_size = min(batch_size, OPENALEX_MAX_FILTER_VALUES)

    @property
    def batch_types(self) -> Sequence[PIDType]:
        return (*FILTER_KEYS, PIDType.ARXIV)

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def resolve_batch(self, pid_type: PIDType, ids: Sequence[str]) -> List[BibliographicRecord]:
        works = await self.client.works_by_ids(pid_type, ids)
        logger.debug(f"OpenAlex resolved {len(works)} of {len(ids)} {pid_type.value} ids")
        return [work_to_record(work) for work in works]

    def extract_id(self, record: BibliographicRecord, pid_type: PIDType) -> Optional[str]:
        pid = record.get_pid(pid_type)
        return pid.clean_id if pid is not None else None

    async def close(self) -> None:
        await self.client.close()
