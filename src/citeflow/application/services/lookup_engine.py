"""
Lookup engine: raw identifiers → bibliographic records.

Each request carries zero or more identifiers. The best one (by a fixed type
priority) is picked, requests are grouped by that type, and every group is
resolved concurrently:

- batch types go through a search API in sub-batches, one call each;
  results are mapped back by re-extracting the identifier from each record
- other types are resolved one identifier at a time through the resolver
  registered for that type

Failures are returned, not raised, so callers can apply their own fallback
without losing the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from citeflow.application.ports.lookup_port import (
    BatchRecordSource,
    RecordResolver,
    ResolverRegistry,
)
from citeflow.application.services.identifier_chunker import chunked
from citeflow.application.services.rate_limiter import RateLimiter
from citeflow.domain.errors import NothingResolvedError, RateLimitedError
from citeflow.domain.indexing import (
    BibliographicRecord,
    ParsableReference,
    ParsedReference,
    RateLimitPolicy,
)
from citeflow.domain.pid import PID, PIDType, arxiv_doi, best_pid
from citeflow.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_PRIORITY: tuple[PIDType, ...] = (
    PIDType.OPENALEX,
    PIDType.MAG,
    PIDType.DOI,
    PIDType.PMID,
    PIDType.PMCID,
    PIDType.ARXIV,
    PIDType.ISBN,
)

# Crossref-style lookups allow ~50 req/s; 10 is plenty
DEFAULT_LOOKUP_POLICY = RateLimitPolicy(max_concurrent=5, min_interval_s=0.1)


@dataclass
class LookupRequest:
    key: str
    pids: List[PID] = field(default_factory=list)


@dataclass
class LookupFailure:
    key: str
    pid: Optional[PID]
    reason: str


@dataclass
class LookupResult:
    parsed: List[ParsedReference] = field(default_factory=list)
    failed: List[LookupFailure] = field(default_factory=list)
    unidentified: List[LookupRequest] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.parsed) + len(self.failed)


_Member = Tuple[LookupRequest, PID]
_Outcome = Tuple[List[ParsedReference], List[LookupFailure]]


class LookupEngine:
    """Resolve heterogeneous identifiers into bibliographic records."""

    def __init__(
        self,
        batch_source: BatchRecordSource,
        resolvers: Optional[ResolverRegistry] = None,
        *,
        policy: Optional[RateLimitPolicy] = None,
        priority: Sequence[PIDType] = DEFAULT_LOOKUP_PRIORITY,
        batch_size: Optional[int] = None,
    ):
        self.batch_source = batch_source
        self.batch_size = batch_size or batch_source.batch_size
        self.resolvers = resolvers
        self.priority = tuple(priority)
        self._limiter = RateLimiter(policy or DEFAULT_LOOKUP_POLICY, name="lookup")

    async def lookup_references(
        self,
        references: Sequence[ParsableReference],
        *,
        strict: bool = True,
    ) -> LookupResult:
        """Resolve provider references, keyed by their primary id."""
        requests = [
            LookupRequest(key=ref.primary_id, pids=list(ref.external_ids))
            for ref in references
        ]
        return await self.lookup(requests, strict=strict)

    async def lookup(
        self,
        requests: Sequence[LookupRequest],
        *,
        strict: bool = True,
    ) -> LookupResult:
        """
        Resolve every request it can.

        Args:
            requests: Items to resolve, each with candidate identifiers
            strict: Raise NothingResolvedError when requests were given and
                none resolved, including when none had a usable identifier

        Returns:
            LookupResult with parsed records, failures and requests that had
            no usable identifier
        """
        result = LookupResult()
        groups: Dict[PIDType, List[_Member]] = {}
        for request in requests:
            pid = best_pid(request.pids, self.priority)
            if pid is None:
                result.unidentified.append(request)
                continue
            groups.setdefault(pid.type, []).append((request, pid))

        branches = []
        for pid_type, members in groups.items():
            if pid_type in self.batch_source.batch_types:
                branches.append(self._lookup_batched(pid_type, members))
            else:
                branches.append(self._lookup_individually(pid_type, members))

        outcomes = await asyncio.gather(*branches, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            parsed, failed = outcome
            result.parsed.extend(parsed)
            result.failed.extend(failed)

        Logger.info(
            f"Lookup finished: {len(result.parsed)} parsed, {len(result.failed)} failed, "
            f"{len(result.unidentified)} without identifier",
            file=LogFiles.LOOKUP,
        )
        if strict and requests and not result.parsed:
            raise NothingResolvedError(result.failed)
        return result

    async def _lookup_batched(self, pid_type: PIDType, members: List[_Member]) -> _Outcome:
        # The search backend only indexes arXiv preprints by their DataCite DOI
        search_type = PIDType.DOI if pid_type == PIDType.ARXIV else pid_type

        items: List[Tuple[LookupRequest, PID, str]] = []
        for request, pid in members:
            clean = pid.clean_id or ""
            search_id = arxiv_doi(clean) if pid_type == PIDType.ARXIV else clean
            items.append((request, pid, search_id))

        sub_batches = chunked(items, self.batch_size)
        outcomes = await asyncio.gather(
            *(self._resolve_sub_batch(search_type, batch) for batch in sub_batches),
            return_exceptions=True,
        )

        parsed: List[ParsedReference] = []
        failed: List[LookupFailure] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            parsed.extend(outcome[0])
            failed.extend(outcome[1])
        return parsed, failed

    async def _resolve_sub_batch(
        self,
        search_type: PIDType,
        batch: List[Tuple[LookupRequest, PID, str]],
    ) -> _Outcome:
        ids = list(dict.fromkeys(search_id for _, _, search_id in batch))
        try:
            records = await self._limiter.run(self.batch_source.resolve_batch, search_type, ids)
        except RateLimitedError:
            raise
        except Exception as e:
            logger.warning(f"Batch lookup of {len(ids)} {search_type.value} ids failed: {e}")
            return [], [LookupFailure(request.key, pid, str(e)) for request, pid, _ in batch]

        by_id: Dict[str, BibliographicRecord] = {}
        for record in records:
            record_id = self.batch_source.extract_id(record, search_type)
            if record_id:
                by_id.setdefault(record_id.lower(), record)

        parsed: List[ParsedReference] = []
        failed: List[LookupFailure] = []
        for request, pid, search_id in batch:
            record = by_id.get(search_id.lower())
            if record is None:
                failed.append(LookupFailure(request.key, pid, "not found"))
            else:
                parsed.append(ParsedReference(primary_id=request.key, item=record))
        return parsed, failed

    async def _lookup_individually(self, pid_type: PIDType, members: List[_Member]) -> _Outcome:
        resolver = self.resolvers.get(pid_type) if self.resolvers is not None else None
        if resolver is None:
            reason = f"no resolver for {pid_type.value}"
            return [], [LookupFailure(request.key, pid, reason) for request, pid in members]

        by_id: Dict[str, List[_Member]] = {}
        for request, pid in members:
            by_id.setdefault((pid.clean_id or "").lower(), []).append((request, pid))

        outcomes = await asyncio.gather(
            *(self._resolve_one(resolver, group[0][1]) for group in by_id.values()),
            return_exceptions=True,
        )

        parsed: List[ParsedReference] = []
        failed: List[LookupFailure] = []
        for group, outcome in zip(by_id.values(), outcomes):
            if isinstance(outcome, RateLimitedError):
                raise outcome
            if isinstance(outcome, BaseException) or outcome is None:
                reason = str(outcome) if isinstance(outcome, BaseException) else "not found"
                failed.extend(LookupFailure(request.key, pid, reason) for request, pid in group)
                continue
            parsed.extend(ParsedReference(primary_id=request.key, item=outcome) for request, _ in group)
        return parsed, failed

    async def _resolve_one(
        self, resolver: RecordResolver, pid: PID
    ) -> Optional[BibliographicRecord]:
        try:
            return await self._limiter.run(resolver.resolve, pid)
        except RateLimitedError:
            raise
        except Exception as e:
            logger.warning(f"Lookup of {pid} failed: {e}")
            raise
