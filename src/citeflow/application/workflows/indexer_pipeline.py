# src/citeflow/application/workflows/indexer_pipeline.py
"""
Citation indexing pipeline.

Fetches reference lists for many documents from one provider and merges
the new citations back:

1. Filter documents by the provider's supported identifier types
2. Confirm overwrite when documents already have citations
3. Group and chunk the chosen identifiers
4. Fetch every chunk in parallel (rate limited, failures isolated per chunk)
5. Match works back to documents (direct, then equivalence rules)
6. Count references and confirm the additions
7. Deduplicate references across documents
8. Parse unique references through the lookup engine
9. Merge citations into each document inside one write batch

Every stage is a module-level function over explicit result objects so it
can be exercised on its own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from citeflow.application.ports.document_port import (
    AutoConfirm,
    ConfirmationPort,
    DocumentPort,
    MatcherPort,
)
from citeflow.application.ports.indexer_port import (
    IndexerPort,
    ManualParsingIndexer,
    SearchableIndexer,
)
from citeflow.application.services.identifier_chunker import chunk_identifiers
from citeflow.application.services.lookup_engine import LookupEngine
from citeflow.application.services.rate_limiter import RateLimiter
from citeflow.application.services.reference_deduplicator import (
    ReferenceDeduplicator,
    UniqueReference,
)
from citeflow.application.services.work_matcher import (
    DEFAULT_EQUIVALENCE_RULES,
    EquivalenceRule,
    WorkMatcher,
)
from citeflow.domain.errors import (
    NothingParsedError,
    NoUsableIdentifierError,
    RateLimitedError,
    UserAbort,
)
from citeflow.domain.indexing import (
    BibliographicRecord,
    Citation,
    IndexedWork,
    IndexerCapabilities,
    MatchFailure,
)
from citeflow.domain.pid import PID, PIDType
from citeflow.utils.logging_config import LogFiles, Logger, set_trace_id

logger = logging.getLogger(__name__)


# ============================================================================
# Progress and reports
# ============================================================================


@dataclass
class IndexerProgress:
    """Progress update during an indexing run."""

    phase: str  # Filtering, Fetching, Matching, Parsing, Merging, Done
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class IndexerRunReport:
    """Final tallies of an indexing run."""

    provider: str
    status: str = "success"  # success, partial, no_references, cancelled
    documents_considered: int = 0
    documents_with_identifier: int = 0
    documents_without_identifier: int = 0
    works_found: int = 0
    works_with_references: int = 0
    references_found: int = 0
    references_unique: int = 0
    references_parsed: int = 0
    references_failed: int = 0
    citations_added: int = 0
    citations_skipped: int = 0
    documents_updated: int = 0
    failed_chunks: int = 0
    unmatched: List[MatchFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IdentifierRefreshReport:
    provider: str
    documents_considered: int = 0
    documents_matched: int = 0
    documents_searched: int = 0
    pids_added: int = 0
    write_failures: int = 0
    unmatched: List[MatchFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# Stage results
# ============================================================================


@dataclass
class FilterResult:
    selected: List[Tuple[DocumentPort, PID]] = field(default_factory=list)
    skipped: List[DocumentPort] = field(default_factory=list)

    @property
    def considered(self) -> int:
        return len(self.selected) + len(self.skipped)


@dataclass
class FetchResult:
    works: List[IndexedWork] = field(default_factory=list)
    chunks: int = 0
    failed_chunks: int = 0

    @property
    def works_with_references(self) -> int:
        return sum(1 for work in self.works if work.references)


@dataclass
class MatchResult:
    matched: List[Tuple[DocumentPort, IndexedWork]] = field(default_factory=list)
    unmatched: List[MatchFailure] = field(default_factory=list)

    @property
    def reference_count(self) -> int:
        return sum(work.reference_count for _, work in self.matched)

    @property
    def documents_with_references(self) -> int:
        return sum(1 for _, work in self.matched if work.references)


@dataclass
class DedupResult:
    unique: Dict[str, UniqueReference] = field(default_factory=dict)
    duplicates: int = 0


@dataclass
class ParseResult:
    records: Dict[str, BibliographicRecord] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    manually_parsed: int = 0


@dataclass
class MergeResult:
    citations_added: int = 0
    citations_skipped: int = 0
    documents_updated: int = 0
    per_document: Dict[str, int] = field(default_factory=dict)


# ============================================================================
# Stages
# ============================================================================


def filter_documents(
    documents: Sequence[DocumentPort],
    supported_types: Sequence[PIDType],
) -> FilterResult:
    """Split documents by whether they expose a supported identifier."""
    result = FilterResult()
    for document in documents:
        pid = document.get_best_pid(supported_types)
        if pid is None:
            result.skipped.append(document)
        else:
            result.selected.append((document, pid))
    return result


def chunk_selected(
    selected: Sequence[Tuple[DocumentPort, PID]],
    capabilities: IndexerCapabilities,
) -> List[List[PID]]:
    """Chunk the chosen identifiers, asking for each one only once."""
    seen = set()
    pids: List[PID] = []
    for _, pid in selected:
        key = pid.comparable
        if key and key not in seen:
            seen.add(key)
            pids.append(pid)
    return chunk_identifiers(
        pids,
        capabilities.chunk_size,
        grouping_required=capabilities.grouping_required,
    )


async def fetch_works(
    provider: IndexerPort,
    chunks: Sequence[Sequence[PID]],
    limiter: RateLimiter,
) -> FetchResult:
    """
    Fetch every chunk in parallel.

    A failing chunk contributes no works and is counted; a rate-limit
    response ends the whole fetch once the sibling calls have settled.
    """
    name = provider.capabilities.name

    async def fetch_chunk(chunk: Sequence[PID]) -> Optional[List[IndexedWork]]:
        try:
            return await limiter.run(provider.fetch, list(chunk))
        except RateLimitedError:
            raise
        except Exception as e:
            logger.warning(f"{name} fetch failed for chunk of {len(chunk)} identifiers: {e}")
            Logger.error(f"{name} chunk failed ({len(chunk)} identifiers): {e}", file=LogFiles.ERROR)
            return None

    outcomes = await asyncio.gather(*(fetch_chunk(c) for c in chunks), return_exceptions=True)

    result = FetchResult(chunks=len(chunks))
    rate_limited: Optional[BaseException] = None
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            rate_limited = rate_limited or outcome
        elif outcome is None:
            result.failed_chunks += 1
        else:
            result.works.extend(outcome)
    if rate_limited is not None:
        raise rate_limited
    return result


def match_documents(
    selected: Sequence[Tuple[DocumentPort, PID]],
    works: Sequence[IndexedWork],
    matcher: WorkMatcher,
) -> MatchResult:
    matcher.reset()
    matcher.index(works)

    result = MatchResult()
    for document, pid in selected:
        work = matcher.match(pid)
        if work is None:
            logger.info(f"No work matched document {document.key} ({pid})")
            result.unmatched.append(MatchFailure(document_key=document.key, pid=str(pid)))
        else:
            result.matched.append((document, work))
    return result


def deduplicate_references(matched: Sequence[Tuple[DocumentPort, IndexedWork]]) -> DedupResult:
    unique, duplicates = ReferenceDeduplicator().deduplicate(
        [(document.key, work) for document, work in matched]
    )
    return DedupResult(unique=unique, duplicates=duplicates)


async def parse_references(
    dedup: DedupResult,
    lookup_engine: LookupEngine,
    provider: Any = None,
) -> ParseResult:
    """
    Turn unique references into records.

    References without a usable identifier go to the provider's own
    ``manual_parse`` when it has one.
    """
    references = [entry.reference for entry in dedup.unique.values()]
    result = ParseResult()
    if not references:
        return result

    lookup = await lookup_engine.lookup_references(references, strict=False)
    for parsed in lookup.parsed:
        result.records.setdefault(parsed.primary_id, parsed.item)

    leftovers = [dedup.unique[request.key].reference for request in lookup.unidentified]
    if leftovers and isinstance(provider, ManualParsingIndexer):
        try:
            manual = await provider.manual_parse(leftovers)
        except RateLimitedError:
            raise
        except Exception as e:
            logger.warning(f"Manual parsing of {len(leftovers)} references failed: {e}")
            manual = []
        for parsed in manual:
            if parsed.primary_id not in result.records:
                result.records[parsed.primary_id] = parsed.item
                result.manually_parsed += 1

    result.failed = [key for key in dedup.unique if key not in result.records]
    return result


def merge_citations(
    matched: Sequence[Tuple[DocumentPort, IndexedWork]],
    parsed: ParseResult,
    *,
    matcher: Optional[MatcherPort] = None,
    auto_link: bool = True,
) -> MergeResult:
    """Append parsed references as citations, one write batch per document."""
    result = MergeResult()

    for document, work in matched:
        existing: set[str] = set()
        for citation in document.citations:
            existing |= citation.comparables()

        batch = None
        added = 0
        merged_refs = set()
        for reference in work.references:
            record = parsed.records.get(reference.primary_id)
            if record is None or reference.primary_id in merged_refs:
                continue
            merged_refs.add(reference.primary_id)

            citation = Citation(item=record, pids=list(reference.external_ids), oci=reference.oci)
            keys = citation.comparables()
            if keys & existing:
                result.citations_skipped += 1
                continue
            existing |= keys

            if matcher is not None and auto_link:
                citation.linked_key = _first_candidate(matcher, record)

            if batch is None:
                batch = document.begin_batch()
            batch.append([citation])
            added += 1

        if batch is not None:
            batch.flush()
            result.documents_updated += 1
            result.citations_added += added
            result.per_document[document.key] = added

    return result


def _first_candidate(matcher: MatcherPort, record: BibliographicRecord) -> Optional[str]:
    try:
        candidates = matcher.find_candidates(record)
    except Exception as e:
        logger.warning(f"Auto-link lookup failed for '{record.title}': {e}")
        return None
    return candidates[0] if candidates else None


# ============================================================================
# Pipeline
# ============================================================================


class IndexerPipeline:
    """
    Indexing pipeline bound to one provider.

    Usage:
        pipeline = IndexerPipeline(OpenAlexIndexer(), LookupEngine(OpenAlexRecordSource()))
        report = await pipeline.add_citations(documents)
    """

    def __init__(
        self,
        provider: IndexerPort,
        lookup_engine: LookupEngine,
        *,
        confirmation: Optional[ConfirmationPort] = None,
        matcher: Optional[MatcherPort] = None,
        auto_link: bool = True,
        rules: Sequence[EquivalenceRule] = DEFAULT_EQUIVALENCE_RULES,
    ):
        self.provider = provider
        self.lookup_engine = lookup_engine
        self.confirmation = confirmation or AutoConfirm()
        self.matcher = matcher
        self.auto_link = auto_link
        self.work_matcher = WorkMatcher(rules)
        self._limiter = RateLimiter(provider.capabilities.rate_limit, name=provider.capabilities.name)

    @property
    def capabilities(self) -> IndexerCapabilities:
        return self.provider.capabilities

    async def run(
        self,
        documents: Sequence[DocumentPort],
    ) -> AsyncGenerator[IndexerProgress | IndexerRunReport, None]:
        """
        Execute the pipeline with progress updates.

        Yields:
            IndexerProgress for intermediate updates
            IndexerRunReport as final yield

        Raises:
            NoUsableIdentifierError: no document has a supported identifier
            RateLimitedError: the provider rejected a call for exceeding its rate limit
            NothingParsedError: references were found but none could be parsed
        """
        caps = self.capabilities
        set_trace_id()
        start = time.monotonic()
        report = IndexerRunReport(provider=caps.name, documents_considered=len(documents))
        Logger.info(f"{caps.name} run started for {len(documents)} documents", file=LogFiles.INDEXER)

        try:
            # Phase 1: filter
            yield IndexerProgress(
                phase="Filtering",
                message=f"Selecting documents with a {caps.name} identifier...",
            )
            filtered = filter_documents(documents, caps.supported_types)
            report.documents_with_identifier = len(filtered.selected)
            report.documents_without_identifier = len(filtered.skipped)
            if not filtered.selected:
                raise NoUsableIdentifierError(caps.name, len(documents))

            # Phase 2: overwrite gate
            with_citations = sum(1 for document, _ in filtered.selected if document.citations)
            if with_citations and not self.confirmation.confirm_overwrite(caps.name, with_citations):
                raise UserAbort("overwrite")

            # Phase 3-4: chunk and fetch
            chunks = chunk_selected(filtered.selected, caps)
            yield IndexerProgress(
                phase="Fetching",
                message=f"Fetching {len(chunks)} chunks from {caps.name}...",
                details={"chunks": len(chunks), "documents": len(filtered.selected)},
            )
            fetched = await fetch_works(self.provider, chunks, self._limiter)
            report.works_found = len(fetched.works)
            report.works_with_references = fetched.works_with_references
            report.failed_chunks = fetched.failed_chunks

            # Phase 5: match
            yield IndexerProgress(
                phase="Matching",
                message=f"Matching {len(fetched.works)} works to documents...",
            )
            matched = match_documents(filtered.selected, fetched.works, self.work_matcher)
            report.unmatched = matched.unmatched

            # Phase 6: count and confirm
            report.references_found = matched.reference_count
            if report.references_found == 0:
                report.status = "no_references"
                Logger.info(f"{caps.name} found no references", file=LogFiles.INDEXER)
                yield self._finish(report, start)
                return

            if not self.confirmation.confirm_additions(
                caps.name,
                matched.documents_with_references,
                len(documents),
                report.references_found,
            ):
                raise UserAbort("additions")

            # Phase 7-8: deduplicate and parse
            dedup = deduplicate_references(matched.matched)
            report.references_unique = len(dedup.unique)
            yield IndexerProgress(
                phase="Parsing",
                message=f"Parsing {len(dedup.unique)} unique references...",
                details={"duplicates": dedup.duplicates},
            )
            parsed = await parse_references(dedup, self.lookup_engine, self.provider)
            report.references_parsed = len(parsed.records)
            report.references_failed = len(parsed.failed)
            if not parsed.records:
                raise NothingParsedError(caps.name, len(dedup.unique))

            # Phase 9: merge
            yield IndexerProgress(
                phase="Merging",
                message=f"Adding citations to {matched.documents_with_references} documents...",
            )
            merged = merge_citations(
                matched.matched, parsed, matcher=self.matcher, auto_link=self.auto_link
            )
            report.citations_added = merged.citations_added
            report.citations_skipped = merged.citations_skipped
            report.documents_updated = merged.documents_updated

            if report.failed_chunks or report.references_failed:
                report.status = "partial"

            yield IndexerProgress(
                phase="Done",
                message=f"Added {report.citations_added} citations to {report.documents_updated} documents",
            )
            Logger.info(
                f"{caps.name} run finished: {report.citations_added} citations added, "
                f"{report.references_parsed}/{report.references_unique} references parsed",
                file=LogFiles.INDEXER,
            )
            yield self._finish(report, start)

        except UserAbort as e:
            logger.info(str(e))
            Logger.info(f"{caps.name} run cancelled at {e.gate} gate", file=LogFiles.INDEXER)
            report.status = "cancelled"
            yield self._finish(report, start)
        except (NoUsableIdentifierError, RateLimitedError, NothingParsedError) as e:
            Logger.error(f"{caps.name} run failed: {e}", file=LogFiles.ERROR)
            raise

    @staticmethod
    def _finish(report: IndexerRunReport, start: float) -> IndexerRunReport:
        report.duration_seconds = round(time.monotonic() - start, 3)
        return report

    async def add_citations(self, documents: Sequence[DocumentPort]) -> IndexerRunReport:
        """Run the pipeline and return only the final report."""
        result: Optional[IndexerRunReport] = None
        async for item in self.run(documents):
            if isinstance(item, IndexerRunReport):
                result = item
        if result is None:
            raise RuntimeError("Pipeline completed without final report")
        return result

    async def refresh_identifiers(self, documents: Sequence[DocumentPort]) -> IdentifierRefreshReport:
        """
        Fill in the provider's own identifier (and any others it knows).

        Only documents lacking the provider's own identifier type are
        considered. Documents with a supported identifier are fetched in
        chunks; the rest are searched one at a time when the provider
        supports free-text search.
        """
        caps = self.capabilities
        set_trace_id()
        lacking = [d for d in documents if d.get_best_pid((caps.own_type,)) is None]
        report = IdentifierRefreshReport(provider=caps.name, documents_considered=len(lacking))

        filtered = filter_documents(lacking, caps.supported_types)
        if filtered.selected:
            chunks = chunk_selected(filtered.selected, caps)
            fetched = await fetch_works(self.provider, chunks, self._limiter)
            matched = match_documents(filtered.selected, fetched.works, self.work_matcher)
            report.unmatched = matched.unmatched
            for document, work in matched.matched:
                report.documents_matched += 1
                self._write_identifiers(document, work.identifiers, report)

        if filtered.skipped and isinstance(self.provider, SearchableIndexer):
            for document in filtered.skipped:
                try:
                    work = await self._limiter.run(self.provider.search, document)
                except RateLimitedError:
                    raise
                except Exception as e:
                    logger.warning(f"{caps.name} search failed for {document.key}: {e}")
                    continue
                report.documents_searched += 1
                if work is not None:
                    report.documents_matched += 1
                    self._write_identifiers(document, work.identifiers, report)

        Logger.info(
            f"{caps.name} identifier refresh: {report.pids_added} identifiers added "
            f"to {report.documents_matched}/{report.documents_considered} documents",
            file=LogFiles.INDEXER,
        )
        return report

    @staticmethod
    def _write_identifiers(
        document: DocumentPort,
        identifiers: Sequence[PID],
        report: IdentifierRefreshReport,
    ) -> None:
        """Store identifiers of types the document lacks; each type independently."""
        written = set()
        for pid in identifiers:
            if pid.type in written or not pid.clean_id:
                continue
            if document.get_best_pid((pid.type,)) is not None:
                continue
            written.add(pid.type)
            try:
                document.set_pid(pid)
                report.pids_added += 1
            except Exception as e:
                report.write_failures += 1
                logger.warning(f"Could not store {pid} on {document.key}: {e}")
