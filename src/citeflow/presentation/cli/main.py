"""
CLI entry point.

    citeflow pid clean DOI https://doi.org/10.1000/XYZ
    citeflow oci encode crossref 10.1000/a 10.1000/b
    citeflow oci decode 020010000003610-020010000003611
    citeflow lookup DOI:10.1000/xyz ISBN:9780262033848
    citeflow citations --provider openalex DOI:10.1000/xyz --yes
    citeflow identifiers --provider semantic DOI:10.1000/xyz --title "Some paper"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from dotenv import find_dotenv, load_dotenv

from citeflow import __version__
from citeflow.application.services.lookup_engine import LookupEngine, LookupRequest
from citeflow.application.workflows.indexer_pipeline import (
    IndexerPipeline,
    IndexerProgress,
    IndexerRunReport,
)
from citeflow.domain import oci
from citeflow.domain.errors import CiteflowError
from citeflow.domain.pid import PID, PIDType, parse_pid
from citeflow.infrastructure.api_clients import OpenAlexClient
from citeflow.infrastructure.documents import InMemoryDocument
from citeflow.infrastructure.indexers import (
    INDEXERS,
    CrossrefIndexer,
    OpenAlexIndexer,
    OpenCitationsIndexer,
    SemanticScholarIndexer,
)
from citeflow.infrastructure.indexers.crossref_indexer import CrossrefClient
from citeflow.infrastructure.indexers.opencitations_indexer import OpenCitationsClient
from citeflow.infrastructure.indexers.semantic_scholar_indexer import SemanticScholarClient
from citeflow.infrastructure.resolvers import DefaultResolverRegistry, OpenAlexRecordSource
from citeflow.infrastructure.settings import Settings

# Pick up CITEFLOW_* variables from a local .env
load_dotenv(find_dotenv(usecwd=True), override=False)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="citeflow",
        description="citeflow - citation discovery across bibliographic indexes",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # pid
    pid_parser = subparsers.add_parser("pid", help="Persistent identifier utilities")
    pid_sub = pid_parser.add_subparsers(dest="pid_command")
    clean_parser = pid_sub.add_parser("clean", help="Normalize an identifier")
    clean_parser.add_argument("type", choices=[t.value for t in PIDType], help="Identifier type")
    clean_parser.add_argument("value", help="Raw identifier value")

    # oci
    oci_parser = subparsers.add_parser("oci", help="Open Citation Identifier codec")
    oci_sub = oci_parser.add_subparsers(dest="oci_command")
    encode_parser = oci_sub.add_parser("encode", help="Encode a citing/cited pair")
    encode_parser.add_argument("supplier", choices=[s.name for s in oci.SUPPLIERS])
    encode_parser.add_argument("citing")
    encode_parser.add_argument("cited")
    decode_parser = oci_sub.add_parser("decode", help="Decode an OCI")
    decode_parser.add_argument("oci")
    decode_parser.add_argument("--supplier", default=None, help="Expected supplier name")

    # lookup
    lookup_parser = subparsers.add_parser("lookup", help="Resolve identifiers into records")
    lookup_parser.add_argument("identifiers", nargs="+", help="Identifiers as <type>:<value>")

    # citations
    citations_parser = subparsers.add_parser("citations", help="Fetch citations for identifiers")
    citations_parser.add_argument("--provider", "-p", required=True, choices=sorted(INDEXERS))
    citations_parser.add_argument("identifiers", nargs="+", help="Identifiers as <type>:<value>")
    citations_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompts")
    citations_parser.add_argument("--no-auto-link", action="store_true", help="Disable auto-linking")

    # identifiers
    ids_parser = subparsers.add_parser(
        "identifiers", help="Discover the provider's own identifiers for documents"
    )
    ids_parser.add_argument("--provider", "-p", required=True, choices=sorted(INDEXERS))
    ids_parser.add_argument("identifiers", nargs="*", help="Identifiers as <type>:<value>")
    ids_parser.add_argument(
        "--title", action="append", dest="titles", default=None, help="Title-only document, repeatable"
    )

    return parser


class PromptConfirmation:
    """Asks on stdin before risky steps."""

    @staticmethod
    def _ask(question: str) -> bool:
        answer = input(f"{question} [y/N] ").strip().lower()
        return answer in ("y", "yes")

    def confirm_overwrite(self, provider: str, documents_with_citations: int) -> bool:
        return self._ask(
            f"{documents_with_citations} documents already have citations. "
            f"Continue fetching from {provider}?"
        )

    def confirm_additions(
        self,
        provider: str,
        documents_to_update: int,
        documents_total: int,
        citations_to_add: int,
    ) -> bool:
        return self._ask(
            f"{provider} found {citations_to_add} citations for "
            f"{documents_to_update} of {documents_total} documents. Add them?"
        )


def _client_options(settings: Settings) -> Dict[str, Any]:
    return {"timeout": settings.http_timeout, "max_retries": settings.max_retries}


def _build_provider(name: str, settings: Settings):
    options = _client_options(settings)
    if name == "openalex":
        return OpenAlexIndexer(OpenAlexClient(mailto=settings.mailto, **options))
    if name == "semantic":
        return SemanticScholarIndexer(
            SemanticScholarClient(api_key=settings.semantic_scholar_api_key, **options)
        )
    if name == "crossref":
        return CrossrefIndexer(CrossrefClient(mailto=settings.mailto, **options))
    return OpenCitationsIndexer(OpenCitationsClient(**options))


def _build_lookup_engine(settings: Settings) -> LookupEngine:
    options = _client_options(settings)
    return LookupEngine(
        OpenAlexRecordSource(OpenAlexClient(mailto=settings.mailto, **options)),
        DefaultResolverRegistry.default(**options),
        batch_size=settings.lookup_batch_size,
    )


async def _close_engine(engine: LookupEngine) -> None:
    await engine.batch_source.close()
    if engine.resolvers is not None:
        await engine.resolvers.close()


def _documents(identifiers: List[str], titles: Optional[List[str]] = None) -> List[InMemoryDocument]:
    documents = [
        InMemoryDocument(key=f"doc-{i + 1}", pids=[parse_pid(raw)])
        for i, raw in enumerate(identifiers)
    ]
    offset = len(documents)
    for i, title in enumerate(titles or []):
        documents.append(InMemoryDocument(key=f"doc-{offset + i + 1}", title=title))
    return documents


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _run_pid_clean(parsed: argparse.Namespace) -> int:
    pid = PID(PIDType(parsed.type), parsed.value)
    if not pid.clean_id:
        print(f"Invalid {parsed.type}: {parsed.value}", file=sys.stderr)
        return 1
    _print_json({"clean_id": pid.clean_id, "comparable": pid.comparable, "url": pid.url})
    return 0


def _run_oci(parsed: argparse.Namespace) -> int:
    if parsed.oci_command == "encode":
        print(oci.encode(parsed.supplier, parsed.citing, parsed.cited))
        return 0
    decoded = oci.decode(parsed.oci, parsed.supplier)
    _print_json(
        {
            "citing": decoded.citing_id,
            "cited": decoded.cited_id,
            "id_type": decoded.id_type.value,
            "supplier": decoded.supplier,
            "url": oci.resolver_url(parsed.oci),
        }
    )
    return 0


async def _lookup(identifiers: List[str], settings: Settings) -> Dict[str, Any]:
    engine = _build_lookup_engine(settings)
    try:
        requests = [LookupRequest(key=raw, pids=[parse_pid(raw)]) for raw in identifiers]
        result = await engine.lookup(requests)
    finally:
        await _close_engine(engine)
    return {
        "records": {p.primary_id: p.item.to_dict() for p in result.parsed},
        "failed": [{"key": f.key, "reason": f.reason} for f in result.failed],
        "unidentified": [r.key for r in result.unidentified],
    }


async def _citations(parsed: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    documents = _documents(parsed.identifiers)
    provider = _build_provider(parsed.provider, settings)
    engine = _build_lookup_engine(settings)
    pipeline = IndexerPipeline(
        provider,
        engine,
        confirmation=None if parsed.yes else PromptConfirmation(),
        auto_link=settings.auto_link and not parsed.no_auto_link,
    )

    report: Optional[IndexerRunReport] = None
    try:
        async for item in pipeline.run(documents):
            if isinstance(item, IndexerProgress):
                print(f"[{item.phase}] {item.message}", file=sys.stderr)
            else:
                report = item
    finally:
        await provider.close()
        await _close_engine(engine)

    return {
        "report": report.to_dict() if report else None,
        "documents": {
            d.key: [c.to_dict() for c in d.citations] for d in documents
        },
    }


async def _identifiers(parsed: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    documents = _documents(parsed.identifiers, parsed.titles)
    provider = _build_provider(parsed.provider, settings)
    engine = _build_lookup_engine(settings)
    try:
        report = await IndexerPipeline(provider, engine).refresh_identifiers(documents)
    finally:
        await provider.close()
        await _close_engine(engine)
    return {
        "report": report.to_dict(),
        "documents": {d.key: [str(p) for p in d.pids] for d in documents},
    }


def run_cli(args: Optional[list] = None) -> int:
    """
    Run the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"citeflow v{__version__}")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    settings = Settings.from_env()
    try:
        if parsed.command == "pid":
            if parsed.pid_command != "clean":
                parser.parse_args(["pid", "--help"])
            return _run_pid_clean(parsed)

        if parsed.command == "oci":
            if not parsed.oci_command:
                parser.parse_args(["oci", "--help"])
            return _run_oci(parsed)

        if parsed.command == "lookup":
            _print_json(asyncio.run(_lookup(parsed.identifiers, settings)))
        elif parsed.command == "citations":
            _print_json(asyncio.run(_citations(parsed, settings)))
        elif parsed.command == "identifiers":
            _print_json(asyncio.run(_identifiers(parsed, settings)))
        return 0

    except (CiteflowError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
