# src/citeflow/infrastructure/resolvers/openlibrary_resolver.py
"""
ISBN resolver backed by the Open Library books API.

API documentation: https://openlibrary.org/dev/docs/api/books
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from citeflow.domain.indexing import BibliographicRecord, RateLimitPolicy
from citeflow.domain.pid import PID, PIDType
from citeflow.infrastructure.api_clients.base import APIClient

OPENLIBRARY_API_URL = "https://openlibrary.org"
OPENLIBRARY_POLICY = RateLimitPolicy(max_concurrent=2, min_interval_s=0.5)


def book_to_record(isbn: str, data: Dict[str, Any]) -> BibliographicRecord:
    year = None
    publish_date = data.get("publish_date") or ""
    digits = [token for token in publish_date.replace(",", " ").split() if token.isdigit() and len(token) == 4]
    if digits:
        year = int(digits[0])

    publishers = [p.get("name") for p in data.get("publishers") or [] if p.get("name")]
    return BibliographicRecord(
        title=data.get("title") or "",
        item_type="book",
        authors=[a["name"] for a in data.get("authors") or [] if a.get("name")],
        year=year,
        venue=publishers[0] if publishers else None,
        pids=[PID(PIDType.ISBN, isbn)],
        raw=data,
    )


class OpenLibraryResolver(APIClient):
    def __init__(self, *, timeout: float = 30, max_retries: int = 3, session=None):
        super().__init__(
            OPENLIBRARY_API_URL,
            provider="Open Library",
            timeout=timeout,
            max_retries=max_retries,
            policy=OPENLIBRARY_POLICY,
            session=session,
        )

    async def resolve(self, pid: PID) -> Optional[BibliographicRecord]:
        isbn = pid.clean_id
        if pid.type != PIDType.ISBN or not isbn:
            return None
        bibkey = f"ISBN:{isbn}"
        data = await self.get(
            "api/books", params={"bibkeys": bibkey, "format": "json", "jscmd": "data"}
        )
        book = (data or {}).get(bibkey)
        return book_to_record(isbn, book) if book else None
