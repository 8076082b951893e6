"""Resolver discovery for identifier types without a batch source."""

from __future__ import annotations

from typing import Dict, Optional

from citeflow.application.ports.lookup_port import RecordResolver
from citeflow.domain.pid import PIDType

from .openlibrary_resolver import OpenLibraryResolver


class DefaultResolverRegistry:
    def __init__(self, resolvers: Optional[Dict[PIDType, RecordResolver]] = None):
        self._resolvers: Dict[PIDType, RecordResolver] = dict(resolvers or {})

    @classmethod
    def default(cls, **client_options) -> "DefaultResolverRegistry":
        return cls({PIDType.ISBN: OpenLibraryResolver(**client_options)})

    def register(self, pid_type: PIDType, resolver: RecordResolver) -> None:
        self._resolvers[pid_type] = resolver

    def get(self, pid_type: PIDType) -> Optional[RecordResolver]:
        return self._resolvers.get(pid_type)

    async def close(self) -> None:
        for resolver in self._resolvers.values():
            close = getattr(resolver, "close", None)
            if close is not None:
                await close()
