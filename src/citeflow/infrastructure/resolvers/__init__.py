"""Record sources and resolvers used by the lookup engine."""

from .openalex_records import OpenAlexRecordSource
from .openlibrary_resolver import OpenLibraryResolver
from .registry import DefaultResolverRegistry

__all__ = ["OpenAlexRecordSource", "OpenLibraryResolver", "DefaultResolverRegistry"]
