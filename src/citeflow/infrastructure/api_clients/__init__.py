"""HTTP clients for the bibliographic APIs."""

from .base import APIClient
from .openalex import OpenAlexClient

__all__ = ["APIClient", "OpenAlexClient"]
