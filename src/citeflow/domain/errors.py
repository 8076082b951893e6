"""
Error taxonomy.

Only codec errors, rate limits, "no usable identifier" and "nothing parsed"
end an operation. Everything else is caught at a stage boundary and turned
into a counter on the run report.
"""

from __future__ import annotations

from typing import Any, List, Optional


class CiteflowError(Exception):
    """Base class for citeflow errors."""


class UserAbort(CiteflowError):
    """The user declined a confirmation gate."""

    def __init__(self, gate: str):
        super().__init__(f"Cancelled at confirmation gate: {gate}")
        self.gate = gate


class NoUsableIdentifierError(CiteflowError):
    """None of the documents exposes an identifier the provider understands."""

    def __init__(self, provider: str, documents_considered: int = 0):
        super().__init__(
            f"No document has an identifier supported by {provider} "
            f"({documents_considered} considered)"
        )
        self.provider = provider
        self.documents_considered = documents_considered


class ProviderCallError(CiteflowError):
    """A single provider or resolver call failed."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class RateLimitedError(ProviderCallError):
    """The provider answered with a rate-limit response. Never retried."""

    def __init__(self, provider: str, message: Optional[str] = None):
        super().__init__(
            provider,
            message
            or (
                f"Received a 429 rate limit response from {provider}. "
                "Try getting references for fewer items at a time."
            ),
            status=429,
        )


class CodecError(CiteflowError, ValueError):
    """Malformed encoded value."""


class NothingResolvedError(CiteflowError):
    """A lookup call resolved none of its identifiers."""

    def __init__(self, failures: Optional[List[Any]] = None):
        failures = failures or []
        if failures:
            message = f"Could not resolve any of {len(failures)} identifiers"
        else:
            message = "No request carried a usable identifier"
        super().__init__(message)
        self.failures = failures


class NothingParsedError(CiteflowError):
    """References were found but none could be parsed into records."""

    def __init__(self, provider: str, references: int):
        super().__init__(f"{provider}: none of {references} references could be parsed")
        self.provider = provider
        self.references = references
