"""Failure taxonomy for retrieval and context assembly.

Only `RetrievalUnavailable` is meant to reach callers of the engine; the
other failures are caught at tier or domain boundaries and turned into a
fallback or an empty section. "Nothing found" is never an error.
"""

from dataclasses import dataclass


class EngineError(Exception):
    """Base class for engine failures."""


class ProviderFailure(EngineError):
    """The embedding provider could not produce a vector."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreFailure(EngineError):
    """A query against the backing document store failed."""


class ParseFailure(EngineError):
    """A stored vector could not be decoded."""


class TimeoutFailure(EngineError):
    """A workspace domain query exceeded its time budget."""

    def __init__(self, domain: str, timeout: float):
        super().__init__(f"{domain} query exceeded {timeout}s")
        self.domain = domain
        self.timeout = timeout


class RetrievalUnavailable(EngineError):
    """Every retrieval tier failed with a provider or store error."""

    def __init__(self, failures: list["TierFailure"]):
        summary = "; ".join(f"{f.tier}: {f.error}" for f in failures)
        super().__init__(f"All retrieval tiers unavailable ({summary})")
        self.failures = failures


@dataclass
class TierFailure:
    """Record of one tier that failed rather than coming back empty."""

    tier: str
    error: EngineError
