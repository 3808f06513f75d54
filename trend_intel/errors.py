"""
Error taxonomy for the trend pipeline.

Source adapters never raise these across their boundary; they report a
SourceError value instead. The store raises PersistenceError, the engine
raises InsufficientData / MixedDataSourceError, and the scheduler turns
every one of them into a PipelineResult.
"""

from typing import List, Optional


class TrendIntelError(Exception):
    """Base class for all pipeline errors."""

    code = "internal_error"


class SourceUnavailable(TrendIntelError):
    """A data source is unconfigured, unreachable or returned garbage."""

    code = "source_unavailable"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class NoDataSources(TrendIntelError):
    """No data source is configured."""

    code = "no_data_sources"

    def __init__(self, message: str = "No trend data source is configured"):
        super().__init__(message)


class InsufficientData(TrendIntelError):
    """Too few keywords stored for a niche to score meaningfully."""

    code = "insufficient_data"

    def __init__(self, niche_id: str, keyword_count: int, required: int):
        self.niche_id = niche_id
        self.keyword_count = keyword_count
        self.required = required
        super().__init__(
            f"Niche '{niche_id}' has {keyword_count} keyword(s), need at least {required}"
        )


class PersistenceError(TrendIntelError):
    """A store read or write failed; the transaction was rolled back."""

    code = "persistence_error"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Store operation '{operation}' failed{detail}")


class ConcurrentRunConflict(TrendIntelError):
    """A run for the same path is already in flight and the policy is reject."""

    code = "concurrent_run_conflict"

    def __init__(self, path_id: str, run_id: str = ""):
        self.path_id = path_id
        self.run_id = run_id
        super().__init__(f"Pipeline already running for path '{path_id}' ({run_id})")


class MixedDataSourceError(TrendIntelError):
    """Real and fallback scores were combined into one result."""

    code = "mixed_data_source"

    def __init__(self, sources: List[str]):
        self.sources = sorted(set(sources))
        super().__init__(f"Refusing to mix data sources: {', '.join(self.sources)}")


class TaxonomyError(TrendIntelError):
    """The seeded niche taxonomy violates its tree invariants."""

    code = "invalid_taxonomy"


class PipelineCancelled(TrendIntelError):
    """The caller cancelled the run between stages."""

    code = "cancelled"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Pipeline cancelled before stage '{stage}'")
