"""
Data source availability checker — checks configuration, not connectivity.

Provides a quick status of which trend APIs are configured.
Doesn't make network calls (health checks must stay cheap).
"""

import logging
from typing import List, Optional

from ..config import Settings, get_settings
from ..schemas import DataSourceStatus
from .base import TrendSource

logger = logging.getLogger(__name__)


class APIChecker:
    """Quick data source configuration checker (no network calls)."""

    def __init__(self, sources: List[TrendSource], settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.sources = sources

    def get_data_source_status(self) -> List[DataSourceStatus]:
        statuses = []
        for source in self.sources:
            available = source.is_configured()
            statuses.append(DataSourceStatus(
                name=source.name,
                label=source.label,
                key=source.env_key,
                available=available,
                reason="" if available else f"Add {source.env_key} to .env. {source.setup_hint}".strip(),
            ))
        return statuses

    def has_any_data_source(self) -> bool:
        return any(s.is_configured() for s in self.sources)

    def get_available_source_count(self) -> int:
        return sum(1 for s in self.sources if s.is_configured())

    def get_critical_issues(self) -> List[str]:
        """List of problems preventing real data collection."""
        issues = []
        if not self.has_any_data_source():
            keys = ", ".join(s.env_key for s in self.sources)
            issues.append(f"No trend data source configured (set at least one of: {keys})")
        elif self.get_available_source_count() < 2:
            issues.append("Only one data source configured; cross-platform signals will be thin")
        return issues

    def get_status_summary(self) -> str:
        """Human-readable status summary."""
        statuses = self.get_data_source_status()
        configured = sum(1 for s in statuses if s.available)
        lines = [f"Data sources: {configured}/{len(statuses)} configured"]
        for s in statuses:
            mark = "ok " if s.available else "-- "
            lines.append(f"  {mark}{s.label}" + ("" if s.available else f" ({s.reason})"))
        for issue in self.get_critical_issues():
            lines.append(f"  ! {issue}")
        return "\n".join(lines)
