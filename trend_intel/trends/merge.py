"""
Merge rule for trend data points sharing a natural key.

Higher confidence wins wholesale; at equal confidence the most recently
fetched record wins; a full tie keeps the incoming record, so replaying the
same batch is a no-op. Nothing is ever deleted by a merge.
"""

from typing import Dict, Iterable, List, Optional

from trend_intel.schemas import TrendDataPoint


def should_replace(existing: Optional[TrendDataPoint], incoming: TrendDataPoint) -> bool:
    """True when `incoming` should overwrite `existing` for the same key."""
    if existing is None:
        return True
    if incoming.confidence != existing.confidence:
        return incoming.confidence > existing.confidence
    return incoming.fetched_at >= existing.fetched_at


def merge_data_points(
    existing: Iterable[TrendDataPoint],
    incoming: Iterable[TrendDataPoint],
) -> List[TrendDataPoint]:
    """Merge two collections of points, deduplicated by natural key.

    Output keeps first-seen key order, existing keys first.
    """
    merged: Dict[tuple, TrendDataPoint] = {}
    for point in existing:
        current = merged.get(point.natural_key)
        if should_replace(current, point):
            merged[point.natural_key] = point
    for point in incoming:
        current = merged.get(point.natural_key)
        if should_replace(current, point):
            merged[point.natural_key] = point
    return list(merged.values())
