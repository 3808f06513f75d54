"""
SQL store — niche taxonomy, trend data points, scores and market signals.

Tables:
  - niche_taxonomy: Seeded niche tree (read-only at runtime)
  - trend_data_points: Raw per-source observations, unique per (niche, keyword, platform, date)
  - trend_scores: Latest opportunity score per (niche, keyword), replaced every run
  - market_signals: Top keywords per path, unique per (path, keyword)
  - trend_refresh_log: One row per source per fetch

Every public method runs in a single transaction: it either fully applies or
raises PersistenceError after a rollback.
"""

import json
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import (
    create_engine, func, Column, String, Integer, Float, Text, Date, DateTime,
    UniqueConstraint,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from .config import get_settings
from .errors import PersistenceError
from .schemas import (
    DataSource, LifecycleStage, MarketSignal, NicheTaxonomyNode, RiskLevel,
    Subscores, TrendDataPoint, TrendDirection, TrendScore, utcnow,
)
from .trends.merge import merge_data_points, should_replace

logger = logging.getLogger(__name__)

Base = declarative_base()

_METRIC_FIELDS = (
    "search_volume", "growth_rate_7d", "growth_rate_30d", "growth_rate_90d",
    "cpc", "affiliate_density", "ads_density", "content_density",
    "creator_density", "engagement_velocity",
)


# ── Models ───────────────────────────────────────────────────────────────────

class NicheTaxonomyModel(Base):
    """Seeded niche tree node."""
    __tablename__ = "niche_taxonomy"

    id = Column(String(120), primary_key=True)
    parent_id = Column(String(120), index=True)
    label = Column(String(200), nullable=False)
    path_id = Column(String(60), nullable=False, index=True)
    depth = Column(Integer, default=0)
    aliases = Column(Text, default="[]")  # JSON array
    track_keywords = Column(Text, default="[]")  # JSON array
    position = Column(Integer, default=0)


class TrendDataPointModel(Base):
    """Raw observation of one keyword on one platform for one day."""
    __tablename__ = "trend_data_points"
    __table_args__ = (
        UniqueConstraint("niche_id", "keyword", "platform", "date", name="uq_trend_point_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    niche_id = Column(String(120), nullable=False, index=True)
    keyword = Column(String(300), nullable=False)
    platform = Column(String(30), nullable=False)
    date = Column(Date, nullable=False, index=True)

    search_volume = Column(Float)
    growth_rate_7d = Column(Float)
    growth_rate_30d = Column(Float)
    growth_rate_90d = Column(Float)
    cpc = Column(Float)
    affiliate_density = Column(Float)
    ads_density = Column(Float)
    content_density = Column(Float)
    creator_density = Column(Float)
    engagement_velocity = Column(Float)

    source = Column(String(50), default="")
    confidence = Column(Float, default=0.5)
    fetched_at = Column(DateTime, default=utcnow)
    raw_data = Column(Text, default="{}")  # JSON object


class TrendScoreModel(Base):
    """Latest computed score per keyword within a niche."""
    __tablename__ = "trend_scores"
    __table_args__ = (
        UniqueConstraint("niche_id", "keyword", name="uq_trend_score_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    niche_id = Column(String(120), nullable=False, index=True)
    keyword = Column(String(300), nullable=False)
    score = Column(Float, default=0.0)
    momentum = Column(Float, default=0.0)
    monetization = Column(Float, default=0.0)
    supply_gap = Column(Float, default=0.0)
    competition = Column(Float, default=0.0)
    lifecycle = Column(String(30), nullable=False)
    risk = Column(String(10), default="low")
    risk_factors = Column(Text, default="[]")  # JSON array
    search_volume = Column(Float, default=0.0)
    growth_rate_7d = Column(Float)
    confidence = Column(Float, default=0.5)
    is_breakout = Column(Integer, default=0)
    sustainability_days = Column(Integer, default=30)
    data_points_count = Column(Integer, default=0)
    platforms = Column(Text, default="[]")  # JSON array
    last_updated = Column(DateTime, default=utcnow)


class MarketSignalModel(Base):
    """Persisted market signal for a path."""
    __tablename__ = "market_signals"
    __table_args__ = (
        UniqueConstraint("path_id", "keyword", name="uq_market_signal_key"),
    )

    id = Column(String(50), primary_key=True)
    path_id = Column(String(60), nullable=False, index=True)
    niche_id = Column(String(120), nullable=False)
    keyword = Column(String(300), nullable=False)
    trend_score = Column(Float, default=0.0)
    trend_direction = Column(String(10), default="stable")
    source = Column(String(50), default="trend_intelligence_engine")
    confidence = Column(Float, default=0.5)
    is_hot = Column(Integer, default=0)
    suggestion = Column(Text, default="")
    signal_metadata = Column("metadata", Text, default="{}")  # JSON object
    last_updated = Column(DateTime, default=utcnow, index=True)


class RefreshLogModel(Base):
    """One fetch attempt of one source for one niche."""
    __tablename__ = "trend_refresh_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    niche_id = Column(String(120), nullable=False, index=True)
    source = Column(String(50), nullable=False)
    status = Column(String(20), default="success")  # success | partial | failed
    keywords_count = Column(Integer, default=0)
    points_count = Column(Integer, default=0)
    error = Column(Text)
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, default=utcnow)


# ── Row conversion ───────────────────────────────────────────────────────────

def _point_from_row(row: TrendDataPointModel) -> TrendDataPoint:
    return TrendDataPoint(
        niche_id=row.niche_id,
        keyword=row.keyword,
        platform=row.platform,
        date=row.date,
        source=row.source or "",
        confidence=row.confidence if row.confidence is not None else 0.5,
        fetched_at=row.fetched_at,
        raw_data=json.loads(row.raw_data) if row.raw_data else {},
        **{f: getattr(row, f) for f in _METRIC_FIELDS},
    )


def _apply_point(row: TrendDataPointModel, point: TrendDataPoint):
    for f in _METRIC_FIELDS:
        setattr(row, f, getattr(point, f))
    row.source = point.source
    row.confidence = point.confidence
    row.fetched_at = point.fetched_at
    row.raw_data = json.dumps(point.raw_data, default=str)


def _score_from_row(row: TrendScoreModel) -> TrendScore:
    return TrendScore(
        niche_id=row.niche_id,
        keyword=row.keyword,
        score=row.score,
        subscores=Subscores(
            momentum=row.momentum,
            monetization=row.monetization,
            supply_gap=row.supply_gap,
            competition=row.competition,
        ),
        lifecycle=LifecycleStage(row.lifecycle),
        risk=RiskLevel(row.risk or "low"),
        risk_factors=json.loads(row.risk_factors) if row.risk_factors else [],
        search_volume=row.search_volume or 0.0,
        growth_rate_7d=row.growth_rate_7d,
        confidence=row.confidence if row.confidence is not None else 0.5,
        is_breakout=bool(row.is_breakout),
        sustainability_days=row.sustainability_days or 0,
        data_points_count=row.data_points_count or 0,
        platforms=json.loads(row.platforms) if row.platforms else [],
        data_source=DataSource.REAL,
        last_updated=row.last_updated,
    )


def _signal_from_row(row: MarketSignalModel) -> MarketSignal:
    return MarketSignal(
        id=row.id,
        path_id=row.path_id,
        niche_id=row.niche_id,
        keyword=row.keyword,
        trend_score=row.trend_score,
        trend_direction=TrendDirection(row.trend_direction or "stable"),
        source=row.source or "",
        confidence=row.confidence if row.confidence is not None else 0.5,
        is_hot=bool(row.is_hot),
        suggestion=row.suggestion or "",
        metadata=json.loads(row.signal_metadata) if row.signal_metadata else {},
        last_updated=row.last_updated,
    )


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager — owns the engine and hands out transactional sessions."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}

        self.url = url
        self.engine = create_engine(url, echo=False, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self, operation: str = "session") -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise PersistenceError(operation, e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Taxonomy ──────────────────────────────────────────────────────

    def seed_taxonomy(self, nodes: Iterable[NicheTaxonomyNode]) -> int:
        """Insert or refresh taxonomy nodes. Returns node count."""
        count = 0
        with self.get_session("seed_taxonomy") as session:
            for position, node in enumerate(nodes):
                session.merge(NicheTaxonomyModel(
                    id=node.id,
                    parent_id=node.parent_id,
                    label=node.label,
                    path_id=node.path_id,
                    depth=node.depth,
                    aliases=json.dumps(sorted(node.aliases)),
                    track_keywords=json.dumps(node.track_keywords),
                    position=position,
                ))
                count += 1
        logger.info(f"Seeded {count} taxonomy nodes")
        return count

    def get_taxonomy_nodes(self, path_id: Optional[str] = None) -> List[NicheTaxonomyNode]:
        with self.get_session("get_taxonomy_nodes") as session:
            q = session.query(NicheTaxonomyModel)
            if path_id:
                q = q.filter(NicheTaxonomyModel.path_id == path_id)
            rows = q.order_by(NicheTaxonomyModel.position).all()
            return [
                NicheTaxonomyNode(
                    id=r.id,
                    parent_id=r.parent_id,
                    label=r.label,
                    path_id=r.path_id,
                    depth=r.depth,
                    aliases=set(json.loads(r.aliases or "[]")),
                    track_keywords=json.loads(r.track_keywords or "[]"),
                )
                for r in rows
            ]

    # ── Trend data points ─────────────────────────────────────────────

    def upsert_data_points(self, points: Iterable[TrendDataPoint]) -> int:
        """Merge points into the store by natural key. Returns rows inserted or replaced."""
        batch = merge_data_points([], points)
        if not batch:
            return 0

        written = 0
        with self.get_session("upsert_data_points") as session:
            for point in batch:
                row = session.query(TrendDataPointModel).filter_by(
                    niche_id=point.niche_id,
                    keyword=point.keyword,
                    platform=point.platform,
                    date=point.date,
                ).first()
                if row is None:
                    row = TrendDataPointModel(
                        niche_id=point.niche_id,
                        keyword=point.keyword,
                        platform=point.platform,
                        date=point.date,
                    )
                    _apply_point(row, point)
                    session.add(row)
                    written += 1
                elif should_replace(_point_from_row(row), point):
                    _apply_point(row, point)
                    written += 1
        return written

    def get_data_points(
        self,
        niche_ids: Iterable[str],
        since: Optional[date] = None,
        keyword: Optional[str] = None,
    ) -> List[TrendDataPoint]:
        """Points for the given niches, oldest first."""
        ids = list(niche_ids)
        if not ids:
            return []
        with self.get_session("get_data_points") as session:
            q = session.query(TrendDataPointModel).filter(TrendDataPointModel.niche_id.in_(ids))
            if since is not None:
                q = q.filter(TrendDataPointModel.date >= since)
            if keyword:
                q = q.filter(TrendDataPointModel.keyword == keyword.lower())
            rows = q.order_by(
                TrendDataPointModel.date,
                TrendDataPointModel.keyword,
                TrendDataPointModel.platform,
            ).all()
            return [_point_from_row(r) for r in rows]

    def get_data_stats(self, niche_id: Optional[str] = None) -> Dict[str, Any]:
        """Point count, distinct keyword count and newest fetch time."""
        with self.get_session("get_data_stats") as session:
            q = session.query(
                func.count(TrendDataPointModel.id),
                func.count(func.distinct(TrendDataPointModel.keyword)),
                func.max(TrendDataPointModel.fetched_at),
            )
            if niche_id:
                q = q.filter(TrendDataPointModel.niche_id == niche_id)
            points, keywords, newest = q.one()
            return {
                "points_count": points or 0,
                "keyword_count": keywords or 0,
                "last_fetched_at": newest,
            }

    def purge_data_points_older_than(self, cutoff: date) -> int:
        """Delete points dated before `cutoff`. Returns rows deleted."""
        with self.get_session("purge_data_points") as session:
            deleted = session.query(TrendDataPointModel).filter(
                TrendDataPointModel.date < cutoff
            ).delete(synchronize_session=False)
        if deleted:
            logger.info(f"Purged {deleted} data points dated before {cutoff}")
        return deleted

    # ── Trend scores ──────────────────────────────────────────────────

    def replace_trend_scores(self, niche_id: str, scores: Iterable[TrendScore]) -> int:
        """Overwrite the niche's score set atomically. Returns scores written."""
        written = 0
        with self.get_session("replace_trend_scores") as session:
            session.query(TrendScoreModel).filter(
                TrendScoreModel.niche_id == niche_id
            ).delete(synchronize_session=False)
            for s in scores:
                if s.niche_id != niche_id:
                    raise ValueError(f"Score for niche '{s.niche_id}' passed to '{niche_id}'")
                if s.data_source != DataSource.REAL:
                    raise ValueError(f"Refusing to persist {s.data_source.value} score '{s.keyword}'")
                session.add(TrendScoreModel(
                    niche_id=s.niche_id,
                    keyword=s.keyword,
                    score=s.score,
                    momentum=s.subscores.momentum,
                    monetization=s.subscores.monetization,
                    supply_gap=s.subscores.supply_gap,
                    competition=s.subscores.competition,
                    lifecycle=s.lifecycle.value,
                    risk=s.risk.value,
                    risk_factors=json.dumps(s.risk_factors),
                    search_volume=s.search_volume,
                    growth_rate_7d=s.growth_rate_7d,
                    confidence=s.confidence,
                    is_breakout=1 if s.is_breakout else 0,
                    sustainability_days=s.sustainability_days,
                    data_points_count=s.data_points_count,
                    platforms=json.dumps(s.platforms),
                    last_updated=s.last_updated,
                ))
                written += 1
        return written

    def list_scored_niches(self) -> List[str]:
        with self.get_session("list_scored_niches") as session:
            rows = session.query(TrendScoreModel.niche_id).distinct().all()
            return sorted(r[0] for r in rows)

    def get_trend_scores(self, niche_id: str) -> List[TrendScore]:
        with self.get_session("get_trend_scores") as session:
            rows = session.query(TrendScoreModel).filter(
                TrendScoreModel.niche_id == niche_id
            ).order_by(TrendScoreModel.score.desc(), TrendScoreModel.keyword).all()
            return [_score_from_row(r) for r in rows]

    # ── Market signals ────────────────────────────────────────────────

    def upsert_market_signals(self, signals: Iterable[MarketSignal]) -> Tuple[int, int, List[MarketSignal]]:
        """Upsert on (path_id, keyword). Returns (created, updated, stored signals)."""
        created = updated = 0
        stored: List[MarketSignal] = []
        with self.get_session("upsert_market_signals") as session:
            for s in signals:
                row = session.query(MarketSignalModel).filter_by(
                    path_id=s.path_id, keyword=s.keyword,
                ).first()
                if row is None:
                    row = MarketSignalModel(id=s.id, path_id=s.path_id, keyword=s.keyword)
                    session.add(row)
                    created += 1
                else:
                    updated += 1
                row.niche_id = s.niche_id
                row.trend_score = s.trend_score
                row.trend_direction = s.trend_direction.value
                row.source = s.source
                row.confidence = s.confidence
                row.is_hot = 1 if s.is_hot else 0
                row.suggestion = s.suggestion
                row.signal_metadata = json.dumps(s.metadata, default=str)
                row.last_updated = s.last_updated
                stored.append(s.model_copy(update={"id": row.id}))
        return created, updated, stored

    def get_market_signals(
        self,
        path_id: Optional[str] = None,
        hot_only: bool = False,
        limit: int = 100,
    ) -> List[MarketSignal]:
        with self.get_session("get_market_signals") as session:
            q = session.query(MarketSignalModel)
            if path_id:
                q = q.filter(MarketSignalModel.path_id == path_id)
            if hot_only:
                q = q.filter(MarketSignalModel.is_hot == 1)
            rows = q.order_by(
                MarketSignalModel.trend_score.desc(), MarketSignalModel.keyword,
            ).limit(limit).all()
            return [_signal_from_row(r) for r in rows]

    def list_signal_paths(self) -> List[str]:
        with self.get_session("list_signal_paths") as session:
            rows = session.query(MarketSignalModel.path_id).distinct().all()
            return sorted(r[0] for r in rows)

    def delete_stale_signals(self, path_id: str, cutoff: datetime, prune_orphans: bool = True) -> int:
        """Delete one path's signals older than `cutoff` (and orphans) atomically."""
        deleted = 0
        with self.get_session("delete_stale_signals") as session:
            rows = session.query(MarketSignalModel).filter(
                MarketSignalModel.path_id == path_id
            ).all()
            for row in rows:
                stale = row.last_updated is None or row.last_updated < cutoff
                orphan = False
                if not stale and prune_orphans:
                    orphan = session.query(TrendScoreModel.id).filter_by(
                        niche_id=row.niche_id, keyword=row.keyword,
                    ).first() is None
                if stale or orphan:
                    session.delete(row)
                    deleted += 1
        return deleted

    # ── Refresh log ───────────────────────────────────────────────────

    def record_refresh(
        self,
        niche_id: str,
        source: str,
        status: str,
        keywords_count: int = 0,
        points_count: int = 0,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ):
        with self.get_session("record_refresh") as session:
            session.add(RefreshLogModel(
                niche_id=niche_id,
                source=source,
                status=status,
                keywords_count=keywords_count,
                points_count=points_count,
                error=error,
                started_at=started_at or utcnow(),
                completed_at=utcnow(),
            ))

    def get_last_refresh(self, niche_id: Optional[str] = None) -> Optional[datetime]:
        """Completion time of the newest successful or partial fetch."""
        with self.get_session("get_last_refresh") as session:
            q = session.query(func.max(RefreshLogModel.completed_at)).filter(
                RefreshLogModel.status.in_(("success", "partial"))
            )
            if niche_id:
                q = q.filter(RefreshLogModel.niche_id == niche_id)
            return q.scalar()


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
