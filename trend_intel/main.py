"""
Trend Intelligence Pipeline - Main Entry Point.
FastAPI server and CLI interface.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, insights, pipeline
from .config import Settings, get_settings
from .database import Database, get_database
from .schemas import PipelineProgress
from .tools import TrendSource, build_default_sources
from .trends.engine import format_brief_for_prompt, generate_trend_brief
from .trends.fetcher import TrendDataFetcher
from .trends.niche_resolver import NicheResolver
from .trends.scheduler import TrendPipelineScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_scheduler(
    db: Database,
    settings: Settings,
    sources: Optional[List[TrendSource]] = None,
) -> TrendPipelineScheduler:
    """Wire resolver, fetcher, engine and signal service around one store."""
    db.create_tables()
    resolver = NicheResolver.from_database(db)
    fetcher = TrendDataFetcher(db, sources=sources, settings=settings)
    return TrendPipelineScheduler(db, fetcher=fetcher, resolver=resolver, settings=settings)


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    sources: Optional[List[TrendSource]] = None,
) -> FastAPI:
    """Build the API app. Arguments override the environment (used by tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or get_settings()
        app_db = db or get_database()
        scheduler = build_scheduler(app_db, app_settings, sources)
        app.state.settings = app_settings
        app.state.db = app_db
        app.state.scheduler = scheduler

        logger.info("Starting Trend Intelligence API...")
        logger.info(scheduler.fetcher.checker.get_status_summary())
        yield
        logger.info("Shutting down Trend Intelligence API")

    app = FastAPI(
        title="Trend Intelligence Pipeline",
        description="Multi-source trend scoring, lifecycle detection and market signals",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router, tags=["health"])
    app.include_router(pipeline.router, prefix="/pipeline", tags=["pipeline"])
    app.include_router(insights.router, tags=["insights"])
    return app


app = create_app()


def _print_progress(progress: PipelineProgress):
    print(f"  [{progress.percent:3d}%] {progress.stage.value:<12} {progress.message}")


# CLI Runner
async def cli_main():
    """Command-line interface for running the pipeline."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Trend Intelligence Pipeline"
    )
    parser.add_argument(
        "--server",
        action="store_true",
        help="Start the FastAPI server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Server port (default: 8000)"
    )
    parser.add_argument(
        "--path",
        default="content_monetization",
        help="Business path id to run (default: content_monetization)"
    )
    parser.add_argument("--niche", default=None, help="Free-form niche / interest")
    parser.add_argument("--sub-sector", default=None, help="Sub-sector id")
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Create tables and seed the niche taxonomy, then exit"
    )
    parser.add_argument(
        "--health",
        action="store_true",
        help="Print pipeline health and exit"
    )
    parser.add_argument(
        "--rescore",
        action="store_true",
        help="Re-score stored data without fetching and print the trend brief"
    )

    args = parser.parse_args()

    if args.server:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        # Blocking; run outside the CLI event loop
        return lambda: uvicorn.run(app, host="0.0.0.0", port=args.port)

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    db = get_database()
    scheduler = build_scheduler(db, settings)

    if args.seed:
        print(f"Taxonomy ready: {len(scheduler.resolver.nodes)} niches in {db.url}")
        return None

    if args.health:
        report = scheduler.check_pipeline_health()
        print("\n" + scheduler.fetcher.checker.get_status_summary())
        print(f"Healthy: {report.healthy}")
        print(f"Data points: {report.data_points_count} ({report.keyword_count} keywords)")
        print(f"Last data: {report.last_data_at or 'never'}")
        for w in report.warnings:
            print(f"  ! {w}")
        for r in report.recommendations:
            print(f"  > {r}")
        return None

    if args.rescore:
        insight = scheduler.rescore_existing_data(args.path, args.niche, args.sub_sector)
        if insight is None:
            print("No trend data to rescore")
        else:
            print(format_brief_for_prompt(generate_trend_brief(insight)))
        return None

    print("\n" + "=" * 60)
    print("TREND INTELLIGENCE PIPELINE")
    print("=" * 60 + "\n")

    result = await scheduler.run_full_pipeline(
        args.path, args.niche, args.sub_sector, observer=_print_progress,
    )

    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    print(f"Status: {result.status.value} ({result.reason or 'ok'})")
    print(f"Niche: {result.niche_id}")
    print(f"Keywords scored: {result.keywords_scored}")
    print(f"Hot keywords: {result.hot_keywords}")
    print(f"Signals: {result.signals_created} created, {result.signals_updated} updated")
    print(f"Runtime: {result.duration_ms / 1000:.2f}s")

    if result.warnings:
        print(f"\nWarnings: {len(result.warnings)}")
        for warning in result.warnings[:5]:
            print(f"   - {warning}")
    if result.errors:
        print(f"\nErrors: {len(result.errors)}")
        for error in result.errors[:5]:
            print(f"   - {error}")

    print("=" * 60 + "\n")

    if result.status.value == "success":
        insight = scheduler.engine.compute_trend_insight(args.path, args.niche, args.sub_sector)
        if insight is not None:
            print(f"Top keywords: {', '.join(insight.top_keywords)}")
    return None


def main():
    """Entry point for CLI."""
    serve = asyncio.run(cli_main())
    if serve is not None:
        serve()


if __name__ == "__main__":
    main()
