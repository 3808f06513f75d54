"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from trend_intel.config import Settings
from trend_intel.trends.market_signals import MarketSignalService
from trend_intel.trends.scheduler import TrendPipelineScheduler


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_scheduler(request: Request) -> TrendPipelineScheduler:
    return request.app.state.scheduler


def get_signal_service(request: Request) -> MarketSignalService:
    return request.app.state.scheduler.signals


# Type aliases for cleaner route signatures
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Scheduler = Annotated[TrendPipelineScheduler, Depends(get_scheduler)]
Signals = Annotated[MarketSignalService, Depends(get_signal_service)]
