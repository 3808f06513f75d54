"""
Trend intelligence layer.

Pipeline (TrendPipelineScheduler):
  Resolve:  path + interest → niche (NicheResolver over the taxonomy tree)
  Fetch:    configured sources → merged TrendDataPoints (TrendDataFetcher)
  Score:    data points → TrendScores with lifecycle + risk (TrendIntelligenceEngine)
  Signal:   top scores → MarketSignals per path (MarketSignalService)
  Clean:    stale points and signals removed

Modules:
  - taxonomy.py: Niche tree definition + path mapping tables
  - niche_resolver.py: Interest → niche resolution
  - fetcher.py: Concurrent multi-source fetch + merge
  - merge.py: Natural-key merge rule for data points
  - scoring.py: Subscores, opportunity score, risk
  - lifecycle.py: Ordered lifecycle decision chain
  - engine.py: Per-niche scoring run + insight aggregation
  - fallback.py: Demo insights for unconfigured deployments
  - market_signals.py: Signal generation + stale cleanup
  - run_registry.py: In-flight run tracking per path
  - scheduler.py: Stage machine orchestrating one full run
"""
