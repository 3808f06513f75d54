"""Pipeline run registry -- tracks in-flight and recent runs per path in-memory.

At most one run per path_id is in flight. A second caller for the same path
either joins the in-flight run or is rejected, depending on the concurrent
run policy. Run ids are timestamp-based (e.g., "20260226_143022_ab12").
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

from ..errors import ConcurrentRunConflict
from ..schemas import PipelineProgress, PipelineResult, PipelineStage

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[PipelineProgress], None]

# Stage → progress percentage on entry
STAGE_PROGRESS: Dict[PipelineStage, int] = {
    PipelineStage.IDLE: 0,
    PipelineStage.FETCHING: 10,
    PipelineStage.SCORING: 50,
    PipelineStage.SIGNALING: 70,
    PipelineStage.CLEANING: 90,
    PipelineStage.DONE: 100,
    PipelineStage.PARTIAL_DONE: 100,
    PipelineStage.FAILED: 100,
}

HISTORY_PER_PATH = 20


def new_run_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:4]}"


class CancellationToken:
    """Cooperative cancellation, checked by the scheduler at stage boundaries."""

    def __init__(self):
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "cancelled"):
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class PipelineRun:
    """State for a single pipeline execution."""
    run_id: str
    path_id: str
    stage: PipelineStage = PipelineStage.IDLE
    progress_pct: int = 0
    message: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    events: List[PipelineProgress] = field(default_factory=list)
    observers: List[ProgressObserver] = field(default_factory=list)
    result: Optional[PipelineResult] = None
    task: Optional[asyncio.Future] = None
    joiners: int = 0

    @property
    def in_flight(self) -> bool:
        return self.completed_at is None

    def emit(self, progress: PipelineProgress):
        """Record the event and forward it to every observer."""
        self.stage = progress.stage
        self.progress_pct = progress.percent
        self.message = progress.message
        self.events.append(progress)
        for observer in list(self.observers):
            try:
                observer(progress)
            except Exception as e:
                logger.warning(f"[{self.run_id}] progress observer failed: {e}")


class RunRegistry:
    """Tracks pipeline runs across callers, keyed by path_id."""

    def __init__(self):
        self._active: Dict[str, PipelineRun] = {}
        self._history: Dict[str, Deque[PipelineRun]] = {}

    def begin(self, path_id: str, observer: Optional[ProgressObserver] = None) -> PipelineRun:
        """Register a new in-flight run for the path.

        Raises:
            ConcurrentRunConflict: a run for the path is already in flight.
        """
        current = self._active.get(path_id)
        if current is not None:
            raise ConcurrentRunConflict(path_id, current.run_id)
        run = PipelineRun(run_id=new_run_id(), path_id=path_id)
        if observer is not None:
            run.observers.append(observer)
        self._active[path_id] = run
        self._history.setdefault(path_id, deque(maxlen=HISTORY_PER_PATH)).append(run)
        return run

    def join(self, path_id: str, observer: Optional[ProgressObserver] = None) -> Optional[PipelineRun]:
        """Attach to the path's in-flight run, if any."""
        run = self._active.get(path_id)
        if run is None:
            return None
        run.joiners += 1
        if observer is not None:
            run.observers.append(observer)
        return run

    def finish(self, run: PipelineRun, result: PipelineResult):
        run.result = result
        run.completed_at = datetime.now(timezone.utc)
        if self._active.get(run.path_id) is run:
            del self._active[run.path_id]

    def get_active(self, path_id: str) -> Optional[PipelineRun]:
        return self._active.get(path_id)

    def is_running(self, path_id: str) -> bool:
        return path_id in self._active

    def get_run(self, run_id: str) -> Optional[PipelineRun]:
        for runs in self._history.values():
            for run in runs:
                if run.run_id == run_id:
                    return run
        return None

    def list_runs(self, path_id: Optional[str] = None, limit: int = 20) -> List[PipelineRun]:
        if path_id is not None:
            runs = list(self._history.get(path_id, ()))
        else:
            runs = [r for rs in self._history.values() for r in rs]
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return runs[:limit]
