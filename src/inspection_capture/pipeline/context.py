"""Per-run state handed explicitly to each pipeline invocation."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Tuple


class PipelineStage(str, Enum):
    ORIENTING = "orienting"
    RESOLVING = "resolving"
    COMPOSITING = "compositing"
    ENCODING = "encoding"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class StageTimeouts:
    """Upper bound, in seconds, for each supervised stage."""

    orienting: float = 3.0
    resolving: float = 8.5
    compositing: float = 10.0
    encoding: float = 10.0

    def for_stage(self, stage: PipelineStage) -> float:
        match stage:
            case PipelineStage.ORIENTING:
                return self.orienting
            case PipelineStage.RESOLVING:
                return self.resolving
            case PipelineStage.COMPOSITING:
                return self.compositing
            case PipelineStage.ENCODING:
                return self.encoding
            case PipelineStage.COMPLETED:
                return 0.0


@dataclass(slots=True)
class StageRecord:
    stage: PipelineStage
    elapsed: float
    degraded: bool
    reason: str = ""


@dataclass(slots=True)
class RunContext:
    """Correlation id, clock and stage trail of one capture run."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    clock: Callable[[], float] = time.monotonic
    started_at: float = -1.0
    stage: PipelineStage = PipelineStage.ORIENTING
    trail: List[StageRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.started_at < 0:
            self.started_at = self.clock()

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def enter(self, stage: PipelineStage) -> float:
        self.stage = stage
        return self.clock()

    def record(self, stage: PipelineStage, since: float, degraded: bool, reason: str = "") -> None:
        self.trail.append(StageRecord(stage, self.clock() - since, degraded, reason))

    def degraded_stages(self) -> Tuple[str, ...]:
        return tuple(f"{r.stage.value}:{r.reason}" for r in self.trail if r.degraded)
