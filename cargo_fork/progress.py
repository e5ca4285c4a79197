"""Stage tracking for a fork run."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger("cargo_fork.progress")


@dataclass
class StageProgress:
    stage: str
    status: str = "running"  # "running" | "completed" | "failed"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None


class ProgressTracker:
    """Track the stages of the acquire -> patch -> update -> diff sequence."""

    def __init__(self) -> None:
        self.stages: list[StageProgress] = []

    @contextmanager
    def stage(self, stage: str) -> Iterator[StageProgress]:
        """Run a block as *stage*; a raised exception fails the stage and propagates."""
        p = StageProgress(stage=stage, start_time=time.monotonic())
        self.stages.append(p)
        log.debug("progress.stage", stage=stage, status=p.status)
        try:
            yield p
        except Exception as exc:
            self._finish(p, "failed", error=str(exc))
            raise
        self._finish(p, "completed")

    def _finish(self, p: StageProgress, status: str, error: str | None = None) -> None:
        p.status = status
        p.end_time = time.monotonic()
        p.error = error
        log.debug("progress.stage", stage=p.stage, status=status, duration=p.duration)

    @property
    def failed_stage(self) -> str | None:
        for p in self.stages:
            if p.status == "failed":
                return p.stage
        return None

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.stages)
        return {
            "stages": [
                {
                    "stage": p.stage,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.stages
            ],
            "total_duration": round(total_duration, 2),
        }
