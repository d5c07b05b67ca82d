"""
Narrow read interfaces the planning engine consumes, plus in-memory
implementations.

The engine never reaches for global state: a RecoveryEstimator gets a
StimulusHistoryStore, a SetSchemePlanner gets a PerformanceFeedbackGateway,
and the CLI wires in the file-backed variants from liftplan.io.
"""

from __future__ import annotations

import statistics
from datetime import datetime
from typing import Protocol

from .config import (
    DELOAD_COMPLETION_THRESHOLD,
    DELOAD_RPE_THRESHOLD,
    FEEDBACK_WINDOW,
    TREND_RECENT_COUNT,
    TREND_RPE_DELTA,
)
from .models import (
    MuscleGroup,
    PerformanceMetrics,
    PerformanceTrend,
    StimulusRecord,
    UserProfile,
    WorkoutSessionFeedback,
)

MAX_FEEDBACK_HISTORY = 50
PLATEAU_WINDOW = 5


class StimulusHistoryStore(Protocol):
    def load(self, muscle: MuscleGroup) -> list[StimulusRecord]: ...

    def append(self, muscle: MuscleGroup, record: StimulusRecord) -> None: ...

    def prune(self, muscle: MuscleGroup, since: datetime, max_records: int) -> None: ...


class PerformanceFeedbackGateway(Protocol):
    def metrics(self) -> PerformanceMetrics: ...


class UserProfileGateway(Protocol):
    def profile(self) -> UserProfile: ...


class InMemoryStimulusStore:
    """Dict-backed StimulusHistoryStore."""

    def __init__(self, records: dict[MuscleGroup, list[StimulusRecord]] | None = None):
        self._records: dict[MuscleGroup, list[StimulusRecord]] = {
            m: list(rs) for m, rs in (records or {}).items()
        }

    def load(self, muscle: MuscleGroup) -> list[StimulusRecord]:
        return list(self._records.get(muscle, []))

    def append(self, muscle: MuscleGroup, record: StimulusRecord) -> None:
        self._records.setdefault(muscle, []).append(record)

    def prune(self, muscle: MuscleGroup, since: datetime, max_records: int) -> None:
        kept = sorted(
            (r for r in self._records.get(muscle, []) if r.date >= since),
            key=lambda r: r.date,
            reverse=True,
        )[:max_records]
        self._records[muscle] = sorted(kept, key=lambda r: r.date)


class StaticProfileGateway:
    def __init__(self, profile: UserProfile | None = None):
        self._profile = profile or UserProfile()

    def profile(self) -> UserProfile:
        return self._profile


class StaticFeedbackGateway:
    """Always returns the same metrics; handy for pinning a fatigue signal."""

    def __init__(self, metrics: PerformanceMetrics | None = None):
        self._metrics = metrics or PerformanceMetrics.neutral()

    def metrics(self) -> PerformanceMetrics:
        return self._metrics


class FeedbackHistory:
    """
    Rolling workout feedback log that derives auto-regulation metrics.

    Metrics use the last FEEDBACK_WINDOW entries: average RPE, average
    completion rate, an RPE trend comparing the last TREND_RECENT_COUNT
    sessions with the earlier ones, and a plateau risk from RPE variance.
    """

    def __init__(self, entries: list[WorkoutSessionFeedback] | None = None):
        self._entries: list[WorkoutSessionFeedback] = list(entries or [])[-MAX_FEEDBACK_HISTORY:]

    @property
    def entries(self) -> list[WorkoutSessionFeedback]:
        return list(self._entries)

    def submit(self, feedback: WorkoutSessionFeedback) -> None:
        self._entries.append(feedback)
        if len(self._entries) > MAX_FEEDBACK_HISTORY:
            self._entries = self._entries[-MAX_FEEDBACK_HISTORY:]

    def metrics(self) -> PerformanceMetrics:
        if not self._entries:
            return PerformanceMetrics.neutral()

        recent = self._entries[-FEEDBACK_WINDOW:]
        average_rpe = statistics.fmean(f.overall_rpe for f in recent)
        completion = statistics.fmean(f.completion_rate for f in recent)
        trend = performance_trend([f.overall_rpe for f in recent])
        deload = (
            average_rpe > DELOAD_RPE_THRESHOLD
            or completion < DELOAD_COMPLETION_THRESHOLD
            or trend == PerformanceTrend.DECLINING
        )
        return PerformanceMetrics(
            average_rpe=average_rpe,
            completion_rate=completion,
            trend=trend,
            deload_recommended=deload,
            recent_feedback_count=len(recent),
            plateau_risk=plateau_risk([f.overall_rpe for f in recent]),
        )


def performance_trend(rpes: list[float]) -> PerformanceTrend:
    """
    Compare recent RPE with earlier RPE.

    Falling RPE means the same work feels easier (improving); rising RPE
    means it feels harder (declining).
    """
    if len(rpes) < TREND_RECENT_COUNT:
        return PerformanceTrend.STABLE
    recent = rpes[-TREND_RECENT_COUNT:]
    earlier = rpes[: max(1, len(rpes) - TREND_RECENT_COUNT)]
    diff = statistics.fmean(recent) - statistics.fmean(earlier)
    if diff < -TREND_RPE_DELTA:
        return PerformanceTrend.IMPROVING
    if diff > TREND_RPE_DELTA:
        return PerformanceTrend.DECLINING
    return PerformanceTrend.STABLE


def plateau_risk(rpes: list[float]) -> float:
    if len(rpes) < PLATEAU_WINDOW:
        return 0.0
    variance = statistics.variance(rpes[-PLATEAU_WINDOW:])
    return 1.0 - min(variance / 2.0, 1.0)
