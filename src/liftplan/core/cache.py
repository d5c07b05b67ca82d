"""
Two-tier memoization for rep ranges and exercise prescriptions.

Hot tier: computed rep ranges, keyed by everything the pipeline in
rep_range.py reads (100 entries, 5 minute TTL).  Conversion tier: fully
built prescriptions, keyed by exercise id plus a stable hash of the
parameters that produced them (30 minute TTL).

Both tiers check expiry on every read, so a stale entry is never returned
even if nothing has evicted it yet.  Concurrent misses on the same key may
each compute; results are deterministic for a key so the duplicate write is
harmless.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .catalog import classify_movement
from .config import (
    CONVERSION_CACHE_MAX_ENTRIES,
    CONVERSION_CACHE_TTL_SECONDS,
    CONVERSION_ENTRY_BYTES,
    HOT_CACHE_MAX_ENTRIES,
    HOT_CACHE_TTL_SECONDS,
    HOT_ENTRY_BYTES,
    METRICS_OVERHEAD_BYTES,
    PREFETCH_MAX_WORKERS,
)
from .models import (
    DifficultyRating,
    ExerciseRecord,
    FitnessGoal,
    MovementType,
    RecoveryStatus,
    SessionPhase,
    WorkoutSessionFeedback,
)
from .rep_range import RepRangeResult, calculate_rep_range, calculate_set_count

logger = logging.getLogger(__name__)

T = TypeVar("T")

MonotonicClock = Callable[[], float]

_NO_FEEDBACK = "none"
_PERFORMING_WELL_HIT_RATE = 0.85
_PERFORMING_WELL_MAX_BYTES = 50 * 1024 * 1024


def stable_hash(value: Any) -> str:
    """Process-independent short hash of a value's repr (dataclass reprs are deterministic)."""
    return hashlib.sha1(repr(value).encode("utf-8")).hexdigest()[:16]


def feedback_hash(feedback: WorkoutSessionFeedback | None) -> str:
    if feedback is None:
        return _NO_FEEDBACK
    return stable_hash(
        (feedback.workout_id, feedback.overall_rpe, feedback.completion_rate, feedback.difficulty.value)
    )


# =============================================================================
# TTL / LRU STORE
# =============================================================================


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class TTLCache(Generic[T]):
    """
    Thread-safe, size-bounded mapping with per-entry expiry.

    Reads refresh LRU position; inserting past max_entries evicts the least
    recently used entry.
    """

    def __init__(self, max_entries: int, ttl_seconds: float, clock: MonotonicClock = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry[T]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @max_entries.setter
    def max_entries(self, value: int) -> None:
        with self._lock:
            self._max_entries = max(1, value)
            self._evict_overflow()

    def get(self, key: Hashable) -> CacheEntry[T] | None:
        """Return the live entry for key, dropping it if it has expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_valid(self.clock()):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry

    def put(self, key: Hashable, value: T) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, timestamp=self.clock(), ttl=self.ttl_seconds)
            self._entries.move_to_end(key)
            self._evict_overflow()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_overflow(self) -> None:
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# =============================================================================
# KEYS & METRICS
# =============================================================================


@dataclass(frozen=True)
class RepRangeCacheKey:
    """
    Everything the rep-range pipeline depends on.

    difficulty is carried alongside feedback_hash so a miss can be computed
    from the key alone.
    """

    exercise_id: str
    goal: FitnessGoal
    phase: SessionPhase
    movement_type: MovementType
    recovery_status: RecoveryStatus
    feedback_hash: str = _NO_FEEDBACK
    difficulty: DifficultyRating | None = None

    @classmethod
    def build(
        cls,
        exercise: ExerciseRecord,
        goal: FitnessGoal,
        phase: SessionPhase,
        recovery_status: RecoveryStatus = RecoveryStatus.MODERATE,
        feedback: WorkoutSessionFeedback | None = None,
    ) -> RepRangeCacheKey:
        return cls(
            exercise_id=exercise.exercise_id,
            goal=goal,
            phase=phase,
            movement_type=classify_movement(exercise),
            recovery_status=recovery_status,
            feedback_hash=feedback_hash(feedback),
            difficulty=feedback.difficulty if feedback is not None else None,
        )


@dataclass(frozen=True)
class ConversionCacheKey:
    exercise_id: str
    parameters_hash: str
    goal_hash: str


@dataclass(frozen=True)
class CachePerformanceMetrics:
    hit_rate: float
    total_requests: int
    memory_estimate: int  # bytes
    hot_cache_size: int

    @property
    def is_performing_well(self) -> bool:
        return self.hit_rate > _PERFORMING_WELL_HIT_RATE and self.memory_estimate < _PERFORMING_WELL_MAX_BYTES


# =============================================================================
# REP RANGE CACHE
# =============================================================================


class RepRangeCache:
    """
    Memoizes the rep-range pipeline and prescription building.

    A cache hit returns exactly what a fresh computation would: the hot tier
    only stores pure functions of its key, and the conversion tier key covers
    every parameter the caller used to build the prescription.

    Args:
        clock: Monotonic seconds source shared by both tiers
        hot_max_entries: Hot tier capacity
        hot_ttl_seconds: Hot tier entry lifetime
        conversion_ttl_seconds: Conversion tier entry lifetime
    """

    def __init__(
        self,
        clock: MonotonicClock = time.monotonic,
        hot_max_entries: int = HOT_CACHE_MAX_ENTRIES,
        hot_ttl_seconds: float = HOT_CACHE_TTL_SECONDS,
        conversion_ttl_seconds: float = CONVERSION_CACHE_TTL_SECONDS,
        conversion_max_entries: int = CONVERSION_CACHE_MAX_ENTRIES,
    ):
        self.hot: TTLCache[RepRangeResult] = TTLCache(hot_max_entries, hot_ttl_seconds, clock)
        self.conversion: TTLCache[Any] = TTLCache(conversion_max_entries, conversion_ttl_seconds, clock)
        self._lock = threading.Lock()
        self._requests = 0
        self._hits = 0
        self._recomputes = 0

    # ------------------------------------------------------------------
    # Hot tier
    # ------------------------------------------------------------------

    def _record(self, hit: bool) -> None:
        with self._lock:
            self._requests += 1
            if hit:
                self._hits += 1

    def compute(self, key: RepRangeCacheKey) -> RepRangeResult:
        """Run the pipeline for a key, bypassing the cache."""
        with self._lock:
            self._recomputes += 1
        return RepRangeResult(
            rep_range=calculate_rep_range(
                key.goal, key.phase, key.movement_type, key.recovery_status, key.difficulty
            ),
            set_count=calculate_set_count(key.goal, key.phase),
        )

    def get_or_compute(self, key: RepRangeCacheKey) -> RepRangeResult:
        entry = self.hot.get(key)
        if entry is not None:
            self._record(hit=True)
            return entry.value
        self._record(hit=False)
        result = self.compute(key)
        self.hot.put(key, result)
        return result

    def get_rep_range(
        self,
        exercise: ExerciseRecord,
        goal: FitnessGoal,
        phase: SessionPhase,
        recovery_status: RecoveryStatus = RecoveryStatus.MODERATE,
        feedback: WorkoutSessionFeedback | None = None,
    ) -> RepRangeResult:
        return self.get_or_compute(RepRangeCacheKey.build(exercise, goal, phase, recovery_status, feedback))

    # ------------------------------------------------------------------
    # Conversion tier
    # ------------------------------------------------------------------

    def get_prescription(
        self,
        exercise_id: str,
        parameters: Any,
        goal: FitnessGoal,
        compute: Callable[[], T],
    ) -> T:
        """
        Return a cached build result or run compute() and store it.

        parameters must cover every input compute() reads besides the
        exercise and goal; its repr is hashed into the key.  A failure to
        build the key or store the value is logged and the freshly computed
        value returned.
        """
        try:
            key: ConversionCacheKey | None = ConversionCacheKey(
                exercise_id=exercise_id,
                parameters_hash=stable_hash(parameters),
                goal_hash=stable_hash(goal.value),
            )
        except (TypeError, ValueError) as e:
            logger.warning("Prescription cache key failed for %s: %s", exercise_id, e)
            key = None

        if key is not None:
            entry = self.conversion.get(key)
            if entry is not None:
                self._record(hit=True)
                return entry.value
        self._record(hit=False)

        value = compute()
        if key is not None:
            try:
                self.conversion.put(key, value)
            except (TypeError, ValueError) as e:
                logger.warning("Prescription cache store failed for %s: %s", exercise_id, e)
        return value

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def prefetch_common_ranges(
        self,
        exercises: Iterable[ExerciseRecord],
        phase: SessionPhase,
        goal: FitnessGoal,
    ) -> int:
        """
        Warm the hot tier for the current and next phase across all recovery buckets.

        Returns:
            Number of keys warmed
        """
        keys = [
            RepRangeCacheKey.build(exercise, goal, p, status)
            for exercise in exercises
            for p in (phase, phase.next_phase())
            for status in RecoveryStatus
        ]
        if not keys:
            return 0
        with ThreadPoolExecutor(max_workers=PREFETCH_MAX_WORKERS) as pool:
            list(pool.map(self._warm, keys))
        logger.debug("Prefetched %d rep ranges", len(keys))
        return len(keys)

    def _warm(self, key: RepRangeCacheKey) -> None:
        if self.hot.get(key) is None:
            self.hot.put(key, self.compute(key))

    def invalidate_for_feedback(self, feedback: WorkoutSessionFeedback) -> None:
        """New session feedback changes the fatigue signal: drop both tiers."""
        self.hot.clear()
        self.conversion.clear()
        logger.info("Cache invalidated after feedback for workout %s", feedback.workout_id)

    def clear_all(self) -> None:
        self.hot.clear()
        self.conversion.clear()
        with self._lock:
            self._requests = 0
            self._hits = 0
        logger.info("Rep range cache cleared")

    def handle_memory_pressure(self) -> None:
        """Drop the conversion tier and halve hot tier capacity."""
        self.conversion.clear()
        self.hot.max_entries = self.hot.max_entries // 2
        logger.warning("Memory pressure: hot cache capacity now %d", self.hot.max_entries)

    @property
    def recompute_count(self) -> int:
        with self._lock:
            return self._recomputes

    @property
    def metrics(self) -> CachePerformanceMetrics:
        with self._lock:
            requests, hits = self._requests, self._hits
        hot_size = len(self.hot)
        memory = hot_size * HOT_ENTRY_BYTES + len(self.conversion) * CONVERSION_ENTRY_BYTES + METRICS_OVERHEAD_BYTES
        return CachePerformanceMetrics(
            hit_rate=hits / requests if requests else 0.0,
            total_requests=requests,
            memory_estimate=memory,
            hot_cache_size=hot_size,
        )
