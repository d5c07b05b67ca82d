"""
Muscle recovery model.

Converts a muscle group's stimulus history into a 0-100% recovery score:

    window = base_recovery_hours(muscle) * intensity * experience_multiplier
    recovery = min(100, hours_since_last_stimulus / window * 100)

Only the most recent stimulus matters.  A zero window (zero intensity) is
treated as fully recovered, and a stimulus dated in the future counts as
0% rather than a negative score.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from .catalog import ExerciseCatalog, is_compound_exercise, muscle_groups_for_exercise
from .config import (
    COMPOUND_INTENSITY_BONUS,
    HISTORY_RETENTION_DAYS,
    HISTORY_RETENTION_RECORDS,
    INTENSITY_LOAD_REFERENCE_KG,
    INTENSITY_LOAD_WEIGHT,
    INTENSITY_VOLUME_REFERENCE,
    INTENSITY_VOLUME_WEIGHT,
    RECOVERY_EXPERIENCE_MULTIPLIERS,
    RECOVERY_READY_THRESHOLD,
)
from .gateways import StimulusHistoryStore
from .models import (
    ACCESSORY_MUSCLE_GROUPS,
    MAIN_MUSCLE_GROUPS,
    CompletedExercise,
    ExperienceLevel,
    MuscleGroup,
    MuscleRecoveryData,
    StimulusRecord,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SCHEDULE_LOOKBACK_DAYS = 7
SCHEDULE_MIN_RECOVERY = 80.0


def workout_intensity(exercise: CompletedExercise, compound: bool) -> float:
    """
    Stimulus intensity of one completed exercise, in [0, 1].

    intensity = min(1, clamp(0.6 * volume_score + 0.4 * load_score, 0, 1) * bonus)

    volume_score = min(1, sets * avg_reps / 60), load_score = min(1, max_kg / 100),
    and bonus is 1.2 for compound movements.
    """
    if not exercise.sets:
        return 0.0
    volume_score = min(1.0, len(exercise.sets) * exercise.average_reps / INTENSITY_VOLUME_REFERENCE)
    load_score = min(1.0, exercise.max_weight_kg / INTENSITY_LOAD_REFERENCE_KG)
    raw = INTENSITY_VOLUME_WEIGHT * volume_score + INTENSITY_LOAD_WEIGHT * load_score
    raw = max(0.0, min(1.0, raw))
    bonus = COMPOUND_INTENSITY_BONUS if compound else 1.0
    return min(1.0, raw * bonus)


class RecoveryEstimator:
    """
    Per-muscle recovery scores backed by an injected stimulus store.

    Args:
        store: Stimulus history repository
        catalog: Used by record_workout() to map exercises to muscles
        clock: Returns "now"; inject a fixed clock in tests
        experience: When given, scales recovery windows (beginner 1.3x,
            advanced 0.8x)
        overrides: Manual per-muscle recovery percentages, clamped to [0, 100]
    """

    def __init__(
        self,
        store: StimulusHistoryStore,
        catalog: ExerciseCatalog | None = None,
        clock: Clock = datetime.now,
        experience: ExperienceLevel | None = None,
        overrides: dict[MuscleGroup, float] | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.experience = experience
        self.overrides: dict[MuscleGroup, float] = dict(overrides or {})

    # ------------------------------------------------------------------
    # Core calculation
    # ------------------------------------------------------------------

    def _experience_multiplier(self) -> float:
        if self.experience is None:
            return 1.0
        return RECOVERY_EXPERIENCE_MULTIPLIERS.get(self.experience.value, 1.0)

    def recovery_of(self, muscle: MuscleGroup, history: Iterable[StimulusRecord]) -> MuscleRecoveryData:
        """
        Compute recovery from an explicit history.

        Args:
            muscle: Muscle the history belongs to
            history: Stimulus records in any order

        Returns:
            MuscleRecoveryData; 100% with a distant-past last_worked_date when
            history is empty
        """
        now = self.clock()
        records = list(history)
        if not records:
            return MuscleRecoveryData(
                muscle=muscle,
                last_worked_date=datetime.min,
                intensity=0.0,
                recovery_percentage=100.0,
                estimated_full_recovery_date=now,
            )

        last = max(records, key=lambda r: r.date)
        window_hours = muscle.base_recovery_hours * last.intensity * self._experience_multiplier()
        full_recovery = last.date + timedelta(hours=window_hours)

        if window_hours <= 0:
            percentage = 100.0
        else:
            hours_elapsed = (now - last.date).total_seconds() / 3600.0
            percentage = max(0.0, min(100.0, hours_elapsed / window_hours * 100.0))

        logger.debug(
            "Recovery %s: window=%.1fh intensity=%.2f -> %.0f%%",
            muscle.value,
            window_hours,
            last.intensity,
            percentage,
        )
        return MuscleRecoveryData(
            muscle=muscle,
            last_worked_date=last.date,
            intensity=last.intensity,
            recovery_percentage=percentage,
            estimated_full_recovery_date=full_recovery,
        )

    def _history(self, muscle: MuscleGroup) -> list[StimulusRecord]:
        cutoff = self.clock() - timedelta(days=HISTORY_RETENTION_DAYS)
        return [r for r in self.store.load(muscle) if r.date >= cutoff]

    def recovery_for(self, muscle: MuscleGroup) -> MuscleRecoveryData:
        """Recovery from the stored history, with any manual override applied."""
        data = self.recovery_of(muscle, self._history(muscle))
        if muscle in self.overrides:
            clamped = max(0.0, min(100.0, self.overrides[muscle]))
            logger.debug("Recovery override %s = %.0f%%", muscle.value, clamped)
            data = MuscleRecoveryData(
                muscle=data.muscle,
                last_worked_date=data.last_worked_date,
                intensity=data.intensity,
                recovery_percentage=clamped,
                estimated_full_recovery_date=data.estimated_full_recovery_date,
            )
        return data

    def recovery_percentage(self, muscle: MuscleGroup) -> float:
        return self.recovery_for(muscle).recovery_percentage

    def all_recovery(self) -> list[MuscleRecoveryData]:
        """Every muscle group, least recovered first."""
        data = [self.recovery_for(m) for m in MuscleGroup]
        return sorted(data, key=lambda d: d.recovery_percentage)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommended_muscle_groups(self, target_count: int = 4) -> list[MuscleGroup]:
        """
        Pick muscles to train next.

        Main muscles at >= 85% come first, then partially ready ones (>= 60%),
        each ordered by priority then recovery; at most max(3, target_count - 1)
        main muscles are taken.  Remaining slots go to fully ready accessory
        muscles, most recovered first.
        """
        data = self.all_recovery()
        main = [d for d in data if d.muscle in MAIN_MUSCLE_GROUPS]
        accessory = [d for d in data if d.muscle in ACCESSORY_MUSCLE_GROUPS]

        def by_priority(d: MuscleRecoveryData) -> tuple[int, float]:
            return (-d.muscle.priority, -d.recovery_percentage)

        ready = sorted((d for d in main if d.is_recommended_for_training), key=by_priority)
        partial = sorted(
            (d for d in main if d.is_partially_ready and not d.is_recommended_for_training),
            key=by_priority,
        )
        selected = (ready + partial)[: max(3, target_count - 1)]

        slots = max(0, target_count - len(selected))
        ready_accessory = sorted(
            (d for d in accessory if d.is_recommended_for_training),
            key=lambda d: -d.recovery_percentage,
        )
        selected += ready_accessory[:slots]

        logger.info(
            "Recommended muscles: %s",
            ", ".join(f"{d.muscle.value} ({d.recovery_percentage:.0f}%)" for d in selected),
        )
        return [d.muscle for d in selected]

    def is_ready_for_training(self, muscle: MuscleGroup) -> bool:
        return self.recovery_percentage(muscle) >= RECOVERY_READY_THRESHOLD

    def muscles_ready_for_training(self) -> list[MuscleGroup]:
        """Main muscle groups at or above 70% recovery."""
        return [m for m in MAIN_MUSCLE_GROUPS if self.is_ready_for_training(m)]

    def recommended_rest_hours(self, muscle: MuscleGroup) -> float:
        """Hours until the muscle reaches 70% recovery (0 if already there)."""
        data = self.recovery_for(muscle)
        if data.recovery_percentage >= RECOVERY_READY_THRESHOLD:
            return 0.0
        window = data.estimated_full_recovery_date - data.last_worked_date
        ready_at = data.last_worked_date + window * (RECOVERY_READY_THRESHOLD / 100.0)
        hours = (ready_at - self.clock()).total_seconds() / 3600.0
        return max(0.0, hours)

    def schedule_optimized_muscle_groups(
        self,
        target_count: int,
        days_per_week: int = 3,
    ) -> list[MuscleGroup]:
        """
        Balance weekly frequency against recovery.

        Each main muscle should be hit once a week (twice when training more
        than three days a week).  Muscles behind that target and at >= 80%
        recovery are ranked by deficit, then recovery, then priority; the
        remaining slots are filled from recommended_muscle_groups().
        """
        target_per_muscle = 1 if days_per_week <= 3 else 2
        cutoff = self.clock() - timedelta(days=SCHEDULE_LOOKBACK_DAYS)

        candidates: list[tuple[int, float, int, MuscleGroup]] = []
        for muscle in MAIN_MUSCLE_GROUPS:
            trained = sum(1 for r in self.store.load(muscle) if r.date >= cutoff)
            deficit = max(0, target_per_muscle - trained)
            recovery = self.recovery_percentage(muscle)
            if deficit > 0 and recovery >= SCHEDULE_MIN_RECOVERY:
                candidates.append((deficit, recovery, muscle.priority, muscle))

        candidates.sort(key=lambda c: (-c[0], -c[1], -c[2]))
        result = [c[3] for c in candidates[:target_count]]

        if len(result) < target_count:
            for m in self.recommended_muscle_groups(target_count):
                if len(result) >= target_count:
                    break
                if m not in result and m.is_main:
                    result.append(m)

        if not result:
            result = self.recommended_muscle_groups(target_count)
        return result

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_workout(
        self,
        exercises: Iterable[CompletedExercise],
        at: datetime | None = None,
    ) -> list[tuple[MuscleGroup, StimulusRecord]]:
        """
        Append one stimulus per affected muscle for each completed exercise.

        Exercises without sets or unknown to the catalog are skipped.  Each
        touched muscle's history is then pruned to the retention window
        (30 days, at most 50 records).

        Returns:
            The (muscle, record) pairs that were appended
        """
        if self.catalog is None:
            raise ValueError("record_workout requires an exercise catalog")

        when = at or self.clock()
        if when.tzinfo is not None:
            when = when.astimezone().replace(tzinfo=None)
        appended: list[tuple[MuscleGroup, StimulusRecord]] = []
        for exercise in exercises:
            if exercise.exercise_id not in self.catalog:
                logger.warning("Skipping unknown exercise %s", exercise.exercise_id)
                continue
            if not exercise.sets:
                continue
            record = self.catalog.lookup(exercise.exercise_id)
            intensity = workout_intensity(exercise, is_compound_exercise(record))
            for muscle in muscle_groups_for_exercise(record):
                stimulus = StimulusRecord(
                    date=when,
                    intensity=intensity,
                    volume=exercise.volume,
                    exercise_ids=[exercise.exercise_id],
                )
                self.store.append(muscle, stimulus)
                appended.append((muscle, stimulus))

        cutoff = when - timedelta(days=HISTORY_RETENTION_DAYS)
        for muscle in {m for m, _ in appended}:
            self.store.prune(muscle, cutoff, HISTORY_RETENTION_RECORDS)

        logger.info("Recorded %d muscle stimulations", len(appended))
        return appended
