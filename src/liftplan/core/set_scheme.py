"""
Set/rep/rest prescription planner.

Templates keyed by (goal, experience) are loaded from
data/set_scheme_templates.yaml at import time.  If any of the six template
goals lacks one of the three experience levels, or a range is malformed,
a TemplateConfigError is raised: the planner cannot run without a complete
table.

User overrides: place a set_scheme_templates.yaml in ~/.liftplan/; it is
deep-merged over the bundled file.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from .catalog import is_compound_exercise
from .config import (
    DELOAD_SET_MULTIPLIER,
    HIGH_RPE_SET_MULTIPLIER,
    HIGH_RPE_THRESHOLD,
    LOW_RPE_SET_MULTIPLIER,
    LOW_RPE_THRESHOLD,
)
from .engine.config_loader import load_data_config
from .gateways import PerformanceFeedbackGateway
from .models import (
    TEMPLATE_GOALS,
    ExerciseRecord,
    ExperienceLevel,
    FitnessGoal,
    MuscleRole,
    PerformanceMetrics,
    PerformanceTrend,
    RepRange,
    SetScheme,
    SetSchemeSuggestion,
)
from .rep_range import RepRangeResult

logger = logging.getLogger(__name__)

TEMPLATES_FILENAME = "set_scheme_templates.yaml"

_REQUIRED_RANGES = ("compound_sets", "accessory_sets", "reps", "rest_seconds")
_OPTIONAL_RANGES = ("load_percent", "rpe")


class TemplateConfigError(RuntimeError):
    """Raised when the set-scheme template table is incomplete or malformed."""


@dataclass(frozen=True)
class SetSchemeTemplate:
    compound_sets: RepRange
    accessory_sets: RepRange
    reps: RepRange
    rest_seconds: RepRange
    load_percent: RepRange | None = None
    rpe: RepRange | None = None

    def sets_for(self, role: MuscleRole) -> RepRange:
        return self.compound_sets if role == MuscleRole.PRIMARY else self.accessory_sets


TemplateTable = dict[FitnessGoal, dict[ExperienceLevel, SetSchemeTemplate]]


# =============================================================================
# TEMPLATE LOADING
# =============================================================================


def _parse_range(value: Any, where: str, minimum: int = 0) -> RepRange:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise TemplateConfigError(f"{where}: expected [low, high], got {value!r}")
    try:
        low, high = int(value[0]), int(value[1])
    except (TypeError, ValueError) as e:
        raise TemplateConfigError(f"{where}: non-integer bound in {value!r}") from e
    if low < minimum or high < low:
        raise TemplateConfigError(f"{where}: invalid range {low}-{high}")
    return RepRange(low, high)


def parse_templates(raw: dict[str, Any]) -> TemplateTable:
    """
    Validate a raw template mapping.

    Raises:
        TemplateConfigError: On a missing goal/experience combination or a
            malformed range
    """
    table: TemplateTable = {}
    for goal in TEMPLATE_GOALS:
        by_level = raw.get(goal.value)
        if not isinstance(by_level, dict):
            raise TemplateConfigError(f"Set-scheme templates missing goal '{goal.value}'")
        table[goal] = {}
        for level in ExperienceLevel:
            entry = by_level.get(level.value)
            where = f"{goal.value}.{level.value}"
            if not isinstance(entry, dict):
                raise TemplateConfigError(f"Set-scheme templates missing '{where}'")
            missing = [k for k in _REQUIRED_RANGES if k not in entry]
            if missing:
                raise TemplateConfigError(f"{where}: missing {missing}")
            optional = {
                k: _parse_range(entry[k], f"{where}.{k}") if entry.get(k) is not None else None
                for k in _OPTIONAL_RANGES
            }
            table[goal][level] = SetSchemeTemplate(
                compound_sets=_parse_range(entry["compound_sets"], f"{where}.compound_sets", minimum=1),
                accessory_sets=_parse_range(entry["accessory_sets"], f"{where}.accessory_sets", minimum=1),
                reps=_parse_range(entry["reps"], f"{where}.reps", minimum=1),
                rest_seconds=_parse_range(entry["rest_seconds"], f"{where}.rest_seconds"),
                load_percent=optional["load_percent"],
                rpe=optional["rpe"],
            )
    return table


def load_set_scheme_templates(include_user: bool = True) -> TemplateTable:
    return parse_templates(load_data_config(TEMPLATES_FILENAME, include_user=include_user))


SET_SCHEME_TEMPLATES: TemplateTable = load_set_scheme_templates()


# =============================================================================
# ADJUSTMENTS
# =============================================================================


def round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def fatigue_multiplier(metrics: PerformanceMetrics) -> float:
    """0.6 on deload, 0.85 when RPE > 8.5, 1.1 when RPE < 6 and improving, else 1.0."""
    if metrics.deload_recommended:
        return DELOAD_SET_MULTIPLIER
    if metrics.average_rpe > HIGH_RPE_THRESHOLD:
        return HIGH_RPE_SET_MULTIPLIER
    if metrics.average_rpe < LOW_RPE_THRESHOLD and metrics.trend == PerformanceTrend.IMPROVING:
        return LOW_RPE_SET_MULTIPLIER
    return 1.0


def apply_fatigue(sets: int, metrics: PerformanceMetrics) -> int:
    """Scale a set count by the fatigue multiplier, rounded half up, floored at 1."""
    return max(1, round_half_up(sets * fatigue_multiplier(metrics)))


def _within(shifted: RepRange, bounds: RepRange) -> RepRange:
    low = max(shifted.low, bounds.low)
    high = min(shifted.high, bounds.high)
    return RepRange(low, high) if low <= high else bounds


def adjust_rep_range(reps: RepRange, goal: FitnessGoal) -> RepRange:
    """
    Strength goals narrow and lower the window; conditioning goals raise it.

    The shifted window is intersected with the template range, so any
    target picked from it stays inside the template.
    """
    family = goal.family
    if family == "strength":
        lower = max(1, reps.low - 2)
        return _within(RepRange(lower, max(lower, reps.low + 2)), reps)
    if family == "conditioning":
        return _within(RepRange(reps.low + 2, reps.high + 4), reps)
    return reps


def default_reps(reps: RepRange, goal: FitnessGoal) -> int:
    family = goal.family
    if family == "strength":
        return reps.clamp(reps.low + 1)
    if family == "conditioning":
        return reps.clamp(reps.high - 1)
    return reps.midpoint


def adjust_rest(rest: RepRange, goal: FitnessGoal, compound: bool) -> int:
    """Strength goals rest longest on compounds; conditioning goals rest least."""
    family = goal.family
    if family == "strength":
        return rest.high if compound else rest.midpoint
    if family == "conditioning":
        return rest.low
    return rest.midpoint


# =============================================================================
# PLANNER
# =============================================================================


class SetSchemePlanner:
    """
    Builds a SetScheme for one exercise slot.

    Args:
        feedback: Source of the fatigue signal; neutral metrics when None
        templates: Template table; defaults to the one loaded at import
    """

    def __init__(
        self,
        feedback: PerformanceFeedbackGateway | None = None,
        templates: TemplateTable | None = None,
    ):
        self.feedback = feedback
        self.templates = templates if templates is not None else SET_SCHEME_TEMPLATES

    def template_for(self, goal: FitnessGoal, experience: ExperienceLevel) -> SetSchemeTemplate:
        return self.templates[goal.normalized][experience]

    def current_metrics(self) -> PerformanceMetrics:
        if self.feedback is None:
            return PerformanceMetrics.neutral()
        return self.feedback.metrics()

    def scheme(
        self,
        exercise: ExerciseRecord,
        goal: FitnessGoal,
        experience: ExperienceLevel,
        role: MuscleRole,
        suggestion: SetSchemeSuggestion | None = None,
        metrics: PerformanceMetrics | None = None,
        dynamic: RepRangeResult | None = None,
    ) -> SetScheme:
        """
        Produce a sets/reps/rest prescription.

        Sets start from the suggestion (or the midpoint of the role's range),
        are clamped into the range, scaled by the fatigue signal, and clamped
        again so the result always stays inside the template.  Reps and rest
        follow the goal family adjustments.

        A dynamic rep-range result (session phase, recovery, feedback) replaces
        the midpoint as the default set count and narrows the rep window; the
        window falls back to the template reps when the two do not overlap.

        Returns:
            SetScheme; override_reason lists "sets_adjusted" / "reps_adjusted"
            when a suggestion had to be clamped
        """
        template = self.template_for(goal, experience)
        metrics = metrics if metrics is not None else self.current_metrics()
        reasons: list[str] = []

        set_range = template.sets_for(role)
        requested_sets = dynamic.set_count if dynamic is not None else set_range.midpoint
        if suggestion is not None and suggestion.sets is not None:
            requested_sets = suggestion.sets
        sets = set_range.clamp(requested_sets)
        if suggestion is not None and suggestion.sets is not None and sets != suggestion.sets:
            reasons.append("sets_adjusted")
        sets = set_range.clamp(apply_fatigue(sets, metrics))

        rep_range = adjust_rep_range(template.reps, goal)
        if dynamic is not None:
            rep_range = _within(dynamic.rep_range, rep_range)
        target_reps = default_reps(rep_range, goal)
        if suggestion is not None and suggestion.reps is not None:
            target_reps = rep_range.clamp(suggestion.reps)
            if target_reps != suggestion.reps:
                reasons.append("reps_adjusted")

        rest = adjust_rest(template.rest_seconds, goal, is_compound_exercise(exercise))

        scheme = SetScheme(
            sets=sets,
            rep_range=rep_range,
            target_reps=target_reps,
            rest_seconds=rest,
            load_percentage=template.load_percent,
            target_rpe=template.rpe,
            override_reason=",".join(reasons) if reasons else None,
        )
        if scheme.override_reason:
            logger.debug("Scheme for %s clamped: %s", exercise.exercise_id, scheme.override_reason)
        return scheme
