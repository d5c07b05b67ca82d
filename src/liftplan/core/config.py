"""
Configuration constants for the workout generation engine.

All tunable thresholds, multipliers and retention limits live here.  The
large lookup tables of the time-cost model and the set-scheme templates are
kept in YAML (src/liftplan/data/) and loaded through
core/engine/config_loader.py; the Python defaults below are used whenever
a YAML section is missing.
"""

from typing import Final

# =============================================================================
# MUSCLE RECOVERY
# =============================================================================

RECOVERY_RECOMMENDED_THRESHOLD: Final[float] = 85.0  # Ready to train again
RECOVERY_PARTIAL_THRESHOLD: Final[float] = 60.0  # Can train with reduced volume
RECOVERY_READY_THRESHOLD: Final[float] = 70.0  # "Ready" for rest-hours and fallback

RECOVERY_EXPERIENCE_MULTIPLIERS: Final[dict[str, float]] = {
    "beginner": 1.3,  # Longer recovery window
    "intermediate": 1.0,
    "advanced": 0.8,
}

HISTORY_RETENTION_DAYS: Final[int] = 30
HISTORY_RETENTION_RECORDS: Final[int] = 50

# Stimulus intensity from a completed exercise
INTENSITY_VOLUME_WEIGHT: Final[float] = 0.6
INTENSITY_LOAD_WEIGHT: Final[float] = 0.4
INTENSITY_VOLUME_REFERENCE: Final[float] = 60.0  # sets * avg reps giving a full volume score
INTENSITY_LOAD_REFERENCE_KG: Final[float] = 100.0  # max weight giving a full load score
COMPOUND_INTENSITY_BONUS: Final[float] = 1.2

# =============================================================================
# EXERCISE ALLOCATION
# =============================================================================

# (lower bound of recovery %, weight); first match wins, scanned top-down
RECOVERY_WEIGHT_STEPS: Final[tuple[tuple[float, float], ...]] = (
    (90.0, 1.0),
    (85.0, 0.9),
    (70.0, 0.6),
    (60.0, 0.4),
    (40.0, 0.2),
    (30.0, 0.1),
)
LOW_RECOVERY_THRESHOLD: Final[float] = 30.0  # Below this: skip or floor
LOW_RECOVERY_FLOOR_WEIGHT: Final[float] = 0.1  # Weight used by the "floor" policy
ALLOCATION_WEIGHT_EPSILON: Final[float] = 1e-9
FALLBACK_MIN_RECOVERY: Final[float] = 70.0  # Non-requested muscles must reach this

# =============================================================================
# SESSION TIME BUDGET
# =============================================================================

OVERRUN_MIN_SECONDS: Final[int] = 45  # Grace band floor
OVERRUN_FRACTION: Final[float] = 0.05  # 5% of available work time
MIN_EXERCISE_SECONDS: Final[int] = 45  # Floor for any single exercise estimate
BODYWEIGHT_TIME_FACTOR: Final[float] = 0.85  # Bodyweight-only sessions move faster
TIME_TRACKED_SET_SECONDS: Final[int] = 60  # Default per-set duration
TIME_TRACKED_ROUND_SECONDS: Final[int] = 180  # Default per-round duration
MIN_TEMPO_FACTOR: Final[float] = 0.5
MIN_REST_FACTOR: Final[float] = 0.2

# =============================================================================
# SET SCHEME / FATIGUE
# =============================================================================

DELOAD_SET_MULTIPLIER: Final[float] = 0.6
HIGH_RPE_THRESHOLD: Final[float] = 8.5
HIGH_RPE_SET_MULTIPLIER: Final[float] = 0.85
LOW_RPE_THRESHOLD: Final[float] = 6.0
LOW_RPE_SET_MULTIPLIER: Final[float] = 1.1

COMPOUND_KEYWORDS: Final[tuple[str, ...]] = (
    "squat",
    "deadlift",
    "press",
    "row",
    "pull",
    "lunge",
    "clean",
    "snatch",
)
# The time model also treats hip thrusts and swings as compound
TIMING_COMPOUND_KEYWORDS: Final[tuple[str, ...]] = COMPOUND_KEYWORDS + ("thrust", "swing")

# =============================================================================
# PERFORMANCE FEEDBACK
# =============================================================================

FEEDBACK_WINDOW: Final[int] = 10  # Sessions averaged for RPE / completion
TREND_RECENT_COUNT: Final[int] = 3  # Recent sessions compared against earlier ones
TREND_RPE_DELTA: Final[float] = 0.5
DELOAD_RPE_THRESHOLD: Final[float] = 8.0
DELOAD_COMPLETION_THRESHOLD: Final[float] = 0.9

# =============================================================================
# REP RANGE CACHE
# =============================================================================

HOT_CACHE_MAX_ENTRIES: Final[int] = 100
HOT_CACHE_TTL_SECONDS: Final[float] = 300.0  # 5 minutes
CONVERSION_CACHE_TTL_SECONDS: Final[float] = 1800.0  # 30 minutes
CONVERSION_CACHE_MAX_ENTRIES: Final[int] = 500
PREFETCH_MAX_WORKERS: Final[int] = 4

# Rough per-entry byte costs reported by the cache metrics
HOT_ENTRY_BYTES: Final[int] = 200
CONVERSION_ENTRY_BYTES: Final[int] = 1000
METRICS_OVERHEAD_BYTES: Final[int] = 500

# =============================================================================
# TIME COST MODEL DEFAULTS (overridden by data/time_cost_model.yaml)
# =============================================================================

DEFAULT_TIME_COST_MODEL: Final[dict] = {
    "session_overhead": {
        "15m": {"warmup": 3, "cooldown": 2},
        "30m": {"warmup": 4, "cooldown": 3},
        "45m": {"warmup": 5, "cooldown": 3},
        "1h": {"warmup": 6, "cooldown": 4},
        "1.5h": {"warmup": 7, "cooldown": 5},
        "2h": {"warmup": 8, "cooldown": 6},
    },
    "buffer_seconds": {"15m": 60, "30m": 60, "45m": 90, "1h": 120, "1.5h": 180, "2h": 240},
    "exercise_caps": {"15m": 4, "30m": 6, "45m": 8, "1h": 10, "1.5h": 12, "2h": 14},
    "minimum_exercises": {"15m": 3, "30m": 4, "45m": 5, "1h": 6, "1.5h": 8, "2h": 8},
    "rep_tempos": {
        "compound": {"1-5": 2.8, "6-8": 3.2, "8-12": 3.0, "12-20": 2.8},
        "isolation": {"6-8": 2.8, "8-12": 3.2, "12-20": 2.5},
    },
    "fallback_tempo": {"compound": 3.0, "isolation": 2.8},
    "rest_intervals": {
        "strength": {"compound": 240, "isolation": 120},
        "powerlifting": {"compound": 270, "isolation": 150},
        "olympic_weightlifting": {"compound": 270, "isolation": 150},
        "hypertrophy": {"compound": 90, "isolation": 60},
        "general": {"compound": 75, "isolation": 60},
        "circuit_training": {"compound": 45, "isolation": 30},
    },
    "fallback_rest": {"compound": 90, "isolation": 60},
    "setup_seconds": {
        "barbell": 35,
        "dumbbell": 15,
        "machine": 12,
        "cable": 12,
        "kettlebell": 18,
        "band": 8,
        "bodyweight": 5,
        "sled": 25,
        "specialty": 20,
        "default": 15,
    },
    "transition_seconds": 15,
    "warmup_set_seconds": 45,
    "density_formats": {
        "straight_sets": {"time_multiplier": 1.0, "rest_compression": 0.0},
        "superset": {"time_multiplier": 0.63, "rest_compression": 0.37},
        "circuit_3": {"time_multiplier": 0.65, "rest_compression": 0.35},
        "circuit_4": {"time_multiplier": 0.70, "rest_compression": 0.30},
        "emom": {"time_multiplier": 0.75, "rest_compression": 0.25},
    },
    "experience_adjustments": {
        "beginner": {"rest_multiplier": 1.25, "setup_multiplier": 1.3, "tempo_factor": 0.8},
        "intermediate": {"rest_multiplier": 1.0, "setup_multiplier": 1.0, "tempo_factor": 0.95},
        "advanced": {"rest_multiplier": 0.85, "setup_multiplier": 0.85, "tempo_factor": 1.0},
    },
    "compound_share": {
        "strength": 0.8,
        "powerlifting": 0.85,
        "olympic_weightlifting": 0.85,
        "hypertrophy": 0.65,
        "general": 0.6,
        "circuit_training": 0.5,
    },
    "default_sets": {
        "strength": 4,
        "powerlifting": 4,
        "olympic_weightlifting": 4,
        "hypertrophy": 4,
        "general": 3,
        "circuit_training": 3,
    },
    "default_reps": {
        "strength": 4,
        "powerlifting": 3,
        "olympic_weightlifting": 3,
        "hypertrophy": 10,
        "general": 10,
        "circuit_training": 12,
    },
}

# =============================================================================
# TIME-TRACKED DEFAULT PRESCRIPTIONS
# =============================================================================

# tracking type -> (sets, seconds per set, rest seconds)
TIME_TRACKED_DEFAULTS: Final[dict[str, tuple[int, int, int]]] = {
    "time_distance": (1, 600, 45),
    "time_only": (3, 45, 30),
    "hold_time": (3, 30, 30),
    "rounds": (3, 180, 45),
}
# Endurance-flavoured goals get longer intervals
TIME_TRACKED_ENDURANCE_SECONDS: Final[dict[str, int]] = {
    "time_distance": 900,
    "time_only": 60,
}
