"""
Exercise catalog and exercise classification helpers.

The catalog is a read-only collection of ExerciseRecord rows loaded from
YAML (the bundled sample in src/liftplan/data/exercises.yaml, optionally
extended by ~/.liftplan/exercises.yaml).  Classification helpers derive
what the planner needs from the free-text catalog fields: which muscles an
exercise trains, its movement type, tracking type and equipment archetype.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import COMPOUND_KEYWORDS, TIMING_COMPOUND_KEYWORDS
from .engine.config_loader import get_bundled_data_path, get_user_data_path
from .models import (
    EquipmentArchetype,
    ExerciseRecord,
    MovementType,
    MuscleGroup,
    TrackingType,
)

logger = logging.getLogger(__name__)

CATALOG_FILENAME = "exercises.yaml"

_REQUIRED_FIELDS: frozenset[str] = frozenset({"id", "name"})

# Ordered keyword table matched against target and synergist text.
# Adductor/abductor must be checked before the generic "ab" entries.
_MUSCLE_KEYWORDS: tuple[tuple[str, MuscleGroup], ...] = (
    ("abductor", MuscleGroup.ABDUCTORS),
    ("adductor", MuscleGroup.ADDUCTORS),
    ("pectoral", MuscleGroup.CHEST),
    ("latissimus", MuscleGroup.BACK),
    ("lats", MuscleGroup.BACK),
    ("upper back", MuscleGroup.BACK),
    ("rhomboid", MuscleGroup.BACK),
    ("delt", MuscleGroup.SHOULDERS),
    ("biceps", MuscleGroup.BICEPS),
    ("triceps", MuscleGroup.TRICEPS),
    ("quad", MuscleGroup.QUADRICEPS),
    ("hamstring", MuscleGroup.HAMSTRINGS),
    ("glute", MuscleGroup.GLUTES),
    ("rectus abdominis", MuscleGroup.ABS),
    ("abs", MuscleGroup.ABS),
    ("abdominal", MuscleGroup.ABS),
    ("oblique", MuscleGroup.ABS),
    ("calves", MuscleGroup.CALVES),
    ("calf", MuscleGroup.CALVES),
    ("gastrocnemius", MuscleGroup.CALVES),
    ("soleus", MuscleGroup.CALVES),
    ("trap", MuscleGroup.TRAPEZIUS),
    ("forearm", MuscleGroup.FOREARMS),
    ("brachioradialis", MuscleGroup.FOREARMS),
    ("erector spinae", MuscleGroup.LOWER_BACK),
    ("spine", MuscleGroup.LOWER_BACK),
    ("lower back", MuscleGroup.LOWER_BACK),
    ("levator scapulae", MuscleGroup.NECK),
    ("neck", MuscleGroup.NECK),
)

# (keyword, archetype); first match wins
_EQUIPMENT_KEYWORDS: tuple[tuple[str, EquipmentArchetype], ...] = (
    ("barbell", EquipmentArchetype.BARBELL),
    ("smith", EquipmentArchetype.BARBELL),
    ("leverage", EquipmentArchetype.BARBELL),
    ("ez bar", EquipmentArchetype.BARBELL),
    ("dumbbell", EquipmentArchetype.DUMBBELL),
    ("kettlebell", EquipmentArchetype.KETTLEBELL),
    ("cable", EquipmentArchetype.CABLE),
    ("pulldown", EquipmentArchetype.CABLE),
    ("machine", EquipmentArchetype.MACHINE),
    ("leg press", EquipmentArchetype.MACHINE),
    ("hammerstrength", EquipmentArchetype.MACHINE),
    ("band", EquipmentArchetype.BAND),
    ("sled", EquipmentArchetype.SLED),
    ("body weight", EquipmentArchetype.BODYWEIGHT),
    ("bodyweight", EquipmentArchetype.BODYWEIGHT),
    ("weighted", EquipmentArchetype.BODYWEIGHT),
    ("suspension", EquipmentArchetype.BODYWEIGHT),
    ("rings", EquipmentArchetype.BODYWEIGHT),
    ("medicine", EquipmentArchetype.SPECIALTY),
    ("battle rope", EquipmentArchetype.SPECIALTY),
    ("bosu", EquipmentArchetype.SPECIALTY),
)


# =============================================================================
# CLASSIFICATION
# =============================================================================


def _muscles_in_text(text: str) -> list[MuscleGroup]:
    text = text.lower()
    found: list[MuscleGroup] = []
    for keyword, muscle in _MUSCLE_KEYWORDS:
        if keyword in text and muscle not in found:
            found.append(muscle)
    return found


def _muscles_for_body_part(record: ExerciseRecord) -> list[MuscleGroup]:
    """Generic body-part mapping used when target and synergist say nothing."""
    body_part = record.body_part.lower()
    name = record.name.lower()
    if body_part == "chest":
        return [MuscleGroup.CHEST]
    if body_part == "back":
        return [MuscleGroup.BACK]
    if body_part == "shoulders":
        return [MuscleGroup.SHOULDERS]
    if body_part == "upper arms":
        arms = []
        if "curl" in name or "chin" in name:
            arms.append(MuscleGroup.BICEPS)
        if any(k in name for k in ("extension", "press", "dip")):
            arms.append(MuscleGroup.TRICEPS)
        return arms or [MuscleGroup.BICEPS, MuscleGroup.TRICEPS]
    if body_part in ("forearms", "lower arms"):
        return [MuscleGroup.FOREARMS]
    if body_part in ("thighs", "upper legs"):
        legs = []
        if any(k in name for k in ("squat", "extension", "lunge")):
            legs.append(MuscleGroup.QUADRICEPS)
        if "curl" in name or "deadlift" in name:
            legs.append(MuscleGroup.HAMSTRINGS)
        return legs or [MuscleGroup.QUADRICEPS, MuscleGroup.HAMSTRINGS]
    if body_part == "hips":
        if "adduction" in name:
            return [MuscleGroup.ADDUCTORS]
        if "abduction" in name:
            return [MuscleGroup.ABDUCTORS]
        return [MuscleGroup.GLUTES]
    if body_part in ("calves", "lower legs"):
        return [MuscleGroup.CALVES]
    if body_part == "waist":
        return [MuscleGroup.ABS]
    if body_part == "neck":
        return [MuscleGroup.NECK]
    return []


def primary_muscles(record: ExerciseRecord) -> list[MuscleGroup]:
    """Muscles named by the target field, or the body-part mapping when it names none."""
    return _muscles_in_text(record.target) or _muscles_for_body_part(record)


def muscle_groups_for_exercise(record: ExerciseRecord) -> list[MuscleGroup]:
    """
    Every muscle group an exercise stimulates, primary first.

    Target muscles come first, then synergists.  When neither field maps to
    a known muscle, the generic body-part mapping is used, and Abs is the
    last resort so a completed exercise always leaves a trace.
    """
    muscles = _muscles_in_text(record.target)
    for m in _muscles_in_text(record.synergist):
        if m not in muscles:
            muscles.append(m)
    if not muscles:
        muscles = _muscles_for_body_part(record)
    return muscles or [MuscleGroup.ABS]


def is_compound_exercise(
    record: ExerciseRecord,
    keywords: tuple[str, ...] = COMPOUND_KEYWORDS,
) -> bool:
    """Keyword-based compound classifier on the exercise name."""
    if record.movement_type is not None:
        return record.movement_type == MovementType.COMPOUND
    name = record.name.lower()
    return any(k in name for k in keywords)


def classify_movement(record: ExerciseRecord) -> MovementType:
    """Movement type from the explicit field, else inferred from name and body part."""
    if record.movement_type is not None:
        return record.movement_type
    body_part = record.body_part.lower()
    if body_part == "cardio" or "cardiovascular" in record.target.lower():
        return MovementType.CARDIO
    if is_compound_exercise(record, TIMING_COMPOUND_KEYWORDS):
        return MovementType.COMPOUND
    if "compound" in record.exercise_type.lower():
        return MovementType.COMPOUND
    if body_part == "waist":
        return MovementType.CORE
    return MovementType.ISOLATION


def equipment_archetype(equipment: str) -> EquipmentArchetype:
    """Map a free-text equipment name to its setup-cost archetype."""
    text = equipment.lower()
    for keyword, archetype in _EQUIPMENT_KEYWORDS:
        if keyword in text:
            return archetype
    return EquipmentArchetype.BODYWEIGHT


def tracking_type_for(record: ExerciseRecord) -> TrackingType:
    if record.tracking_type is not None:
        return record.tracking_type
    if equipment_archetype(record.equipment) == EquipmentArchetype.BODYWEIGHT:
        return TrackingType.REPS_ONLY
    return TrackingType.REPS_WEIGHT


def can_perform(record: ExerciseRecord, equipment: list[str]) -> bool:
    """
    Check whether the user's equipment covers an exercise.

    Bodyweight exercises are always available; otherwise the exercise's
    equipment archetype must match the archetype of an owned item.
    """
    needed = equipment_archetype(record.equipment)
    if needed == EquipmentArchetype.BODYWEIGHT:
        return True
    owned = {equipment_archetype(e) for e in equipment}
    return needed in owned


# =============================================================================
# CATALOG
# =============================================================================


class ExerciseCatalog:
    """
    In-memory exercise catalog.

    candidates_for() indexes exercises by their primary muscles and returns
    them in catalog order, so lookups are deterministic.
    """

    def __init__(self, records: list[ExerciseRecord]):
        self._records: dict[str, ExerciseRecord] = {}
        for r in records:
            if r.exercise_id in self._records:
                raise ValueError(f"Duplicate exercise id: {r.exercise_id}")
            self._records[r.exercise_id] = r
        self._by_muscle: dict[MuscleGroup, list[ExerciseRecord]] = {}
        for r in self._records.values():
            for m in primary_muscles(r):
                self._by_muscle.setdefault(m, []).append(r)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._records

    def all(self) -> list[ExerciseRecord]:
        return list(self._records.values())

    def lookup(self, exercise_id: str) -> ExerciseRecord:
        """
        Return the record for an exercise id.

        Raises:
            KeyError: If the id is not in the catalog
        """
        try:
            return self._records[exercise_id]
        except KeyError:
            raise KeyError(f"Unknown exercise id: {exercise_id}") from None

    def candidates_for(self, muscle: MuscleGroup) -> list[ExerciseRecord]:
        return list(self._by_muscle.get(muscle, []))


def _record_from_dict(d: dict) -> ExerciseRecord:
    """Convert a raw YAML mapping to an ExerciseRecord, raising ValueError on bad input."""
    missing = _REQUIRED_FIELDS - set(d)
    if missing:
        raise ValueError(f"Exercise entry missing fields: {sorted(missing)}")
    movement = d.get("movement_type")
    tracking = d.get("tracking_type")
    return ExerciseRecord(
        exercise_id=str(d["id"]),
        name=str(d["name"]),
        body_part=str(d.get("body_part", "")),
        target=str(d.get("target", "")),
        synergist=str(d.get("synergist", "") or ""),
        equipment=str(d.get("equipment", "body weight")),
        exercise_type=str(d.get("type", "")),
        movement_type=MovementType(movement) if movement else None,
        tracking_type=TrackingType(tracking) if tracking else None,
    )


def _read_entries(path: Path) -> list[dict]:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    entries = data.get("exercises", []) if isinstance(data, dict) else []
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'exercises' must be a list")
    return entries


def load_catalog(path: Path | None = None, include_user: bool = True) -> ExerciseCatalog:
    """
    Load an exercise catalog from YAML.

    Args:
        path: Catalog file; defaults to the bundled sample catalog
        include_user: Merge ~/.liftplan/exercises.yaml (by id) when loading
            the bundled catalog

    Returns:
        ExerciseCatalog

    Raises:
        FileNotFoundError: If no catalog file is available
        ValueError: If an entry is malformed
    """
    source = path if path is not None else get_bundled_data_path(CATALOG_FILENAME)
    if source is None or not Path(source).exists():
        raise FileNotFoundError(f"Exercise catalog not found: {source or CATALOG_FILENAME}")

    by_id: dict[str, dict] = {}
    for entry in _read_entries(Path(source)):
        by_id[str(entry.get("id"))] = entry

    if path is None and include_user:
        user = get_user_data_path(CATALOG_FILENAME)
        if user is not None:
            try:
                for entry in _read_entries(user):
                    key = str(entry.get("id"))
                    by_id[key] = {**by_id.get(key, {}), **entry}
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning("Ignoring user catalog %s: %s", user, e)

    records = [_record_from_dict(d) for d in by_id.values()]
    logger.debug("Loaded %d exercises from %s", len(records), source)
    return ExerciseCatalog(records)
