"""
JSONL-based storage for muscle stimulus history.

Handles reading, writing, and pruning the stimulus file, plus the
profile.json and feedback.jsonl files kept beside it.
"""

import json
from datetime import datetime
from pathlib import Path

from ..core.engine.config_loader import get_user_config_dir
from ..core.models import MuscleGroup, StimulusRecord, UserProfile, WorkoutSessionFeedback
from .serializers import (
    ValidationError,
    dict_to_feedback,
    dict_to_user_profile,
    feedback_to_dict,
    json_line_to_stimulus,
    stimulus_to_json_line,
    user_profile_to_dict,
)

Entry = tuple[MuscleGroup, StimulusRecord]


class StimulusHistoryFile:
    """
    Stimulus history stored in JSONL format.

    One JSON object per line, each carrying its muscle:

        {"muscle":"chest","date":"2025-03-01T18:00:00","intensity":0.7,...}

    Implements the StimulusHistoryStore protocol, so it can be handed
    straight to a RecoveryEstimator.  A separate profile.json stores the
    user profile and feedback.jsonl the session feedback log.
    """

    def __init__(self, history_path: str | Path):
        """
        Initialize the history store.

        Args:
            history_path: Path to the JSONL history file
        """
        self.history_path = Path(history_path)
        self.profile_path = self.history_path.parent / "profile.json"
        self.feedback_path = self.history_path.parent / "feedback.jsonl"

    def exists(self) -> bool:
        """Check if the history file exists."""
        return self.history_path.exists()

    def init(self) -> None:
        """
        Initialize empty history file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.history_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.history_path.exists():
            self.history_path.touch()

    # ------------------------------------------------------------------
    # Stimulus history
    # ------------------------------------------------------------------

    def load_all(self) -> list[Entry]:
        """
        Load every stimulus entry, sorted by date.

        Returns:
            List of (muscle, record) pairs; empty if the file does not exist

        Raises:
            ValidationError: If a line cannot be parsed
        """
        if not self.history_path.exists():
            return []

        entries: list[Entry] = []
        with open(self.history_path, "r") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json_line_to_stimulus(line))
                except ValidationError as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.history_path}: {e}"
                    ) from e

        entries.sort(key=lambda e: e[1].date)
        return entries

    def load(self, muscle: MuscleGroup) -> list[StimulusRecord]:
        return [record for m, record in self.load_all() if m == muscle]

    def append(self, muscle: MuscleGroup, record: StimulusRecord) -> None:
        """Append one stimulus line, creating the file if needed."""
        self.init()
        with open(self.history_path, "a") as f:
            f.write(stimulus_to_json_line(muscle, record) + "\n")

    def prune(self, muscle: MuscleGroup, since: datetime, max_records: int) -> None:
        """
        Drop a muscle's records older than `since`, then keep its newest max_records.

        Other muscles' records are untouched.
        """
        entries = self.load_all()
        own = [e for e in entries if e[0] == muscle and e[1].date >= since]
        keep = set(map(id, own[-max_records:] if max_records > 0 else []))
        kept = [e for e in entries if e[0] != muscle or id(e) in keep]
        if len(kept) != len(entries):
            self._write_entries(kept)

    def clear(self) -> None:
        """Remove all stimulus entries (keeps the file)."""
        self._write_entries([])

    def _write_entries(self, entries: list[Entry]) -> None:
        """
        Rewrite the history file.

        Args:
            entries: (muscle, record) pairs to write
        """
        self.history_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.history_path, "w") as f:
            for muscle, record in entries:
                f.write(stimulus_to_json_line(muscle, record) + "\n")

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def load_profile(self) -> UserProfile | None:
        """
        Load user profile from profile.json.

        Returns:
            UserProfile if file exists and is valid, None otherwise
        """
        if not self.profile_path.exists():
            return None

        try:
            with open(self.profile_path, "r") as f:
                data = json.load(f)
            return dict_to_user_profile(data)
        except (json.JSONDecodeError, ValidationError):
            return None

    def save_profile(self, profile: UserProfile) -> None:
        """
        Save user profile to profile.json.

        Args:
            profile: User profile to save
        """
        self.profile_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.profile_path, "w") as f:
            json.dump(user_profile_to_dict(profile), f, indent=2)

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def load_feedback(self) -> list[WorkoutSessionFeedback]:
        """
        Load the session feedback log, oldest first.

        Raises:
            ValidationError: If a line cannot be parsed
        """
        if not self.feedback_path.exists():
            return []

        feedback: list[WorkoutSessionFeedback] = []
        with open(self.feedback_path, "r") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    feedback.append(dict_to_feedback(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.feedback_path}: {e}"
                    ) from e
        return feedback

    def append_feedback(self, feedback: WorkoutSessionFeedback) -> None:
        self.feedback_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.feedback_path, "a") as f:
            f.write(json.dumps(feedback_to_dict(feedback), separators=(",", ":")) + "\n")


def get_default_history_path() -> Path:
    """
    Get default history file path.

    Returns:
        Path to ~/.liftplan/stimulus_history.jsonl
    """
    return get_user_config_dir() / "stimulus_history.jsonl"
