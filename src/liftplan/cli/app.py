"""Shared Typer app object, shared option types, and component wiring."""

import logging
import random
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer
from rich.logging import RichHandler

from ..core.assembler import WorkoutPlanAssembler
from ..core.catalog import ExerciseCatalog, load_catalog
from ..core.gateways import FeedbackHistory
from ..core.models import UserProfile
from ..core.recovery import RecoveryEstimator
from ..core.set_scheme import SetSchemePlanner
from ..io.history_store import StimulusHistoryFile, get_default_history_path
from ..io.serializers import ValidationError
from . import views

E = TypeVar("E", bound=Enum)

# Shared --history-path option type used across all commands
HistoryPathOption = Annotated[
    Optional[Path],
    typer.Option("--history-path", "-p", help="Stimulus history file (default ~/.liftplan/stimulus_history.jsonl)"),
]

JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]

app = typer.Typer(
    name="liftplan",
    help="Recovery-aware workout generator that fits a session into your time budget.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log planning decisions")] = False,
) -> None:
    """
    liftplan: recovery-aware, time-boxed workout planning.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(show_path=False)],
        )


def get_store(history_path: Path | None) -> StimulusHistoryFile:
    """Get history store from path or default location."""
    if history_path is None:
        history_path = get_default_history_path()
    return StimulusHistoryFile(history_path)


def parse_choice(enum_cls: type[E], value: str, option: str) -> E:
    """Parse an enum option value, exiting with an error message on failure."""
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls(key)
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        views.print_error(f"Invalid {option} '{value}'. Valid: {valid}")
        raise typer.Exit(1)


def get_catalog() -> ExerciseCatalog:
    try:
        return load_catalog()
    except (FileNotFoundError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)


def get_profile(store: StimulusHistoryFile) -> UserProfile:
    """Stored profile, or defaults when none has been saved."""
    profile = store.load_profile()
    return profile if profile is not None else UserProfile()


def get_feedback(store: StimulusHistoryFile) -> FeedbackHistory:
    try:
        return FeedbackHistory(store.load_feedback())
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)


def build_recovery(
    store: StimulusHistoryFile,
    catalog: ExerciseCatalog,
    profile: UserProfile,
) -> RecoveryEstimator:
    return RecoveryEstimator(store, catalog=catalog, experience=profile.experience)


def build_assembler(
    store: StimulusHistoryFile,
    catalog: ExerciseCatalog,
    profile: UserProfile,
    seed: int | None = None,
) -> WorkoutPlanAssembler:
    """Wire the planning components for one CLI invocation."""
    return WorkoutPlanAssembler(
        recovery=build_recovery(store, catalog, profile),
        catalog=catalog,
        set_schemes=SetSchemePlanner(feedback=get_feedback(store)),
        rng=random.Random(seed) if seed is not None else None,
    )
