"""Session commands: log-workout."""

import json
from datetime import datetime
from typing import Annotated, Optional

import typer

from ...core.models import CompletedExercise, DifficultyRating, WorkoutSessionFeedback
from ...io.serializers import ValidationError, parse_sets_string, validate_datetime
from .. import views
from ..app import HistoryPathOption, JsonOption, app, build_recovery, get_catalog, get_profile, get_store, parse_choice


def _parse_exercise_arg(raw: str) -> CompletedExercise:
    """Parse 'exercise_id=8x60,8x60,6x65' into a CompletedExercise."""
    exercise_id, sep, sets = raw.partition("=")
    if not sep or not exercise_id.strip():
        raise ValidationError(f"Invalid exercise entry {raw!r}. Expected ID=SETS, e.g. push_up=15,12,10")
    return CompletedExercise(exercise_id=exercise_id.strip(), sets=parse_sets_string(sets))


@app.command("log-workout")
def log_workout(
    exercise: Annotated[
        list[str],
        typer.Option("--exercise", "-e", help="ID=SETS, e.g. barbell_bench_press=8x60,8x60 (repeatable)"),
    ],
    rpe: Annotated[Optional[float], typer.Option("--rpe", help="Overall session RPE (1-10)")] = None,
    completion: Annotated[float, typer.Option("--completion", help="Share of planned work completed (0-1)")] = 1.0,
    difficulty: Annotated[
        Optional[str], typer.Option("--difficulty", help="too_easy, just_right, challenging or too_hard")
    ] = None,
    date: Annotated[Optional[str], typer.Option("--date", help="ISO timestamp (default: now)")] = None,
    workout_id: Annotated[Optional[str], typer.Option("--workout-id", help="Feedback identifier")] = None,
    history_path: HistoryPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Record a completed workout as muscle stimulus (and optional feedback).
    """
    store = get_store(history_path)
    catalog = get_catalog()

    try:
        completed = [_parse_exercise_arg(raw) for raw in exercise]
        when = validate_datetime(date) if date else datetime.now()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    unknown = [c.exercise_id for c in completed if c.exercise_id not in catalog]
    if unknown:
        views.print_error(f"Unknown exercise(s): {', '.join(unknown)}")
        raise typer.Exit(1)

    feedback = None
    if rpe is not None:
        rating = parse_choice(DifficultyRating, difficulty, "difficulty") if difficulty else DifficultyRating.JUST_RIGHT
        try:
            feedback = WorkoutSessionFeedback(
                workout_id=workout_id or when.strftime("%Y%m%d%H%M%S"),
                overall_rpe=rpe,
                completion_rate=completion,
                difficulty=rating,
                date=when,
            )
        except ValueError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    estimator = build_recovery(store, catalog, get_profile(store))
    try:
        appended = estimator.record_workout(completed, at=when)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    if feedback is not None:
        store.append_feedback(feedback)

    muscles = sorted({m.value for m, _ in appended})
    if json_output:
        print(json.dumps({
            "recorded": len(appended),
            "muscles": muscles,
            "feedback": feedback is not None,
        }, indent=2))
        return

    views.print_success(f"Recorded {len(completed)} exercise(s) for {', '.join(muscles) or 'no muscles'}")
    if feedback is not None:
        views.print_info(f"Feedback saved (RPE {feedback.overall_rpe:g}, {feedback.difficulty.value})")
