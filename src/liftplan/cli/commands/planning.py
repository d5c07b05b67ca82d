"""Planning commands: plan and recovery."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import (
    ExperienceLevel,
    FitnessGoal,
    MuscleGroup,
    SessionPhase,
    WorkoutDuration,
)
from ...io.serializers import ValidationError, recovery_to_dict, workout_plan_to_dict
from .. import views
from ..app import (
    HistoryPathOption,
    JsonOption,
    app,
    build_assembler,
    build_recovery,
    get_catalog,
    get_profile,
    get_store,
    parse_choice,
)

DEFAULT_MUSCLE_COUNT = 4


def _parse_muscles(names: list[str]) -> list[MuscleGroup]:
    muscles: list[MuscleGroup] = []
    for name in names:
        try:
            muscles.append(MuscleGroup.parse(name))
        except ValueError as e:
            views.print_error(str(e))
            raise typer.Exit(1)
    return muscles


@app.command()
def plan(
    duration: Annotated[int, typer.Option("--duration", "-d", help="Session length in minutes")] = 60,
    goal: Annotated[Optional[str], typer.Option("--goal", "-g", help="Fitness goal (default: profile)")] = None,
    experience: Annotated[
        Optional[str], typer.Option("--experience", "-x", help="beginner, intermediate or advanced")
    ] = None,
    muscle: Annotated[
        Optional[list[str]], typer.Option("--muscle", "-m", help="Muscle group (repeatable); recommended if omitted")
    ] = None,
    equipment: Annotated[
        Optional[list[str]], typer.Option("--equipment", "-E", help="Owned equipment (repeatable)")
    ] = None,
    count: Annotated[Optional[int], typer.Option("--count", "-n", help="Exercise budget (default: fit duration)")] = None,
    phase: Annotated[Optional[str], typer.Option("--phase", help="strength, volume or conditioning")] = None,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Shuffle candidates reproducibly")] = None,
    history_path: HistoryPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Generate a time-boxed workout for the given muscles.
    """
    if count is not None and count < 0:
        views.print_error("--count must be non-negative")
        raise typer.Exit(1)

    store = get_store(history_path)
    catalog = get_catalog()
    profile = get_profile(store)

    if goal is not None:
        profile.goal = parse_choice(FitnessGoal, goal, "goal")
    if experience is not None:
        profile.experience = parse_choice(ExperienceLevel, experience, "experience")
    if equipment:
        profile.equipment = list(equipment)
    session_phase = parse_choice(SessionPhase, phase, "phase") if phase is not None else None
    bucket = WorkoutDuration.from_minutes(duration)

    try:
        assembler = build_assembler(store, catalog, profile, seed=seed)
        muscles = _parse_muscles(muscle) if muscle else assembler.recovery.recommended_muscle_groups(
            DEFAULT_MUSCLE_COUNT
        )
        feedback = store.load_feedback()
        workout = assembler.assemble_for_profile(
            profile,
            muscles,
            bucket,
            total_exercises=count,
            phase=session_phase,
            last_feedback=feedback[-1] if feedback else None,
        )
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_output:
        data = workout_plan_to_dict(workout)
        data["duration"] = bucket.value
        data["muscles"] = [m.value for m in muscles]
        print(json.dumps(data, indent=2))
        return

    views.console.print(
        f"[bold]{bucket.value}[/bold] {profile.goal.value} session for "
        + ", ".join(m.display_name for m in muscles)
    )
    views.print_plan(workout)
    if workout.exercise_count < workout.target_exercise_count:
        views.print_warning(
            f"Only {workout.exercise_count} of {workout.target_exercise_count} exercises fit; "
            "try a longer session or more equipment"
        )


@app.command()
def recovery(
    history_path: HistoryPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show recovery status for every muscle group.
    """
    store = get_store(history_path)
    catalog = get_catalog()
    estimator = build_recovery(store, catalog, get_profile(store))

    try:
        data = estimator.all_recovery()
        recommended = estimator.recommended_muscle_groups(DEFAULT_MUSCLE_COUNT)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_output:
        print(json.dumps({
            "muscles": [recovery_to_dict(d) for d in data],
            "recommended": [m.value for m in recommended],
        }, indent=2))
        return

    views.print_recovery(data)
    if recommended:
        views.print_info("Recommended next: " + ", ".join(m.display_name for m in recommended))
