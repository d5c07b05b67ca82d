"""Profile commands: profile (show or update the stored planning profile)."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import ExperienceLevel, FitnessGoal
from ...io.serializers import user_profile_to_dict
from .. import views
from ..app import HistoryPathOption, JsonOption, app, get_profile, get_store, parse_choice


@app.command()
def profile(
    goal: Annotated[Optional[str], typer.Option("--goal", "-g", help="Fitness goal")] = None,
    experience: Annotated[Optional[str], typer.Option("--experience", "-x", help="Training experience")] = None,
    equipment: Annotated[
        Optional[list[str]], typer.Option("--equipment", "-E", help="Owned equipment (repeatable, replaces list)")
    ] = None,
    avoid: Annotated[
        Optional[list[str]], typer.Option("--avoid", help="Exercise ID never to plan (repeatable, replaces list)")
    ] = None,
    warmup: Annotated[Optional[bool], typer.Option("--warmup/--no-warmup", help="Session warm-up")] = None,
    cooldown: Annotated[Optional[bool], typer.Option("--cooldown/--no-cooldown", help="Session cool-down")] = None,
    warmup_sets: Annotated[
        Optional[bool], typer.Option("--warmup-sets/--no-warmup-sets", help="Warm-up sets on compound lifts")
    ] = None,
    history_path: HistoryPathOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show the planning profile, or update it when options are given.
    """
    store = get_store(history_path)
    current = get_profile(store)
    changed = False

    if goal is not None:
        current.goal = parse_choice(FitnessGoal, goal, "goal")
        changed = True
    if experience is not None:
        current.experience = parse_choice(ExperienceLevel, experience, "experience")
        changed = True
    if equipment:
        current.equipment = list(equipment)
        changed = True
    if avoid:
        current.avoided_exercise_ids = list(avoid)
        changed = True
    if warmup is not None:
        current.preferences.warmup_enabled = warmup
        changed = True
    if cooldown is not None:
        current.preferences.cooldown_enabled = cooldown
        changed = True
    if warmup_sets is not None:
        current.warmup_sets_enabled = warmup_sets
        changed = True

    if changed:
        store.save_profile(current)

    if json_output:
        print(json.dumps(user_profile_to_dict(current), indent=2))
        return

    if changed:
        views.print_success(f"Profile saved to {store.profile_path}")
    views.print_profile(current)
