"""Cache commands: cache-stats."""

import json
from typing import Annotated, Optional

import typer

from ...core.cache import RepRangeCache
from ...core.models import FitnessGoal, SessionPhase
from .. import views
from ..app import JsonOption, app, get_catalog, parse_choice


@app.command("cache-stats")
def cache_stats(
    goal: Annotated[str, typer.Option("--goal", "-g", help="Fitness goal to warm")] = "general",
    phase: Annotated[Optional[str], typer.Option("--phase", help="Session phase (default: aligned with goal)")] = None,
    rounds: Annotated[int, typer.Option("--rounds", "-r", help="Lookup passes after prefetch")] = 1,
    json_output: JsonOption = False,
) -> None:
    """
    Prefetch rep ranges for the catalog, replay lookups, and report cache metrics.
    """
    fitness_goal = parse_choice(FitnessGoal, goal, "goal")
    session_phase = parse_choice(SessionPhase, phase, "phase") if phase else SessionPhase.aligned_with(fitness_goal)
    exercises = get_catalog().all()

    cache = RepRangeCache()
    warmed = cache.prefetch_common_ranges(exercises, session_phase, fitness_goal)
    for _ in range(max(0, rounds)):
        for exercise in exercises:
            cache.get_rep_range(exercise, fitness_goal, session_phase)
    metrics = cache.metrics

    if json_output:
        print(json.dumps({
            "prefetched": warmed,
            "hit_rate": round(metrics.hit_rate, 4),
            "total_requests": metrics.total_requests,
            "memory_estimate": metrics.memory_estimate,
            "hot_cache_size": metrics.hot_cache_size,
            "recompute_count": cache.recompute_count,
            "performing_well": metrics.is_performing_well,
        }, indent=2))
        return

    views.print_info(f"Prefetched {warmed} rep ranges for {len(exercises)} exercises")
    views.print_cache_metrics(metrics, cache.recompute_count)
