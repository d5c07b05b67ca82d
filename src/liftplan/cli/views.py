"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of plans, recovery and cache stats.
"""

from datetime import datetime

from rich.console import Console
from rich.table import Table

from ..core.cache import CachePerformanceMetrics
from ..core.models import (
    MuscleRecoveryData,
    RecoveryStatus,
    UserProfile,
    WorkoutPlan,
)

console = Console()

_STATUS_STYLE = {
    RecoveryStatus.FRESH: "green",
    RecoveryStatus.MODERATE: "yellow",
    RecoveryStatus.FATIGUED: "red",
}


def _format_seconds(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"


def format_plan_table(plan: WorkoutPlan) -> Table:
    """
    Format a workout plan as a Rich table.

    Args:
        plan: Plan to display

    Returns:
        Rich Table object
    """
    table = Table(title="Workout Plan", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Exercise")
    table.add_column("Muscle", style="magenta")
    table.add_column("Type", style="dim")
    table.add_column("Sets", justify="right")
    table.add_column("Reps / Time", justify="right")
    table.add_column("Rest", justify="right")
    table.add_column("Est.", justify="right", style="cyan")

    for i, p in enumerate(plan.exercises, 1):
        if p.tracking_type.is_time_tracked and p.flexible_sets:
            first = p.flexible_sets[0]
            work = f"{first.rounds}x{first.duration_seconds}s" if first.rounds else f"{first.duration_seconds}s"
        else:
            work = str(p.reps)
            if p.scheme is not None:
                work += f" ({p.scheme.rep_range})"
        table.add_row(
            str(i),
            p.exercise.name,
            p.muscle.display_name,
            p.movement_type.value,
            str(p.sets),
            work,
            f"{p.rest_seconds}s",
            _format_seconds(p.estimated_seconds),
        )
    return table


def print_plan(plan: WorkoutPlan) -> None:
    """
    Print a plan with its time breakdown.

    Args:
        plan: Plan to display
    """
    if not plan.exercises:
        console.print("[yellow]No exercises fit the request.[/yellow]")
        return

    console.print(format_plan_table(plan))
    b = plan.total_time_breakdown
    console.print(
        f"[dim]Warm-up[/dim] {b.warmup_minutes} min  "
        f"[dim]Exercises[/dim] {b.exercise_minutes} min  "
        f"[dim]Cool-down[/dim] {b.cooldown_minutes} min  "
        f"[bold]Total {b.total_minutes} min[/bold]"
    )
    if plan.exercise_count < plan.target_exercise_count:
        print_warning(
            f"Placed {plan.exercise_count} of {plan.target_exercise_count} exercises "
            "(time budget or equipment limited the plan)"
        )


def format_recovery_table(data: list[MuscleRecoveryData]) -> Table:
    table = Table(title="Muscle Recovery", show_header=True, header_style="bold cyan")
    table.add_column("Muscle")
    table.add_column("Recovery", justify="right")
    table.add_column("Status")
    table.add_column("Last worked", style="dim")
    table.add_column("Fully recovered", style="dim")

    for d in data:
        style = _STATUS_STYLE[d.recovery_status]
        last = "-" if d.last_worked_date == datetime.min else d.last_worked_date.strftime("%Y-%m-%d %H:%M")
        full = "-" if d.is_fully_rested else d.estimated_full_recovery_date.strftime("%Y-%m-%d %H:%M")
        table.add_row(
            d.muscle.display_name,
            f"[{style}]{d.recovery_percentage:.0f}%[/{style}]",
            f"[{style}]{d.recovery_status.value}[/{style}]",
            last,
            full,
        )
    return table


def print_recovery(data: list[MuscleRecoveryData]) -> None:
    console.print(format_recovery_table(data))


def print_cache_metrics(metrics: CachePerformanceMetrics, recomputes: int) -> None:
    """
    Print cache performance counters.

    Args:
        metrics: Snapshot from RepRangeCache.metrics
        recomputes: Pipeline computations performed
    """
    table = Table(title="Rep Range Cache", show_header=False)
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Requests", str(metrics.total_requests))
    table.add_row("Hit rate", f"{metrics.hit_rate:.0%}")
    table.add_row("Hot entries", str(metrics.hot_cache_size))
    table.add_row("Recomputes", str(recomputes))
    table.add_row("Memory estimate", f"{metrics.memory_estimate / 1024:.1f} KiB")
    console.print(table)
    if metrics.is_performing_well:
        print_success("Cache is performing well")
    else:
        print_info("Cache hit rate is below 85%")


def print_profile(profile: UserProfile) -> None:
    console.print(f"[bold]Goal:[/bold] {profile.goal.value}")
    console.print(f"[bold]Experience:[/bold] {profile.experience.value}")
    console.print(f"[bold]Equipment:[/bold] {', '.join(profile.equipment) or '-'}")
    if profile.avoided_exercise_ids:
        console.print(f"[bold]Avoided:[/bold] {', '.join(profile.avoided_exercise_ids)}")
    console.print(
        f"[dim]Warm-up {'on' if profile.preferences.warmup_enabled else 'off'}, "
        f"cool-down {'on' if profile.preferences.cooldown_enabled else 'off'}, "
        f"warm-up sets {'on' if profile.warmup_sets_enabled else 'off'}[/dim]"
    )


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print info message."""
    console.print(f"[blue]{message}[/blue]")
