"""
CLI entry point using Typer.

Provides commands for workout planning:
- plan: Generate a time-boxed workout
- recovery: Show per-muscle recovery
- log-workout: Record a completed workout and its feedback
- profile: Show or update the planning profile
- cache-stats: Report rep-range cache performance
"""

from .app import app
from .commands import cache, planning, profile, sessions  # noqa: F401  (registers commands)

__all__ = ["app"]


if __name__ == "__main__":
    app()
