"""Recovery-aware workout generation with time budgeting."""

__version__ = "0.1.0"
