"""Exam Planner - exam calendar editing, catalog import and export."""

from .state import PlannerState
from .data.models import PlannerConfig, PlannerSnapshot
from .cli import app as cli_app

__all__ = [
    # State
    "PlannerState",
    "PlannerConfig",
    "PlannerSnapshot",
    # CLI
    "cli_app",
]
