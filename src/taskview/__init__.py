"""Data and runtime engine for a TaskWarrior-style console client."""

from .engine import TaskViewEngine

__version__ = "0.1.0"

__all__ = ["TaskViewEngine", "__version__"]
