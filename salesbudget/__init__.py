"""Sales Budget Planner - estimate distribution and offline budget documents."""

__version__ = "1.0.0"
