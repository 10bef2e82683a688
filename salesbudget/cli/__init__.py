"""
CLI Module - Command-line interface for the Sales Budget Planner.

Provides management commands for:
- Database setup
- Estimate calculation and persistence
- Budget document export, validation and import
"""

from .budget_commands import cli, register_commands

__all__ = ['cli', 'register_commands']
