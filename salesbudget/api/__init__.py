"""
API Package - REST endpoints for the Sales Budget Planner.
"""
