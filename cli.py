#!/usr/bin/env python3
"""
CLI for the Sales Budget Planner.

Usage:
    python cli.py init-db
    python cli.py calculate-estimate FP 2025 -m 11 -m 12
    python cli.py save-estimate FP 2025 -m 11 -m 12 --actor planner
    python cli.py export-document --division FP --sales-rep "Jane Doe" --actual-year 2025
    python cli.py validate-document FINAL_FP_Jane_Doe_2026.html
    python cli.py import-document FINAL_FP_Jane_Doe_2026.html --division FP

Commands:
    init-db              Create tables and per-division indexes
    calculate-estimate   Preview estimate totals
    save-estimate        Distribute and persist estimates
    export-document      Write an offline-editable budget form
    validate-document    Dry-run the import checks
    import-document      Validate and replace a stored budget
"""
import logging

from salesbudget.cli import cli
from salesbudget.config import get_config

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_config().log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


if __name__ == '__main__':
    cli()
