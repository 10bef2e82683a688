"""
Budget CLI Commands - Management commands for estimates and budget documents.

Provides command-line interface for:
- Database initialization and per-division index bootstrap
- Estimate preview and save
- Budget document export, dry-run validation and import
"""
import sys
import click
import logging
from pathlib import Path
from typing import Optional, Tuple

from salesbudget import __version__
from salesbudget.config import get_config
from salesbudget.models import get_db, init_db, bootstrap_divisions
from salesbudget.domain.entities import DocumentKind
from salesbudget.domain.exceptions import DomainError
from salesbudget.domain.services import (
    DistributionService,
    DocumentValidationService,
    BudgetImportService,
    BudgetExportService,
)

logger = logging.getLogger(__name__)

KIND_CHOICES = {
    'sales-rep': DocumentKind.SALES_REP_BUDGET,
    'divisional': DocumentKind.DIVISIONAL_BUDGET,
}


def _fail(error: DomainError) -> None:
    click.echo(click.style(f"✗ {error.message}", fg='red'))
    for key, value in error.details.items():
        click.echo(f"  {key}: {value}")
    sys.exit(1)


def _division(value: Optional[str]) -> Optional[str]:
    """Resolve a division code, name or alias to its configured code."""
    if value is None:
        return None
    return get_config().find_division_by_name(value) or value.strip().upper()


@click.group(name='salesbudget')
@click.version_option(version=__version__)
def cli():
    """Sales Budget Planner CLI.

    Project monthly estimates from historical actuals and move budgets
    through offline-editable HTML documents.
    """
    pass


@cli.command('init-db')
def init_db_command():
    """Create tables and bootstrap per-division indexes."""
    init_db()
    divisions = bootstrap_divisions()
    click.echo(click.style(f"✓ Database initialized ({', '.join(divisions) or 'no divisions'})", fg='green'))


# =============================================================================
# Estimates
# =============================================================================

@cli.command('calculate-estimate')
@click.argument('division')
@click.argument('year', type=int)
@click.option('--month', '-m', 'months', multiple=True, type=int, required=True, help='Target month (repeatable)')
def calculate_estimate(division: str, year: int, months: Tuple[int, ...]):
    """Preview estimate totals for DIVISION and YEAR."""
    db = next(get_db())
    try:
        result = DistributionService(db).calculate_estimate(_division(division), year, list(months))
    except DomainError as e:
        _fail(e)
    finally:
        db.close()

    name = get_config().get_division_name(result.division)
    click.echo(f"Division: {result.division}" + (f" ({name})" if name else ""))
    click.echo(f"Base period: {result.base_period_months} ({result.base_month_count} months)")
    click.echo(f"{'Month':>5}  {'KGS':>15}  {'Amount':>15}  {'MoRM':>15}  {'Records':>8}")
    for estimate in result.estimates:
        row = estimate.to_dict()
        click.echo(
            f"{row['month']:>5}  {row['kgs']:>15,.0f}  {row['amount']:>15,.0f}  "
            f"{row['morm']:>15,.0f}  {row['record_count']:>8}"
        )


@cli.command('save-estimate')
@click.argument('division')
@click.argument('year', type=int)
@click.option('--month', '-m', 'months', multiple=True, type=int, required=True, help='Target month (repeatable)')
@click.option('--actor', default=None, help='User recorded on the estimate rows')
def save_estimate(division: str, year: int, months: Tuple[int, ...], actor: Optional[str]):
    """Distribute and persist estimates for DIVISION and YEAR."""
    db = next(get_db())
    try:
        result = DistributionService(db).save_estimate(_division(division), year, list(months), actor=actor)
    except DomainError as e:
        _fail(e)
    finally:
        db.close()

    click.echo(click.style(f"✓ {result.to_dict()['message']}", fg='green'))
    click.echo(f"  Base period: {result.base_period_months}")
    click.echo(f"  Dimensions: {result.dimension_count}")
    click.echo(f"  Deleted: {result.records_deleted}  Inserted: {result.records_inserted}")


# =============================================================================
# Budget documents
# =============================================================================

@cli.command('export-document')
@click.option('--kind', type=click.Choice(list(KIND_CHOICES)), default='sales-rep', show_default=True)
@click.option('--division', required=True, help='Division code, name or alias')
@click.option('--sales-rep', default=None, help='Sales rep name (sales-rep documents only)')
@click.option('--actual-year', required=True, type=int, help='Year of actuals; the budget is for the next year')
@click.option('--output', '-o', default=None, type=click.Path(), help='Output file or directory')
def export_document(kind: str, division: str, sales_rep: Optional[str], actual_year: int, output: Optional[str]):
    """Write an offline-editable budget form."""
    division = _division(division)
    if KIND_CHOICES[kind] is DocumentKind.SALES_REP_BUDGET and not sales_rep:
        raise click.UsageError("--sales-rep is required for sales-rep documents")

    db = next(get_db())
    try:
        service = BudgetExportService(db)
        if KIND_CHOICES[kind] is DocumentKind.SALES_REP_BUDGET:
            filename, html = service.export_sales_rep_document(division, sales_rep, actual_year)
        else:
            filename, html = service.export_divisional_document(division, actual_year)
    finally:
        db.close()

    target = Path(output) if output else Path(filename)
    if target.is_dir():
        target = target / filename
    target.write_text(html, encoding='utf-8')
    click.echo(click.style(f"✓ Exported {target}", fg='green'))


@cli.command('validate-document')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--kind', type=click.Choice(list(KIND_CHOICES)), default='sales-rep', show_default=True)
@click.option('--division', default=None, help='Reject files for any other division (code, name or alias)')
def validate_document(path: str, kind: str, division: Optional[str]):
    """Run the import checks on PATH without writing anything."""
    division = _division(division)
    html = Path(path).read_text(encoding='utf-8-sig')
    try:
        validated = DocumentValidationService().validate(html, KIND_CHOICES[kind], current_division=division)
    except DomainError as e:
        _fail(e)

    meta = validated.metadata
    click.echo(click.style("✓ Document is valid", fg='green'))
    click.echo(f"  Division: {meta.division}")
    if meta.owner:
        click.echo(f"  Sales rep: {meta.owner}")
    click.echo(f"  Budget year: {meta.budget_year}")
    click.echo(f"  Records: {len(validated.records)} valid, {validated.skipped_count} skipped")
    for error in validated.record_errors:
        click.echo(f"  - Record {error.index} ({error.customer}, month {error.month}): {', '.join(error.errors)}")


@cli.command('import-document')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--kind', type=click.Choice(list(KIND_CHOICES)), default='sales-rep', show_default=True)
@click.option('--division', default=None, help='Reject files for any other division (code, name or alias)')
@click.option('--confirm-replace', is_flag=True, help='Replace an existing divisional budget')
def import_document(path: str, kind: str, division: Optional[str], confirm_replace: bool):
    """Validate PATH and replace the stored budget."""
    division = _division(division)
    html = Path(path).read_text(encoding='utf-8-sig')
    filename = Path(path).name

    db = next(get_db())
    try:
        service = BudgetImportService(db)
        if KIND_CHOICES[kind] is DocumentKind.SALES_REP_BUDGET:
            outcome = service.import_sales_rep_document(html, filename=filename, current_division=division)
        else:
            outcome = service.import_divisional_document(
                html, filename=filename, confirm_replace=confirm_replace, current_division=division
            )
    except DomainError as e:
        _fail(e)
    finally:
        db.close()

    if outcome.needs_confirmation:
        existing = outcome.existing_budget
        click.echo(click.style(
            f"Budget for {outcome.division} {outcome.budget_year} already exists "
            f"({existing.record_count} records, last upload {existing.last_upload}).",
            fg='yellow',
        ))
        click.echo("Re-run with --confirm-replace to replace it.")
        return

    totals = outcome.totals
    click.echo(click.style(f"✓ Imported {outcome.inserted_count} budget records", fg='green'))
    click.echo(f"  Replaced: {outcome.deleted_count} existing records")
    click.echo(f"  Skipped: {outcome.skipped_records} invalid records")
    click.echo(f"  Total: {totals.quantity_mt:,.2f} MT  Amount: {totals.revenue:,.2f}  MoRM: {totals.margin:,.2f}")
    click.echo(f"  Pricing year: {outcome.pricing_year}")
    for warning in outcome.warnings:
        click.echo(click.style(f"  ! {warning}", fg='yellow'))


def register_commands(group):
    """Register budget commands with another click group."""
    for command in cli.commands.values():
        group.add_command(command)
