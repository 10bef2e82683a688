"""
Tests for the document commands of the management CLI.
"""
import pytest
from click.testing import CliRunner

from salesbudget.cli import cli
from salesbudget.domain.entities import DocumentKind, DocumentMetadata, BudgetRecord
from salesbudget.modules.document_renderer import render_final_document


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def final_path(tmp_path):
    metadata = DocumentMetadata(division="FP", budget_year=2026, owner="Jane Doe")
    records = [
        BudgetRecord("Shrink Film", 1, 1000.0, customer="Acme", country="UAE"),
        BudgetRecord("Shrink Film", 2, 1500.0, customer="Acme", country="UAE"),
    ]
    path = tmp_path / "FINAL_FP_Jane_Doe_2026.html"
    path.write_text(render_final_document(DocumentKind.SALES_REP_BUDGET, metadata, records), encoding="utf-8")
    return path


class TestValidateDocument:

    def test_valid_document(self, runner, final_path):
        result = runner.invoke(cli, ['validate-document', str(final_path)])
        assert result.exit_code == 0
        assert "Document is valid" in result.output
        assert "Sales rep: Jane Doe" in result.output
        assert "Records: 2 valid, 0 skipped" in result.output

    def test_wrong_kind(self, runner, final_path):
        result = runner.invoke(cli, ['validate-document', str(final_path), '--kind', 'divisional'])
        assert result.exit_code == 1
        assert "Sales Rep Budget" in result.output

    def test_division_mismatch(self, runner, final_path):
        result = runner.invoke(cli, ['validate-document', str(final_path), '--division', 'HC'])
        assert result.exit_code == 1
        assert "Division Mismatch" in result.output
        assert "file_division: FP" in result.output

    def test_plain_html(self, runner, tmp_path):
        path = tmp_path / "notes.html"
        path.write_text("<html><body>notes</body></html>", encoding="utf-8")
        result = runner.invoke(cli, ['validate-document', str(path)])
        assert result.exit_code == 1


class TestDivisionOption:
    """--division accepts the configured name or alias as well as the code."""

    @pytest.mark.parametrize("division", ["FP", "fp", "Flexible Packaging", "FP-UAE", " flexible "])
    def test_name_and_alias_match(self, runner, final_path, division):
        result = runner.invoke(cli, ['validate-document', str(final_path), '--division', division])
        assert result.exit_code == 0, result.output
        assert "Document is valid" in result.output

    def test_alias_of_other_division_mismatches(self, runner, final_path):
        result = runner.invoke(cli, ['validate-document', str(final_path), '--division', 'HC-UAE'])
        assert result.exit_code == 1
        assert "Division Mismatch" in result.output
        assert "current_division: HC" in result.output


def test_version(runner):
    result = runner.invoke(cli, ['--version'])
    assert result.exit_code == 0
    assert "1.0.0" in result.output
