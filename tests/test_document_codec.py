"""
Tests for the budget document codec and renderer.

Covers:
- Signature comment build / read / type check
- Structural extraction of the embedded JSON assignments
- Draft marker detection
- Unlabeled legacy layout fallback
- Server-side Final and Draft rendering
"""
import json
from datetime import datetime, timedelta
import pytest

from salesbudget.domain.entities import (
    DocumentKind, DocumentMetadata, BudgetRecord, DraftDocument, FinalDocument,
)
from salesbudget.domain.exceptions import DocumentTypeMismatch, MalformedDocumentBlock
from salesbudget.modules.document_codec import (
    build_signature,
    read_signature,
    check_signature,
    collect_scripts,
    extract_assignment,
    decode_document,
    encode_final_block,
    encode_draft_block,
    to_script_json,
    FINAL_BLOCK_ID,
    _MISSING,
)
from salesbudget.modules.document_renderer import (
    render_final_document, render_draft_document, format_mt, format_amount,
)


SALES_REP = DocumentKind.SALES_REP_BUDGET
DIVISIONAL = DocumentKind.DIVISIONAL_BUDGET


@pytest.fixture
def metadata():
    return DocumentMetadata(
        division="FP",
        budget_year=2026,
        owner="Jane Doe",
        data_format=SALES_REP.data_format,
        saved_at="2026-01-05T10:00:00Z",
    )


@pytest.fixture
def records():
    return [
        BudgetRecord(product_group="Shrink Film", month=1, value=1500.0, customer="Acme", country="UAE"),
        BudgetRecord(product_group="Shrink Film", month=2, value=2500.0, customer="Acme", country="UAE"),
        BudgetRecord(product_group="Labels", month=1, value=800.0, customer="Beta LLC", country="Oman"),
    ]


class TestSignature:
    """Tests for the leading signature comment."""

    def test_build_and_read(self):
        signature = build_signature(SALES_REP)
        assert signature == "<!-- IPD_BUDGET_SYSTEM_v1.0 :: TYPE=SALES_REP_BUDGET :: DO_NOT_EDIT_THIS_LINE -->"
        assert read_signature("<!DOCTYPE html>\n" + signature) == ("1.0", SALES_REP)

    def test_read_missing_signature(self):
        assert read_signature("<html><body></body></html>") is None

    def test_mismatch_raises(self):
        html = build_signature(DIVISIONAL) + "<html></html>"
        with pytest.raises(DocumentTypeMismatch) as exc_info:
            check_signature(html, SALES_REP)
        assert exc_info.value.details == {'expected': 'Sales Rep Budget', 'actual': 'Divisional Budget'}

    def test_missing_signature_is_accepted(self):
        assert check_signature("<html></html>", SALES_REP) is None

    def test_mismatch_detected_before_json_parsing(self):
        html = (
            build_signature(DIVISIONAL)
            + f'<script id="{FINAL_BLOCK_ID}">const budgetMetadata = {{broken;</script>'
        )
        with pytest.raises(DocumentTypeMismatch):
            decode_document(html, SALES_REP)


class TestExtraction:
    """Tests for script collection and assignment extraction."""

    def test_collect_scripts_with_ids(self):
        html = '<script id="a">var x = 1;</script><p>text</p><script>var y = 2;</script>'
        assert collect_scripts(html) == [("a", "var x = 1;"), (None, "var y = 2;")]

    def test_extract_handles_nested_braces_and_semicolons(self):
        source = 'const budgetMetadata = {"note": "a; {b}; c", "nested": {"x": [1, 2]}};\nconst other = 1;'
        value = extract_assignment(source, "budgetMetadata", "metadata")
        assert value == {"note": "a; {b}; c", "nested": {"x": [1, 2]}}

    def test_extract_missing_assignment(self):
        assert extract_assignment("const somethingElse = {};", "budgetMetadata", "metadata") is _MISSING

    def test_extract_ignores_non_literal_assignment(self):
        source = "const savedBudget = collectRecords();"
        assert extract_assignment(source, "savedBudget", "records") is _MISSING

    @pytest.mark.parametrize("keyword", ["const", "let", "var"])
    def test_extract_accepts_any_declaration(self, keyword):
        source = f"{keyword} savedBudget = [1, 2];"
        assert extract_assignment(source, "savedBudget", "records") == [1, 2]

    def test_malformed_metadata_block(self):
        html = (
            build_signature(SALES_REP)
            + f'<script id="{FINAL_BLOCK_ID}">\n'
            + 'const budgetMetadata = {"division": };\n'
            + 'const savedBudget = [];\n</script>'
        )
        with pytest.raises(MalformedDocumentBlock) as exc_info:
            decode_document(html, SALES_REP)
        assert exc_info.value.block == "metadata"

    def test_malformed_records_block(self):
        html = (
            build_signature(SALES_REP)
            + f'<script id="{FINAL_BLOCK_ID}">\n'
            + 'const budgetMetadata = {"division": "FP"};\n'
            + 'const savedBudget = [{"month": 1,];\n</script>'
        )
        with pytest.raises(MalformedDocumentBlock) as exc_info:
            decode_document(html, SALES_REP)
        assert exc_info.value.block == "records"


class TestDecode:
    """Tests for decode_document."""

    def test_final_round_trip(self, metadata, records):
        html = render_final_document(SALES_REP, metadata, records)
        decoded = decode_document(html, SALES_REP)

        assert isinstance(decoded, FinalDocument)
        assert decoded.has_signature is True
        assert decoded.signature_version == "1.0"
        assert decoded.legacy_layout is False
        assert decoded.metadata == metadata.to_payload()
        assert decoded.records == [r.to_payload() for r in records]

    def test_script_terminator_in_values_is_escaped(self, metadata):
        tricky = [BudgetRecord(product_group="Film </script> X", month=3, value=1.0, customer="A", country="B")]
        block = encode_final_block(metadata, tricky)
        assert "</script> X" not in block

        html = render_final_document(SALES_REP, metadata, tricky)
        decoded = decode_document(html, SALES_REP)
        assert decoded.records[0]['productGroup'] == "Film </script> X"

    def test_missing_records_block(self, metadata):
        html = (
            build_signature(SALES_REP)
            + f'<script id="{FINAL_BLOCK_ID}">const budgetMetadata = {to_script_json(metadata.to_payload())};</script>'
        )
        decoded = decode_document(html, SALES_REP)
        assert isinstance(decoded, FinalDocument)
        assert decoded.missing_blocks == ['records']

    def test_legacy_layout_without_block_id(self, metadata, records):
        payload = json.dumps([r.to_payload() for r in records])
        html = (
            "<html><body><script>\n"
            f"const budgetMetadata = {json.dumps(metadata.to_payload())};\n"
            f"const savedBudget = {payload};\n"
            "</script></body></html>"
        )
        decoded = decode_document(html, SALES_REP)
        assert decoded.legacy_layout is True
        assert decoded.has_signature is False
        assert len(decoded.records) == 3

    def test_draft_marker_yields_draft(self, metadata):
        html = render_draft_document(SALES_REP, "<html><body><p>form</p></body></html>", metadata)
        decoded = decode_document(html, SALES_REP)
        assert isinstance(decoded, DraftDocument)
        assert decoded.draft_metadata['isDraft'] is True
        assert decoded.draft_metadata['dataFormat'] == "budget_draft"

    def test_draft_block_is_placed_before_body_end(self, metadata):
        html = render_draft_document(SALES_REP, "<html><body></body></html>", metadata)
        assert html.index('id="draftMetadata"') < html.index("</body>")

    def test_unparseable_draft_block_is_ignored(self, metadata, records):
        final = render_final_document(SALES_REP, metadata, records)
        html = final.replace("</body>", '<script id="draftMetadata">var draftMetadata = {oops};</script></body>')
        decoded = decode_document(html, SALES_REP)
        assert isinstance(decoded, FinalDocument)

    def test_draft_marker_false_is_not_a_draft(self, metadata, records):
        final = render_final_document(SALES_REP, metadata, records)
        html = final.replace("</body>", '<script>var draftMetadata = {"isDraft": false};</script></body>')
        assert isinstance(decode_document(html, SALES_REP), FinalDocument)

    def test_encode_draft_block_forces_flag(self):
        block = encode_draft_block({"division": "FP"})
        value = extract_assignment(block, "draftMetadata", "draft")
        assert value == {"division": "FP", "isDraft": True}


class TestRenderer:
    """Tests for server-side rendering helpers."""

    def test_final_document_sets_state(self, records):
        metadata = DocumentMetadata(division="FP", budget_year=2026, owner="Jane Doe", is_draft=True)
        html = render_final_document(SALES_REP, metadata, records)
        decoded = decode_document(html, SALES_REP)
        assert decoded.metadata['dataFormat'] == "budget_import"
        assert 'isDraft' not in decoded.metadata
        assert decoded.metadata['savedAt']

    def test_final_document_shows_lines_in_mt(self, metadata, records):
        html = render_final_document(SALES_REP, metadata, records)
        assert "Acme" in html
        assert "1.50" in html  # 1,500 KGS
        assert "4.00" in html  # Acme total

    def test_divisional_final_document(self):
        metadata = DocumentMetadata(division="HC", budget_year=2026, data_format=DIVISIONAL.data_format)
        records = [BudgetRecord(product_group="Preforms", month=4, value=12000.0)]
        html = render_final_document(DIVISIONAL, metadata, records)
        decoded = decode_document(html, DIVISIONAL)
        assert decoded.metadata['dataFormat'] == "divisional_budget_import"
        assert 'salesRep' not in decoded.metadata
        assert decoded.records == [{"productGroup": "Preforms", "month": 4, "value": 12000.0}]

    def test_number_formats(self):
        assert format_mt(1234.5) == "1,234.50"
        assert format_mt(None) == ""
        assert format_amount(2_500_000) == "2.50M"
        assert format_amount(1500) == "1.50K"
        assert format_amount(12) == "12.00"

    def test_saved_at_is_utc_with_z_suffix(self, records):
        metadata = DocumentMetadata(division="FP", budget_year=2026, owner="Jane Doe")
        html = render_final_document(SALES_REP, metadata, records)
        saved_at = decode_document(html, SALES_REP).metadata['savedAt']
        assert saved_at.endswith("Z")
        assert "+00:00" not in saved_at
        parsed = datetime.fromisoformat(saved_at[:-1] + "+00:00")
        assert parsed.utcoffset() == timedelta(0)

    def test_draft_saved_at_is_utc_with_z_suffix(self):
        metadata = DocumentMetadata(division="FP", budget_year=2026)
        html = render_draft_document(SALES_REP, "<html><body></body></html>", metadata)
        draft = extract_assignment(html, "draftMetadata", "draft")
        assert draft['savedAt'].endswith("Z")
        assert "+00:00" not in draft['savedAt']
