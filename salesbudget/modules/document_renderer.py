"""
Budget Document Renderer.

Renders the offline-editable HTML budget forms and static Final documents
with Jinja2. The machine-readable parts (signature, embedded blocks) come
from document_codec so the renderer and the decoder agree on the format.
"""
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from salesbudget.config import get_config
from salesbudget.domain.entities import (
    DocumentKind, DocumentMetadata, BudgetRecord, DRAFT_DATA_FORMAT,
)
from .document_codec import (
    build_signature, encode_final_block, encode_draft_block, to_script_json,
    FINAL_BLOCK_ID, DRAFT_BLOCK_ID, METADATA_VAR, RECORDS_VAR, DRAFT_VAR,
)

logger = logging.getLogger(__name__)

MONTH_LABELS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

TEMPLATES = {
    DocumentKind.SALES_REP_BUDGET: 'sales_rep_budget.html.j2',
    DocumentKind.DIVISIONAL_BUDGET: 'divisional_budget.html.j2',
}


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def format_mt(value: Any) -> str:
    """Metric tonnes with two decimals and thousands separators ('' for blanks)."""
    if value is None or value == '':
        return ''
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return ''


def format_amount(value: Any) -> str:
    """Currency amount with K / M suffix."""
    try:
        num = float(value or 0)
    except (TypeError, ValueError):
        return '0'
    if num >= 1_000_000:
        return f"{num / 1_000_000:.2f}M"
    if num >= 1_000:
        return f"{num / 1_000:.2f}K"
    return f"{num:,.2f}"


@lru_cache()
def get_environment() -> Environment:
    env = Environment(
        loader=PackageLoader('salesbudget', 'templates'),
        autoescape=select_autoescape(['html', 'j2']),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['mt'] = format_mt
    env.filters['amount'] = format_amount
    return env


def _protocol_context(kind: DocumentKind) -> Dict[str, Any]:
    config = get_config()
    return {
        'signature': build_signature(kind),
        'format_version': config.document_format_version,
        'data_format': kind.data_format,
        'draft_data_format': DRAFT_DATA_FORMAT,
        'final_block_id': FINAL_BLOCK_ID,
        'draft_block_id': DRAFT_BLOCK_ID,
        'metadata_var': METADATA_VAR,
        'records_var': RECORDS_VAR,
        'draft_var': DRAFT_VAR,
        'debounce_ms': config.document_recalc_debounce_ms,
        'months': MONTH_LABELS,
    }


def render_editable_document(kind: DocumentKind, context: Dict[str, Any]) -> str:
    """
    Render the editable budget form for a document kind.

    Args:
        kind: Document kind (selects the template)
        context: Template data built by the export service (rows, pricing,
            metadata); JSON payloads are serialized here
    """
    data = dict(context)
    data.update(_protocol_context(kind))
    data['form_json'] = to_script_json(context['form'])
    data['pricing_json'] = to_script_json(context.get('pricing_map', {}))
    data['product_groups_json'] = to_script_json(context.get('product_groups', []))
    template = get_environment().get_template(TEMPLATES[kind])
    html = template.render(**data)
    logger.info(f"Rendered editable {kind.value} document ({len(html)} chars)")
    return html


def render_final_document(
    kind: DocumentKind,
    metadata: DocumentMetadata,
    records: List[BudgetRecord],
    title: Optional[str] = None,
) -> str:
    """
    Render a static, importable Final document.

    Equivalent to what the in-browser "Save Final" action produces.
    """
    if metadata.saved_at is None:
        metadata.saved_at = _utc_timestamp()
    metadata.data_format = kind.data_format
    metadata.is_draft = False

    by_line: Dict[tuple, List[float]] = {}
    for record in records:
        key = (record.customer or '', record.country or '', record.product_group)
        months = by_line.setdefault(key, [0.0] * 12)
        if 1 <= record.month <= 12:
            months[record.month - 1] += record.value / 1000

    template = get_environment().get_template('final_budget.html.j2')
    return template.render(
        signature=build_signature(kind, metadata.format_version),
        title=title or f"{kind.label} - {metadata.division} - {metadata.budget_year}",
        kind=kind,
        metadata=metadata,
        months=MONTH_LABELS,
        lines=[
            {'customer': k[0], 'country': k[1], 'product_group': k[2], 'values': v, 'total': sum(v)}
            for k, v in sorted(by_line.items())
        ],
        final_block=encode_final_block(metadata, records),
    )


def render_draft_document(kind: DocumentKind, editable_html: str, metadata: DocumentMetadata) -> str:
    """
    Append a draft marker to an editable document.

    Equivalent to the in-browser "Save Draft" action.
    """
    payload = metadata.to_payload()
    payload['dataFormat'] = DRAFT_DATA_FORMAT
    payload['savedAt'] = payload.get('savedAt') or _utc_timestamp()
    block = encode_draft_block(payload)
    marker = '</body>'
    index = editable_html.rfind(marker)
    if index == -1:
        return editable_html + block
    return editable_html[:index] + block + '\n' + editable_html[index:]
