"""
Budget Document Codec.

Reads and writes the machine-readable parts of an exported budget document:

    <!DOCTYPE html>
    <!-- IPD_BUDGET_SYSTEM_v1.0 :: TYPE=SALES_REP_BUDGET :: DO_NOT_EDIT_THIS_LINE -->
    ...
    <script id="savedBudgetData">
    const budgetMetadata = {...};
    const savedBudget = [...];
    </script>

Drafts carry <script id="draftMetadata">var draftMetadata = {...};</script>
instead. Everything else in the file is cosmetic and ignored here.

Decoding is a pure function of the HTML text: no DOM, no browser.
"""
import json
import logging
import re
from html.parser import HTMLParser
from typing import Any, List, Optional, Tuple

from salesbudget.config import get_config
from salesbudget.domain.entities import (
    DocumentKind, DocumentMetadata, BudgetRecord,
    DecodedDocument, DraftDocument, FinalDocument,
)
from salesbudget.domain.exceptions import DocumentTypeMismatch, MalformedDocumentBlock

logger = logging.getLogger(__name__)

FINAL_BLOCK_ID = "savedBudgetData"
DRAFT_BLOCK_ID = "draftMetadata"
METADATA_VAR = "budgetMetadata"
RECORDS_VAR = "savedBudget"
DRAFT_VAR = "draftMetadata"

_MISSING = object()


# =============================================================================
# Signature
# =============================================================================

def _signature_pattern() -> re.Pattern:
    prefix = re.escape(get_config().document_signature_prefix)
    kinds = "|".join(k.value for k in DocumentKind)
    return re.compile(rf"<!--\s*{prefix}_v([\d.]+)\s*::\s*TYPE=({kinds})\s*::")


def build_signature(kind: DocumentKind, version: Optional[str] = None) -> str:
    """The leading comment that identifies protocol version and document type."""
    version = version or get_config().document_format_version
    prefix = get_config().document_signature_prefix
    return f"<!-- {prefix}_v{version} :: TYPE={kind.value} :: DO_NOT_EDIT_THIS_LINE -->"


def read_signature(html: str) -> Optional[Tuple[str, DocumentKind]]:
    """
    Find the signature comment.

    Returns:
        (version, kind) or None if the file carries no signature
    """
    match = _signature_pattern().search(html)
    if not match:
        return None
    return match.group(1), DocumentKind(match.group(2))


def check_signature(html: str, expected: DocumentKind) -> Optional[Tuple[str, DocumentKind]]:
    """
    Fail fast when the file is the other document type.

    Files without a signature are accepted (legacy or hand-modified exports).

    Raises:
        DocumentTypeMismatch: If the signature names a different type
    """
    signature = read_signature(html)
    if signature is None:
        logger.warning("File missing budget document signature - may be legacy or modified file")
        return None
    version, kind = signature
    if kind is not expected:
        raise DocumentTypeMismatch(expected=expected.label, actual=kind.label)
    logger.info(f"Valid budget document signature detected (v{version}, {kind.value})")
    return signature


# =============================================================================
# Script extraction
# =============================================================================

class _ScriptCollector(HTMLParser):
    """Collects (id, text) for every <script> element."""

    def __init__(self):
        super().__init__(convert_charrefs=False)
        self.scripts: List[Tuple[Optional[str], str]] = []
        self._current_id: Optional[str] = None
        self._buffer: Optional[List[str]] = None

    def handle_starttag(self, tag, attrs):
        if tag == 'script':
            self._current_id = dict(attrs).get('id')
            self._buffer = []

    def handle_data(self, data):
        if self._buffer is not None:
            self._buffer.append(data)

    def handle_endtag(self, tag):
        if tag == 'script' and self._buffer is not None:
            self.scripts.append((self._current_id, ''.join(self._buffer)))
            self._current_id = None
            self._buffer = None


def collect_scripts(html: str) -> List[Tuple[Optional[str], str]]:
    parser = _ScriptCollector()
    parser.feed(html)
    parser.close()
    return parser.scripts


def extract_assignment(source: str, name: str, block: str) -> Any:
    """
    Read the JSON literal assigned to a JavaScript variable.

    Locates `const|let|var <name> =` followed by an object or array literal
    and decodes exactly one JSON value from that position, so nested braces
    or semicolons inside strings are safe.

    Returns:
        The decoded value, or _MISSING if no assignment exists

    Raises:
        MalformedDocumentBlock: If the assignment exists but is not valid JSON
    """
    match = re.search(rf"(?:const|let|var)\s+{re.escape(name)}\s*=\s*(?=[{{\[])", source)
    if not match:
        return _MISSING
    try:
        value, _ = json.JSONDecoder().raw_decode(source, match.end())
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse {name}: {e}")
        raise MalformedDocumentBlock(block, str(e)) from e
    return value


def _read_draft_marker(scripts: List[Tuple[Optional[str], str]]) -> Optional[dict]:
    for script_id, text in scripts:
        if script_id != DRAFT_BLOCK_ID and DRAFT_VAR not in text:
            continue
        try:
            value = extract_assignment(text, DRAFT_VAR, 'draft')
        except MalformedDocumentBlock as e:
            logger.debug(f"Draft check parse error (ignored): {e.reason}")
            continue
        if isinstance(value, dict) and value.get('isDraft') is True:
            return value
    return None


def decode_document(html: str, expected: DocumentKind) -> DecodedDocument:
    """
    Decode a budget document submitted to the importer for `expected`.

    Order: signature, draft marker, labeled final block, unlabeled legacy
    layout. Presence of the two payloads is not checked here; a FinalDocument
    may come back with either payload set to None.

    Raises:
        DocumentTypeMismatch: Signature names the other document type
        MalformedDocumentBlock: An assignment exists but is not valid JSON
    """
    signature = check_signature(html, expected)
    version = signature[0] if signature else None

    scripts = collect_scripts(html)

    draft = _read_draft_marker(scripts)
    if draft is not None:
        logger.info("Draft marker found in budget document")
        return DraftDocument(
            kind=expected, signature_version=version,
            has_signature=signature is not None, draft_metadata=draft,
        )

    metadata, records, legacy = _MISSING, _MISSING, False
    for script_id, text in scripts:
        if script_id == FINAL_BLOCK_ID:
            metadata = extract_assignment(text, METADATA_VAR, 'metadata')
            records = extract_assignment(text, RECORDS_VAR, 'records')
            break

    if metadata is _MISSING or records is _MISSING:
        legacy_metadata = extract_assignment(html, METADATA_VAR, 'metadata')
        legacy_records = extract_assignment(html, RECORDS_VAR, 'records')
        if legacy_metadata is not _MISSING and legacy_records is not _MISSING:
            logger.info("Using unlabeled legacy budget data layout")
            metadata, records, legacy = legacy_metadata, legacy_records, True

    return FinalDocument(
        kind=expected,
        signature_version=version,
        has_signature=signature is not None,
        metadata=None if metadata is _MISSING else metadata,
        records=None if records is _MISSING else records,
        legacy_layout=legacy,
    )


# =============================================================================
# Encoding
# =============================================================================

def to_script_json(value: Any) -> str:
    """JSON safe to embed inside a <script> element."""
    return json.dumps(value, indent=2, ensure_ascii=False).replace("</", "<\\/")


def encode_final_block(metadata: DocumentMetadata, records: List[BudgetRecord]) -> str:
    """The <script id="savedBudgetData"> element of a Final document."""
    return (
        f'<script id="{FINAL_BLOCK_ID}">\n'
        f'/* BUDGET DATA FOR DATABASE IMPORT */\n'
        f'const {METADATA_VAR} = {to_script_json(metadata.to_payload())};\n'
        f'const {RECORDS_VAR} = {to_script_json([r.to_payload() for r in records])};\n'
        f'</script>'
    )


def encode_draft_block(draft_metadata: dict) -> str:
    """The <script id="draftMetadata"> element of a Draft document."""
    payload = dict(draft_metadata)
    payload['isDraft'] = True
    return (
        f'<script id="{DRAFT_BLOCK_ID}">\n'
        f'/* DRAFT METADATA */\n'
        f'var {DRAFT_VAR} = {to_script_json(payload)};\n'
        f'</script>'
    )
