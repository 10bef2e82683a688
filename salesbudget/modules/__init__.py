# Sales Budget Planner - Document modules
from .document_codec import (
    decode_document, build_signature, read_signature,
    encode_final_block, encode_draft_block,
)
from .document_renderer import render_editable_document, render_final_document, render_draft_document

__all__ = [
    "decode_document",
    "build_signature",
    "read_signature",
    "encode_final_block",
    "encode_draft_block",
    "render_editable_document",
    "render_final_document",
    "render_draft_document",
]
