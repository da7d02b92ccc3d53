"""
Compatibility field parsing and row normalization.

Source format:
    The catalog CSV has no header. Each line is
        model, compatibility[, presentation_content]
    where ``compatibility`` is free text typed by hand, e.g.
        "iPhone 11 / iPhone 11 Pro / iPhone XR"
        "Moto G8/Moto G8 Power  Moto G Power"
        "<button class='ver'>Ver</button>Modelo A / Modelo B"
        "Este Modelo já está disponível na tabela VIP"

Parsing approach:
    1. Strip markup. Button/link spans go entirely (their label text is UI noise
       like "Ver"); every other tag is dropped but its text is kept.
    2. VIP sentinel: if the cleaned text mentions "vip" or the "disponível"
       availability phrase anywhere, the record is VIP and has NO list.
    3. Split on a prioritized list of separators. Each separator is applied to
       every fragment produced by the previous one (sequential, not a single
       alternation regex) so "A / B/C  D" still yields four names.
    4. Trim, drop empties, and drop any fragment that still carries a VIP
       marker.

Duplicates across fragments are kept: that is a property of the source
sheet, not something the parser should hide.
"""

import re
from typing import List, NamedTuple, Optional, Sequence

from errors import MalformedRow
from records import CatalogRecord

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Applied in this order, each to every fragment of the previous pass
COMPAT_SEPARATORS = [' / ', '/', ' /', '/ ', '  ']

# Case-insensitive substrings marking the restricted tier
VIP_MARKERS = ('vip', 'disponível', 'disponivel')

# Interactive spans removed together with their label text
_INTERACTIVE_SPAN = re.compile(
    r'<(button|a)\b[^>]*>.*?</\1\s*>',
    re.IGNORECASE | re.DOTALL,
)
# Any remaining tag; only the tag itself is removed
_ANY_TAG = re.compile(r'<[^>]*>')

MIN_ROW_FIELDS = 2


class TokenizedCompatibility(NamedTuple):
    models: List[str]
    is_vip: bool


# ---------------------------------------------------------------------------
# Compatibility tokenizer
# ---------------------------------------------------------------------------

def strip_markup(text: str) -> str:
    """Remove button/link spans (with label) and all other tags (keeping text)."""
    if not isinstance(text, str):
        return ""
    s = _INTERACTIVE_SPAN.sub('', text)
    s = _ANY_TAG.sub('', s)
    return s.strip()


def is_vip_text(text: str) -> bool:
    """True when the text carries the VIP sentinel, wherever it appears."""
    if not text:
        return False
    lowered = text.casefold()
    return any(marker in lowered for marker in VIP_MARKERS)


def split_compatibility(text: str) -> List[str]:
    """
    Split cleaned compatibility text into model names.

    Each separator is applied in turn to all fragments so far, so mixed
    separator usage in a single field still splits correctly.
    """
    parts = [text]
    for separator in COMPAT_SEPARATORS:
        next_parts = []
        for part in parts:
            next_parts.extend(part.split(separator))
        parts = next_parts

    models = []
    for part in parts:
        name = part.strip()
        if not name or is_vip_text(name):
            continue
        models.append(name)
    return models


def tokenize_compatibility(text: str, model_name: str = '') -> TokenizedCompatibility:
    """
    Turn a raw compatibility field into (models, is_vip).

    ``model_name`` is accepted so callers can pass the whole row; the model
    itself never influences the result.

    Examples:
        'iPhone 11 / iPhone 11 Pro / iPhone XR' -> (['iPhone 11', 'iPhone 11 Pro', 'iPhone XR'], False)
        'Este Modelo já está disponível na tabela VIP' -> ([], True)
        '<button>Ver</button>Modelo A / Modelo B' -> (['Modelo A', 'Modelo B'], False)
        '<b></b>' -> ([], False)
    """
    cleaned = strip_markup(text)
    if is_vip_text(cleaned):
        return TokenizedCompatibility([], True)
    if not cleaned:
        return TokenizedCompatibility([], False)
    return TokenizedCompatibility(split_compatibility(cleaned), False)


# ---------------------------------------------------------------------------
# Row normalizer
# ---------------------------------------------------------------------------

def _field(fields: Sequence[Optional[str]], index: int) -> str:
    if index >= len(fields):
        return ''
    value = fields[index]
    if value is None:
        return ''
    return str(value).strip()


def normalize_row_strict(fields: Sequence[Optional[str]]) -> CatalogRecord:
    """
    Build a CatalogRecord from one raw CSV row or raise MalformedRow.

    Columns: model, compatibility, optional presentation content.
    """
    if fields is None or len(fields) < MIN_ROW_FIELDS:
        raise MalformedRow(
            "Row has fewer than two fields",
            detail={'fields': len(fields) if fields is not None else 0},
        )

    model_name = _field(fields, 0)
    compatibility = _field(fields, 1)
    if not model_name:
        raise MalformedRow("Empty model name")
    if not compatibility:
        raise MalformedRow("Empty compatibility text", detail={'model_name': model_name})

    models, is_vip = tokenize_compatibility(compatibility, model_name)
    if is_vip:
        models = []

    presentation = _field(fields, 2) or None

    return CatalogRecord(
        model_name=model_name,
        compatible_models=models,
        is_vip=is_vip,
        is_compatible=(not is_vip and len(models) > 0),
        presentation_content=presentation,
    )


def normalize_row(fields: Sequence[Optional[str]]) -> Optional[CatalogRecord]:
    """Lenient form used by the pipeline: malformed rows become None."""
    try:
        return normalize_row_strict(fields)
    except MalformedRow:
        return None
