"""Structured data to XML serializer.

Turns a decoded JSON-like value (dicts, lists and scalars) into an XML
fragment without attributes or prolog. Used to export a scraper's last
Firecrawl extraction result.

Rules:
- mapping keys become tag names; ``:`` is replaced with ``_`` so the output
  never reads as namespace-qualified, then the name is entity-escaped
- list values repeat the tag once per element
- ``None`` renders as an empty element (never omitted)
- text is escaped with no detection of existing entities, so escaping twice
  double-escapes (``&amp;`` -> ``&amp;amp;``)

Mapping iteration order is preserved as-is (dict insertion order); keys are
never sorted.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Tuple, Union

StructuredValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

XML_PROLOG = '<?xml version="1.0" encoding="UTF-8"?>'

# Order matters: "&" first or the inserted entities get escaped again.
_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

# Integral floats beyond this lose precision as integers; keep their float form.
_MAX_SAFE_INTEGER = 2**53 - 1


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) <= _MAX_SAFE_INTEGER:
        return str(int(value))
    return repr(value)


def _stringify(value: Any) -> str:
    """Default string conversion for leaf values."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if _is_sequence(value):
        return ",".join(_stringify(v) for v in value)
    return str(value)


def escape_xml(value: Any) -> str:
    text = _stringify(value)
    for raw, entity in _XML_ESCAPES:
        text = text.replace(raw, entity)
    return text


def sanitize_property_name(name: Any) -> str:
    """Replace colons with underscores to avoid namespace issues."""
    return str(name).replace(":", "_")


def _entries(value: StructuredValue) -> Iterable[Tuple[Any, Any]]:
    """Key/value pairs at one level.

    Sequences and strings are keyed by position; other scalars and None have
    no entries.
    """
    if isinstance(value, Mapping):
        return value.items()
    if _is_sequence(value) or isinstance(value, str):
        return enumerate(value)
    return ()


def json_to_xml(obj: StructuredValue) -> str:
    """Serialize a value into an XML fragment (no prolog, no root)."""
    parts: List[str] = []
    for prop, value in _entries(obj):
        tag = escape_xml(sanitize_property_name(prop))
        if _is_sequence(value):
            for item in value:
                inner = json_to_xml(item) if isinstance(item, Mapping) else escape_xml(item)
                parts.append(f"<{tag}>{inner}</{tag}>")
        elif isinstance(value, Mapping):
            parts.append(f"<{tag}>{json_to_xml(value)}</{tag}>")
        else:
            parts.append(f"<{tag}>{escape_xml(value)}</{tag}>")
    return "".join(parts)


def to_xml_document(value: StructuredValue, *, root_tag: str = "root") -> str:
    """Wrap the serialized value in the prolog and a root element.

    Callers must check that there is a value to export first; this function
    does not handle the "nothing to serialize" case.
    """
    return f"{XML_PROLOG}\n<{root_tag}>{json_to_xml(value)}</{root_tag}>"
