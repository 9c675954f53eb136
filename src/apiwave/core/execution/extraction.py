"""Value lookup inside JSON response bodies."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

_MISSING = object()
_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


def parse_json(body: Optional[str]) -> Any:
    """Parse a response body as JSON, returning _MISSING if it is not JSON."""
    if not body:
        return _MISSING
    try:
        return json.loads(body)
    except ValueError:
        return _MISSING


def find_value(document: Any, path: str) -> Any:
    """Walk a dotted path with optional [n] indices through a JSON document.

    ``data.items[0].id`` and ``$.data.items[0].id`` are equivalent.
    Returns _MISSING when any segment does not exist.
    """
    if document is _MISSING:
        return _MISSING

    path = path.strip()
    if path.startswith("$"):
        path = path[1:].lstrip(".")
    if not path:
        return document

    current = document
    for part in path.split("."):
        match = _SEGMENT.match(part)
        if not match:
            return _MISSING
        name, indices = match.groups()

        if name:
            if not isinstance(current, dict) or name not in current:
                return _MISSING
            current = current[name]

        for raw_index in _INDEX.findall(indices):
            index = int(raw_index)
            if not isinstance(current, list) or index >= len(current):
                return _MISSING
            current = current[index]

    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING


def scalar_to_text(value: Any) -> Optional[str]:
    """Render a JSON scalar as text; None for null, objects and arrays."""
    if value is None or value is _MISSING or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return json.dumps(value)


def extract_values(extractions: Mapping[str, str], body: Optional[str]) -> dict[str, str]:
    """Evaluate each extraction path independently against a response body.

    Paths that are missing, null or non-scalar produce no entry.
    """
    if not extractions:
        return {}

    document = parse_json(body)
    if document is _MISSING:
        logger.debug("Response body is not JSON; nothing extracted")
        return {}

    extracted = {}
    for name, path in extractions.items():
        text = scalar_to_text(find_value(document, path))
        if text is None:
            logger.debug(f"Extraction '{name}' from path '{path}' did not resolve")
            continue
        extracted[name] = text
    return extracted
