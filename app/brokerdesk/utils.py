from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


def form_text(payload: dict[str, Any], key: str) -> str:
    """Stripped string value of a form/payload field ('' when missing)."""
    v = payload.get(key)
    return "" if v is None else str(v).strip()


def parse_json_object(raw: str | None) -> tuple[dict | None, str | None]:
    """Parse a JSON-encoded object from form input. Returns (value, error)."""
    if not raw or not raw.strip():
        return None, None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON: {e.msg}."
    if not isinstance(value, dict):
        return None, "Must be a JSON object."
    return value, None
