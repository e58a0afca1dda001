"""Request body helpers shared by the API blueprints."""

from __future__ import annotations

from typing import Any

from flask import request
from werkzeug.exceptions import BadRequest

_MISSING: Any = object()


def json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("JSON object body required")
    return payload


def field(payload: dict[str, Any], camel: str, default: Any = None) -> Any:
    """Read ``camel`` from the body, falling back to its snake_case spelling."""
    if camel in payload:
        return payload[camel]
    snake = "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in camel)
    return payload.get(snake, default)


def text(payload: dict[str, Any], camel: str) -> str | None:
    """String field, stripped; blank becomes ``None`` and any other JSON type is a 400."""
    value = field(payload, camel)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BadRequest(f"{camel} must be a string")
    return value.strip() or None


def has_field(payload: dict[str, Any], camel: str) -> bool:
    return field(payload, camel, _MISSING) is not _MISSING


def flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}
