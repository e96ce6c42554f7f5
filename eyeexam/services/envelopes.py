"""
Response envelope unwrapping.

The backend wraps list responses two different ways depending on the
resource. Each record kind names the unwrapper for its own envelope so the
rest of the core only ever sees a RecordPage or a plain record dict.
"""
from typing import Any, Dict

from eyeexam.errors import TransportError
from eyeexam.models.api import RecordPage


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _records(items: Any) -> list[dict]:
    if not isinstance(items, list):
        raise TransportError("Unexpected list response shape")
    return [item for item in items if isinstance(item, dict)]


def unwrap_pagination_envelope(body: Any, page: int = 1, per_page: int = 10) -> RecordPage:
    """``{"data": [...], "pagination": {"page", "per_page", "last_page", "total"}}``"""
    if not isinstance(body, dict) or "data" not in body:
        raise TransportError("Unexpected list response shape")
    items = _records(body["data"])
    meta = body.get("pagination") or {}
    return RecordPage(
        items=items,
        page=_int(meta.get("page"), page),
        per_page=_int(meta.get("per_page"), per_page),
        last_page=_int(meta.get("last_page"), 1),
        total=_int(meta.get("total"), len(items)),
    )


def unwrap_paginator_envelope(body: Any, page: int = 1, per_page: int = 10) -> RecordPage:
    """``{"success", "message", "data": {"current_page", "data": [...], "per_page", "last_page", "total"}}``"""
    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        raise TransportError("Unexpected list response shape")
    paginator = body["data"]
    # some deployments wrap the paginator once more
    if isinstance(paginator.get("data"), dict):
        paginator = paginator["data"]
    items = _records(paginator.get("data"))
    return RecordPage(
        items=items,
        page=_int(paginator.get("current_page"), page),
        per_page=_int(paginator.get("per_page"), per_page),
        last_page=_int(paginator.get("last_page"), 1),
        total=_int(paginator.get("total"), len(items)),
    )


def unwrap_record(body: Any) -> Dict[str, Any]:
    """Bare record, ``{"data": record}`` or ``{"data": {"data": record}}``."""
    node = body
    while isinstance(node, dict) and "id" not in node and isinstance(node.get("data"), dict):
        node = node["data"]
    if not isinstance(node, dict):
        raise TransportError("Unexpected record response shape")
    return node


def unwrap_examination_data(body: Any) -> Dict[str, Any]:
    """``{"data": {"examination_data": {...}}}`` or ``{"examination_data": {...}}``."""
    node = body
    if isinstance(node, dict) and "examination_data" not in node and isinstance(node.get("data"), dict):
        node = node["data"]
    data = node.get("examination_data") if isinstance(node, dict) else None
    if not isinstance(data, dict):
        raise TransportError("Unexpected examination data response shape")
    return data
