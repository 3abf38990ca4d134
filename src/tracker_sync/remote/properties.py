"""Property builders and extractors for the remote page format.

Each remote property is a one-key dict tagged with its kind, e.g.
``{"select": {"name": "Dog"}}``. Builders turn local values into that
shape; extractors read them back into plain Python values.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any


class PropertyKind(StrEnum):
    """Remote property kinds understood by the codec."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    DATE_END = "date_end"  # read-only view of a date property's end
    CHECKBOX = "checkbox"
    RELATION = "relation"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    FILES = "files"


# ── Builders ─────────────────────────────────────────────────────────────────


def title(text: str | None) -> dict[str, Any]:
    return {"title": [{"type": "text", "text": {"content": text or ""}}]}


def rich_text(text: str | None) -> dict[str, Any]:
    return {"rich_text": [{"type": "text", "text": {"content": text or ""}}]}


def number(value: float | int | str | None) -> dict[str, Any]:
    if value is None or value == "":
        return {"number": None}
    return {"number": float(value) if isinstance(value, str) else value}


def select(name: str | None) -> dict[str, Any]:
    return {"select": {"name": name} if name else None}


def multi_select(names: list[str] | None) -> dict[str, Any]:
    return {"multi_select": [{"name": n} for n in (names or [])]}


def date(start: str | None, end: str | None = None) -> dict[str, Any]:
    return {"date": {"start": start, "end": end} if start else None}


def checkbox(checked: Any) -> dict[str, Any]:
    return {"checkbox": bool(checked)}


def relation(ids: list[str] | str | None) -> dict[str, Any]:
    if ids is None:
        items: list[str] = []
    elif isinstance(ids, str):
        items = [ids]
    else:
        items = list(ids)
    return {"relation": [{"id": i} for i in items if i]}


def url(value: str | None) -> dict[str, Any]:
    return {"url": value or None}


def email(value: str | None) -> dict[str, Any]:
    return {"email": value or None}


def phone(value: str | None) -> dict[str, Any]:
    return {"phone_number": value or None}


def files(items: list[dict[str, Any]] | None) -> dict[str, Any]:
    return {
        "files": [
            {
                "type": "external",
                "name": f.get("name") or "file",
                "external": {"url": f.get("url", "")},
            }
            for f in (items or [])
        ]
    }


_BUILDERS: dict[PropertyKind, Callable[[Any], dict[str, Any]]] = {
    PropertyKind.TITLE: title,
    PropertyKind.RICH_TEXT: rich_text,
    PropertyKind.NUMBER: number,
    PropertyKind.SELECT: select,
    PropertyKind.MULTI_SELECT: multi_select,
    PropertyKind.DATE: date,
    PropertyKind.CHECKBOX: checkbox,
    PropertyKind.RELATION: relation,
    PropertyKind.URL: url,
    PropertyKind.EMAIL: email,
    PropertyKind.PHONE: phone,
    PropertyKind.FILES: files,
}


def build_property(kind: PropertyKind, value: Any) -> dict[str, Any]:
    """Build a remote property of ``kind`` from a local value.

    Raises:
        ValueError: For read-only kinds such as DATE_END.
    """
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise ValueError(f"Property kind {kind} cannot be written")
    return builder(value)


# ── Extractors ───────────────────────────────────────────────────────────────


def _plain_text(items: list[dict[str, Any]] | None) -> str:
    if not items:
        return ""
    return "".join(
        item.get("plain_text") or item.get("text", {}).get("content", "") for item in items
    )


def extract_property(kind: PropertyKind, prop: dict[str, Any] | None) -> Any:
    """Read a local value out of a remote property dict."""
    prop = prop or {}
    if kind == PropertyKind.TITLE:
        return _plain_text(prop.get("title"))
    if kind == PropertyKind.RICH_TEXT:
        return _plain_text(prop.get("rich_text"))
    if kind == PropertyKind.NUMBER:
        return prop.get("number")
    if kind == PropertyKind.SELECT:
        sel = prop.get("select")
        return sel.get("name") if sel else None
    if kind == PropertyKind.MULTI_SELECT:
        return [s.get("name") for s in (prop.get("multi_select") or []) if s.get("name")]
    if kind == PropertyKind.DATE:
        value = prop.get("date")
        return value.get("start") if value else None
    if kind == PropertyKind.DATE_END:
        value = prop.get("date")
        return value.get("end") if value else None
    if kind == PropertyKind.CHECKBOX:
        return bool(prop.get("checkbox"))
    if kind == PropertyKind.RELATION:
        return [r["id"] for r in (prop.get("relation") or []) if r.get("id")]
    if kind == PropertyKind.URL:
        return prop.get("url")
    if kind == PropertyKind.EMAIL:
        return prop.get("email")
    if kind == PropertyKind.PHONE:
        return prop.get("phone_number")
    if kind == PropertyKind.FILES:
        return [
            {
                "name": f.get("name"),
                "url": (f.get("file") or {}).get("url") or (f.get("external") or {}).get("url", ""),
            }
            for f in (prop.get("files") or [])
        ]
    raise ValueError(f"Unknown property kind: {kind}")
