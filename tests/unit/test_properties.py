"""Tests for remote property builders and extractors."""

from __future__ import annotations

import pytest

from tracker_sync.remote.properties import (
    PropertyKind,
    build_property,
    date,
    extract_property,
    files,
    number,
    relation,
    select,
    title,
)


class TestBuilders:
    """Local values -> remote property dicts."""

    def test_title(self) -> None:
        assert title("Luna") == {"title": [{"type": "text", "text": {"content": "Luna"}}]}
        assert title(None) == {"title": [{"type": "text", "text": {"content": ""}}]}

    def test_number_coerces_strings_and_blanks(self) -> None:
        assert number(4) == {"number": 4}
        assert number("4.5") == {"number": 4.5}
        assert number("") == {"number": None}

    def test_select_clears_on_empty(self) -> None:
        assert select("Dog") == {"select": {"name": "Dog"}}
        assert select("") == {"select": None}

    def test_date_range(self) -> None:
        assert date("2026-01-01", "2026-01-02") == {
            "date": {"start": "2026-01-01", "end": "2026-01-02"}
        }
        assert date(None) == {"date": None}

    def test_relation_accepts_single_or_many(self) -> None:
        assert relation("r-1") == {"relation": [{"id": "r-1"}]}
        assert relation(["r-1", "", "r-2"]) == {"relation": [{"id": "r-1"}, {"id": "r-2"}]}
        assert relation(None) == {"relation": []}

    def test_files_are_external(self) -> None:
        assert files([{"name": "x.jpg", "url": "https://cdn/x.jpg"}]) == {
            "files": [
                {"type": "external", "name": "x.jpg", "external": {"url": "https://cdn/x.jpg"}}
            ]
        }

    def test_date_end_is_read_only(self) -> None:
        with pytest.raises(ValueError, match="cannot be written"):
            build_property(PropertyKind.DATE_END, "2026-01-01")


RANGE = {"date": {"start": "2026-01-01", "end": "2026-01-03"}}


class TestExtractors:
    """Remote property dicts -> local values."""

    @pytest.mark.parametrize(
        ("kind", "prop", "expected"),
        [
            (PropertyKind.TITLE, {"title": [{"plain_text": "Lu"}, {"plain_text": "na"}]}, "Luna"),
            (PropertyKind.RICH_TEXT, {"rich_text": [{"text": {"content": "Husky"}}]}, "Husky"),
            (PropertyKind.NUMBER, {"number": 3.5}, 3.5),
            (PropertyKind.SELECT, {"select": None}, None),
            (PropertyKind.MULTI_SELECT, {"multi_select": [{"name": "a"}]}, ["a"]),
            (PropertyKind.DATE, RANGE, "2026-01-01"),
            (PropertyKind.DATE_END, RANGE, "2026-01-03"),
            (PropertyKind.CHECKBOX, {"checkbox": True}, True),
            (PropertyKind.RELATION, {"relation": [{"id": "r-1"}, {"id": "r-2"}]}, ["r-1", "r-2"]),
            (PropertyKind.PHONE, {"phone_number": "555"}, "555"),
        ],
    )
    def test_extract(self, kind: PropertyKind, prop: dict, expected: object) -> None:
        assert extract_property(kind, prop) == expected

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (PropertyKind.TITLE, ""),
            (PropertyKind.NUMBER, None),
            (PropertyKind.MULTI_SELECT, []),
            (PropertyKind.CHECKBOX, False),
            (PropertyKind.RELATION, []),
        ],
    )
    def test_missing_property_defaults(self, kind: PropertyKind, expected: object) -> None:
        assert extract_property(kind, None) == expected

    def test_files_prefer_hosted_url(self) -> None:
        prop = {"files": [{"name": "a.png", "file": {"url": "https://s3/a.png"}}]}
        assert extract_property(PropertyKind.FILES, prop) == [
            {"name": "a.png", "url": "https://s3/a.png"}
        ]
