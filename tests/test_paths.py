"""Tests for path lookup over response bodies."""

from __future__ import annotations

import copy

import pytest

from reqvars.paths import UNDEFINED, get_value_by_path, split_path, unwrap_body

BODY = {
    "access_token": "tok_1",
    "user": {"id": 42, "roles": ["admin", "dev"]},
    "data": {"items": [{"name": "first"}, {"name": "second"}]},
    "meta": {"x.y": "dotted", "nothing": None},
}


class TestGetValueByPath:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("access_token", "tok_1"),
            ("user.id", 42),
            ("user.roles[1]", "dev"),
            ("data.items[0].name", "first"),
            ("data.items.1.name", "second"),
            ("$.user.id", 42),
            ("$user.id", 42),
            ("meta['x.y']", "dotted"),
            ('meta["x.y"]', "dotted"),
        ],
    )
    def test_found(self, path: str, expected: object) -> None:
        assert get_value_by_path(BODY, path) == expected

    @pytest.mark.parametrize(
        "path",
        ["missing", "user.missing", "user.roles[5]", "user.roles[-1]", "access_token.length", "a..b", "user[", "data.items.x"],
    )
    def test_missing_is_undefined(self, path: str) -> None:
        assert get_value_by_path(BODY, path) is UNDEFINED

    def test_null_is_not_undefined(self) -> None:
        assert get_value_by_path(BODY, "meta.nothing") is None

    def test_none_path_returns_whole_body(self) -> None:
        assert get_value_by_path(BODY, None) is BODY

    def test_non_string_path(self) -> None:
        assert get_value_by_path(BODY, 3) is UNDEFINED  # type: ignore[arg-type]

    def test_top_level_list(self) -> None:
        assert get_value_by_path([10, 20], "[1]") == 20

    def test_scalar_body(self) -> None:
        assert get_value_by_path("text", "a") is UNDEFINED


class TestSplitPath:
    def test_mixed_segments(self) -> None:
        assert split_path("$.a[0]['b.c'].d") == ["a", 0, "b.c", "d"]

    def test_malformed(self) -> None:
        assert split_path("a[b") is None


class TestUndefined:
    def test_is_falsy_singleton(self) -> None:
        assert not UNDEFINED
        assert copy.deepcopy(UNDEFINED) is UNDEFINED
        assert repr(UNDEFINED) == "undefined"


class TestUnwrapBody:
    def test_unwraps_envelope(self) -> None:
        assert unwrap_body({"type": "json", "data": {"a": 1}, "size": 7}) == {"a": 1}

    def test_leaves_plain_bodies(self) -> None:
        assert unwrap_body({"data": {"a": 1}}) == {"data": {"a": 1}}
        assert unwrap_body([1, 2]) == [1, 2]
