"""Tests for conventions.naming."""

from __future__ import annotations

import pytest

from conventions.naming import derive_convention_method_name, derive_convention_parameter_name


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("PostItem", "Post"),
        ("Get", "Get"),
        ("", ""),
        ("A", "A"),
        ("GetUserById", "Get"),
        ("getUser", "get"),
        ("HTTPGet", "HTTPGet"),
    ],
)
def test_method_name_keeps_text_before_first_boundary(name: str, expected: str) -> None:
    assert derive_convention_method_name(name) == expected


@pytest.mark.parametrize("name", ["PostItem", "Get", "", "UpdateUserProfile", "HTTPGet", "x", "deleteAll"])
def test_method_name_is_idempotent(name: str) -> None:
    once = derive_convention_method_name(name)
    assert derive_convention_method_name(once) == once


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("userName", "name"),
        ("id", "id"),
        ("", ""),
        ("x", "x"),
        ("customerOrderId", "id"),
        ("UserName", "name"),
        ("model", "model"),
    ],
)
def test_parameter_name_keeps_text_after_last_boundary(name: str, expected: str) -> None:
    assert derive_convention_parameter_name(name) == expected


def test_parameter_name_ignores_boundary_on_final_character() -> None:
    assert derive_convention_parameter_name("userX") == "userX"


def test_scan_directions_differ() -> None:
    name = "getUserName"
    assert derive_convention_method_name(name) == "get"
    assert derive_convention_parameter_name(name) == "name"
