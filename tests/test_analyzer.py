"""Tests for conventions.analyzer."""

from __future__ import annotations

from conventions.analyzer import (
    ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE,
    ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT,
    STATUS_CODE_KEY,
    analyze_action,
    declared_covers,
    find_undocumented_metadata,
)
from conventions.models import ActionMethod, Parameter, ResponseMetadata


def _method(*declared: ResponseMetadata) -> ActionMethod:
    return ActionMethod("GetUser", (Parameter("id", "int"),), declared, "UsersController")


def test_undocumented_status_code_is_reported_with_its_code() -> None:
    method = _method(ResponseMetadata.implicit())

    diagnostics = analyze_action(method, [ResponseMetadata.actual(200), ResponseMetadata.actual(404)])

    assert len(diagnostics) == 1
    assert diagnostics[0].descriptor is ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE
    assert diagnostics[0].id == "API1004"
    assert diagnostics[0].properties == {STATUS_CODE_KEY: "404"}
    assert diagnostics[0].method == method
    assert "'404'" in diagnostics[0].message


def test_default_result_is_covered_by_any_success_code() -> None:
    method = _method(ResponseMetadata.explicit("UsersController.GetUser(int)", 201))

    assert analyze_action(method, [ResponseMetadata.actual(is_default_response=True)]) == []


def test_default_result_without_success_code_is_reported() -> None:
    method = _method(ResponseMetadata.explicit("UsersController.GetUser(int)", 404))

    diagnostics = analyze_action(method, [ResponseMetadata.actual(is_default_response=True)])

    assert [d.descriptor for d in diagnostics] == [ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT]
    assert STATUS_CODE_KEY not in diagnostics[0].properties


def test_exact_code_is_required_for_non_default_results() -> None:
    declared = [ResponseMetadata.explicit("C.M()", 200)]

    assert declared_covers(declared, ResponseMetadata.actual(200))
    assert not declared_covers(declared, ResponseMetadata.actual(201))
    assert not declared_covers([], ResponseMetadata.actual(is_default_response=True))


def test_undocumented_metadata_is_deduplicated_in_first_seen_order() -> None:
    actual = [ResponseMetadata.actual(409), ResponseMetadata.actual(400), ResponseMetadata.actual(409)]

    undocumented = find_undocumented_metadata([ResponseMetadata.implicit()], actual)

    assert [m.status_code for m in undocumented] == [409, 400]


def test_to_dict_includes_method_and_properties() -> None:
    method = _method(ResponseMetadata.implicit())
    data = analyze_action(method, [ResponseMetadata.actual(404)])[0].to_dict()

    assert data["id"] == "API1004"
    assert data["name"] == "ActionReturnsUndocumentedStatusCode"
    assert data["method"] == "UsersController.GetUser(int)"
    assert data["properties"] == {"StatusCode": "404"}
