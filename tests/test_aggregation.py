"""Tests for conventions.aggregation."""

from __future__ import annotations

from itertools import permutations

from conventions.aggregation import aggregate_status_codes, select_own_explicit_metadata
from conventions.models import ActionMethod, Parameter, ResponseMetadata


def _method() -> ActionMethod:
    return ActionMethod("GetUser", (Parameter("id", "int"),), declaring_type="UsersController")


def test_default_result_counts_as_200() -> None:
    owner = _method().declaration_id
    declared = [ResponseMetadata.explicit(owner, 201)]
    undocumented = [ResponseMetadata.actual(is_default_response=True)]

    assert aggregate_status_codes(declared, undocumented) == [200, 201]


def test_result_is_sorted_and_distinct() -> None:
    declared = [ResponseMetadata.explicit("C.M()", 404), ResponseMetadata.implicit()]
    undocumented = [ResponseMetadata.actual(404), ResponseMetadata.actual(400), ResponseMetadata.actual(200)]

    assert aggregate_status_codes(declared, undocumented) == [200, 400, 404]


def test_result_is_independent_of_input_order() -> None:
    declared = [ResponseMetadata.explicit("C.M()", code) for code in (500, 201, 404)]
    undocumented = [ResponseMetadata.actual(409), ResponseMetadata.actual(is_default_response=True)]

    results = {
        tuple(aggregate_status_codes(list(d), list(u)))
        for d in permutations(declared)
        for u in permutations(undocumented)
    }
    assert results == {(200, 201, 404, 409, 500)}


def test_empty_inputs_give_empty_result() -> None:
    assert aggregate_status_codes([], []) == []


def test_select_own_explicit_metadata_filters_foreign_and_implicit() -> None:
    method = _method()
    own_first = ResponseMetadata.explicit(method.declaration_id, 404)
    own_second = ResponseMetadata.explicit(method.declaration_id, 200)
    declared = [
        own_first,
        ResponseMetadata.explicit("UsersController", 500),
        ResponseMetadata.implicit(),
        ResponseMetadata.explicit("ApiConventions.Get", 400),
        own_second,
    ]

    assert select_own_explicit_metadata(declared, method) == [own_first, own_second]


def test_select_own_explicit_metadata_respects_overloads() -> None:
    method = _method()
    overload = ActionMethod("GetUser", (Parameter("name", "string"),), declaring_type="UsersController")
    declared = [ResponseMetadata.explicit(overload.declaration_id, 200)]

    assert select_own_explicit_metadata(declared, method) == []
