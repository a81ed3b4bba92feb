#!/usr/bin/env python3
"""
Convention Matcher
===================
Decides whether an action is covered by a convention declaration.

A method matches when its name matches the convention name under the
declaration's NameMatchBehavior and it has the same number of parameters,
each matching the convention parameter at the same position by name and
type.
"""

from typing import Iterable, Optional

from .models import (
    ActionMethod,
    ConventionDeclaration,
    NameMatchBehavior,
    Parameter,
    ConventionParameter,
    TypeMatchBehavior,
)

OBJECT_TYPE = "object"


def _is_prefix_match(prefix: str, name: str) -> bool:
    # Get matches Get and GetUser, but not Getaway.
    if not name.startswith(prefix):
        return False
    return len(name) == len(prefix) or name[len(prefix)].isupper()


def _is_suffix_match(suffix: str, name: str) -> bool:
    # name matches name and userName, but not username.
    if suffix == name:
        return True
    if not suffix:
        return False

    capitalized = suffix[0].upper() + suffix[1:]
    if not name.endswith(capitalized):
        return False

    start = len(name) - len(capitalized)
    return start > 0 and name[start - 1].islower()


def is_name_match(convention_name: str, name: str, behavior: NameMatchBehavior) -> bool:
    if behavior == NameMatchBehavior.ANY:
        return True
    if behavior == NameMatchBehavior.PREFIX:
        return _is_prefix_match(convention_name, name)
    if behavior == NameMatchBehavior.SUFFIX:
        return _is_suffix_match(convention_name, name)
    return convention_name == name


def is_type_match(convention_type: str, type_descriptor: str, behavior: TypeMatchBehavior) -> bool:
    if behavior == TypeMatchBehavior.ANY:
        return True
    if behavior == TypeMatchBehavior.ASSIGNABLE_FROM:
        return convention_type == OBJECT_TYPE or convention_type == type_descriptor
    return convention_type == type_descriptor


def is_parameter_match(convention_parameter: ConventionParameter, parameter: Parameter) -> bool:
    return (
        is_name_match(convention_parameter.name, parameter.name, convention_parameter.name_match_behavior)
        and is_type_match(convention_parameter.type_descriptor, parameter.type_descriptor,
                          convention_parameter.type_match_behavior)
    )


def is_match(method: ActionMethod, declaration: ConventionDeclaration) -> bool:
    """True when ``method`` is covered by ``declaration``."""
    if not is_name_match(declaration.name, method.name, declaration.name_match_behavior):
        return False

    if len(method.parameters) != len(declaration.parameters):
        return False

    return all(
        is_parameter_match(convention_parameter, parameter)
        for convention_parameter, parameter in zip(declaration.parameters, method.parameters)
    )


def find_matching_convention(method: ActionMethod,
                             declarations: Iterable[ConventionDeclaration]) -> Optional[ConventionDeclaration]:
    """First declaration covering ``method``, in declaration order."""
    for declaration in declarations:
        if is_match(method, declaration):
            return declaration
    return None
