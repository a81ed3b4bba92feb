#!/usr/bin/env python3
"""
Convention Data Models
=======================
Shared value types for the convention fixer core.

All types are frozen: an invocation reads an immutable snapshot of a method's
declared/inferred response metadata and produces new values, never mutating
its inputs.

Response metadata is modelled as a single record with three flavours:
- explicit: declared by an attribute on some declaration (attached_to set)
- implicit: assumed by the framework when nothing is declared (200)
- actual:   inferred from a method's return paths by static analysis
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

DEFAULT_STATUS_CODE = 200


# =============================================================================
# ENUMS
# =============================================================================

class NameMatchBehavior(Enum):
    """How a method or parameter name is matched against a convention."""
    EXACT = "Exact"
    PREFIX = "Prefix"
    SUFFIX = "Suffix"
    ANY = "Any"


class TypeMatchBehavior(Enum):
    """How a parameter type is matched against a convention parameter."""
    EXACT = "Exact"
    ASSIGNABLE_FROM = "AssignableFrom"
    ANY = "Any"


# =============================================================================
# ACTION METHODS
# =============================================================================

@dataclass(frozen=True)
class Parameter:
    """A method parameter. type_descriptor is an opaque identity token."""
    name: str
    type_descriptor: str = "object"


@dataclass(frozen=True)
class ResponseMetadata:
    """A single documented or inferred response of an action."""
    status_code: int
    is_default_response: bool = False
    is_implicit: bool = False
    attached_to: Optional[str] = None
    # Host handle to the attribute syntax carrying this metadata.
    attribute: Optional[Any] = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self):
        if self.is_implicit and self.attached_to is not None:
            raise ValueError("implicit response metadata cannot be attached to a declaration")

    @classmethod
    def explicit(cls, owner: str, status_code: int, attribute: Any = None,
                 is_default_response: bool = False) -> "ResponseMetadata":
        return cls(
            status_code=status_code,
            is_default_response=is_default_response,
            attached_to=owner,
            attribute=attribute,
        )

    @classmethod
    def implicit(cls, status_code: int = DEFAULT_STATUS_CODE) -> "ResponseMetadata":
        return cls(status_code=status_code, is_implicit=True)

    @classmethod
    def actual(cls, status_code: int = DEFAULT_STATUS_CODE,
               is_default_response: bool = False) -> "ResponseMetadata":
        return cls(status_code=status_code, is_default_response=is_default_response, is_implicit=True)

    @property
    def effective_status_code(self) -> int:
        return DEFAULT_STATUS_CODE if self.is_default_response else self.status_code


@dataclass(frozen=True)
class ActionMethod:
    """
    Read-only view of a controller action.

    declared_metadata holds everything the method is documented with, whether
    attached to the method itself, inherited from its declaring type or a
    referenced convention, or implicit.
    """
    name: str
    parameters: Tuple[Parameter, ...] = ()
    declared_metadata: Tuple[ResponseMetadata, ...] = ()
    declaring_type: str = ""
    location: Optional[Any] = field(default=None, compare=False, hash=False, repr=False)

    @property
    def declaration_id(self) -> str:
        types = ",".join(p.type_descriptor for p in self.parameters)
        prefix = f"{self.declaring_type}." if self.declaring_type else ""
        return f"{prefix}{self.name}({types})"


# =============================================================================
# CONVENTIONS
# =============================================================================

@dataclass(frozen=True)
class ConventionParameter:
    """A parameter of a convention method and the rules it matches by."""
    name: str
    name_match_behavior: NameMatchBehavior = NameMatchBehavior.SUFFIX
    type_match_behavior: TypeMatchBehavior = TypeMatchBehavior.ANY
    type_descriptor: str = "object"


@dataclass(frozen=True)
class ConventionDeclaration:
    """A bodyless convention method that actions match structurally."""
    name: str
    parameters: Tuple[ConventionParameter, ...] = ()
    status_codes: Tuple[int, ...] = ()
    name_match_behavior: NameMatchBehavior = NameMatchBehavior.PREFIX

    def __post_init__(self):
        if list(self.status_codes) != sorted(set(self.status_codes)):
            raise ValueError(f"status codes must be ascending and distinct: {self.status_codes}")

    def to_dict(self):
        return {
            "name": self.name,
            "name_match": self.name_match_behavior.value,
            "parameters": [
                {
                    "name": p.name,
                    "name_match": p.name_match_behavior.value,
                    "type_match": p.type_match_behavior.value,
                    "type": p.type_descriptor,
                }
                for p in self.parameters
            ],
            "status_codes": list(self.status_codes),
        }
