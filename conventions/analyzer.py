#!/usr/bin/env python3
"""
Undocumented Response Analyzer
===============================
Compares the responses an action actually produces with the responses it is
documented with, and reports the difference as diagnostics.

Two diagnostics exist:
- API1004: the action returns a status code that is not documented
- API1005: the action returns a success result (exact code elided) while
           no success status is documented

Both are fixed by the same code fix provider (see orchestrator.py).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .models import ActionMethod, ResponseMetadata

logger = logging.getLogger("api_conventions.analyzer")

STATUS_CODE_KEY = "StatusCode"


@dataclass(frozen=True)
class DiagnosticDescriptor:
    """Static description of a diagnostic rule."""
    id: str
    name: str
    title: str
    message_format: str
    severity: str = "warning"


ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE = DiagnosticDescriptor(
    id="API1004",
    name="ActionReturnsUndocumentedStatusCode",
    title="Action returns undocumented status code",
    message_format="Action method returns undocumented status code '{status_code}'",
)

ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT = DiagnosticDescriptor(
    id="API1005",
    name="ActionReturnsUndocumentedSuccessResult",
    title="Action returns undocumented success result",
    message_format="Action method returns a success result without documenting a success status code",
)

DESCRIPTORS = {
    ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE.id: ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE,
    ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT.id: ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT,
}


@dataclass
class Diagnostic:
    """A reported problem on one action."""
    descriptor: DiagnosticDescriptor
    method: Optional[ActionMethod] = None
    location: Optional[Any] = None
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def message(self) -> str:
        return self.descriptor.message_format.format(
            status_code=self.properties.get(STATUS_CODE_KEY, "")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.descriptor.name,
            "severity": self.descriptor.severity,
            "message": self.message,
            "method": self.method.declaration_id if self.method else None,
            "location": self.location.to_dict() if hasattr(self.location, "to_dict") else self.location,
            "properties": dict(self.properties),
        }


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def declared_covers(declared: Iterable[ResponseMetadata], actual: ResponseMetadata) -> bool:
    """
    True when ``actual`` is documented by one of ``declared``.

    A default (success) result is covered by a declared default response or
    by any declared 2xx code. Any other result needs its exact code declared.
    """
    for metadata in declared:
        if actual.is_default_response:
            if metadata.is_default_response or _is_success(metadata.status_code):
                return True
        elif not metadata.is_default_response and metadata.status_code == actual.status_code:
            return True
    return False


def find_undocumented_metadata(declared: Iterable[ResponseMetadata],
                               actual: Iterable[ResponseMetadata]) -> List[ResponseMetadata]:
    """Actual responses not covered by ``declared``, deduplicated, first seen first."""
    declared = list(declared)
    undocumented = []
    for metadata in actual:
        if metadata in undocumented:
            continue
        if not declared_covers(declared, metadata):
            undocumented.append(metadata)
    return undocumented


def analyze_action(method: ActionMethod, actual: Iterable[ResponseMetadata]) -> List[Diagnostic]:
    """Report every undocumented response of ``method``."""
    diagnostics = []
    for metadata in find_undocumented_metadata(method.declared_metadata, actual):
        if metadata.is_default_response:
            diagnostics.append(Diagnostic(
                descriptor=ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT,
                method=method,
                location=method.location,
            ))
        else:
            diagnostics.append(Diagnostic(
                descriptor=ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE,
                method=method,
                location=method.location,
                properties={STATUS_CODE_KEY: str(metadata.status_code)},
            ))

    if diagnostics:
        logger.debug(f"{method.declaration_id}: {len(diagnostics)} undocumented responses")
    return diagnostics
