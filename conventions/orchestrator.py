#!/usr/bin/env python3
"""
Transformation Orchestrator
============================
Code fix provider for undocumented-response diagnostics.

For each diagnostic the provider offers one of two fixes:

**Annotate-in-place (Kind A):** add a single ProducesResponseType annotation
for the undocumented status code to the action. Nothing is removed.

**Extract-to-convention (Kind B):** when sibling actions share the action's
naming pattern, author a convention declaration covering every documented
and undocumented status code, drop the action's own annotations that the
convention subsumes, and reference the convention from the action.

Fixes are one-shot and produce edit intents, not text. The host editor
materializes them. A fix that cannot be computed is declined (no edit),
never partially applied.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .analyzer import (
    ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE,
    ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT,
    STATUS_CODE_KEY,
    Diagnostic,
)
from .authoring import ConventionAuthor
from .errors import FixDeclined
from .models import (
    DEFAULT_STATUS_CODE,
    ActionMethod,
    ConventionDeclaration,
    NameMatchBehavior,
    ResponseMetadata,
)
from .naming import derive_convention_method_name, derive_convention_parameter_name

logger = logging.getLogger("api_conventions.orchestrator")


class FixKind(Enum):
    ANNOTATE = "annotate"
    EXTRACT = "extract"


# =============================================================================
# EDIT INTENTS
# =============================================================================

@dataclass(frozen=True)
class ResponseTypeAnnotation:
    """A ProducesResponseType annotation to attach to a declaration."""
    status_code: int
    kind: str = "ResponseType"


@dataclass(frozen=True)
class ConventionReference:
    """Points an action at the convention method that documents it."""
    conventions_type: str
    method_name: str
    name_match_behavior: NameMatchBehavior = NameMatchBehavior.PREFIX


@dataclass(frozen=True)
class AddAttributeEdit:
    method: ActionMethod
    annotation: ResponseTypeAnnotation

    @property
    def kind(self) -> FixKind:
        return FixKind.ANNOTATE


@dataclass(frozen=True)
class ExtractConventionEdit:
    method: ActionMethod
    declaration: ConventionDeclaration
    removed: Tuple[ResponseMetadata, ...] = ()
    retained: Tuple[ResponseMetadata, ...] = ()
    reference: Optional[ConventionReference] = None

    @property
    def kind(self) -> FixKind:
        return FixKind.EXTRACT

    def documented_status_codes(self) -> List[int]:
        codes = set(self.declaration.status_codes)
        codes.update(m.status_code for m in self.retained)
        return sorted(codes)


Edit = Union[AddAttributeEdit, ExtractConventionEdit]


# =============================================================================
# CONTEXT
# =============================================================================

@dataclass
class CodeFixContext:
    """
    Everything a fix needs, read from the host once per request.

    undocumented defaults to the responses named by the method's diagnostics.
    siblings are the other actions of the declaring type.
    """
    diagnostics: List[Diagnostic]
    method: ActionMethod
    siblings: Sequence[ActionMethod] = ()
    undocumented: Optional[Sequence[ResponseMetadata]] = None
    fix_kind: Optional[FixKind] = None
    conventions_type: Optional[str] = None
    all_diagnostics: List[Diagnostic] = field(default_factory=list)

    def undocumented_metadata(self) -> List[ResponseMetadata]:
        if self.undocumented is not None:
            return list(self.undocumented)

        metadata = []
        for diagnostic in self.all_diagnostics or self.diagnostics:
            if diagnostic.method is not None and diagnostic.method != self.method:
                continue
            if diagnostic.id == ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT.id:
                item = ResponseMetadata.actual(is_default_response=True)
            else:
                item = ResponseMetadata.actual(status_code_from_diagnostic(diagnostic))
            if item not in metadata:
                metadata.append(item)
        return metadata


def status_code_from_diagnostic(diagnostic: Diagnostic) -> int:
    """Status code carried by a diagnostic, 200 when absent or unreadable."""
    value = diagnostic.properties.get(STATUS_CODE_KEY)
    if value is None:
        return DEFAULT_STATUS_CODE
    try:
        return int(str(value).strip())
    except ValueError:
        logger.debug(f"Unreadable status code {value!r} on {diagnostic.id}, using {DEFAULT_STATUS_CODE}")
        return DEFAULT_STATUS_CODE


def _convention_parameter_names(method: ActionMethod) -> Tuple[str, ...]:
    return tuple(derive_convention_parameter_name(p.name) for p in method.parameters)


def select_fix_kind(method: ActionMethod, siblings: Sequence[ActionMethod]) -> FixKind:
    """
    EXTRACT when another action shares the method's naming pattern.

    Siblings share the pattern when they derive the same convention name, or
    the same non-empty sequence of convention parameter names.
    """
    name = derive_convention_method_name(method.name)
    parameter_names = _convention_parameter_names(method)

    for sibling in siblings:
        if sibling.declaration_id == method.declaration_id:
            continue
        if derive_convention_method_name(sibling.name) == name:
            return FixKind.EXTRACT
        if parameter_names and _convention_parameter_names(sibling) == parameter_names:
            return FixKind.EXTRACT

    return FixKind.ANNOTATE


# =============================================================================
# CODE ACTIONS
# =============================================================================

class CodeAction(ABC):
    """A single offered fix. Computing it never mutates the context."""

    def __init__(self, context: CodeFixContext, diagnostic: Diagnostic):
        self.context = context
        self.diagnostic = diagnostic

    @property
    @abstractmethod
    def title(self) -> str:
        pass

    @property
    def equivalence_key(self) -> str:
        return self.diagnostic.id

    @abstractmethod
    def compute_edit(self) -> Edit:
        """Produce the edit intent; raise FixDeclined when that is impossible."""
        pass

    def compute_edit_or_none(self) -> Optional[Edit]:
        try:
            return self.compute_edit()
        except FixDeclined as e:
            logger.info(f"Declined '{self.title}' for {self.context.method.declaration_id}: {e}")
            return None


class AddResponseTypeAttributeAction(CodeAction):
    """Kind A: attach one ProducesResponseType annotation."""

    @property
    def title(self) -> str:
        return "Add ProducesResponseType attributes to method"

    def compute_edit(self) -> AddAttributeEdit:
        status_code = status_code_from_diagnostic(self.diagnostic)
        return AddAttributeEdit(
            method=self.context.method,
            annotation=ResponseTypeAnnotation(status_code=status_code),
        )


class ExtractToConventionAction(CodeAction):
    """Kind B: move the action's response documentation into a convention."""

    @property
    def title(self) -> str:
        return "Extract response metadata to API convention"

    def compute_edit(self) -> ExtractConventionEdit:
        method = self.context.method
        declared = list(method.declared_metadata)
        undocumented = self.context.undocumented_metadata()

        plan = ConventionAuthor.plan_extraction(method, declared, undocumented)

        reference = None
        if self.context.conventions_type:
            reference = ConventionReference(
                conventions_type=self.context.conventions_type,
                method_name=plan.declaration.name,
            )

        return ExtractConventionEdit(
            method=method,
            declaration=plan.declaration,
            removed=plan.removed,
            retained=plan.retained,
            reference=reference,
        )


class ResponseTypeCodeFixProvider:
    """
    Registers fixes for undocumented-response diagnostics.

    Usage:
        provider = ResponseTypeCodeFixProvider()
        for action in provider.register_code_fixes(context):
            edit = action.compute_edit_or_none()
    """

    fixable_diagnostic_ids = (
        ACTION_RETURNS_UNDOCUMENTED_STATUS_CODE.id,
        ACTION_RETURNS_UNDOCUMENTED_SUCCESS_RESULT.id,
    )

    def register_code_fixes(self, context: CodeFixContext) -> List[CodeAction]:
        if not context.diagnostics:
            logger.debug("No diagnostics to fix")
            return []

        diagnostic = context.diagnostics[0]
        if diagnostic.id not in self.fixable_diagnostic_ids:
            logger.debug(f"Diagnostic {diagnostic.id} is not fixable")
            return []

        kind = context.fix_kind or select_fix_kind(context.method, context.siblings)
        if kind == FixKind.EXTRACT:
            return [ExtractToConventionAction(context, diagnostic)]
        return [AddResponseTypeAttributeAction(context, diagnostic)]
