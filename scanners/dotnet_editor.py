"""
C# editor: materializes convention fix edit intents as source text.

The core engine only describes edits (add this annotation, author this
convention, drop these attributes). This module renders them in ASP.NET Core
attribute syntax and applies them to a controller and its conventions file.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from conventions.aggregation import select_own_explicit_metadata
from conventions.errors import ConventionConflict, FixDeclined
from conventions.models import ConventionDeclaration
from conventions.orchestrator import (
    AddAttributeEdit,
    ConventionReference,
    Edit,
    ExtractConventionEdit,
    ResponseTypeAnnotation,
)

from .dotnet import (
    CONVENTION_METHOD_ATTRIBUTE,
    CONVENTION_TYPE_ATTRIBUTE,
    ActionDeclaration,
    AttributeSyntax,
    DotNetScanner,
    find_block_end,
    parse_members,
    read_type_reference,
)

logger = logging.getLogger("api_conventions.scanners.dotnet_editor")

INDENT = "    "

CONVENTION_USINGS = (
    "using Microsoft.AspNetCore.Mvc;",
    "using Microsoft.AspNetCore.Mvc.ApiExplorer;",
)


@dataclass(frozen=True)
class TextEdit:
    """Replace content[start:end] with new_text."""
    start: int
    end: int
    new_text: str


def apply_text_edits(content: str, edits: List[TextEdit]) -> str:
    """Apply non-overlapping edits; raises FixDeclined on overlap."""
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise FixDeclined(f"overlapping edits at offset {current.start}")

    for edit in reversed(ordered):
        content = content[:edit.start] + edit.new_text + content[edit.end:]
    return content


class ControllerEditor:
    """
    Render and apply edits to ASP.NET Core controllers.

    Rendering mirrors what the analyzers read back, so an applied fix
    re-scans clean and a second extraction reproduces the same text.
    """

    # =========================================================================
    # RENDERING
    # =========================================================================

    @staticmethod
    def render_response_type_attribute(annotation: ResponseTypeAnnotation) -> str:
        return f"[ProducesResponseType({annotation.status_code})]"

    @staticmethod
    def render_convention_reference(reference: ConventionReference) -> str:
        conventions_type = reference.conventions_type
        return f"[ApiConventionMethod(typeof({conventions_type}), nameof({conventions_type}.{reference.method_name}))]"

    @staticmethod
    def render_convention_method(declaration: ConventionDeclaration, indent: str = INDENT * 2) -> str:
        """
        A bodyless convention method, e.g.

            [ProducesResponseType(200)]
            [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Prefix)]
            public static void Post(
                [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Suffix), ApiConventionTypeMatch(ApiConventionTypeMatchBehavior.Any)] object name)
            {
            }
        """
        lines = [f"{indent}[ProducesResponseType({code})]" for code in declaration.status_codes]
        lines.append(
            f"{indent}[ApiConventionNameMatch(ApiConventionNameMatchBehavior.{declaration.name_match_behavior.value})]"
        )

        parameters = []
        for parameter in declaration.parameters:
            parameters.append(
                f"[ApiConventionNameMatch(ApiConventionNameMatchBehavior.{parameter.name_match_behavior.value}), "
                f"ApiConventionTypeMatch(ApiConventionTypeMatchBehavior.{parameter.type_match_behavior.value})] "
                f"{parameter.type_descriptor} {parameter.name}"
            )

        if parameters:
            lines.append(f"{indent}public static void {declaration.name}(")
            lines.append(",\n".join(f"{indent}{INDENT}{p}" for p in parameters) + ")")
        else:
            lines.append(f"{indent}public static void {declaration.name}()")
        lines.append(f"{indent}{{")
        lines.append(f"{indent}}}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def render_conventions_document(conventions_type: str, declarations: List[ConventionDeclaration],
                                    namespace: Optional[str] = None) -> str:
        """A complete conventions file holding ``declarations``."""
        member_indent = INDENT * 2 if namespace else INDENT
        class_indent = INDENT if namespace else ""
        members = "\n".join(
            ControllerEditor.render_convention_method(d, member_indent) for d in declarations
        )

        body = (
            f"{class_indent}public static class {conventions_type}\n"
            f"{class_indent}{{\n"
            f"{members}"
            f"{class_indent}}}\n"
        )
        header = "\n".join(CONVENTION_USINGS) + "\n\n"
        if namespace:
            return f"{header}namespace {namespace}\n{{\n{body}}}\n"
        return header + body

    # =========================================================================
    # CONTROLLER EDITS
    # =========================================================================

    def apply_edit(self, content: str, action: ActionDeclaration, edit: Edit,
                   conventions_type: Optional[str] = None) -> str:
        """
        Apply an edit intent to the controller source holding ``action``.

        Without a convention reference, extraction attaches ``conventions_type``
        to the controller with [ApiConventionType] so the convention matches
        structurally.
        """
        if isinstance(edit, AddAttributeEdit):
            return apply_text_edits(content, self._add_attribute_edits(action, edit))
        if isinstance(edit, ExtractConventionEdit):
            return apply_text_edits(content, self._extract_edits(action, edit, conventions_type))
        raise FixDeclined(f"unsupported edit {type(edit).__name__}")

    @staticmethod
    def _insert_attribute(action: ActionDeclaration, attribute_text: str) -> TextEdit:
        # New attribute lists go last, right above the signature.
        member = action.member
        position = member.signature_start
        return TextEdit(position, position, f"{member.indent}{attribute_text}\n")

    @staticmethod
    def annotation_status_codes(action: ActionDeclaration, edit: AddAttributeEdit) -> List[int]:
        """
        Status codes written by ``edit``.

        Once an action carries its own ProducesResponseType attributes, its
        convention, controller attributes and the implicit 200 no longer
        apply. An action without own attributes therefore gets everything it
        currently documents written out next to the new code.
        """
        method = action.method
        if select_own_explicit_metadata(method.declared_metadata, method):
            return [edit.annotation.status_code]
        codes = set(m.effective_status_code for m in method.declared_metadata)
        codes.add(edit.annotation.status_code)
        return sorted(codes)

    def _add_attribute_edits(self, action: ActionDeclaration, edit: AddAttributeEdit) -> List[TextEdit]:
        if select_own_explicit_metadata(action.method.declared_metadata, action.method):
            return [self._insert_attribute(action, self.render_response_type_attribute(edit.annotation))]

        # A referenced convention stops applying; drop the reference with it.
        edits = self._removal_edits(action, action.member.attributes_named(CONVENTION_METHOD_ATTRIBUTE))
        for code in self.annotation_status_codes(action, edit):
            attribute = self.render_response_type_attribute(ResponseTypeAnnotation(status_code=code))
            edits.append(self._insert_attribute(action, attribute))
        return edits

    def _extract_edits(self, action: ActionDeclaration, edit: ExtractConventionEdit,
                       conventions_type: Optional[str]) -> List[TextEdit]:
        if edit.retained:
            # Attributes left on the action would hide the convention.
            raise FixDeclined("method-specific attributes would hide the convention")

        removals: List[AttributeSyntax] = []
        for metadata in edit.removed:
            if not isinstance(metadata.attribute, AttributeSyntax):
                raise FixDeclined(f"no source attribute for status code {metadata.status_code}")
            removals.append(metadata.attribute)

        if edit.reference is not None:
            # A new reference replaces any existing one.
            removals.extend(action.member.attributes_named(CONVENTION_METHOD_ATTRIBUTE))

        edits = self._removal_edits(action, removals)
        if edit.reference is not None:
            edits.append(self._insert_attribute(action, self.render_convention_reference(edit.reference)))
        else:
            edits.extend(self._convention_type_edits(action, conventions_type))
        return edits

    @staticmethod
    def _convention_type_edits(action: ActionDeclaration, conventions_type: Optional[str]) -> List[TextEdit]:
        if not conventions_type:
            raise FixDeclined("no conventions type to attach the convention to")

        for attribute in action.controller_attributes:
            if attribute.name == CONVENTION_TYPE_ATTRIBUTE and attribute.arguments \
                    and read_type_reference(attribute.arguments[0]) == conventions_type:
                return []

        text = f"{action.controller_indent}[ApiConventionType(typeof({conventions_type}))]\n"
        return [TextEdit(action.controller_start, action.controller_start, text)]

    @staticmethod
    def _removal_edits(action: ActionDeclaration, removals: List[AttributeSyntax]) -> List[TextEdit]:
        by_list: Dict[Tuple[int, int], set] = defaultdict(set)
        for attribute in removals:
            by_list[(attribute.list_start, attribute.list_end)].add(attribute.index)

        edits = []
        for (list_start, list_end), indexes in by_list.items():
            siblings = [a for a in action.member.attributes if a.list_start == list_start]
            kept = [a.text for a in siblings if a.index not in indexes]
            if kept:
                new_text = f"{action.member.indent}[{', '.join(kept)}]\n"
            else:
                new_text = ""
            edits.append(TextEdit(list_start, list_end, new_text))
        return edits

    # =========================================================================
    # CONVENTION DOCUMENTS
    # =========================================================================

    def add_convention(self, document: Optional[str], conventions_type: str,
                       declaration: ConventionDeclaration, namespace: Optional[str] = None) -> str:
        """
        Add ``declaration`` to a conventions document, creating it if needed.

        An identical existing declaration leaves the document unchanged; a
        different one with the same name raises ConventionConflict.
        """
        if not document:
            return self.render_conventions_document(conventions_type, [declaration], namespace)

        existing = DotNetScanner.parse_convention_classes(document).get(conventions_type, [])
        for current in existing:
            if current.name != declaration.name:
                continue
            if current == declaration:
                logger.debug(f"{conventions_type}.{declaration.name} already present")
                return document
            raise ConventionConflict(declaration.name, conventions_type)

        class_match = re.search(
            rf'public\s+static\s+(?:partial\s+)?class\s+{re.escape(conventions_type)}\b', document
        )
        if not class_match:
            # Append the class to an existing file without one.
            class_text = self.render_conventions_document(conventions_type, [declaration])
            class_text = class_text.split("\n\n", 1)[1]
            return document.rstrip("\n") + "\n\n" + class_text

        brace_start = document.find('{', class_match.end())
        brace_end = find_block_end(document, brace_start)
        closing = brace_end - 1

        line_start = document.rfind('\n', 0, class_match.start()) + 1
        class_indent = re.match(r'[ \t]*', document[line_start:]).group(0)
        member_indent = class_indent + INDENT

        members = parse_members(document, brace_start + 1, closing)
        separator = "\n" if members else ""
        insert_at = document.rfind('\n', 0, closing) + 1
        rendered = separator + self.render_convention_method(declaration, member_indent)
        return document[:insert_at] + rendered + document[insert_at:]
