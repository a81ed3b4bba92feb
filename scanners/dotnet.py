"""C#/.NET scanner: ASP.NET Core controllers and API convention classes. Also exports ConventionIndex."""
from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from conventions.analyzer import analyze_action
from conventions.matching import find_matching_convention
from conventions.models import (
    ActionMethod,
    ConventionDeclaration,
    ConventionParameter,
    NameMatchBehavior,
    Parameter,
    ResponseMetadata,
    TypeMatchBehavior,
)

from .base import BaseScanner, Language, ScanResult, SourceSpan
from .deterministic.status_code_analyzer import StatusCodeAnalyzer

logger = logging.getLogger("api_conventions.scanners.dotnet")

RESPONSE_TYPE_ATTRIBUTE = "ProducesResponseType"
DEFAULT_RESPONSE_TYPE_ATTRIBUTE = "ProducesDefaultResponseType"
NAME_MATCH_ATTRIBUTE = "ApiConventionNameMatch"
TYPE_MATCH_ATTRIBUTE = "ApiConventionTypeMatch"
CONVENTION_METHOD_ATTRIBUTE = "ApiConventionMethod"
CONVENTION_TYPE_ATTRIBUTE = "ApiConventionType"
NON_ACTION_ATTRIBUTE = "NonAction"

DEFAULT_CONVENTIONS_TYPE = "DefaultApiConventions"

MEMBER_MODIFIERS = (
    "public", "private", "protected", "internal", "static", "async",
    "virtual", "override", "sealed", "new", "abstract", "extern", "unsafe",
)

MEMBER_PATTERN = re.compile(
    r'^([ \t]*)((?:(?:' + '|'.join(MEMBER_MODIFIERS) + r')\s+)+)'
    r'([\w\.]+(?:<[^()=;{}\n]*>)?(?:\[\])*\??)\s+(\w+)\s*(?:<[\w\s,]+>)?\s*\(',
    re.MULTILINE,
)


# =============================================================================
# SYNTAX
# =============================================================================

@dataclass
class AttributeSyntax:
    """One attribute inside a single-line ``[...]`` attribute list."""
    name: str
    arguments: List[str]
    text: str
    list_start: int
    list_end: int
    index: int


@dataclass
class MemberDeclaration:
    """A method declaration read from a class body."""
    name: str
    return_type: str
    modifiers: List[str]
    parameters: List[Dict[str, Any]]
    attributes: List[AttributeSyntax]
    signature_start: int
    indent: str
    body: str
    expression_body: bool
    line_number: int
    end: int

    def attributes_named(self, name: str) -> List[AttributeSyntax]:
        return [a for a in self.attributes if a.name == name]


@dataclass
class ActionDeclaration:
    """A controller action: its core view plus the syntax needed to edit it."""
    method: ActionMethod
    member: MemberDeclaration
    controller: str
    namespace: Optional[str]
    actual_metadata: List[ResponseMetadata] = field(default_factory=list)
    readable: bool = True
    controller_start: int = 0
    controller_indent: str = ""
    controller_attributes: List[AttributeSyntax] = field(default_factory=list)


def find_block_end(content: str, brace_start: int) -> int:
    """Offset just past the brace matching the one at ``brace_start``."""
    brace_depth = 1
    brace_end = brace_start + 1
    while brace_depth > 0 and brace_end < len(content):
        if content[brace_end] == '{':
            brace_depth += 1
        elif content[brace_end] == '}':
            brace_depth -= 1
        brace_end += 1
    return brace_end


def find_paren_end(content: str, paren_start: int) -> int:
    """Offset of the parenthesis closing the one at ``paren_start``."""
    depth = 0
    for i in range(paren_start, len(content)):
        if content[i] == '(':
            depth += 1
        elif content[i] == ')':
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_top_level(text: str, separator: str = ',') -> List[str]:
    """Split on ``separator`` outside of brackets, generics and strings."""
    parts = []
    current = ""
    depth = 0
    quote = None

    for char in text:
        if quote:
            current += char
            if char == quote:
                quote = None
            continue
        if char in ('"', "'"):
            quote = char
        elif char in '(<[{':
            depth += 1
        elif char in ')>]}':
            depth -= 1
        elif char == separator and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += char

    if current.strip():
        parts.append(current.strip())

    return parts


def normalize_attribute_name(name: str) -> str:
    """Microsoft.AspNetCore.Mvc.ProducesResponseTypeAttribute<T> -> ProducesResponseType"""
    name = re.sub(r'<.*>$', '', name.strip())
    name = name.split('.')[-1]
    if name.endswith("Attribute") and name != "Attribute":
        name = name[:-len("Attribute")]
    return name


def parse_attribute_list(inner: str, list_start: int = 0, list_end: int = 0) -> List[AttributeSyntax]:
    """Parse the text between ``[`` and ``]`` into attributes."""
    attributes = []
    for index, text in enumerate(split_top_level(inner)):
        match = re.match(r'([\w\.]+(?:<[^>]*>)?)\s*(?:\((.*)\))?\s*$', text, re.DOTALL)
        if not match:
            continue
        arguments = split_top_level(match.group(2)) if match.group(2) else []
        attributes.append(AttributeSyntax(
            name=normalize_attribute_name(match.group(1)),
            arguments=arguments,
            text=text,
            list_start=list_start,
            list_end=list_end,
            index=index,
        ))
    return attributes


def attributes_above(content: str, line_start: int) -> List[AttributeSyntax]:
    """
    Attribute lists on the lines directly above ``line_start``, top to bottom.

    Only single-line lists are read; a blank line, comment or any other code
    ends the block.
    """
    attributes: List[AttributeSyntax] = []
    end = line_start
    while end > 0:
        start = content.rfind('\n', 0, end - 1) + 1
        line = content[start:end].strip()
        if not (line.startswith('[') and line.endswith(']')):
            break
        # Skip target specifiers like [return: ...]
        inner = re.sub(r'^\w+\s*:\s*', '', line[1:-1].strip())
        attributes = parse_attribute_list(inner, start, end) + attributes
        end = start
    return attributes


def parse_parameter(param: str) -> Optional[Dict[str, Any]]:
    """Parse a single parameter, keeping its attributes."""
    attribute_texts = re.findall(r'\[([^\]]+)\]', param)
    attributes = []
    for text in attribute_texts:
        attributes.extend(parse_attribute_list(text))

    # Remove attributes and parameter modifiers for type parsing
    clean_param = re.sub(r'\[[^\]]+\]\s*', '', param).strip()
    clean_param = re.sub(r'^(?:this|ref|out|in|params)\s+', '', clean_param)

    type_pattern = r'^([\w<>,\[\]\?\.\s]+?)\s+(\w+)(?:\s*=\s*(.+))?$'
    match = re.match(type_pattern, clean_param, re.DOTALL)
    if not match:
        return None

    return {
        "name": match.group(2),
        "type": re.sub(r'\s+', '', match.group(1)),
        "default": match.group(3),
        "attributes": attributes,
    }


def parse_members(content: str, body_start: int, body_end: int) -> List[MemberDeclaration]:
    """Read the method declarations directly inside a class body."""
    members = []
    pos = body_start

    while True:
        match = MEMBER_PATTERN.search(content, pos, body_end)
        if not match:
            break

        paren_start = match.end() - 1
        paren_end = find_paren_end(content, paren_start)
        if paren_end == -1:
            break

        # Skip generic constraints up to the body
        rest = content[paren_end + 1:body_end]
        body_match = re.match(r'\s*(?:where[^{;=]*)?(\{|=>|;)', rest)
        if not body_match:
            pos = match.end()
            continue

        marker = paren_end + 1 + body_match.start(1)
        if body_match.group(1) == '{':
            end = find_block_end(content, marker)
            body = content[marker + 1:end - 1]
            expression_body = False
        elif body_match.group(1) == '=>':
            statement_end = content.find(';', marker)
            end = statement_end + 1 if statement_end != -1 else body_end
            body = content[marker + 2:end - 1].strip()
            expression_body = True
        else:
            end = marker + 1
            body = ""
            expression_body = False

        signature_start = match.start()
        params = []
        for param_text in split_top_level(content[paren_start + 1:paren_end]):
            info = parse_parameter(param_text)
            if info:
                params.append(info)

        members.append(MemberDeclaration(
            name=match.group(4),
            return_type=re.sub(r'\s+', '', match.group(3)),
            modifiers=match.group(2).split(),
            parameters=params,
            attributes=attributes_above(content, signature_start),
            signature_start=signature_start,
            indent=match.group(1),
            body=body,
            expression_body=expression_body,
            line_number=content[:signature_start].count('\n') + 1,
            end=end,
        ))
        pos = end

    return members


def read_response_status_code(attribute: AttributeSyntax) -> Optional[int]:
    """
    Status code of a ProducesResponseType attribute.

    Handles (404), (typeof(T), 404), (StatusCodes.Status404NotFound) and the
    named StatusCode = 404 form.
    """
    for argument in attribute.arguments:
        named = re.match(r'StatusCode\s*=\s*(.+)$', argument)
        if named:
            return StatusCodeAnalyzer.parse_status_expression(named.group(1))

    for argument in attribute.arguments:
        if argument.startswith("typeof") or re.match(r'\w+\s*=', argument):
            continue
        return StatusCodeAnalyzer.parse_status_expression(argument)

    return None


def read_type_reference(argument: str) -> Optional[str]:
    match = re.match(r'typeof\s*\(\s*(?:[\w\.]*\.)?(\w+)\s*\)$', argument.strip())
    return match.group(1) if match else None


def read_member_reference(argument: str) -> Optional[str]:
    argument = argument.strip()
    match = re.match(r'nameof\s*\(\s*(?:[\w\.]*\.)?(\w+)\s*\)$', argument)
    if match:
        return match.group(1)
    match = re.match(r'"(\w+)"$', argument)
    return match.group(1) if match else None


def _read_behavior(attributes: List[AttributeSyntax], attribute_name: str, enum_type, default):
    for attribute in attributes:
        if attribute.name != attribute_name or not attribute.arguments:
            continue
        member = attribute.arguments[0].split('.')[-1].strip()
        for behavior in enum_type:
            if behavior.value == member:
                return behavior
    return default


# =============================================================================
# CONVENTION INDEX
# =============================================================================

def _default_conventions() -> List[ConventionDeclaration]:
    id_parameter = ConventionParameter("id", NameMatchBehavior.SUFFIX, TypeMatchBehavior.ANY)
    model_parameter = ConventionParameter("model", NameMatchBehavior.ANY, TypeMatchBehavior.ANY)

    declarations = []
    for name in ("Get", "Find"):
        declarations.append(ConventionDeclaration(name, (id_parameter,), (200, 404)))
    for name in ("Post", "Create"):
        declarations.append(ConventionDeclaration(name, (model_parameter,), (201, 400)))
    for name in ("Put", "Edit", "Update"):
        declarations.append(ConventionDeclaration(name, (id_parameter, model_parameter), (204, 400, 404)))
    declarations.append(ConventionDeclaration("Delete", (id_parameter,), (200, 400, 404)))
    return declarations


class ConventionIndex:
    """
    Convention declarations by type name, read from static convention classes.

    DefaultApiConventions is always present.
    """

    def __init__(self):
        self._types: Dict[str, List[ConventionDeclaration]] = {
            DEFAULT_CONVENTIONS_TYPE: _default_conventions(),
        }
        self._sources: Dict[str, Set[str]] = {}

    def add(self, type_name: str, declarations: List[ConventionDeclaration]):
        self._types[type_name] = list(declarations)

    def get(self, type_name: str) -> List[ConventionDeclaration]:
        return list(self._types.get(type_name, []))

    def find(self, type_name: str, method_name: str) -> Optional[ConventionDeclaration]:
        for declaration in self._types.get(type_name, []):
            if declaration.name == method_name:
                return declaration
        return None

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._types

    def index_content(self, file_path: str, content: str):
        """(Re)index the convention classes declared in one file."""
        for type_name in self._sources.pop(file_path, set()):
            self._types.pop(type_name, None)

        found = DotNetScanner.parse_convention_classes(content)
        for type_name, declarations in found.items():
            self.add(type_name, declarations)
        if found:
            self._sources[file_path] = set(found)
            logger.debug(f"Indexed conventions {sorted(found)} from {file_path}")


# =============================================================================
# SCANNER
# =============================================================================

class DotNetScanner(BaseScanner):
    """
    .NET/C# scanner with stateful controller parsing.

    For every public action of a controller it reads the declared response
    metadata (attributes on the action, a referenced convention method,
    attributes on the controller, a matching convention from
    [ApiConventionType], or the implicit 200) and the responses its return
    statements produce, then runs the undocumented-response analyzer.
    """

    CONTROLLER_PATTERN = (
        r'public\s+(?:abstract\s+|sealed\s+)?(?:partial\s+)?class\s+(\w+)\s*:\s*'
        r'(?:Microsoft\.AspNetCore\.Mvc\.)?(Controller|ControllerBase|ApiController|ODataController|\w+Controller)\b'
    )

    def __init__(self, convention_index: Optional[ConventionIndex] = None):
        super().__init__()
        self.convention_index = convention_index or ConventionIndex()

    @property
    def language(self) -> Language:
        return Language.DOTNET

    @property
    def extensions(self) -> Set[str]:
        return {".cs"}

    def scan_file(self, file_path: Path, content: str, lines: List[str]) -> ScanResult:
        result = ScanResult(file_path=str(file_path), language=self.language)
        result.conventions = self.parse_convention_classes(content)

        for action in self.parse_actions(file_path, content):
            result.actions.append(action)
            if not action.readable:
                result.skipped_methods.append(action.method.declaration_id)
                continue
            result.diagnostics.extend(analyze_action(action.method, action.actual_metadata))

        return result

    def parse_actions(self, file_path: Path, content: str) -> List[ActionDeclaration]:
        """Every public action of every controller in ``content``."""
        actions = []
        namespace_match = re.search(r'^\s*namespace\s+([\w\.]+)', content, re.MULTILINE)
        namespace = namespace_match.group(1) if namespace_match else None

        for class_match in re.finditer(self.CONTROLLER_PATTERN, content, re.MULTILINE):
            controller_name = class_match.group(1)

            brace_start = content.find('{', class_match.end())
            if brace_start == -1:
                continue
            brace_end = find_block_end(content, brace_start)

            class_line_start = content.rfind('\n', 0, class_match.start()) + 1
            class_attributes = attributes_above(content, class_line_start)

            for member in parse_members(content, brace_start + 1, brace_end - 1):
                if not self._is_action(member, controller_name):
                    continue
                action = self._build_action(file_path, controller_name, namespace, class_attributes, member)
                action.controller_start = class_line_start
                action.controller_indent = re.match(r"[ \t]*", content[class_line_start:]).group(0)
                action.controller_attributes = class_attributes
                actions.append(action)

        return actions

    @staticmethod
    def _is_action(member: MemberDeclaration, controller_name: str) -> bool:
        if "public" not in member.modifiers or "static" in member.modifiers:
            return False
        if member.name == controller_name or member.name == "Dispose":
            return False
        return not member.attributes_named(NON_ACTION_ATTRIBUTE)

    def _build_action(self, file_path: Path, controller_name: str, namespace: Optional[str],
                      class_attributes: List[AttributeSyntax], member: MemberDeclaration) -> ActionDeclaration:
        parameters = tuple(Parameter(p["name"], p["type"]) for p in member.parameters)
        method = ActionMethod(
            name=member.name,
            parameters=parameters,
            declaring_type=controller_name,
            location=SourceSpan(str(file_path), member.line_number, member.signature_start, member.end),
        )

        declared, readable = self._declared_metadata(method, member, controller_name, class_attributes)
        method = dataclasses.replace(method, declared_metadata=tuple(declared))

        actual = StatusCodeAnalyzer.extract_actual_metadata(
            member.body, member.return_type, member.expression_body
        )
        if member.attributes_named(DEFAULT_RESPONSE_TYPE_ATTRIBUTE):
            actual = [m for m in actual if not m.is_default_response]

        return ActionDeclaration(
            method=method,
            member=member,
            controller=controller_name,
            namespace=namespace,
            actual_metadata=actual,
            readable=readable,
        )

    def _declared_metadata(self, method: ActionMethod, member: MemberDeclaration, controller_name: str,
                           class_attributes: List[AttributeSyntax]) -> Tuple[List[ResponseMetadata], bool]:
        """
        Resolve what an action is documented with.

        Attributes on the action win. Without any, a referenced convention
        method applies, then the controller's attributes, then a convention
        type on the controller, then the implicit 200.
        """
        owner = method.declaration_id
        declared, readable = self._read_response_attributes(member.attributes, owner)
        if not readable:
            return [], False
        if declared:
            return declared, True

        for attribute in member.attributes_named(CONVENTION_METHOD_ATTRIBUTE):
            if len(attribute.arguments) < 2:
                return [], False
            type_name = read_type_reference(attribute.arguments[0])
            method_name = read_member_reference(attribute.arguments[1])
            convention = self.convention_index.find(type_name, method_name) if type_name and method_name else None
            if convention is None:
                logger.debug(f"{owner}: unresolved convention {attribute.text}")
                return [], False
            convention_owner = f"{type_name}.{convention.name}"
            declared.extend(ResponseMetadata.explicit(convention_owner, code) for code in convention.status_codes)

        if declared:
            return declared, True

        declared, readable = self._read_response_attributes(class_attributes, controller_name)
        if not readable:
            return [], False
        if declared:
            return declared, True

        for attribute in class_attributes:
            if attribute.name != CONVENTION_TYPE_ATTRIBUTE or not attribute.arguments:
                continue
            type_name = read_type_reference(attribute.arguments[0])
            if type_name not in self.convention_index:
                logger.debug(f"{controller_name}: unresolved convention type {attribute.text}")
                return [], False
            convention = find_matching_convention(method, self.convention_index.get(type_name))
            if convention is not None:
                convention_owner = f"{type_name}.{convention.name}"
                return [ResponseMetadata.explicit(convention_owner, code) for code in convention.status_codes], True

        return [ResponseMetadata.implicit()], True

    @staticmethod
    def _read_response_attributes(attributes: List[AttributeSyntax],
                                  owner: str) -> Tuple[List[ResponseMetadata], bool]:
        declared = []
        for attribute in attributes:
            if attribute.name != RESPONSE_TYPE_ATTRIBUTE:
                continue
            status_code = read_response_status_code(attribute)
            if status_code is None:
                logger.debug(f"{owner}: unreadable status code in [{attribute.text}]")
                return [], False
            declared.append(ResponseMetadata.explicit(owner, status_code, attribute=attribute))
        return declared, True

    @staticmethod
    def parse_convention_classes(content: str) -> Dict[str, List[ConventionDeclaration]]:
        """Convention methods of every static class in ``content``, by class name."""
        found: Dict[str, List[ConventionDeclaration]] = {}

        for class_match in re.finditer(r'public\s+static\s+(?:partial\s+)?class\s+(\w+)', content):
            brace_start = content.find('{', class_match.end())
            if brace_start == -1:
                continue
            brace_end = find_block_end(content, brace_start)

            declarations = []
            for member in parse_members(content, brace_start + 1, brace_end - 1):
                if "static" not in member.modifiers:
                    continue
                declaration = DotNetScanner.read_convention(member)
                if declaration is not None:
                    declarations.append(declaration)

            if declarations:
                found[class_match.group(1)] = declarations

        return found

    @staticmethod
    def read_convention(member: MemberDeclaration) -> Optional[ConventionDeclaration]:
        """A convention declaration from a static method, None if it is not one."""
        codes = set()
        for attribute in member.attributes_named(RESPONSE_TYPE_ATTRIBUTE):
            status_code = read_response_status_code(attribute)
            if status_code is None:
                return None
            codes.add(status_code)

        is_convention = codes or member.attributes_named(NAME_MATCH_ATTRIBUTE)
        if not is_convention:
            return None

        parameters = []
        for param in member.parameters:
            parameters.append(ConventionParameter(
                name=param["name"],
                name_match_behavior=_read_behavior(param["attributes"], NAME_MATCH_ATTRIBUTE,
                                                   NameMatchBehavior, NameMatchBehavior.EXACT),
                type_match_behavior=_read_behavior(param["attributes"], TYPE_MATCH_ATTRIBUTE,
                                                   TypeMatchBehavior, TypeMatchBehavior.ASSIGNABLE_FROM),
                type_descriptor=param["type"],
            ))

        return ConventionDeclaration(
            name=member.name,
            parameters=tuple(parameters),
            status_codes=tuple(sorted(codes)),
            name_match_behavior=_read_behavior(member.attributes, NAME_MATCH_ATTRIBUTE,
                                               NameMatchBehavior, NameMatchBehavior.EXACT),
        )
