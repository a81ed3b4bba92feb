#!/usr/bin/env python3
"""
Status Code Analyzer
=====================
Reads status codes out of ASP.NET Core source and infers the responses an
action actually produces from its return statements.

Detects:
- Status expressions: 404, StatusCodes.Status404NotFound, (int)HttpStatusCode.NotFound
- ControllerBase helpers: return NotFound(); return Ok(user); return StatusCode(418);
- Result objects: return new NotFoundResult(); return new StatusCodeResult(503);
- Model returns from ActionResult<T> / T actions: return user; (default response)
- Conditionals: return user is null ? NotFound() : Ok(user);

Also provides standard descriptions for reporting.
"""

import logging
import re
from http import HTTPStatus
from typing import Dict, Any, List, Optional

from conventions.models import ResponseMetadata

logger = logging.getLogger("api_conventions.deterministic.status_code_analyzer")


class StatusCodeAnalyzer:
    """
    Infer actual response metadata of controller actions.

    Everything is textual: no compilation or type resolution happens, so
    unknown expressions are ignored rather than guessed.
    """

    # ControllerBase helper methods -> status code
    RESULT_HELPERS = {
        "Ok": 200,
        "Created": 201,
        "CreatedAtAction": 201,
        "CreatedAtRoute": 201,
        "Accepted": 202,
        "AcceptedAtAction": 202,
        "AcceptedAtRoute": 202,
        "NoContent": 204,
        "BadRequest": 400,
        "ValidationProblem": 400,
        "Unauthorized": 401,
        "Forbid": 403,
        "NotFound": 404,
        "Conflict": 409,
        "UnprocessableEntity": 422,
    }

    # IActionResult implementations -> status code
    RESULT_TYPES = {
        "OkResult": 200,
        "OkObjectResult": 200,
        "CreatedResult": 201,
        "CreatedAtActionResult": 201,
        "CreatedAtRouteResult": 201,
        "AcceptedResult": 202,
        "AcceptedAtActionResult": 202,
        "AcceptedAtRouteResult": 202,
        "NoContentResult": 204,
        "BadRequestResult": 400,
        "BadRequestObjectResult": 400,
        "UnauthorizedResult": 401,
        "UnauthorizedObjectResult": 401,
        "ForbidResult": 403,
        "NotFoundResult": 404,
        "NotFoundObjectResult": 404,
        "ConflictResult": 409,
        "ConflictObjectResult": 409,
        "UnprocessableEntityResult": 422,
        "UnprocessableEntityObjectResult": 422,
    }

    # Results whose status code comes from their first argument
    STATUS_CODE_HELPERS = {"StatusCode", "StatusCodeResult"}

    # Results that do not describe an API response (views, files, redirects, ...)
    IGNORED_RESULTS = {
        "View", "PartialView", "Json", "Content", "File", "PhysicalFile", "Redirect",
        "RedirectToAction", "RedirectToRoute", "LocalRedirect", "Challenge", "SignIn",
        "SignOut", "Problem", "ObjectResult", "JsonResult", "ViewResult", "ContentResult",
        "EmptyResult", "FileContentResult", "RedirectResult", "ChallengeResult",
    }

    # Return types whose model values are default (success) responses
    NON_MODEL_RETURN_TYPES = {"IActionResult", "IResult", "ActionResult", "void", "Task", "ValueTask"}

    # A parenthesized type name: (IActionResult), (ActionResult<User>)
    CAST_PATTERN = re.compile(r'\(\s*[A-Za-z_][\w\.]*\s*(?:<[\w\.\s,<>\[\]?]*>)?\s*\??\s*\)')

    STANDARD_CODES = {
        200: {"description": "OK - Request successful", "category": "success"},
        201: {"description": "Created - Resource created successfully", "category": "success"},
        202: {"description": "Accepted - Request accepted for processing", "category": "success"},
        204: {"description": "No Content - Request successful, no response body", "category": "success"},
        400: {"description": "Bad Request - Invalid input or malformed request", "category": "client_error"},
        401: {"description": "Unauthorized - Authentication required or failed", "category": "client_error"},
        403: {"description": "Forbidden - Insufficient permissions", "category": "client_error"},
        404: {"description": "Not Found - Resource doesn't exist", "category": "client_error"},
        409: {"description": "Conflict - Resource already exists or version conflict", "category": "client_error"},
        422: {"description": "Unprocessable Entity - Validation failed", "category": "client_error"},
        500: {"description": "Internal Server Error - Server encountered an error", "category": "server_error"},
    }

    @staticmethod
    def parse_status_expression(expression: str) -> Optional[int]:
        """
        Read a C# status code expression.

        Args:
            expression: e.g. "404", "StatusCodes.Status404NotFound",
                        "(int)HttpStatusCode.NotFound"

        Returns:
            The status code, or None when it cannot be read statically
        """
        expression = expression.strip()
        if not expression:
            return None

        if re.fullmatch(r'\d{3}', expression):
            return int(expression)

        # StatusCodes.Status404NotFound (Microsoft.AspNetCore.Http)
        match = re.fullmatch(r'(?:[\w\.]*\.)?StatusCodes\.Status(\d{3})\w*', expression)
        if match:
            return int(match.group(1))

        # (int)HttpStatusCode.NotFound (System.Net)
        match = re.fullmatch(r'(?:\(\s*int\s*\)\s*)?(?:[\w\.]*\.)?HttpStatusCode\.(\w+)', expression)
        if match:
            member = re.sub(r'(?<=[a-z])(?=[A-Z])', '_', match.group(1)).upper()
            try:
                return HTTPStatus[member].value
            except KeyError:
                return None

        return None

    @staticmethod
    def extract_return_expressions(body: str) -> List[str]:
        """Expressions of every return statement in a method body."""
        expressions = []
        for match in re.finditer(r'\breturn\b', body):
            expression = StatusCodeAnalyzer._read_until_semicolon(body, match.end())
            if expression is not None:
                expressions.append(expression.strip())
        return expressions

    @staticmethod
    def _read_until_semicolon(text: str, start: int) -> Optional[str]:
        depth = 0
        quote = None
        i = start
        while i < len(text):
            char = text[i]
            if quote:
                if char == '\\':
                    i += 2
                    continue
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char in '([{':
                depth += 1
            elif char in ')]}':
                depth -= 1
                if depth < 0:
                    return None
            elif char == ';' and depth == 0:
                return text[start:i]
            i += 1
        return None

    @staticmethod
    def split_conditional(expression: str) -> Optional[List[str]]:
        """Split ``cond ? a : b`` into [a, b]; None when not a conditional."""
        depth = 0
        question = None
        for i, char in enumerate(expression):
            if char in '([{':
                depth += 1
            elif char in ')]}':
                depth -= 1
            elif depth == 0 and char == '?' and question is None:
                following = expression[i + 1:i + 2]
                preceding = expression[i - 1:i] if i else ''
                if following in ('.', '?', '[') or preceding == '?':
                    continue
                question = i
            elif depth == 0 and char == ':' and question is not None:
                return [expression[question + 1:i], expression[i + 1:]]
        return None

    @staticmethod
    def _matching_paren(text: str, start: int) -> int:
        depth = 0
        for i in range(start, len(text)):
            if text[i] == '(':
                depth += 1
            elif text[i] == ')':
                depth -= 1
                if depth == 0:
                    return i
        return -1

    @staticmethod
    def strip_casts(expression: str) -> str:
        """Drop enclosing parentheses and leading ``(Type)`` casts."""
        expression = expression.strip()
        while expression.startswith('('):
            close = StatusCodeAnalyzer._matching_paren(expression, 0)
            if close == -1:
                break
            if close == len(expression) - 1:
                expression = expression[1:-1].strip()
                continue

            cast = StatusCodeAnalyzer.CAST_PATTERN.match(expression)
            rest = expression[close + 1:].lstrip()
            if not cast or cast.end() != close + 1 or not re.match(r'[\w@(]', rest):
                break
            expression = rest
        return expression

    @staticmethod
    def classify_return(expression: str, returns_model: bool) -> List[ResponseMetadata]:
        """
        Response metadata produced by one return expression.

        Args:
            expression: The returned expression (without ``return`` and ``;``)
            returns_model: Whether the action's return type carries a model
                           (ActionResult<T> or T), making plain values default
                           responses
        """
        expression = StatusCodeAnalyzer.strip_casts(expression)
        if expression.startswith("await "):
            expression = StatusCodeAnalyzer.strip_casts(expression[len("await "):])

        if not expression or expression in ("null", "default"):
            return []

        branches = StatusCodeAnalyzer.split_conditional(expression)
        if branches:
            results = []
            for branch in branches:
                for metadata in StatusCodeAnalyzer.classify_return(branch, returns_model):
                    if metadata not in results:
                        results.append(metadata)
            return results

        match = re.match(r'(?:this\.|base\.)?new\s+([\w\.]+)\s*(?:<[^>]*>)?\s*\((.*)\)', expression, re.DOTALL)
        if match:
            return StatusCodeAnalyzer._classify_result(match.group(1).split('.')[-1], match.group(2),
                                                        StatusCodeAnalyzer.RESULT_TYPES, returns_model)

        match = re.match(r'(?:this\.|base\.)?(\w+)\s*(?:<[^>]*>)?\s*\((.*)\)$', expression, re.DOTALL)
        if match:
            return StatusCodeAnalyzer._classify_result(match.group(1), match.group(2),
                                                        StatusCodeAnalyzer.RESULT_HELPERS, returns_model)

        if returns_model:
            return [ResponseMetadata.actual(is_default_response=True)]
        return []

    @staticmethod
    def _classify_result(name: str, arguments: str, known: Dict[str, int],
                         returns_model: bool) -> List[ResponseMetadata]:
        if name in known:
            return [ResponseMetadata.actual(known[name])]

        if name in StatusCodeAnalyzer.STATUS_CODE_HELPERS:
            first = arguments.split(',')[0]
            status_code = StatusCodeAnalyzer.parse_status_expression(first)
            if status_code is None:
                logger.debug(f"Unreadable status code in {name}({arguments})")
                return []
            return [ResponseMetadata.actual(status_code)]

        if name in StatusCodeAnalyzer.IGNORED_RESULTS or name.endswith("Result"):
            return []

        # Any other call or construction is a model value.
        if returns_model:
            return [ResponseMetadata.actual(is_default_response=True)]
        return []

    @staticmethod
    def returns_model(return_type: str) -> bool:
        """True for ActionResult<T>, Task<ActionResult<T>> and plain model types."""
        return_type = re.sub(r'\s+', '', return_type)
        inner = re.fullmatch(r'(?:Task|ValueTask)<(.+)>', return_type)
        if inner:
            return_type = inner.group(1)
        if return_type.startswith("ActionResult<"):
            return True
        return return_type not in StatusCodeAnalyzer.NON_MODEL_RETURN_TYPES

    @staticmethod
    def extract_actual_metadata(body: str, return_type: str = "IActionResult",
                                expression_body: bool = False) -> List[ResponseMetadata]:
        """
        Infer the responses an action produces.

        Args:
            body: Method body text, or the expression of an expression-bodied member
            return_type: Declared return type of the action
            expression_body: True when ``body`` is a single ``=>`` expression

        Returns:
            Distinct response metadata in first-seen order
        """
        returns_model = StatusCodeAnalyzer.returns_model(return_type)
        expressions = [body] if expression_body else StatusCodeAnalyzer.extract_return_expressions(body)

        results: List[ResponseMetadata] = []
        for expression in expressions:
            for metadata in StatusCodeAnalyzer.classify_return(expression, returns_model):
                if metadata not in results:
                    results.append(metadata)

        if results:
            logger.debug(f"Inferred {len(results)} responses: {[m.effective_status_code for m in results]}")
        return results

    @staticmethod
    def get_standard_description(code: int) -> Dict[str, Any]:
        """
        Get standard description for HTTP status code.

        Args:
            code: HTTP status code (e.g., 200, 404)

        Returns:
            Dictionary with description and category
        """
        if code in StatusCodeAnalyzer.STANDARD_CODES:
            return StatusCodeAnalyzer.STANDARD_CODES[code].copy()

        try:
            description = HTTPStatus(code).phrase
        except ValueError:
            description = f"HTTP {code}"
        return {
            "description": description,
            "category": StatusCodeAnalyzer._infer_category(code),
        }

    @staticmethod
    def _infer_category(code: int) -> str:
        """Infer category from status code range."""
        if 100 <= code < 200:
            return "informational"
        elif 200 <= code < 300:
            return "success"
        elif 300 <= code < 400:
            return "redirection"
        elif 400 <= code < 500:
            return "client_error"
        elif 500 <= code < 600:
            return "server_error"
        else:
            return "unknown"
