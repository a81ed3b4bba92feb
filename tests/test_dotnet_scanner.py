"""Tests for scanners.dotnet."""

from __future__ import annotations

import textwrap
from pathlib import Path

from conventions.models import ConventionDeclaration, ConventionParameter, NameMatchBehavior, TypeMatchBehavior
from scanners.base import Language
from scanners.dotnet import (
    ConventionIndex,
    DotNetScanner,
    parse_attribute_list,
    read_response_status_code,
)

USERS_CONTROLLER = textwrap.dedent("""
    using Microsoft.AspNetCore.Mvc;

    namespace Shop.Controllers
    {
        [ApiController]
        [Route("api/[controller]")]
        public class UsersController : ControllerBase
        {
            private readonly IUserRepository _repo;

            public UsersController(IUserRepository repo)
            {
                _repo = repo;
            }

            [HttpGet("{id}")]
            [ProducesResponseType(200)]
            public ActionResult<User> GetUser(int id)
            {
                var user = _repo.Find(id);
                if (user == null)
                {
                    return NotFound();
                }
                return user;
            }

            [HttpPost]
            public IActionResult PostUser([FromBody] string userName)
            {
                return Ok();
            }

            [NonAction]
            public IActionResult Helper() => NotFound();

            private IActionResult Hidden() => NotFound();
        }
    }
""")


def _scan(content: str, index: ConventionIndex = None):
    scanner = DotNetScanner(index)
    return scanner.scan_file(Path("Controllers/UsersController.cs"), content, content.split("\n"))


def test_scan_file_finds_public_actions_only() -> None:
    result = _scan(USERS_CONTROLLER)

    assert result.language == Language.DOTNET
    assert [a.method.name for a in result.actions] == ["GetUser", "PostUser"]
    assert all(a.namespace == "Shop.Controllers" for a in result.actions)
    assert result.actions[0].method.declaration_id == "UsersController.GetUser(int)"


def test_scan_file_reports_undocumented_status_code() -> None:
    result = _scan(USERS_CONTROLLER)

    assert [(d.id, d.properties) for d in result.diagnostics] == [("API1004", {"StatusCode": "404"})]
    diagnostic = result.diagnostics[0]
    assert diagnostic.method.name == "GetUser"
    assert diagnostic.location.line_number == 19


def test_action_without_attributes_is_documented_with_implicit_200() -> None:
    result = _scan(USERS_CONTROLLER)
    post_user = result.actions[1]

    assert [(m.status_code, m.is_implicit) for m in post_user.method.declared_metadata] == [(200, True)]
    assert post_user.method.parameters[0].name == "userName"


def test_unreadable_status_code_skips_the_action() -> None:
    content = USERS_CONTROLLER.replace("[ProducesResponseType(200)]", "[ProducesResponseType(Codes.Ok)]")

    result = _scan(content)

    assert result.skipped_methods == ["UsersController.GetUser(int)"]
    assert result.diagnostics == []


def test_controller_attributes_apply_when_action_has_none() -> None:
    content = USERS_CONTROLLER.replace("[ApiController]", "[ApiController, ProducesResponseType(400)]")

    post_user = _scan(content).actions[1]

    assert [(m.status_code, m.attached_to) for m in post_user.method.declared_metadata] == [(400, "UsersController")]


def test_default_conventions_apply_through_convention_type() -> None:
    content = textwrap.dedent("""
        [ApiConventionType(typeof(DefaultApiConventions))]
        public class ItemsController : ControllerBase
        {
            public IActionResult GetItem(int id)
            {
                if (id == 0) return BadRequest();
                return Ok();
            }

            public IActionResult Archive(int id)
            {
                return NoContent();
            }
        }
    """)

    result = _scan(content)

    get_item = result.actions[0]
    assert sorted(m.status_code for m in get_item.method.declared_metadata) == [200, 404]
    assert {m.attached_to for m in get_item.method.declared_metadata} == {"DefaultApiConventions.Get"}
    assert [(d.method.name, d.properties) for d in result.diagnostics] == [
        ("GetItem", {"StatusCode": "400"}),
        ("Archive", {"StatusCode": "204"}),
    ]


def test_produces_default_response_type_suppresses_default_results() -> None:
    content = textwrap.dedent("""
        public class ItemsController : ControllerBase
        {
            [ProducesDefaultResponseType]
            [ProducesResponseType(404)]
            public ActionResult<Item> Get(int id)
            {
                return _items.Find(id);
            }
        }
    """)

    assert _scan(content).diagnostics == []


POST_CONVENTIONS = textwrap.dedent("""
    public static class ApiConventions
    {
        [ProducesResponseType(201)]
        [ProducesResponseType(400)]
        [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Prefix)]
        public static void Post(
            [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Suffix), ApiConventionTypeMatch(ApiConventionTypeMatchBehavior.Any)] object name)
        {
        }
    }
""")


def _post_conventions_index() -> ConventionIndex:
    index = ConventionIndex()
    index.index_content("Conventions/ApiConventions.cs", POST_CONVENTIONS)
    return index


def test_convention_method_reference_is_resolved_from_the_index() -> None:
    controller = textwrap.dedent("""
        public class UsersController : ControllerBase
        {
            [ApiConventionMethod(typeof(ApiConventions), nameof(ApiConventions.Post))]
            public IActionResult PostUser(string userName)
            {
                if (userName == "") return BadRequest();
                if (Exists(userName)) return Conflict();
                return Created("", userName);
            }
        }
    """)

    result = _scan(controller, _post_conventions_index())

    declared = result.actions[0].method.declared_metadata
    assert sorted(m.status_code for m in declared) == [201, 400]
    assert {m.attached_to for m in declared} == {"ApiConventions.Post"}
    assert [d.properties for d in result.diagnostics] == [{"StatusCode": "409"}]


def test_action_attributes_hide_a_referenced_convention() -> None:
    controller = textwrap.dedent("""
        public class UsersController : ControllerBase
        {
            [ApiConventionMethod(typeof(ApiConventions), nameof(ApiConventions.Post))]
            [ProducesResponseType(409)]
            public IActionResult PostUser(string userName)
            {
                if (userName == "") return BadRequest();
                if (Exists(userName)) return Conflict();
                return Created("", userName);
            }
        }
    """)

    result = _scan(controller, _post_conventions_index())

    declared = result.actions[0].method.declared_metadata
    assert [m.status_code for m in declared] == [409]
    assert [d.properties for d in result.diagnostics] == [
        {"StatusCode": "400"},
        {"StatusCode": "201"},
    ]


def test_unresolved_convention_reference_skips_the_action() -> None:
    controller = textwrap.dedent("""
        public class UsersController : ControllerBase
        {
            [ApiConventionMethod(typeof(Missing), nameof(Missing.Post))]
            public IActionResult PostUser(string userName)
            {
                return NotFound();
            }
        }
    """)

    result = _scan(controller)

    assert result.skipped_methods == ["UsersController.PostUser(string)"]


def test_parse_convention_classes_reads_behaviors() -> None:
    content = textwrap.dedent("""
        public static class ApiConventions
        {
            [ProducesResponseType(200)]
            [ProducesResponseType(404)]
            [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Prefix)]
            public static void Find(
                [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Suffix), ApiConventionTypeMatch(ApiConventionTypeMatchBehavior.Any)] object id)
            {
            }

            public static string Helper(string value) => value;
        }
    """)

    found = DotNetScanner.parse_convention_classes(content)

    assert found == {
        "ApiConventions": [
            ConventionDeclaration(
                "Find",
                (ConventionParameter("id", NameMatchBehavior.SUFFIX, TypeMatchBehavior.ANY, "object"),),
                (200, 404),
                NameMatchBehavior.PREFIX,
            )
        ]
    }


def test_convention_index_reindexes_a_file() -> None:
    index = ConventionIndex()
    index.index_content("A.cs", "public static class First\n{\n    [ProducesResponseType(200)]\n    public static void Get() {}\n}\n")
    assert "First" in index

    index.index_content("A.cs", "public static class Second\n{\n    [ProducesResponseType(200)]\n    public static void Get() {}\n}\n")

    assert "First" not in index
    assert index.find("Second", "Get").status_codes == (200,)
    assert "DefaultApiConventions" in index


def test_read_response_status_code_forms() -> None:
    def read(text: str):
        return read_response_status_code(parse_attribute_list(text)[0])

    assert read("ProducesResponseType(404)") == 404
    assert read("ProducesResponseType(typeof(User), StatusCodes.Status200OK)") == 200
    assert read("ProducesResponseType(StatusCode = 409, Type = typeof(Error))") == 409
    assert read("ProducesResponseTypeAttribute(201)") == 201
    assert read("ProducesResponseType(Codes.Ok)") is None
