"""End-to-end tests for scanners.project."""

from __future__ import annotations

from conventions.orchestrator import FixKind
from scanners.project import FixOptions
from tests._fixtures.project_builder import ProjectBuilder

USERS_CONTROLLER = """
    using Microsoft.AspNetCore.Mvc;

    namespace Shop.Controllers
    {
        [ApiController]
        public class UsersController : ControllerBase
        {
            [HttpPost]
            [ProducesResponseType(201)]
            public IActionResult PostUser(string userName)
            {
                if (userName == null) return BadRequest();
                return Created("", userName);
            }

            [HttpPut]
            [ProducesResponseType(204)]
            public IActionResult PutUser(string userName)
            {
                return NoContent();
            }
        }
    }
"""

ORDERS_CONTROLLER = """
    using Microsoft.AspNetCore.Mvc;

    namespace Shop.Controllers
    {
        public class OrdersController : ControllerBase
        {
            [ProducesResponseType(201)]
            public IActionResult PostOrder(string orderName)
            {
                if (orderName == null) return NotFound();
                return Created("", orderName);
            }

            [ProducesResponseType(204)]
            public IActionResult PutOrder(string orderName)
            {
                return NoContent();
            }
        }
    }
"""

REPORTS_CONTROLLER = """
    public class ReportsController : ControllerBase
    {
        [ProducesResponseType(200)]
        public IActionResult Summary(int year)
        {
            if (year < 2000) return BadRequest();
            if (year > 2100) return NotFound();
            return Ok();
        }
    }
"""


def test_scan_reports_diagnostics_and_summary(project_builder: ProjectBuilder) -> None:
    project_builder.write({
        "Controllers/UsersController.cs": USERS_CONTROLLER,
        "Controllers/ReportsController.cs": REPORTS_CONTROLLER,
        "bin/Debug/Generated.cs": REPORTS_CONTROLLER,
        "README.md": "# Shop",
    })

    scanner = project_builder.scan()
    summary = scanner.summary()

    assert summary["total"] == 3
    assert summary["actions"] == 3
    assert summary["files_scanned"] == 2
    assert summary["by_diagnostic"] == {"API1004": 3}
    assert summary["by_status_code"] == {"400": 2, "404": 1}


def test_parallel_scan_matches_sequential_scan(project_builder: ProjectBuilder) -> None:
    project_builder.write({
        "Controllers/UsersController.cs": USERS_CONTROLLER,
        "Controllers/ReportsController.cs": REPORTS_CONTROLLER,
        "Controllers/OrdersController.cs": ORDERS_CONTROLLER,
    })

    sequential = project_builder.scan()
    parallel = project_builder.scanner()
    parallel.scan_parallel()

    assert [d.to_dict() for d in parallel.diagnostics] == [d.to_dict() for d in sequential.diagnostics]


def test_fix_extracts_convention_for_sibling_actions(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})

    report = project_builder.scanner().fix()

    assert [(f.kind, f.convention, f.status_codes) for f in report.applied] == [
        (FixKind.EXTRACT, "ApiConventions.Post", [201, 400]),
    ]
    controller = project_builder.read("Controllers/UsersController.cs")
    assert "[ApiConventionMethod(typeof(ApiConventions), nameof(ApiConventions.Post))]" in controller
    assert "[ProducesResponseType(201)]" not in controller
    conventions = project_builder.read("Controllers/ApiConventions.cs")
    assert "namespace Shop.Controllers" in conventions
    assert "[ProducesResponseType(400)]" in conventions
    assert project_builder.scan().diagnostics == []


def test_fix_is_idempotent(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})
    project_builder.scanner().fix()
    controller = project_builder.read("Controllers/UsersController.cs")
    conventions = project_builder.read("Controllers/ApiConventions.cs")

    report = project_builder.scanner().fix()

    assert report.applied == []
    assert report.changes == {}
    assert project_builder.read("Controllers/UsersController.cs") == controller
    assert project_builder.read("Controllers/ApiConventions.cs") == conventions


def test_fix_annotates_lone_actions(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/ReportsController.cs": REPORTS_CONTROLLER})

    report = project_builder.scanner().fix()

    assert [(f.kind, f.status_codes) for f in report.applied] == [
        (FixKind.ANNOTATE, [400]),
        (FixKind.ANNOTATE, [404]),
    ]
    controller = project_builder.read("Controllers/ReportsController.cs")
    assert "[ProducesResponseType(200)]\n    [ProducesResponseType(400)]\n    [ProducesResponseType(404)]\n" in controller
    assert not (project_builder.root / "Controllers/ApiConventions.cs").exists()
    assert project_builder.scan().diagnostics == []


def test_forced_annotate_strategy(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})

    report = project_builder.scanner().fix(FixOptions(strategy=FixKind.ANNOTATE))

    assert [f.kind for f in report.applied] == [FixKind.ANNOTATE]
    controller = project_builder.read("Controllers/UsersController.cs")
    assert "[ProducesResponseType(201)]\n        [ProducesResponseType(400)]\n" in controller
    assert not (project_builder.root / "Controllers/ApiConventions.cs").exists()


def test_conflicting_conventions_fall_back_to_annotation(project_builder: ProjectBuilder) -> None:
    project_builder.write({
        "Controllers/UsersController.cs": USERS_CONTROLLER,
        "Controllers/OrdersController.cs": ORDERS_CONTROLLER,
    })

    report = project_builder.scanner().fix()

    assert sorted(f.kind.value for f in report.applied) == ["annotate", "extract"]
    conventions = project_builder.read("Controllers/ApiConventions.cs")
    assert conventions.count("public static void Post(") == 1
    assert project_builder.scan().diagnostics == []


def test_fallback_annotation_keeps_convention_documented_codes(project_builder: ProjectBuilder) -> None:
    project_builder.write({
        "Controllers/ApiConventions.cs": """
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
        """,
        "Controllers/UsersController.cs": """
            namespace Shop.Controllers
            {
                public class UsersController : ControllerBase
                {
                    [HttpPost]
                    [ApiConventionMethod(typeof(ApiConventions), nameof(ApiConventions.Post))]
                    public IActionResult PostUser(string userName)
                    {
                        if (userName == null) return BadRequest();
                        if (Missing(userName)) return NotFound();
                        return Created("", userName);
                    }

                    [HttpPut]
                    [ProducesResponseType(204)]
                    public IActionResult PutUser(string userName)
                    {
                        return NoContent();
                    }
                }
            }
        """,
    })

    report = project_builder.scanner().fix()

    assert [(f.kind, f.status_codes) for f in report.applied] == [(FixKind.ANNOTATE, [201, 400, 404])]
    controller = project_builder.read("Controllers/UsersController.cs")
    assert "ApiConventionMethod" not in controller
    assert (
        "        [HttpPost]\n"
        "        [ProducesResponseType(201)]\n"
        "        [ProducesResponseType(400)]\n"
        "        [ProducesResponseType(404)]\n"
        "        public IActionResult PostUser"
    ) in controller
    assert project_builder.scan().diagnostics == []


def test_annotation_keeps_the_implicit_success_response(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/ItemsController.cs": """
        public class ItemsController : ControllerBase
        {
            public IActionResult Find(int id)
            {
                return id > 0 ? (IActionResult)Ok() : NotFound();
            }
        }
    """})

    report = project_builder.scanner().fix()

    assert [(f.kind, f.status_codes) for f in report.applied] == [(FixKind.ANNOTATE, [200, 404])]
    controller = project_builder.read("Controllers/ItemsController.cs")
    assert "    [ProducesResponseType(200)]\n    [ProducesResponseType(404)]\n    public IActionResult Find" in controller
    assert project_builder.scan().diagnostics == []


def test_dry_run_leaves_files_untouched(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})
    before = project_builder.read("Controllers/UsersController.cs")

    report = project_builder.scanner().fix(write=False)

    assert project_builder.read("Controllers/UsersController.cs") == before
    assert not (project_builder.root / "Controllers/ApiConventions.cs").exists()
    diff = report.diff()
    assert "+        [ApiConventionMethod(typeof(ApiConventions), nameof(ApiConventions.Post))]" in diff
    assert "--- /dev/null" in diff


def test_shared_conventions_file_option(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})

    project_builder.scanner().fix(FixOptions(conventions_type="ShopConventions", conventions_file="Api/ShopConventions.cs"))

    conventions = project_builder.read("Api/ShopConventions.cs")
    assert "public static class ShopConventions" in conventions
    controller = project_builder.read("Controllers/UsersController.cs")
    assert "nameof(ShopConventions.Post)" in controller


def test_without_reference_uses_convention_type(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/UsersController.cs": USERS_CONTROLLER})

    project_builder.scanner().fix(FixOptions(add_reference=False))

    controller = project_builder.read("Controllers/UsersController.cs")
    assert "[ApiConventionType(typeof(ApiConventions))]\n    public class UsersController" in controller
    assert "ApiConventionMethod" not in controller
    assert project_builder.scan().diagnostics == []


def test_large_files_are_skipped(project_builder: ProjectBuilder) -> None:
    project_builder.write({"Controllers/ReportsController.cs": REPORTS_CONTROLLER})
    scanner = project_builder.scanner()
    scanner.max_file_size_mb = 0

    scanner.scan()

    assert scanner.diagnostics == []
    assert scanner.stats["files_skipped"] == 1
