#!/usr/bin/env python3
"""
API Convention Fixer v1.0
==========================
Finds ASP.NET Core controller actions whose responses are not documented and
fixes them, either by annotating the action with [ProducesResponseType] or by
extracting its response documentation into a shared API convention.

Features:
  - Undocumented status code / success result diagnostics (API1004, API1005)
  - Annotate-in-place and extract-to-convention fixes
  - Parallel scanning for large codebases
  - Multiple output formats (table, JSON, SARIF)
  - Dry runs with unified diffs
  - CI/CD integration ready

Usage: python main.py {scan,fix} [OPTIONS] <path>
"""

import sys
import os
import re
import json
import argparse
import tempfile
import shutil
import logging
from pathlib import Path
from typing import List, Dict, Any, Set, Optional
from dataclasses import dataclass, field
from datetime import datetime

# =============================================================================
# VERSION
# =============================================================================
__version__ = "1.0.0"

# =============================================================================
# DEPENDENCY CHECK
# =============================================================================
REQUIRED = {
    "rich": "rich>=13.7.0",
    "git": "gitpython>=3.1.40",
    "dotenv": "python-dotenv>=1.0.0",
    "yaml": "pyyaml>=6.0",
}

def check_deps():
    missing = []
    for mod, pkg in REQUIRED.items():
        try:
            __import__(mod)
        except ImportError:
            missing.append(pkg)
    if missing:
        print(f"\nMissing: pip install {' '.join(missing)}\n")
        sys.exit(1)

check_deps()

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.syntax import Syntax
from rich import box
from dotenv import load_dotenv
import git
import yaml

from conventions.analyzer import DESCRIPTORS, STATUS_CODE_KEY, Diagnostic
from conventions.errors import ConfigError
from conventions.orchestrator import FixKind
from scanners.deterministic.status_code_analyzer import StatusCodeAnalyzer
from scanners.project import DEFAULT_IGNORE_DIRS, FixOptions, FixReport, ProjectScanner

load_dotenv()
console = Console()

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure structured logging for the fixer."""
    logger = logging.getLogger("api_conventions")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler with structured format
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)  # Only warnings and errors to console
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            datefmt='%Y-%m-%dT%H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger

logger = setup_logging()

# =============================================================================
# CONFIGURATION SYSTEM
# =============================================================================
FIX_STRATEGIES = ("auto", "annotate", "extract")
OUTPUT_FORMATS = ("table", "json", "sarif")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class FixerConfig:
    """
    Fixer configuration with sensible defaults.
    Can be loaded from environment variables, config file, or CLI args.
    """
    # Scanning options
    ignore_dirs: Set[str] = field(default_factory=set)
    max_file_size_mb: int = 10
    parallel_workers: int = 4

    # Fix options
    fix_strategy: str = "auto"  # auto, annotate, extract
    conventions_class: str = "ApiConventions"
    conventions_file: Optional[str] = None  # default: next to each controller
    add_convention_reference: bool = True
    max_fix_passes: int = 50

    # Output options
    output_format: str = "table"  # table, json, sarif
    verbose: bool = False

    def __post_init__(self):
        """Apply default ignore dirs and validate."""
        if not self.ignore_dirs:
            self.ignore_dirs = DEFAULT_IGNORE_DIRS.copy()
        self.validate()

    def validate(self):
        if self.fix_strategy not in FIX_STRATEGIES:
            raise ConfigError(f"fix_strategy must be one of {', '.join(FIX_STRATEGIES)}, got {self.fix_strategy!r}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(f"output_format must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output_format!r}")
        if not re.fullmatch(r'[A-Za-z_]\w*', self.conventions_class or ""):
            raise ConfigError(f"conventions_class is not a C# identifier: {self.conventions_class!r}")
        if self.max_fix_passes < 1:
            raise ConfigError("max_fix_passes must be at least 1")
        if self.parallel_workers < 1:
            raise ConfigError("parallel_workers must be at least 1")

    @classmethod
    def from_env(cls) -> "FixerConfig":
        """Load configuration from environment variables."""
        try:
            return cls(
                max_file_size_mb=int(os.getenv("CONVENTIONS_MAX_FILE_SIZE", 10)),
                parallel_workers=int(os.getenv("CONVENTIONS_WORKERS", 4)),
                fix_strategy=os.getenv("CONVENTIONS_FIX_STRATEGY", "auto"),
                conventions_class=os.getenv("CONVENTIONS_CLASS", "ApiConventions"),
                conventions_file=os.getenv("CONVENTIONS_FILE"),
                add_convention_reference=_env_flag("CONVENTIONS_ADD_REFERENCE", "true"),
                max_fix_passes=int(os.getenv("CONVENTIONS_MAX_FIX_PASSES", 50)),
                output_format=os.getenv("CONVENTIONS_OUTPUT_FORMAT", "table"),
                verbose=_env_flag("CONVENTIONS_VERBOSE", "false"),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e

    @classmethod
    def from_file(cls, path: str) -> "FixerConfig":
        """Load configuration from JSON or YAML file."""
        try:
            with open(path, 'r') as f:
                if path.endswith(('.yaml', '.yml')):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")

        # Convert ignore_dirs list to set if present
        if 'ignore_dirs' in data and isinstance(data['ignore_dirs'], list):
            data['ignore_dirs'] = set(data['ignore_dirs'])

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "parallel_workers": self.parallel_workers,
            "fix_strategy": self.fix_strategy,
            "conventions_class": self.conventions_class,
            "conventions_file": self.conventions_file,
            "add_convention_reference": self.add_convention_reference,
            "max_fix_passes": self.max_fix_passes,
            "output_format": self.output_format,
        }

    def fix_options(self) -> FixOptions:
        return FixOptions(
            strategy=None if self.fix_strategy == "auto" else FixKind(self.fix_strategy),
            conventions_type=self.conventions_class,
            conventions_file=self.conventions_file,
            add_reference=self.add_convention_reference,
            max_passes=self.max_fix_passes,
        )

# =============================================================================
# OUTPUT FORMATTERS
# =============================================================================
def fmt_status(diagnostic: Diagnostic) -> str:
    status = diagnostic.properties.get(STATUS_CODE_KEY)
    if status is None:
        return "[green]2xx[/green]"
    category = StatusCodeAnalyzer.get_standard_description(int(status))["category"]
    colors = {"success": "green", "client_error": "yellow", "server_error": "red"}
    color = colors.get(category, "white")
    return f"[{color}]{status}[/{color}]"

def make_table(diagnostics: List[Diagnostic]) -> Table:
    t = Table(title=" Undocumented Responses", box=box.ROUNDED, header_style="bold magenta")
    t.add_column("#", style="dim", width=4)
    t.add_column("Id", style="cyan", width=8)
    t.add_column("Action", max_width=40)
    t.add_column("Status", width=8)
    t.add_column("Description", max_width=40)
    t.add_column("File:Line", style="dim", max_width=30)

    for i, d in enumerate(diagnostics[:100], 1):
        status = d.properties.get(STATUS_CODE_KEY)
        description = StatusCodeAnalyzer.get_standard_description(int(status))["description"] if status else "Success result"
        loc = f"{Path(d.location.file_path).name}:{d.location.line_number}" if d.location else ""
        action = f"{d.method.declaring_type}.{d.method.name}" if d.method else ""
        t.add_row(str(i), d.id, action, fmt_status(d), description, loc)

    if len(diagnostics) > 100:
        t.add_row("...", "...", f"... +{len(diagnostics) - 100} more", "", "", "")

    return t

def make_summary(s: Dict[str, Any]) -> Panel:
    txt = f"""
[bold cyan] Scan Summary[/bold cyan]

[bold]Undocumented Responses:[/bold] {s['total']}
[bold]Actions:[/bold] {s['actions']} | Skipped (unreadable metadata): {s['skipped_actions']}
[bold]Files Scanned:[/bold] {s['files_scanned']} | Skipped: {s['files_skipped']} | Errors: {s['files_errored']}

[bold cyan]By Diagnostic:[/bold cyan]
""" + "\n".join([f"   {k} {DESCRIPTORS[k].name}: {v}" for k, v in sorted(s['by_diagnostic'].items())])

    txt += """

[bold cyan]By Status Code:[/bold cyan]
""" + "\n".join([f"   {k}: {v}" for k, v in sorted(s['by_status_code'].items(), key=lambda x: -x[1])[:8]])

    return Panel(txt, title=" Analysis Results", border_style="cyan")

def make_fix_summary(report: FixReport) -> Panel:
    extracted = [f for f in report.applied if f.kind == FixKind.EXTRACT]
    annotated = [f for f in report.applied if f.kind == FixKind.ANNOTATE]
    conventions = sorted(set(f.convention for f in extracted if f.convention))

    txt = f"""
[bold cyan] Fix Summary[/bold cyan]

[bold]Fixes Applied:[/bold] {len(report.applied)}
   Annotated: {len(annotated)}
   Extracted to convention: {len(extracted)}
[bold]Declined:[/bold] {len(report.declined)}
[bold]Files Changed:[/bold] {len(report.changes)}
"""
    if conventions:
        txt += "\n[bold cyan]Conventions:[/bold cyan]\n" + "\n".join(f"   {c}" for c in conventions)

    return Panel(txt, title=" Fix Results", border_style="cyan")


class SARIFFormatter:
    """
    SARIF format for GitHub Security tab and other SAST tools.
    Static Analysis Results Interchange Format (SARIF) v2.1.0
    """

    def format(self, diagnostics: List[Diagnostic], summary: Dict[str, Any]) -> str:
        sarif = {
            "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
            "version": "2.1.0",
            "runs": [{
                "tool": {
                    "driver": {
                        "name": "API Convention Fixer",
                        "version": __version__,
                        "rules": self._generate_rules()
                    }
                },
                "results": self._generate_results(diagnostics),
                "invocations": [{
                    "executionSuccessful": summary.get("files_errored", 0) == 0,
                    "endTimeUtc": datetime.now(tz=None).isoformat() + "Z"
                }]
            }]
        }
        return json.dumps(sarif, indent=2)

    def _generate_rules(self) -> List[Dict[str, Any]]:
        """Generate SARIF rule definitions."""
        return [
            {
                "id": descriptor.id,
                "name": descriptor.name,
                "shortDescription": {"text": descriptor.title},
                "defaultConfiguration": {"level": descriptor.severity},
            }
            for descriptor in DESCRIPTORS.values()
        ]

    def _generate_results(self, diagnostics: List[Diagnostic]) -> List[Dict]:
        """Generate SARIF results from diagnostics."""
        results = []
        for d in diagnostics:
            result = {
                "ruleId": d.id,
                "level": d.descriptor.severity,
                "message": {"text": f"{d.method.declaration_id}: {d.message}" if d.method else d.message},
                "properties": dict(d.properties),
            }
            if d.location:
                result["locations"] = [{
                    "physicalLocation": {
                        "artifactLocation": {"uri": d.location.file_path.replace("\\", "/")},
                        "region": {"startLine": d.location.line_number}
                    }
                }]
            results.append(result)
        return results


# =============================================================================
# GIT HELPER
# =============================================================================
def clone_repo(url: str) -> str:
    tmp = tempfile.mkdtemp(prefix="convention_scan_")
    console.print(f"[cyan]Cloning: {url}[/cyan]")
    git.Repo.clone_from(url, tmp, depth=1)
    console.print(f"[green] Cloned[/green]")
    return tmp

def is_git_url(target: str) -> bool:
    return target.startswith(("http://", "https://", "git@"))

# =============================================================================
# COMMANDS
# =============================================================================
def build_config(args: argparse.Namespace) -> FixerConfig:
    """Config file or environment, then CLI overrides."""
    config = FixerConfig.from_file(args.config) if args.config else FixerConfig.from_env()

    overrides = {
        "parallel_workers": args.workers,
        "max_file_size_mb": args.max_file_size,
        "output_format": getattr(args, "format", None),
        "fix_strategy": getattr(args, "strategy", None),
        "conventions_class": getattr(args, "conventions_class", None),
        "conventions_file": getattr(args, "conventions_file", None),
        "max_fix_passes": getattr(args, "max_passes", None),
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if getattr(args, "no_reference", False):
        config.add_convention_reference = False
    config.verbose = config.verbose or args.verbose
    config.validate()
    return config


def _progress(quiet: bool) -> Progress:
    return Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                    BarColumn(), TextColumn("{task.percentage:>3.0f}%"),
                    console=console, disable=quiet)


def run_scan(args: argparse.Namespace, config: FixerConfig, target: str) -> int:
    scanner = ProjectScanner(target, config.ignore_dirs, config.max_file_size_mb, config.parallel_workers)

    with _progress(args.quiet or config.output_format != "table") as prog:
        task = prog.add_task("[cyan]Scanning", total=100)

        def progress_cb(cur, tot, fp):
            prog.update(task, completed=(cur / tot) * 100, description=f"[cyan]{Path(fp).name[:25]}")

        if args.parallel:
            scanner.scan_parallel(progress_cb=progress_cb)
        else:
            scanner.scan(progress_cb=progress_cb)

    diagnostics = scanner.diagnostics
    summary = scanner.summary()

    if config.output_format == "json":
        output = json.dumps({
            "timestamp": datetime.now().isoformat(),
            "target": args.target,
            "version": __version__,
            "summary": summary,
            "files": [r.to_dict() for r in scanner.results if r.diagnostics or r.skipped_methods],
        }, indent=2)
    elif config.output_format == "sarif":
        output = SARIFFormatter().format(diagnostics, summary)
    else:
        output = None
        if not args.quiet:
            console.print(make_summary(summary))
            if diagnostics:
                console.print(make_table(diagnostics))

    if output is not None:
        if args.output:
            with open(args.output, 'w') as f:
                f.write(output)
            if not args.quiet:
                console.print(f"[green] Saved: {args.output}[/green]")
        else:
            print(output)

    if args.fail_on_undocumented and diagnostics:
        if not args.quiet:
            console.print(f"\n[bold red] Failed: {len(diagnostics)} undocumented responses[/bold red]")
        return 1
    return 0


def run_fix(args: argparse.Namespace, config: FixerConfig, target: str) -> int:
    scanner = ProjectScanner(target, config.ignore_dirs, config.max_file_size_mb, config.parallel_workers)

    with _progress(args.quiet) as prog:
        task = prog.add_task("[cyan]Fixing", total=100)

        def progress_cb(cur, tot, fp):
            prog.update(task, completed=(cur / tot) * 100, description=f"[cyan]{Path(fp).name[:25]}")

        report = scanner.fix(config.fix_options(), write=not args.dry_run, progress_cb=progress_cb)

    if args.dry_run and report.changes:
        diff = report.diff()
        if args.quiet:
            print(diff)
        else:
            console.print(Syntax(diff, "diff", theme="ansi_dark"))

    if not args.quiet:
        console.print(make_fix_summary(report))
        for item in report.declined[:10]:
            console.print(f"   [yellow]Declined[/yellow] {item['diagnostic']} {item['method']}: {item['message']}")

    if args.output:
        with open(args.output, 'w') as f:
            json.dump({
                "timestamp": datetime.now().isoformat(),
                "target": args.target,
                "version": __version__,
                "dry_run": args.dry_run,
                "config": config.to_dict(),
                **report.to_dict(),
            }, f, indent=2)
        if not args.quiet:
            console.print(f"[green] Saved: {args.output}[/green]")

    if args.fail_on_undocumented and report.declined:
        return 1
    return 0

# =============================================================================
# MAIN CLI
# =============================================================================
def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("target", help="Directory or C# file (scan also accepts a Git URL)")
    common.add_argument("-o", "--output", help="Write the report to FILE")
    common.add_argument("--config", metavar="FILE", help="Configuration file (JSON/YAML)")
    common.add_argument("--parallel", action="store_true", help="Enable parallel file scanning")
    common.add_argument("--workers", type=int, help="Number of parallel workers (default: 4)")
    common.add_argument("--max-file-size", type=int, help="Max file size in MB to scan (default: 10)")
    common.add_argument("--fail-on-undocumented", action="store_true",
                        help="Exit with error if undocumented responses remain")
    common.add_argument("--log-file", metavar="FILE", help="Write JSON-line debug log to FILE")
    common.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    common.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    parser = argparse.ArgumentParser(
        description=f"API Convention Fixer v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py scan ./src                          # Report undocumented responses
  python main.py scan ./src --format sarif -o r.sarif # SARIF for GitHub
  python main.py scan ./src --fail-on-undocumented   # CI gate mode
  python main.py fix ./src --dry-run                 # Show the fixes as a diff
  python main.py fix ./src --strategy annotate       # Only add [ProducesResponseType]
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", parents=[common], help="Report undocumented responses")
    scan.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format (default: table)")

    fix = sub.add_parser("fix", parents=[common], help="Fix undocumented responses")
    fix.add_argument("--strategy", choices=FIX_STRATEGIES, help="Fix kind (default: auto)")
    fix.add_argument("--conventions-class", metavar="NAME", help="Conventions class (default: ApiConventions)")
    fix.add_argument("--conventions-file", metavar="FILE",
                     help="Conventions file (default: <ConventionsClass>.cs next to each controller)")
    fix.add_argument("--no-reference", action="store_true",
                     help="Attach conventions with [ApiConventionType] instead of [ApiConventionMethod]")
    fix.add_argument("--max-passes", type=int, help="Max fix passes per file (default: 50)")
    fix.add_argument("--dry-run", action="store_true", help="Print a diff instead of writing files")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "INFO", args.log_file)

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        return 2

    target = args.target
    tmp = None
    exit_code = 0

    try:
        if is_git_url(target):
            if args.command != "scan":
                console.print("[red]Error: fix needs a local checkout[/red]")
                return 2
            tmp = clone_repo(target)
            target = tmp
        elif not os.path.exists(target):
            console.print(f"[red]Error: {target} not found[/red]")
            return 1

        if not args.quiet and config.output_format == "table":
            console.print(Panel.fit(
                f"[bold cyan] API Convention Fixer v{__version__}[/bold cyan]\n"
                "[dim]ASP.NET Core | ProducesResponseType | API conventions[/dim]",
                border_style="cyan"
            ))

        if args.command == "scan":
            exit_code = run_scan(args, config, target)
        else:
            exit_code = run_fix(args, config, target)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        if config.verbose:
            console.print_exception()
        return 1
    finally:
        if tmp and os.path.exists(tmp):
            shutil.rmtree(tmp, ignore_errors=True)

    if not args.quiet and exit_code == 0 and config.output_format == "table":
        console.print("\n[bold green] Complete![/bold green]")

    return exit_code

if __name__ == "__main__":
    sys.exit(main())
