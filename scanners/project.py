"""
Project driver: scans a source tree for undocumented responses and applies
convention fixes file by file.

Fixes run one diagnostic per pass. After each edit the file is re-scanned,
so every fix sees state re-derived from source, and an edit that would not
re-scan to the documentation it promised is declined instead of written.
"""

from __future__ import annotations

import copy
import difflib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from conventions.analyzer import STATUS_CODE_KEY, Diagnostic
from conventions.errors import FixDeclined
from conventions.orchestrator import (
    CodeFixContext,
    Edit,
    ExtractConventionEdit,
    FixKind,
    ResponseTypeCodeFixProvider,
    select_fix_kind,
)

from .base import ScanResult
from .dotnet import ActionDeclaration, ConventionIndex, DotNetScanner
from .dotnet_editor import ControllerEditor

logger = logging.getLogger("api_conventions.project")

DEFAULT_IGNORE_DIRS: Set[str] = {
    # Version control
    ".git", ".svn", ".hg",
    # .NET
    "bin", "obj", ".vs", "packages", "TestResults", "artifacts",
    # Tooling
    "node_modules", ".idea", ".vscode", "__pycache__",
}


@dataclass
class FixOptions:
    """How fixes are chosen and where conventions are written."""
    strategy: Optional[FixKind] = None  # None selects per diagnostic
    conventions_type: str = "ApiConventions"
    conventions_file: Optional[str] = None
    add_reference: bool = True
    max_passes: int = 50


@dataclass
class AppliedFix:
    file_path: str
    method: str
    diagnostic_id: str
    kind: FixKind
    status_codes: List[int]
    convention: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "method": self.method,
            "diagnostic": self.diagnostic_id,
            "kind": self.kind.value,
            "status_codes": self.status_codes,
            "convention": self.convention,
        }


@dataclass
class FixReport:
    applied: List[AppliedFix] = field(default_factory=list)
    declined: List[Dict[str, Any]] = field(default_factory=list)
    changes: Dict[str, Tuple[Optional[str], str]] = field(default_factory=dict)

    def diff(self) -> str:
        """Unified diff of every changed file."""
        chunks = []
        for path, (before, after) in sorted(self.changes.items()):
            chunks.extend(difflib.unified_diff(
                (before or "").splitlines(keepends=True),
                after.splitlines(keepends=True),
                fromfile=f"a/{path}" if before is not None else "/dev/null",
                tofile=f"b/{path}",
            ))
        return "".join(chunks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": [f.to_dict() for f in self.applied],
            "declined": self.declined,
            "changed_files": sorted(self.changes),
        }


def _diagnostic_key(diagnostic: Diagnostic) -> Tuple[str, str, str]:
    method = diagnostic.method.declaration_id if diagnostic.method else ""
    return method, diagnostic.id, diagnostic.properties.get(STATUS_CODE_KEY, "")


def _visible_status_codes(action: ActionDeclaration) -> List[int]:
    return sorted(set(m.effective_status_code for m in action.method.declared_metadata))


class ProjectScanner:
    """
    Coordinates scanning and fixing of a C# project.

    Features:
    - Parallel file scanning with per-file error isolation
    - Convention index built from every file before analysis
    - Sequential, verified fix application with in-memory documents
    """

    def __init__(self, target_path: str, ignore_dirs: Optional[Set[str]] = None,
                 max_file_size_mb: int = 10, parallel_workers: int = 4):
        self.target = Path(target_path)
        self.max_file_size_mb = max_file_size_mb
        self.parallel_workers = parallel_workers
        self.convention_index = ConventionIndex()
        self.scanner = DotNetScanner(self.convention_index)
        self.provider = ResponseTypeCodeFixProvider()
        self.editor = ControllerEditor()
        self.results: List[ScanResult] = []
        self.stats = {"files_scanned": 0, "files_skipped": 0, "files_errored": 0}
        self._ignore_dirs = ignore_dirs or DEFAULT_IGNORE_DIRS
        self._lock = Lock()
        self._originals: Dict[str, Optional[str]] = {}
        self._documents: Dict[str, str] = {}
        self._unreadable: Set[str] = set()

    # =========================================================================
    # FILES
    # =========================================================================

    def should_ignore(self, path: Path) -> bool:
        """Check if path should be ignored."""
        for part in path.parts:
            if part in self._ignore_dirs:
                return True
        return False

    def _collect_files(self) -> List[Path]:
        """Collect all scannable files."""
        if self.target.is_file():
            return [self.target]

        all_files = []
        for root, dirs, files in os.walk(self.target):
            # Modify dirs in-place to skip ignored directories
            dirs[:] = sorted(d for d in dirs if d not in self._ignore_dirs)

            for f in sorted(files):
                fp = Path(root) / f
                if self.should_ignore(fp.relative_to(self.target)):
                    self.stats["files_skipped"] += 1
                    continue

                if fp.suffix.lower() in self.scanner.extensions:
                    all_files.append(fp)
                else:
                    self.stats["files_skipped"] += 1

        return all_files

    def _read(self, fp: Path) -> Optional[str]:
        key = str(fp)
        if key in self._documents:
            return self._documents[key]
        if key in self._unreadable:
            return None

        try:
            file_size_mb = fp.stat().st_size / (1024 * 1024)
            if file_size_mb > self.max_file_size_mb:
                logger.warning(f"Skipping large file {fp}: {file_size_mb:.1f}MB > {self.max_file_size_mb}MB")
                with self._lock:
                    self._unreadable.add(key)
                    self.stats["files_skipped"] += 1
                return None

            with open(fp, 'r', encoding='utf-8', errors='ignore') as f:
                content = f.read()
        except (IOError, OSError) as e:
            logger.debug(f"File read error {fp}: {e}")
            with self._lock:
                self._unreadable.add(key)
                self.stats["files_errored"] += 1
            return None

        with self._lock:
            self._originals.setdefault(key, content)
            self._documents[key] = content
        return content

    def _index_conventions(self, files: List[Path]):
        for fp in files:
            content = self._read(fp)
            if content and "static class" in content:
                self.convention_index.index_content(str(fp), content)

    # =========================================================================
    # SCANNING
    # =========================================================================

    def _scan_single_file(self, fp: Path) -> Optional[ScanResult]:
        """Scan a single file with error isolation."""
        content = self._read(fp)
        if content is None:
            return None

        try:
            return self.scanner.scan_file(fp, content, content.split('\n'))
        except Exception as e:
            logger.error(f"Unexpected error scanning {fp}: {e}")
            with self._lock:
                self.stats["files_errored"] += 1
            return None

    def scan(self, progress_cb: Optional[Callable[[int, int, Path], None]] = None) -> List[ScanResult]:
        """Scan the target sequentially."""
        self.results = []
        all_files = self._collect_files()
        self._index_conventions(all_files)

        for i, fp in enumerate(all_files):
            if progress_cb:
                progress_cb(i + 1, len(all_files), fp)

            result = self._scan_single_file(fp)
            if result is not None:
                self.results.append(result)
                self.stats["files_scanned"] += 1

        return self.results

    def scan_parallel(self, progress_cb: Optional[Callable[[int, int, Path], None]] = None) -> List[ScanResult]:
        """
        Parallel file scanning for large codebases.
        Uses ThreadPoolExecutor with configurable workers.
        """
        self.results = []
        all_files = self._collect_files()
        self._index_conventions(all_files)
        completed = 0

        logger.info(f"Starting parallel scan with {self.parallel_workers} workers")

        with ThreadPoolExecutor(max_workers=self.parallel_workers) as executor:
            future_to_file = {executor.submit(self._scan_single_file, fp): fp for fp in all_files}

            for future in as_completed(future_to_file):
                fp = future_to_file[future]
                completed += 1

                if progress_cb:
                    progress_cb(completed, len(all_files), fp)

                try:
                    result = future.result(timeout=30)
                except Exception as e:
                    logger.error(f"Task error for {fp}: {e}")
                    with self._lock:
                        self.stats["files_errored"] += 1
                    continue

                if result is not None:
                    with self._lock:
                        self.results.append(result)
                        self.stats["files_scanned"] += 1

        # Keep output order stable regardless of completion order
        self.results.sort(key=lambda r: r.file_path)
        return self.results

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [d for r in self.results for d in r.diagnostics]

    def summary(self) -> Dict[str, Any]:
        """Generate summary statistics."""
        by_id: Dict[str, int] = {}
        by_status: Dict[str, int] = {}

        for diagnostic in self.diagnostics:
            by_id[diagnostic.id] = by_id.get(diagnostic.id, 0) + 1
            status = diagnostic.properties.get(STATUS_CODE_KEY, "success")
            by_status[status] = by_status.get(status, 0) + 1

        return {
            "total": len(self.diagnostics),
            "actions": sum(len(r.actions) for r in self.results),
            "skipped_actions": sum(len(r.skipped_methods) for r in self.results),
            "files_scanned": self.stats["files_scanned"],
            "files_skipped": self.stats["files_skipped"],
            "files_errored": self.stats["files_errored"],
            "by_diagnostic": by_id,
            "by_status_code": by_status,
        }

    # =========================================================================
    # FIXING
    # =========================================================================

    def fix(self, options: Optional[FixOptions] = None, write: bool = True,
            progress_cb: Optional[Callable[[int, int, Path], None]] = None) -> FixReport:
        """
        Fix every undocumented response under the target.

        Args:
            options: Fix selection and convention placement
            write: Write changed files to disk (False for a dry run)

        Returns:
            FixReport with applied/declined fixes and before/after text
        """
        options = options or FixOptions()
        report = FixReport()
        all_files = self._collect_files()
        self._index_conventions(all_files)

        for i, fp in enumerate(all_files):
            if progress_cb:
                progress_cb(i + 1, len(all_files), fp)
            self._fix_file(fp, options, report)

        for path, content in self._documents.items():
            before = self._originals.get(path)
            if content != before:
                report.changes[path] = (before, content)

        if write:
            for path, (_, after) in report.changes.items():
                Path(path).parent.mkdir(parents=True, exist_ok=True)
                with open(path, 'w', encoding='utf-8') as f:
                    f.write(after)
                logger.info(f"Wrote {path}")

        return report

    def _fix_file(self, fp: Path, options: FixOptions, report: FixReport):
        content = self._read(fp)
        if content is None:
            return

        declined: Set[Tuple[str, str, str]] = set()
        for _ in range(options.max_passes):
            result = self.scanner.scan_file(fp, content, content.split('\n'))
            pending = [d for d in result.diagnostics if _diagnostic_key(d) not in declined]
            if not pending:
                break

            diagnostic = pending[0]
            action = next(a for a in result.actions if a.method == diagnostic.method)
            fixed = self._fix_diagnostic(fp, content, result, action, diagnostic, options, report)
            if fixed is None:
                declined.add(_diagnostic_key(diagnostic))
                report.declined.append({
                    "file_path": str(fp),
                    "method": action.method.declaration_id,
                    "diagnostic": diagnostic.id,
                    "message": diagnostic.message,
                })
                continue

            content = fixed
        else:
            logger.warning(f"Stopped fixing {fp} after {options.max_passes} passes")

        self._documents[str(fp)] = content

    def _fix_diagnostic(self, fp: Path, content: str, result: ScanResult, action: ActionDeclaration,
                        diagnostic: Diagnostic, options: FixOptions, report: FixReport) -> Optional[str]:
        siblings = [a.method for a in result.actions if a is not action]
        method_diagnostics = [d for d in result.diagnostics if d.method == action.method]

        if options.strategy is not None:
            kinds = [options.strategy]
        else:
            kinds = [select_fix_kind(action.method, siblings)]
            if kinds[0] == FixKind.EXTRACT:
                kinds.append(FixKind.ANNOTATE)

        for kind in kinds:
            context = CodeFixContext(
                diagnostics=[diagnostic],
                method=action.method,
                siblings=siblings,
                fix_kind=kind,
                conventions_type=options.conventions_type if options.add_reference else None,
                all_diagnostics=method_diagnostics,
            )
            for code_action in self.provider.register_code_fixes(context):
                edit = code_action.compute_edit_or_none()
                if edit is None:
                    continue
                try:
                    fixed = self._apply(fp, content, action, edit, options)
                except FixDeclined as e:
                    logger.info(f"Declined {kind.value} fix for {action.method.declaration_id}: {e}")
                    continue

                convention = None
                if isinstance(edit, ExtractConventionEdit):
                    convention = f"{options.conventions_type}.{edit.declaration.name}"
                    status_codes = edit.documented_status_codes()
                else:
                    status_codes = self.editor.annotation_status_codes(action, edit)
                report.applied.append(AppliedFix(
                    file_path=str(fp),
                    method=action.method.declaration_id,
                    diagnostic_id=diagnostic.id,
                    kind=kind,
                    status_codes=status_codes,
                    convention=convention,
                ))
                return fixed

        return None

    def _conventions_path(self, fp: Path, options: FixOptions) -> Path:
        if options.conventions_file:
            path = Path(options.conventions_file)
            if not path.is_absolute():
                base = self.target if self.target.is_dir() else self.target.parent
                path = base / path
            return path
        return fp.parent / f"{options.conventions_type}.cs"

    def _apply(self, fp: Path, content: str, action: ActionDeclaration, edit: Edit,
               options: FixOptions) -> str:
        """Apply ``edit`` tentatively, verify it by re-scanning, then commit it."""
        if not isinstance(edit, ExtractConventionEdit):
            fixed = self.editor.apply_edit(content, action, edit)
            expected = sorted(set(_visible_status_codes(action)) | {edit.annotation.status_code})
            rescanned = self._rescan_action(fp, fixed, action, self.convention_index)
            if _visible_status_codes(rescanned) != expected:
                raise FixDeclined(f"re-scan documents {_visible_status_codes(rescanned)}, expected {expected}")
            return fixed

        conventions_path = self._conventions_path(fp, options)
        same_file = conventions_path.resolve() == fp.resolve()

        fixed = self.editor.apply_edit(content, action, edit, options.conventions_type)
        document_source = fixed if same_file else self._read_optional(conventions_path)
        document = self.editor.add_convention(
            document_source, options.conventions_type, edit.declaration, action.namespace
        )
        if same_file:
            fixed = document

        index = copy.deepcopy(self.convention_index)
        index.index_content(str(conventions_path), document)
        rescanned = self._rescan_action(fp, fixed, action, index)
        documented = _visible_status_codes(rescanned)
        if documented != edit.documented_status_codes():
            raise FixDeclined(f"re-scan documents {documented}, expected {edit.documented_status_codes()}")

        # Commit
        self.convention_index = index
        self.scanner.convention_index = index
        key = str(conventions_path)
        if not same_file:
            with self._lock:
                self._originals.setdefault(key, self._read_optional(conventions_path))
                self._documents[key] = document
        return fixed

    def _read_optional(self, path: Path) -> Optional[str]:
        if str(path) in self._documents or path.exists():
            document = self._read(path)
            if document is None:
                raise FixDeclined(f"cannot read {path}")
            return document
        self._originals.setdefault(str(path), None)
        return None

    def _rescan_action(self, fp: Path, content: str, action: ActionDeclaration,
                       index: ConventionIndex) -> ActionDeclaration:
        scanner = DotNetScanner(index)
        for candidate in scanner.parse_actions(fp, content):
            if candidate.method.declaration_id == action.method.declaration_id and candidate.readable:
                return candidate
        raise FixDeclined(f"{action.method.declaration_id} not found after edit")
