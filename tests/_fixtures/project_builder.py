"""Helper utilities for constructing temporary C# projects in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from scanners.project import ProjectScanner


class ProjectBuilder:
    """Write controller sources into a throwaway project and rescan it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "project"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def scanner(self) -> ProjectScanner:
        return ProjectScanner(str(self.root))

    def scan(self) -> ProjectScanner:
        """Return a scanner that has scanned the current project contents."""
        scanner = self.scanner()
        scanner.scan()
        return scanner


__all__ = ["ProjectBuilder"]
