"""
Shared data models and BaseScanner for the convention fixer host.

Language scanners turn source files into ActionMethod views plus the
diagnostics the analyzer reports on them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Set

from conventions.analyzer import Diagnostic


# =============================================================================
# ENUMS
# =============================================================================

class Language(Enum):
    DOTNET = "C#/.NET"
    UNKNOWN = "Unknown"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class SourceSpan:
    """Location of a declaration in a source file."""
    file_path: str
    line_number: int
    start: int = 0
    end: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "line_number": self.line_number,
        }


@dataclass
class ScanResult:
    """Everything a scanner learned about one file."""
    file_path: str
    language: Language
    actions: List[Any] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    conventions: Dict[str, List[Any]] = field(default_factory=dict)
    skipped_methods: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "language": self.language.value,
            "actions": len(self.actions),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "conventions": {
                type_name: [c.to_dict() for c in declarations]
                for type_name, declarations in self.conventions.items()
            },
            "skipped_methods": self.skipped_methods,
        }


# =============================================================================
# BASE SCANNER (Abstract)
# =============================================================================

class BaseScanner(ABC):
    """
    Abstract base class for language-specific scanners.
    """

    @property
    @abstractmethod
    def language(self) -> Language:
        """The primary language this scanner handles."""
        pass

    @property
    @abstractmethod
    def extensions(self) -> Set[str]:
        """File extensions this scanner processes."""
        pass

    @abstractmethod
    def scan_file(self, file_path: Path, content: str, lines: List[str]) -> ScanResult:
        """Scan a file for actions and undocumented responses."""
        pass
