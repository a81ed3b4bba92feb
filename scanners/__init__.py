"""
Scanner package for the API convention fixer.

Exports the C# scanner, the controller editor and the project driver.
"""

from .base import (
    Language,
    SourceSpan,
    ScanResult,
    BaseScanner,
)

from .dotnet import ActionDeclaration, ConventionIndex, DotNetScanner
from .dotnet_editor import ControllerEditor, TextEdit, apply_text_edits
from .project import DEFAULT_IGNORE_DIRS, AppliedFix, FixOptions, FixReport, ProjectScanner

__all__ = [
    # Data models
    "Language",
    "SourceSpan",
    "ScanResult",
    "BaseScanner",
    # C#
    "ActionDeclaration",
    "ConventionIndex",
    "DotNetScanner",
    "ControllerEditor",
    "TextEdit",
    "apply_text_edits",
    # Project
    "DEFAULT_IGNORE_DIRS",
    "AppliedFix",
    "FixOptions",
    "FixReport",
    "ProjectScanner",
]
