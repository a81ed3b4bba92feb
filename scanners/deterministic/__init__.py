#!/usr/bin/env python3
"""
Deterministic Analyzers Module
================================
Pattern-based readers that extract response information from source text
without compiling it.

- Status code expressions and ControllerBase result helpers
- Standard status code descriptions for reporting
"""

from .status_code_analyzer import StatusCodeAnalyzer

__all__ = [
    'StatusCodeAnalyzer',
]
