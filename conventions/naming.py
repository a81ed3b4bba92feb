#!/usr/bin/env python3
"""
Name Segmenter
===============
Derives convention method and parameter names from concrete identifiers
using camel-case boundaries (a lower-case character followed by an
upper-case one).

- PostItem -> Post      (method names keep the text before the first boundary)
- userName -> name      (parameter names keep the text after the last boundary)

Both functions are total: when no boundary exists the input comes back as is.
"""


def _is_boundary(name: str, i: int) -> bool:
    return name[i].isupper() and name[i - 1].islower()


def derive_convention_method_name(name: str) -> str:
    """Return the prefix of ``name`` ending before its first camel-case boundary."""
    if len(name) < 2:
        return name

    for i in range(1, len(name)):
        if _is_boundary(name, i):
            return name[:i]

    return name


def derive_convention_parameter_name(name: str) -> str:
    """Return the suffix of ``name`` starting at its last camel-case boundary, lower-cased."""
    if len(name) < 2:
        return name

    # The final character is never a boundary candidate.
    for i in range(len(name) - 2, 0, -1):
        if _is_boundary(name, i):
            return name[i].lower() + name[i + 1:]

    return name
