#!/usr/bin/env python3
"""
Convention Errors
==================
Exception hierarchy for the convention fixer.

Core operations are total: they decline instead of failing. These exceptions
mark the few places where an edit cannot be produced, and are caught by the
orchestrator or the CLI so a failure only ever means "no fix offered".
"""


class ConventionError(Exception):
    """Base class for all convention fixer errors."""


class FixDeclined(ConventionError):
    """Raised when a code action cannot produce a self-consistent edit."""


class ConventionConflict(FixDeclined):
    """A different convention method with the same name already exists."""

    def __init__(self, convention_name: str, conventions_type: str):
        self.convention_name = convention_name
        self.conventions_type = conventions_type
        super().__init__(
            f"{conventions_type}.{convention_name} already exists with different response metadata"
        )


class ConfigError(ConventionError):
    """Raised when a configuration file cannot be read or validated."""
