#!/usr/bin/env python3
"""
API Convention Core
====================
Pure, host-independent engine behind the response documentation fixes.

- Name segmentation (PostItem -> Post, userName -> name)
- Status code aggregation (declared + undocumented -> ascending codes)
- Convention authoring and matching
- Undocumented response analysis and the code fix provider

Nothing in this package reads or writes files.
"""

from .models import (
    DEFAULT_STATUS_CODE,
    NameMatchBehavior,
    TypeMatchBehavior,
    Parameter,
    ResponseMetadata,
    ActionMethod,
    ConventionParameter,
    ConventionDeclaration,
)
from .naming import derive_convention_method_name, derive_convention_parameter_name
from .aggregation import aggregate_status_codes, select_own_explicit_metadata
from .authoring import ConventionAuthor, ExtractionPlan
from .matching import is_match, find_matching_convention
from .analyzer import Diagnostic, DiagnosticDescriptor, analyze_action, find_undocumented_metadata
from .orchestrator import (
    FixKind,
    CodeFixContext,
    ResponseTypeCodeFixProvider,
    AddAttributeEdit,
    ExtractConventionEdit,
    ResponseTypeAnnotation,
    ConventionReference,
    select_fix_kind,
)
from .errors import ConventionError, FixDeclined, ConventionConflict, ConfigError

__all__ = [
    # Models
    'DEFAULT_STATUS_CODE',
    'NameMatchBehavior',
    'TypeMatchBehavior',
    'Parameter',
    'ResponseMetadata',
    'ActionMethod',
    'ConventionParameter',
    'ConventionDeclaration',
    # Engine
    'derive_convention_method_name',
    'derive_convention_parameter_name',
    'aggregate_status_codes',
    'select_own_explicit_metadata',
    'ConventionAuthor',
    'ExtractionPlan',
    'is_match',
    'find_matching_convention',
    # Diagnostics and fixes
    'Diagnostic',
    'DiagnosticDescriptor',
    'analyze_action',
    'find_undocumented_metadata',
    'FixKind',
    'CodeFixContext',
    'ResponseTypeCodeFixProvider',
    'AddAttributeEdit',
    'ExtractConventionEdit',
    'ResponseTypeAnnotation',
    'ConventionReference',
    'select_fix_kind',
    # Errors
    'ConventionError',
    'FixDeclined',
    'ConventionConflict',
    'ConfigError',
]
