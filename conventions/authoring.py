#!/usr/bin/env python3
"""
Convention Authoring Engine
============================
Synthesizes a convention declaration from a concrete action.

Given PostUser(string userName) documented with 201 and returning an
undocumented 404, the engine produces:

    [ProducesResponseType(201)]
    [ProducesResponseType(404)]
    [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Prefix)]
    public static void Post(
        [ApiConventionNameMatch(ApiConventionNameMatchBehavior.Suffix),
         ApiConventionTypeMatch(ApiConventionTypeMatchBehavior.Any)]
        object name)

and a plan listing which of the action's own attributes the convention now
subsumes. Rendering to source text is the host editor's job.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .aggregation import aggregate_status_codes, select_own_explicit_metadata
from .models import (
    ActionMethod,
    ConventionDeclaration,
    ConventionParameter,
    NameMatchBehavior,
    ResponseMetadata,
    TypeMatchBehavior,
)
from .naming import derive_convention_method_name, derive_convention_parameter_name

logger = logging.getLogger("api_conventions.authoring")


@dataclass(frozen=True)
class ExtractionPlan:
    """A convention declaration plus the rewiring of the source action."""
    declaration: ConventionDeclaration
    removed: Tuple[ResponseMetadata, ...]
    retained: Tuple[ResponseMetadata, ...]

    def documented_status_codes(self) -> List[int]:
        """Status codes the action is documented with once the plan is applied."""
        codes = set(self.declaration.status_codes)
        codes.update(m.status_code for m in self.retained)
        return sorted(codes)


class ConventionAuthor:
    """
    Build convention declarations from action methods.

    Conventions never pin parameter types: they are shared across actions,
    so every parameter matches by name suffix with a wildcard type.
    """

    @staticmethod
    def build_convention_parameter(parameter_name: str) -> ConventionParameter:
        return ConventionParameter(
            name=derive_convention_parameter_name(parameter_name),
            name_match_behavior=NameMatchBehavior.SUFFIX,
            type_match_behavior=TypeMatchBehavior.ANY,
        )

    @staticmethod
    def build_convention_declaration(method: ActionMethod,
                                     declared: Iterable[ResponseMetadata],
                                     undocumented: Iterable[ResponseMetadata]) -> ConventionDeclaration:
        """
        Synthesize the convention an action should be documented by.

        Args:
            method: The action being fixed
            declared: Metadata the action is documented with today
            undocumented: Metadata inferred from its return paths

        Returns:
            A PREFIX-matched ConventionDeclaration with ascending status codes
        """
        status_codes = aggregate_status_codes(declared, undocumented)
        name = derive_convention_method_name(method.name)
        parameters = tuple(
            ConventionAuthor.build_convention_parameter(p.name) for p in method.parameters
        )

        declaration = ConventionDeclaration(
            name=name,
            parameters=parameters,
            status_codes=tuple(status_codes),
            name_match_behavior=NameMatchBehavior.PREFIX,
        )
        logger.debug(f"Authored convention {name}({len(parameters)} params) -> {status_codes} from {method.name}")
        return declaration

    @staticmethod
    def plan_extraction(method: ActionMethod,
                        declared: Sequence[ResponseMetadata],
                        undocumented: Sequence[ResponseMetadata]) -> ExtractionPlan:
        """
        Build the convention and split the action's own attributes into
        removed (subsumed by the convention) and retained (method specific).
        """
        declaration = ConventionAuthor.build_convention_declaration(method, declared, undocumented)
        subsumed = set(declaration.status_codes)

        removed = []
        retained = []
        for metadata in select_own_explicit_metadata(declared, method):
            if metadata.status_code in subsumed:
                removed.append(metadata)
            else:
                retained.append(metadata)

        return ExtractionPlan(declaration=declaration, removed=tuple(removed), retained=tuple(retained))
