#!/usr/bin/env python3
"""
Response Metadata Aggregator
=============================
Merges a method's declared response metadata with its undocumented
(inferred) metadata into one ascending list of status codes.

The ascending sort is part of the contract: extraction must reproduce
byte-identical conventions on every run, whatever order the host enumerates
metadata in.
"""

import logging
from typing import Iterable, List

from .models import ActionMethod, ResponseMetadata

logger = logging.getLogger("api_conventions.aggregation")


def normalize_status_code(metadata: ResponseMetadata) -> int:
    """Status code of an inferred response; default responses become 200."""
    return metadata.effective_status_code


def aggregate_status_codes(declared: Iterable[ResponseMetadata],
                           undocumented: Iterable[ResponseMetadata]) -> List[int]:
    """
    Combine declared and undocumented metadata into sorted, distinct status codes.

    Args:
        declared: Metadata the method is already documented with
        undocumented: Metadata inferred from the method's return paths

    Returns:
        Ascending list of status codes

    Example:
        >>> aggregate_status_codes([ResponseMetadata(201)],
        ...                        [ResponseMetadata.actual(is_default_response=True)])
        [200, 201]
    """
    status_codes = set()

    for metadata in declared:
        status_codes.add(metadata.status_code)

    for metadata in undocumented:
        status_codes.add(normalize_status_code(metadata))

    return sorted(status_codes)


def select_own_explicit_metadata(declared: Iterable[ResponseMetadata],
                                 owner: ActionMethod) -> List[ResponseMetadata]:
    """
    Metadata written as attributes on ``owner`` itself, in source order.

    Implicit metadata never appears in source. Metadata attached to another
    declaration (the controller, a convention) is inherited and left alone.
    """
    own = []
    for metadata in declared:
        if metadata.is_implicit:
            continue

        if metadata.attached_to != owner.declaration_id:
            logger.debug(f"{owner.name}: {metadata.status_code} is inherited from {metadata.attached_to}")
            continue

        own.append(metadata)

    return own
