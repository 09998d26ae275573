# bestiary/pipeline.py
"""
Single entry point for displaying a creature record.

    resolve_and_render(record, lookups, variant_name=None,
                       spell_level=None, proficiency_bonus=None)

Resolves ``_copy`` (with templates), picks the requested variant when the
record declares forks, normalizes every field, then renders. The input
record is never mutated; nothing is cached between calls.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from bestiary.document import Document
from bestiary.normalize import normalize_record
from bestiary.renderer import render, scaling_context
from bestiary.templates import VERSIONS_KEY, Lookups, resolve_copy, select_variant

logger = logging.getLogger(__name__)


def resolve_record(record: dict, lookups: Optional[Lookups] = None, variant_name: Optional[str] = None) -> dict:
    """Raw record with copy resolved and, if named, the variant applied."""
    resolved = resolve_copy(record, lookups or Lookups())
    if variant_name is not None and (resolved.get(VERSIONS_KEY) or variant_name != resolved.get("name")):
        resolved = select_variant(resolved, variant_name)
    return resolved


def resolve_and_render(
    record: dict,
    lookups: Optional[Lookups] = None,
    variant_name: Optional[str] = None,
    spell_level: Any = None,
    proficiency_bonus: Any = None,
) -> Document:
    resolved = resolve_record(record, lookups, variant_name)
    normalized = normalize_record(resolved)

    if spell_level is not None and proficiency_bonus is None:
        proficiency_bonus = scaling_context(normalized, spell_level).get("proficiency_bonus")

    logger.debug("Rendering %r (variant=%r)", normalized["name"], variant_name)
    return render(
        normalized,
        variant_name=variant_name,
        spell_level=spell_level,
        proficiency_bonus=proficiency_bonus,
    )
