# bestiary/templates.py
"""
Copy, template and variant resolution for raw bestiary records.

A record can be written as a transform of another record:

    {"name": "Goblin Boss", "_copy": {"name": "Goblin", "source": "MM",
        "_templates": [{"name": "Chieftain", "source": "X"}],
        "_mod": {...}}, ...overrides...}

``resolve_copy`` fetches the base through the lookup collaborators, applies
templates and the copy's own ``_mod`` block to a private copy of it, then
merges the override fields on top. ``resolve_variants`` expands ``_versions``
forks into independent sibling records. Nothing here normalizes fields;
output is still raw bestiary JSON.

Entry points:
    Lookups(find, find_template)
    resolve_copy(record, lookups) -> dict
    merge_records(base, override) -> dict
    resolve_variants(record) -> list[dict]
    select_variant(record, variant_name) -> dict
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from bestiary.exceptions import InvalidRequestedVariant
from bestiary.modifications import apply_modifications

logger = logging.getLogger(__name__)

COPY_KEY = "_copy"
VERSIONS_KEY = "_versions"
TEMPLATES_KEY = "_templates"
MOD_KEY = "_mod"
RESOLVED_MARKER = "_copyResolved"
VARIANT_MARKER = "_isVariant"
TEMPLATE_ONLY_MARKER = "_isVariantTemplate"
BASE_OPTION_PREFIX = "Base "

# Underscore keys that survive the override merge
_PASSTHROUGH_KEYS = (COPY_KEY, VERSIONS_KEY)


def _not_found(name: str, source: str) -> Optional[dict]:
    return None


@dataclass
class Lookups:
    """Record and template lookup collaborators.

    Both callables take ``(name, source)`` and return the raw record, or
    ``None`` when nothing matches.
    """
    find: Callable[[str, str], Optional[dict]] = _not_found
    find_template: Callable[[str, str], Optional[dict]] = field(default=_not_found)


def chain_lookups(*sources: Lookups) -> Lookups:
    """Lookups that try each source in order and return the first hit."""
    def _first(attr: str) -> Callable[[str, str], Optional[dict]]:
        def lookup(name: str, source: str) -> Optional[dict]:
            for lookups in sources:
                found = getattr(lookups, attr)(name, source)
                if found is not None:
                    return found
            return None
        return lookup

    return Lookups(find=_first("find"), find_template=_first("find_template"))


def _ref_key(ref: dict) -> tuple[str, str]:
    return (str(ref.get("name", "")).lower(), str(ref.get("source", "")).lower())


# ── Merge ───────────────────────────────────────────────────────────

def merge_records(base: Optional[dict], override: Optional[dict]) -> dict:
    """Merge *override* onto a deep copy of *base*.

    Lists concatenate base-then-override, dicts merge shallowly with the
    override winning, anything else is replaced. Override keys starting
    with ``_`` are dropped, except ``_copy`` and ``_versions`` which replace
    the base's value outright.
    """
    result = copy.deepcopy(base or {})
    if not override:
        return result

    for key, value in override.items():
        if key.startswith("_"):
            if key in _PASSTHROUGH_KEYS:
                result[key] = copy.deepcopy(value)
            continue

        current = result.get(key)
        if isinstance(value, list) and isinstance(current, list):
            # concatenated, not deduplicated
            result[key] = current + copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(current, dict):
            result[key] = {**current, **copy.deepcopy(value)}
        else:
            result[key] = copy.deepcopy(value)
    return result


# ── Templates ───────────────────────────────────────────────────────

def apply_template(record: dict, template: dict) -> dict:
    """Apply ``apply._root`` then ``apply._mod`` from *template* to *record* in place."""
    apply = template.get("apply") if isinstance(template, dict) else None
    if not isinstance(apply, dict):
        logger.debug("Template %r has no apply block", (template or {}).get("name"))
        return record

    root = apply.get("_root")
    if isinstance(root, dict):
        record.update(copy.deepcopy(root))
    if apply.get(MOD_KEY):
        apply_modifications(record, apply[MOD_KEY])
    return record


def _apply_templates(working: dict, refs: list, lookups: Lookups) -> None:
    for ref in refs:
        if not isinstance(ref, dict):
            continue
        template = lookups.find_template(ref.get("name", ""), ref.get("source", ""))
        if template is None:
            logger.warning(
                "Template %s (%s) not found; skipping", ref.get("name"), ref.get("source")
            )
            continue
        apply_template(working, template)


# ── Copy resolution ─────────────────────────────────────────────────

def resolve_copy(record: dict, lookups: Lookups, _visited: Optional[set] = None) -> dict:
    """Resolve ``_copy`` against its base record; the input is never mutated.

    A missing base, or a base that would close a copy cycle, leaves the
    override's own fields as the result. Resolving an already resolved
    record returns it unchanged.
    """
    ref = record.get(COPY_KEY)
    if not isinstance(ref, dict) or record.get(RESOLVED_MARKER):
        return record

    visited = set(_visited or ())
    visited.add(_ref_key(record))

    name, source = ref.get("name", ""), ref.get("source", "")
    if _ref_key(ref) in visited:
        logger.warning("Copy cycle at %s (%s) from %r; using own fields", name, source, record.get("name"))
        return copy.deepcopy(record)

    base = lookups.find(name, source)
    if base is None:
        logger.warning("Base record %s (%s) for %r not found", name, source, record.get("name"))
        return copy.deepcopy(record)

    # Bases may themselves be copies
    working = copy.deepcopy(resolve_copy(base, lookups, visited))

    templates = ref.get(TEMPLATES_KEY)
    if isinstance(templates, list):
        _apply_templates(working, templates, lookups)
    if ref.get(MOD_KEY):
        apply_modifications(working, ref[MOD_KEY])

    result = merge_records(working, record)
    result[RESOLVED_MARKER] = True
    return result


# ── Variants ────────────────────────────────────────────────────────

def _variant_name(version: dict, base_name: str, index: int) -> str:
    name = version.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return f"{base_name} (variant {index})"


def includes_base(record: dict) -> bool:
    return not record.get(TEMPLATE_ONLY_MARKER)


def variant_names(record: dict) -> list[str]:
    """Unique variant names in declaration order (base excluded)."""
    versions = record.get(VERSIONS_KEY)
    if not isinstance(versions, list):
        return []
    names: list[str] = []
    base_name = record.get("name", "")
    # a shown base keeps its own name
    taken = {base_name} if includes_base(record) else set()
    for i, version in enumerate(versions, start=1):
        if not isinstance(version, dict):
            continue
        name = _variant_name(version, base_name, i)
        if name not in taken:
            taken.add(name)
            names.append(name)
    return names


def fork_options(record: dict) -> list[str]:
    """Labels offered in the fork picker: ``Base <name>`` first when shown."""
    options = variant_names(record)
    if includes_base(record):
        options.insert(0, f"{BASE_OPTION_PREFIX}{record.get('name', '')}")
    return options


def resolve_variants(record: dict) -> list[dict]:
    """Expand ``_versions`` into independent records, base first when included."""
    versions = record.get(VERSIONS_KEY)
    if not isinstance(versions, list) or not versions:
        return [copy.deepcopy(record)]

    base = copy.deepcopy(record)
    base.pop(VERSIONS_KEY, None)
    base_name = record.get("name", "")

    results: list[dict] = []
    seen: set[str] = set()
    if includes_base(record):
        results.append(base)
        seen.add(base_name)

    for i, version in enumerate(versions, start=1):
        if not isinstance(version, dict):
            logger.debug("Ignoring non-object variant %r on %r", version, base_name)
            continue
        name = _variant_name(version, base_name, i)
        if name in seen:
            logger.warning("Duplicate variant name %r on %r; keeping the first", name, base_name)
            continue
        seen.add(name)

        variant = copy.deepcopy(base)
        if version.get(MOD_KEY):
            apply_modifications(variant, version[MOD_KEY])
        for key, value in version.items():
            if key != MOD_KEY:
                variant[key] = copy.deepcopy(value)
        variant["name"] = name
        variant[VARIANT_MARKER] = True
        results.append(variant)
    return results


def select_variant(record: dict, variant_name: str) -> dict:
    """Return the fork called *variant_name*; raises ``InvalidRequestedVariant``."""
    base_name = record.get("name", "")
    candidates = resolve_variants(record)
    for candidate in candidates:
        if candidate.get("name") == variant_name:
            return candidate
    if includes_base(record) and variant_name == f"{BASE_OPTION_PREFIX}{base_name}":
        return candidates[0]
    raise InvalidRequestedVariant(variant_name, base_name)
