# bestiary/modifications.py
"""
Interpreter for the ``_mod`` patch language.

A mod block maps a property name to one op (a dict) or a list of ops; the
special property ``"_"`` holds root-level ops. Every op names its ``mode``,
which selects a handler from a closed table below. Ops that do not fit the
target (wrong type, missing property, unknown mode) are skipped and logged
at DEBUG; the interpreter never raises on well-formed input.

Entry points:
    apply_modifications(record, mods) -> record   (mutates record)
    apply_root_modifications(record, ops) -> record
"""
from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable

logger = logging.getLogger(__name__)

ROOT_KEY = "_"

# Modes that create the target list when it does not exist yet
_INITIALIZING_MODES = ("appendArr", "prependArr", "appendIfNotExistsArr")

# T=0 … G=5, used only by maxSize
_MAX_SIZE_ORDER = {"T": 0, "S": 1, "M": 2, "L": 3, "H": 4, "G": 5}


def _skip(mode: Any, target: str, reason: str) -> None:
    logger.debug("Skipping %s on %r: %s", mode, target, reason)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return list(value) if isinstance(value, list) else [value]


def _identity(item: Any) -> Any:
    """Features compare by ``name``; bare strings compare by value."""
    if isinstance(item, dict):
        return item.get("name")
    return item


# ── Array ops ───────────────────────────────────────────────────────
# Each handler receives the record, the property name and the op dict.

def _remove_arr(record: dict, prop: str, op: dict) -> None:
    names = _as_list(op.get("names"))
    record[prop] = [item for item in record[prop] if _identity(item) not in names]


def _append_arr(record: dict, prop: str, op: dict) -> None:
    record[prop].extend(copy.deepcopy(_as_list(op.get("items"))))


def _prepend_arr(record: dict, prop: str, op: dict) -> None:
    record[prop][:0] = copy.deepcopy(_as_list(op.get("items")))


def _append_if_not_exists_arr(record: dict, prop: str, op: dict) -> None:
    target = record[prop]
    for item in _as_list(op.get("items")):
        if not any(_identity(existing) == _identity(item) for existing in target):
            target.append(copy.deepcopy(item))


def _rename_arr(record: dict, prop: str, op: dict) -> None:
    for renames in _as_list(op.get("renames")):
        if not isinstance(renames, dict):
            continue
        for item in record[prop]:
            if isinstance(item, dict) and item.get("name") == renames.get("rename"):
                item["name"] = renames.get("with")
                break


_JS_GROUP_RE = re.compile(r"\$(\$|&|\d{1,2})")


def _replacement_template(replacement: str, groups: int) -> str:
    """Turn a '$1 / $& / $$' replacement into a ``re.sub`` template.

    Backslashes stay literal; a ``$N`` past the pattern's group count is
    kept as written.
    """
    def _group(m: re.Match) -> str:
        ref = m.group(1)
        if ref == "$":
            return "$"
        if ref == "&":
            return r"\g<0>"
        if 0 < int(ref) <= groups:
            return rf"\g<{int(ref)}>"
        if len(ref) == 2 and 0 < int(ref[0]) <= groups:
            return rf"\g<{ref[0]}>{ref[1]}"
        return m.group(0)

    return _JS_GROUP_RE.sub(_group, replacement.replace("\\", "\\\\"))


def _replace_text(value: Any, pattern: re.Pattern, replacement: str) -> Any:
    if isinstance(value, str):
        return pattern.sub(replacement, value)
    if isinstance(value, list):
        return [_replace_text(v, pattern, replacement) for v in value]
    if isinstance(value, dict):
        return {k: _replace_text(v, pattern, replacement) for k, v in value.items()}
    return value


def _replace_txt(record: dict, prop: str, op: dict) -> None:
    if not isinstance(op.get("replace"), str):
        _skip("replaceTxt", prop, "no pattern")
        return
    flags = re.IGNORECASE if "i" in str(op.get("flags", "")) else 0
    try:
        pattern = re.compile(op["replace"], flags)
    except re.error as exc:
        _skip("replaceTxt", prop, f"bad pattern ({exc})")
        return
    template = _replacement_template(str(op.get("with", "")), pattern.groups)
    record[prop] = _replace_text(record[prop], pattern, template)


def _replace_arr(record: dict, prop: str, op: dict) -> None:
    target = record[prop]
    wanted = op.get("replace")
    for i, item in enumerate(target):
        if _identity(item) == wanted or item == wanted:
            target[i:i + 1] = copy.deepcopy(_as_list(op.get("items")))
            return
    _skip("replaceArr", prop, f"no entry matching {wanted!r}")


_ARRAY_OPS: dict[str, Callable[[dict, str, dict], None]] = {
    "removeArr": _remove_arr,
    "appendArr": _append_arr,
    "prependArr": _prepend_arr,
    "appendIfNotExistsArr": _append_if_not_exists_arr,
    "renameArr": _rename_arr,
    "replaceTxt": _replace_txt,
    "replaceArr": _replace_arr,
}


# ── Path ops ────────────────────────────────────────────────────────

def set_prop(record: dict, path: str, value: Any) -> None:
    """Set ``a.b.c`` on *record*, creating intermediate dicts as needed."""
    parts = [p for p in path.split(".") if p]
    if not parts:
        return
    target = record
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = copy.deepcopy(value)


def _set_prop(record: dict, prop: str, op: dict) -> None:
    path = op.get("prop")
    if not isinstance(path, str) or not path:
        _skip("setProp", prop, "no prop path")
        return
    set_prop(record, path, op.get("value"))


# ── Root ops ────────────────────────────────────────────────────────

def _add_senses(record: dict, op: dict) -> None:
    senses = record.get("senses")
    if senses is None:
        senses = record["senses"] = []
    elif isinstance(senses, str):
        senses = record["senses"] = [senses]
    elif not isinstance(senses, list):
        _skip("addSenses", ROOT_KEY, "senses is not a list")
        return

    for sense in _as_list(op.get("senses")):
        if isinstance(sense, dict) and sense.get("type"):
            sense = f"{sense['type']} {sense.get('range')} ft."
        if isinstance(sense, str) and sense not in senses:
            senses.append(sense)


def _add_skills(record: dict, op: dict) -> None:
    skills = op.get("skills")
    if not isinstance(skills, dict):
        _skip("addSkills", ROOT_KEY, "no skill map")
        return
    existing = record.get("skill")
    if not isinstance(existing, dict):
        existing = record["skill"] = {}
    for skill, value in skills.items():
        if skill in existing:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            value = f"+{value}" if value >= 0 else str(value)
        existing[skill] = value


def _max_size(record: dict, op: dict) -> None:
    cap = op.get("max")
    if cap not in _MAX_SIZE_ORDER:
        _skip("maxSize", ROOT_KEY, f"unknown size {cap!r}")
        return
    limit = _MAX_SIZE_ORDER[cap]
    size = record.get("size")
    if isinstance(size, list):
        kept = [s for s in size if _MAX_SIZE_ORDER.get(s, 0) <= limit]
        record["size"] = kept or [cap]
    elif isinstance(size, str):
        if _MAX_SIZE_ORDER.get(size, 0) > limit:
            record["size"] = cap
    else:
        _skip("maxSize", ROOT_KEY, "no size")


_ROOT_OPS: dict[str, Callable[[dict, dict], None]] = {
    "addSenses": _add_senses,
    "addSkills": _add_skills,
    "maxSize": _max_size,
    "setProp": lambda record, op: _set_prop(record, ROOT_KEY, op),
}


# ── Public API ──────────────────────────────────────────────────────

def apply_root_modifications(record: dict, ops: Any) -> dict:
    for op in _as_list(ops):
        if not isinstance(op, dict):
            _skip(op, ROOT_KEY, "not an op")
            continue
        handler = _ROOT_OPS.get(op.get("mode"))
        if handler is None:
            _skip(op.get("mode"), ROOT_KEY, "unsupported root mode")
            continue
        handler(record, op)
    return record


def apply_modifications(record: dict, mods: Any) -> dict:
    """Apply a ``_mod`` block to *record* in place and return it."""
    if not isinstance(mods, dict):
        return record

    for prop, ops in mods.items():
        if prop == ROOT_KEY:
            apply_root_modifications(record, ops)
            continue

        for op in _as_list(ops):
            if not isinstance(op, dict):
                _skip(op, prop, "not an op")
                continue
            mode = op.get("mode")
            if mode == "setProp":
                _set_prop(record, prop, op)
                continue

            handler = _ARRAY_OPS.get(mode)
            if handler is None:
                _skip(mode, prop, "unsupported mode")
                continue
            if not record.get(prop):
                if mode not in _INITIALIZING_MODES:
                    _skip(mode, prop, "property missing")
                    continue
                record[prop] = []
            if not isinstance(record[prop], list):
                _skip(mode, prop, "property is not a list")
                continue
            handler(record, prop, op)
    return record
