# bestiary/summary.py
"""
Compact creature summaries for list views and quick lookups.

    creature_id(record) -> 'goblin-boss-MM'
    summarize(record) -> dict
"""
from __future__ import annotations

import re
from typing import Any, Dict, List

from bestiary.markup import expand, render_entries
from bestiary.normalize import (
    ABILITY_KEYS,
    ability_modifier,
    normalize_ability_score,
    normalize_ac,
    normalize_cr,
    normalize_features,
    normalize_hp,
    normalize_size,
    normalize_speed,
    normalize_type,
)

_ATK_RE = re.compile(r"\{@atk\s+([^}]*)\}")
_HIT_RE = re.compile(r"\{@hit\s+([+-]?\d+)\s*\}")
_DAMAGE_RE = re.compile(r"\{@damage\s+([^}]+?)\s*\}")


def creature_id(record: dict) -> str:
    name = re.sub(r"[^a-z0-9]", "-", str(record.get("name", "")).lower())
    return f"{name}-{record.get('source') or 'unk'}"


def _attack_type(codes: str) -> str:
    kinds = {c.strip()[:1] for c in codes.split(",") if c.strip()}
    if kinds == {"m"}:
        return "melee"
    if kinds == {"r"}:
        return "ranged"
    return "other"


def attacks(record: dict) -> List[Dict[str, Any]]:
    """Actions whose first entry reads like an attack roll."""
    found: List[Dict[str, Any]] = []
    for action in normalize_features(record.get("action"), "action"):
        entries = action["entries"]
        first = entries[0] if entries else None
        if not isinstance(first, str):
            continue
        atk = _ATK_RE.search(first)
        if not atk or not (_HIT_RE.search(first) or "to hit" in first):
            continue
        hit = _HIT_RE.search(first)
        found.append({
            "name": action["name"],
            "description": expand(first),
            "attack_type": _attack_type(atk.group(1)),
            "hit_bonus": int(hit.group(1)) if hit else None,
            "damage": ", ".join(m.split("|")[0] for m in _DAMAGE_RE.findall(first)),
        })
    return found


def special_abilities(record: dict) -> List[Dict[str, str]]:
    return [
        {"name": trait["name"], "description": " ".join(render_entries(trait["entries"]))}
        for trait in normalize_features(record.get("trait"), "trait")
    ]


def summarize(record: dict) -> Dict[str, Any]:
    abilities: Dict[str, int] = {}
    for key in ABILITY_KEYS:
        score = normalize_ability_score(record.get(key))
        abilities[key] = score
        abilities[f"{key}Mod"] = ability_modifier(score)

    return {
        "id": creature_id(record),
        "name": record.get("name", ""),
        "source": record.get("source") or "Unknown",
        "type": normalize_type(record.get("type")),
        "size": normalize_size(record.get("size")),
        "cr": normalize_cr(record.get("cr")),
        "hp": normalize_hp(record.get("hp"))["average"],
        "ac": normalize_ac(record.get("ac")),
        "speed": normalize_speed(record.get("speed")),
        "abilities": abilities,
        "attacks": attacks(record),
        "special_abilities": special_abilities(record),
    }
