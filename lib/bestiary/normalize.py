# bestiary/normalize.py
"""
Field normalization for bestiary creature records.

The bestiary JSON dialect spells the same value many ways: AC as a bare
number, a list of numbers or a list of ``{ac, from}`` objects; CR as a
number, a fraction string or ``{cr: ...}``; and so on. Each ``normalize_*``
function accepts every legal shape for one attribute and returns exactly
one canonical shape. Values that match no known shape fall back to the
attribute's default and are logged at DEBUG.

Entry points:
    normalize_record(raw: dict) -> dict
    normalize_ac / normalize_hp / normalize_speed / normalize_size /
    normalize_cr / normalize_type / normalize_alignment / ...
"""
from __future__ import annotations

import logging
import math
import re
from enum import Enum
from typing import Any, Optional

from bestiary.markup import expand

logger = logging.getLogger(__name__)


# ── Shape tagging ───────────────────────────────────────────────────

class Shape(Enum):
    MISSING = 0
    INTEGER = 1
    NUMBER = 2
    TEXT = 3
    LIST = 4
    OBJECT = 5
    OTHER = 6

    def __repr__(self) -> str:
        return str(self.name)


def classify(value: Any) -> Shape:
    """Tag a raw JSON value with its shape so coercers can branch once."""
    if value is None:
        return Shape.MISSING
    if isinstance(value, bool):
        return Shape.OTHER
    if isinstance(value, int):
        return Shape.INTEGER
    if isinstance(value, float):
        return Shape.INTEGER if value.is_integer() else Shape.NUMBER
    if isinstance(value, str):
        return Shape.TEXT if value.strip() else Shape.MISSING
    if isinstance(value, list):
        return Shape.LIST if value else Shape.MISSING
    if isinstance(value, dict):
        return Shape.OBJECT
    return Shape.OTHER


def _malformed(field: str, value: Any, default: Any) -> Any:
    logger.debug("Malformed %s %r; using default %r", field, value, default)
    return default


def _leading_int(text: str) -> Optional[int]:
    m = re.match(r"\s*(-?\d+)", text)
    return int(m.group(1)) if m else None


# ── Size ────────────────────────────────────────────────────────────

_SIZE_NAMES = {
    "T": "Tiny",
    "S": "Small",
    "M": "Medium",
    "L": "Large",
    "H": "Huge",
    "G": "Gargantuan",
}
_SIZE_CODES = {name.lower(): code for code, name in _SIZE_NAMES.items()}
_SIZE_ORDER = {code: i for i, code in enumerate(_SIZE_NAMES, start=1)}
_UNKNOWN_SIZE_ORDER = 99

DEFAULT_SIZE = "M"


def _size_code(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.upper() in _SIZE_NAMES:
        return text.upper()
    return _SIZE_CODES.get(text.lower())


def size_codes(value: Any) -> list[str]:
    """All recognised size codes, in source order."""
    shape = classify(value)
    if shape is Shape.TEXT:
        code = _size_code(value)
        return [code] if code else []
    if shape is Shape.LIST:
        return [c for c in (_size_code(v) for v in value) if c]
    return []


def normalize_size(value: Any) -> str:
    """Single size code used for filtering and sorting (first code wins)."""
    codes = size_codes(value)
    if codes:
        return codes[0]
    if classify(value) is not Shape.MISSING:
        return _malformed("size", value, DEFAULT_SIZE)
    return DEFAULT_SIZE


def size_name(code: Any) -> str:
    if not isinstance(code, str):
        return _SIZE_NAMES[DEFAULT_SIZE]
    return _SIZE_NAMES.get(code.upper(), code)


def size_display(value: Any) -> str:
    """'M' → 'Medium'; ['S', 'M'] → 'Small or Medium'."""
    codes = size_codes(value) or [DEFAULT_SIZE]
    return " or ".join(size_name(c) for c in codes)


def size_order(code: Any) -> int:
    """Tiny=1 … Gargantuan=6; unknown codes sort last."""
    resolved = _size_code(code)
    return _SIZE_ORDER.get(resolved, _UNKNOWN_SIZE_ORDER) if resolved else _UNKNOWN_SIZE_ORDER


def size_in_range(code: Any, min_code: Optional[str] = None, max_code: Optional[str] = None) -> bool:
    order = size_order(code)
    if min_code is not None and order < size_order(min_code):
        return False
    if max_code is not None and order > size_order(max_code):
        return False
    return True


# ── Armor class ─────────────────────────────────────────────────────

DEFAULT_AC = 10


def _ac_value(entry: Any) -> Optional[int]:
    shape = classify(entry)
    if shape is Shape.INTEGER:
        return int(entry)
    if shape is Shape.TEXT:
        return _leading_int(entry)
    if shape is Shape.OBJECT:
        inner = entry.get("ac")
        if classify(inner) is Shape.INTEGER:
            return int(inner)
    return None


def normalize_ac(value: Any) -> int:
    """Return the first armor class found in any supported shape."""
    shape = classify(value)
    if shape is Shape.MISSING:
        return DEFAULT_AC
    if shape is Shape.LIST:
        for entry in value:
            ac = _ac_value(entry)
            if ac is not None:
                return ac
        return _malformed("ac", value, DEFAULT_AC)
    ac = _ac_value(value)
    return ac if ac is not None else _malformed("ac", value, DEFAULT_AC)


def ac_display(value: Any) -> str:
    """'13 (natural armor)', or every listed AC joined with ', '."""
    entries = value if isinstance(value, list) else [value]
    parts: list[str] = []
    for entry in entries:
        if isinstance(entry, dict):
            if classify(entry.get("special")) is Shape.TEXT:
                parts.append(expand(entry["special"]))
                continue
            ac = _ac_value(entry)
            if ac is None:
                continue
            text = str(ac)
            sources = entry.get("from")
            if isinstance(sources, list) and sources:
                text += f" ({', '.join(expand(s) for s in sources if isinstance(s, str))})"
            if isinstance(entry.get("condition"), str):
                text += f" {expand(entry['condition'])}"
            parts.append(text)
        else:
            ac = _ac_value(entry)
            if ac is not None:
                parts.append(str(ac))
    return ", ".join(parts) or str(normalize_ac(value))


# ── Hit points ──────────────────────────────────────────────────────

DEFAULT_HP_AVERAGE = 10


def _default_hp() -> dict:
    return {"average": DEFAULT_HP_AVERAGE, "formula": None}


def normalize_hp(value: Any) -> dict:
    """Return ``{average: int, formula: str | None}``."""
    shape = classify(value)
    if shape is Shape.MISSING:
        return _default_hp()
    if shape is Shape.INTEGER:
        return {"average": int(value), "formula": None}
    if shape is Shape.TEXT:
        # "45 (6d10 + 12)"
        m = re.match(r"\s*(\d+)\s*(?:\(([^)]+)\))?", value)
        if m:
            formula = m.group(2).strip() if m.group(2) else None
            return {"average": int(m.group(1)), "formula": formula}
        return _malformed("hp", value, _default_hp())
    if shape is Shape.OBJECT:
        average = value.get("average")
        formula = value.get("formula")
        if classify(average) is not Shape.INTEGER:
            if "special" not in value:
                return _malformed("hp", value, _default_hp())
            average = DEFAULT_HP_AVERAGE
        return {
            "average": int(average),
            "formula": formula if isinstance(formula, str) and formula.strip() else None,
        }
    return _malformed("hp", value, _default_hp())


def hp_special(value: Any) -> Optional[str]:
    if isinstance(value, dict) and classify(value.get("special")) is Shape.TEXT:
        return expand(value["special"])
    return None


def hp_display(hp: dict, special: Optional[str] = None) -> str:
    if special:
        return special
    if hp.get("formula"):
        return f"{hp['average']} ({hp['formula']})"
    return str(hp.get("average", DEFAULT_HP_AVERAGE))


# ── Speed ───────────────────────────────────────────────────────────

SPEED_MODES = ("walk", "fly", "swim", "climb", "burrow")
DEFAULT_WALK = 30


def _speed_number(value: Any) -> Optional[int]:
    shape = classify(value)
    if shape is Shape.INTEGER:
        return int(value)
    if shape is Shape.TEXT:
        return _leading_int(value)
    if shape is Shape.OBJECT:
        return _speed_number(value.get("number"))
    return None


def _parse_speed_text(text: str) -> dict:
    """'30 ft., fly 60 ft. (hover)' → {'walk': 30, 'fly': 60}."""
    speed: dict = {}
    m = re.match(r"\s*(\d+)\s*ft", text)
    if m:
        speed["walk"] = int(m.group(1))
    for mode in SPEED_MODES[1:]:
        m = re.search(rf"{mode}\s+(\d+)\s*ft", text, re.IGNORECASE)
        if m:
            speed[mode] = int(m.group(1))
    return speed


def normalize_speed(value: Any) -> dict:
    """Return ``{mode: int}`` for each present mode; ``walk`` is always set."""
    shape = classify(value)
    if shape is Shape.MISSING:
        return {"walk": DEFAULT_WALK}
    if shape is Shape.INTEGER:
        return {"walk": int(value)}
    if shape is Shape.TEXT:
        speed = _parse_speed_text(value)
        if not speed:
            return _malformed("speed", value, {"walk": DEFAULT_WALK})
        speed.setdefault("walk", DEFAULT_WALK)
        return {mode: speed[mode] for mode in SPEED_MODES if mode in speed}
    if shape is Shape.OBJECT:
        speed = {}
        for mode in SPEED_MODES:
            if mode not in value:
                continue
            number = _speed_number(value[mode])
            if number is None:
                logger.debug("Malformed speed.%s %r; dropped", mode, value[mode])
                continue
            speed[mode] = number
        speed.setdefault("walk", DEFAULT_WALK)
        return {mode: speed[mode] for mode in SPEED_MODES if mode in speed}
    return _malformed("speed", value, {"walk": DEFAULT_WALK})


def speed_display(value: Any) -> str:
    """'30 ft., fly 60 ft. (hover), swim 30 ft.'"""
    if isinstance(value, str) and value.strip():
        return expand(value.strip())
    speed = normalize_speed(value)
    conditions: dict[str, str] = {}
    if isinstance(value, dict):
        for mode, raw in value.items():
            if isinstance(raw, dict) and isinstance(raw.get("condition"), str):
                conditions[mode] = expand(raw["condition"])
    parts: list[str] = []
    for mode, number in speed.items():
        text = f"{number} ft." if mode == "walk" else f"{mode} {number} ft."
        if mode in conditions:
            text += f" {conditions[mode]}"
        parts.append(text)
    return ", ".join(parts)


# ── Challenge rating ────────────────────────────────────────────────

DEFAULT_CR = 0.0

_CR_FRACTIONS = {"1/8": 0.125, "1/4": 0.25, "1/2": 0.5}
_CR_DISPLAY = {0.125: "1/8", 0.25: "1/4", 0.5: "1/2"}

_XP_BY_CR = {
    0: 10, 0.125: 25, 0.25: 50, 0.5: 100, 1: 200, 2: 450, 3: 700, 4: 1100,
    5: 1800, 6: 2300, 7: 2900, 8: 3900, 9: 5000, 10: 5900, 11: 7200,
    12: 8400, 13: 10000, 14: 11500, 15: 13000, 16: 15000, 17: 18000,
    18: 20000, 19: 22000, 20: 25000, 21: 33000, 22: 41000, 23: 50000,
    24: 62000, 25: 75000, 26: 90000, 27: 105000, 28: 120000, 29: 135000,
    30: 155000,
}


def normalize_cr(value: Any) -> float:
    """1, 0.5, '1/4', '3', {'cr': '1/2', 'lair': '1'} → float."""
    shape = classify(value)
    if shape is Shape.MISSING:
        return DEFAULT_CR
    if shape in (Shape.INTEGER, Shape.NUMBER):
        if not math.isfinite(value):
            return _malformed("cr", value, DEFAULT_CR)
        return float(value)
    if shape is Shape.TEXT:
        text = value.strip()
        if text in _CR_FRACTIONS:
            return _CR_FRACTIONS[text]
        try:
            cr = float(text)
        except ValueError:
            return _malformed("cr", value, DEFAULT_CR)
        # 'nan' and 'inf' parse as floats
        if not math.isfinite(cr):
            return _malformed("cr", value, DEFAULT_CR)
        return cr
    if shape is Shape.OBJECT and "cr" in value:
        return normalize_cr(value["cr"])
    return _malformed("cr", value, DEFAULT_CR)


def format_cr(cr: Any) -> str:
    """0.125 → '1/8', 0.5 → '1/2', 2.0 → '2'."""
    value = normalize_cr(cr)
    if value in _CR_DISPLAY:
        return _CR_DISPLAY[value]
    if value.is_integer():
        return str(int(value))
    return str(value)


def xp_for_cr(cr: Any) -> int:
    value = normalize_cr(cr)
    if value in _XP_BY_CR:
        return _XP_BY_CR[value]
    if value.is_integer() and int(value) in _XP_BY_CR:
        return _XP_BY_CR[int(value)]
    return 0


def proficiency_bonus_for_cr(cr: Any) -> int:
    value = normalize_cr(cr)
    if value < 1:
        return 2
    return max(2, (math.ceil(value) - 1) // 4 + 2)


# ── Type ────────────────────────────────────────────────────────────

DEFAULT_TYPE = "creature"


def _type_base_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict) and isinstance(value.get("choose"), list):
        choices = [c for c in value["choose"] if isinstance(c, str)]
        if choices:
            return " or ".join(choices)
    return None


def _format_tag(tag: Any) -> str:
    if isinstance(tag, str):
        return tag
    if isinstance(tag, dict) and isinstance(tag.get("tag"), str):
        prefix = tag.get("prefix")
        return f"{prefix} {tag['tag']}" if prefix else tag["tag"]
    return ""


def normalize_type(value: Any) -> str:
    """Display form: 'humanoid (goblinoid)', 'swarm of Tiny beasts'."""
    shape = classify(value)
    if shape is Shape.TEXT:
        return value.strip()
    if shape is not Shape.OBJECT:
        if shape is not Shape.MISSING:
            return _malformed("type", value, DEFAULT_TYPE)
        return DEFAULT_TYPE

    base = _type_base_text(value.get("type")) or DEFAULT_TYPE
    if value.get("swarmSize"):
        base = f"swarm of {size_name(value['swarmSize'])} {base}s"
    tags = value.get("tags")
    if isinstance(tags, list):
        labels = [t for t in (_format_tag(tag) for tag in tags) if t]
        if labels:
            base += f" ({', '.join(labels)})"
    return base


def type_base(value: Any) -> str:
    """Base type alone, lowercased, for filtering."""
    if isinstance(value, dict):
        base = _type_base_text(value.get("type"))
    else:
        base = _type_base_text(value)
    return (base or DEFAULT_TYPE).lower()


# ── Alignment ───────────────────────────────────────────────────────

DEFAULT_ALIGNMENT = "unaligned"

_ALIGNMENT_WORDS = {
    "L": "lawful",
    "N": "neutral",
    "C": "chaotic",
    "G": "good",
    "E": "evil",
    "U": "unaligned",
    "A": "any alignment",
}


def _compose_alignment(letters: list[str]) -> str:
    codes = {c.upper() for c in letters}
    if "U" in codes:
        return "unaligned"
    if "A" in codes:
        return "any alignment"

    if "L" in codes:
        ethic = "lawful"
    elif "C" in codes:
        ethic = "chaotic"
    else:
        ethic = "neutral"
    if "G" in codes:
        moral = "good"
    elif "E" in codes:
        moral = "evil"
    else:
        moral = "neutral"

    if ethic == moral == "neutral":
        return "neutral"
    return f"{ethic} {moral}"


def normalize_alignment(value: Any) -> str:
    shape = classify(value)
    if shape is Shape.MISSING:
        return DEFAULT_ALIGNMENT
    if shape is Shape.TEXT:
        text = value.strip()
        return _ALIGNMENT_WORDS.get(text.upper(), text) if len(text) == 1 else text
    if shape is Shape.OBJECT:
        if isinstance(value.get("special"), str):
            return value["special"]
        if "alignment" in value:
            phrase = normalize_alignment(value["alignment"])
            chance = value.get("chance")
            return f"{phrase} ({chance}%)" if chance else phrase
        return _malformed("alignment", value, DEFAULT_ALIGNMENT)
    if shape is Shape.LIST:
        if all(isinstance(v, dict) for v in value):
            return " or ".join(normalize_alignment(v) for v in value)
        letters = [v for v in value if isinstance(v, str)]
        return _compose_alignment(letters)
    return _malformed("alignment", value, DEFAULT_ALIGNMENT)


# ── Damage / condition lists ────────────────────────────────────────

_DEFENSE_KEYS = ("resist", "immune", "vulnerable", "conditionImmune")


def _defense_entry(item: Any, key: str) -> Optional[str]:
    if isinstance(item, str):
        return expand(item) or None
    if not isinstance(item, dict):
        return None
    if isinstance(item.get("special"), str):
        return expand(item["special"])

    inner_key = key if key in item else next((k for k in _DEFENSE_KEYS if k in item), None)
    if inner_key is None:
        return None
    inner = normalize_defense_list(item[inner_key], inner_key)
    if not inner:
        return None
    text = ", ".join(inner)
    if isinstance(item.get("preNote"), str):
        text = f"{expand(item['preNote'])} {text}"
    if isinstance(item.get("note"), str):
        text += f" {expand(item['note'])}"
    if isinstance(item.get("cond"), str):
        text += f" {expand(item['cond'])}"
    return text


def normalize_defense_list(value: Any, key: str = "resist") -> list[str]:
    """Flatten resist/immune/vulnerable/conditionImmune into display strings."""
    shape = classify(value)
    if shape is Shape.MISSING:
        return []
    if shape is Shape.TEXT:
        return [expand(value.strip())]
    if shape is Shape.LIST:
        return [s for s in (_defense_entry(item, key) for item in value) if s]
    if shape is Shape.OBJECT:
        entry = _defense_entry(value, key)
        return [entry] if entry else []
    return _malformed(key, value, [])


def join_display_list(items: list[str]) -> str:
    """Items that carry their own commas are separated with semicolons."""
    separator = "; " if any("," in item for item in items) else ", "
    return separator.join(items)


# ── Senses / languages / bonuses ────────────────────────────────────

def _sense_entry(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return expand(item.strip()) or None
    if isinstance(item, dict):
        if isinstance(item.get("special"), str):
            return expand(item["special"])
        if isinstance(item.get("type"), str):
            text = f"{item['type']} {item.get('range', '')} ft.".replace("  ", " ")
            if isinstance(item.get("note"), str):
                text += f" {expand(item['note'])}"
            return text
    return None


def normalize_senses(value: Any) -> list[str]:
    shape = classify(value)
    if shape is Shape.MISSING:
        return []
    if shape is Shape.TEXT:
        return [expand(value.strip())]
    if shape is Shape.LIST:
        return [s for s in (_sense_entry(v) for v in value) if s]
    if shape is Shape.OBJECT:
        entry = _sense_entry(value)
        return [entry] if entry else []
    return _malformed("senses", value, [])


def normalize_languages(value: Any) -> list[str]:
    shape = classify(value)
    if shape is Shape.TEXT:
        return [expand(value.strip())]
    if shape is Shape.LIST:
        return [expand(v) for v in value if isinstance(v, str) and v.strip()]
    if shape is not Shape.MISSING:
        return _malformed("languages", value, [])
    return []


def normalize_passive(value: Any) -> Optional[int]:
    shape = classify(value)
    if shape is Shape.INTEGER:
        return int(value)
    if shape is Shape.TEXT:
        return _leading_int(value)
    return None


def format_modifier(modifier: int) -> str:
    return f"+{modifier}" if modifier >= 0 else str(modifier)


def normalize_bonuses(value: Any) -> dict[str, str]:
    """Skill / save maps: {'perception': 4} → {'perception': '+4'}."""
    if not isinstance(value, dict):
        if classify(value) is not Shape.MISSING:
            return _malformed("bonus map", value, {})
        return {}
    bonuses: dict[str, str] = {}
    for name, bonus in value.items():
        shape = classify(bonus)
        if shape is Shape.INTEGER:
            bonuses[name] = format_modifier(int(bonus))
        elif shape is Shape.TEXT:
            bonuses[name] = expand(bonus.strip())
    return bonuses


# ── Ability scores ──────────────────────────────────────────────────

ABILITY_KEYS = ("str", "dex", "con", "int", "wis", "cha")
DEFAULT_ABILITY_SCORE = 10


def normalize_ability_score(value: Any) -> int:
    shape = classify(value)
    if shape is Shape.INTEGER:
        return int(value)
    if shape is Shape.TEXT:
        parsed = _leading_int(value)
        if parsed is not None:
            return parsed
    if shape is not Shape.MISSING:
        return _malformed("ability score", value, DEFAULT_ABILITY_SCORE)
    return DEFAULT_ABILITY_SCORE


def ability_modifier(score: int) -> int:
    return (score - 10) // 2


# ── Features ────────────────────────────────────────────────────────

FEATURE_KEYS = ("trait", "action", "bonus", "reaction", "legendary")


def normalize_features(value: Any, key: str = "feature") -> list[dict]:
    """Keep named ``{name, entries}`` features; nameless items are dropped."""
    if not isinstance(value, list):
        if classify(value) is not Shape.MISSING:
            return _malformed(key, value, [])
        return []
    features: list[dict] = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or not item["name"].strip():
            logger.debug("Dropping unnamed %s entry %r", key, item)
            continue
        entries = item.get("entries", [])
        if isinstance(entries, str):
            entries = [entries]
        elif not isinstance(entries, list):
            entries = []
        features.append({"name": item["name"].strip(), "entries": entries})
    return features


# ── Whole record ────────────────────────────────────────────────────

_PASSTHROUGH_KEYS = (
    "source", "spellcasting", "legendaryHeader", "summonedBySpell",
    "summonedBySpellLevel", "summonedByClass", "_versions", "_isVariantTemplate",
)


def normalize_record(raw: dict) -> dict:
    """Coerce every known field of a resolved record to its canonical shape."""
    name = raw.get("name")
    record: dict = {
        "name": name.strip() if isinstance(name, str) and name.strip() else "Unknown",
        "size": normalize_size(raw.get("size")),
        "sizes": size_codes(raw.get("size")) or [normalize_size(raw.get("size"))],
        "type": normalize_type(raw.get("type")),
        "type_base": type_base(raw.get("type")),
        "alignment": normalize_alignment(raw.get("alignment")),
        "cr": normalize_cr(raw.get("cr")),
        "ac": normalize_ac(raw.get("ac")),
        "ac_display": ac_display(raw.get("ac")),
        "hp": normalize_hp(raw.get("hp")),
        "hp_special": hp_special(raw.get("hp")),
        "speed": normalize_speed(raw.get("speed")),
        "speed_display": speed_display(raw.get("speed")),
        "save": normalize_bonuses(raw.get("save")),
        "skill": normalize_bonuses(raw.get("skill")),
        "senses": normalize_senses(raw.get("senses")),
        "passive": normalize_passive(raw.get("passive")),
        "languages": normalize_languages(raw.get("languages")),
        "legendaryActions": raw.get("legendaryActions", 3) if classify(raw.get("legendaryActions")) is Shape.INTEGER else 3,
        "is_variant": bool(raw.get("_isVariant")),
        "is_template": bool(raw.get("_isVariantTemplate")),
    }
    for key in ABILITY_KEYS:
        record[key] = normalize_ability_score(raw.get(key))
    for key in _DEFENSE_KEYS:
        record[key] = normalize_defense_list(raw.get(key), key)
    for key in FEATURE_KEYS:
        record[key] = normalize_features(raw.get(key), key)
    for key in _PASSTHROUGH_KEYS:
        if key in raw:
            record[key] = raw[key]
    return record
