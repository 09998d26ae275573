# bestiary/renderer.py
"""
Builds display documents from normalized creature records.

render(normalized, variant_name=None, spell_level=None, proficiency_bonus=None)
    -> StatBlockDocument | ForkSelectionDocument

A record that still declares ``_versions`` and arrives without a variant
name is ambiguous; it renders as a fork picker instead of a stat block.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from bestiary.document import (
    Document,
    Feature,
    ForkSelectionDocument,
    Line,
    Section,
    StatBlockDocument,
)
from bestiary.exceptions import InvalidRequestedVariant
from bestiary.markup import expand, render_entries
from bestiary.normalize import (
    ABILITY_KEYS,
    ability_modifier,
    format_cr,
    format_modifier,
    hp_display,
    join_display_list,
    proficiency_bonus_for_cr,
    size_display,
    xp_for_cr,
)
from bestiary.templates import fork_options, includes_base, variant_names

# ── Section layout ──────────────────────────────────────────────────

SECTION_ORDER = (
    "header", "defenses", "abilities", "proficiencies",
    "trait", "spellcasting", "action", "bonus", "reaction", "legendary",
)

_FEATURE_TITLES = {
    "trait": "Traits",
    "action": "Actions",
    "bonus": "Bonus Actions",
    "reaction": "Reactions",
    "legendary": "Legendary Actions",
}

_DEFENSE_LABELS = (
    ("resist", "Damage Resistances"),
    ("immune", "Damage Immunities"),
    ("vulnerable", "Damage Vulnerabilities"),
    ("conditionImmune", "Condition Immunities"),
)

_LOWER_WORDS = {"of", "and", "the"}


def _title_words(text: str) -> str:
    words = text.split()
    return " ".join(
        w if i and w in _LOWER_WORDS else w[:1].upper() + w[1:]
        for i, w in enumerate(words)
    )


def _ordinal(n: int) -> str:
    if n % 100 in (11, 12, 13):
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


# ── Scaling ─────────────────────────────────────────────────────────

def scaling_context(record: Optional[dict], level: Any) -> dict:
    """Markup context for a creature summoned at spell *level*."""
    if not record or not level:
        return {}
    try:
        level = int(level)
    except (TypeError, ValueError):
        return {}
    return {"spell_level": level, "proficiency_bonus": math.ceil(level / 4) + 1}


# ── Sections ────────────────────────────────────────────────────────

def _header(record: dict) -> Section:
    section = Section("header")
    section.lines.append(Line(
        "Size/Type/Alignment",
        f"{size_display(record.get('sizes') or record.get('size'))} {record['type']}, {record['alignment']}",
    ))
    cr = record.get("cr", 0)
    section.lines.append(Line(
        "Challenge",
        f"{format_cr(cr)} (XP {xp_for_cr(cr):,}; PB +{proficiency_bonus_for_cr(cr)})",
    ))
    if record.get("summonedBySpell"):
        spell = expand(record["summonedBySpell"].split("|")[0])
        level = record.get("summonedBySpellLevel")
        suffix = f" (level {level}+)" if level else ""
        section.lines.append(Line("Summoned", f"Summoned by the {spell} spell{suffix}"))
    elif record.get("summonedByClass"):
        cls = str(record["summonedByClass"]).split("|")[0]
        section.lines.append(Line("Summoned", f"Summoned by the {cls} class"))
    return section


def _defenses(record: dict) -> Section:
    return Section("defenses", lines=[
        Line("Armor Class", record.get("ac_display") or str(record["ac"])),
        Line("Hit Points", hp_display(record["hp"], record.get("hp_special"))),
        Line("Speed", record.get("speed_display") or f"{record['speed']['walk']} ft."),
    ])


def _abilities(record: dict) -> Section:
    section = Section("abilities")
    for key in ABILITY_KEYS:
        score = record[key]
        section.lines.append(Line(key.upper(), f"{score} ({format_modifier(ability_modifier(score))})"))
    return section


def _proficiencies(record: dict, context: dict) -> Section:
    section = Section("proficiencies")
    saves = record.get("save") or {}
    if saves:
        section.lines.append(Line(
            "Saving Throws",
            ", ".join(f"{k.capitalize()} {expand(v, context)}" for k, v in saves.items()),
        ))
    skills = record.get("skill") or {}
    if skills:
        section.lines.append(Line(
            "Skills",
            ", ".join(f"{_title_words(k)} {expand(v, context)}" for k, v in skills.items()),
        ))
    for key, label in _DEFENSE_LABELS:
        items = record.get(key) or []
        if items:
            section.lines.append(Line(label, join_display_list(items)))

    senses = list(record.get("senses") or [])
    if record.get("passive") is not None:
        senses.append(f"passive Perception {record['passive']}")
    if senses:
        section.lines.append(Line("Senses", ", ".join(senses)))

    languages = record.get("languages") or []
    section.lines.append(Line("Languages", ", ".join(languages) if languages else "—"))
    return section


def _features(record: dict, key: str, context: dict) -> Section:
    section = Section(key, title=_FEATURE_TITLES[key])
    for item in record.get(key) or []:
        section.features.append(Feature(
            name=expand(item["name"], context),
            paragraphs=render_entries(item.get("entries"), context),
        ))
    if key == "legendary" and section.features:
        section.intro = _legendary_intro(record, context)
    return section


def _legendary_intro(record: dict, context: dict) -> list[str]:
    header = record.get("legendaryHeader")
    if header:
        return render_entries(header, context)
    name = record["name"]
    count = record.get("legendaryActions", 3)
    return [
        f"The {name} can take {count} legendary actions, choosing from the options "
        f"below. Only one legendary action option can be used at a time and only at "
        f"the end of another creature's turn. The {name} regains spent legendary "
        f"actions at the start of its turn."
    ]


def _spell_list(spells: Any, context: dict) -> str:
    if isinstance(spells, str):
        spells = [spells]
    if not isinstance(spells, list):
        return ""
    return ", ".join(expand(s, context) for s in spells if isinstance(s, str))


def _daily_label(frequency: str) -> str:
    uses = frequency.rstrip("e")
    return f"{uses}/day each" if frequency.endswith("e") else f"{uses}/day"


def _level_sort_key(level: str) -> int:
    try:
        return int(level)
    except (TypeError, ValueError):
        return 99


def _caster_paragraphs(caster: dict, context: dict) -> list[str]:
    paragraphs = render_entries(caster.get("headerEntries"), context)

    will = _spell_list(caster.get("will"), context)
    if will:
        paragraphs.append(f"At will: {will}")

    daily = caster.get("daily")
    if isinstance(daily, dict):
        for frequency, spells in daily.items():
            listed = _spell_list(spells, context)
            if listed:
                paragraphs.append(f"{_daily_label(str(frequency))}: {listed}")

    by_level = caster.get("spells")
    if isinstance(by_level, dict):
        for level in sorted(by_level, key=_level_sort_key):
            data = by_level[level]
            if not isinstance(data, dict):
                continue
            listed = _spell_list(data.get("spells"), context)
            if not listed:
                continue
            n = _level_sort_key(level)
            if n == 0:
                label = "Cantrips (at will)"
            else:
                label = f"{_ordinal(n)} level"
                slots = data.get("slots")
                if slots:
                    label += f" ({slots} slot{'s' if slots != 1 else ''})"
            paragraphs.append(f"{label}: {listed}")

    paragraphs.extend(render_entries(caster.get("footerEntries"), context))
    return paragraphs


def _spellcasting(record: dict, context: dict) -> Section:
    section = Section("spellcasting", title="Spellcasting")
    casters = record.get("spellcasting")
    if not isinstance(casters, list):
        return section
    for caster in casters:
        if not isinstance(caster, dict):
            continue
        section.features.append(Feature(
            name=expand(caster.get("name") or "Spellcasting", context),
            paragraphs=_caster_paragraphs(caster, context),
        ))
    return section


# ── Public API ──────────────────────────────────────────────────────

def _check_variant(record: dict, variant_name: str) -> None:
    choices = set(variant_names(record)) | set(fork_options(record))
    if includes_base(record):
        choices.add(record.get("name", ""))
    if variant_name not in choices:
        raise InvalidRequestedVariant(variant_name, record.get("name", ""))


def render(
    normalized: dict,
    variant_name: Optional[str] = None,
    spell_level: Any = None,
    proficiency_bonus: Any = None,
) -> Document:
    """Render a normalized record; ambiguous records become a fork picker."""
    if normalized.get("_versions"):
        if variant_name is None:
            return ForkSelectionDocument(
                name=normalized["name"],
                options=fork_options(normalized),
                include_base=includes_base(normalized),
            )
        _check_variant(normalized, variant_name)

    context = {"spell_level": spell_level, "proficiency_bonus": proficiency_bonus}
    sections = [
        _header(normalized),
        _defenses(normalized),
        _abilities(normalized),
        _proficiencies(normalized, context),
        _features(normalized, "trait", context),
        _spellcasting(normalized, context),
        _features(normalized, "action", context),
        _features(normalized, "bonus", context),
        _features(normalized, "reaction", context),
        _features(normalized, "legendary", context),
    ]
    return StatBlockDocument(
        name=normalized["name"],
        sections=[s for s in sections if not s.is_empty()],
        variant_name=variant_name,
    )
