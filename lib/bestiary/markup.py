# bestiary/markup.py
"""
Inline markup expansion for bestiary free text.

Source text embeds bracketed directives such as ``{@atk mw}``, ``{@hit 5}``
or ``{@damage 2d6 + 3}``. ``expand`` rewrites the directives it knows into
display text, innermost first, until no known directive is left, then
substitutes the bare dynamic-value tokens (``PB``, ``summonSpellLevel``).
Unknown directives are left exactly as written.

Entry points:
    expand(text, context=None) -> str
    render_entries(entries, context=None) -> list[str]
"""
from __future__ import annotations

import re
from typing import Any, Callable, Mapping, Optional


# ── Grammar ─────────────────────────────────────────────────────────

# {@tag} or {@tag args}; args never contain braces
_DIRECTIVE_RE = re.compile(r"\{@(\w+)(?:\s+([^{}]*?))?\s*\}")

_TOKEN_RE = re.compile(r"\b(PB|summonSpellLevel)\b")

_TOKEN_FALLBACKS = {
    "PB": "your proficiency bonus",
    "summonSpellLevel": "the spell's level",
}

_TOKEN_CONTEXT_KEYS = {
    "PB": "proficiency_bonus",
    "summonSpellLevel": "spell_level",
}


# ── Directive handlers ──────────────────────────────────────────────
# Each handler returns the display text, or None to keep the directive as-is.

_ATTACK_RANGES = {"m": "Melee", "r": "Ranged"}
_ATTACK_KINDS = {"w": "Weapon", "s": "Spell"}


def _first_segment(args: Optional[str]) -> Optional[str]:
    """'frightened|XPHB' → 'frightened'."""
    if not args:
        return None
    head = args.split("|", 1)[0].strip()
    return head or None


def _attack(args: Optional[str]) -> Optional[str]:
    if not args:
        return None
    codes = [c.strip().lower() for c in args.split(",") if c.strip()]
    ranges: list[str] = []
    kinds: list[str] = []
    for code in codes:
        if len(code) != 2 or code[0] not in _ATTACK_RANGES or code[1] not in _ATTACK_KINDS:
            return None
        rng = _ATTACK_RANGES[code[0]]
        kind = _ATTACK_KINDS[code[1]]
        if rng not in ranges:
            ranges.append(rng)
        if kind not in kinds:
            kinds.append(kind)
    if not ranges:
        return None
    if len(kinds) == 1:
        return f"{' or '.join(ranges)} {kinds[0]} Attack:"
    labels = [f"{_ATTACK_RANGES[c[0]]} {_ATTACK_KINDS[c[1]]}" for c in codes]
    return f"{' or '.join(labels)} Attack:"


def _hit(args: Optional[str]) -> Optional[str]:
    if not args or not re.fullmatch(r"[+-]?\d+", args.strip()):
        return None
    value = int(args)
    return f"+{value}" if value >= 0 else str(value)


def _dc(args: Optional[str]) -> Optional[str]:
    if not args or not re.fullmatch(r"\d+", args.strip()):
        return None
    return f"DC {int(args)}"


def _recharge(args: Optional[str]) -> Optional[str]:
    if not args:
        return "Recharge"
    m = re.fullmatch(r"(\d+)(?:\s*-\s*(\d+))?", args.strip())
    if not m:
        return None
    if m.group(2):
        return f"Recharge {m.group(1)}–{m.group(2)}"
    return f"Recharge {m.group(1)}"


def _hit_separator(args: Optional[str]) -> Optional[str]:
    return None if args else "Hit: "


def _spell_attack(args: Optional[str]) -> Optional[str]:
    return None if args else "+ your spell attack modifier"


_REFERENCE_TAGS = (
    "damage", "condition", "spell", "item", "creature", "skill",
    "sense", "dice", "action", "status", "disease",
)

_HANDLERS: dict[str, Callable[[Optional[str]], Optional[str]]] = {
    "atk": _attack,
    "hit": _hit,
    "dc": _dc,
    "recharge": _recharge,
    "h": _hit_separator,
    "hitYourSpellAttack": _spell_attack,
}
_HANDLERS.update({tag: _first_segment for tag in _REFERENCE_TAGS})


def _expand_directive(m: re.Match) -> str:
    handler = _HANDLERS.get(m.group(1))
    if handler is None:
        return m.group(0)
    replacement = handler(m.group(2))
    return m.group(0) if replacement is None else replacement


# ── Public API ──────────────────────────────────────────────────────

def expand(text: Any, context: Optional[Mapping[str, Any]] = None) -> str:
    """Expand markup directives and dynamic-value tokens in *text*.

    *context* may carry ``proficiency_bonus`` and ``spell_level``; missing
    values fall back to a generic phrase. Non-string input yields ''.
    """
    if not isinstance(text, str) or not text:
        return ""
    context = context or {}

    # Nested directives expand innermost first; handler output never holds
    # braces, so every changing pass removes at least one directive.
    result = text
    while True:
        expanded = _DIRECTIVE_RE.sub(_expand_directive, result)
        if expanded == result:
            break
        result = expanded

    def _token(m: re.Match) -> str:
        value = context.get(_TOKEN_CONTEXT_KEYS[m.group(1)])
        if value is None or value == "":
            return _TOKEN_FALLBACKS[m.group(1)]
        return str(value)

    return _TOKEN_RE.sub(_token, result)


def render_entries(entries: Any, context: Optional[Mapping[str, Any]] = None) -> list[str]:
    """Flatten an entry list into display paragraphs.

    Strings are expanded, ``list`` entries become bullet paragraphs and
    named entries render as ``Name. text`` (nested one level).
    """
    if entries is None:
        return []
    if isinstance(entries, str):
        return [expand(entries, context)]
    if not isinstance(entries, list):
        return []

    paragraphs: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            paragraphs.append(expand(entry, context))
        elif isinstance(entry, dict):
            paragraphs.extend(_render_entry_object(entry, context))
    return [p for p in paragraphs if p]


def _render_entry_object(entry: dict, context: Optional[Mapping[str, Any]]) -> list[str]:
    if entry.get("type") == "list":
        out: list[str] = []
        for item in entry.get("items") or []:
            if isinstance(item, str):
                out.append(f"• {expand(item, context)}")
            elif isinstance(item, dict):
                body = item.get("entry", item.get("entries"))
                text = " ".join(render_entries(body, context))
                name = item.get("name")
                out.append(f"• {name}. {text}".rstrip() if name else f"• {text}")
        return out

    sub = render_entries(entry.get("entries"), context)
    name = entry.get("name")
    if name and sub:
        return [f"{name}. {sub[0]}"] + sub[1:]
    if name:
        return [f"{name}."]
    return sub
