# bestiary/statblock_html.py
"""
HTML rendering of display documents for Qt rich-text views.

Kept free of Qt imports so the markup can be built (and tested) headless.
Fork-selection documents render each option as a ``variant:<name>`` link;
``variant_from_href`` turns a clicked link back into the variant name.
"""
from __future__ import annotations

import html
import re
from typing import Optional
from urllib.parse import quote, unquote

from bestiary.document import (
    Document,
    ForkSelectionDocument,
    Section,
    StatBlockDocument,
)

VARIANT_SCHEME = "variant:"

# ── Constants ───────────────────────────────────────────────────────

_CONDITION_NAMES = {
    "blinded", "charmed", "deafened", "exhaustion", "frightened",
    "grappled", "incapacitated", "invisible", "paralyzed", "petrified",
    "poisoned", "prone", "restrained", "stunned", "unconscious",
}

# Longest names first so partial matches don't shadow full ones
_CONDITION_RE = re.compile(
    r'\b(' + '|'.join(sorted(_CONDITION_NAMES, key=len, reverse=True)) + r')\b',
    re.IGNORECASE,
)

# Colours: 2024 D&D Beyond palette
_BG       = "#FEF5E5"   # warm parchment
_MAROON   = "#58180D"   # name, section headers, ability labels
_RED      = "#7A1F1F"   # bold field labels (AC, HP, etc.)
_ORANGE   = "#C9801A"   # borders, dividers, table rules
_TABLE_HD = "#E8D5A3"   # ability score table header row background
_TEXT     = "#1a1a1a"
_BLUE     = "#1a4d8f"

_BODY_STYLE = (
    f'background-color:{_BG};'
    f'font-family:&quot;Palatino Linotype&quot;,Palatino,serif;'
    f'font-size:13px;'
    f'color:{_TEXT};'
    f'margin:8px;'
)


# ── Helpers ─────────────────────────────────────────────────────────

def _esc(text: str) -> str:
    return html.escape(text or "", quote=False)


def _emphasize_conditions(text: str) -> str:
    """Colour known condition names; *text* must already be escaped."""
    return _CONDITION_RE.sub(
        lambda m: f'<span style="color:{_MAROON};">{m.group(1)}</span>', text
    )


def _title(name: str) -> str:
    return (
        f'<table width="100%" style="border-collapse:collapse; margin-bottom:2px;">'
        f'<tr><td style="font-size:22px; font-weight:bold; color:{_MAROON}; '
        f'border-bottom:3px solid {_ORANGE}; padding:0 0 2px 0;">'
        f'{_esc(name)}</td></tr></table>'
    )


def _section_header(label: str) -> str:
    # Single-cell table so the bottom border actually shows in Qt
    return (
        f'<table width="100%" style="border-collapse:collapse; margin:8px 0 2px 0;">'
        f'<tr><td style="font-size:15px; font-weight:bold; color:{_MAROON}; '
        f'border-bottom:2px solid {_ORANGE}; padding:0 0 1px 0;">'
        f'{_esc(label)}</td></tr></table>'
    )


def _divider() -> str:
    return f'<hr style="border:1px solid {_ORANGE}; margin:5px 0;">'


def variant_href(name: str) -> str:
    return f"{VARIANT_SCHEME}{quote(name)}"


def variant_from_href(href: str) -> Optional[str]:
    """'variant:Bestial%20Spirit%20(Air)' → 'Bestial Spirit (Air)'."""
    if not href or not href.startswith(VARIANT_SCHEME):
        return None
    return unquote(href[len(VARIANT_SCHEME):]) or None


# ── Section renderers ───────────────────────────────────────────────

def _render_header(section: Section) -> str:
    p: list[str] = []
    for line in section.lines:
        if line.label == "Size/Type/Alignment":
            p.append(
                f'<p style="font-style:italic; font-size:11px; color:#444; margin:0 0 4px 0;">'
                f'{_esc(line.value)}</p>'
            )
        elif line.label == "Challenge":
            continue
        else:
            p.append(f'<p style="margin:2px 0; font-style:italic;">{_esc(line.value)}</p>')
    return "".join(p)


def _render_lines(section: Section) -> str:
    return "".join(
        f'<p style="margin:2px 0;"><b style="color:{_RED};">{_esc(line.label)}</b> '
        f'{_emphasize_conditions(_esc(line.value))}</p>'
        for line in section.lines
    )


def _render_abilities(section: Section) -> str:
    """One row of six cells: label over 'score (mod)'."""
    cell = f'border:1px solid {_ORANGE}; padding:2px 5px; text-align:center;'
    head = "".join(
        f'<th style="{cell} background-color:{_TABLE_HD}; color:{_MAROON};">{_esc(line.label)}</th>'
        for line in section.lines
    )
    body = "".join(f'<td style="{cell}">{_esc(line.value)}</td>' for line in section.lines)
    return (
        f'<table width="100%" style="border-collapse:collapse; margin:4px 0;">'
        f'<tr>{head}</tr><tr>{body}</tr></table>'
    )


def _render_features(section: Section) -> str:
    p: list[str] = [_section_header(section.title or section.key)]
    for para in section.intro:
        p.append(f'<p style="margin:2px 0; font-style:italic;">{_esc(para)}</p>')
    for feature in section.features:
        paragraphs = [_emphasize_conditions(_esc(t)) for t in feature.paragraphs] or [""]
        p.append(
            f'<p style="margin:3px 0;">'
            f'<b><i>{_esc(feature.name)}.</i></b> {paragraphs[0]}'
            f'</p>'
        )
        for para in paragraphs[1:]:
            p.append(f'<p style="margin:1px 0 1px 12px;">{para}</p>')
    return "".join(p)


def _challenge_line(document: StatBlockDocument) -> str:
    header = document.section("header")
    line = header.line("Challenge") if header else None
    if not line:
        return ""
    return f'<p style="margin:2px 0;"><b style="color:{_RED};">Challenge</b> {_esc(line.value)}</p>'


# ── Public API ──────────────────────────────────────────────────────

def build_statblock_html(document: StatBlockDocument) -> str:
    p: list[str] = [f'<html><body style="{_BODY_STYLE}">', _title(document.name)]

    for section in document.sections:
        if section.key == "header":
            p.append(_render_header(section))
        elif section.key == "defenses":
            p.append(_render_lines(section))
            p.append(_divider())
        elif section.key == "abilities":
            p.append(_render_abilities(section))
            p.append(_divider())
        elif section.key == "proficiencies":
            p.append(_render_lines(section))
            p.append(_challenge_line(document))
        else:
            p.append(_render_features(section))

    p.append('</body></html>')
    return "".join(p)


def build_fork_html(document: ForkSelectionDocument) -> str:
    p: list[str] = [
        f'<html><body style="{_BODY_STYLE}">',
        _title(f"{document.name} Variants"),
        '<p style="margin:4px 0;">This creature has multiple versions. Select one to view:</p>',
        '<ul>',
    ]
    for option in document.options:
        p.append(
            f'<li><a href="{html.escape(variant_href(option))}" '
            f'style="color:{_BLUE}; text-decoration:none;">{_esc(option)}</a></li>'
        )
    p.append('</ul></body></html>')
    return "".join(p)


def build_html(document: Document) -> str:
    if isinstance(document, ForkSelectionDocument):
        return build_fork_html(document)
    return build_statblock_html(document)


def placeholder_html(message: str = "No statblock loaded.") -> str:
    return (
        f'<body style="background-color:{_BG}; color:#999; '
        f'font-family:&quot;Palatino Linotype&quot;,Palatino,serif;">'
        f'<p style="margin:20px; text-align:center; font-style:italic;">'
        f'{_esc(message)}</p></body>'
    )
