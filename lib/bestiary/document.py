# bestiary/document.py
"""
Display documents produced by the stat block renderer.

A render yields either a ``StatBlockDocument`` (ordered sections of labelled
lines and named features) or, for a record whose variants have not been
chosen, a ``ForkSelectionDocument`` listing the choices. Both serialize to
plain dicts for JSON and to plain text via ``render_text``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class Line:
    label: str
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value}


@dataclass
class Feature:
    name: str
    paragraphs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "paragraphs": list(self.paragraphs)}


@dataclass
class Section:
    key: str
    title: str = field(default="")
    lines: List[Line] = field(default_factory=list)
    features: List[Feature] = field(default_factory=list)
    intro: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.lines or self.features or self.intro)

    def line(self, label: str) -> Optional[Line]:
        return next((ln for ln in self.lines if ln.label == label), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "lines": [ln.to_dict() for ln in self.lines],
            "features": [f.to_dict() for f in self.features],
            "intro": list(self.intro),
        }


@dataclass
class StatBlockDocument:
    name: str
    sections: List[Section] = field(default_factory=list)
    variant_name: Optional[str] = field(default=None)
    kind: str = field(default="statblock", init=False)

    def section(self, key: str) -> Optional[Section]:
        return next((s for s in self.sections if s.key == key), None)

    @property
    def section_keys(self) -> List[str]:
        return [s.key for s in self.sections]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "variant": self.variant_name,
            "sections": [s.to_dict() for s in self.sections],
        }


@dataclass
class ForkSelectionDocument:
    name: str
    options: List[str] = field(default_factory=list)
    include_base: bool = field(default=True)
    kind: str = field(default="fork_selection", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "options": list(self.options),
            "includeBase": self.include_base,
        }


Document = Union[StatBlockDocument, ForkSelectionDocument]


# ── Plain text ──────────────────────────────────────────────────────

def _section_text(section: Section) -> List[str]:
    out: List[str] = []
    if section.title:
        out.append(section.title.upper())
    out.extend(section.intro)
    for ln in section.lines:
        out.append(f"{ln.label}: {ln.value}" if ln.label else ln.value)
    for feature in section.features:
        body = feature.paragraphs or [""]
        out.append(f"{feature.name}. {body[0]}".rstrip())
        out.extend(body[1:])
    return out


def render_text(document: Document) -> str:
    if isinstance(document, ForkSelectionDocument):
        lines = [document.name, "Choose a version:"]
        lines.extend(f"  - {option}" for option in document.options)
        return "\n".join(lines)

    lines = [document.name]
    if document.variant_name and document.variant_name != document.name:
        lines.append(f"({document.variant_name})")
    for section in document.sections:
        lines.append("")
        lines.extend(_section_text(section))
    return "\n".join(lines)
