"""Bestiary record resolution, normalization and stat block rendering."""
from bestiary.document import ForkSelectionDocument, StatBlockDocument, render_text
from bestiary.exceptions import BestiaryError, InvalidRequestedVariant
from bestiary.pipeline import resolve_and_render
from bestiary.templates import Lookups

__all__ = [
    "BestiaryError",
    "ForkSelectionDocument",
    "InvalidRequestedVariant",
    "Lookups",
    "StatBlockDocument",
    "render_text",
    "resolve_and_render",
]
