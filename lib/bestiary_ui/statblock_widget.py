# bestiary_ui/statblock_widget.py
"""
StatblockWidget: QTextBrowser subclass that shows a rendered bestiary document.

Stat blocks display as styled HTML. A fork-selection document lists its
versions as links; clicking one emits ``variantSelected(name)`` and the
owner re-resolves the record with that name. The widget keeps no
resolution state of its own.
"""
from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import QPoint, QUrl, pyqtSignal
from PyQt5.QtWidgets import QTextBrowser, QToolTip

from bestiary.document import Document, ForkSelectionDocument
from bestiary.statblock_html import build_html, placeholder_html, variant_from_href


class StatblockWidget(QTextBrowser):
    variantSelected = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setOpenLinks(False)
        self.setMouseTracking(True)
        self._last_mouse_pos: QPoint = QPoint(0, 0)
        self._document: Optional[Document] = None

        self.anchorClicked.connect(self._on_anchor_clicked)
        # highlighted(str) fires when the mouse moves over/away from a link
        self.highlighted[str].connect(self._on_link_hovered)

        self.clear_statblock()

    # ── Public API ───────────────────────────────────────────────────

    def load_document(self, document: Document) -> None:
        """Render a stat block or fork-selection document as HTML."""
        self._document = document
        self.setHtml(build_html(document))

    def clear_statblock(self) -> None:
        self._document = None
        self.setHtml(placeholder_html())

    def show_message(self, message: str) -> None:
        self._document = None
        self.setHtml(placeholder_html(message))

    @property
    def is_fork_selection(self) -> bool:
        return isinstance(self._document, ForkSelectionDocument)

    # ── Signals ──────────────────────────────────────────────────────

    def mouseMoveEvent(self, event) -> None:
        self._last_mouse_pos = event.pos()
        super().mouseMoveEvent(event)

    def _on_anchor_clicked(self, url: QUrl) -> None:
        name = variant_from_href(url.toString())
        if name:
            self.variantSelected.emit(name)

    def _on_link_hovered(self, url: str) -> None:
        name = variant_from_href(url)
        if not name:
            QToolTip.hideText()
            return
        QToolTip.showText(self.mapToGlobal(self._last_mouse_pos), f"Show {name}", self)
