"""
Quick preview script for the stat block widget. Run with:

    python preview_statblock.py [creature_name] [bestiary.json ...]

creature_name defaults to 'Goblin Boss' and the files default to the test
fixtures. Creatures with variants open on the version picker; clicking a
version re-renders the widget with that version.
"""
import sys
import os

# Add lib to path so imports work without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "lib"))

from PyQt5.QtWidgets import QApplication, QMainWindow, QSizePolicy
from bestiary.config import configure_logging
from bestiary.exceptions import InvalidRequestedVariant
from bestiary.index import BestiaryIndex
from bestiary.pipeline import resolve_and_render
from bestiary_ui.statblock_widget import StatblockWidget

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "tests", "fixtures")
DEFAULT_FILES = [
    os.path.join(FIXTURES_DIR, "bestiary-sample.json"),
    os.path.join(FIXTURES_DIR, "templates-sample.json"),
]


def preview_widget(name: str, files: list) -> QMainWindow:
    index = BestiaryIndex.from_paths(files)
    lookups = index.lookups()
    record = index.find(name)
    if record is None:
        print(f"Creature not found: {name}")
        print("Available:", sorted(r["name"] for r in index.search("")))
        sys.exit(1)

    window = QMainWindow()
    window.setWindowTitle(f"Statblock Preview — {record['name']}")
    window.resize(420, 700)

    widget = StatblockWidget()
    widget.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

    def show(variant=None):
        try:
            widget.load_document(resolve_and_render(record, lookups, variant_name=variant))
        except InvalidRequestedVariant as exc:
            widget.show_message(str(exc))

    widget.variantSelected.connect(show)
    show()
    window.setCentralWidget(widget)
    window.show()
    return window


def main():
    args = sys.argv[1:]
    name = args[0] if args else "Goblin Boss"
    files = args[1:] or DEFAULT_FILES

    configure_logging()
    app = QApplication(sys.argv)
    window = preview_widget(name, files)  # keep reference alive for event loop
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
