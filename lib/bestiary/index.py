# bestiary/index.py
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bestiary.normalize import normalize_cr, type_base
from bestiary.templates import Lookups

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


def _key(name: str, source: str = "") -> _Key:
    return ((name or "").strip().lower(), (source or "").strip().lower())


class BestiaryIndex:
    """In-memory store of raw creature and template records.

    Records are kept exactly as loaded; resolution and normalization happen
    on each display. Lookups are case-insensitive and an empty source
    matches a record from any source.
    """

    def __init__(self):
        self.creatures: Dict[_Key, dict] = {}
        self.templates: Dict[_Key, dict] = {}

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> BestiaryIndex:
        index = cls()
        for path in paths:
            index.load_file(path)
        return index

    @staticmethod
    def _natural_key(s: str) -> List[Any]:
        parts = re.findall(r"\d+|\D+", s or "")
        return [int(p) if p.isdigit() else p.lower() for p in parts]

    def __len__(self) -> int:
        return len(self.creatures)

    # ---------- Loading ----------

    def add_creature(self, record: Any) -> bool:
        if not isinstance(record, dict) or not isinstance(record.get("name"), str) or not record["name"].strip():
            logger.debug("Skipping record without a name: %r", record)
            return False
        if "type" not in record and "_copy" not in record:
            logger.debug("Skipping %r: no type and no _copy", record["name"])
            return False
        self.creatures[_key(record["name"], record.get("source", ""))] = record
        return True

    def add_template(self, template: Any) -> bool:
        if not isinstance(template, dict) or not isinstance(template.get("name"), str):
            logger.debug("Skipping template without a name: %r", template)
            return False
        self.templates[_key(template["name"], template.get("source", ""))] = template
        return True

    def load_data(self, data: Any) -> int:
        """Add records from a parsed bestiary or template file; returns how many."""
        if isinstance(data, list):
            data = {"monster": data}
        if not isinstance(data, dict):
            return 0
        count = 0
        for record in data.get("monster") or []:
            count += self.add_creature(record)
        for template in data.get("monsterTemplate") or []:
            count += self.add_template(template)
        return count

    def load_file(self, path: str) -> int:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not load bestiary file %s: %s", path, e)
            return 0
        count = self.load_data(data)
        logger.info("Loaded %d records from %s", count, path)
        return count

    # ---------- Lookup ----------

    def _lookup(self, table: Dict[_Key, dict], name: str, source: str = "") -> Optional[dict]:
        wanted_name, wanted_source = _key(name, source)
        if wanted_source:
            return table.get((wanted_name, wanted_source))
        for (rec_name, _), record in table.items():
            if rec_name == wanted_name:
                return record
        return None

    def find(self, name: str, source: str = "") -> Optional[dict]:
        return self._lookup(self.creatures, name, source)

    def find_template(self, name: str, source: str = "") -> Optional[dict]:
        return self._lookup(self.templates, name, source)

    def lookups(self) -> Lookups:
        return Lookups(find=self.find, find_template=self.find_template)

    # ---------- Filters ----------

    def _sorted(self, records: Iterable[dict]) -> List[dict]:
        return sorted(records, key=lambda r: self._natural_key(r.get("name", "")))

    def search(self, term: str) -> List[dict]:
        needle = (term or "").strip().lower()
        return self._sorted(r for r in self.creatures.values() if needle in r["name"].lower())

    def by_type(self, creature_type: str) -> List[dict]:
        wanted = (creature_type or "").strip().lower()
        return self._sorted(r for r in self.creatures.values() if type_base(r.get("type")) == wanted)

    def by_cr(self, cr: Any) -> List[dict]:
        wanted = normalize_cr(cr)
        return self._sorted(r for r in self.creatures.values() if normalize_cr(r.get("cr")) == wanted)
