"""Tests for lib/bestiary/templates.py"""

import copy
import json
import logging

import pytest

from bestiary.exceptions import InvalidRequestedVariant
from bestiary.normalize import normalize_record
from bestiary.templates import (
    RESOLVED_MARKER,
    Lookups,
    apply_template,
    chain_lookups,
    fork_options,
    merge_records,
    resolve_copy,
    resolve_variants,
    select_variant,
    variant_names,
)


def _as_sets(record: dict) -> dict:
    """Compare list fields as sets of their JSON forms."""
    out = {}
    for key, value in record.items():
        if isinstance(value, list):
            out[key] = {json.dumps(v, sort_keys=True) for v in value}
        else:
            out[key] = value
    return out


# ── Merge ───────────────────────────────────────────────────────────

class TestMergeRecords:
    def test_primitives_replaced(self):
        assert merge_records({"cr": "1/4", "cha": 8}, {"cr": 1})["cr"] == 1

    def test_objects_shallow_merged(self):
        merged = merge_records({"speed": {"walk": 30, "swim": 20}}, {"speed": {"swim": 40}})
        assert merged["speed"] == {"walk": 30, "swim": 40}

    def test_arrays_concatenated_not_deduplicated(self):
        bite = {"name": "Bite", "entries": ["chomp"]}
        merged = merge_records({"action": [bite]}, {"action": [bite]})
        # known oddity: a redeclared feature shows up twice
        assert [a["name"] for a in merged["action"]] == ["Bite", "Bite"]

    def test_reserved_keys_skipped_except_copy_and_versions(self):
        merged = merge_records(
            {"name": "Base"},
            {"_isVariant": True, "_copy": {"name": "Base"}, "_versions": [{"name": "V"}], "_meta": 1},
        )
        assert "_isVariant" not in merged
        assert "_meta" not in merged
        assert merged["_copy"] == {"name": "Base"}
        assert merged["_versions"] == [{"name": "V"}]

    def test_inputs_untouched(self):
        base = {"action": [{"name": "Bite"}], "speed": {"walk": 30}}
        override = {"action": [{"name": "Claw"}], "speed": {"fly": 30}}
        snapshot = copy.deepcopy((base, override))
        merged = merge_records(base, override)
        merged["action"][0]["name"] = "Changed"
        assert (base, override) == snapshot

    def test_missing_sides(self):
        assert merge_records(None, {"name": "A"}) == {"name": "A"}
        assert merge_records({"name": "A"}, None) == {"name": "A"}

    @pytest.mark.parametrize("base", [None, {}])
    def test_reserved_keys_dropped_onto_empty_base(self, base):
        override = {"name": "A", "_mod": {"action": {"mode": "appendArr", "items": "x"}}, "_isVariant": True, "_copy": {"name": "B"}}
        assert merge_records(base, override) == {"name": "A", "_copy": {"name": "B"}}


# ── Templates ───────────────────────────────────────────────────────

class TestApplyTemplate:
    def test_root_then_mod(self):
        record = {"cr": 1, "trait": []}
        template = {
            "apply": {
                "_root": {"cr": 3, "trait": [{"name": "Base Trait", "entries": []}]},
                "_mod": {"trait": {"mode": "appendArr", "items": {"name": "Added", "entries": []}}},
            }
        }
        apply_template(record, template)
        assert record["cr"] == 3
        assert [t["name"] for t in record["trait"]] == ["Base Trait", "Added"]

    def test_no_apply_block(self):
        record = {"cr": 1}
        assert apply_template(record, {"name": "Empty"}) == {"cr": 1}


# ── Copy resolution ─────────────────────────────────────────────────

class TestResolveCopy:
    def test_no_copy_is_terminal(self, lookups):
        record = {"name": "Plain", "type": "beast"}
        assert resolve_copy(record, lookups) is record

    def test_copy_with_mod_and_overrides(self, index, lookups):
        resolved = resolve_copy(index.find("Goblin Boss", "MM"), lookups)
        assert resolved["name"] == "Goblin Boss"
        assert resolved["hp"] == {"average": 21, "formula": "6d6"}
        assert resolved["cr"] == 1
        assert resolved["str"] == 8
        assert [a["name"] for a in resolved["action"]] == ["Multiattack", "Scimitar", "Shortbow"]
        assert [r["name"] for r in resolved["reaction"]] == ["Redirect Attack"]
        assert resolved["_copy"]["name"] == "Goblin"

    def test_templates_applied_in_order(self, index, lookups):
        resolved = resolve_copy(index.find("Goblin Warchief"), lookups)
        assert resolved["cr"] == 2
        assert resolved["int"] == 12
        assert resolved["senses"] == ["darkvision 60 ft.", "truesight 10 ft."]
        assert resolved["skill"] == {"stealth": "+6", "intimidation": "+4"}
        assert [t["name"] for t in resolved["trait"]] == ["Nimble Escape", "Leadership"]
        assert resolved["languages"] == ["Common", "Goblin", "Orc"]

    def test_missing_template_skipped_and_logged(self, index, lookups, caplog):
        with caplog.at_level(logging.WARNING, logger="bestiary.templates"):
            resolve_copy(index.find("Goblin Warchief"), lookups)
        assert "Ghost Template" in caplog.text

    def test_missing_base_returns_override(self, caplog):
        record = {"name": "Orphan", "_copy": {"name": "Nobody", "source": "X"}, "cr": 3}
        with caplog.at_level(logging.WARNING, logger="bestiary.templates"):
            resolved = resolve_copy(record, Lookups())
        assert resolved == record
        assert resolved is not record
        assert "Nobody" in caplog.text

    def test_base_not_mutated(self, index, lookups):
        base = index.find("Goblin", "MM")
        before = copy.deepcopy(base)
        resolve_copy(index.find("Goblin Boss", "MM"), lookups)
        resolve_copy(index.find("Goblin Warchief"), lookups)
        assert base == before

    def test_double_resolution_is_stable(self, index, lookups):
        once = resolve_copy(index.find("Goblin Boss", "MM"), lookups)
        assert resolve_copy(once, lookups) == once

    def test_double_merge_equal_as_sets(self, index, lookups):
        once = resolve_copy(index.find("Goblin Boss", "MM"), lookups)
        unmarked = {k: v for k, v in once.items() if k != RESOLVED_MARKER}
        twice = resolve_copy(unmarked, lookups)
        # arrays grow on a second merge but hold the same members
        assert len(twice["action"]) == 2 * len(once["action"])
        assert _as_sets(twice) == _as_sets(once)

    def test_recursive_chain(self):
        records = {
            "a": {"name": "A", "type": "beast", "str": 10, "action": [{"name": "Bite", "entries": []}]},
            "b": {"name": "B", "_copy": {"name": "A"}, "str": 12},
        }
        lookups = Lookups(find=lambda name, source: records.get(name.lower()))
        resolved = resolve_copy({"name": "C", "_copy": {"name": "B"}, "dex": 15}, lookups)
        assert resolved["type"] == "beast"
        assert resolved["str"] == 12
        assert resolved["dex"] == 15
        assert resolved["name"] == "C"

    def test_cycle_is_broken(self, index, lookups, caplog):
        with caplog.at_level(logging.WARNING, logger="bestiary.templates"):
            resolved = resolve_copy(index.find("Loop A"), lookups)
        assert resolved["name"] == "Loop A"
        assert resolved["ac"] == 14
        assert "cycle" in caplog.text.lower()


# ── Variants ────────────────────────────────────────────────────────

class TestResolveVariants:
    def test_no_versions(self):
        record = {"name": "Solo"}
        result = resolve_variants(record)
        assert result == [record]
        assert result[0] is not record

    def test_template_only_base_excluded(self, index):
        variants = resolve_variants(index.find("Bestial Spirit"))
        assert [v["name"] for v in variants] == ["Air", "Land", "Water"]
        assert all(v["_isVariant"] for v in variants)
        assert all("_versions" not in v for v in variants)

    def test_mods_applied_per_variant(self, index):
        air, land, water = resolve_variants(index.find("Bestial Spirit"))
        assert air["speed"] == {"walk": 30, "fly": 60}
        assert land["speed"] == {"walk": 30, "climb": 30}
        assert water["speed"] == {"walk": 30, "swim": 30}
        assert [t["name"] for t in air["trait"]] == ["Flyby"]
        assert [t["name"] for t in land["trait"]] == ["Pack Tactics"]
        assert [t["name"] for t in water["trait"]] == ["Water Breathing"]

    def test_variants_independent_of_base(self, index):
        base = index.find("Bestial Spirit")
        before = copy.deepcopy(base)
        air, land, _ = resolve_variants(base)
        air["action"].append({"name": "Extra"})
        assert base == before
        assert len(land["action"]) == 2

    def test_base_first_when_included(self, index):
        variants = resolve_variants(index.find("Guard Dog"))
        assert [v["name"] for v in variants] == ["Guard Dog", "Guard Dog (Trained)"]
        assert "_isVariant" not in variants[0]
        assert variants[1]["skill"] == {"perception": "+5"}

    def test_duplicate_names_keep_first(self, caplog):
        record = {"name": "Twin", "_isVariantTemplate": True, "_versions": [
            {"name": "A", "cr": 1}, {"name": "A", "cr": 2}, {"cr": 3},
        ]}
        with caplog.at_level(logging.WARNING, logger="bestiary.templates"):
            variants = resolve_variants(record)
        assert [(v["name"], v["cr"]) for v in variants] == [("A", 1), ("Twin (variant 3)", 3)]
        assert "Duplicate variant" in caplog.text

    def test_variant_reusing_base_name_not_offered(self, caplog):
        wolf = {"name": "Wolf", "str": 12, "_versions": [{"name": "Wolf", "str": 20}, {"name": "Dire Wolf", "str": 17}]}
        assert variant_names(wolf) == ["Dire Wolf"]
        assert fork_options(wolf) == ["Base Wolf", "Dire Wolf"]
        with caplog.at_level(logging.WARNING, logger="bestiary.templates"):
            variants = resolve_variants(wolf)
        assert [(v["name"], v["str"]) for v in variants] == [("Wolf", 12), ("Dire Wolf", 17)]
        assert select_variant(wolf, "Wolf")["str"] == 12
        assert "Duplicate variant" in caplog.text

    def test_template_only_base_name_free_for_variants(self):
        spirit = {"name": "Spirit", "_isVariantTemplate": True, "_versions": [{"name": "Spirit", "str": 9}]}
        assert fork_options(spirit) == ["Spirit"]
        assert select_variant(spirit, "Spirit")["str"] == 9

    def test_names_and_options(self, index):
        spirit = index.find("Bestial Spirit")
        assert variant_names(spirit) == ["Air", "Land", "Water"]
        assert fork_options(spirit) == ["Air", "Land", "Water"]
        assert fork_options(index.find("Guard Dog")) == ["Base Guard Dog", "Guard Dog (Trained)"]


class TestSelectVariant:
    def test_select_by_name(self, index):
        land = select_variant(index.find("Bestial Spirit"), "Land")
        assert land["name"] == "Land"
        assert normalize_record(land)["speed"] == {"walk": 30, "climb": 30}

    def test_select_base_option(self, index):
        base = select_variant(index.find("Guard Dog"), "Base Guard Dog")
        assert base["name"] == "Guard Dog"
        assert base["skill"] == {"perception": "+3"}

    def test_unknown_variant(self, index):
        with pytest.raises(InvalidRequestedVariant) as exc:
            select_variant(index.find("Bestial Spirit"), "Fire")
        assert exc.value.variant_name == "Fire"
        assert exc.value.creature_name == "Bestial Spirit"
        assert "Fire" in str(exc.value)

    def test_template_only_base_not_selectable(self, index):
        with pytest.raises(InvalidRequestedVariant):
            select_variant(index.find("Bestial Spirit"), "Base Bestial Spirit")


# ── Lookups ─────────────────────────────────────────────────────────

class TestChainLookups:
    def test_first_hit_wins(self):
        first = Lookups(find=lambda n, s: {"name": n, "from": "first"} if n == "A" else None)
        second = Lookups(find=lambda n, s: {"name": n, "from": "second"})
        chained = chain_lookups(first, second)
        assert chained.find("A", "")["from"] == "first"
        assert chained.find("B", "")["from"] == "second"
        assert chained.find_template("T", "") is None
