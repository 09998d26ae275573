"""Tests for lib/bestiary/markup.py"""

import pytest

from bestiary.markup import expand, render_entries


# ── Directive families ──────────────────────────────────────────────

class TestDirectives:
    def test_melee_weapon_attack(self):
        assert expand("{@atk mw}") == "Melee Weapon Attack:"

    def test_ranged_spell_attack(self):
        assert expand("{@atk rs}") == "Ranged Spell Attack:"

    def test_combined_attack_kinds(self):
        assert expand("{@atk mw,rw}") == "Melee or Ranged Weapon Attack:"

    def test_mixed_weapon_and_spell(self):
        assert expand("{@atk mw,rs}") == "Melee Weapon or Ranged Spell Attack:"

    def test_hit_positive(self):
        assert expand("{@hit 5} to hit") == "+5 to hit"

    def test_hit_negative(self):
        assert expand("{@hit -1}") == "-1"

    def test_hit_zero(self):
        assert expand("{@hit 0}") == "+0"

    def test_damage_verbatim(self):
        assert expand("({@damage 2d6 + 3})") == "(2d6 + 3)"

    def test_condition_name(self):
        assert expand("is {@condition frightened}") == "is frightened"

    def test_condition_with_source_segment(self):
        assert expand("{@condition poisoned|XPHB}") == "poisoned"

    def test_dc(self):
        assert expand("a {@dc 15} Wisdom saving throw") == "a DC 15 Wisdom saving throw"

    def test_recharge_bare(self):
        assert expand("{@recharge}") == "Recharge"

    def test_recharge_single(self):
        assert expand("{@recharge 5}") == "Recharge 5"

    def test_recharge_range(self):
        assert expand("{@recharge 5-6}") == "Recharge 5–6"

    def test_hit_separator(self):
        assert expand("{@h}7 (2d6)") == "Hit: 7 (2d6)"

    def test_spell_attack_modifier(self):
        assert expand("{@hitYourSpellAttack} to hit") == "+ your spell attack modifier to hit"

    @pytest.mark.parametrize("tag", ["spell", "item", "creature", "skill", "sense", "dice", "action", "status", "disease"])
    def test_reference_tags_first_segment(self, tag):
        assert expand(f"{{@{tag} Shining Thing|PHB|alt}}") == "Shining Thing"


# ── Tokens ──────────────────────────────────────────────────────────

class TestTokens:
    def test_proficiency_bonus_from_context(self):
        assert expand("adds PB to the roll", {"proficiency_bonus": 3}) == "adds 3 to the roll"

    def test_proficiency_bonus_fallback(self):
        assert expand("adds PB to the roll") == "adds your proficiency bonus to the roll"

    def test_spell_level_from_context(self):
        assert expand("1d8 + summonSpellLevel", {"spell_level": 4}) == "1d8 + 4"

    def test_spell_level_fallback(self):
        assert expand("1d8 + summonSpellLevel") == "1d8 + the spell's level"

    def test_token_inside_word_untouched(self):
        assert expand("PBS and APB") == "PBS and APB"


# ── Totality ────────────────────────────────────────────────────────

class TestTotality:
    def test_unknown_directive_passes_through(self):
        assert expand("see {@quickref cover||3}") == "see {@quickref cover||3}"

    def test_malformed_hit_passes_through(self):
        assert expand("{@hit lots}") == "{@hit lots}"

    def test_unclosed_brace(self):
        assert expand("{@dc 12") == "{@dc 12"

    def test_nested_directives_expand_fully(self):
        assert expand("{@damage {@dice 1d6}}") == "1d6"
        assert expand("{@hit {@dice 4}}") == "+4"

    def test_nested_inside_unknown_directive(self):
        assert expand("{@quickref {@dice d4}}") == "{@quickref d4}"

    @pytest.mark.parametrize("value", [None, 12, ["x"], ""])
    def test_non_text_is_empty(self, value):
        assert expand(value) == ""

    @pytest.mark.parametrize("text", [
        "{@atk mw} {@hit 4} to hit, reach 5 ft. {@h}5 ({@damage 1d6 + 2}) slashing damage.",
        "Must succeed on a {@dc 13} save or be {@condition poisoned}. {@recharge 5-6}",
        "adds PB and summonSpellLevel",
        "{@unknown thing} stays and {@hit 2} goes",
        "plain text",
        "{@damage {@dice 1d6}}",
        "{@quickref {@dice d4}} and {@condition {@status concentration}}",
    ])
    def test_idempotent(self, text):
        once = expand(text)
        assert expand(once) == once


# ── Entry flattening ────────────────────────────────────────────────

class TestRenderEntries:
    def test_strings_expand(self):
        assert render_entries(["Make a {@dc 12} check."]) == ["Make a DC 12 check."]

    def test_list_entry_bullets(self):
        entries = [{"type": "list", "items": ["one", {"type": "item", "name": "Two", "entry": "second {@dice 1d4}"}]}]
        assert render_entries(entries) == ["• one", "• Two. second 1d4"]

    def test_named_entry_nests(self):
        entries = [{"type": "entries", "name": "Aura", "entries": ["first", "second"]}]
        assert render_entries(entries) == ["Aura. first", "second"]

    def test_empty_paragraphs_dropped(self):
        assert render_entries(["", None, 3, "kept"]) == ["kept"]

    def test_single_string(self):
        assert render_entries("alone") == ["alone"]
