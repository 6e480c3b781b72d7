"""
Unit tests for data models.

Tests note-tag metadata extraction, trait objects, catalog tables and the
game variable and switch stores.
"""

import pytest

from src.data_models import (
    DataCatalog,
    GameSwitches,
    GameVariables,
    ItemKind,
    TraitKind,
    TraitObject,
    UsableItem,
    extract_note_metadata,
)


class TestNoteMetadata:
    """Tests for extract_note_metadata."""

    def test_value_tag(self):
        meta = extract_note_metadata("<CounterExt: skill = 7>")
        assert meta == {"CounterExt": " skill = 7"}

    def test_flag_tag(self):
        assert extract_note_metadata("<Boss>") == {"Boss": True}

    def test_multiline_value(self):
        meta = extract_note_metadata("<CounterExt:\n cond = true\n skill = 3\n>")
        assert meta["CounterExt"] == "\n cond = true\n skill = 3\n"

    def test_several_tags_and_free_text(self):
        note = "A grizzled veteran.\n<Boss>\n<CounterExt: skill = 7>\n<CounterExt2: skill = 8>"
        meta = extract_note_metadata(note)
        assert set(meta) == {"Boss", "CounterExt", "CounterExt2"}

    def test_later_tag_wins(self):
        assert extract_note_metadata("<A: 1><A: 2>") == {"A": " 2"}

    @pytest.mark.parametrize("note", ["", None, "no tags at all"])
    def test_empty(self, note):
        assert extract_note_metadata(note) == {}


class TestTraitObject:
    """Tests for TraitObject."""

    def test_meta_from_note(self):
        source = TraitObject(name="Harold", note="<CounterExt: skill = 7>")
        assert source.meta == {"CounterExt": " skill = 7"}
        assert source.kind == TraitKind.ACTOR

    def test_explicit_meta(self):
        source = TraitObject(name="Scripted", meta={"CounterExt": "skill = 2"})
        assert source.meta == {"CounterExt": "skill = 2"}


class TestCatalog:
    """Tests for DataCatalog and UsableItem."""

    def test_tables_by_kind(self):
        catalog = DataCatalog()
        attack = catalog.add(UsableItem(item_id=1, name="Attack"))
        potion = catalog.add(UsableItem(item_id=1, name="Potion", kind=ItemKind.ITEM))
        assert catalog.skill(1) is attack
        assert catalog.item(1) is potion
        assert catalog.skill(2) is None

    def test_id_reachable_from_conditions(self):
        assert "id" in UsableItem.EXPRESSION_MEMBERS

    def test_item_predicates(self):
        potion = UsableItem(item_id=20, name="Potion", kind=ItemKind.ITEM)
        assert potion.id == 20
        assert potion.is_item() and not potion.is_skill()


class TestGameStores:
    """Tests for variables and switches."""

    def test_variables_default_zero(self):
        variables = GameVariables({3: 7})
        assert variables.value(3) == 7
        assert variables.value(4) == 0
        variables.set_value("4", 9)
        assert variables.value(4) == 9

    def test_switches_default_off(self):
        switches = GameSwitches({1: 1})
        assert switches.value(1) is True
        assert switches.value(2) is False
        switches.set_value(2, True)
        assert switches.value(2) is True
