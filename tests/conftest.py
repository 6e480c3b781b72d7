"""
Pytest fixtures for the After-Counter test suite.

Provides reusable fixtures for dice, catalog tables, game stores, battlers
and battle managers with or without the counter extension.
"""

import pytest
from typing import Optional

from src.data_models import (
    DiceRoller,
    GameSwitches,
    GameVariables,
    TraitKind,
    TraitObject,
)
from src.combat.battle_manager import BattleManager
from src.combat.battler import ActionPlan, Battler, BattleSide, BattleUnit
from src.combat.game_action import BattleAction
from src.counter.config import CounterConfig
from src.counter.resolver import CounterResolver
from src.observability.run_log import reset_run_log

from tests.helpers import ATTACK, build_catalog


# =============================================================================
# DICE AND LOG FIXTURES
# =============================================================================


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    DiceRoller.set_seed(42)
    yield DiceRoller()


@pytest.fixture(autouse=True)
def run_log():
    """Every test starts with an empty run log."""
    log = reset_run_log()
    yield log
    log.set_turn_provider(None)


# =============================================================================
# CATALOG FIXTURES
# =============================================================================


@pytest.fixture
def catalog():
    """Skill and item tables shared by the tests."""
    return build_catalog()


@pytest.fixture
def variables():
    return GameVariables()


@pytest.fixture
def switches():
    return GameSwitches()


# =============================================================================
# BATTLER FIXTURES
# =============================================================================


@pytest.fixture
def make_battler():
    """Factory for battlers whose own entry carries the given note."""

    def _make(
        name: str,
        note: str = "",
        class_note: Optional[str] = None,
        equip_notes: Optional[list[str]] = None,
        state_notes: Optional[list[str]] = None,
        plan: Optional[list[ActionPlan]] = None,
        **stats,
    ) -> Battler:
        return Battler(
            name=name,
            entry=TraitObject(name=name, kind=TraitKind.ACTOR, note=note),
            battler_class=(
                TraitObject(name=f"{name} class", kind=TraitKind.CLASS, note=class_note)
                if class_note is not None else None
            ),
            equips=[
                TraitObject(name=f"{name} equip {i}", kind=TraitKind.WEAPON, note=n)
                for i, n in enumerate(equip_notes or [])
            ],
            states=[
                TraitObject(name=f"{name} state {i}", kind=TraitKind.STATE, note=n)
                for i, n in enumerate(state_notes or [])
            ],
            action_plan=plan,
            **stats,
        )

    return _make


@pytest.fixture
def make_units():
    """Factory putting battlers into a party unit and a troop unit."""

    def _make(party: list[Battler], troop: list[Battler]) -> tuple[BattleUnit, BattleUnit]:
        party_unit = BattleUnit(BattleSide.PARTY, party)
        troop_unit = BattleUnit(BattleSide.TROOP, troop)
        party_unit.opponents = troop_unit
        troop_unit.opponents = party_unit
        return party_unit, troop_unit

    return _make


@pytest.fixture
def make_manager(catalog, variables, switches, make_units):
    """Factory for a battle manager over the given sides."""

    def _make(party: list[Battler], troop: list[Battler]) -> BattleManager:
        party_unit, troop_unit = make_units(party, troop)
        return BattleManager(
            party=party_unit,
            troop=troop_unit,
            catalog=catalog,
            variables=variables,
            switches=switches,
        )

    return _make


@pytest.fixture
def make_resolver(catalog, variables, switches):
    """Factory for a resolver with a fixed random source."""

    def _make(roll: float = 0.0, config: Optional[CounterConfig] = None) -> CounterResolver:
        return CounterResolver(
            catalog=catalog,
            variables=variables,
            switches=switches,
            action_factory=BattleAction,
            config=config,
            rng=lambda: roll,
        )

    return _make


@pytest.fixture
def attack_on(catalog):
    """Factory for an Attack action from one battler at another."""

    def _make(attacker: Battler, target: Battler, skill_id: int = ATTACK) -> BattleAction:
        return BattleAction(attacker, catalog.skill(skill_id), target_index=target.index)

    return _make
