"""
Test helpers for the After-Counter test suite.

Provides the catalog ids shared by the tests, a catalog builder and a
recording extension for observing battle hooks.
"""

from dataclasses import dataclass, field
from typing import Any

from src.data_models import (
    DamageSpec,
    DamageType,
    DataCatalog,
    HitType,
    ItemKind,
    ItemScope,
    UsableItem,
)


# =============================================================================
# CATALOG
# =============================================================================


ATTACK = 1
RIPOSTE = 7
FIRE = 8
HEAL = 9
SLOW_STRIKE = 10
POTION = 20


def build_catalog() -> DataCatalog:
    """Skill and item tables shared by the tests."""
    catalog = DataCatalog()
    catalog.add(UsableItem(
        item_id=ATTACK, name="Attack", scope=ItemScope.ENEMY_ONE,
        hit_type=HitType.PHYSICAL,
        damage=DamageSpec(DamageType.HP_DAMAGE, element_id=1, power=10),
    ))
    catalog.add(UsableItem(
        item_id=RIPOSTE, name="Riposte", scope=ItemScope.ENEMY_ONE,
        hit_type=HitType.PHYSICAL,
        damage=DamageSpec(DamageType.HP_DAMAGE, element_id=1, power=12),
    ))
    catalog.add(UsableItem(
        item_id=FIRE, name="Fire", scope=ItemScope.ENEMY_ONE,
        hit_type=HitType.MAGICAL, mp_cost=5,
        damage=DamageSpec(DamageType.HP_DAMAGE, element_id=2, power=15),
    ))
    catalog.add(UsableItem(
        item_id=HEAL, name="Heal", scope=ItemScope.ALLY_ONE,
        hit_type=HitType.CERTAIN, mp_cost=4,
        damage=DamageSpec(DamageType.HP_RECOVER, power=20),
    ))
    catalog.add(UsableItem(
        item_id=SLOW_STRIKE, name="Slow Strike", scope=ItemScope.ENEMY_ONE,
        hit_type=HitType.PHYSICAL, speed=-5,
        damage=DamageSpec(DamageType.HP_DAMAGE, element_id=1, power=20),
    ))
    catalog.add(UsableItem(
        item_id=POTION, name="Potion", kind=ItemKind.ITEM, scope=ItemScope.ALLY_ONE,
        hit_type=HitType.CERTAIN,
        damage=DamageSpec(DamageType.HP_RECOVER, power=30),
    ))
    return catalog


# =============================================================================
# HOOK RECORDING
# =============================================================================


@dataclass
class RecordingExtension:
    """Battle extension that records every hook call as a tuple."""
    calls: list[tuple[Any, ...]] = field(default_factory=list)

    def on_turn_advance(self, manager):
        self.calls.append(("turn_advance",))

    def on_action_start(self, manager, subject, action):
        self.calls.append(("action_start", subject.name, action.item().name))

    def on_normal_action_invoked(self, manager, subject, target):
        self.calls.append(("invoked", subject.name, target.name))

    def on_action_end(self, manager, action):
        self.calls.append(("action_end", action.subject.name))

    def hooks(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]
