"""
Battle scenario loading.

A scenario file is a JSON object describing the skill and item tables, the
initial game variables and switches, both sides of the battle and,
optionally, the counter parameters:

    {
      "counter": {"tagName": "CounterExt", "msg_format": "CounterAttack!"},
      "skills": [{"id": 1, "name": "Attack", "scope": "enemy_one",
                  "damage": {"type": "hp_damage", "power": 10}}],
      "items": [],
      "variables": {"3": 7},
      "switches": {"1": true},
      "party": [{"name": "Harold", "agi": 12,
                 "note": "<CounterExt: cond = true, rate = 100, skill = 1>",
                 "actions": [{"skill": 1, "target": 0}]}],
      "troop": [{"name": "Slime", "max_hp": 30}]
    }
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union
import json
import logging

from src.combat.battle_log import BattleLog
from src.combat.battle_manager import BattleManager
from src.combat.battler import ActionPlan, Battler, BattleSide, BattleUnit
from src.data_models import (
    DamageSpec,
    DamageType,
    DataCatalog,
    GameSwitches,
    GameVariables,
    HitType,
    ItemKind,
    ItemScope,
    TraitKind,
    TraitObject,
    UsableItem,
)


logger = logging.getLogger(__name__)


class ScenarioError(Exception):
    """Raised when a scenario file is malformed."""
    pass


BATTLER_STATS = ("max_hp", "max_mp", "atk", "defense", "mat", "mdf", "agi")


@dataclass
class BattleScenario:
    """Everything needed to start a battle."""
    catalog: DataCatalog
    variables: GameVariables
    switches: GameSwitches
    party: BattleUnit
    troop: BattleUnit
    counter_params: dict[str, Any] = field(default_factory=dict)

    def build_manager(self, log: Optional[BattleLog] = None) -> BattleManager:
        return BattleManager(
            party=self.party,
            troop=self.troop,
            catalog=self.catalog,
            variables=self.variables,
            switches=self.switches,
            log=log,
        )


def load_scenario(filepath: Union[str, Path]) -> BattleScenario:
    """Load a scenario from a JSON file."""
    with open(filepath, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ScenarioError(f"{filepath}: invalid JSON: {e}") from e
    scenario = parse_scenario(data)
    logger.info(
        f"Scenario loaded from {filepath}: {len(scenario.party.members())} vs "
        f"{len(scenario.troop.members())}"
    )
    return scenario


def parse_scenario(data: dict[str, Any]) -> BattleScenario:
    """Build a scenario from already-decoded JSON data."""
    if not isinstance(data, dict):
        raise ScenarioError("Scenario must be a JSON object")

    catalog = DataCatalog()
    for entry in data.get("skills", []):
        catalog.add(_parse_usable(entry, ItemKind.SKILL))
    for entry in data.get("items", []):
        catalog.add(_parse_usable(entry, ItemKind.ITEM))

    variables = GameVariables({int(k): v for k, v in data.get("variables", {}).items()})
    switches = GameSwitches({int(k): v for k, v in data.get("switches", {}).items()})

    party = BattleUnit(BattleSide.PARTY)
    for entry in data.get("party", []):
        party.add_member(_parse_battler(entry, TraitKind.ACTOR, catalog))
    troop = BattleUnit(BattleSide.TROOP)
    for entry in data.get("troop", []):
        troop.add_member(_parse_battler(entry, TraitKind.ENEMY, catalog))

    if not party.members() or not troop.members():
        raise ScenarioError("Scenario needs at least one party member and one enemy")

    return BattleScenario(
        catalog=catalog,
        variables=variables,
        switches=switches,
        party=party,
        troop=troop,
        counter_params=dict(data.get("counter", {})),
    )


def _enum_value(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ScenarioError(f"Unknown {what}: {value!r}") from e


def _parse_usable(entry: dict[str, Any], kind: ItemKind) -> UsableItem:
    try:
        item_id = int(entry["id"])
        name = str(entry["name"])
    except (KeyError, TypeError, ValueError) as e:
        raise ScenarioError(f"{kind.value} entries need an integer id and a name: {entry!r}") from e

    damage_data = entry.get("damage", {})
    damage = DamageSpec(
        type=_enum_value(DamageType, damage_data.get("type", "none"), "damage type"),
        element_id=int(damage_data.get("element_id", 0)),
        power=int(damage_data.get("power", 0)),
    )
    return UsableItem(
        item_id=item_id,
        name=name,
        kind=kind,
        scope=_enum_value(ItemScope, entry.get("scope", "enemy_one"), "scope"),
        hit_type=_enum_value(HitType, entry.get("hit_type", "physical"), "hit type"),
        damage=damage,
        mp_cost=int(entry.get("mp_cost", 0)),
        speed=int(entry.get("speed", 0)),
        consumable=bool(entry.get("consumable", True)),
    )


def _parse_trait(entry: dict[str, Any], default_kind: TraitKind) -> TraitObject:
    if "name" not in entry:
        raise ScenarioError(f"Trait entries need a name: {entry!r}")
    return TraitObject(
        name=str(entry["name"]),
        kind=_enum_value(TraitKind, entry.get("kind", default_kind.value), "trait kind"),
        note=str(entry.get("note", "")),
    )


def _parse_battler(entry: dict[str, Any], entry_kind: TraitKind, catalog: DataCatalog) -> Battler:
    if "name" not in entry:
        raise ScenarioError(f"Battler entries need a name: {entry!r}")
    name = str(entry["name"])
    stats = {stat: int(entry[stat]) for stat in BATTLER_STATS if stat in entry}

    plans = []
    for plan in entry.get("actions", []):
        skill_id = plan.get("skill")
        item_id = plan.get("item")
        if item_id is not None and catalog.item(int(item_id)) is None:
            raise ScenarioError(f"{name} plans unknown item {item_id}")
        if item_id is None and (skill_id is None or catalog.skill(int(skill_id)) is None):
            raise ScenarioError(f"{name} plans unknown skill {skill_id}")
        plans.append(ActionPlan(
            skill_id=int(skill_id) if skill_id is not None else None,
            item_id=int(item_id) if item_id is not None else None,
            target_index=int(plan.get("target", 0)),
        ))

    battler_class = entry.get("class")
    return Battler(
        name=name,
        entry=TraitObject(name=name, kind=entry_kind, note=str(entry.get("note", ""))),
        battler_class=_parse_trait(battler_class, TraitKind.CLASS) if battler_class else None,
        equips=[_parse_trait(e, TraitKind.WEAPON) for e in entry.get("equips", [])],
        states=[_parse_trait(s, TraitKind.STATE) for s in entry.get("states", [])],
        inventory={int(k): int(v) for k, v in entry.get("inventory", {}).items()},
        sealed_skills={int(s) for s in entry.get("sealed_skills", [])},
        action_plan=plans,
        **stats,
    )
