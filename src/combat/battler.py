"""
Battlers and battle units.

A Battler is a combatant on either side. Its trait objects (states, its own
actor or enemy entry, its class, its equipment) carry the note-tag
declarations read by the counter engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from src.data_models import ItemKind, TraitObject, UsableItem

if TYPE_CHECKING:
    from src.combat.game_action import BattleAction


class BattleSide(str, Enum):
    """Which side of the battle a unit fights on."""
    PARTY = "party"
    TROOP = "troop"


@dataclass
class ActionPlan:
    """A planned action: a skill or an item, aimed at a target index."""
    skill_id: Optional[int] = None
    item_id: Optional[int] = None
    target_index: int = 0


class Battler:
    """
    A combatant.

    Holds hit points, parameters, trait objects and the list of actions
    still to be executed this turn.
    """

    EXPRESSION_MEMBERS = frozenset({
        "name", "side", "index", "hp", "mp", "max_hp", "max_mp",
        "atk", "defense", "mat", "mdf", "agi",
        "hp_rate", "mp_rate", "is_alive", "is_dead", "is_actor", "is_enemy",
        "is_state_affected",
    })

    def __init__(
        self,
        name: str,
        side: BattleSide = BattleSide.PARTY,
        max_hp: int = 100,
        max_mp: int = 0,
        atk: int = 10,
        defense: int = 10,
        mat: int = 10,
        mdf: int = 10,
        agi: int = 10,
        entry: Optional[TraitObject] = None,
        battler_class: Optional[TraitObject] = None,
        equips: Optional[list[TraitObject]] = None,
        states: Optional[list[TraitObject]] = None,
        inventory: Optional[dict[int, int]] = None,
        sealed_skills: Optional[set[int]] = None,
        action_plan: Optional[list[ActionPlan]] = None,
    ):
        self.name = name
        self.side = side
        self.max_hp = max_hp
        self.max_mp = max_mp
        self.hp = max_hp
        self.mp = max_mp
        self.atk = atk
        self.defense = defense
        self.mat = mat
        self.mdf = mdf
        self.agi = agi

        self.entry = entry
        self.battler_class = battler_class
        self.equips: list[TraitObject] = list(equips or [])
        self.states: list[TraitObject] = list(states or [])
        self.inventory: dict[int, int] = dict(inventory or {})
        self.sealed_skills: set[int] = set(sealed_skills or ())
        self.action_plan: list[ActionPlan] = list(action_plan or [])

        self._actions: list["BattleAction"] = []
        self._unit: Optional["BattleUnit"] = None
        self._index: int = -1

    def __repr__(self) -> str:
        return f"Battler({self.name!r}, {self.side.value}, hp={self.hp}/{self.max_hp})"

    # =========================================================================
    # UNIT MEMBERSHIP
    # =========================================================================

    @property
    def index(self) -> int:
        return self._index

    def friends_unit(self) -> "BattleUnit":
        return self._unit

    def opponents_unit(self) -> "BattleUnit":
        return self._unit.opponents

    def is_actor(self) -> bool:
        return self.side == BattleSide.PARTY

    def is_enemy(self) -> bool:
        return self.side == BattleSide.TROOP

    # =========================================================================
    # TRAITS
    # =========================================================================

    def trait_objects(self) -> list[TraitObject]:
        """States first, then the battler's own entry, class and equipment."""
        objects = list(self.states)
        if self.entry is not None:
            objects.append(self.entry)
        if self.battler_class is not None:
            objects.append(self.battler_class)
        objects.extend(self.equips)
        return objects

    def add_state(self, state: TraitObject) -> None:
        if state not in self.states:
            self.states.append(state)

    def remove_state(self, state_name: str) -> None:
        self.states = [s for s in self.states if s.name != state_name]

    def is_state_affected(self, state_name: str) -> bool:
        return any(s.name == state_name for s in self.states)

    # =========================================================================
    # HIT POINTS
    # =========================================================================

    def is_alive(self) -> bool:
        return self.hp > 0

    def is_dead(self) -> bool:
        return self.hp <= 0

    def hp_rate(self) -> float:
        return self.hp / self.max_hp if self.max_hp else 0.0

    def mp_rate(self) -> float:
        return self.mp / self.max_mp if self.max_mp else 0.0

    def gain_hp(self, value: int) -> None:
        self.hp = max(0, min(self.max_hp, self.hp + value))
        if self.hp == 0:
            self.clear_actions()

    # =========================================================================
    # USABILITY
    # =========================================================================

    def can_use(self, item: Optional[UsableItem]) -> bool:
        """Whether this battler can use a skill or item right now."""
        if item is None or not self.is_alive():
            return False
        if item.kind == ItemKind.SKILL:
            return item.item_id not in self.sealed_skills and self.mp >= item.mp_cost
        return self.inventory.get(item.item_id, 0) > 0

    def use_item(self, item: UsableItem) -> None:
        """Pay the cost of a skill or consume an item."""
        if item.kind == ItemKind.SKILL:
            self.mp -= item.mp_cost
        elif item.consumable:
            self.inventory[item.item_id] = self.inventory.get(item.item_id, 0) - 1

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def set_actions(self, actions: list["BattleAction"]) -> None:
        self._actions = list(actions)

    def current_action(self) -> Optional["BattleAction"]:
        return self._actions[0] if self._actions else None

    def remove_current_action(self) -> None:
        if self._actions:
            self._actions.pop(0)

    def unshift_action(self, action: "BattleAction") -> None:
        """Put an action at the front so it runs next."""
        self._actions.insert(0, action)

    def clear_actions(self) -> None:
        self._actions = []

    @property
    def actions(self) -> list["BattleAction"]:
        return list(self._actions)

    def make_speed(self) -> int:
        """Turn-order speed: the fastest pending action."""
        if not self._actions:
            return self.agi
        return max(action.speed() for action in self._actions)


class BattleUnit:
    """One side of the battle: the party or the enemy troop."""

    def __init__(self, side: BattleSide, members: Optional[list[Battler]] = None):
        self.side = side
        self.opponents: Optional["BattleUnit"] = None
        self._members: list[Battler] = []
        for member in members or []:
            self.add_member(member)

    def add_member(self, battler: Battler) -> Battler:
        battler.side = self.side
        battler._unit = self
        battler._index = len(self._members)
        self._members.append(battler)
        return battler

    def members(self) -> list[Battler]:
        return list(self._members)

    def alive_members(self) -> list[Battler]:
        return [m for m in self._members if m.is_alive()]

    def is_all_dead(self) -> bool:
        return not self.alive_members()

    def smooth_target(self, index: int) -> Optional[Battler]:
        """The member at index if alive, otherwise the first living member."""
        if 0 <= index < len(self._members) and self._members[index].is_alive():
            return self._members[index]
        alive = self.alive_members()
        return alive[0] if alive else None
