"""
Battle actions.

A BattleAction is one use of a skill or item by a battler. Counter actions
are ordinary BattleActions with counter_priority set; that marker is set
when the counter is built and never cleared.
"""

from dataclasses import dataclass
from typing import Optional

from src.combat.battler import Battler, BattleUnit
from src.data_models import DamageType, HitType, ItemScope, UsableItem


# Skill 1 is the normal attack
ATTACK_SKILL_ID = 1

OPPONENT_SCOPES = {ItemScope.ENEMY_ONE, ItemScope.ENEMY_ALL}
FRIEND_SCOPES = {ItemScope.ALLY_ONE, ItemScope.ALLY_ALL, ItemScope.USER}


@dataclass
class ActionResult:
    """Effect of an action on one target."""
    target: str
    hp_damage: int = 0
    hp_recovered: int = 0
    defeated: bool = False


class BattleAction:
    """A skill or item use by a battler."""

    EXPRESSION_MEMBERS = frozenset({
        "subject", "item", "target_index", "speed",
        "is_skill", "is_item", "is_attack",
        "is_physical", "is_magical", "is_certain_hit",
        "is_hp_damage", "is_hp_recover",
        "is_for_opponent", "is_for_friend", "is_for_user", "is_for_all",
        "is_counter",
    })

    def __init__(
        self,
        subject: Battler,
        item: Optional[UsableItem] = None,
        target_index: int = -1,
        counter_disabled: bool = False,
    ):
        self.subject = subject
        self._item = item
        self.target_index = target_index
        self.counter_disabled = counter_disabled
        self.counter_priority = None

    def __repr__(self) -> str:
        name = self._item.name if self._item else None
        counter = f", counter={self.counter_priority}" if self.is_counter() else ""
        return f"BattleAction({self.subject.name!r}, {name!r}, target={self.target_index}{counter})"

    # =========================================================================
    # PAYLOAD AND TARGET
    # =========================================================================

    def item(self) -> Optional[UsableItem]:
        return self._item

    def set_item_object(self, item: Optional[UsableItem]) -> None:
        self._item = item

    def set_target(self, target_index: int) -> None:
        self.target_index = target_index

    def is_skill(self) -> bool:
        return self._item is not None and self._item.is_skill()

    def is_item(self) -> bool:
        return self._item is not None and self._item.is_item()

    def is_attack(self) -> bool:
        return self.is_skill() and self._item.item_id == ATTACK_SKILL_ID

    def is_physical(self) -> bool:
        return self._item is not None and self._item.hit_type == HitType.PHYSICAL

    def is_magical(self) -> bool:
        return self._item is not None and self._item.hit_type == HitType.MAGICAL

    def is_certain_hit(self) -> bool:
        return self._item is not None and self._item.hit_type == HitType.CERTAIN

    def is_hp_damage(self) -> bool:
        return self._item is not None and self._item.damage.type == DamageType.HP_DAMAGE

    def is_hp_recover(self) -> bool:
        return self._item is not None and self._item.damage.type == DamageType.HP_RECOVER

    def is_for_opponent(self) -> bool:
        return self._item is not None and self._item.scope in OPPONENT_SCOPES

    def is_for_friend(self) -> bool:
        return self._item is not None and self._item.scope in FRIEND_SCOPES

    def is_for_user(self) -> bool:
        return self._item is not None and self._item.scope == ItemScope.USER

    def is_for_all(self) -> bool:
        return self._item is not None and self._item.scope in (ItemScope.ENEMY_ALL, ItemScope.ALLY_ALL)

    def speed(self) -> int:
        bonus = self._item.speed if self._item else 0
        return self.subject.agi + bonus

    def friends_unit(self) -> BattleUnit:
        return self.subject.friends_unit()

    def opponents_unit(self) -> BattleUnit:
        return self.subject.opponents_unit()

    # =========================================================================
    # COUNTERS
    # =========================================================================

    def is_counter(self) -> bool:
        return self.counter_priority is not None

    def can_counter(self) -> bool:
        """Counters and actions the host marks as uncounterable cannot be countered."""
        return not self.is_counter() and not self.counter_disabled

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def is_valid(self) -> bool:
        return self._item is not None and self.subject.can_use(self._item)

    def make_targets(self) -> list[Battler]:
        """Resolve the target index into the battlers the action hits."""
        if self._item is None:
            return []
        if self.is_for_user():
            return [self.subject]
        if self.is_for_opponent():
            unit = self.opponents_unit()
        elif self.is_for_friend():
            unit = self.friends_unit()
        else:
            return []
        if self.is_for_all():
            return unit.alive_members()
        target = unit.smooth_target(self.target_index)
        return [target] if target else []

    def make_damage_value(self, target: Battler) -> int:
        damage = self._item.damage
        if self.is_physical():
            value = damage.power + self.subject.atk - target.defense
        elif self.is_magical():
            value = damage.power + self.subject.mat - target.mdf
        else:
            value = damage.power
        return max(0, value)

    def apply(self, target: Battler) -> ActionResult:
        """Apply the item's damage block to one target."""
        result = ActionResult(target=target.name)
        if self.is_hp_damage():
            value = self.make_damage_value(target)
            target.gain_hp(-value)
            result.hp_damage = value
        elif self.is_hp_recover():
            value = self.make_damage_value(target)
            before = target.hp
            target.gain_hp(value)
            result.hp_recovered = target.hp - before
        result.defeated = target.is_dead()
        return result
