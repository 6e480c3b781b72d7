"""
Shared data structures for the battle host.

These structures are read by the battle manager and by the counter rule
engine alike: catalog entries for skills and items, trait-bearing data
objects with their note-tag metadata, and the game variable/switch stores.
All randomization goes through DiceRoller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import random
import re


# =============================================================================
# ENUMS
# =============================================================================


class ItemKind(str, Enum):
    """Which catalog table a usable entry belongs to."""
    SKILL = "skill"
    ITEM = "item"


class ItemScope(str, Enum):
    """Who a skill or item can be aimed at."""
    NONE = "none"
    ENEMY_ONE = "enemy_one"
    ENEMY_ALL = "enemy_all"
    ALLY_ONE = "ally_one"
    ALLY_ALL = "ally_all"
    USER = "user"


class HitType(str, Enum):
    """How an action connects with its target."""
    CERTAIN = "certain"
    PHYSICAL = "physical"
    MAGICAL = "magical"


class DamageType(str, Enum):
    """What an action does to its target's hit points."""
    NONE = "none"
    HP_DAMAGE = "hp_damage"
    HP_RECOVER = "hp_recover"


class TraitKind(str, Enum):
    """Data tables that can carry note-tag declarations."""
    ACTOR = "actor"
    CLASS = "class"
    ENEMY = "enemy"
    WEAPON = "weapon"
    ARMOR = "armor"
    STATE = "state"


# =============================================================================
# DICE AND RANDOMIZATION
# =============================================================================


class DiceRoller:
    """
    Centralized randomization interface.
    All random draws must go through this class so a seeded battle replays
    exactly.
    """

    _instance = None
    _seed: Optional[int] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def set_seed(cls, seed: int) -> None:
        """Set random seed for reproducibility."""
        cls._seed = seed
        random.seed(seed)

    @classmethod
    def random_fraction(cls) -> float:
        """Uniform draw in [0, 1) for activation-rate checks."""
        return random.random()


# =============================================================================
# NOTE-TAG METADATA
# =============================================================================


NOTE_TAG_PATTERN = re.compile(r"<([^<>:]+)(:?)([^>]*)>")


def extract_note_metadata(note: str) -> dict[str, Any]:
    """
    Extract <Name: value> and <Name> tags from free-form note text.

    A tag with a colon maps to its raw value text (which may span several
    lines); a bare tag maps to True. Later tags with the same name win.
    The value cannot contain '>'.
    """
    meta: dict[str, Any] = {}
    for match in NOTE_TAG_PATTERN.finditer(note or ""):
        name = match.group(1).strip()
        if match.group(2):
            meta[name] = match.group(3)
        else:
            meta[name] = True
    return meta


@dataclass
class TraitObject:
    """
    A data entry that can carry declarative traits: an actor or enemy entry,
    a class, a piece of equipment or a state.

    meta is derived from the note text unless given explicitly.
    """
    name: str
    kind: TraitKind = TraitKind.ACTOR
    note: str = ""
    meta: dict[str, Any] = field(default=None)

    def __post_init__(self):
        if self.meta is None:
            self.meta = extract_note_metadata(self.note)


# =============================================================================
# CATALOG ENTRIES
# =============================================================================


@dataclass
class DamageSpec:
    """Damage block of a skill or item."""
    type: DamageType = DamageType.NONE
    element_id: int = 0
    power: int = 0

    EXPRESSION_MEMBERS = frozenset({"type", "element_id", "power"})


@dataclass
class UsableItem:
    """A skill or item definition from the catalog tables."""
    item_id: int
    name: str
    kind: ItemKind = ItemKind.SKILL
    scope: ItemScope = ItemScope.ENEMY_ONE
    hit_type: HitType = HitType.PHYSICAL
    damage: DamageSpec = field(default_factory=DamageSpec)
    mp_cost: int = 0
    speed: int = 0
    consumable: bool = True  # Items only

    EXPRESSION_MEMBERS = frozenset({
        "id", "item_id", "name", "kind", "scope", "hit_type", "damage",
        "mp_cost", "speed",
    })

    @property
    def id(self) -> int:
        return self.item_id

    def is_skill(self) -> bool:
        return self.kind == ItemKind.SKILL

    def is_item(self) -> bool:
        return self.kind == ItemKind.ITEM


# =============================================================================
# GAME STATE STORES
# =============================================================================


class GameVariables:
    """Numeric game variables, indexed from 1. Unset variables read as 0."""

    def __init__(self, values: Optional[dict[int, Any]] = None):
        self._data: dict[int, Any] = dict(values or {})

    def value(self, variable_id: int) -> Any:
        return self._data.get(int(variable_id), 0)

    def set_value(self, variable_id: int, value: Any) -> None:
        self._data[int(variable_id)] = value


class GameSwitches:
    """Boolean game switches, indexed from 1. Unset switches read as OFF."""

    def __init__(self, values: Optional[dict[int, bool]] = None):
        self._data: dict[int, bool] = {int(k): bool(v) for k, v in (values or {}).items()}

    def value(self, switch_id: int) -> bool:
        return self._data.get(int(switch_id), False)

    def set_value(self, switch_id: int, value: bool) -> None:
        self._data[int(switch_id)] = bool(value)


@dataclass
class DataCatalog:
    """Skill and item tables keyed by catalog id."""
    skills: dict[int, UsableItem] = field(default_factory=dict)
    items: dict[int, UsableItem] = field(default_factory=dict)

    def add(self, entry: UsableItem) -> UsableItem:
        """Register an entry in the table matching its kind."""
        table = self.skills if entry.is_skill() else self.items
        table[entry.item_id] = entry
        return entry

    def skill(self, skill_id: int) -> Optional[UsableItem]:
        return self.skills.get(skill_id)

    def item(self, item_id: int) -> Optional[UsableItem]:
        return self.items.get(item_id)
