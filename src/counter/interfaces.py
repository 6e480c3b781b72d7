"""
Host collaborator interfaces consumed by the counter rule engine.

The counter engine never imports the battle host directly; it talks to
objects that satisfy these protocols. src.combat provides the reference
implementations.
"""

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence


class TraitSource(Protocol):
    """Any data object carrying note-tag metadata."""

    meta: Mapping[str, Any]


class UsableEntry(Protocol):
    """A skill or item definition."""

    item_id: int
    name: str


class ActionUnit(Protocol):
    """One side of the battle."""

    def members(self) -> Sequence["CounterBattler"]:
        ...


class CounterBattler(Protocol):
    """A combatant that can react to actions."""

    name: str

    @property
    def index(self) -> int:
        ...

    def trait_objects(self) -> Sequence[TraitSource]:
        ...

    def can_use(self, item: Optional[UsableEntry]) -> bool:
        ...

    def unshift_action(self, action: "CounterAction") -> None:
        ...


class CounterAction(Protocol):
    """A battle action as seen by the counter engine."""

    subject: CounterBattler
    counter_priority: Optional[Any]

    def item(self) -> Optional[UsableEntry]:
        ...

    def is_skill(self) -> bool:
        ...

    def is_item(self) -> bool:
        ...

    def is_for_opponent(self) -> bool:
        ...

    def is_for_friend(self) -> bool:
        ...

    def set_item_object(self, item: Optional[UsableEntry]) -> None:
        ...

    def set_target(self, target_index: int) -> None:
        ...

    def speed(self) -> int:
        ...

    def opponents_unit(self) -> ActionUnit:
        ...

    def is_counter(self) -> bool:
        ...

    def can_counter(self) -> bool:
        ...


class ValueStore(Protocol):
    """Read access to game variables or switches."""

    def value(self, key: int) -> Any:
        ...


class SkillCatalog(Protocol):
    """Lookup of skill definitions by id."""

    def skill(self, skill_id: int) -> Optional[UsableEntry]:
        ...


class TurnController(Protocol):
    """The pieces of the battle manager the scheduler drives."""

    subject: Optional[CounterBattler]

    def add_log_text(self, text: str) -> None:
        ...


ActionFactory = Callable[[CounterBattler], CounterAction]
