"""
Counter rule entity.

A CounterRule is built once from a note-tag declaration and never changed
afterwards. The skill it uses is selected either by a literal skill id or
through a game variable that is read when the counter is built.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from src.counter.interfaces import SkillCatalog, UsableEntry, ValueStore


class CounterMode(str, Enum):
    """When a rule is considered."""
    TARGET = "target"  # Owner was the target of the action
    USE = "use"  # Opposing side used the action, target or not


@dataclass(frozen=True)
class LiteralSkill:
    """Skill selected by catalog id."""
    skill_id: int

    def resolve_id(self, variables: ValueStore) -> int:
        return self.skill_id

    def __str__(self) -> str:
        return str(self.skill_id)


@dataclass(frozen=True)
class VariableSkill:
    """Skill id read from a game variable at resolution time."""
    variable_id: int

    def resolve_id(self, variables: ValueStore) -> int:
        return variables.value(self.variable_id)

    def __str__(self) -> str:
        return f"v[{self.variable_id}]"


SkillSelector = Union[LiteralSkill, VariableSkill]


@dataclass(frozen=True)
class CounterRule:
    """
    One counter declaration.

    Attributes:
        condition: Trigger expression, evaluated per action
        rate: Activation probability in [0, 1]
        priority: Higher priorities are checked first and win
        skill: Which skill the counter uses
        mode: Whether the owner must have been targeted
        tag: Note tag the rule came from
        declaration: Raw declaration text
    """

    condition: str = "true"
    rate: float = 1.0
    priority: Union[int, float] = 0
    skill: SkillSelector = field(default_factory=lambda: LiteralSkill(1))
    mode: CounterMode = CounterMode.TARGET
    tag: str = ""
    declaration: str = ""

    def matches_mode(self, targeted: bool) -> bool:
        """Target-mode rules only apply to a combatant that was hit."""
        if self.mode == CounterMode.TARGET:
            return targeted
        return True

    def resolve_skill(
        self,
        catalog: SkillCatalog,
        variables: ValueStore,
    ) -> Optional[UsableEntry]:
        """Look up the counter skill, reading the selector's variable now."""
        return catalog.skill(self.skill.resolve_id(variables))

    def describe(self) -> str:
        return (
            f"{self.tag or 'counter'}: cond={self.condition!r} rate={self.rate:g} "
            f"priority={self.priority} skill={self.skill} mode={self.mode.value}"
        )
