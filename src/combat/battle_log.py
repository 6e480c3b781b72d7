"""
Battle log: the lines of text shown while a battle runs.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.combat.battler import Battler
    from src.combat.game_action import ActionResult, BattleAction


class BattleLog:
    """Accumulates battle messages in display order."""

    def __init__(self):
        self.lines: list[str] = []

    def add_text(self, text: str) -> None:
        self.lines.append(text)

    def display_turn(self, turn: int) -> None:
        self.add_text(f"-- Turn {turn} --")

    def start_action(
        self,
        subject: "Battler",
        action: "BattleAction",
        targets: list["Battler"],
    ) -> None:
        item = action.item()
        self.add_text(f"{subject.name} uses {item.name}!")

    def display_action_result(self, result: "ActionResult") -> None:
        if result.hp_damage:
            self.add_text(f"{result.target} takes {result.hp_damage} damage!")
        elif result.hp_recovered:
            self.add_text(f"{result.target} recovers {result.hp_recovered} HP!")
        else:
            self.add_text(f"{result.target} is unaffected.")
        if result.defeated:
            self.add_text(f"{result.target} is defeated!")

    def clear(self) -> None:
        self.lines = []

    def text(self) -> str:
        return "\n".join(self.lines)

    def __len__(self) -> int:
        return len(self.lines)
