"""
Battle Manager: the turn controller.

Runs a battle turn by turn. Each turn every living battler gets its planned
actions, battlers act fastest first, and each action is started, applied to
every target and ended before the next one.

The turn loop per tick (update_turn):
1. Extensions see the turn advance and may change the active subject
2. Without an active subject, the next battler in turn order becomes it
3. The subject's next action runs to completion
4. With no subject left, the turn ends

Extensions (such as the counter scheduler) attach to four hooks:
on_turn_advance, on_action_start, on_normal_action_invoked and
on_action_end. They are called in registration order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol
import logging

from src.combat.battle_log import BattleLog
from src.combat.battler import ActionPlan, Battler, BattleUnit
from src.combat.game_action import ATTACK_SKILL_ID, BattleAction
from src.data_models import DataCatalog, GameSwitches, GameVariables
from src.observability.run_log import get_run_log


logger = logging.getLogger(__name__)


# Guards run_turn against an extension that never lets the turn end
MAX_TICKS_PER_TURN = 1000


class BattlePhase(str, Enum):
    """Where the battle is in its turn cycle."""
    INIT = "init"
    TURN = "turn"
    TURN_END = "turn_end"
    BATTLE_END = "battle_end"


class BattleExtension(Protocol):
    """Hooks a battle extension implements."""

    def on_turn_advance(self, manager: "BattleManager") -> None:
        ...

    def on_action_start(self, manager: "BattleManager", subject: Battler, action: BattleAction) -> None:
        ...

    def on_normal_action_invoked(self, manager: "BattleManager", subject: Battler, target: Battler) -> None:
        ...

    def on_action_end(self, manager: "BattleManager", action: BattleAction) -> None:
        ...


@dataclass
class ExecutedAction:
    """Record of an action that ran."""
    turn: int
    subject: str
    item_id: int
    item_name: str
    targets: list[str] = field(default_factory=list)
    is_counter: bool = False
    action: Optional[BattleAction] = None


@dataclass
class TurnResult:
    """Outcome of running one turn."""
    turn: int
    actions: list[ExecutedAction] = field(default_factory=list)
    battle_over: bool = False
    winner: Optional[str] = None


class BattleManager:
    """
    Turn controller for a battle between the party and an enemy troop.
    """

    def __init__(
        self,
        party: BattleUnit,
        troop: BattleUnit,
        catalog: DataCatalog,
        variables: Optional[GameVariables] = None,
        switches: Optional[GameSwitches] = None,
        log: Optional[BattleLog] = None,
    ):
        """
        Initialize the battle manager.

        Args:
            party: The player's side
            troop: The enemy side
            catalog: Skill and item tables
            variables: Game variables
            switches: Game switches
            log: Battle log receiving messages
        """
        party.opponents = troop
        troop.opponents = party
        self.party = party
        self.troop = troop
        self.catalog = catalog
        self.variables = variables or GameVariables()
        self.switches = switches or GameSwitches()
        self.log = log or BattleLog()

        self.phase = BattlePhase.INIT
        self.turn_count = 0
        self.history: list[ExecutedAction] = []

        self._subject: Optional[Battler] = None
        self._action: Optional[BattleAction] = None
        self._action_battlers: list[Battler] = []
        self._extensions: list[BattleExtension] = []

    # =========================================================================
    # EXTENSIONS AND ACCESSORS
    # =========================================================================

    def register_extension(self, extension: BattleExtension) -> None:
        """Attach an extension to the turn hooks."""
        self._extensions.append(extension)

    @property
    def subject(self) -> Optional[Battler]:
        """The battler whose action runs next."""
        return self._subject

    @subject.setter
    def subject(self, battler: Optional[Battler]) -> None:
        self._subject = battler

    @property
    def action(self) -> Optional[BattleAction]:
        """The action being resolved, if any."""
        return self._action

    def add_log_text(self, text: str) -> None:
        self.log.add_text(text)

    def create_action(self, subject: Battler) -> BattleAction:
        """A fresh action owned by a battler."""
        return BattleAction(subject)

    def all_battlers(self) -> list[Battler]:
        return self.party.members() + self.troop.members()

    # =========================================================================
    # ACTION INPUT
    # =========================================================================

    def make_actions(self, battler: Battler) -> list[BattleAction]:
        """Build a battler's actions from its plan; a plain attack by default."""
        plans = battler.action_plan or [ActionPlan(skill_id=ATTACK_SKILL_ID)]
        actions = []
        for plan in plans:
            if plan.item_id is not None:
                item = self.catalog.item(plan.item_id)
            else:
                item = self.catalog.skill(plan.skill_id)
            if item is None:
                logger.warning(f"{battler.name} plans an unknown skill/item: {plan}")
                continue
            actions.append(BattleAction(battler, item, target_index=plan.target_index))
        return actions

    def input_actions(self) -> None:
        for battler in self.all_battlers():
            if battler.is_alive():
                battler.set_actions(self.make_actions(battler))
            else:
                battler.clear_actions()

    # =========================================================================
    # TURN LOOP
    # =========================================================================

    def start_turn(self) -> None:
        """Begin a turn: collect actions and sort battlers by speed."""
        self.turn_count += 1
        self.phase = BattlePhase.TURN
        self.log.display_turn(self.turn_count)
        get_run_log().set_turn_provider(lambda: self.turn_count)
        get_run_log().log_turn(self.turn_count)
        self.input_actions()
        self.make_action_orders()

    def make_action_orders(self) -> None:
        battlers = [b for b in self.all_battlers() if b.is_alive()]
        # Stable: ties keep party-then-troop order
        battlers.sort(key=lambda b: b.make_speed(), reverse=True)
        self._action_battlers = battlers

    def get_next_subject(self) -> Optional[Battler]:
        while self._action_battlers:
            battler = self._action_battlers.pop(0)
            if battler.is_alive():
                return battler
        return None

    def update_turn(self) -> None:
        """Advance the turn by one tick."""
        if self.check_battle_end():
            return
        for extension in self._extensions:
            extension.on_turn_advance(self)
        if self._subject is None:
            self._subject = self.get_next_subject()
        if self._subject is not None:
            self.process_turn()
        else:
            self.end_turn()

    def process_turn(self) -> None:
        subject = self._subject
        action = subject.current_action()
        if action is not None:
            subject.remove_current_action()
            if action.is_valid():
                self.execute_action(subject, action)
            else:
                logger.debug(f"{subject.name} cannot perform {action!r}")
        else:
            self._subject = self.get_next_subject()

    def end_turn(self) -> None:
        self.phase = BattlePhase.TURN_END
        for battler in self.all_battlers():
            battler.clear_actions()
        self.check_battle_end()

    def run_turn(self) -> TurnResult:
        """Run a complete turn and report the actions that ran."""
        first = len(self.history)
        self.start_turn()
        ticks = 0
        while self.phase == BattlePhase.TURN:
            ticks += 1
            if ticks > MAX_TICKS_PER_TURN:
                raise RuntimeError(f"Turn {self.turn_count} did not finish in {MAX_TICKS_PER_TURN} ticks")
            self.update_turn()
        return TurnResult(
            turn=self.turn_count,
            actions=self.history[first:],
            battle_over=self.is_battle_over(),
            winner=self.winner(),
        )

    def run_battle(self, max_turns: int = 20) -> list[TurnResult]:
        """Run turns until one side falls or max_turns is reached."""
        results = []
        while not self.is_battle_over() and self.turn_count < max_turns:
            results.append(self.run_turn())
        return results

    # =========================================================================
    # ACTION EXECUTION
    # =========================================================================

    def execute_action(self, subject: Battler, action: BattleAction) -> ExecutedAction:
        """Start an action, apply it to every target and end it."""
        targets = self.start_action(subject, action)
        for target in targets:
            self.invoke_normal_action(subject, target)
        self.end_action()

        item = action.item()
        record = ExecutedAction(
            turn=self.turn_count,
            subject=subject.name,
            item_id=item.item_id,
            item_name=item.name,
            targets=[t.name for t in targets],
            is_counter=action.is_counter(),
            action=action,
        )
        self.history.append(record)
        get_run_log().log_action(
            subject=subject.name,
            item_name=item.name,
            targets=record.targets,
            is_counter=record.is_counter,
        )
        return record

    def start_action(self, subject: Battler, action: BattleAction) -> list[Battler]:
        self._action = action
        targets = action.make_targets()
        subject.use_item(action.item())
        for extension in self._extensions:
            extension.on_action_start(self, subject, action)
        self.log.start_action(subject, action, targets)
        return targets

    def invoke_normal_action(self, subject: Battler, target: Battler) -> None:
        result = self._action.apply(target)
        self.log.display_action_result(result)
        for extension in self._extensions:
            extension.on_normal_action_invoked(self, subject, target)

    def end_action(self) -> None:
        action = self._action
        for extension in self._extensions:
            extension.on_action_end(self, action)
        self._action = None

    # =========================================================================
    # BATTLE END
    # =========================================================================

    def check_battle_end(self) -> bool:
        if self.party.is_all_dead() or self.troop.is_all_dead():
            if self.phase != BattlePhase.BATTLE_END:
                self.phase = BattlePhase.BATTLE_END
                self.log.add_text(f"Battle over: {self.winner() or 'nobody'} wins.")
                logger.info(f"Battle ended on turn {self.turn_count}")
            return True
        return False

    def is_battle_over(self) -> bool:
        return self.phase == BattlePhase.BATTLE_END

    def winner(self) -> Optional[str]:
        if self.troop.is_all_dead() and not self.party.is_all_dead():
            return self.party.side.value
        if self.party.is_all_dead() and not self.troop.is_all_dead():
            return self.troop.side.value
        return None

    def get_battle_summary(self) -> dict[str, Any]:
        return {
            "turns": self.turn_count,
            "phase": self.phase.value,
            "winner": self.winner(),
            "actions": len(self.history),
            "counters": sum(1 for a in self.history if a.is_counter),
            "party": {b.name: b.hp for b in self.party.members()},
            "troop": {b.name: b.hp for b in self.troop.members()},
        }
