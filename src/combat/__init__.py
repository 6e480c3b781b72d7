"""Battle host module.

Provides battlers, actions, the battle log, the turn controller and
scenario loading.
"""

from src.combat.battle_log import BattleLog
from src.combat.battle_manager import (
    BattleExtension,
    BattleManager,
    BattlePhase,
    ExecutedAction,
    TurnResult,
)
from src.combat.battler import ActionPlan, Battler, BattleSide, BattleUnit
from src.combat.game_action import ATTACK_SKILL_ID, ActionResult, BattleAction
from src.combat.scenario import BattleScenario, ScenarioError, load_scenario, parse_scenario

__all__ = [
    "BattleLog",
    "BattleExtension",
    "BattleManager",
    "BattlePhase",
    "ExecutedAction",
    "TurnResult",
    "ActionPlan",
    "Battler",
    "BattleSide",
    "BattleUnit",
    "ATTACK_SKILL_ID",
    "ActionResult",
    "BattleAction",
    "BattleScenario",
    "ScenarioError",
    "load_scenario",
    "parse_scenario",
]
