"""Counter rule engine.

Parses <CounterExt> note-tag declarations, evaluates their trigger
conditions and schedules counter actions ahead of the normal turn order.
"""

from src.counter.config import CounterConfig
from src.counter.condition import (
    ConditionEvaluator,
    CounterDeclarationError,
    ExpressionError,
    ExpressionEvaluationError,
    ExpressionEvaluator,
    ExpressionSyntaxError,
)
from src.counter.resolver import CounterMatch, CounterResolver
from src.counter.rule import CounterMode, CounterRule, LiteralSkill, VariableSkill
from src.counter.rule_parser import CounterRuleParser
from src.counter.scheduler import (
    TARGETED_BONUS,
    CounterReservation,
    CounterScheduler,
    install_counter_extension,
)
from src.counter.trait_rules import TraitRuleCache

__all__ = [
    "CounterConfig",
    "ConditionEvaluator",
    "CounterDeclarationError",
    "ExpressionError",
    "ExpressionEvaluationError",
    "ExpressionEvaluator",
    "ExpressionSyntaxError",
    "CounterMatch",
    "CounterResolver",
    "CounterMode",
    "CounterRule",
    "LiteralSkill",
    "VariableSkill",
    "CounterRuleParser",
    "TARGETED_BONUS",
    "CounterReservation",
    "CounterScheduler",
    "install_counter_extension",
    "TraitRuleCache",
]
