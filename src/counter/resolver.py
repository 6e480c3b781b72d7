"""
Counter Reaction Resolver

Given a combatant and the action just resolved, walks the combatant's
counter rules and picks at most one counter action.

Resolution order per rule (sources in trait-object order, rules in
declaration order):
1. Skip rules with a priority below the best match so far. Equal
   priorities are still checked, so a later match at the same priority
   replaces an earlier one.
2. Skip target-mode rules when the combatant was not targeted.
3. Roll against the rate, evaluate the condition, then check that the
   combatant can use the counter skill right now.
4. Build the counter action and remember its priority as the new best.

A malformed condition only disqualifies its own rule; it is reported and
the walk continues.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union
import logging
import math

from src.data_models import DiceRoller
from src.counter.condition import ConditionEvaluator, CounterDeclarationError
from src.counter.config import CounterConfig
from src.counter.interfaces import (
    ActionFactory,
    CounterAction,
    CounterBattler,
    SkillCatalog,
    TraitSource,
    UsableEntry,
    ValueStore,
)
from src.counter.rule import CounterRule
from src.counter.rule_parser import CounterRuleParser
from src.counter.trait_rules import TraitRuleCache
from src.observability.run_log import get_run_log


logger = logging.getLogger(__name__)


@dataclass
class CounterMatch:
    """The winning counter for one combatant."""
    action: CounterAction
    priority: Union[int, float]
    rule: CounterRule
    source: TraitSource


class CounterResolver:
    """
    Picks the counter action, if any, a combatant takes in response to an
    action.
    """

    def __init__(
        self,
        catalog: SkillCatalog,
        variables: ValueStore,
        switches: ValueStore,
        action_factory: ActionFactory,
        config: Optional[CounterConfig] = None,
        rule_cache: Optional[TraitRuleCache] = None,
        conditions: Optional[ConditionEvaluator] = None,
        rng: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the resolver.

        Args:
            catalog: Skill table used to resolve counter skills
            variables: Game variables (v(n) and v[N] skill selectors)
            switches: Game switches (s(n))
            action_factory: Builds a fresh action owned by a combatant
            config: Counter configuration (tag name)
            rule_cache: Shared per-source rule cache
            conditions: Condition evaluator
            rng: Uniform [0, 1) source for rate checks
        """
        self.config = config or CounterConfig()
        self.catalog = catalog
        self.variables = variables
        self.switches = switches
        self.action_factory = action_factory
        self.rule_cache = rule_cache or TraitRuleCache(CounterRuleParser(self.config))
        self.conditions = conditions or ConditionEvaluator(variables, switches)
        self.rng = rng or DiceRoller.random_fraction

        self.declaration_errors: list[CounterDeclarationError] = []
        self._error_callbacks: list[Callable[[CounterDeclarationError, CounterBattler], None]] = []

    def register_error_callback(
        self,
        callback: Callable[[CounterDeclarationError, CounterBattler], None],
    ) -> None:
        """Register a callback for malformed counter conditions."""
        self._error_callbacks.append(callback)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def find_counter_action(
        self,
        reactor: CounterBattler,
        action: CounterAction,
        targeted: bool,
    ) -> Optional[CounterMatch]:
        """
        Find the counter a combatant takes in response to an action.

        Args:
            reactor: The combatant that may counter
            action: The action that was just resolved
            targeted: Whether the action hit the reactor

        Returns:
            CounterMatch for the winning rule, or None
        """
        result: Optional[CounterMatch] = None
        best_priority: Union[int, float] = -math.inf

        for source, rules in self.rule_cache.rules_for_battler(reactor):
            for rule in rules:
                if rule.priority < best_priority:
                    continue
                if not rule.matches_mode(targeted):
                    continue

                try:
                    skill = self._judge(rule, reactor, action)
                except CounterDeclarationError as e:
                    self._report_declaration_error(e, reactor)
                    continue
                if skill is None:
                    continue

                counter = self._create_action(reactor, action, skill, rule.priority)
                result = CounterMatch(
                    action=counter,
                    priority=rule.priority,
                    rule=rule,
                    source=source,
                )
                best_priority = rule.priority

        if result is not None:
            logger.debug(
                f"{reactor.name} counters with {result.action.item().name} "
                f"(priority {result.priority}, {result.rule.tag})"
            )
        return result

    def _judge(
        self,
        rule: CounterRule,
        reactor: CounterBattler,
        action: CounterAction,
    ) -> Optional[UsableEntry]:
        """Return the counter skill when the rule fires, else None."""
        if not self.rng() < rule.rate:
            return None
        if not self.conditions.evaluate(rule.condition, reactor, action, tag=rule.tag):
            return None
        skill = rule.resolve_skill(self.catalog, self.variables)
        if not reactor.can_use(skill):
            return None
        return skill

    def _create_action(
        self,
        reactor: CounterBattler,
        opponent_action: CounterAction,
        skill: UsableEntry,
        priority: Union[int, float],
    ) -> CounterAction:
        counter = self.action_factory(reactor)
        counter.set_item_object(skill)
        if counter.is_for_opponent():
            counter.set_target(opponent_action.subject.index)
        elif counter.is_for_friend():
            counter.set_target(reactor.index)
        counter.counter_priority = priority
        return counter

    def _report_declaration_error(
        self,
        error: CounterDeclarationError,
        reactor: CounterBattler,
    ) -> None:
        logger.warning(f"Skipping counter rule on {reactor.name}: {error}")
        self.declaration_errors.append(error)
        get_run_log().log_declaration_error(
            expression=error.expression,
            reason=error.reason,
            tag=error.tag,
            owner=reactor.name,
        )
        for callback in self._error_callbacks:
            callback(error, reactor)
