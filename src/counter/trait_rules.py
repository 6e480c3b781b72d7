"""
Trait rule aggregation.

Counter declarations are static for the life of a data object, so each
source is parsed once and its rules are memoised by object identity.
"""

from typing import Optional, Sequence
import logging

from src.counter.interfaces import CounterBattler, TraitSource
from src.counter.rule import CounterRule
from src.counter.rule_parser import CounterRuleParser


logger = logging.getLogger(__name__)


class TraitRuleCache:
    """
    Compute-once store of counter rules per trait source.

    Entries keep a reference to their source so an id is never reused by a
    different object while the cache is alive.
    """

    def __init__(self, parser: Optional[CounterRuleParser] = None):
        self.parser = parser or CounterRuleParser()
        self._rules: dict[int, tuple[TraitSource, tuple[CounterRule, ...]]] = {}

    def rules_for(self, source: TraitSource) -> tuple[CounterRule, ...]:
        """Rules declared on a source, parsed on first request."""
        entry = self._rules.get(id(source))
        if entry is not None:
            return entry[1]

        rules = tuple(self.parser.parse_source(source))
        self._rules[id(source)] = (source, rules)
        if rules:
            logger.debug(
                f"Parsed {len(rules)} counter rule(s) from {getattr(source, 'name', source)!r}"
            )
        return rules

    def rules_for_battler(
        self,
        battler: CounterBattler,
    ) -> list[tuple[TraitSource, tuple[CounterRule, ...]]]:
        """(source, rules) pairs in the battler's trait-object order."""
        sources: Sequence[TraitSource] = battler.trait_objects()
        return [(source, self.rules_for(source)) for source in sources]

    def is_cached(self, source: TraitSource) -> bool:
        return id(source) in self._rules

    def __len__(self) -> int:
        return len(self._rules)
