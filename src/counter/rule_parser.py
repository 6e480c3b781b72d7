"""
Counter Rule Parser

Turns note-tag declarations into CounterRule objects.

A declaration is the value of a <CounterExt: ...> tag (or one of its
numbered variants <CounterExt1> .. <CounterExt9>). It holds key = value
pairs, one per line or several on a line:

    <CounterExt:
       cond     = act.is_physical()   # trigger condition
       rate     = 100                 # activation rate in percent
       priority = 0
       skill    = 1                   # skill id, or v[N] for variable N
       mode     = target              # or: use
    >

    <CounterExt2: cond = b.hp_rate() < 0.5, rate = 50, skill = v[3]>

Keys are case-insensitive and dispatched by their first letter. A value
runs until the next key on the same line or the end of the line. Numeric
values that do not convert are ignored and the field keeps its default.
"""

from typing import Any, Mapping, Optional, Union
import logging
import math
import re

from src.counter.config import CounterConfig
from src.counter.interfaces import TraitSource
from src.counter.rule import CounterMode, CounterRule, LiteralSkill, VariableSkill


logger = logging.getLogger(__name__)


class CounterRuleParser:
    """
    Parser for counter declarations.

    Field defaults follow CounterRule; each recognised key overrides one
    field. The parser holds no state besides its configuration.
    """

    KEY_PATTERN = re.compile(
        r"(?<![.\w])(cond|rate|priority|skill|mode)\s*=(?!=)",
        re.IGNORECASE,
    )
    STRING_PATTERN = re.compile(r"'(?:\\.|[^'\\])*'" r'|"(?:\\.|[^"\\])*"')
    COMMENT_PATTERN = re.compile(STRING_PATTERN.pattern + r"|(#.*$)")
    VARIABLE_PATTERN = re.compile(r"v\[(\d+)\]", re.IGNORECASE)
    MODE_PATTERN = re.compile(r"(target|use)")

    def __init__(self, config: Optional[CounterConfig] = None):
        self.config = config or CounterConfig()

    # =========================================================================
    # SOURCES
    # =========================================================================

    def parse_source(self, source: TraitSource) -> list[CounterRule]:
        """
        Parse every counter declaration on a trait source.

        Reads the base tag and its numbered variants in order; each present
        text value yields one rule.
        """
        meta: Mapping[str, Any] = getattr(source, "meta", None) or {}
        rules = []
        for tag in self.config.tag_names():
            declaration = meta.get(tag)
            if not isinstance(declaration, str):
                continue
            rules.append(self.parse_declaration(declaration, tag=tag))
        return rules

    # =========================================================================
    # DECLARATIONS
    # =========================================================================

    def parse_declaration(self, declaration: str, tag: str = "") -> CounterRule:
        """
        Parse one declaration string into a rule.

        Args:
            declaration: Raw tag value
            tag: Tag name the declaration was read from

        Returns:
            CounterRule with defaults for every field not set
        """
        fields: dict[str, Any] = {}
        for key, value in self._split_pairs(declaration):
            self._apply(fields, key, value)
        return CounterRule(tag=tag, declaration=declaration, **fields)

    def _split_pairs(self, declaration: str) -> list[tuple[str, str]]:
        """Split a declaration into (key, value) pairs in declaration order."""
        pairs = []
        for line in declaration.splitlines():
            line = self.COMMENT_PATTERN.sub(lambda m: "" if m.group(1) else m.group(0), line)
            strings = [m.span() for m in self.STRING_PATTERN.finditer(line)]
            matches = [
                m for m in self.KEY_PATTERN.finditer(line)
                if not any(start <= m.start() < end for start, end in strings)
            ]
            for i, match in enumerate(matches):
                end = matches[i + 1].start() if i + 1 < len(matches) else len(line)
                value = line[match.end():end].strip().rstrip(",;").strip()
                pairs.append((match.group(1).lower(), value))
        return pairs

    def _apply(self, fields: dict[str, Any], key: str, value: str) -> None:
        k = key[0]
        if k == "c":
            if value:
                fields["condition"] = value
        elif k == "s":
            selector = self._parse_skill(value)
            if selector is not None:
                fields["skill"] = selector
        elif k == "p":
            number = _to_number(value)
            if number is None:
                logger.debug(f"Ignoring non-numeric counter priority: {value!r}")
            else:
                fields["priority"] = number
        elif k == "r":
            number = _to_number(value)
            if number is None:
                logger.debug(f"Ignoring non-numeric counter rate: {value!r}")
            else:
                fields["rate"] = number / 100
        elif k == "m":
            match = self.MODE_PATTERN.search(value)
            if match:
                fields["mode"] = CounterMode(match.group(1))

    def _parse_skill(self, value: str) -> Optional[Union[LiteralSkill, VariableSkill]]:
        match = self.VARIABLE_PATTERN.search(value)
        if match:
            variable_id = int(match.group(1))
            if variable_id > 0:
                return VariableSkill(variable_id)
            logger.debug(f"Ignoring counter skill variable 0: {value!r}")
            return None

        number = _to_number(value)
        if number is None or number != int(number):
            logger.debug(f"Ignoring invalid counter skill: {value!r}")
            return None
        return LiteralSkill(int(number))


def _to_number(text: str) -> Optional[Union[int, float]]:
    """Convert declaration text to a number; None when it does not convert."""
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
