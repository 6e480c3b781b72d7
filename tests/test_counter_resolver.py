"""
Tests for counter resolution.

Covers the activation roll, priority ordering and tie-breaks, modes,
variable skill selection, usability, target selection and the handling
of malformed conditions.
"""

from unittest.mock import MagicMock

import pytest

from src.counter.condition import CounterDeclarationError
from src.counter.resolver import CounterResolver
from src.combat.game_action import BattleAction
from src.data_models import DiceRoller

from tests.helpers import ATTACK, FIRE, HEAL, RIPOSTE, SLOW_STRIKE


@pytest.fixture
def arena(make_battler, make_units):
    """Builds Harold (party 0) against a Bandit (troop 0) with Harold's rules."""

    def _make(note="", **kwargs):
        harold = make_battler("Harold", note=note, max_mp=20, **kwargs)
        bandit = make_battler("Bandit")
        make_units([harold], [bandit])
        return harold, bandit

    return _make


def skill_of(match):
    return match.action.item().item_id


class TestActivationRate:
    """Tests for the rate roll."""

    def test_rate_zero_never_fires(self, arena, attack_on, catalog, variables, switches):
        harold, bandit = arena("<CounterExt: rate = 0, skill = 7>")
        resolver = CounterResolver(catalog, variables, switches, BattleAction)
        DiceRoller.set_seed(3)
        for _ in range(200):
            assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is None

    def test_rate_hundred_always_fires(self, arena, attack_on, catalog, variables, switches):
        harold, bandit = arena("<CounterExt: rate = 100, skill = 7>")
        resolver = CounterResolver(catalog, variables, switches, BattleAction)
        DiceRoller.set_seed(3)
        for _ in range(200):
            assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is not None

    def test_roll_compared_against_rate(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: rate = 50, skill = 7>")
        action = attack_on(bandit, harold)
        assert make_resolver(roll=0.49).find_counter_action(harold, action, True) is not None
        assert make_resolver(roll=0.5).find_counter_action(harold, action, True) is None

    def test_roll_happens_before_condition(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: cond = (1 +, rate = 0, skill = 7>")
        resolver = make_resolver()
        assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is None
        assert resolver.declaration_errors == []


class TestPriority:
    """Tests for picking among several passing rules."""

    def test_higher_priority_wins(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            "<CounterExt: priority = 5, skill = 7>\n<CounterExt1: priority = 10, skill = 8>"
        )
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == FIRE
        assert match.priority == 10

    def test_higher_priority_declared_first_wins(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            "<CounterExt: priority = 10, skill = 8>\n<CounterExt1: priority = 5, skill = 7>"
        )
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == FIRE

    def test_equal_priority_later_rule_wins(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: skill = 7>\n<CounterExt1: skill = 10>")
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == SLOW_STRIKE
        assert match.rule.tag == "CounterExt1"

    def test_equal_priority_later_source_wins(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            state_notes=["<CounterExt: skill = 7>"],
            equip_notes=["<CounterExt: skill = 10>"],
        )
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == SLOW_STRIKE
        assert match.source is harold.equips[0]

    def test_earlier_source_with_higher_priority_wins(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            state_notes=["<CounterExt: priority = 5, skill = 7>"],
            equip_notes=["<CounterExt: skill = 10>"],
        )
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == RIPOSTE
        assert match.source is harold.states[0]

    def test_negative_priority_still_matches(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: priority = -4, skill = 7>")
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert match.priority == -4

    def test_lower_priority_rules_not_evaluated(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            "<CounterExt: priority = 10, skill = 7>\n"
            "<CounterExt1: cond = (1 +, priority = 1, skill = 10>"
        )
        resolver = make_resolver()
        match = resolver.find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == RIPOSTE
        assert resolver.declaration_errors == []

    def test_no_rules(self, arena, attack_on, make_resolver):
        harold, bandit = arena("Nothing to see.")
        assert make_resolver().find_counter_action(harold, attack_on(bandit, harold), True) is None


class TestModeAndCondition:
    """Tests for mode gating and conditions."""

    def test_target_mode_requires_targeted(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: skill = 7>")
        action = attack_on(bandit, harold)
        resolver = make_resolver()
        assert resolver.find_counter_action(harold, action, False) is None
        assert resolver.find_counter_action(harold, action, True) is not None

    def test_use_mode_ignores_targeted(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: skill = 7, mode = use>")
        action = attack_on(bandit, harold)
        resolver = make_resolver()
        assert resolver.find_counter_action(harold, action, False) is not None
        assert resolver.find_counter_action(harold, action, True) is not None

    def test_condition_false(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: cond = act.is_magical(), skill = 7>")
        assert make_resolver().find_counter_action(harold, attack_on(bandit, harold), True) is None

    def test_condition_sees_element(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: cond = elementId == 2, skill = 7>")
        bandit.max_mp = bandit.mp = 20
        resolver = make_resolver()
        assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is None
        assert resolver.find_counter_action(harold, attack_on(bandit, harold, FIRE), True) is not None

    def test_condition_reads_switch(self, arena, attack_on, make_resolver, switches):
        harold, bandit = arena("<CounterExt: cond = s(5), skill = 7>")
        resolver = make_resolver()
        assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is None
        switches.set_value(5, True)
        assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is not None


class TestSkillSelection:
    """Tests for resolving the counter skill."""

    def test_variable_read_at_resolution(self, arena, attack_on, make_resolver, variables):
        harold, bandit = arena("<CounterExt: skill = v[3]>")
        resolver = make_resolver()

        variables.set_value(3, RIPOSTE)
        assert skill_of(resolver.find_counter_action(harold, attack_on(bandit, harold), True)) == RIPOSTE

        variables.set_value(3, SLOW_STRIKE)
        assert skill_of(resolver.find_counter_action(harold, attack_on(bandit, harold), True)) == SLOW_STRIKE

    def test_unknown_skill_does_not_fire(self, arena, attack_on, make_resolver, variables):
        harold, bandit = arena("<CounterExt: skill = v[3]>")
        variables.set_value(3, 99)
        assert make_resolver().find_counter_action(harold, attack_on(bandit, harold), True) is None

    def test_default_skill_is_attack(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: cond = true>")
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == ATTACK

    def test_unaffordable_skill_falls_back(self, arena, attack_on, make_resolver):
        harold, bandit = arena(
            "<CounterExt: priority = 10, skill = 8>\n<CounterExt1: skill = 7>"
        )
        harold.mp = 0
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == RIPOSTE

    def test_sealed_skill(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: skill = 7>", sealed_skills={RIPOSTE})
        assert make_resolver().find_counter_action(harold, attack_on(bandit, harold), True) is None

    def test_dead_reactor(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: skill = 7>")
        action = attack_on(bandit, harold)
        harold.gain_hp(-harold.max_hp)
        assert make_resolver().find_counter_action(harold, action, True) is None


class TestCounterAction:
    """Tests for the action built for a winning rule."""

    def test_counter_marked(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: priority = 3, skill = 7>")
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        counter = match.action
        assert counter.subject is harold
        assert counter.counter_priority == 3
        assert counter.is_counter()
        assert not counter.can_counter()

    def test_opponent_scope_targets_attacker(self, make_battler, make_units, attack_on, make_resolver):
        harold = make_battler("Harold", note="<CounterExt: skill = 7>")
        wolf = make_battler("Wolf")
        bandit = make_battler("Bandit")
        make_units([harold], [wolf, bandit])

        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert match.action.target_index == bandit.index == 1
        assert match.action.make_targets() == [bandit]

    def test_friend_scope_targets_reactor(self, make_battler, make_units, attack_on, make_resolver):
        therese = make_battler("Therese", max_mp=20)
        harold = make_battler("Harold", note="<CounterExt: skill = 9>", max_mp=20)
        bandit = make_battler("Bandit")
        make_units([therese, harold], [bandit])

        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert match.action.item().item_id == HEAL
        assert match.action.target_index == harold.index == 1

    def test_uses_action_factory(self, arena, attack_on, catalog, variables, switches):
        harold, bandit = arena("<CounterExt: skill = 7>")
        factory = MagicMock(side_effect=BattleAction)
        resolver = CounterResolver(catalog, variables, switches, factory, rng=lambda: 0.0)

        resolver.find_counter_action(harold, attack_on(bandit, harold), True)

        factory.assert_called_once_with(harold)


class TestDeclarationErrors:
    """A malformed condition disqualifies only its own rule."""

    NOTE = "<CounterExt: cond = (1 +, priority = 5, skill = 7>\n<CounterExt1: skill = 10>"

    def test_other_rules_still_considered(self, arena, attack_on, make_resolver):
        harold, bandit = arena(self.NOTE)
        match = make_resolver().find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == SLOW_STRIKE

    def test_error_recorded(self, arena, attack_on, make_resolver, run_log):
        harold, bandit = arena(self.NOTE)
        resolver = make_resolver()
        resolver.find_counter_action(harold, attack_on(bandit, harold), True)

        assert len(resolver.declaration_errors) == 1
        error = resolver.declaration_errors[0]
        assert isinstance(error, CounterDeclarationError)
        assert error.expression == "(1 +"
        assert error.tag == "CounterExt"

        events = run_log.get_declaration_errors()
        assert len(events) == 1
        assert events[0].owner == "Harold"
        assert events[0].expression == "(1 +"

    def test_callback_notified(self, arena, attack_on, make_resolver):
        harold, bandit = arena(self.NOTE)
        resolver = make_resolver()
        callback = MagicMock()
        resolver.register_error_callback(callback)

        resolver.find_counter_action(harold, attack_on(bandit, harold), True)

        callback.assert_called_once()
        error, owner = callback.call_args[0]
        assert owner is harold
        assert error.tag == "CounterExt"

    def test_deeply_nested_condition(self, arena, attack_on, make_resolver):
        nested = "(" * 300 + "true" + ")" * 300
        harold, bandit = arena(f"<CounterExt: cond = {nested}, priority = 5, skill = 7>\n<CounterExt1: skill = 10>")
        resolver = make_resolver()
        match = resolver.find_counter_action(harold, attack_on(bandit, harold), True)
        assert skill_of(match) == SLOW_STRIKE
        assert len(resolver.declaration_errors) == 1
        assert "nested too deeply" in resolver.declaration_errors[0].reason

    def test_reported_on_every_evaluation(self, arena, attack_on, make_resolver):
        harold, bandit = arena("<CounterExt: cond = missing_name, skill = 7>")
        resolver = make_resolver()
        for _ in range(3):
            assert resolver.find_counter_action(harold, attack_on(bandit, harold), True) is None
        assert len(resolver.declaration_errors) == 3
