"""
Counter Reservation Scheduler

Queues counter actions found after each action and feeds them to the turn
controller ahead of the normal turn order.

Hooks (called by the battle manager):
- on_normal_action_invoked: remember who the action hit
- on_action_end: resolve counters for the opposing side and sort the queue
- on_turn_advance: hand the next counter to the turn controller, or give
  the turn back to the subject whose turn was interrupted
- on_action_start: announce counters in the battle log
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

from src.counter.config import CounterConfig
from src.counter.interfaces import CounterAction, CounterBattler, TurnController
from src.counter.resolver import CounterResolver
from src.observability.run_log import get_run_log


logger = logging.getLogger(__name__)


# Added to the speed of a counter whose owner was hit by the triggering action
TARGETED_BONUS = 10000


@dataclass
class CounterReservation:
    """A queued counter and whether its owner was the one attacked."""
    action: CounterAction
    targeted: bool = False

    @property
    def owner(self) -> CounterBattler:
        return self.action.subject

    def precedence(self) -> int:
        key = self.action.speed()
        if self.targeted:
            key += TARGETED_BONUS
        return key


class CounterScheduler:
    """
    Reservation queue for counter actions.

    Owns the per-combatant "was targeted" flags for the action being
    resolved and the queue of reserved counters.
    """

    def __init__(self, resolver: CounterResolver, config: Optional[CounterConfig] = None):
        self.resolver = resolver
        self.config = config or resolver.config
        self._reserved: list[CounterReservation] = []
        self._targeted: set[int] = set()
        self._original_subject: Optional[CounterBattler] = None
        self._holding_subject = False

    # =========================================================================
    # TARGETED FLAGS
    # =========================================================================

    def mark_targeted(self, battler: CounterBattler) -> None:
        self._targeted.add(id(battler))

    def was_targeted(self, battler: CounterBattler) -> bool:
        return id(battler) in self._targeted

    def clear_targeted(self) -> None:
        self._targeted.clear()

    # =========================================================================
    # QUEUE
    # =========================================================================

    @property
    def reserved(self) -> list[CounterReservation]:
        """Pending reservations in drain order."""
        return list(self._reserved)

    def has_reservations(self) -> bool:
        return bool(self._reserved)

    @property
    def original_subject(self) -> Optional[CounterBattler]:
        return self._original_subject

    def reserve(self, action: CounterAction, targeted: bool) -> CounterReservation:
        reservation = CounterReservation(action=action, targeted=targeted)
        self._reserved.append(reservation)
        item = action.item()
        get_run_log().log_counter_reserved(
            owner=action.subject.name,
            item_id=getattr(item, "item_id", 0),
            item_name=getattr(item, "name", ""),
            priority=action.counter_priority,
            precedence=reservation.precedence(),
            targeted=targeted,
        )
        return reservation

    def sort_reservations(self) -> None:
        """Highest precedence first; equal keys keep reservation order."""
        self._reserved.sort(key=lambda r: r.precedence(), reverse=True)

    def reserve_counters(self, action: CounterAction) -> list[CounterReservation]:
        """
        Resolve counters from every member of the side opposing the action.

        Returns:
            Reservations added for this action
        """
        added = []
        for member in action.opponents_unit().members():
            targeted = self.was_targeted(member)
            match = self.resolver.find_counter_action(member, action, targeted)
            if match is not None:
                added.append(self.reserve(match.action, targeted))
        self.sort_reservations()
        return added

    def clear(self) -> None:
        """Drop all pending state, e.g. when a battle ends."""
        self._reserved.clear()
        self._targeted.clear()
        self._original_subject = None
        self._holding_subject = False

    # =========================================================================
    # BATTLE HOOKS
    # =========================================================================

    def on_normal_action_invoked(
        self,
        manager: Any,
        subject: CounterBattler,
        target: CounterBattler,
    ) -> None:
        action = manager.action
        if action is not None and action.can_counter():
            self.mark_targeted(target)

    def on_action_end(self, manager: Any, action: CounterAction) -> None:
        if action.can_counter():
            self.reserve_counters(action)
        self.clear_targeted()

    def on_turn_advance(self, manager: TurnController) -> None:
        if self._reserved:
            if not self._holding_subject:
                self._original_subject = manager.subject
                self._holding_subject = True
            reservation = self._reserved.pop(0)
            owner = reservation.owner
            manager.subject = owner
            owner.unshift_action(reservation.action)
            logger.debug(f"Counter turn for {owner.name}")
        elif self._holding_subject:
            manager.subject = self._original_subject
            self._original_subject = None
            self._holding_subject = False

    def on_action_start(
        self,
        manager: TurnController,
        subject: CounterBattler,
        action: CounterAction,
    ) -> None:
        if not action.is_counter():
            return
        get_run_log().log_counter_started(
            owner=subject.name,
            item_name=getattr(action.item(), "name", ""),
            priority=action.counter_priority,
        )
        if self.config.shows_message:
            manager.add_log_text(self.config.message_text)


def install_counter_extension(
    manager: Any,
    config: Optional[CounterConfig] = None,
    rng: Optional[Callable[[], float]] = None,
) -> CounterScheduler:
    """
    Wire a resolver and scheduler into a battle manager.

    The manager supplies the catalog, the game stores and the action
    factory; the scheduler is registered as one of its extensions.
    """
    config = config or CounterConfig()
    resolver = CounterResolver(
        catalog=manager.catalog,
        variables=manager.variables,
        switches=manager.switches,
        action_factory=manager.create_action,
        config=config,
        rng=rng,
    )
    scheduler = CounterScheduler(resolver, config)
    manager.register_extension(scheduler)
    logger.info(f"Counter extension installed (tag <{config.tag_name}>)")
    return scheduler
