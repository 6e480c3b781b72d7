"""
Run Log system for battle event tracking.

Captures executed actions, turn boundaries, counter reservations, counter
starts and malformed counter declarations so a battle can be inspected
after the fact or exported as JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Callable
import json
import logging

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events that can be logged."""

    TURN = "turn"  # Battle turn started
    ACTION = "action"  # Action executed
    COUNTER_RESERVED = "counter_reserved"  # Counter queued after an action
    COUNTER_STARTED = "counter_started"  # Counter began executing
    DECLARATION_ERROR = "declaration_error"  # Malformed counter condition
    CUSTOM = "custom"  # Custom event


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # Note: event_type has a default to allow subclass fields with defaults
    # Subclasses set the correct value in __post_init__
    event_type: EventType = EventType.CUSTOM
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    turn_number: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "turn_number": self.turn_number,
            "context": self.context,
        }

    @classmethod
    def _base_kwargs(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "timestamp": datetime.fromisoformat(data["timestamp"]),
            "sequence_number": data.get("sequence_number", 0),
            "turn_number": data.get("turn_number"),
            "context": data.get("context", {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEvent":
        """Create from dictionary."""
        return cls(event_type=EventType(data["event_type"]), **cls._base_kwargs(data))


@dataclass
class TurnEvent(LogEvent):
    """A battle turn started."""

    battle_turn: int = 0

    def __post_init__(self):
        self.event_type = EventType.TURN

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base["battle_turn"] = self.battle_turn
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TurnEvent":
        return cls(battle_turn=data.get("battle_turn", 0), **cls._base_kwargs(data))

    def __str__(self) -> str:
        return f"[{self.sequence_number}] TURN {self.battle_turn}"


@dataclass
class ActionEvent(LogEvent):
    """An action was executed."""

    subject: str = ""
    item_name: str = ""
    targets: list[str] = field(default_factory=list)
    is_counter: bool = False

    def __post_init__(self):
        self.event_type = EventType.ACTION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "subject": self.subject,
                "item_name": self.item_name,
                "targets": self.targets,
                "is_counter": self.is_counter,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionEvent":
        return cls(
            subject=data.get("subject", ""),
            item_name=data.get("item_name", ""),
            targets=data.get("targets", []),
            is_counter=data.get("is_counter", False),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        kind = "COUNTER" if self.is_counter else "ACTION"
        targets = ", ".join(self.targets) or "-"
        return f"[{self.sequence_number}] {kind} {self.subject}: {self.item_name} -> {targets}"


@dataclass
class CounterReservedEvent(LogEvent):
    """A counter action was queued."""

    owner: str = ""
    item_id: int = 0
    item_name: str = ""
    priority: Any = 0
    precedence: int = 0
    targeted: bool = False

    def __post_init__(self):
        self.event_type = EventType.COUNTER_RESERVED

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "owner": self.owner,
                "item_id": self.item_id,
                "item_name": self.item_name,
                "priority": self.priority,
                "precedence": self.precedence,
                "targeted": self.targeted,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CounterReservedEvent":
        return cls(
            owner=data.get("owner", ""),
            item_id=data.get("item_id", 0),
            item_name=data.get("item_name", ""),
            priority=data.get("priority", 0),
            precedence=data.get("precedence", 0),
            targeted=data.get("targeted", False),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        hit = " targeted" if self.targeted else ""
        return (
            f"[{self.sequence_number}] RESERVE {self.owner}: {self.item_name} "
            f"(priority {self.priority}, precedence {self.precedence}{hit})"
        )


@dataclass
class CounterStartedEvent(LogEvent):
    """A reserved counter began executing."""

    owner: str = ""
    item_name: str = ""
    priority: Any = 0

    def __post_init__(self):
        self.event_type = EventType.COUNTER_STARTED

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "owner": self.owner,
                "item_name": self.item_name,
                "priority": self.priority,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CounterStartedEvent":
        return cls(
            owner=data.get("owner", ""),
            item_name=data.get("item_name", ""),
            priority=data.get("priority", 0),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number}] COUNTER START {self.owner}: {self.item_name}"


@dataclass
class DeclarationErrorEvent(LogEvent):
    """A counter condition failed to parse or evaluate."""

    expression: str = ""
    reason: str = ""
    tag: str = ""
    owner: str = ""

    def __post_init__(self):
        self.event_type = EventType.DECLARATION_ERROR

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "expression": self.expression,
                "reason": self.reason,
                "tag": self.tag,
                "owner": self.owner,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeclarationErrorEvent":
        return cls(
            expression=data.get("expression", ""),
            reason=data.get("reason", ""),
            tag=data.get("tag", ""),
            owner=data.get("owner", ""),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return (
            f"[{self.sequence_number}] DECLARATION ERROR {self.owner} <{self.tag}>: "
            f"{self.expression!r} ({self.reason})"
        )


EVENT_CLASSES: dict[EventType, type] = {
    EventType.TURN: TurnEvent,
    EventType.ACTION: ActionEvent,
    EventType.COUNTER_RESERVED: CounterReservedEvent,
    EventType.COUNTER_STARTED: CounterStartedEvent,
    EventType.DECLARATION_ERROR: DeclarationErrorEvent,
}


class RunLog:
    """
    Central run log for battle events.

    Singleton pattern - use get_run_log() to access.
    """

    _instance: Optional["RunLog"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._seed: Optional[int] = None
        self._session_start: datetime = datetime.now()
        self._turn_provider: Optional[Callable[[], int]] = None
        self._subscribers: list[Callable[[LogEvent], None]] = []
        self._paused: bool = False

    def reset(self) -> None:
        """Reset the log for a new battle."""
        self._events = []
        self._sequence = 0
        self._session_start = datetime.now()
        self._turn_provider = None
        logger.info("RunLog reset")

    def set_seed(self, seed: int) -> None:
        """Record the RNG seed used for this battle."""
        self._seed = seed
        logger.info(f"RunLog seed set: {seed}")

    def get_seed(self) -> Optional[int]:
        """Get the RNG seed for this battle."""
        return self._seed

    def set_turn_provider(self, provider: Optional[Callable[[], int]]) -> None:
        """Set a callback returning the current battle turn number."""
        self._turn_provider = provider

    def pause(self) -> None:
        """Pause logging."""
        self._paused = True

    def resume(self) -> None:
        """Resume logging."""
        self._paused = False

    def is_paused(self) -> bool:
        """Check if logging is paused."""
        return self._paused

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Subscribe to receive events as they are logged."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Unsubscribe from events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _get_turn(self) -> Optional[int]:
        if self._turn_provider:
            return self._turn_provider()
        return None

    def _log_event(self, event: LogEvent) -> None:
        """Internal method to log an event."""
        if self._paused:
            return

        self._sequence += 1
        event.sequence_number = self._sequence
        event.turn_number = self._get_turn()
        self._events.append(event)

        # Notify subscribers
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")

    def log_turn(self, battle_turn: int) -> TurnEvent:
        """Log the start of a battle turn."""
        event = TurnEvent(battle_turn=battle_turn)
        self._log_event(event)
        return event

    def log_action(
        self,
        subject: str,
        item_name: str,
        targets: list[str],
        is_counter: bool = False,
        context: Optional[dict[str, Any]] = None,
    ) -> ActionEvent:
        """Log an executed action."""
        event = ActionEvent(
            subject=subject,
            item_name=item_name,
            targets=list(targets),
            is_counter=is_counter,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_counter_reserved(
        self,
        owner: str,
        item_id: int,
        item_name: str,
        priority: Any,
        precedence: int,
        targeted: bool,
    ) -> CounterReservedEvent:
        """Log a queued counter."""
        event = CounterReservedEvent(
            owner=owner,
            item_id=item_id,
            item_name=item_name,
            priority=priority,
            precedence=precedence,
            targeted=targeted,
        )
        self._log_event(event)
        return event

    def log_counter_started(
        self,
        owner: str,
        item_name: str,
        priority: Any,
    ) -> CounterStartedEvent:
        """Log a counter beginning to execute."""
        event = CounterStartedEvent(owner=owner, item_name=item_name, priority=priority)
        self._log_event(event)
        return event

    def log_declaration_error(
        self,
        expression: str,
        reason: str,
        tag: str = "",
        owner: str = "",
    ) -> DeclarationErrorEvent:
        """Log a malformed counter condition."""
        event = DeclarationErrorEvent(
            expression=expression,
            reason=reason,
            tag=tag,
            owner=owner,
        )
        self._log_event(event)
        return event

    def log_custom(
        self,
        event_name: str,
        details: dict[str, Any],
    ) -> LogEvent:
        """Log a custom event."""
        event = LogEvent(
            event_type=EventType.CUSTOM,
            context={"event_name": event_name, **details},
        )
        self._log_event(event)
        return event

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        since_sequence: int = 0,
    ) -> list[LogEvent]:
        """
        Get logged events.

        Args:
            event_type: Filter by event type (None = all)
            since_sequence: Only events after this sequence number

        Returns:
            List of events
        """
        events = [e for e in self._events if e.sequence_number > since_sequence]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_actions(self) -> list[ActionEvent]:
        """Get all executed actions."""
        return [e for e in self._events if isinstance(e, ActionEvent)]

    def get_counter_reservations(self) -> list[CounterReservedEvent]:
        """Get all counter reservations."""
        return [e for e in self._events if isinstance(e, CounterReservedEvent)]

    def get_declaration_errors(self) -> list[DeclarationErrorEvent]:
        """Get all malformed counter conditions reported."""
        return [e for e in self._events if isinstance(e, DeclarationErrorEvent)]

    def get_event_count(self) -> int:
        """Get total number of logged events."""
        return len(self._events)

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the run log."""
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "total_events": len(self._events),
            "actions": len(self.get_actions()),
            "counters_reserved": len(self.get_counter_reservations()),
            "counters_started": len(self.get_events(EventType.COUNTER_STARTED)),
            "declaration_errors": len(self.get_declaration_errors()),
            "last_sequence": self._sequence,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize the entire log to a dictionary."""
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "sequence": self._sequence,
            "events": [e.to_dict() for e in self._events],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize the log to JSON."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def save(self, filepath: str) -> None:
        """Save the log to a file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info(f"RunLog saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "RunLog":
        """Load a log from a file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        log = get_run_log()
        log.reset()
        log._session_start = datetime.fromisoformat(data["session_start"])
        log._seed = data.get("seed")
        log._sequence = data.get("sequence", 0)

        for event_data in data.get("events", []):
            event_type = EventType(event_data["event_type"])
            event_class = EVENT_CLASSES.get(event_type, LogEvent)
            log._events.append(event_class.from_dict(event_data))

        logger.info(f"RunLog loaded from {filepath}: {len(log._events)} events")
        return log

    def format_log(
        self,
        event_types: Optional[list[EventType]] = None,
        max_events: Optional[int] = None,
    ) -> str:
        """
        Format the log as a human-readable string.

        Args:
            event_types: Filter by event types (None = all)
            max_events: Maximum number of events to include

        Returns:
            Formatted log string
        """
        lines = [
            "=== Run Log ===",
            f"Session: {self._session_start.isoformat()}",
            f"Seed: {self._seed if self._seed is not None else 'not set'}",
            f"Total Events: {len(self._events)}",
            "",
        ]

        events = self._events
        if event_types:
            events = [e for e in events if e.event_type in event_types]
        if max_events:
            events = events[-max_events:]

        for event in events:
            lines.append(str(event))

        return "\n".join(lines)


# Singleton access
_run_log: Optional[RunLog] = None


def get_run_log() -> RunLog:
    """Get the global RunLog instance."""
    global _run_log
    if _run_log is None:
        _run_log = RunLog()
    return _run_log


def reset_run_log() -> RunLog:
    """Reset and return the global RunLog instance."""
    log = get_run_log()
    log.reset()
    return log
