"""
Observability for battles.

Provides a structured log of battle events (turns, actions, counter
reservations, counter starts, malformed counter declarations).
"""

from src.observability.run_log import (
    RunLog,
    LogEvent,
    EventType,
    TurnEvent,
    ActionEvent,
    CounterReservedEvent,
    CounterStartedEvent,
    DeclarationErrorEvent,
    get_run_log,
    reset_run_log,
)

__all__ = [
    "RunLog",
    "LogEvent",
    "EventType",
    "TurnEvent",
    "ActionEvent",
    "CounterReservedEvent",
    "CounterStartedEvent",
    "DeclarationErrorEvent",
    "get_run_log",
    "reset_run_log",
]
