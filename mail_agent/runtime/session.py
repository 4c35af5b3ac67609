"""Per-request session state."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from mail_agent.tools import ResultSlot


class TransportMode(str, Enum):
    STREAMING = "streaming"
    SINGLE_SHOT = "single_shot"


class TimeoutStrategy(str, Enum):
    """How the session deadline is enforced.

    ``between_events`` only checks the deadline after each complete upstream
    event, so a slow event can hold the session past its deadline.
    ``preemptive`` also races the wait for the next event against the deadline.
    """

    BETWEEN_EVENTS = "between_events"
    PREEMPTIVE = "preemptive"


class RelayState(str, Enum):
    ACCEPTED = "accepted"
    STREAMING = "streaming"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CLIENT_DISCONNECTED = "client_disconnected"
    UPSTREAM_ERROR = "upstream_error"
    CLOSED = "closed"


class Outcome(str, Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    NO_RESPONSE = "no_response"
    DISCONNECTED = "disconnected"


Clock = Callable[[], float]


@dataclass
class Session:
    """One accepted request's lifecycle. Mutated only by its relay."""

    transport_mode: TransportMode
    timeout_seconds: float
    clock: Clock = time.monotonic
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = 0.0
    timeout_deadline: float = 0.0
    task_completed: bool = False
    result_id: Optional[str] = None
    timed_out: bool = False
    state: RelayState = RelayState.ACCEPTED
    outcome: Optional[Outcome] = None
    result_slot: ResultSlot = field(default_factory=ResultSlot)

    def __post_init__(self) -> None:
        self.started_at = self.clock()
        self.timeout_deadline = self.started_at + self.timeout_seconds

    def remaining(self) -> float:
        return self.timeout_deadline - self.clock()

    def deadline_reached(self) -> bool:
        return self.clock() >= self.timeout_deadline

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def finish(self, state: RelayState, outcome: Outcome) -> bool:
        """Record the terminal outcome. Returns False if one was already recorded."""
        if self.outcome is not None:
            return False
        self.state = state
        self.outcome = outcome
        if outcome == Outcome.TIMED_OUT:
            self.timed_out = True
        return True

    def complete(self, result_id: Optional[str]) -> bool:
        if not self.finish(RelayState.COMPLETED, Outcome.COMPLETED):
            return False
        self.task_completed = True
        self.result_id = result_id
        return True

    @property
    def fallback_result_id(self) -> Optional[str]:
        """The detected result id, else the last id the mail tool produced."""
        return self.result_id or self.result_slot.message_id
