from enum import Enum
from typing import List
from dataclasses import dataclass


class LoopState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: LoopState
    to_state: LoopState
    action: str


class LoopStateMachine:
    TRANSITIONS = [
        Transition(LoopState.IDLE, LoopState.TICKING, "tick"),
        Transition(LoopState.TICKING, LoopState.IDLE, "settle"),
    ]

    def __init__(self, initial_state: LoopState = LoopState.IDLE, history_size: int = 50):
        self._state = initial_state
        self._history: List[tuple] = []
        self._history_size = history_size

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_ticking(self) -> bool:
        return self._state == LoopState.TICKING

    def can_transition(self, action: str) -> bool:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                return True
        return False

    def transition(self, action: str) -> LoopState:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                old_state = self._state
                self._state = t.to_state
                self._history.append((old_state, action, self._state))
                # only recent transitions are kept; the loop runs forever
                del self._history[:-self._history_size]
                return self._state

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    def get_history(self) -> List[tuple]:
        return self._history.copy()
