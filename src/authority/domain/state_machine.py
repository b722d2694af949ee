"""State machine infrastructure for certificate authority entities.

Subclasses declare a transition table mapping (State, Event) -> NewState;
any pair missing from the table is rejected with InvalidTransitionError.
Every executed transition is logged and counted.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generic, TypeVar

from opentelemetry import metrics

logger = logging.getLogger(__name__)

meter = metrics.get_meter("authority.state_machines")

state_transitions_total = meter.create_counter(
    name="authority_state_transitions_total",
    description="Total state transitions",
    unit="1",
)


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, entity_id: str, current_state: str, event: str):
        self.entity_id = entity_id
        self.current_state = current_state
        self.event = event
        super().__init__(
            f"Invalid transition: {entity_id} in state {current_state} cannot handle event {event}"
        )


S = TypeVar("S", bound=Enum)
E = TypeVar("E", bound=Enum)


class StateMachine(ABC, Generic[S, E]):
    """Base class for state machines with explicit transition tables."""

    TRANSITIONS: dict[tuple[S, E], S]

    @abstractmethod
    def _get_state(self) -> S: ...

    @abstractmethod
    def _set_state(self, state: S) -> None: ...

    @abstractmethod
    def _get_entity_id(self) -> str: ...

    def transition(self, event: E) -> S:
        """Execute a state transition.

        Raises:
            InvalidTransitionError: If no transition is defined for (state, event)
        """
        current_state = self._get_state()
        entity_id = self._get_entity_id()

        new_state = self.TRANSITIONS.get((current_state, event))
        if new_state is None:
            logger.warning(
                "invalid_transition_attempted",
                extra={
                    "entity_id": entity_id,
                    "current_state": current_state.value,
                    "event": event.value,
                },
            )
            raise InvalidTransitionError(entity_id, current_state.value, event.value)

        self._set_state(new_state)

        logger.info(
            "state_transition",
            extra={
                "entity_id": entity_id,
                "from_state": current_state.value,
                "to_state": new_state.value,
                "event": event.value,
            },
        )
        state_transitions_total.add(
            1,
            {
                "entity_type": self.__class__.__name__,
                "from_state": current_state.value,
                "to_state": new_state.value,
                "event": event.value,
            },
        )

        return new_state

    def can_transition(self, event: E) -> bool:
        return (self._get_state(), event) in self.TRANSITIONS
