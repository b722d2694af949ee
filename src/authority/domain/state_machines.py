"""Revocation state machine.

Invariants:
    A serial number appears at most once in a CA's CRL.
    REVOKED is terminal: revocation cannot be undone.
"""

from datetime import datetime, timezone

from authority.domain.models import RevokedEntry
from authority.domain.state_machine import StateMachine
from authority.domain.states import RevocationEvent, RevocationStatus

RevocationTransitions = dict[tuple[RevocationStatus, RevocationEvent], RevocationStatus]


class RevocationStateMachine(StateMachine[RevocationStatus, RevocationEvent]):
    """Tracks one serial number against a CA's accumulated revoked entries.

    States:
        UNREVOKED: serial absent from the CRL
        REVOKED: serial present in the CRL (terminal)

    Transition Table:
        (UNREVOKED, REVOCATION_REQUESTED) -> REVOKED
    """

    TRANSITIONS: RevocationTransitions = {
        (RevocationStatus.UNREVOKED, RevocationEvent.REVOCATION_REQUESTED): RevocationStatus.REVOKED,
    }

    def __init__(self, issuer: str, serial_number: int, entries: list[RevokedEntry]):
        self._issuer = issuer
        self._serial_number = serial_number
        self._entries = entries
        self._state = (
            RevocationStatus.REVOKED
            if any(entry.serial_number == serial_number for entry in entries)
            else RevocationStatus.UNREVOKED
        )

    def _get_state(self) -> RevocationStatus:
        return self._state

    def _set_state(self, state: RevocationStatus) -> None:
        self._state = state

    def _get_entity_id(self) -> str:
        return f"{self._issuer}:{self._serial_number:x}"

    @property
    def entries(self) -> list[RevokedEntry]:
        return self._entries

    def revoke(self, revoked_at: datetime | None = None) -> list[RevokedEntry]:
        """Append the serial to the entries and return the full new list.

        The list passed to the constructor is not modified.

        Raises:
            InvalidTransitionError: If the serial is already revoked
        """
        self.transition(RevocationEvent.REVOCATION_REQUESTED)
        entry = RevokedEntry(self._serial_number, revoked_at or datetime.now(timezone.utc))
        self._entries = [*self._entries, entry]
        return self._entries
