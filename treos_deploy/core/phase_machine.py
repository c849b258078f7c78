"""Deterministic publish phase machine.

Enforces:
- Valid phase transitions only (VALID_TRANSITIONS table)
- ABORT reachable from any non-terminal phase
- Every transition recorded in the run trace
"""

from __future__ import annotations

import logging

from treos_deploy.models.phases import VALID_TRANSITIONS, PhaseTransition, PublishPhase

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested phase transition is not valid."""


class PhaseMachine:
    """Tracks the phase of one publish run."""

    def __init__(self) -> None:
        self._phase = PublishPhase.INIT
        self._history: list[PhaseTransition] = []

    @property
    def phase(self) -> PublishPhase:
        return self._phase

    @property
    def history(self) -> list[PhaseTransition]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self._phase]

    def advance(self, target: PublishPhase, *, reason: str | None = None) -> PhaseTransition:
        """Move to *target*, recording the transition.

        Raises InvalidTransitionError when *target* is not reachable from
        the current phase.
        """
        allowed = VALID_TRANSITIONS[self._phase]
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot move from {self._phase.value} to {target.value}. "
                f"Allowed: {sorted(p.value for p in allowed)}"
            )
        transition = PhaseTransition(from_phase=self._phase, to_phase=target, reason=reason)
        self._history.append(transition)
        logger.debug("phase %s -> %s", self._phase.value, target.value)
        self._phase = target
        return transition

    def abort(self, reason: str) -> PhaseTransition | None:
        """Move to ABORT unless the run already ended."""
        if self.is_terminal:
            return None
        return self.advance(PublishPhase.ABORT, reason=reason)
