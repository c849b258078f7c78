"""Publish phase state machine models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class PublishPhase(str, Enum):
    """Phases of a single publish run."""

    INIT = "init"
    PRECHECK = "precheck"
    GATHER = "gather"
    RESOLVE = "resolve"
    DIFF = "diff"
    ASSEMBLE = "assemble"
    DECIDE = "decide"
    COMMIT = "commit"
    PREVIEW = "preview"
    DONE = "done"
    ABORT = "abort"


_SEQUENCE: list[PublishPhase] = [
    PublishPhase.INIT,
    PublishPhase.PRECHECK,
    PublishPhase.GATHER,
    PublishPhase.RESOLVE,
    PublishPhase.DIFF,
    PublishPhase.ASSEMBLE,
    PublishPhase.DECIDE,
]

# Each phase advances to the next; DECIDE forks into COMMIT or PREVIEW.
# ABORT is reachable from every non-terminal phase. DONE and ABORT are terminal.
VALID_TRANSITIONS: dict[PublishPhase, set[PublishPhase]] = {
    current: {following, PublishPhase.ABORT}
    for current, following in zip(_SEQUENCE, _SEQUENCE[1:])
}
VALID_TRANSITIONS[PublishPhase.DECIDE] = {
    PublishPhase.COMMIT,
    PublishPhase.PREVIEW,
    PublishPhase.ABORT,
}
VALID_TRANSITIONS[PublishPhase.COMMIT] = {PublishPhase.DONE, PublishPhase.ABORT}
VALID_TRANSITIONS[PublishPhase.PREVIEW] = {PublishPhase.DONE, PublishPhase.ABORT}
VALID_TRANSITIONS[PublishPhase.DONE] = set()
VALID_TRANSITIONS[PublishPhase.ABORT] = set()


class PhaseTransition(BaseModel):
    """Records a single phase change for the run trace."""

    model_config = ConfigDict(frozen=True)

    from_phase: PublishPhase
    to_phase: PublishPhase
    reason: str | None = None  # populated when entering ABORT
