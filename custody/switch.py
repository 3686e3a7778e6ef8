"""
Dead-man's-switch authority.

Tracks a single "last proof of life" timestamp. Release is permitted once
strictly more than ``inactivity_period`` seconds have passed since that
marker. Nothing is stored about whether release has "triggered"; the
predicate is recomputed against the clock on every call.
"""

import logging

from .errors import InvalidState, Unauthorized
from .keys import require_address
from .state import StateSnapshot

logger = logging.getLogger(__name__)


class DeadMansSwitch(StateSnapshot):
    """Inactivity timer gating irreversible release"""

    _snapshot_fields = ('owner', 'last_marker')

    def __init__(self, env, owner: str, inactivity_period: int, emitter: str = None):
        if inactivity_period <= 0:
            raise ValueError("Inactivity period must be positive")
        self.env = env
        self.owner = require_address(owner)
        self.inactivity_period = inactivity_period
        self.emitter = emitter or self.owner
        self.last_marker = env.now()
        env.track(self)

    def reset(self, caller: str) -> int:
        """Record proof of life; returns the new marker"""
        if caller != self.owner:
            raise Unauthorized("Only the owner can prove liveness")
        # Marker never moves backwards even if the clock does
        self.last_marker = max(self.last_marker, self.env.now())
        self.env.emit("ProofOfLife", self.emitter, owner=self.owner, marker=self.last_marker)
        logger.info("proof of life from %s at %d", self.owner, self.last_marker)
        return self.last_marker

    def release_at(self) -> int:
        """First timestamp at which release is permitted"""
        return self.last_marker + self.inactivity_period + 1

    def is_release_permitted(self) -> bool:
        return self.env.now() > self.last_marker + self.inactivity_period

    def time_until_release(self) -> int:
        return max(0, self.last_marker + self.inactivity_period - self.env.now())

    def require_release_permitted(self) -> None:
        if not self.is_release_permitted():
            raise InvalidState(
                f"Owner still active: release not permitted for another "
                f"{self.time_until_release()} seconds"
            )

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand the switch to a new owner; counts as proof of life"""
        if caller != self.owner:
            raise Unauthorized("Only the owner can transfer ownership")
        new_owner = require_address(new_owner)
        previous, self.owner = self.owner, new_owner
        self.last_marker = max(self.last_marker, self.env.now())
        self.env.emit("OwnershipTransferred", self.emitter, previous=previous, owner=new_owner)
