import os
from dataclasses import dataclass
from enum import Enum

DAY = 86_400
DEFAULT_INACTIVITY_PERIOD = 90 * DAY


class ReleasePolicy(Enum):
    """What a multi-asset release does when one transfer fails"""
    ATOMIC = "atomic"            # abort and roll back the whole release
    BEST_EFFORT = "best_effort"  # keep the failed asset, continue with the rest


@dataclass
class CustodyRules:
    """Tunable parameters for vaults and wallets"""

    inactivity_period: int  # seconds without proof of life before release
    release_policy: ReleasePolicy
    default_quorum: int

    @classmethod
    def conservative(cls) -> 'CustodyRules':
        """Long inactivity window, all-or-nothing release"""
        return cls(
            inactivity_period=365 * DAY,
            release_policy=ReleasePolicy.ATOMIC,
            default_quorum=2
        )

    @classmethod
    def permissive(cls) -> 'CustodyRules':
        """Short inactivity window, best-effort release"""
        return cls(
            inactivity_period=DEFAULT_INACTIVITY_PERIOD,
            release_policy=ReleasePolicy.BEST_EFFORT,
            default_quorum=1
        )

    @classmethod
    def from_env(cls, prefix: str = "CUSTODY_", environ=None) -> 'CustodyRules':
        """Build rules from environment variables, falling back to conservative()"""
        environ = os.environ if environ is None else environ
        base = cls.conservative()

        period = environ.get(prefix + "INACTIVITY_PERIOD")
        policy = environ.get(prefix + "RELEASE_POLICY")
        quorum = environ.get(prefix + "DEFAULT_QUORUM")

        try:
            rules = cls(
                inactivity_period=int(period) if period is not None else base.inactivity_period,
                release_policy=ReleasePolicy(policy.lower()) if policy is not None else base.release_policy,
                default_quorum=int(quorum) if quorum is not None else base.default_quorum
            )
        except ValueError as e:
            raise ValueError(f"Invalid custody configuration: {e}") from e

        rules.validate()
        return rules

    def validate(self) -> None:
        if self.inactivity_period <= 0:
            raise ValueError(f"Inactivity period must be positive, got {self.inactivity_period}")
        if self.default_quorum < 1:
            raise ValueError(f"Default quorum must be at least 1, got {self.default_quorum}")
        if not isinstance(self.release_policy, ReleasePolicy):
            raise ValueError(f"Unknown release policy {self.release_policy!r}")
