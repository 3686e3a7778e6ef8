import logging
from typing import Optional

from ..assets import NATIVE, AssetKind
from ..errors import InvalidState, Unauthorized
from ..keys import require_address
from ..ledger import CustodyLedger, ReleaseReport
from ..rules import CustodyRules
from ..state import StateSnapshot
from ..switch import DeadMansSwitch

logger = logging.getLogger(__name__)


class BaseVault(StateSnapshot):
    """Owner, heir, inactivity switch and custody ledger shared by every vault"""

    kind = "vault"
    _snapshot_fields = ('heir', 'released')

    def __init__(self, env, owner: str, heir: str, rules: Optional[CustodyRules] = None):
        rules = rules or CustodyRules.conservative()
        rules.validate()
        owner = require_address(owner)
        heir = require_address(heir)
        if owner == heir:
            raise InvalidState("Heir must differ from owner")

        self.env = env
        self.rules = rules
        self.heir = heir
        self.released = False
        env.deploy(self)
        self.switch = DeadMansSwitch(env, owner, rules.inactivity_period, emitter=self.address)
        self.ledger = CustodyLedger(env, self.address, rules.release_policy)

    @property
    def owner(self) -> str:
        return self.switch.owner

    # -- owner actions -----------------------------------------------------

    def heartbeat(self, caller: str) -> int:
        """Proof of life"""
        self._require_active()
        return self.switch.reset(caller)

    def set_heir(self, caller: str, heir: str) -> None:
        self._require_active()
        self._require_owner(caller)
        heir = require_address(heir)
        if heir == self.owner:
            raise InvalidState("Heir must differ from owner")
        previous, self.heir = self.heir, heir
        self.switch.reset(caller)
        self.env.emit("HeirChanged", self.address, previous=previous, heir=heir)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._require_active()
        if require_address(new_owner) == self.heir:
            raise InvalidState("Owner must differ from heir")
        self.switch.transfer_ownership(caller, new_owner)

    def register_asset(self, caller: str, contract: str, item_id: Optional[int] = None,
                       amount: int = 1):
        """Put an asset the vault already holds under custody"""
        self._require_active()
        self._require_owner(caller)
        if contract == NATIVE:
            kind = AssetKind.NATIVE
        else:
            kind = self.env.contract_at(contract).kind
        return self.ledger.register(contract, item_id, kind, amount)

    def remove_asset(self, caller: str, contract: str, item_id: Optional[int] = None):
        """Take an asset out of custody and hand it back to the owner"""
        self._require_active()
        self._require_owner(caller)
        return self.ledger.withdraw(contract, item_id, self.owner)

    # -- value -------------------------------------------------------------

    def deposit(self, sender: str, amount: int) -> int:
        """Move native value from sender into custody; returns the new balance"""
        self._require_active()
        self.env.call(sender, self.address, amount)
        return self.native_balance

    @property
    def native_balance(self) -> int:
        if self.ledger.contains(NATIVE):
            return self.ledger.get(NATIVE).amount
        return 0

    def handle_call(self, env, sender: str, value: int, payload: bytes) -> bytes:
        if payload:
            raise Unauthorized("Vault does not accept calls")
        if value:
            self._require_active()
            self._credit_native(value)
        return b""

    def _credit_native(self, amount: int) -> None:
        if self.ledger.contains(NATIVE):
            self.ledger.set_amount(NATIVE, None, self.native_balance + amount)
        else:
            self.ledger.register(NATIVE, None, AssetKind.NATIVE, amount)

    # -- release -----------------------------------------------------------

    def _release(self) -> ReleaseReport:
        report = self.ledger.release(self.heir)
        if len(self.ledger) == 0:
            self.released = True
        self.env.emit(
            "Released", self.address,
            heir=self.heir, transferred=len(report.transferred),
            failed=len(report.failed), complete=report.complete
        )
        return report

    def status(self) -> dict:
        """Read-only view of the vault"""
        return {
            'address': self.address,
            'kind': self.kind,
            'owner': self.owner,
            'heir': self.heir,
            'last_proof_of_life': self.switch.last_marker,
            'inactivity_period': self.switch.inactivity_period,
            'release_permitted': self.switch.is_release_permitted(),
            'seconds_until_release': self.switch.time_until_release(),
            'release_policy': self.ledger.policy.value,
            'released': self.released,
            'assets': [r.to_dict() for r in self.ledger.records()]
        }

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized("Only the owner can do this")

    def _require_heir(self, caller: str) -> None:
        if caller != self.heir:
            raise Unauthorized("Only the heir can do this")

    def _require_active(self) -> None:
        if self.released:
            raise InvalidState("Vault already released")
