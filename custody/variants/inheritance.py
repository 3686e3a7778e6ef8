import logging

from ..assets import NATIVE
from ..errors import ExternalCallFailure, InvalidState
from ..keys import require_address
from ..ledger import ReleaseReport
from .base import BaseVault

logger = logging.getLogger(__name__)


class InheritanceVault(BaseVault):
    """Native value held for a single heir"""

    kind = "inheritance"

    def withdraw(self, caller: str, amount: int, to: str = None) -> int:
        """Owner takes value back out; counts as proof of life"""
        self._require_active()
        self._require_owner(caller)
        to = require_address(to) if to else self.owner
        if amount <= 0 or amount > self.native_balance:
            raise InvalidState(f"Cannot withdraw {amount}, balance is {self.native_balance}")

        with self.env.atomic():
            self.ledger.set_amount(NATIVE, None, self.native_balance - amount)
            if not self.env.native.transfer(self.address, to, None, amount):
                raise ExternalCallFailure(f"Native transfer of {amount} to {to} failed", to)
            self.switch.reset(caller)
            self.env.emit("Withdrawal", self.address, to=to, amount=amount)
        return self.native_balance

    def claim(self, caller: str) -> ReleaseReport:
        """Heir collects everything once the owner has gone quiet"""
        self._require_active()
        self._require_heir(caller)
        self.switch.require_release_permitted()
        logger.info("heir %s claiming vault %s", caller, self.address)
        return self._release()
