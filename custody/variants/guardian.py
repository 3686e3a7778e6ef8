import logging
from typing import List, Optional

from ..errors import InvalidState, Unauthorized
from ..ledger import ReleaseReport
from ..quorum import QuorumEngine, encode_call
from ..rules import CustodyRules
from .base import BaseVault

logger = logging.getLogger(__name__)


class GuardianWallet(BaseVault):
    """
    Vault whose release to the heir is triggered by guardians.

    A single guardian may release once the owner's inactivity period has
    elapsed. Before that, a quorum of guardians can release through a
    ``release`` proposal. Guardian membership and quorum change only through
    guardian proposals.
    """

    kind = "guardian"

    def __init__(self, env, owner: str, heir: str, guardians: List[str],
                 quorum: Optional[int] = None, rules: Optional[CustodyRules] = None):
        super().__init__(env, owner, heir, rules)
        if quorum is None:
            quorum = min(self.rules.default_quorum, len(guardians))
        self.guardians = QuorumEngine(env, guardians, quorum, address=self.address)
        self.guardians.expose("release", self._quorum_release)
        self.guardians.restrict(self._check_proposal)

    def release(self, caller: str) -> ReleaseReport:
        """Any guardian may release after the inactivity period"""
        self._require_active()
        if not self.guardians.is_principal(caller):
            raise Unauthorized("Only a guardian can release")
        self.switch.require_release_permitted()
        logger.info("guardian %s releasing %s to heir %s", caller, self.address, self.heir)
        return self._release()

    def propose_release(self, caller: str) -> int:
        """Guardian proposal releasing to the heir without waiting for the timeout"""
        self._require_active()
        return self.guardians.propose(caller, self.address, 0, encode_call("release"))

    def _check_proposal(self, target: str, value: int, payload: bytes) -> None:
        # Guardians move assets only through the ledger
        if target != self.address or value:
            raise InvalidState("Guardian proposals may only call the wallet itself without value")

    def _quorum_release(self) -> bytes:
        self._require_active()
        report = self._release()
        return b"complete" if report.complete else b"partial"

    def handle_call(self, env, sender: str, value: int, payload: bytes) -> bytes:
        if payload:
            return self.guardians.handle_call(env, sender, value, payload)
        return super().handle_call(env, sender, value, payload)

    def status(self) -> dict:
        data = super().status()
        data['guardians'] = self.guardians.principals()
        data['quorum'] = self.guardians.quorum
        return data
