from typing import List

from ..quorum import Proposal, QuorumEngine, encode_call


class MultiSigWallet:
    """N-of-M wallet executing arbitrary calls with native value"""

    kind = "multisig"

    def __init__(self, env, owners: List[str], quorum: int):
        self.env = env
        env.deploy(self)
        self.engine = QuorumEngine(env, owners, quorum, address=self.address)

    @property
    def balance(self) -> int:
        return self.env.native.balance_of(self.address)

    def deposit(self, sender: str, amount: int) -> int:
        self.env.call(sender, self.address, amount)
        return self.balance

    def handle_call(self, env, sender: str, value: int, payload: bytes) -> bytes:
        return self.engine.handle_call(env, sender, value, payload)

    def submit(self, caller: str, target: str, value: int = 0, payload: bytes = b"") -> int:
        """Propose and confirm in one step; executes at once if quorum is 1"""
        with self.env.atomic():
            proposal_id = self.engine.propose(caller, target, value, payload)
            self.engine.confirm(caller, proposal_id)
        return proposal_id

    def submit_registry_change(self, caller: str, op: str, **args) -> int:
        """Submit add_principal / remove_principal / replace_principal / change_quorum"""
        return self.submit(caller, self.address, 0, encode_call(op, **args))

    def confirm(self, caller: str, proposal_id: int) -> Proposal:
        return self.engine.confirm(caller, proposal_id)

    def confirm_signed(self, proposal_id: int, public_key_hex: str, signature_hex: str) -> Proposal:
        return self.engine.confirm_signed(proposal_id, public_key_hex, signature_hex)

    def revoke(self, caller: str, proposal_id: int) -> None:
        self.engine.revoke(caller, proposal_id)

    def execute(self, caller: str, proposal_id: int) -> bytes:
        return self.engine.execute(caller, proposal_id)

    def status(self) -> dict:
        return {
            'address': self.address,
            'kind': self.kind,
            'principals': self.engine.principals(),
            'quorum': self.engine.quorum,
            'balance': self.balance,
            'proposal_count': self.engine.proposal_count()
        }
