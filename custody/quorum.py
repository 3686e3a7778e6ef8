"""
Quorum authorization engine (N-of-M proposals).

Principals propose actions (target, value, payload), confirm them, and the
confirmation that brings the count up to the quorum executes the action in
the same call. An explicit :meth:`QuorumEngine.execute` remains for proposals
that reached quorum without executing, e.g. after a failed external call or a
quorum reduction.

Changes to the principal registry are not callable directly. They are
proposals whose target is the engine's own address and whose payload is built
with :func:`encode_call`, so they need the same quorum as any other action.

Proposal states are derived, never stored::

    PENDING     confirmations < quorum
    AUTHORIZED  confirmations >= quorum, not executed
    EXECUTED    terminal
"""

import json
import logging
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .errors import (
    CustodyError, ExternalCallFailure, InvalidQuorum, InvalidState, NotFound, Unauthorized
)
from .keys import address_from_public_key, require_address, sha3_256, verify_digest
from .state import StateSnapshot

logger = logging.getLogger(__name__)

_DIGEST_DOMAIN = b"custody.quorum.confirm.v1"

REGISTRY_OPS = ("add_principal", "remove_principal", "replace_principal", "change_quorum")


class ProposalState(Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    EXECUTED = "executed"


@dataclass
class Proposal:
    """One proposed action and its confirmation progress"""
    proposal_id: int
    proposer: str
    target: str
    value: int
    payload: bytes
    created_at: int
    executed: bool = False
    confirmations: int = 0
    executed_at: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data['payload'] = self.payload.hex()
        return data


def encode_call(op: str, **args) -> bytes:
    """Payload for a self-call operation (registry change or host operation)"""
    return json.dumps({'op': op, 'args': args}, sort_keys=True).encode()


def decode_call(payload: bytes) -> Tuple[str, dict]:
    """Inverse of encode_call; raises ValueError on malformed payloads"""
    try:
        data = json.loads(payload.decode())
        op, args = data['op'], data.get('args', {})
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed call payload: {e}") from e
    if not isinstance(op, str) or not isinstance(args, dict):
        raise ValueError("Malformed call payload: op must be a string and args an object")
    return op, args


class QuorumEngine(StateSnapshot):
    """Principal registry, quorum and proposal log for one wallet"""

    _snapshot_fields = ('_principals', '_quorum', '_proposals', '_confirmed')

    def __init__(self, env, principals: List[str], quorum: int, address: Optional[str] = None):
        principals = [require_address(p) for p in principals]
        if not principals:
            raise InvalidQuorum("At least one principal is required")
        if len(set(principals)) != len(principals):
            raise InvalidState("Duplicate principals not allowed")
        if not 1 <= quorum <= len(principals):
            raise InvalidQuorum(f"Quorum must be between 1 and {len(principals)}, got {quorum}")

        self.env = env
        self._principals: List[str] = principals
        self._quorum = quorum
        self._proposals: List[Proposal] = []
        self._confirmed: Dict[int, Set[str]] = {}
        self._host_ops: Dict[str, Callable] = {}
        self._proposal_guard: Optional[Callable] = None

        if address is None:
            # Standalone engine lives at its own address
            env.deploy(self)
        else:
            self.address = require_address(address)
            env.track(self)

    # -- queries -----------------------------------------------------------

    @property
    def quorum(self) -> int:
        return self._quorum

    def principals(self) -> List[str]:
        return list(self._principals)

    def is_principal(self, address: str) -> bool:
        return address in self._principals

    def get_proposal(self, proposal_id: int) -> Proposal:
        """Copy of the proposal; raises NotFound"""
        return replace(self._get(proposal_id))

    def state_of(self, proposal_id: int) -> ProposalState:
        proposal = self._get(proposal_id)
        if proposal.executed:
            return ProposalState.EXECUTED
        if proposal.confirmations >= self._quorum:
            return ProposalState.AUTHORIZED
        return ProposalState.PENDING

    def is_confirmed(self, proposal_id: int) -> bool:
        """Whether the proposal currently has enough confirmations"""
        return self._get(proposal_id).confirmations >= self._quorum

    def confirmations_of(self, proposal_id: int) -> List[str]:
        """Principals that confirmed, in registry order"""
        self._get(proposal_id)
        confirmed = self._confirmed[proposal_id]
        return [p for p in self._principals if p in confirmed]

    def has_confirmed(self, proposal_id: int, principal: str) -> bool:
        self._get(proposal_id)
        return principal in self._confirmed[proposal_id]

    def proposals(self, pending: bool = True, executed: bool = True) -> List[Proposal]:
        return [
            replace(p) for p in self._proposals
            if (pending and not p.executed) or (executed and p.executed)
        ]

    def proposal_count(self, pending: bool = True, executed: bool = True) -> int:
        return len(self.proposals(pending=pending, executed=executed))

    def proposal_digest(self, proposal_id: int) -> bytes:
        """Digest a principal signs to confirm off-chain"""
        p = self._get(proposal_id)
        return sha3_256(
            _DIGEST_DOMAIN
            + bytes.fromhex(self.address[2:])
            + p.proposal_id.to_bytes(16, 'big')
            + bytes.fromhex(p.target[2:])
            + p.value.to_bytes(16, 'big')
            + len(p.payload).to_bytes(4, 'big')
            + p.payload
        )

    # -- workflow ----------------------------------------------------------

    def propose(self, caller: str, target: str, value: int = 0, payload: bytes = b"") -> int:
        """Create a pending proposal; does not confirm it"""
        self._require_principal(caller)
        target = require_address(target)
        if not isinstance(value, int) or value < 0:
            raise ValueError("Value must be a non-negative integer")
        if not isinstance(payload, (bytes, bytearray)):
            raise ValueError("Payload must be bytes")
        if self._proposal_guard is not None:
            self._proposal_guard(target, value, bytes(payload))

        proposal_id = len(self._proposals)
        self._proposals.append(Proposal(
            proposal_id=proposal_id,
            proposer=caller,
            target=target,
            value=value,
            payload=bytes(payload),
            created_at=self.env.now()
        ))
        self._confirmed[proposal_id] = set()
        self.env.emit("Submission", self.address, proposal_id=proposal_id, proposer=caller)
        return proposal_id

    def confirm(self, caller: str, proposal_id: int) -> Proposal:
        """
        Confirm a proposal; executes it when this confirmation reaches quorum.

        A failed execution keeps the confirmation and leaves the proposal
        AUTHORIZED so it can be retried with execute().
        """
        self._require_principal(caller)
        return self._confirm(caller, proposal_id)

    def confirm_signed(self, proposal_id: int, public_key_hex: str, signature_hex: str) -> Proposal:
        """Confirm on behalf of the principal whose key signed proposal_digest()"""
        signer = address_from_public_key(public_key_hex)
        self._require_principal(signer)
        if not verify_digest(public_key_hex, self.proposal_digest(proposal_id), signature_hex):
            raise Unauthorized("Signature does not match proposal digest")
        return self._confirm(signer, proposal_id)

    def revoke(self, caller: str, proposal_id: int) -> None:
        self._require_principal(caller)
        proposal = self._get(proposal_id)
        if proposal.executed:
            raise InvalidState(f"Proposal {proposal_id} already executed")
        if caller not in self._confirmed[proposal_id]:
            raise InvalidState(f"Proposal {proposal_id} not confirmed by {caller}")

        self._confirmed[proposal_id].discard(caller)
        proposal.confirmations -= 1
        self.env.emit("Revocation", self.address, proposal_id=proposal_id, principal=caller)

    def execute(self, caller: str, proposal_id: int) -> bytes:
        """Execute an authorized proposal; raises the call's failure after re-opening it"""
        self._require_principal(caller)
        proposal = self._get(proposal_id)
        if proposal.executed:
            raise InvalidState(f"Proposal {proposal_id} already executed")
        if proposal.confirmations < self._quorum:
            raise InvalidState(
                f"Proposal {proposal_id} has {proposal.confirmations} of {self._quorum} confirmations"
            )
        return self._execute(proposal_id)

    def _confirm(self, principal: str, proposal_id: int) -> Proposal:
        proposal = self._get(proposal_id)
        if proposal.executed:
            raise InvalidState(f"Proposal {proposal_id} already executed")
        if principal in self._confirmed[proposal_id]:
            raise InvalidState(f"Proposal {proposal_id} already confirmed by {principal}")

        self._confirmed[proposal_id].add(principal)
        proposal.confirmations += 1
        self.env.emit("Confirmation", self.address, proposal_id=proposal_id, principal=principal)
        logger.debug("proposal %d confirmed by %s (%d/%d)",
                     proposal_id, principal, proposal.confirmations, self._quorum)

        # Fresh check against the current quorum, not a cached state
        if proposal.confirmations >= self._quorum:
            try:
                self._execute(proposal_id)
            except CustodyError:
                pass  # already reported as ExecutionFailure; proposal stays AUTHORIZED
        return self.get_proposal(proposal_id)

    def _execute(self, proposal_id: int) -> bytes:
        proposal = self._proposals[proposal_id]
        # Effects before interaction: a reentrant execute sees EXECUTED
        proposal.executed = True
        proposal.executed_at = self.env.now()

        try:
            if proposal.target == self.address:
                with self.env.atomic():
                    result = self._dispatch_self(proposal.payload)
            else:
                result = self.env.call(self.address, proposal.target, proposal.value, proposal.payload)
        except Exception as e:
            failure = e if isinstance(e, CustodyError) else ExternalCallFailure(
                f"Proposal {proposal_id} raised {e!r}", proposal.target
            )
            # Rollback may have swapped the proposal object; look it up again
            proposal = self._proposals[proposal_id]
            proposal.executed = False
            proposal.executed_at = None
            self.env.emit(
                "ExecutionFailure", self.address,
                proposal_id=proposal_id, reason=failure.kind, message=failure.message
            )
            logger.warning("proposal %d failed to execute: %s", proposal_id, failure)
            if failure is e:
                raise
            raise failure from e

        self.env.emit("Execution", self.address, proposal_id=proposal_id)
        logger.info("proposal %d executed (target %s, value %d)",
                    proposal_id, proposal.target, proposal.value)
        return result

    # -- self-calls --------------------------------------------------------

    def restrict(self, guard: Callable) -> None:
        """Run guard(target, value, payload) on every new proposal; it raises to reject"""
        self._proposal_guard = guard

    def expose(self, op: str, handler: Callable) -> None:
        """Make handler(**args) reachable only through an executed proposal"""
        if op in REGISTRY_OPS or op in self._host_ops:
            raise ValueError(f"Operation {op!r} already defined")
        self._host_ops[op] = handler

    def handle_call(self, env, sender: str, value: int, payload: bytes) -> bytes:
        """Entry point for calls arriving through the environment"""
        if not payload:
            return b""  # plain value deposit
        if sender != self.address:
            raise Unauthorized("Registry operations require a self-call")
        return self._dispatch_self(payload)

    def _dispatch_self(self, payload: bytes) -> bytes:
        if not payload:
            return b""
        try:
            op, args = decode_call(payload)
        except ValueError as e:
            raise InvalidState(str(e)) from e

        handler = {
            "add_principal": self._add_principal,
            "remove_principal": self._remove_principal,
            "replace_principal": self._replace_principal,
            "change_quorum": self._change_quorum,
        }.get(op) or self._host_ops.get(op)
        if handler is None:
            raise NotFound(f"Unknown operation {op!r}")

        try:
            result = handler(**args)
        except TypeError as e:
            raise InvalidState(f"Bad arguments for {op}: {e}") from e
        return result if isinstance(result, bytes) else b""

    def _add_principal(self, principal: str) -> None:
        principal = require_address(principal)
        if principal in self._principals:
            raise InvalidState(f"{principal} is already a principal")
        self._principals.append(principal)
        self.env.emit("PrincipalAddition", self.address, principal=principal)

    def _remove_principal(self, principal: str) -> None:
        if principal not in self._principals:
            raise NotFound(f"{principal} is not a principal")
        if len(self._principals) == 1:
            raise InvalidQuorum("Cannot remove the last principal")

        self._principals.remove(principal)
        self._drop_confirmations(principal)
        self.env.emit("PrincipalRemoval", self.address, principal=principal)
        if self._quorum > len(self._principals):
            self._set_quorum(len(self._principals))

    def _replace_principal(self, old: str, new: str) -> None:
        new = require_address(new)
        if old not in self._principals:
            raise NotFound(f"{old} is not a principal")
        if new in self._principals:
            raise InvalidState(f"{new} is already a principal")

        self._principals[self._principals.index(old)] = new
        self._drop_confirmations(old)
        self.env.emit("PrincipalRemoval", self.address, principal=old)
        self.env.emit("PrincipalAddition", self.address, principal=new)

    def _change_quorum(self, quorum: int) -> None:
        if not isinstance(quorum, int) or not 1 <= quorum <= len(self._principals):
            raise InvalidQuorum(
                f"Quorum must be between 1 and {len(self._principals)}, got {quorum}"
            )
        self._set_quorum(quorum)

    def _set_quorum(self, quorum: int) -> None:
        self._quorum = quorum
        self.env.emit("QuorumChange", self.address, quorum=quorum)

    def _drop_confirmations(self, principal: str) -> None:
        """Former principals' confirmations stop counting on open proposals"""
        for proposal in self._proposals:
            if not proposal.executed and principal in self._confirmed[proposal.proposal_id]:
                self._confirmed[proposal.proposal_id].discard(principal)
                proposal.confirmations -= 1

    # -- helpers -----------------------------------------------------------

    def _require_principal(self, caller: str) -> None:
        if caller not in self._principals:
            raise Unauthorized(f"{caller} is not a principal")

    def _get(self, proposal_id: int) -> Proposal:
        if not isinstance(proposal_id, int) or not 0 <= proposal_id < len(self._proposals):
            raise NotFound(f"Proposal {proposal_id} not found")
        return self._proposals[proposal_id]
