"""
Execution environment: clock, event log, native value and call dispatch.

One ``Environment`` stands for one deployed system. Every vault, wallet and
token is created against it and receives it explicitly; nothing here is
process-global. Calls are serialized: an operation either completes or is
rolled back through :meth:`Environment.atomic` before any other operation runs.
"""

import itertools
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .assets import NativeBalanceBook
from .errors import CustodyError, ExternalCallFailure, NotFound
from .events import EventLog
from .keys import require_address, sha3_256

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall-clock seconds"""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock advanced explicitly, for simulations and tests"""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards via advance()")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        self._now = timestamp


class Environment:
    """Context object every custody operation runs against"""

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self.events = EventLog()
        self.native = NativeBalanceBook()
        self._contracts: Dict[str, Any] = {}
        self._participants: List[Any] = [self.events, self.native]
        self._deploy_counter = itertools.count(1)

    def now(self) -> int:
        return self.clock.now()

    def emit(self, name: str, emitter: str, **data):
        return self.events.emit(name, emitter, self.now(), **data)

    # -- contracts ---------------------------------------------------------

    def new_address(self, label: str = "contract") -> str:
        seed = f"{label}:{next(self._deploy_counter)}".encode()
        return "0x" + sha3_256(seed)[-20:].hex()

    def deploy(self, contract, address: Optional[str] = None) -> str:
        """Register contract at address (generated if not given) and track its state"""
        if address is None:
            address = getattr(contract, 'address', None) or self.new_address(type(contract).__name__)
        address = require_address(address)
        if address in self._contracts:
            raise CustodyError(f"Address {address} already in use")
        contract.address = address
        self._contracts[address] = contract
        self.track(contract)
        logger.debug("deployed %s at %s", type(contract).__name__, address)
        return address

    def contract_at(self, address: str):
        address = require_address(address)
        if address not in self._contracts:
            raise NotFound(f"No contract at {address}")
        return self._contracts[address]

    def contracts(self) -> Dict[str, Any]:
        return dict(self._contracts)

    def track(self, participant) -> None:
        """Include participant in rollback of atomic blocks"""
        if hasattr(participant, 'snapshot') and participant not in self._participants:
            self._participants.append(participant)

    # -- transactions ------------------------------------------------------

    @contextmanager
    def atomic(self):
        """Roll back every tracked participant if the block raises"""
        participants = list(self._participants)
        saved = [(p, p.snapshot()) for p in participants]
        try:
            yield self
        except BaseException:
            for participant, state in reversed(saved):
                participant.restore(state)
            raise

    def call(self, sender: str, target: str, value: int = 0, payload: bytes = b"") -> bytes:
        """
        Send value and payload from sender to target.

        The target may be a plain address (value only) or a deployed contract
        exposing ``handle_call(env, sender, value, payload)``. Any failure is
        reported as ExternalCallFailure with all state rolled back.
        """
        target = require_address(target)
        if value < 0:
            raise ValueError("Call value must be non-negative")

        try:
            with self.atomic():
                if value and not self.native.transfer(sender, target, None, value):
                    raise ExternalCallFailure(
                        f"Insufficient native balance: {sender} cannot send {value}", target
                    )
                contract = self._contracts.get(target)
                handler = getattr(contract, 'handle_call', None)
                if handler is None:
                    return b""
                return handler(self, sender, value, payload) or b""
        except ExternalCallFailure:
            raise
        except Exception as e:
            raise ExternalCallFailure(f"Call to {target} failed: {e}", target) from e
