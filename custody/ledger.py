"""
Custody ledger: the set of assets a vault holds for its successor.

Records live in an index-addressed arena (a list plus a key -> index map).
Removal swaps the last record into the freed slot, so record order is not
stable and callers must not rely on it.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from .assets import NATIVE, AssetKind
from .errors import (
    AlreadyRegistered, CustodyError, ExternalCallFailure, InvalidState, NotFound, NotOwned
)
from .keys import require_address
from .rules import ReleasePolicy
from .state import StateSnapshot

logger = logging.getLogger(__name__)

AssetKey = Tuple[str, Optional[int]]


@dataclass
class AssetRecord:
    """One managed unit of external value"""
    contract: str
    item_id: Optional[int]
    kind: AssetKind
    amount: int

    @property
    def key(self) -> AssetKey:
        return (self.contract, self.item_id)

    def to_dict(self) -> dict:
        return {
            'contract': self.contract,
            'item_id': self.item_id,
            'kind': self.kind.value,
            'amount': self.amount
        }


@dataclass
class ReleaseReport:
    """Outcome of releasing a ledger to a recipient"""
    recipient: str
    transferred: List[AssetRecord] = field(default_factory=list)
    failed: List[AssetRecord] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            'recipient': self.recipient,
            'transferred': [r.to_dict() for r in self.transferred],
            'failed': [r.to_dict() for r in self.failed],
            'complete': self.complete
        }


class CustodyLedger(StateSnapshot):
    """Assets held by ``holder``; role checks are the owning vault's job"""

    _snapshot_fields = ('_records', '_index')

    def __init__(self, env, holder: str, policy: ReleasePolicy = ReleasePolicy.ATOMIC):
        self.env = env
        self.holder = holder
        self.policy = policy
        self._records: List[AssetRecord] = []
        self._index: Dict[AssetKey, int] = {}
        self._releasing = False
        env.track(self)

    # -- queries -----------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AssetRecord]:
        return iter(self.records())

    def records(self) -> List[AssetRecord]:
        return [replace(r) for r in self._records]

    def contains(self, contract: str, item_id: Optional[int] = None) -> bool:
        return (contract, item_id) in self._index

    def get(self, contract: str, item_id: Optional[int] = None) -> AssetRecord:
        key = (contract, item_id)
        if key not in self._index:
            raise NotFound(f"Asset {contract}#{item_id} not registered")
        return replace(self._records[self._index[key]])

    def source_for(self, contract: str):
        """The AssetSource that moves records of this contract"""
        if contract == NATIVE:
            return self.env.native
        return self.env.contract_at(contract)

    # -- mutation ----------------------------------------------------------

    def register(self, contract: str, item_id: Optional[int], kind: AssetKind,
                 amount: int = 1) -> AssetRecord:
        """Add a record after checking the holder currently owns it"""
        self._require_idle()
        if contract != NATIVE:
            contract = require_address(contract)
        if kind is AssetKind.NON_FUNGIBLE:
            amount = 1
        if not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Amount must be a positive integer, got {amount!r}")

        key = (contract, item_id)
        if key in self._index:
            raise AlreadyRegistered(f"Asset {contract}#{item_id} already registered")

        held = self.source_for(contract).owner_balance_or_ownership(self.holder, item_id)
        owned = held if isinstance(held, bool) else held >= amount
        if not owned:
            raise NotOwned(f"{self.holder} does not hold {amount} of {contract}#{item_id}")

        record = AssetRecord(contract=contract, item_id=item_id, kind=kind, amount=amount)
        self._insert(record)
        self.env.emit("AssetRegistered", self.holder, **record.to_dict())
        return replace(record)

    def set_amount(self, contract: str, item_id: Optional[int], amount: int) -> None:
        """Adjust a fungible balance record; a zero amount drops it"""
        self._require_idle()
        key = (contract, item_id)
        if key not in self._index:
            raise NotFound(f"Asset {contract}#{item_id} not registered")
        if amount <= 0:
            self._pop(key)
        else:
            self._records[self._index[key]].amount = amount

    def remove(self, contract: str, item_id: Optional[int] = None) -> AssetRecord:
        """Delete one record (swap-and-pop)"""
        self._require_idle()
        key = (contract, item_id)
        if key not in self._index:
            raise NotFound(f"Asset {contract}#{item_id} not registered")
        record = self._pop(key)
        self.env.emit("AssetRemoved", self.holder, contract=contract, item_id=item_id)
        return record

    def withdraw(self, contract: str, item_id: Optional[int], recipient: str) -> AssetRecord:
        """Remove one record and transfer it to recipient, atomically"""
        recipient = require_address(recipient)
        with self.env.atomic():
            record = self.remove(contract, item_id)
            self._transfer(record, recipient)
        return record

    def release(self, recipient: str, policy: Optional[ReleasePolicy] = None) -> ReleaseReport:
        """
        Transfer every record to recipient and clear the ledger.

        The gate (switch or quorum) must be checked by the caller first. The
        ledger is emptied and locked before any transfer runs, so a transfer
        that calls back into the vault cannot start a second release.
        """
        self._require_idle()
        recipient = require_address(recipient)
        policy = policy or self.policy
        records = list(self._records)
        report = ReleaseReport(recipient=recipient)

        self._releasing = True
        try:
            if policy is ReleasePolicy.ATOMIC:
                with self.env.atomic():
                    self._records, self._index = [], {}
                    for record in records:
                        self._transfer(record, recipient)
                        report.transferred.append(record)
            else:
                self._records, self._index = [], {}
                for record in records:
                    try:
                        with self.env.atomic():
                            self._transfer(record, recipient)
                    except ExternalCallFailure as e:
                        self._insert(record)
                        report.failed.append(record)
                        self.env.emit("AssetTransferFailed", self.holder,
                                      reason=e.message, **record.to_dict())
                        logger.warning("transfer of %s#%s to %s failed: %s",
                                       record.contract, record.item_id, recipient, e)
                    else:
                        report.transferred.append(record)
        finally:
            self._releasing = False

        logger.info("released %d assets to %s (%d failed)",
                    len(report.transferred), recipient, len(report.failed))
        return report

    # -- internals ---------------------------------------------------------

    def _transfer(self, record: AssetRecord, recipient: str) -> None:
        source = self.source_for(record.contract)
        try:
            ok = source.transfer(self.holder, recipient, record.item_id, record.amount)
        except CustodyError as e:
            raise ExternalCallFailure(
                f"Transfer of {record.contract}#{record.item_id} reverted: {e.message}",
                record.contract
            ) from e
        except Exception as e:
            raise ExternalCallFailure(
                f"Transfer of {record.contract}#{record.item_id} raised {e!r}", record.contract
            ) from e
        if not ok:
            raise ExternalCallFailure(
                f"Transfer of {record.contract}#{record.item_id} returned failure", record.contract
            )
        self.env.emit("AssetTransferred", self.holder, recipient=recipient, **record.to_dict())

    def _insert(self, record: AssetRecord) -> None:
        self._index[record.key] = len(self._records)
        self._records.append(record)

    def _pop(self, key: AssetKey) -> AssetRecord:
        idx = self._index.pop(key)
        record = self._records[idx]
        last = self._records.pop()
        if last is not record:
            self._records[idx] = last
            self._index[last.key] = idx
        return record

    def _require_idle(self) -> None:
        if self._releasing:
            raise InvalidState("Release in progress")
