"""
External asset interfaces and in-memory reference tokens.

The custody core only decides *whether* something may be transferred and
*what*. Moving it is delegated to an :class:`AssetSource`. The token classes
below implement that interface with plain dictionaries so vaults can be
exercised without a chain; each one exposes ``snapshot``/``restore`` so an
aborted operation rolls them back with the rest of the environment.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple, Union

from .state import StateSnapshot

NATIVE = "native"  # contract reference used for native value records


class AssetKind(Enum):
    NATIVE = "native"
    FUNGIBLE = "fungible"            # ERC-20 style
    NON_FUNGIBLE = "non_fungible"    # ERC-721 style
    SEMI_FUNGIBLE = "semi_fungible"  # ERC-1155 style

    @property
    def has_amount(self) -> bool:
        """Whether the record amount is meaningful"""
        return self is not AssetKind.NON_FUNGIBLE


class AssetSource(Protocol):
    """Capability every managed asset kind must provide"""

    def owner_balance_or_ownership(self, owner: str, item_id) -> Union[int, bool]:
        ...

    def transfer(self, sender: str, recipient: str, item_id, amount: int) -> bool:
        ...


# Called after balances move; may re-enter the vault or raise to fail the transfer
TransferHook = Callable[..., None]


class NativeBalanceBook(StateSnapshot):
    """Native value balances per address"""

    _snapshot_fields = ('_balances',)

    def __init__(self):
        self._balances: Dict[str, int] = {}

    def mint(self, address: str, amount: int) -> None:
        """Credit new value to address (faucet for simulations)"""
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self._balances[address] = self.balance_of(address) + amount

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def owner_balance_or_ownership(self, owner: str, item_id=None) -> int:
        return self.balance_of(owner)

    def transfer(self, sender: str, recipient: str, item_id, amount: int) -> bool:
        if amount <= 0:
            return False
        balance = self.balance_of(sender)
        if balance < amount:
            return False
        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        return True


class _Token(StateSnapshot):
    """Shared plumbing for the in-memory token contracts"""

    def __init__(self, name: str, symbol: str):
        self.name = name
        self.symbol = symbol
        self.address: Optional[str] = None
        self.on_transfer: Optional[TransferHook] = None
        self._transfer_history: List[Tuple[str, str, object, int]] = []

    def _after_transfer(self, sender: str, recipient: str, item_id, amount: int) -> None:
        self._transfer_history.append((sender, recipient, item_id, amount))
        if self.on_transfer is not None:
            self.on_transfer(self, sender, recipient, item_id, amount)

    def get_transfer_history(self) -> List[Tuple[str, str, object, int]]:
        return list(self._transfer_history)


class FungibleToken(_Token):
    """ERC-20 style token; item_id is ignored"""

    kind = AssetKind.FUNGIBLE
    _snapshot_fields = ('_balances', '_transfer_history')

    def __init__(self, name: str, symbol: str, decimals: int = 18):
        super().__init__(name, symbol)
        self.decimals = decimals
        self._balances: Dict[str, int] = {}

    def mint(self, to: str, amount: int) -> None:
        self._balances[to] = self.balance_of(to) + amount

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def owner_balance_or_ownership(self, owner: str, item_id=None) -> int:
        return self.balance_of(owner)

    def transfer(self, sender: str, recipient: str, item_id, amount: int) -> bool:
        if amount <= 0 or self.balance_of(sender) < amount:
            return False
        self._balances[sender] -= amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._after_transfer(sender, recipient, item_id, amount)
        return True


class NonFungibleToken(_Token):
    """ERC-721 style collection"""

    kind = AssetKind.NON_FUNGIBLE
    _snapshot_fields = ('_owners', '_transfer_history')

    def __init__(self, name: str, symbol: str):
        super().__init__(name, symbol)
        self._owners: Dict[int, str] = {}

    def mint(self, to: str, token_id: int) -> None:
        if token_id in self._owners:
            raise ValueError(f"Token {token_id} already minted")
        self._owners[token_id] = to

    def owner_of(self, token_id: int) -> Optional[str]:
        return self._owners.get(token_id)

    def owner_balance_or_ownership(self, owner: str, item_id) -> bool:
        return self._owners.get(item_id) == owner

    def transfer(self, sender: str, recipient: str, item_id, amount: int = 1) -> bool:
        if amount != 1 or self._owners.get(item_id) != sender:
            return False
        self._owners[item_id] = recipient
        self._after_transfer(sender, recipient, item_id, 1)
        return True


class MultiToken(_Token):
    """ERC-1155 style token; balances per (owner, id)"""

    kind = AssetKind.SEMI_FUNGIBLE
    _snapshot_fields = ('_balances', '_transfer_history')

    def __init__(self, name: str, symbol: str):
        super().__init__(name, symbol)
        self._balances: Dict[Tuple[str, int], int] = {}

    def mint(self, to: str, token_id: int, amount: int) -> None:
        key = (to, token_id)
        self._balances[key] = self._balances.get(key, 0) + amount

    def balance_of(self, owner: str, token_id: int) -> int:
        return self._balances.get((owner, token_id), 0)

    def owner_balance_or_ownership(self, owner: str, item_id) -> int:
        return self.balance_of(owner, item_id)

    def transfer(self, sender: str, recipient: str, item_id, amount: int) -> bool:
        if amount <= 0 or self.balance_of(sender, item_id) < amount:
            return False
        self._balances[(sender, item_id)] -= amount
        self._balances[(recipient, item_id)] = self.balance_of(recipient, item_id) + amount
        self._after_transfer(sender, recipient, item_id, amount)
        return True
