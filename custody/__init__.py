"""
Custody vaults - dead-man's-switch and N-of-M quorum custody transfer
"""

from .assets import NATIVE, AssetKind, FungibleToken, MultiToken, NativeBalanceBook, NonFungibleToken
from .environment import Environment, ManualClock, SystemClock
from .errors import (
    AlreadyRegistered, CustodyError, ExternalCallFailure, InvalidAddress, InvalidQuorum,
    InvalidState, NotFound, NotOwned, Unauthorized
)
from .keys import NULL_ADDRESS, PrincipalKey
from .ledger import AssetRecord, CustodyLedger, ReleaseReport
from .quorum import Proposal, ProposalState, QuorumEngine, encode_call
from .rules import DAY, CustodyRules, ReleasePolicy
from .switch import DeadMansSwitch
from .variants import CollectionVault, GuardianWallet, InheritanceVault, MultiSigWallet

__version__ = "0.1.0"
__all__ = [
    "Environment",
    "ManualClock",
    "SystemClock",
    "DeadMansSwitch",
    "QuorumEngine",
    "Proposal",
    "ProposalState",
    "encode_call",
    "CustodyLedger",
    "AssetRecord",
    "ReleaseReport",
    "AssetKind",
    "NATIVE",
    "NativeBalanceBook",
    "FungibleToken",
    "NonFungibleToken",
    "MultiToken",
    "CustodyRules",
    "ReleasePolicy",
    "DAY",
    "PrincipalKey",
    "NULL_ADDRESS",
    "InheritanceVault",
    "CollectionVault",
    "GuardianWallet",
    "MultiSigWallet",
    "CustodyError",
    "Unauthorized",
    "InvalidState",
    "NotFound",
    "InvalidQuorum",
    "AlreadyRegistered",
    "NotOwned",
    "InvalidAddress",
    "ExternalCallFailure"
]
