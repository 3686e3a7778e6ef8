"""
Vault variants built on the dead-man's-switch and quorum authorities
"""

from .base import BaseVault
from .inheritance import InheritanceVault
from .collection import CollectionVault
from .guardian import GuardianWallet
from .multisig import MultiSigWallet

__all__ = [
    "BaseVault",
    "InheritanceVault",
    "CollectionVault",
    "GuardianWallet",
    "MultiSigWallet"
]
