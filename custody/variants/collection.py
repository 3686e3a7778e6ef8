from typing import List

from ..assets import AssetKind
from ..errors import InvalidState
from ..ledger import AssetRecord, ReleaseReport
from .base import BaseVault


class CollectionVault(BaseVault):
    """ERC-721 / ERC-1155 tokens held for a single heir"""

    kind = "collection"

    def register_token(self, caller: str, token: str, token_id: int, amount: int = 1) -> AssetRecord:
        kind = self.env.contract_at(token).kind
        if kind not in (AssetKind.NON_FUNGIBLE, AssetKind.SEMI_FUNGIBLE):
            raise InvalidState(f"{token} is not a token collection")
        return self.register_asset(caller, token, token_id, amount)

    def remove_token(self, caller: str, token: str, token_id: int) -> AssetRecord:
        return self.remove_asset(caller, token, token_id)

    def tokens(self) -> List[AssetRecord]:
        return [
            r for r in self.ledger.records()
            if r.kind in (AssetKind.NON_FUNGIBLE, AssetKind.SEMI_FUNGIBLE)
        ]

    def claim(self, caller: str) -> ReleaseReport:
        self._require_active()
        self._require_heir(caller)
        self.switch.require_release_permitted()
        return self._release()
