"""
unique_assets.py - Unique (Non-Fungible) Asset Issuance

A transformed holding becomes exactly one unique asset: a single,
indivisible record of a specific quantity of gold with its attributes and
custody history fixed at the time of transformation.

The unique asset id is derived by Record Addressing from
(asset_class_id, holding_id). Since a holding can be transformed only once,
the id is stable and a second mint for the same holding is refused.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from .addressing import unique_asset_address
from .core import AssetClass, require_amount
from .ledger import Holding


@dataclass(frozen=True, slots=True)
class UniqueAsset:
    """
    A minted unique asset.

    Attributes:
        unique_asset_id: Derived id
        asset_class_id: Asset class it was transformed from
        holding_id: Holding it was transformed from
        owner: Owner of the holding at transformation
        amount: Smallest units extinguished from the fungible holding
        grams: amount expressed in grams
        attributes: Gold attributes plus transformation details, as sorted pairs
        minted_at: Time of transformation
    """
    unique_asset_id: str
    asset_class_id: str
    holding_id: str
    owner: str
    amount: int
    grams: Decimal
    minted_at: datetime
    attributes: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def attributes_dict(self) -> Dict[str, str]:
        return dict(self.attributes)

    def __repr__(self) -> str:
        return f"UniqueAsset({self.unique_asset_id[:12]}: {self.grams}g, owner={self.owner})"


class UniqueAssetRegistry:
    """Registry of minted unique assets."""

    def __init__(self):
        self._assets: Dict[str, UniqueAsset] = {}

    def mint_unique(
        self,
        asset_class: AssetClass,
        holding: Holding,
        amount: int,
        attributes: Mapping[str, str],
        minted_at: datetime,
    ) -> UniqueAsset:
        """
        Mint the unique asset for a transformed holding.

        Raises:
            ValueError: If the holding was already minted, or amount is not positive
        """
        require_amount(amount)
        if holding.asset_class_id != asset_class.asset_class_id:
            raise ValueError(f"Holding {holding.holding_id} does not belong to {asset_class.asset_class_id}")
        unique_asset_id = unique_asset_address(asset_class.asset_class_id, holding.holding_id)
        if unique_asset_id in self._assets:
            raise ValueError(f"Unique asset for holding {holding.holding_id} already minted")
        asset = UniqueAsset(
            unique_asset_id=unique_asset_id,
            asset_class_id=asset_class.asset_class_id,
            holding_id=holding.holding_id,
            owner=holding.owner,
            amount=amount,
            grams=asset_class.to_grams(amount),
            minted_at=minted_at,
            attributes=tuple(sorted((str(k), str(v)) for k, v in attributes.items())),
        )
        self._assets[unique_asset_id] = asset
        return asset

    def get(self, unique_asset_id: str) -> Optional[UniqueAsset]:
        return self._assets.get(unique_asset_id)

    def owned_by(self, owner: str) -> List[UniqueAsset]:
        return sorted(
            (a for a in self._assets.values() if a.owner == owner),
            key=lambda a: (a.minted_at, a.unique_asset_id),
        )

    def __len__(self) -> int:
        return len(self._assets)
