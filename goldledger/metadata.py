"""
metadata.py - Descriptive Metadata Publication

Every asset class carries descriptive metadata: name, symbol, URI, and the
gold attributes (origin, purity, ethical certification). It is published
once, when the asset class is initialized. Afterwards the asset class
authority may update it, as long as the metadata was published mutable.
Mutability can be given up but never regained.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .core import InvalidAuthority, AssetClassNotRegistered, require_identifier


@dataclass(frozen=True, slots=True)
class Creator:
    """A credited creator of an asset class; shares of all creators sum to 100."""
    address: str
    verified: bool = True
    share: int = 100


@dataclass(frozen=True, slots=True)
class AssetMetadata:
    """
    Descriptive metadata of an asset class.

    Attributes:
        name: Display name (e.g., "Swiss Refined Gold")
        symbol: Ticker (e.g., "GOLD")
        uri: Location of the off-ledger metadata document
        origin: Mine or refinery of origin
        purity: Gold fraction, 0 < purity <= 1 (e.g., Decimal("0.9999"))
        ethical_certification: Sourcing certification (e.g., "LBMA Responsible Gold")
        creators: Credited creators
        seller_fee_basis_points: Royalty on secondary sales (always 0 for gold)
        is_mutable: Whether the authority may update this metadata
    """
    name: str
    symbol: str
    uri: str
    origin: str
    purity: Decimal
    ethical_certification: str
    creators: Tuple[Creator, ...] = field(default_factory=tuple)
    seller_fee_basis_points: int = 0
    is_mutable: bool = True

    def __post_init__(self):
        require_identifier(self.name, "name")
        require_identifier(self.symbol, "symbol")
        require_identifier(self.uri, "uri")
        require_identifier(self.origin, "origin")
        require_identifier(self.ethical_certification, "ethical_certification")
        if not isinstance(self.purity, Decimal):
            object.__setattr__(self, 'purity', Decimal(str(self.purity)))
        if not self.purity.is_finite() or not Decimal("0") < self.purity <= Decimal("1"):
            raise ValueError(f"purity must be in (0, 1], got {self.purity}")
        if self.creators and sum(c.share for c in self.creators) != 100:
            raise ValueError("creator shares must sum to 100")
        if not 0 <= self.seller_fee_basis_points <= 10_000:
            raise ValueError(f"seller_fee_basis_points out of range: {self.seller_fee_basis_points}")

    def attributes(self) -> Dict[str, str]:
        """Gold attributes as published key/value pairs."""
        return {
            'origin': self.origin,
            'purity': str(self.purity),
            'ethical_certification': self.ethical_certification,
        }


# Fields the authority may change after publication. The symbol is fixed: it
# derives the asset class id and is frozen on AssetClass.
UPDATABLE_FIELDS = frozenset({
    'name', 'uri', 'origin', 'purity', 'ethical_certification', 'is_mutable',
})


class MetadataRegistry:
    """Published metadata of every asset class."""

    def __init__(self):
        self._published: Dict[str, AssetMetadata] = {}

    def publish(self, asset_class_id: str, metadata: AssetMetadata) -> None:
        """
        Publish metadata for an asset class. Called once per asset class.

        Raises:
            ValueError: If metadata was already published for asset_class_id
        """
        require_identifier(asset_class_id, "asset_class_id")
        if asset_class_id in self._published:
            raise ValueError(f"Metadata for {asset_class_id} already published")
        self._published[asset_class_id] = metadata

    def get(self, asset_class_id: str) -> Optional[AssetMetadata]:
        return self._published.get(asset_class_id)

    def update(self, asset_class_id: str, **changes) -> AssetMetadata:
        """
        Replace fields of published metadata.

        Raises:
            AssetClassNotRegistered: Nothing published for asset_class_id
            InvalidAuthority: The metadata is immutable, or is_mutable would be re-enabled
            ValueError: Unknown or invalid fields
        """
        current = self._published.get(asset_class_id)
        if current is None:
            raise AssetClassNotRegistered(f"No metadata published for {asset_class_id}")
        if not current.is_mutable:
            raise InvalidAuthority(f"Metadata for {asset_class_id} is immutable")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update metadata fields {sorted(unknown)}")
        updated = replace(current, **changes)
        self._published[asset_class_id] = updated
        return updated
