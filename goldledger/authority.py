"""
authority.py - Authority Verification

Answers one question for the orchestrator: may this actor act on this
holding or asset class? Signature checking is the host's job; by the time
an actor id reaches here it is assumed authenticated.
"""

from __future__ import annotations
from typing import Protocol, Union, runtime_checkable

from .core import AssetClass
from .ledger import BalanceLedger, Holding

Target = Union[Holding, AssetClass, str]


@runtime_checkable
class AuthorityVerifier(Protocol):
    """Protocol for authority checks consumed by the orchestrator."""

    def is_authorized(self, actor: str, target: Target) -> bool:
        ...


class OwnershipAuthority:
    """
    Authority derived from the balance ledger's records.

    - A holding is controlled by its owner.
    - An asset class is controlled by its recorded authority.

    String targets are resolved as a holding id first, then as an asset
    class id. Unknown targets are never authorized.
    """

    def __init__(self, ledger: BalanceLedger):
        self.ledger = ledger

    def is_authorized(self, actor: str, target: Target) -> bool:
        if not actor:
            return False
        if isinstance(target, str):
            if target in self.ledger.holdings:
                target = self.ledger.holdings[target]
            elif target in self.ledger.asset_classes:
                target = self.ledger.asset_classes[target]
            else:
                return False
        if isinstance(target, Holding):
            return target.owner == actor
        if isinstance(target, AssetClass):
            return target.authority == actor
        return False
