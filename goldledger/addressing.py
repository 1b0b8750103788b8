"""
addressing.py - Deterministic Record Addressing

Side-records (holding metadata, provenance ledgers, associated holdings,
unique assets) are located by deriving their identifier from a namespace tag
and an ordered tuple of entity keys. There is no directory and no allocation
step: anyone holding the same keys derives the same address.

Encoding:
    sha256( len(namespace) || namespace || len(key_1) || key_1 || ... )

Every component is length-prefixed (8-byte big-endian), so no concatenation
of different inputs can produce the same byte string. Collisions across
distinct (namespace, keys) pairs are therefore as unlikely as a SHA-256
collision.
"""

from __future__ import annotations
import hashlib
from typing import Union

from .core import (
    HOLDING_METADATA_NAMESPACE, PROVENANCE_NAMESPACE, ASSET_CLASS_NAMESPACE,
    HOLDING_NAMESPACE, UNIQUE_ASSET_NAMESPACE,
)

Key = Union[str, bytes]


def _encode(component: Key) -> bytes:
    if isinstance(component, str):
        raw = component.encode("utf-8")
    elif isinstance(component, (bytes, bytearray)):
        raw = bytes(component)
    else:
        raise TypeError(f"address keys must be str or bytes, got {type(component).__name__}")
    return len(raw).to_bytes(8, "big") + raw


def derive_address(namespace: str, *keys: Key) -> str:
    """
    Derive the stable identifier of a side-record.

    Pure function: identical (namespace, keys) always yield the same address;
    distinct pairs yield distinct addresses with overwhelming probability.
    Key order is significant.

    Args:
        namespace: Record kind tag (e.g., HOLDING_METADATA_NAMESPACE)
        *keys: Entity keys as str or bytes

    Returns:
        64-character lowercase hex digest

    Raises:
        ValueError: If namespace is empty
        TypeError: If a key is neither str nor bytes
    """
    if not isinstance(namespace, str) or not namespace:
        raise ValueError("namespace cannot be empty")
    hasher = hashlib.sha256()
    hasher.update(_encode(namespace))
    hasher.update(len(keys).to_bytes(8, "big"))
    for key in keys:
        hasher.update(_encode(key))
    return hasher.hexdigest()


def holding_metadata_address(asset_class_id: str, holding_id: str) -> str:
    return derive_address(HOLDING_METADATA_NAMESPACE, asset_class_id, holding_id)


def provenance_address(asset_class_id: str) -> str:
    return derive_address(PROVENANCE_NAMESPACE, asset_class_id)


def holding_address(asset_class_id: str, owner: str) -> str:
    """Associated holding of owner for an asset class (one per pair)."""
    return derive_address(HOLDING_NAMESPACE, asset_class_id, owner)


def asset_class_address(authority: str, symbol: str) -> str:
    return derive_address(ASSET_CLASS_NAMESPACE, authority, symbol)


def unique_asset_address(asset_class_id: str, holding_id: str) -> str:
    return derive_address(UNIQUE_ASSET_NAMESPACE, asset_class_id, holding_id)
