"""Creating, minting, burning and modifying user-defined assets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ..auth import get_actor
from ..storage import (
    EMPTY_ID,
    ID_LEN,
    PUBLIC_KEY_LEN,
    UINT64_LEN,
    Database,
    add_balance,
    get_asset,
    prefix_asset_key,
    prefix_balance_key,
    set_asset,
    sub_balance,
)
from .base import (
    MAX_METADATA_SIZE,
    OUTPUT_ASSET_IS_NATIVE,
    OUTPUT_ASSET_MISSING,
    OUTPUT_METADATA_TOO_LARGE,
    OUTPUT_VALUE_ZERO,
    OUTPUT_WARP_ASSET,
    OUTPUT_WRONG_OWNER,
    STATE_ERRORS,
    Result,
    checked_add,
    checked_sub,
    error_bytes,
)


class _AlwaysValid:
    """Actions whose valid range is unbounded (-1 at both ends)."""

    valid_from: ClassVar[int] = -1
    valid_until: ClassVar[int] = -1

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return self.valid_from, self.valid_until


@dataclass
class CreateAsset(_AlwaysValid):
    """Create an asset, identified by the creating transaction, owned by the actor."""

    metadata: bytes

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [prefix_asset_key(tx_id)]

    def execute(
        self,
        rules: Any,
        db: Database,
        timestamp: int,
        auth: Any,
        tx_id: bytes,
        warp_verified: bool,
    ) -> Result:
        actor = get_actor(auth)
        units = self.max_units(rules)
        if len(self.metadata) > MAX_METADATA_SIZE:
            return Result(False, units, OUTPUT_METADATA_TOO_LARGE)
        # Overwriting an existing asset needs a hash collision.
        try:
            set_asset(db, tx_id, self.metadata, 0, actor, False)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return len(self.metadata)

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)


@dataclass
class MintAsset(_AlwaysValid):
    """Mint ``value`` of ``asset`` to ``to``; only the asset owner may mint."""

    to: bytes
    asset: bytes
    value: int

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [
            prefix_asset_key(self.asset),
            prefix_balance_key(self.to, self.asset),
        ]

    def execute(
        self,
        rules: Any,
        db: Database,
        timestamp: int,
        auth: Any,
        tx_id: bytes,
        warp_verified: bool,
    ) -> Result:
        actor = get_actor(auth)
        units = self.max_units(rules)
        if bytes(self.asset) == EMPTY_ID:
            return Result(False, units, OUTPUT_ASSET_IS_NATIVE)
        if self.value == 0:
            return Result(False, units, OUTPUT_VALUE_ZERO)
        try:
            info = get_asset(db, self.asset)
            if info is None:
                return Result(False, units, OUTPUT_ASSET_MISSING)
            if info.warp:
                return Result(False, units, OUTPUT_WARP_ASSET)
            if info.owner != actor:
                return Result(False, units, OUTPUT_WRONG_OWNER)
            new_supply = checked_add(info.supply, self.value)
            set_asset(db, self.asset, info.metadata, new_supply, actor, info.warp)
            add_balance(db, self.to, self.asset, self.value)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return PUBLIC_KEY_LEN + ID_LEN + UINT64_LEN

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)


@dataclass
class BurnAsset(_AlwaysValid):
    """Destroy ``value`` of ``asset`` held by the actor, reducing its supply."""

    asset: bytes
    value: int

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [
            prefix_asset_key(self.asset),
            prefix_balance_key(get_actor(auth), self.asset),
        ]

    def execute(
        self,
        rules: Any,
        db: Database,
        timestamp: int,
        auth: Any,
        tx_id: bytes,
        warp_verified: bool,
    ) -> Result:
        actor = get_actor(auth)
        units = self.max_units(rules)
        if self.value == 0:
            return Result(False, units, OUTPUT_VALUE_ZERO)
        try:
            sub_balance(db, actor, self.asset, self.value)
            info = get_asset(db, self.asset)
            if info is None:
                return Result(False, units, OUTPUT_ASSET_MISSING)
            new_supply = checked_sub(info.supply, self.value)
            set_asset(
                db, self.asset, info.metadata, new_supply, info.owner, info.warp
            )
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return ID_LEN + UINT64_LEN

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)


@dataclass
class ModifyAsset(_AlwaysValid):
    """Replace the owner and metadata of ``asset``; only the owner may do so.

    Setting ``owner`` to the empty public key revokes ownership.
    """

    asset: bytes
    owner: bytes
    metadata: bytes

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [prefix_asset_key(self.asset)]

    def execute(
        self,
        rules: Any,
        db: Database,
        timestamp: int,
        auth: Any,
        tx_id: bytes,
        warp_verified: bool,
    ) -> Result:
        actor = get_actor(auth)
        units = self.max_units(rules)
        if bytes(self.asset) == EMPTY_ID:
            return Result(False, units, OUTPUT_ASSET_IS_NATIVE)
        if len(self.metadata) > MAX_METADATA_SIZE:
            return Result(False, units, OUTPUT_METADATA_TOO_LARGE)
        try:
            info = get_asset(db, self.asset)
            if info is None:
                return Result(False, units, OUTPUT_ASSET_MISSING)
            if info.warp:
                return Result(False, units, OUTPUT_WARP_ASSET)
            if info.owner != actor:
                return Result(False, units, OUTPUT_WRONG_OWNER)
            set_asset(
                db, self.asset, self.metadata, info.supply, self.owner, info.warp
            )
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return ID_LEN + PUBLIC_KEY_LEN + len(self.metadata)

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)