"""Sending an asset to another chain, either as a loan or as a return."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ..auth import get_actor
from ..storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    ID_LEN,
    PUBLIC_KEY_LEN,
    UINT64_LEN,
    Database,
    add_loan,
    delete_asset,
    get_asset,
    prefix_asset_key,
    prefix_balance_key,
    prefix_loan_key,
    set_asset,
    sub_balance,
)
from .base import (
    OUTPUT_ANYCAST,
    OUTPUT_ASSET_MISSING,
    OUTPUT_NOT_WARP_ASSET,
    OUTPUT_VALUE_ZERO,
    OUTPUT_WARP_ASSET,
    OUTPUT_WRONG_DESTINATION,
    STATE_ERRORS,
    InvalidObjectError,
    Result,
    checked_sub,
    error_bytes,
)
from .warp import UnsignedWarpMessage, WarpTransfer, valid_swap_params


def _metadata_id(chunk: bytes) -> bytes:
    chunk = bytes(chunk)
    if len(chunk) != ID_LEN:
        raise ValueError(f"expected {ID_LEN} bytes for an id, got {len(chunk)}")
    return chunk


@dataclass
class ExportAsset:
    """Export ``value`` of ``asset`` to ``to`` on chain ``destination``.

    With ``is_return`` set, an asset that was imported is sent back to the
    chain it came from and burned here; otherwise a native asset of this chain
    is locked up as a loan to ``destination``.
    """

    to: bytes
    asset: bytes
    value: int
    is_return: bool
    destination: bytes
    reward: int = 0
    swap_in: int = 0
    asset_out: bytes = EMPTY_ID
    swap_out: int = 0
    swap_expiry: int = 0

    # -1 at both ends means the action is always valid.
    valid_from: ClassVar[int] = -1
    valid_until: ClassVar[int] = -1

    def validate(self) -> None:
        """Raise InvalidObjectError if the action could not have been decoded."""
        if self.value == 0:
            raise InvalidObjectError("value is required")
        if bytes(self.destination) == EMPTY_ID:
            raise InvalidObjectError("destination is required")
        if not valid_swap_params(
            self.value, self.swap_in, self.asset_out, self.swap_out, self.swap_expiry
        ):
            raise InvalidObjectError("invalid swap parameters")

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        actor = get_actor(auth)
        if self.is_return:
            return [
                prefix_asset_key(self.asset),
                prefix_balance_key(actor, self.asset),
            ]
        return [
            prefix_asset_key(self.asset),
            prefix_loan_key(self.asset, self.destination),
            prefix_balance_key(actor, self.asset),
        ]

    def _message(self, asset: bytes, tx_id: bytes) -> UnsignedWarpMessage:
        transfer = WarpTransfer(
            to=self.to,
            asset=asset,
            value=self.value,
            is_return=self.is_return,
            reward=self.reward,
            swap_in=self.swap_in,
            asset_out=self.asset_out,
            swap_out=self.swap_out,
            swap_expiry=self.swap_expiry,
            tx_id=tx_id,
        )
        # The source chain is filled in when the message is sent.
        return UnsignedWarpMessage(
            destination_chain_id=bytes(self.destination),
            payload=transfer.to_bytes(),
        )

    def _execute_return(
        self, units: int, db: Database, actor: bytes, tx_id: bytes
    ) -> Result:
        try:
            info = get_asset(db, self.asset)
            if info is None:
                return Result(False, units, OUTPUT_ASSET_MISSING)
            if not info.warp:
                return Result(False, units, OUTPUT_NOT_WARP_ASSET)
            allowed_destination = _metadata_id(info.metadata[ID_LEN:])
            if allowed_destination != bytes(self.destination):
                return Result(False, units, OUTPUT_WRONG_DESTINATION)
            new_supply = checked_sub(info.supply, self.value)
            new_supply = checked_sub(new_supply, self.reward)
            if new_supply > 0:
                set_asset(
                    db, self.asset, info.metadata, new_supply, EMPTY_PUBLIC_KEY, True
                )
            else:
                delete_asset(db, self.asset)
            sub_balance(db, actor, self.asset, self.value)
            if self.reward > 0:
                sub_balance(db, actor, self.asset, self.reward)
            original_asset = _metadata_id(info.metadata[:ID_LEN])
            message = self._message(original_asset, tx_id)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units, warp_message=message)

    def _execute_loan(
        self, units: int, db: Database, actor: bytes, tx_id: bytes
    ) -> Result:
        try:
            info = get_asset(db, self.asset)
            if info is None:
                return Result(False, units, OUTPUT_ASSET_MISSING)
            if info.warp:
                # An imported asset can only leave by being returned.
                return Result(False, units, OUTPUT_WARP_ASSET)
            add_loan(db, self.asset, self.destination, self.value)
            sub_balance(db, actor, self.asset, self.value)
            if self.reward > 0:
                add_loan(db, self.asset, self.destination, self.reward)
                sub_balance(db, actor, self.asset, self.reward)
            message = self._message(self.asset, tx_id)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units, warp_message=message)

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
        if bytes(self.destination) == EMPTY_ID:
            # Every importer could credit the same export.
            return Result(False, units, OUTPUT_ANYCAST)
        if self.is_return:
            return self._execute_return(units, db, actor, tx_id)
        return self._execute_loan(units, db, actor, tx_id)

    def max_units(self, rules: Any) -> int:
        return (
            PUBLIC_KEY_LEN
            + ID_LEN
            + UINT64_LEN
            + 1
            + UINT64_LEN
            + UINT64_LEN
            + ID_LEN
            + UINT64_LEN
            + UINT64_LEN
            + ID_LEN
        )

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return self.valid_from, self.valid_until