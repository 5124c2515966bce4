"""Cross-chain transfer payloads and the action that imports them."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any, Optional

from ..auth import get_actor
from ..storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    ID_LEN,
    MAX_UINT64,
    PUBLIC_KEY_LEN,
    UINT64_LEN,
    Database,
    add_balance,
    get_asset,
    prefix_asset_key,
    prefix_balance_key,
    prefix_loan_key,
    set_asset,
    sub_balance,
    sub_loan,
)
from .base import (
    OUTPUT_CONFLICTING_ASSET,
    OUTPUT_MUST_FILL,
    OUTPUT_VALUE_ZERO,
    OUTPUT_WARP_VERIFICATION_FAILED,
    STATE_ERRORS,
    InvalidObjectError,
    NoSwapToFillError,
    Result,
    checked_add,
    error_bytes,
)

_U64 = struct.Struct(">Q")
_I64 = struct.Struct(">q")

_FLAG_REWARD = 0x01
_FLAG_SWAP_IN = 0x02
_FLAG_ASSET_OUT = 0x04
_FLAG_SWAP_OUT = 0x08
_FLAG_SWAP_EXPIRY = 0x10
_ALL_FLAGS = (
    _FLAG_REWARD | _FLAG_SWAP_IN | _FLAG_ASSET_OUT | _FLAG_SWAP_OUT | _FLAG_SWAP_EXPIRY
)

# to | asset | value | return | flags | [reward] [swapIn] [assetOut] [swapOut]
# [swapExpiry] | txID
WARP_TRANSFER_MAX_SIZE = (
    PUBLIC_KEY_LEN
    + ID_LEN
    + UINT64_LEN
    + 1
    + 1
    + UINT64_LEN * 2
    + ID_LEN
    + UINT64_LEN * 2
    + ID_LEN
)


def _fixed(value: bytes, length: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return value


def _pack_u64(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{value} does not fit in an unsigned 64-bit integer")
    return _U64.pack(value)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    def take(self, length: int) -> bytes:
        end = self._offset + length
        if end > len(self._data):
            raise InvalidObjectError("unexpected end of data")
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk

    def u64(self) -> int:
        return _U64.unpack(self.take(UINT64_LEN))[0]

    def i64(self) -> int:
        return _I64.unpack(self.take(UINT64_LEN))[0]

    def byte(self) -> int:
        return self.take(1)[0]

    @property
    def empty(self) -> bool:
        return self._offset == len(self._data)


def valid_swap_params(
    value: int, swap_in: int, asset_out: bytes, swap_out: int, swap_expiry: int
) -> bool:
    """Check that swap fields are either a coherent swap request or all unset."""
    if swap_expiry < 0:
        return False
    if swap_in > value:
        return False
    if swap_in > 0:
        return swap_out != 0
    if bytes(asset_out) != EMPTY_ID:
        return False
    if swap_out != 0:
        return False
    if swap_expiry != 0:
        return False
    return True


@dataclass
class WarpTransfer:
    """Payload of a cross-chain transfer.

    ``is_return`` is set when funds go back to the chain that created them.
    ``reward`` of ``asset`` goes to whoever submits the import. ``swap_in`` of
    ``asset`` may be swapped for ``swap_out`` of ``asset_out`` until the unix
    time ``swap_expiry``. ``tx_id`` is the exporting transaction, which keeps
    messages unique.
    """

    to: bytes
    asset: bytes
    value: int
    is_return: bool = False
    reward: int = 0
    swap_in: int = 0
    asset_out: bytes = EMPTY_ID
    swap_out: int = 0
    swap_expiry: int = 0
    tx_id: bytes = EMPTY_ID

    def to_bytes(self) -> bytes:
        parts = [
            _fixed(self.to, PUBLIC_KEY_LEN, "to"),
            _fixed(self.asset, ID_LEN, "asset"),
            _pack_u64(self.value),
            b"\x01" if self.is_return else b"\x00",
        ]
        flags = 0
        optional = []
        if self.reward:
            flags |= _FLAG_REWARD
            optional.append(_pack_u64(self.reward))
        if self.swap_in:
            flags |= _FLAG_SWAP_IN
            optional.append(_pack_u64(self.swap_in))
        if bytes(self.asset_out) != EMPTY_ID:
            flags |= _FLAG_ASSET_OUT
            optional.append(_fixed(self.asset_out, ID_LEN, "asset out"))
        if self.swap_out:
            flags |= _FLAG_SWAP_OUT
            optional.append(_pack_u64(self.swap_out))
        if self.swap_expiry:
            flags |= _FLAG_SWAP_EXPIRY
            try:
                optional.append(_I64.pack(self.swap_expiry))
            except struct.error as exc:
                raise ValueError("swap expiry does not fit in 64 bits") from exc
        parts.append(bytes([flags]))
        parts.extend(optional)
        parts.append(_fixed(self.tx_id, ID_LEN, "tx id"))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "WarpTransfer":
        data = bytes(data)
        if len(data) > WARP_TRANSFER_MAX_SIZE:
            raise InvalidObjectError("warp transfer is too large")
        reader = _Reader(data)
        to = reader.take(PUBLIC_KEY_LEN)
        asset = reader.take(ID_LEN)
        value = reader.u64()
        if value == 0:
            raise InvalidObjectError("value is required")
        flag = reader.byte()
        if flag not in (0, 1):
            raise InvalidObjectError("invalid bool")
        flags = reader.byte()
        if flags & ~_ALL_FLAGS:
            raise InvalidObjectError("unknown optional fields")
        reward = reader.u64() if flags & _FLAG_REWARD else 0
        swap_in = reader.u64() if flags & _FLAG_SWAP_IN else 0
        asset_out = reader.take(ID_LEN) if flags & _FLAG_ASSET_OUT else EMPTY_ID
        swap_out = reader.u64() if flags & _FLAG_SWAP_OUT else 0
        swap_expiry = reader.i64() if flags & _FLAG_SWAP_EXPIRY else 0
        tx_id = reader.take(ID_LEN)
        if tx_id == EMPTY_ID:
            raise InvalidObjectError("tx id is required")
        if not reader.empty:
            raise InvalidObjectError("trailing bytes")
        if not valid_swap_params(value, swap_in, asset_out, swap_out, swap_expiry):
            raise InvalidObjectError("invalid swap parameters")
        return cls(
            to=to,
            asset=asset,
            value=value,
            is_return=flag == 1,
            reward=reward,
            swap_in=swap_in,
            asset_out=asset_out,
            swap_out=swap_out,
            swap_expiry=swap_expiry,
            tx_id=tx_id,
        )


@dataclass
class UnsignedWarpMessage:
    """Outgoing message; the source chain is filled in when it is sent."""

    destination_chain_id: bytes
    payload: bytes
    source_chain_id: bytes = EMPTY_ID


@dataclass
class WarpMessage:
    """Incoming message as delivered with a transaction."""

    source_chain_id: bytes
    payload: bytes
    destination_chain_id: bytes = EMPTY_ID
    signature: bytes = b""


def imported_asset_metadata(asset_id: bytes, source_chain_id: bytes) -> bytes:
    """Metadata of an imported asset: the original asset ID and its source chain."""
    return _fixed(asset_id, ID_LEN, "asset id") + _fixed(
        source_chain_id, ID_LEN, "source chain id"
    )


def imported_asset_id(asset_id: bytes, source_chain_id: bytes) -> bytes:
    """ID under which an asset from another chain lives on this chain."""
    return hashlib.sha256(imported_asset_metadata(asset_id, source_chain_id)).digest()


@dataclass
class ImportAsset:
    """Credit a verified cross-chain transfer, optionally filling its swap.

    ``fill`` must be set while the block time is before the swap expiry.
    """

    fill: bool
    warp_transfer: WarpTransfer = field(repr=False)
    warp_message: WarpMessage = field(repr=False)

    def _asset_on_chain(self) -> bytes:
        if self.warp_transfer.is_return:
            return bytes(self.warp_transfer.asset)
        return imported_asset_id(
            self.warp_transfer.asset, self.warp_message.source_chain_id
        )

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        wt = self.warp_transfer
        actor = get_actor(auth)
        asset_id = self._asset_on_chain()
        if wt.is_return:
            keys = [
                prefix_loan_key(wt.asset, self.warp_message.source_chain_id),
                prefix_balance_key(wt.to, wt.asset),
            ]
        else:
            keys = [
                prefix_asset_key(asset_id),
                prefix_balance_key(wt.to, asset_id),
            ]
        if wt.reward > 0:
            keys.append(prefix_balance_key(actor, asset_id))
        if self.fill and wt.swap_in > 0:
            keys.append(prefix_balance_key(actor, wt.asset_out))
            keys.append(prefix_balance_key(actor, asset_id))
            keys.append(prefix_balance_key(wt.to, wt.asset_out))
        return keys

    def _execute_mint(self, db: Database, actor: bytes) -> Optional[bytes]:
        wt = self.warp_transfer
        source = self.warp_message.source_chain_id
        asset = imported_asset_id(wt.asset, source)
        try:
            info = get_asset(db, asset)
            if info is not None and not info.warp:
                return OUTPUT_CONFLICTING_ASSET
            if info is None:
                metadata = imported_asset_metadata(wt.asset, source)
                supply = 0
            else:
                metadata = info.metadata
                supply = info.supply
            new_supply = checked_add(checked_add(supply, wt.value), wt.reward)
            set_asset(db, asset, metadata, new_supply, EMPTY_PUBLIC_KEY, True)
            add_balance(db, wt.to, asset, wt.value)
            if wt.reward > 0:
                add_balance(db, actor, asset, wt.reward)
        except STATE_ERRORS as exc:
            return error_bytes(exc)
        return None

    def _execute_return(self, db: Database, actor: bytes) -> Optional[bytes]:
        wt = self.warp_transfer
        source = self.warp_message.source_chain_id
        try:
            sub_loan(db, wt.asset, source, wt.value)
            add_balance(db, wt.to, wt.asset, wt.value)
            if wt.reward > 0:
                sub_loan(db, wt.asset, source, wt.reward)
                add_balance(db, actor, wt.asset, wt.reward)
        except STATE_ERRORS as exc:
            return error_bytes(exc)
        return None

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
        wt = self.warp_transfer
        if not warp_verified:
            return Result(False, units, OUTPUT_WARP_VERIFICATION_FAILED)
        if wt.value == 0:
            return Result(False, units, OUTPUT_VALUE_ZERO)
        if wt.is_return:
            output = self._execute_return(db, actor)
        else:
            output = self._execute_mint(db, actor)
        if output:
            return Result(False, units, output)
        if wt.swap_in == 0:
            # parse_import_asset guarantees fill is unset here.
            return Result(True, units)
        if not self.fill:
            if wt.swap_expiry > timestamp:
                return Result(False, units, OUTPUT_MUST_FILL)
            return Result(True, units)
        asset_in = self._asset_on_chain()
        try:
            sub_balance(db, wt.to, asset_in, wt.swap_in)
            add_balance(db, actor, asset_in, wt.swap_in)
            sub_balance(db, actor, wt.asset_out, wt.swap_out)
            add_balance(db, wt.to, wt.asset_out, wt.swap_out)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return len(self.warp_message.payload) + 1

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return -1, -1


def parse_import_asset(fill: bool, message: WarpMessage) -> ImportAsset:
    """Build an ImportAsset from a delivered message, validating its payload."""
    transfer = WarpTransfer.from_bytes(message.payload)
    if fill and transfer.swap_in == 0:
        raise NoSwapToFillError()
    return ImportAsset(fill=bool(fill), warp_transfer=transfer, warp_message=message)