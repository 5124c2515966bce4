"""State layout and accessors for balances, assets, orders, loans and transactions.

State keys:

* ``0x0 | owner | asset``        -> balance
* ``0x1 | asset``                -> metadataLen | metadata | supply | owner | warp
* ``0x2 | txID``                 -> in | inTick | out | outTick | remaining | owner
* ``0x3 | asset | destination``  -> loan amount
* ``0x4 | sourceChain | msgID``  -> incoming warp message
* ``0x5 | txID``                 -> outgoing warp message

Metadata store:

* ``0x0 | txID`` -> timestamp | success | units
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

ID_LEN = 32
PUBLIC_KEY_LEN = 32
UINT64_LEN = 8
UINT16_LEN = 2
MAX_UINT64 = (1 << 64) - 1

EMPTY_ID = bytes(ID_LEN)
EMPTY_PUBLIC_KEY = bytes(PUBLIC_KEY_LEN)

TX_PREFIX = 0x0

BALANCE_PREFIX = 0x0
ASSET_PREFIX = 0x1
ORDER_PREFIX = 0x2
LOAN_PREFIX = 0x3
INCOMING_WARP_PREFIX = 0x4
OUTGOING_WARP_PREFIX = 0x5

_FAILURE_BYTE = 0x0
_SUCCESS_BYTE = 0x1

_U64 = struct.Struct(">Q")
_U16 = struct.Struct(">H")
_TX_RECORD = struct.Struct(">qBQ")


class NotFoundError(LookupError):
    """Raised when a key is not present in a database."""


class InvalidBalanceError(ValueError):
    """Raised when a balance or loan would overflow or go negative."""


class Database(Protocol):
    """Mutable state used while executing actions."""

    def get_value(self, key: bytes) -> bytes: ...

    def insert(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...


class KeyValueStore(Protocol):
    """Plain key/value store used for transaction metadata."""

    def put(self, key: bytes, value: bytes) -> None: ...

    def get(self, key: bytes) -> bytes: ...


ReadState = Callable[
    [Sequence[bytes]],
    "tuple[Sequence[Optional[bytes]], Sequence[Optional[BaseException]]]",
]


class MemoryDatabase:
    """In-memory store that serves both as chain state and metadata store."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}

    def get_value(self, key: bytes) -> bytes:
        try:
            return self._data[bytes(key)]
        except KeyError:
            raise NotFoundError(bytes(key).hex()) from None

    def insert(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def put(self, key: bytes, value: bytes) -> None:
        self.insert(key, value)

    def get(self, key: bytes) -> bytes:
        return self.get_value(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class AssetInfo:
    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class OrderInfo:
    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


@dataclass(frozen=True)
class TransactionRecord:
    timestamp: int
    success: bool
    units: int


def _fixed(value: bytes, length: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return value


def _id(value: bytes, name: str = "id") -> bytes:
    return _fixed(value, ID_LEN, name)


def _pk(value: bytes, name: str = "public key") -> bytes:
    return _fixed(value, PUBLIC_KEY_LEN, name)


def _u64(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{value} does not fit in an unsigned 64-bit integer")
    return _U64.pack(value)


def _read_u64(data: bytes, offset: int = 0) -> int:
    return _U64.unpack_from(data, offset)[0]


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    return bytes([TX_PREFIX]) + _id(tx_id, "tx id")


def store_transaction(
    db: KeyValueStore, tx_id: bytes, timestamp: int, success: bool, units: int
) -> None:
    if not 0 <= units <= MAX_UINT64:
        raise ValueError(f"{units} does not fit in an unsigned 64-bit integer")
    value = _TX_RECORD.pack(
        timestamp, _SUCCESS_BYTE if success else _FAILURE_BYTE, units
    )
    db.put(prefix_tx_key(tx_id), value)


def get_transaction(db: KeyValueStore, tx_id: bytes) -> Optional[TransactionRecord]:
    """Return the stored record for ``tx_id``, or None if it was never stored."""
    try:
        value = db.get(prefix_tx_key(tx_id))
    except NotFoundError:
        return None
    timestamp, status, units = _TX_RECORD.unpack_from(value)
    return TransactionRecord(timestamp, status != _FAILURE_BYTE, units)


# Balances


def prefix_balance_key(pk: bytes, asset: bytes) -> bytes:
    return bytes([BALANCE_PREFIX]) + _pk(pk) + _id(asset, "asset")


def _inner_get_balance(value: Optional[bytes], error: Optional[BaseException]) -> int:
    if isinstance(error, NotFoundError):
        return 0
    if error is not None:
        raise error
    return _read_u64(value or b"")


def get_balance(db: Database, pk: bytes, asset: bytes) -> int:
    """Return the balance of ``pk`` in ``asset``; a missing account holds 0."""
    try:
        value = db.get_value(prefix_balance_key(pk, asset))
    except NotFoundError as exc:
        return _inner_get_balance(None, exc)
    return _inner_get_balance(value, None)


def get_balance_from_state(read_state: ReadState, pk: bytes, asset: bytes) -> int:
    values, errors = read_state([prefix_balance_key(pk, asset)])
    return _inner_get_balance(values[0], errors[0])


def set_balance(db: Database, pk: bytes, asset: bytes, balance: int) -> None:
    db.insert(prefix_balance_key(pk, asset), _u64(balance))


def delete_balance(db: Database, pk: bytes, asset: bytes) -> None:
    db.remove(prefix_balance_key(pk, asset))


def add_balance(db: Database, pk: bytes, asset: bytes, amount: int) -> None:
    balance = get_balance(db, pk, asset)
    new_balance = balance + amount
    if new_balance > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add balance (asset={bytes(asset).hex()}, bal={balance}, "
            f"addr={bytes(pk).hex()}, amount={amount})"
        )
    set_balance(db, pk, asset, new_balance)


def sub_balance(db: Database, pk: bytes, asset: bytes, amount: int) -> None:
    """Subtract ``amount``; an emptied balance is removed rather than stored as 0."""
    balance = get_balance(db, pk, asset)
    if amount > balance:
        raise InvalidBalanceError(
            f"could not subtract balance (asset={bytes(asset).hex()}, bal={balance}, "
            f"addr={bytes(pk).hex()}, amount={amount})"
        )
    new_balance = balance - amount
    if new_balance == 0:
        db.remove(prefix_balance_key(pk, asset))
        return
    set_balance(db, pk, asset, new_balance)


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    return bytes([ASSET_PREFIX]) + _id(asset, "asset")


def _inner_get_asset(
    value: Optional[bytes], error: Optional[BaseException]
) -> Optional[AssetInfo]:
    if isinstance(error, NotFoundError):
        return None
    if error is not None:
        raise error
    value = value or b""
    metadata_len = _U16.unpack_from(value)[0]
    offset = UINT16_LEN
    metadata = bytes(value[offset : offset + metadata_len])
    offset += metadata_len
    supply = _read_u64(value, offset)
    offset += UINT64_LEN
    owner = bytes(value[offset : offset + PUBLIC_KEY_LEN])
    offset += PUBLIC_KEY_LEN
    warp = value[offset] == 0x1
    return AssetInfo(metadata, supply, owner, warp)


def get_asset(db: Database, asset: bytes) -> Optional[AssetInfo]:
    """Return the asset record, or None if the asset does not exist."""
    try:
        value = db.get_value(prefix_asset_key(asset))
    except NotFoundError as exc:
        return _inner_get_asset(None, exc)
    return _inner_get_asset(value, None)


def get_asset_from_state(read_state: ReadState, asset: bytes) -> Optional[AssetInfo]:
    values, errors = read_state([prefix_asset_key(asset)])
    return _inner_get_asset(values[0], errors[0])


def set_asset(
    db: Database,
    asset: bytes,
    metadata: bytes,
    supply: int,
    owner: bytes,
    warp: bool,
) -> None:
    metadata = bytes(metadata)
    if len(metadata) > 0xFFFF:
        raise ValueError("metadata is longer than 65535 bytes")
    value = (
        _U16.pack(len(metadata))
        + metadata
        + _u64(supply)
        + _pk(owner, "owner")
        + bytes([0x1 if warp else 0x0])
    )
    db.insert(prefix_asset_key(asset), value)


def delete_asset(db: Database, asset: bytes) -> None:
    db.remove(prefix_asset_key(asset))


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    return bytes([ORDER_PREFIX]) + _id(tx_id, "order id")


def set_order(
    db: Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    value = (
        _id(in_asset, "in asset")
        + _u64(in_tick)
        + _id(out_asset, "out asset")
        + _u64(out_tick)
        + _u64(supply)
        + _pk(owner, "owner")
    )
    db.insert(prefix_order_key(tx_id), value)


def get_order(db: Database, order_id: bytes) -> Optional[OrderInfo]:
    """Return the order record, or None if the order does not exist."""
    try:
        value = db.get_value(prefix_order_key(order_id))
    except NotFoundError:
        return None
    offset = 0
    in_asset = bytes(value[offset : offset + ID_LEN])
    offset += ID_LEN
    in_tick = _read_u64(value, offset)
    offset += UINT64_LEN
    out_asset = bytes(value[offset : offset + ID_LEN])
    offset += ID_LEN
    out_tick = _read_u64(value, offset)
    offset += UINT64_LEN
    remaining = _read_u64(value, offset)
    offset += UINT64_LEN
    owner = bytes(value[offset : offset + PUBLIC_KEY_LEN])
    return OrderInfo(in_asset, in_tick, out_asset, out_tick, remaining, owner)


def delete_order(db: Database, order_id: bytes) -> None:
    db.remove(prefix_order_key(order_id))


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    return bytes([LOAN_PREFIX]) + _id(asset, "asset") + _id(destination, "destination")


def _inner_get_loan(value: Optional[bytes], error: Optional[BaseException]) -> int:
    if isinstance(error, NotFoundError):
        return 0
    if error is not None:
        raise error
    return _read_u64(value or b"")


def get_loan(db: Database, asset: bytes, destination: bytes) -> int:
    try:
        value = db.get_value(prefix_loan_key(asset, destination))
    except NotFoundError as exc:
        return _inner_get_loan(None, exc)
    return _inner_get_loan(value, None)


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    values, errors = read_state([prefix_loan_key(asset, destination)])
    return _inner_get_loan(values[0], errors[0])


def set_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    db.insert(prefix_loan_key(asset, destination), _u64(amount))


def add_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan + amount
    if new_loan > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add loan (asset={bytes(asset).hex()}, "
            f"destination={bytes(destination).hex()}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Subtract ``amount`` from a loan; an emptied loan is removed."""
    loan = get_loan(db, asset, destination)
    if amount > loan:
        raise InvalidBalanceError(
            f"could not subtract loan (asset={bytes(asset).hex()}, "
            f"destination={bytes(destination).hex()}, amount={amount})"
        )
    new_loan = loan - amount
    if new_loan == 0:
        db.remove(prefix_loan_key(asset, destination))
        return
    set_loan(db, asset, destination, new_loan)


# Warp messages


def incoming_warp_key(source_chain_id: bytes, msg_id: bytes) -> bytes:
    return (
        bytes([INCOMING_WARP_PREFIX])
        + _id(source_chain_id, "source chain id")
        + _id(msg_id, "message id")
    )


def outgoing_warp_key(tx_id: bytes) -> bytes:
    return bytes([OUTGOING_WARP_PREFIX]) + _id(tx_id, "tx id")