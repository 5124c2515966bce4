"""Shared pieces of the action set: results, output messages, errors and helpers."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Optional

from ..storage import ID_LEN, MAX_UINT64

MAX_METADATA_SIZE = 256

OUTPUT_VALUE_ZERO = b"value is zero"
OUTPUT_ASSET_IS_NATIVE = b"cannot mint native asset"
OUTPUT_ASSET_ALREADY_EXISTS = b"asset already exists"
OUTPUT_ASSET_MISSING = b"asset missing"
OUTPUT_IN_TICK_ZERO = b"in rate is zero"
OUTPUT_OUT_TICK_ZERO = b"out rate is zero"
OUTPUT_SUPPLY_ZERO = b"supply is zero"
OUTPUT_SUPPLY_MISALIGNED = b"supply is misaligned"
OUTPUT_ORDER_MISSING = b"order is missing"
OUTPUT_UNAUTHORIZED = b"unauthorized"
OUTPUT_WRONG_IN = b"wrong in asset"
OUTPUT_WRONG_OUT = b"wrong out asset"
OUTPUT_WRONG_OWNER = b"wrong owner"
OUTPUT_INSUFFICIENT_INPUT = b"insufficient input"
OUTPUT_INSUFFICIENT_OUTPUT = b"insufficient output"
OUTPUT_VALUE_MISALIGNED = b"value is misaligned"
OUTPUT_METADATA_TOO_LARGE = b"metadata is too large"
OUTPUT_SAME_IN_OUT = b"same asset used for in and out"
OUTPUT_CONFLICTING_ASSET = b"warp has same asset as another"
OUTPUT_ANYCAST = b"anycast output"
OUTPUT_NOT_WARP_ASSET = b"not warp asset"
OUTPUT_WARP_ASSET = b"warp asset"
OUTPUT_WRONG_DESTINATION = b"wrong destination"
OUTPUT_MUST_FILL = b"must fill request"
OUTPUT_WARP_VERIFICATION_FAILED = b"warp verification failed"

# Errors raised by state accessors and checked arithmetic; actions turn them
# into failed results rather than letting them escape.
STATE_ERRORS = (ValueError, LookupError, ArithmeticError)

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ALPHABET_INDEX = {char: index for index, char in enumerate(_ALPHABET)}
_CHECKSUM_LEN = 4


@dataclass
class Result:
    """Outcome of executing an action."""

    success: bool
    units: int
    output: bytes = b""
    warp_message: Optional[Any] = None


class NoSwapToFillError(ValueError):
    """Raised when a fill is requested for a transfer that offers no swap."""

    def __init__(self, message: str = "no swap to fill") -> None:
        super().__init__(message)


class InvalidObjectError(ValueError):
    """Raised when a decoded object fails validation."""

    def __init__(self, message: str = "invalid object") -> None:
        super().__init__(message)


def error_bytes(exc: BaseException) -> bytes:
    """Return the message of ``exc`` as result output."""
    return str(exc).encode()


def _b58encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    chars = []
    while number:
        number, rem = divmod(number, 58)
        chars.append(_ALPHABET[rem])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(chars))


def _b58decode(text: str) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * 58 + _ALPHABET_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    leading = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * leading + body


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()[-_CHECKSUM_LEN:]


def format_id(id_bytes: bytes) -> str:
    """Render a 32-byte ID as checksummed base58 text."""
    data = bytes(id_bytes)
    if len(data) != ID_LEN:
        raise ValueError(f"id must be {ID_LEN} bytes, got {len(data)}")
    return _b58encode(data + _checksum(data))


def parse_id(text: str) -> bytes:
    """Parse text produced by :func:`format_id` back into a 32-byte ID."""
    raw = _b58decode(text.strip())
    if len(raw) < _CHECKSUM_LEN:
        raise ValueError("encoded id is too short")
    data, checksum = raw[:-_CHECKSUM_LEN], raw[-_CHECKSUM_LEN:]
    if _checksum(data) != checksum:
        raise ValueError("invalid id checksum")
    if len(data) != ID_LEN:
        raise ValueError(f"id must be {ID_LEN} bytes, got {len(data)}")
    return data


def pair_id(in_asset: bytes, out_asset: bytes) -> str:
    """Name of the order book trading ``in_asset`` for ``out_asset``."""
    return f"{format_id(in_asset)}-{format_id(out_asset)}"


def checked_add(a: int, b: int) -> int:
    """Add two unsigned 64-bit values, raising OverflowError on overflow."""
    total = a + b
    if total > MAX_UINT64:
        raise OverflowError("overflow")
    return total


def checked_sub(a: int, b: int) -> int:
    """Subtract unsigned 64-bit values, raising OverflowError on underflow."""
    if b > a:
        raise OverflowError("underflow")
    return a - b


def checked_mul(a: int, b: int) -> int:
    """Multiply two unsigned 64-bit values, raising OverflowError on overflow."""
    product = a * b
    if product > MAX_UINT64:
        raise OverflowError("overflow")
    return product