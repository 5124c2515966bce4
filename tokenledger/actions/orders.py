"""Creating, filling and closing orders that trade one asset for another."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, ClassVar

from ..auth import get_actor
from ..storage import (
    ID_LEN,
    MAX_UINT64,
    PUBLIC_KEY_LEN,
    UINT64_LEN,
    Database,
    add_balance,
    delete_order,
    get_order,
    prefix_balance_key,
    prefix_order_key,
    set_order,
    sub_balance,
)
from .base import (
    OUTPUT_IN_TICK_ZERO,
    OUTPUT_INSUFFICIENT_INPUT,
    OUTPUT_INSUFFICIENT_OUTPUT,
    OUTPUT_ORDER_MISSING,
    OUTPUT_OUT_TICK_ZERO,
    OUTPUT_SAME_IN_OUT,
    OUTPUT_SUPPLY_MISALIGNED,
    OUTPUT_SUPPLY_ZERO,
    OUTPUT_UNAUTHORIZED,
    OUTPUT_VALUE_MISALIGNED,
    OUTPUT_VALUE_ZERO,
    OUTPUT_WRONG_IN,
    OUTPUT_WRONG_OUT,
    OUTPUT_WRONG_OWNER,
    STATE_ERRORS,
    InvalidObjectError,
    Result,
    checked_mul,
    error_bytes,
)

BASE_PRICE = 3 * ID_LEN + UINT64_LEN + PUBLIC_KEY_LEN
TRADE_SUCCEEDED_PRICE = 1_000

_ORDER_RESULT = struct.Struct(">QQQ")


class _AlwaysValid:
    """Actions whose valid range is unbounded (-1 at both ends)."""

    valid_from: ClassVar[int] = -1
    valid_until: ClassVar[int] = -1

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return self.valid_from, self.valid_until


@dataclass
class CreateOrder(_AlwaysValid):
    """Lock ``supply`` of ``out_asset`` to be sold in blocks of ``out_tick``
    for every ``in_tick`` of ``in_asset``.

    An actor may hold any number of orders for the same pair; fills must be
    multiples of ``in_tick`` and any unused input is refunded.
    """

    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    supply: int

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [
            prefix_balance_key(get_actor(auth), self.out_asset),
            prefix_order_key(tx_id),
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
        if bytes(self.in_asset) == bytes(self.out_asset):
            return Result(False, units, OUTPUT_SAME_IN_OUT)
        if self.in_tick == 0:
            return Result(False, units, OUTPUT_IN_TICK_ZERO)
        if self.out_tick == 0:
            return Result(False, units, OUTPUT_OUT_TICK_ZERO)
        if self.supply == 0:
            return Result(False, units, OUTPUT_SUPPLY_ZERO)
        if self.supply % self.out_tick != 0:
            return Result(False, units, OUTPUT_SUPPLY_MISALIGNED)
        try:
            sub_balance(db, actor, self.out_asset, self.supply)
            set_order(
                db,
                tx_id,
                self.in_asset,
                self.in_tick,
                self.out_asset,
                self.out_tick,
                self.supply,
                actor,
            )
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return ID_LEN * 2 + UINT64_LEN * 3

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)


@dataclass
class OrderResult:
    """What a successful fill traded and how much of the order is left."""

    in_amount: int
    out_amount: int
    remaining: int

    def to_bytes(self) -> bytes:
        values = (self.in_amount, self.out_amount, self.remaining)
        for value in values:
            if not 0 <= value <= MAX_UINT64:
                raise ValueError(
                    f"{value} does not fit in an unsigned 64-bit integer"
                )
        return _ORDER_RESULT.pack(*values)

    @classmethod
    def from_bytes(cls, data: bytes) -> "OrderResult":
        data = bytes(data)
        if len(data) != _ORDER_RESULT.size:
            raise InvalidObjectError(
                f"order result must be {_ORDER_RESULT.size} bytes, got {len(data)}"
            )
        in_amount, out_amount, remaining = _ORDER_RESULT.unpack(data)
        if in_amount == 0 or out_amount == 0:
            raise InvalidObjectError("order result amounts must be non-zero")
        # A remaining of 0 means the order was deleted.
        return cls(in_amount, out_amount, remaining)


@dataclass
class FillOrder(_AlwaysValid):
    """Trade up to ``value`` of ``in_asset`` against order ``order`` of ``owner``."""

    order: bytes
    owner: bytes
    in_asset: bytes
    out_asset: bytes
    value: int

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        actor = get_actor(auth)
        return [
            prefix_order_key(self.order),
            prefix_balance_key(self.owner, self.in_asset),
            prefix_balance_key(actor, self.in_asset),
            prefix_balance_key(actor, self.out_asset),
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
        try:
            info = get_order(db, self.order)
            if info is None:
                return Result(False, BASE_PRICE, OUTPUT_ORDER_MISSING)
            if info.owner != bytes(self.owner):
                return Result(False, BASE_PRICE, OUTPUT_WRONG_OWNER)
            if info.in_asset != bytes(self.in_asset):
                return Result(False, BASE_PRICE, OUTPUT_WRONG_IN)
            if info.out_asset != bytes(self.out_asset):
                return Result(False, BASE_PRICE, OUTPUT_WRONG_OUT)
            if self.value == 0:
                return Result(False, BASE_PRICE, OUTPUT_VALUE_ZERO)
            if self.value % info.in_tick != 0:
                return Result(False, BASE_PRICE, OUTPUT_VALUE_MISALIGNED)

            output_amount = checked_mul(info.out_tick, self.value // info.in_tick)
            if output_amount == 0:
                return Result(False, BASE_PRICE, OUTPUT_INSUFFICIENT_OUTPUT)

            input_amount = self.value
            should_delete = False
            order_remaining = 0
            if output_amount > info.remaining:
                # Another fill got there first: take what is left and refund
                # the unused input blocks.
                blocks_over = (output_amount - info.remaining) // info.out_tick
                input_amount -= blocks_over * info.in_tick
                output_amount = info.remaining
                should_delete = True
            elif output_amount == info.remaining:
                should_delete = True
            else:
                order_remaining = info.remaining - output_amount

            if input_amount == 0:
                return Result(False, BASE_PRICE, OUTPUT_INSUFFICIENT_INPUT)

            sub_balance(db, actor, self.in_asset, input_amount)
            add_balance(db, self.owner, self.in_asset, input_amount)
            add_balance(db, actor, self.out_asset, output_amount)
            if should_delete:
                delete_order(db, self.order)
            else:
                set_order(
                    db,
                    self.order,
                    info.in_asset,
                    info.in_tick,
                    info.out_asset,
                    info.out_tick,
                    order_remaining,
                    info.owner,
                )
            output = OrderResult(input_amount, output_amount, order_remaining).to_bytes()
        except STATE_ERRORS as exc:
            return Result(False, BASE_PRICE, error_bytes(exc))
        return Result(True, BASE_PRICE + TRADE_SUCCEEDED_PRICE, output)

    def max_units(self, rules: Any) -> int:
        return BASE_PRICE + TRADE_SUCCEEDED_PRICE

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)


@dataclass
class CloseOrder(_AlwaysValid):
    """Close order ``order`` and return its locked ``out_asset`` to the owner."""

    order: bytes
    out_asset: bytes

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [
            prefix_order_key(self.order),
            prefix_balance_key(get_actor(auth), self.out_asset),
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
        try:
            info = get_order(db, self.order)
            if info is None:
                return Result(False, units, OUTPUT_ORDER_MISSING)
            if info.owner != actor:
                return Result(False, units, OUTPUT_UNAUTHORIZED)
            if info.out_asset != bytes(self.out_asset):
                return Result(False, units, OUTPUT_WRONG_OUT)
            delete_order(db, self.order)
            add_balance(db, actor, self.out_asset, info.remaining)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        return ID_LEN * 2

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return super().valid_range(rules)