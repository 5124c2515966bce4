"""Moving an amount of an asset from the actor to another account."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ..auth import get_actor
from ..storage import (
    ID_LEN,
    PUBLIC_KEY_LEN,
    UINT64_LEN,
    Database,
    add_balance,
    prefix_balance_key,
    sub_balance,
)
from .base import OUTPUT_VALUE_ZERO, STATE_ERRORS, Result, error_bytes


@dataclass
class Transfer:
    """Send ``value`` of ``asset`` to ``to``; the empty ID is the native asset."""

    to: bytes
    asset: bytes
    value: int

    # -1 at both ends means the action is always valid.
    valid_from: ClassVar[int] = -1
    valid_until: ClassVar[int] = -1

    def state_keys(self, auth: Any, tx_id: bytes) -> list[bytes]:
        return [
            prefix_balance_key(get_actor(auth), self.asset),
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
        if self.value == 0:
            return Result(False, units, OUTPUT_VALUE_ZERO)
        try:
            sub_balance(db, actor, self.asset, self.value)
            add_balance(db, self.to, self.asset, self.value)
        except STATE_ERRORS as exc:
            return Result(False, units, error_bytes(exc))
        return Result(True, units)

    def max_units(self, rules: Any) -> int:
        # Priced by size.
        return PUBLIC_KEY_LEN + ID_LEN + UINT64_LEN

    def valid_range(self, rules: Any) -> tuple[int, int]:
        return self.valid_from, self.valid_until