"""Chain identity, genesis parameters and the rules derived from them."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

from .storage import ID_LEN, MAX_UINT64

HRP = "token"
NAME = "tokenvm"
SYMBOL = "TKN"
VM_ID = NAME.encode().ljust(ID_LEN, b"\x00")
VERSION = "v0.0.1"

STATE_LOCKUP_FIELD = "state_lockup"

_MIN_INT64 = -(1 << 63)
_MAX_INT64 = (1 << 63) - 1


class InvalidTargetError(ValueError):
    """Raised when a pricing window target is zero."""

    def __init__(self, message: str = "invalid target") -> None:
        super().__init__(message)


@dataclass
class CustomAllocation:
    """Initial native balance of a bech32 address."""

    address: str
    balance: int


@dataclass
class Genesis:
    """Parameters a chain starts with."""

    hrp: str = HRP
    max_block_txs: int = 20_000
    max_block_units: int = 1_800_000
    base_units: int = 48
    validity_window: int = 60
    min_unit_price: int = 1
    unit_price_change_denominator: int = 48
    window_target_units: int = 20_000_000
    min_block_cost: int = 0
    block_cost_change_denominator: int = 48
    window_target_blocks: int = 20
    warp_base_fee: int = 1_024
    warp_fee_per_signer: int = 128
    custom_allocation: list[CustomAllocation] = field(default_factory=list)

    def rules(self, timestamp: int) -> "Rules":
        return Rules(self)

    def to_json(self) -> str:
        data: dict[str, Any] = {}
        for name, (key, _kind) in _FIELDS.items():
            data[key] = getattr(self, name)
        data["customAllocation"] = [asdict(a) for a in self.custom_allocation]
        return json.dumps(data)


# attribute -> (JSON key, value kind)
_FIELDS: dict[str, tuple[str, str]] = {
    "hrp": ("hrp", "str"),
    "max_block_txs": ("maxBlockTxs", "i64"),
    "max_block_units": ("maxBlockUnits", "u64"),
    "base_units": ("baseUnits", "u64"),
    "validity_window": ("validityWindow", "i64"),
    "min_unit_price": ("minUnitPrice", "u64"),
    "unit_price_change_denominator": ("unitPriceChangeDenominator", "u64"),
    "window_target_units": ("windowTargetUnits", "u64"),
    "min_block_cost": ("minBlockCost", "u64"),
    "block_cost_change_denominator": ("blockCostChangeDenominator", "u64"),
    "window_target_blocks": ("windowTargetBlocks", "u64"),
    "warp_base_fee": ("warpBaseFee", "u64"),
    "warp_fee_per_signer": ("warpFeePerSigner", "u64"),
}
_BY_KEY = {key.lower(): (name, kind) for name, (key, kind) in _FIELDS.items()}


def _convert(key: str, value: Any, kind: str) -> Any:
    if kind == "str":
        if not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    low, high = (0, MAX_UINT64) if kind == "u64" else (_MIN_INT64, _MAX_INT64)
    if not low <= value <= high:
        raise ValueError(f"{key} is out of range")
    return value


def _allocations(value: Any) -> list[CustomAllocation]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("customAllocation must be a list")
    allocations = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValueError("allocation must be an object")
        lowered = {str(k).lower(): v for k, v in entry.items()}
        address = _convert("address", lowered.get("address", ""), "str")
        balance = _convert("balance", lowered.get("balance", 0), "u64")
        allocations.append(CustomAllocation(address, balance))
    return allocations


def default_genesis() -> Genesis:
    return Genesis()


def load_genesis(
    data: Union[bytes, str, None], upgrade: Optional[bytes] = None
) -> Genesis:
    """Parse genesis JSON over the defaults; unknown keys are ignored."""
    genesis = default_genesis()
    text = data.decode() if isinstance(data, (bytes, bytearray)) else (data or "")
    if text:
        try:
            raw = json.loads(text)
            if not isinstance(raw, dict):
                raise ValueError("genesis must be a JSON object")
            for key, value in raw.items():
                lowered = str(key).lower()
                if lowered == "customallocation":
                    genesis.custom_allocation = _allocations(value)
                    continue
                spec = _BY_KEY.get(lowered)
                if spec is None or value is None:
                    continue
                name, kind = spec
                setattr(genesis, name, _convert(key, value, kind))
        except ValueError as exc:
            raise ValueError(f"failed to unmarshal config {text}: {exc}") from exc
    if genesis.window_target_units == 0 or genesis.window_target_blocks == 0:
        raise InvalidTargetError()
    return genesis


class Rules:
    """Rules in force at a point in time, read from the genesis."""

    def __init__(self, genesis: Genesis) -> None:
        self._g = genesis

    def get_warp_config(self, source_chain_id: bytes) -> tuple[bool, int, int]:
        # Inbound transfers are allowed from any chain once 4/5 of stake has
        # signed; assets are scoped by their source chain.
        return True, 4, 5

    def fetch_custom(self, key: str) -> tuple[Any, bool]:
        return None, False

    @property
    def warp_base_fee(self) -> int:
        return self._g.warp_base_fee

    @property
    def warp_fee_per_signer(self) -> int:
        return self._g.warp_fee_per_signer

    @property
    def max_block_txs(self) -> int:
        return self._g.max_block_txs

    @property
    def validity_window(self) -> int:
        return self._g.validity_window

    @property
    def max_block_units(self) -> int:
        return self._g.max_block_units

    @property
    def base_units(self) -> int:
        return self._g.base_units

    @property
    def min_unit_price(self) -> int:
        return self._g.min_unit_price

    @property
    def unit_price_change_denominator(self) -> int:
        return self._g.unit_price_change_denominator

    @property
    def window_target_units(self) -> int:
        return self._g.window_target_units

    @property
    def min_block_cost(self) -> int:
        return self._g.min_block_cost

    @property
    def block_cost_change_denominator(self) -> int:
        return self._g.block_cost_change_denominator

    @property
    def window_target_blocks(self) -> int:
        return self._g.window_target_blocks