"""In-memory book of open orders, kept per trading pair with the best rates first."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .storage import EMPTY_PUBLIC_KEY

ALL_PAIRS = "*"

_log = logging.getLogger(__name__)


@dataclass
class Order:
    """An open order as served to clients; ``owner`` is the owner's address."""

    id: bytes
    owner: str
    in_tick: int
    out_tick: int
    remaining: int
    owner_key: bytes = field(default=EMPTY_PUBLIC_KEY, repr=False)

    @property
    def rate(self) -> float:
        return self.in_tick / self.out_tick


@dataclass
class _Entry:
    id: bytes
    val: float
    item: Order
    index: int


class _MaxHeap:
    """Binary max-heap of entries that can be looked up and removed by ID."""

    def __init__(self) -> None:
        self.items: list[_Entry] = []
        self._lookup: dict[bytes, _Entry] = {}

    def __len__(self) -> int:
        return len(self.items)

    def _less(self, i: int, j: int) -> bool:
        return self.items[i].val > self.items[j].val

    def _swap(self, i: int, j: int) -> None:
        items = self.items
        items[i], items[j] = items[j], items[i]
        items[i].index = i
        items[j].index = j

    def _up(self, j: int) -> None:
        while j > 0:
            i = (j - 1) // 2
            if not self._less(j, i):
                break
            self._swap(i, j)
            j = i

    def _down(self, i0: int, n: int) -> bool:
        i = i0
        while True:
            j1 = 2 * i + 1
            if j1 >= n:
                break
            j = j1
            j2 = j1 + 1
            if j2 < n and self._less(j2, j1):
                j = j2
            if not self._less(j, i):
                break
            self._swap(i, j)
            i = j
        return i > i0

    def push(self, entry: _Entry) -> None:
        entry.index = len(self.items)
        self.items.append(entry)
        self._lookup[entry.id] = entry
        self._up(entry.index)

    def get(self, entry_id: bytes) -> Optional[_Entry]:
        return self._lookup.get(entry_id)

    def remove(self, index: int) -> _Entry:
        n = len(self.items) - 1
        if n != index:
            self._swap(index, n)
            if not self._down(index, n):
                self._up(index)
        entry = self.items.pop()
        self._lookup.pop(entry.id, None)
        return entry


class OrderBook:
    """Tracks open orders for the configured pairs (``["*"]`` tracks every pair)."""

    def __init__(self, tracked_pairs: Iterable[str] = ()) -> None:
        pairs = list(tracked_pairs)
        self._orders: dict[str, _MaxHeap] = {}
        self._order_to_pair: dict[bytes, str] = {}
        self._lock = threading.Lock()
        self._track_all = pairs == [ALL_PAIRS]
        if self._track_all:
            _log.info("tracking all order books")
        else:
            for pair in pairs:
                self._orders[pair] = _MaxHeap()
                _log.info("tracking order book %s", pair)

    def add(self, pair: str, order: Order) -> None:
        with self._lock:
            heap = self._orders.get(pair)
            if heap is None:
                if not self._track_all:
                    return
                _log.info("tracking order book %s", pair)
                heap = self._orders[pair] = _MaxHeap()
            order_id = bytes(order.id)
            heap.push(_Entry(order_id, order.rate, order, len(heap)))
            self._order_to_pair[order_id] = pair

    def remove(self, order_id: bytes) -> None:
        with self._lock:
            order_id = bytes(order_id)
            pair = self._order_to_pair.pop(order_id, None)
            if pair is None:
                return
            heap = self._orders.get(pair)
            if heap is None:
                return
            entry = heap.get(order_id)
            if entry is None:
                return
            heap.remove(entry.index)

    def update_remaining(self, order_id: bytes, remaining: int) -> None:
        with self._lock:
            order_id = bytes(order_id)
            pair = self._order_to_pair.get(order_id)
            if pair is None:
                return
            heap = self._orders.get(pair)
            if heap is None:
                return
            entry = heap.get(order_id)
            if entry is None:
                return
            entry.item.remaining = remaining

    def orders(self, pair: str, limit: int) -> list[Order]:
        """Return up to ``limit`` orders of ``pair`` in heap order, best rate first."""
        with self._lock:
            heap = self._orders.get(pair)
            if heap is None:
                return []
            return [entry.item for entry in heap.items[: max(limit, 0)]]