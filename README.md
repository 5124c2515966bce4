# tokenledger

A library for a token ledger held in a key-value state. The state stores
balances, assets, trade orders and cross-chain loans. Actions change that
state: transfers; creating, minting, burning and modifying assets; creating,
filling and closing orders; and exporting or importing assets between chains.
Transactions are authorised by Ed25519 signers.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `tokenledger.storage`

This module defines the state layout and its encoding. IDs and public keys
are 32-byte `bytes`. The empty ID (`EMPTY_ID`, 32 zero bytes) is the native
asset.

- `MemoryDatabase` is an in-memory store. It has `get_value`, `insert` and
  `remove` for chain state, and `put` and `get` for transaction metadata.
  A missing key raises `NotFoundError`.
- Key builders: `prefix_balance_key`, `prefix_asset_key`, `prefix_order_key`,
  `prefix_loan_key`, `prefix_tx_key`, `incoming_warp_key`, `outgoing_warp_key`.
- Balances: `get_balance`, `set_balance`, `delete_balance`, `add_balance`,
  `sub_balance`. A missing balance reads as 0. A balance that reaches 0 is
  removed. Going below zero or above 2**64 - 1 raises `InvalidBalanceError`.
- Assets: `get_asset` returns an `AssetInfo` (metadata, supply, owner, warp)
  or `None`. The module also has `set_asset` and `delete_asset`.
- Orders: `get_order` returns an `OrderInfo` or `None`. The module also has
  `set_order` and `delete_order`.
- Loans: `get_loan`, `set_loan`, `add_loan`, `sub_loan`.
- Transactions: `store_transaction` and `get_transaction`. `get_transaction`
  returns a `TransactionRecord` or `None`.
- `get_balance_from_state`, `get_asset_from_state` and `get_loan_from_state`
  read through a callable. The callable takes a list of keys and returns
  `(values, errors)`.

### `tokenledger.auth`

- `ED25519(signer, signature)`. `async_verify(msg)` raises
  `InvalidSignatureError` unless the signature is valid for `msg`. Fees come
  from the signer's native balance: `can_deduct`, `deduct` and `refund`.
  `max_units` is 352.
- `get_actor(auth)` and `get_signer(auth)` return the signer's public key.
  For any other kind of authorisation they return the empty key.

### `tokenledger.actions`

Every action has `state_keys(auth, tx_id)`, `execute(rules, db, timestamp,
auth, tx_id, warp_verified)`, `max_units(rules)` and `valid_range(rules)`.
`valid_range` always returns `(-1, -1)`. `execute` never raises because of
the state. It returns a `Result` with `success`, `units`, `output` and, for
exports, a `warp_message`. When `success` is false, `output` gives the
reason, for example `b"value is zero"`.

- `actions.base` holds `Result`, the `OUTPUT_*` messages and
  `MAX_METADATA_SIZE` (256). It defines the errors `NoSwapToFillError` and
  `InvalidObjectError`. `format_id` and `parse_id` convert between an ID and
  checksummed base58 text. `pair_id(in_asset, out_asset)` gives the name of an
  order book. `checked_add`, `checked_sub` and `checked_mul` do unsigned
  64-bit arithmetic and raise `OverflowError`.
- `actions.transfer` holds `Transfer(to, asset, value)`.
- `actions.assets` holds `CreateAsset(metadata)`, `MintAsset(to, asset, value)`,
  `BurnAsset(asset, value)` and `ModifyAsset(asset, owner, metadata)`.
- `actions.orders` holds the following:
  - `CreateOrder(in_asset, in_tick, out_asset, out_tick, supply)`.
  - `FillOrder(order, owner, in_asset, out_asset, value)`. A fill that asks
    for more than the order has left takes what remains. Any unused input
    stays with the filler.
  - `CloseOrder(order, out_asset)`.
  - `OrderResult`, with `to_bytes` and `from_bytes`. A successful fill
    returns one as its output.
- `actions.warp` holds the following:
  - `WarpTransfer`, the cross-chain payload, with `to_bytes` and
    `from_bytes`.
  - `WarpMessage` and `UnsignedWarpMessage`.
  - `valid_swap_params`.
  - `imported_asset_id` and `imported_asset_metadata`. The imported ID is
    the SHA-256 of the original asset ID followed by the source chain ID.
  - `ImportAsset`, built with `parse_import_asset(fill, message)`.
- `actions.export` holds `ExportAsset(to, asset, value, is_return,
  destination, ...)`. Without `is_return`, it locks a native asset as a loan
  to the destination. With it, it burns an imported asset and sends it back.
  `validate()` raises `InvalidObjectError` on a zero value, an empty
  destination or inconsistent swap fields.

### `tokenledger.order_book`

`OrderBook(tracked_pairs)` keeps open `Order`s for each pair. `["*"]` tracks
every pair. It has `add`, `remove` and `update_remaining`. `orders(pair,
limit)` returns up to `limit` orders in heap order, with the highest
in/out rate first.

### `tokenledger.genesis`

`default_genesis()` returns the default `Genesis`.
`load_genesis(data, upgrade)` reads camelCase JSON over those defaults. It
raises `InvalidTargetError` when `windowTargetUnits` or `windowTargetBlocks`
is zero. `Genesis.to_json()` writes the parameters back out.
`Genesis.rules(timestamp)` returns a `Rules` object. `Rules` exposes the
parameters as properties, along with `get_warp_config` and `fetch_custom`.

## Example

```python
from tokenledger.storage import MemoryDatabase, set_balance, get_balance
from tokenledger.auth import ED25519
from tokenledger.actions.transfer import Transfer

NATIVE = bytes(32)
db = MemoryDatabase()
sender = bytes(range(32))
recipient = bytes(reversed(range(32)))
set_balance(db, sender, NATIVE, 100)

auth = ED25519(signer=sender, signature=bytes(64))
result = Transfer(to=recipient, asset=NATIVE, value=40).execute(
    None, db, 0, auth, bytes(32), False
)
assert result.success and result.units == 72
assert get_balance(db, recipient, NATIVE) == 40
assert get_balance(db, sender, NATIVE) == 60
```

`execute` does not check the signature. Call `auth.async_verify(message)`
for that.

## What it does not do

This is a library of state and action logic only. It has the following
limits:

- It has no node, block production, networking or RPC server and client.
- It has no command-line tool.
- It does not encode actions for transport. Only `WarpTransfer` and
  `OrderResult` have a byte format.
- It cannot create signatures or manage keys.
- Its only store is `MemoryDatabase`, which does not persist.
- Cross-chain messages are plain data. Signing and verifying them is left to
  the caller, who passes `warp_verified` to `ImportAsset.execute`.