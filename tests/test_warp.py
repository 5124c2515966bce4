import hashlib

import pytest

from tokenledger.actions.base import (
    OUTPUT_CONFLICTING_ASSET,
    OUTPUT_MUST_FILL,
    OUTPUT_WARP_VERIFICATION_FAILED,
    InvalidObjectError,
    NoSwapToFillError,
)
from tokenledger.actions.warp import (
    WarpMessage,
    WarpTransfer,
    imported_asset_id,
    imported_asset_metadata,
    parse_import_asset,
    valid_swap_params,
)
from tokenledger.auth import ED25519
from tokenledger.storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    MemoryDatabase,
    get_asset,
    get_balance,
    get_loan,
    set_asset,
    set_balance,
    set_loan,
)

ASSET = bytes([1]) * 32
CHAIN = bytes([2]) * 32
TX = bytes([3]) * 32
OUT_ASSET = bytes([4]) * 32
RECIPIENT = bytes([5]) * 32
ACTOR = bytes([6]) * 32

AUTH = ED25519(ACTOR, bytes(64))


def make_message(transfer):
    return WarpMessage(source_chain_id=CHAIN, payload=transfer.to_bytes())


def test_round_trip_plain():
    wt = WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX)
    assert WarpTransfer.from_bytes(wt.to_bytes()) == wt


def test_round_trip_with_swap():
    wt = WarpTransfer(
        to=RECIPIENT,
        asset=ASSET,
        value=10,
        is_return=True,
        reward=2,
        swap_in=5,
        asset_out=OUT_ASSET,
        swap_out=7,
        swap_expiry=1000,
        tx_id=TX,
    )
    assert WarpTransfer.from_bytes(wt.to_bytes()) == wt


def test_plain_encoding_has_no_optional_fields():
    data = WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX).to_bytes()
    assert data[:32] == RECIPIENT
    assert data[32:64] == ASSET
    assert data[-32:] == TX


def test_trailing_bytes_rejected():
    data = WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX).to_bytes()
    with pytest.raises(InvalidObjectError):
        WarpTransfer.from_bytes(data + b"\x00")


def test_zero_value_rejected():
    data = WarpTransfer(to=RECIPIENT, asset=ASSET, value=0, tx_id=TX).to_bytes()
    with pytest.raises(InvalidObjectError):
        WarpTransfer.from_bytes(data)


def test_empty_tx_id_rejected():
    data = WarpTransfer(to=RECIPIENT, asset=ASSET, value=1).to_bytes()
    with pytest.raises(InvalidObjectError):
        WarpTransfer.from_bytes(data)


def test_invalid_swap_rejected():
    data = WarpTransfer(
        to=RECIPIENT, asset=ASSET, value=1, swap_in=5, swap_out=1, tx_id=TX
    ).to_bytes()
    with pytest.raises(InvalidObjectError):
        WarpTransfer.from_bytes(data)


def test_truncated_rejected():
    data = WarpTransfer(to=RECIPIENT, asset=ASSET, value=1, tx_id=TX).to_bytes()
    with pytest.raises(InvalidObjectError):
        WarpTransfer.from_bytes(data[:-1])


@pytest.mark.parametrize(
    "args, expected",
    [
        ((10, 0, EMPTY_ID, 0, 0), True),
        ((10, 5, OUT_ASSET, 3, 100), True),
        ((10, 11, OUT_ASSET, 3, 100), False),
        ((10, 5, OUT_ASSET, 0, 100), False),
        ((10, 0, OUT_ASSET, 0, 0), False),
        ((10, 0, EMPTY_ID, 3, 0), False),
        ((10, 0, EMPTY_ID, 0, 5), False),
        ((10, 0, EMPTY_ID, 0, -1), False),
    ],
)
def test_valid_swap_params(args, expected):
    assert valid_swap_params(*args) is expected


def test_imported_asset_metadata_and_id():
    metadata = imported_asset_metadata(ASSET, CHAIN)
    assert metadata == ASSET + CHAIN
    asset_id = imported_asset_id(ASSET, CHAIN)
    assert len(asset_id) == 32
    assert asset_id == hashlib.sha256(metadata).digest()
    assert imported_asset_id(ASSET, OUT_ASSET) != asset_id


def test_parse_fill_without_swap():
    msg = make_message(WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX))
    with pytest.raises(NoSwapToFillError):
        parse_import_asset(True, msg)


def test_max_units_and_state_keys():
    msg = make_message(WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX))
    imp = parse_import_asset(False, msg)
    assert imp.max_units(None) == len(msg.payload) + 1
    assert len(imp.state_keys(AUTH, TX)) == 2
    assert imp.valid_range(None) == (-1, -1)


def test_unverified_fails():
    msg = make_message(WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX))
    imp = parse_import_asset(False, msg)
    result = imp.execute(None, MemoryDatabase(), 0, AUTH, TX, False)
    assert not result.success
    assert result.output == OUTPUT_WARP_VERIFICATION_FAILED


def test_mint_import():
    db = MemoryDatabase()
    msg = make_message(
        WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, reward=3, tx_id=TX)
    )
    imp = parse_import_asset(False, msg)
    result = imp.execute(None, db, 0, AUTH, TX, True)
    assert result.success
    asset = imported_asset_id(ASSET, CHAIN)
    info = get_asset(db, asset)
    assert info.supply == 13
    assert info.warp
    assert info.owner == EMPTY_PUBLIC_KEY
    assert info.metadata == ASSET + CHAIN
    assert get_balance(db, RECIPIENT, asset) == 10
    assert get_balance(db, ACTOR, asset) == 3


def test_conflicting_asset():
    db = MemoryDatabase()
    asset = imported_asset_id(ASSET, CHAIN)
    set_asset(db, asset, b"x", 1, ACTOR, False)
    msg = make_message(WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, tx_id=TX))
    result = parse_import_asset(False, msg).execute(None, db, 0, AUTH, TX, True)
    assert not result.success
    assert result.output == OUTPUT_CONFLICTING_ASSET


def test_return_import():
    db = MemoryDatabase()
    set_loan(db, ASSET, CHAIN, 20)
    msg = make_message(
        WarpTransfer(
            to=RECIPIENT, asset=ASSET, value=10, is_return=True, reward=2, tx_id=TX
        )
    )
    result = parse_import_asset(False, msg).execute(None, db, 0, AUTH, TX, True)
    assert result.success
    assert get_loan(db, ASSET, CHAIN) == 8
    assert get_balance(db, RECIPIENT, ASSET) == 10
    assert get_balance(db, ACTOR, ASSET) == 2


def test_return_without_loan_fails():
    db = MemoryDatabase()
    msg = make_message(
        WarpTransfer(to=RECIPIENT, asset=ASSET, value=10, is_return=True, tx_id=TX)
    )
    result = parse_import_asset(False, msg).execute(None, db, 0, AUTH, TX, True)
    assert not result.success
    assert get_balance(db, RECIPIENT, ASSET) == 0


def swap_transfer():
    return WarpTransfer(
        to=RECIPIENT,
        asset=ASSET,
        value=10,
        swap_in=4,
        asset_out=OUT_ASSET,
        swap_out=7,
        swap_expiry=100,
        tx_id=TX,
    )


def test_must_fill_before_expiry():
    db = MemoryDatabase()
    imp = parse_import_asset(False, make_message(swap_transfer()))
    result = imp.execute(None, db, 50, AUTH, TX, True)
    assert not result.success
    assert result.output == OUTPUT_MUST_FILL


def test_no_fill_after_expiry():
    db = MemoryDatabase()
    imp = parse_import_asset(False, make_message(swap_transfer()))
    result = imp.execute(None, db, 100, AUTH, TX, True)
    assert result.success
    assert get_balance(db, RECIPIENT, imported_asset_id(ASSET, CHAIN)) == 10


def test_fill_swap():
    db = MemoryDatabase()
    set_balance(db, ACTOR, OUT_ASSET, 7)
    imp = parse_import_asset(True, make_message(swap_transfer()))
    assert len(imp.state_keys(AUTH, TX)) == 5
    result = imp.execute(None, db, 50, AUTH, TX, True)
    assert result.success
    asset = imported_asset_id(ASSET, CHAIN)
    assert get_balance(db, RECIPIENT, asset) == 6
    assert get_balance(db, ACTOR, asset) == 4
    assert get_balance(db, ACTOR, OUT_ASSET) == 0
    assert get_balance(db, RECIPIENT, OUT_ASSET) == 7


def test_fill_swap_without_funds_fails():
    db = MemoryDatabase()
    imp = parse_import_asset(True, make_message(swap_transfer()))
    result = imp.execute(None, db, 50, AUTH, TX, True)
    assert not result.success
    assert get_balance(db, RECIPIENT, OUT_ASSET) == 0