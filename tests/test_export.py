import pytest

from tokenledger.actions.base import (
    OUTPUT_ANYCAST,
    OUTPUT_ASSET_MISSING,
    OUTPUT_NOT_WARP_ASSET,
    OUTPUT_VALUE_ZERO,
    OUTPUT_WARP_ASSET,
    OUTPUT_WRONG_DESTINATION,
    InvalidObjectError,
)
from tokenledger.actions.export import ExportAsset
from tokenledger.actions.warp import WarpTransfer, imported_asset_metadata
from tokenledger.auth import ED25519
from tokenledger.storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    MemoryDatabase,
    get_asset,
    get_balance,
    get_loan,
    prefix_asset_key,
    prefix_balance_key,
    prefix_loan_key,
    set_asset,
    set_balance,
)

ACTOR = bytes([1]) * 32
RECIPIENT = bytes([2]) * 32
ASSET = bytes([3]) * 32
DEST = bytes([4]) * 32
ORIGINAL = bytes([5]) * 32
TX_ID = bytes([6]) * 32
AUTH = ED25519(signer=ACTOR, signature=bytes(64))


def _exec(action, db):
    return action.execute(None, db, 0, AUTH, TX_ID, False)


@pytest.fixture
def loan_db():
    db = MemoryDatabase()
    set_asset(db, ASSET, b"meta", 100, ACTOR, False)
    set_balance(db, ACTOR, ASSET, 100)
    return db


@pytest.fixture
def return_db():
    db = MemoryDatabase()
    set_asset(
        db, ASSET, imported_asset_metadata(ORIGINAL, DEST), 100, EMPTY_PUBLIC_KEY, True
    )
    set_balance(db, ACTOR, ASSET, 100)
    return db


def test_loan_export_locks_value_and_reward(loan_db):
    action = ExportAsset(RECIPIENT, ASSET, 40, False, DEST, reward=10)
    result = _exec(action, loan_db)
    assert result.success
    assert get_loan(loan_db, ASSET, DEST) == 50
    assert get_balance(loan_db, ACTOR, ASSET) == 50
    assert result.warp_message.destination_chain_id == DEST
    transfer = WarpTransfer.from_bytes(result.warp_message.payload)
    assert transfer.asset == ASSET
    assert transfer.to == RECIPIENT
    assert transfer.value == 40
    assert transfer.reward == 10
    assert transfer.tx_id == TX_ID
    assert not transfer.is_return


def test_loan_export_of_warp_asset_fails(return_db):
    action = ExportAsset(RECIPIENT, ASSET, 10, False, DEST)
    result = _exec(action, return_db)
    assert not result.success
    assert result.output == OUTPUT_WARP_ASSET


def test_loan_export_insufficient_balance(loan_db):
    action = ExportAsset(RECIPIENT, ASSET, 500, False, DEST)
    result = _exec(action, loan_db)
    assert not result.success
    assert b"could not subtract balance" in result.output


def test_return_export_burns_supply(return_db):
    action = ExportAsset(RECIPIENT, ASSET, 30, True, DEST, reward=5)
    result = _exec(action, return_db)
    assert result.success
    info = get_asset(return_db, ASSET)
    assert info.supply == 65
    assert info.warp
    assert get_balance(return_db, ACTOR, ASSET) == 65
    transfer = WarpTransfer.from_bytes(result.warp_message.payload)
    assert transfer.asset == ORIGINAL
    assert transfer.is_return


def test_return_export_of_whole_supply_deletes_asset(return_db):
    action = ExportAsset(RECIPIENT, ASSET, 60, True, DEST, reward=40)
    result = _exec(action, return_db)
    assert result.success
    assert get_asset(return_db, ASSET) is None
    assert get_balance(return_db, ACTOR, ASSET) == 0


def test_return_to_wrong_destination(return_db):
    action = ExportAsset(RECIPIENT, ASSET, 10, True, bytes([9]) * 32)
    result = _exec(action, return_db)
    assert result.output == OUTPUT_WRONG_DESTINATION
    assert get_asset(return_db, ASSET).supply == 100


def test_return_of_native_asset_fails(loan_db):
    action = ExportAsset(RECIPIENT, ASSET, 10, True, DEST)
    assert _exec(action, loan_db).output == OUTPUT_NOT_WARP_ASSET


def test_missing_asset():
    db = MemoryDatabase()
    action = ExportAsset(RECIPIENT, ASSET, 10, False, DEST)
    assert _exec(action, db).output == OUTPUT_ASSET_MISSING


def test_value_zero_and_anycast(loan_db):
    assert _exec(ExportAsset(RECIPIENT, ASSET, 0, False, DEST), loan_db).output == (
        OUTPUT_VALUE_ZERO
    )
    result = _exec(ExportAsset(RECIPIENT, ASSET, 10, False, EMPTY_ID), loan_db)
    assert result.output == OUTPUT_ANYCAST
    assert get_balance(loan_db, ACTOR, ASSET) == 100


def test_state_keys():
    loan = ExportAsset(RECIPIENT, ASSET, 10, False, DEST)
    assert loan.state_keys(AUTH, TX_ID) == [
        prefix_asset_key(ASSET),
        prefix_loan_key(ASSET, DEST),
        prefix_balance_key(ACTOR, ASSET),
    ]
    ret = ExportAsset(RECIPIENT, ASSET, 10, True, DEST)
    assert ret.state_keys(AUTH, TX_ID) == [
        prefix_asset_key(ASSET),
        prefix_balance_key(ACTOR, ASSET),
    ]


def test_units_and_range(loan_db):
    action = ExportAsset(RECIPIENT, ASSET, 10, False, DEST)
    assert action.max_units(None) == 169
    assert action.valid_range(None) == (-1, -1)
    assert _exec(action, loan_db).units == action.max_units(None)


@pytest.mark.parametrize(
    "action",
    [
        ExportAsset(RECIPIENT, ASSET, 0, False, DEST),
        ExportAsset(RECIPIENT, ASSET, 10, False, EMPTY_ID),
        ExportAsset(RECIPIENT, ASSET, 10, False, DEST, swap_in=20, swap_out=1),
        ExportAsset(RECIPIENT, ASSET, 10, False, DEST, swap_in=5, swap_out=0),
        ExportAsset(RECIPIENT, ASSET, 10, False, DEST, swap_expiry=-1),
        ExportAsset(RECIPIENT, ASSET, 10, False, DEST, asset_out=ORIGINAL),
    ],
)
def test_validate_rejects(action):
    with pytest.raises(InvalidObjectError):
        action.validate()


def test_validate_accepts_swap():
    action = ExportAsset(
        RECIPIENT, ASSET, 10, False, DEST, swap_in=5, asset_out=ORIGINAL,
        swap_out=3, swap_expiry=100,
    )
    action.validate()
    assert action.swap_in == 5