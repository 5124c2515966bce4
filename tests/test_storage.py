import pytest

from tokenledger import storage
from tokenledger.storage import (
    EMPTY_ID,
    EMPTY_PUBLIC_KEY,
    MAX_UINT64,
    AssetInfo,
    InvalidBalanceError,
    MemoryDatabase,
    NotFoundError,
    OrderInfo,
    TransactionRecord,
)

PK_A = bytes([1]) * 32
PK_B = bytes([2]) * 32
ASSET = bytes([7]) * 32
OTHER = bytes([9]) * 32
TX = bytes([3]) * 32


@pytest.fixture
def db():
    return MemoryDatabase()


def _reader(db):
    def read_state(keys):
        values, errors = [], []
        for key in keys:
            try:
                values.append(db.get_value(key))
                errors.append(None)
            except NotFoundError as exc:
                values.append(None)
                errors.append(exc)
        return values, errors

    return read_state


def test_key_layouts():
    assert storage.prefix_tx_key(TX) == b"\x00" + TX
    assert storage.prefix_balance_key(PK_A, ASSET) == b"\x00" + PK_A + ASSET
    assert storage.prefix_asset_key(ASSET) == b"\x01" + ASSET
    assert storage.prefix_order_key(TX) == b"\x02" + TX
    assert storage.prefix_loan_key(ASSET, OTHER) == b"\x03" + ASSET + OTHER
    assert storage.incoming_warp_key(OTHER, TX) == b"\x04" + OTHER + TX
    assert storage.outgoing_warp_key(TX) == b"\x05" + TX


def test_key_rejects_wrong_length():
    with pytest.raises(ValueError):
        storage.prefix_asset_key(b"short")


def test_memory_database_missing_key(db):
    with pytest.raises(NotFoundError):
        db.get_value(b"missing")
    with pytest.raises(NotFoundError):
        db.get(b"missing")


def test_transaction_round_trip(db):
    storage.store_transaction(db, TX, -5, True, 42)
    assert storage.get_transaction(db, TX) == TransactionRecord(-5, True, 42)
    storage.store_transaction(db, TX, 1000, False, 0)
    assert storage.get_transaction(db, TX) == TransactionRecord(1000, False, 0)


def test_transaction_missing(db):
    assert storage.get_transaction(db, TX) is None


def test_balance_wire_format(db):
    storage.set_balance(db, PK_A, ASSET, 5)
    assert db.get_value(storage.prefix_balance_key(PK_A, ASSET)) == (5).to_bytes(8, "big")


def test_missing_balance_is_zero(db):
    assert storage.get_balance(db, PK_A, ASSET) == 0


def test_add_and_sub_balance(db):
    storage.add_balance(db, PK_A, ASSET, 100)
    storage.add_balance(db, PK_A, ASSET, 50)
    assert storage.get_balance(db, PK_A, ASSET) == 150
    storage.sub_balance(db, PK_A, ASSET, 30)
    assert storage.get_balance(db, PK_A, ASSET) == 120


def test_sub_balance_to_zero_removes_record(db):
    storage.set_balance(db, PK_A, ASSET, 10)
    storage.sub_balance(db, PK_A, ASSET, 10)
    assert storage.prefix_balance_key(PK_A, ASSET) not in db
    assert len(db) == 0


def test_sub_balance_underflow(db):
    storage.set_balance(db, PK_A, ASSET, 10)
    with pytest.raises(InvalidBalanceError):
        storage.sub_balance(db, PK_A, ASSET, 11)
    assert storage.get_balance(db, PK_A, ASSET) == 10


def test_add_balance_overflow(db):
    storage.set_balance(db, PK_A, ASSET, MAX_UINT64)
    with pytest.raises(InvalidBalanceError):
        storage.add_balance(db, PK_A, ASSET, 1)


def test_delete_balance(db):
    storage.set_balance(db, PK_A, ASSET, 10)
    storage.delete_balance(db, PK_A, ASSET)
    assert storage.get_balance(db, PK_A, ASSET) == 0


def test_balance_from_state(db):
    storage.set_balance(db, PK_B, ASSET, 77)
    reader = _reader(db)
    assert storage.get_balance_from_state(reader, PK_B, ASSET) == 77
    assert storage.get_balance_from_state(reader, PK_A, ASSET) == 0


def test_from_state_propagates_other_errors():
    def broken(keys):
        return [None], [OSError("disk")]

    with pytest.raises(OSError):
        storage.get_balance_from_state(broken, PK_A, ASSET)
    with pytest.raises(OSError):
        storage.get_asset_from_state(broken, ASSET)


def test_asset_round_trip(db):
    storage.set_asset(db, ASSET, b"abc", 99, PK_A, True)
    assert storage.get_asset(db, ASSET) == AssetInfo(b"abc", 99, PK_A, True)
    raw = db.get_value(storage.prefix_asset_key(ASSET))
    assert raw == b"\x00\x03abc" + (99).to_bytes(8, "big") + PK_A + b"\x01"


def test_asset_empty_metadata_and_from_state(db):
    storage.set_asset(db, EMPTY_ID, b"", 0, EMPTY_PUBLIC_KEY, False)
    info = storage.get_asset_from_state(_reader(db), EMPTY_ID)
    assert info == AssetInfo(b"", 0, EMPTY_PUBLIC_KEY, False)


def test_asset_missing_and_delete(db):
    assert storage.get_asset(db, ASSET) is None
    storage.set_asset(db, ASSET, b"x", 1, PK_A, False)
    storage.delete_asset(db, ASSET)
    assert storage.get_asset(db, ASSET) is None


def test_order_round_trip(db):
    storage.set_order(db, TX, ASSET, 3, OTHER, 4, 40, PK_B)
    assert storage.get_order(db, TX) == OrderInfo(ASSET, 3, OTHER, 4, 40, PK_B)
    storage.delete_order(db, TX)
    assert storage.get_order(db, TX) is None


def test_loan_lifecycle(db):
    assert storage.get_loan(db, ASSET, OTHER) == 0
    storage.add_loan(db, ASSET, OTHER, 20)
    storage.add_loan(db, ASSET, OTHER, 5)
    assert storage.get_loan(db, ASSET, OTHER) == 25
    assert storage.get_loan_from_state(_reader(db), ASSET, OTHER) == 25
    storage.sub_loan(db, ASSET, OTHER, 25)
    assert storage.prefix_loan_key(ASSET, OTHER) not in db


def test_loan_errors(db):
    with pytest.raises(InvalidBalanceError):
        storage.sub_loan(db, ASSET, OTHER, 1)
    storage.set_loan(db, ASSET, OTHER, MAX_UINT64)
    with pytest.raises(InvalidBalanceError):
        storage.add_loan(db, ASSET, OTHER, 1)