from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from solwallet.db import WalletDB
from solwallet.wallet import WalletLedgerRecord


@pytest.fixture
def db():
    return WalletDB(client=MagicMock())


class TestWalletDB:
    """Tests for the pymongo wallet repository"""

    def test_indexes_wallets_by_user(self, db):
        db.wallets.create_index.assert_called_once()

    def test_find_wallet_by_id(self, db, record):
        db.wallets.find_one.return_value = record.to_dict()
        found = db.find_wallet_by_id("w1")
        db.wallets.find_one.assert_called_with({"_id": "w1"})
        assert found == record
        assert isinstance(found.balance, Decimal)

    def test_find_missing_wallet(self, db):
        db.wallets.find_one.return_value = None
        assert db.find_wallet_by_id("w1") is None

    def test_save_wallet_upserts(self, db, record):
        db.save_wallet(record)
        db.wallets.replace_one.assert_called_once_with({"_id": "w1"}, record.to_dict(), upsert=True)

    def test_add_wallet(self, db, record):
        db.wallets.find_one.return_value = None
        db.add_wallet(record)
        db.wallets.insert_one.assert_called_once_with(record.to_dict())

    def test_add_existing_wallet_requires_override(self, db, record):
        db.wallets.find_one.return_value = record.to_dict()
        with pytest.raises(ValueError):
            db.add_wallet(record)
        db.add_wallet(record, override=True)
        db.wallets.delete_one.assert_called_once_with({"_id": "w1"})
        db.wallets.insert_one.assert_called_once()

    def test_find_wallets_by_user(self, db, record):
        db.wallets.find.return_value = [record.to_dict()]
        assert db.find_wallets_by_user(42) == [record]
        db.wallets.find.assert_called_once_with({"user_id": 42})

    def test_balance_round_trips_exactly(self, db):
        record = WalletLedgerRecord(id="w2", user_id=1, pub_key="x", balance=Decimal("0.000000001"))
        db.wallets.find_one.return_value = record.to_dict()
        assert db.find_wallet_by_id("w2").balance == Decimal("0.000000001")
