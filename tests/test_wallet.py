from decimal import Decimal

import pytest

from solwallet.errors import InsufficientFunds, InvalidAmount
from solwallet.wallet import apply_delta, WalletLedgerRecord


class TestApplyDelta:
    """Tests for the off-chain balance update"""

    def test_deposit_increases_balance(self, record):
        """Depositing 50 on 100 leaves 150"""
        apply_delta(record, 50)
        assert record.balance == Decimal(150)

    def test_overdraw_is_refused_and_balance_unchanged(self, record):
        """A delta of -200 on 100 raises and keeps 100"""
        updated_at = record.updated_at
        with pytest.raises(InsufficientFunds) as exc_info:
            apply_delta(record, -200)
        assert record.balance == Decimal(100)
        assert record.updated_at == updated_at
        assert exc_info.value.balance == Decimal(100)
        assert exc_info.value.amount == Decimal(-200)

    def test_debit_to_exactly_zero_is_allowed(self, record):
        apply_delta(record, -100)
        assert record.balance == 0

    def test_decimal_precision_is_kept(self, record):
        apply_delta(record, "0.1")
        apply_delta(record, "0.2")
        assert record.balance == Decimal("100.3")

    @pytest.mark.parametrize("amount", ["abc", float("nan"), float("inf"), True])
    def test_rejects_non_numeric_amounts(self, record, amount):
        with pytest.raises(InvalidAmount):
            apply_delta(record, amount)
        assert record.balance == Decimal(100)

    def test_balance_never_goes_negative(self, record):
        """Any sequence of deltas keeps the balance non-negative"""
        for amount in [30, -50, -100, 70, -150, -51, 1, -1]:
            try:
                apply_delta(record, amount)
            except InsufficientFunds:
                pass
            assert record.balance >= 0
        assert record.balance == Decimal(0)


class TestWalletLedgerRecord:
    """Tests for record storage conversion"""

    def test_dict_keeps_balance_as_string(self, record):
        data = record.to_dict()
        assert data["_id"] == "w1"
        assert data["balance"] == "100"

    def test_from_dict(self, record):
        record.update_balance(Decimal("12.345678901234567890"))
        restored = WalletLedgerRecord.from_dict(record.to_dict())
        assert restored == record

    def test_new_records_get_distinct_ids(self):
        a = WalletLedgerRecord(user_id=1, pub_key="a")
        b = WalletLedgerRecord(user_id=1, pub_key="b")
        assert a.id != b.id
        assert a.balance == Decimal(0)
