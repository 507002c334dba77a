"""
Test suite for transaction records
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from account_core.currency import Money, Currency
from account_core.transactions import TransactionRecord, TransactionKind, Direction


def usd(amount: str) -> Money:
    return Money(Decimal(amount), Currency.USD)


class TestTransactionRecord:
    """Test TransactionRecord value semantics"""

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="must be positive"):
            TransactionRecord(amount=usd('0'), kind=TransactionKind.DEPOSIT,
                              direction=Direction.CREDIT)
        with pytest.raises(ValueError, match="must be positive"):
            TransactionRecord(amount=usd('-5'), kind=TransactionKind.FEE,
                              direction=Direction.DEBIT)

    def test_identity_is_the_id(self):
        """Test identical content still gives distinct records"""
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        a = TransactionRecord(amount=usd('10'), kind=TransactionKind.DEPOSIT,
                              direction=Direction.CREDIT, created_at=when)
        b = TransactionRecord(amount=usd('10'), kind=TransactionKind.DEPOSIT,
                              direction=Direction.CREDIT, created_at=when)

        assert a != b
        assert len({a, b}) == 2
        assert a == TransactionRecord.from_dict(a.to_dict())

    def test_signed_amount(self):
        credit = TransactionRecord(amount=usd('10'), kind=TransactionKind.INTEREST,
                                   direction=Direction.CREDIT)
        debit = TransactionRecord(amount=usd('35'), kind=TransactionKind.FEE,
                                  direction=Direction.DEBIT)

        assert credit.is_credit
        assert credit.signed_amount == Decimal('10.00')
        assert not debit.is_credit
        assert debit.signed_amount == Decimal('-35.00')

    def test_record_is_immutable(self):
        record = TransactionRecord(amount=usd('10'), kind=TransactionKind.DEPOSIT,
                                   direction=Direction.CREDIT)
        with pytest.raises(AttributeError):
            record.amount = usd('20')

    def test_to_line(self):
        """Test statement line rendering"""
        record = TransactionRecord(
            amount=usd('1500'),
            kind=TransactionKind.WITHDRAWAL,
            direction=Direction.DEBIT,
            id="abcdef12-0000-0000-0000-000000000000",
            created_at=datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)
        )

        assert record.to_line() == "[2024-03-05 14:07:09] WITHDRAWAL: USD 1,500.00 (ID: abcdef12)"

    def test_dict_projection(self):
        record = TransactionRecord(amount=usd('12.34'), kind=TransactionKind.REVERSAL,
                                   direction=Direction.CREDIT)
        data = record.to_dict()

        assert data['amount'] == "12.34"
        assert data['currency'] == "USD"
        assert data['kind'] == "reversal"
        assert data['direction'] == "credit"

        restored = TransactionRecord.from_dict(data)
        assert restored.amount == record.amount
        assert restored.kind == TransactionKind.REVERSAL
        assert restored.created_at == record.created_at
