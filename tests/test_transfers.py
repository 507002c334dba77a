"""
Test suite for the transfer protocol

Tests successful transfers, guard failures, compensation of a failed
deposit, the fatal rollback failure and lock ordering under concurrency.
"""

import threading
import pytest
from decimal import Decimal
from unittest.mock import patch

from account_core.accounts import Account, AccountStatus
from account_core.currency import Money, Currency
from account_core.errors import (
    AccountFrozenError, InsufficientFundsError, InvalidAmountError,
    SameAccountError, TargetNotActiveError, TransferRollbackFailedError
)
from account_core.transactions import TransactionKind
from account_core.transfers import lock_accounts, transfer


def usd(amount: str) -> Money:
    return Money(Decimal(amount), Currency.USD)


@pytest.fixture
def accounts():
    source = Account.checking("A-source", "Alice")
    target = Account.savings("B-target", "Bob")
    source.deposit('1000.00')
    target.deposit('500.00')
    return source, target


class TestTransfer:
    """Test the happy path and guard failures"""

    def test_successful_transfer(self, accounts):
        """Source 1000.00, target 500.00, transfer 300.00"""
        source, target = accounts

        result = transfer(source, target, Decimal('300.00'))

        assert source.balance == usd('700.00')
        assert target.balance == usd('800.00')
        assert result.amount == usd('300.00')
        assert not result.fee_charged
        assert source.transaction_log[-1].kind == TransactionKind.TRANSFER
        assert target.transaction_log[-1].kind == TransactionKind.TRANSFER
        # Each side has its own record
        assert result.source_records[0].id != result.target_record.id

    def test_transfer_into_overdraft_charges_fee(self, accounts):
        source, target = accounts

        result = transfer(source, target, '1100.00')

        assert result.fee_charged
        assert source.balance == usd('-135.00')
        assert target.balance == usd('1600.00')

    def test_frozen_target(self, accounts):
        """Test a frozen target leaves both accounts untouched"""
        source, target = accounts
        target.freeze("review")

        with pytest.raises(TargetNotActiveError) as exc_info:
            transfer(source, target, '300.00')

        assert exc_info.value.status == AccountStatus.FROZEN
        assert source.balance == usd('1000.00')
        assert target.balance == usd('500.00')
        assert len(source.transaction_log) == 1

    def test_closed_target(self):
        source = Account.checking("A", "Alice")
        source.deposit('10.00')
        target = Account.savings("B", "Bob")
        target.close()

        with pytest.raises(TargetNotActiveError):
            transfer(source, target, '5.00')
        assert source.balance == usd('10.00')

    def test_same_account(self, accounts):
        source, _ = accounts
        with pytest.raises(SameAccountError):
            transfer(source, source, '10.00')

    @pytest.mark.parametrize("amount", [0, "-1", "NaN", "12abc34", "0.005"])
    def test_invalid_amount(self, accounts, amount):
        source, target = accounts
        with pytest.raises(InvalidAmountError):
            transfer(source, target, amount)

    def test_insufficient_source_funds(self):
        source = Account.savings("A", "Alice")
        source.deposit('100.00')
        target = Account.savings("B", "Bob")

        with pytest.raises(InsufficientFundsError):
            transfer(source, target, '150.00')

        assert source.balance == usd('100.00')
        assert target.balance == usd('0')

    def test_frozen_source(self, accounts):
        source, target = accounts
        source.freeze()

        with pytest.raises(AccountFrozenError):
            transfer(source, target, '10.00')
        assert target.balance == usd('500.00')

    def test_currency_mismatch(self):
        source = Account.checking("A", "Alice")
        target = Account.savings("B", "Bob", currency=Currency.EUR)

        with pytest.raises(ValueError, match="different currencies"):
            transfer(source, target, '1.00')


class TestCompensation:
    """Test the compensating reversal of a failed deposit"""

    def test_failed_deposit_is_reversed(self, accounts):
        source, target = accounts

        with patch.object(target, "deposit", side_effect=RuntimeError("ledger offline")):
            with pytest.raises(RuntimeError, match="ledger offline"):
                transfer(source, target, '300.00')

        assert source.balance == usd('1000.00')
        assert target.balance == usd('500.00')
        kinds = [r.kind for r in source.transaction_log]
        assert kinds == [TransactionKind.DEPOSIT, TransactionKind.TRANSFER, TransactionKind.REVERSAL]
        assert source.transaction_log[-1].amount == usd('300.00')

    def test_rollback_failure_is_fatal(self, accounts):
        source, target = accounts
        original_deposit = source.deposit

        def reject_reversal(amount, kind=TransactionKind.DEPOSIT):
            if kind == TransactionKind.REVERSAL:
                raise RuntimeError("source unavailable")
            return original_deposit(amount, kind)

        with patch.object(target, "deposit", side_effect=RuntimeError("target unavailable")), \
                patch.object(source, "deposit", side_effect=reject_reversal):
            with pytest.raises(TransferRollbackFailedError) as exc_info:
                transfer(source, target, '300.00')

        error = exc_info.value
        assert error.source_id == source.id
        assert error.target_id == target.id
        assert error.amount == usd('300.00')
        assert str(error.original_error) == "target unavailable"
        assert str(error.rollback_error) == "source unavailable"
        assert source.balance == usd('700.00')
        assert target.balance == usd('500.00')


class TestLocking:
    """Test lock ordering"""

    def test_lock_accounts_holds_both_locks(self, accounts):
        source, target = accounts
        acquired = []

        with lock_accounts(target, source):
            def try_acquire():
                acquired.append(source.lock.acquire(blocking=False))
                acquired.append(target.lock.acquire(blocking=False))

            thread = threading.Thread(target=try_acquire)
            thread.start()
            thread.join()

        assert acquired == [False, False]

    def test_opposite_transfers_do_not_deadlock(self):
        a = Account.checking("A", "Alice")
        b = Account.checking("B", "Bob")
        a.deposit('10000.00')
        b.deposit('10000.00')
        errors = []

        def move(source, target):
            try:
                for _ in range(200):
                    transfer(source, target, '1.00')
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=move, args=(a, b)),
            threading.Thread(target=move, args=(b, a)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert a.balance + b.balance == usd('20000.00')
        assert a.balance == usd('10000.00')
