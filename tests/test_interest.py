"""
Test suite for interest module

Tests the shared rate holder, per-variant rate resolution, the interest
batch and its scheduler.
"""

import threading
import pytest
from decimal import Decimal

from account_core.accounts import Account
from account_core.currency import Money, Currency
from account_core.interest import (
    InterestBatchResult, InterestScheduler, RateProvider,
    resolve_interest_rate, run_interest_batch
)
from account_core.transactions import TransactionKind


def usd(amount: str) -> Money:
    return Money(Decimal(amount), Currency.USD)


class TestRateProvider:
    """Test the shared default rate"""

    def test_default_rate(self):
        assert RateProvider().get_rate() == Decimal('0.05')

    def test_set_rate(self):
        provider = RateProvider('0.05')
        provider.set_rate('0.07')
        assert provider.get_rate() == Decimal('0.07')

    @pytest.mark.parametrize("rate", ["-0.01", "1.01", "NaN"])
    def test_invalid_rate(self, rate):
        provider = RateProvider()
        with pytest.raises(ValueError):
            provider.set_rate(rate)
        assert provider.get_rate() == Decimal('0.05')


class TestRateResolution:
    """Test which rate each variant earns"""

    def test_savings_ignore_shared_rate(self):
        account = Account.savings("SAV001", "Bob", interest_rate='0.03')
        assert resolve_interest_rate(account, RateProvider('0.09')) == Decimal('0.03')

    def test_checking_use_shared_rate(self):
        provider = RateProvider('0.04')
        account = Account.checking("CHK001", "Alice")

        assert resolve_interest_rate(account, provider) == Decimal('0.04')
        provider.set_rate('0.06')
        assert resolve_interest_rate(account, provider) == Decimal('0.06')


class TestInterestBatch:
    """Test the batch over many accounts"""

    def test_batch_applies_to_savings_only(self):
        savings = Account.savings("SAV001", "Bob", interest_rate='0.05')
        savings.deposit('1000.00')
        checking = Account.checking("CHK001", "Alice")
        checking.deposit('1000.00')

        result = run_interest_batch([savings, checking], RateProvider('0.05'))

        assert result.applied_accounts == ["SAV001"]
        assert savings.balance == usd('1050.00')
        assert checking.balance == usd('1000.00')
        assert result.total_accounts == 1

    def test_frozen_account_is_logged_not_raised(self):
        healthy = Account.savings("SAV001", "Bob")
        healthy.deposit('100.00')
        frozen = Account.savings("SAV002", "Carol")
        frozen.deposit('100.00')
        frozen.freeze()
        empty = Account.savings("SAV003", "Dan")

        result = run_interest_batch([healthy, frozen, empty])

        assert result.applied_accounts == ["SAV001"]
        assert "SAV002" in result.failures
        assert "frozen" in result.failures["SAV002"]
        assert result.skipped == ["SAV003"]
        assert frozen.balance == usd('100.00')
        assert healthy.balance == usd('102.00')

    def test_result_to_dict(self):
        account = Account.savings("SAV001", "Bob", interest_rate='0.10')
        account.deposit('10.00')

        data = run_interest_batch([account]).to_dict()

        assert data["applied"] == {"SAV001": "1.00"}
        assert data["skipped"] == []
        assert data["failures"] == {}


class TestInterestScheduler:
    """Test the background batch runner"""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            InterestScheduler(lambda: None, interval_seconds=0)

    def test_run_once(self):
        account = Account.savings("SAV001", "Bob", interest_rate='0.10')
        account.deposit('100.00')
        scheduler = InterestScheduler(lambda: run_interest_batch([account]), interval_seconds=60)

        result = scheduler.run_once()

        assert isinstance(result, InterestBatchResult)
        assert scheduler.runs == 1
        assert scheduler.last_result is result
        assert account.balance == usd('110.00')

    def test_run_once_survives_errors(self):
        def broken():
            raise RuntimeError("storage offline")

        scheduler = InterestScheduler(broken, interval_seconds=60)

        assert scheduler.run_once() is None
        assert scheduler.runs == 0

    def test_background_thread_runs_batches(self):
        account = Account.savings("SAV001", "Bob", interest_rate='0.01')
        account.deposit('1000.00')
        ran = threading.Event()

        def batch():
            result = run_interest_batch([account])
            ran.set()
            return result

        scheduler = InterestScheduler(batch, interval_seconds=0.01)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.stop(timeout=5)

        assert not scheduler.is_running
        assert scheduler.runs >= 1
        assert len(account.get_transactions_by_kind(TransactionKind.INTEREST)) == scheduler.runs
