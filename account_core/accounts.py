"""
Account Module

Bank accounts with a balance, a status and an append-only transaction log.
Two product variants share one Account type; the variant is a tagged terms
payload (CheckingTerms or SavingsTerms) and only the withdrawal sufficiency
rule dispatches on it. Status guards, deposits, freeze and close are uniform.

Every mutating operation runs under the account's own re-entrant lock and
checks, in order: not closed, not frozen, amount finite and positive.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple, Union
import sys
import threading

from .currency import AmountLike, Currency, Money, to_decimal, to_exact_money, to_money
from .errors import (
    AccountClosedError, AccountFrozenError, AccountNotZeroError,
    InsufficientFundsError, InvalidAmountError
)
from .logging_config import get_logger, log_action
from .transactions import Direction, TransactionKind, TransactionRecord

logger = get_logger("account_core.accounts")

DEFAULT_CURRENCY = Currency.USD
DEFAULT_OVERDRAFT_FEE = Decimal('35.00')
DEFAULT_OVERDRAFT_LIMIT = Decimal('500.00')
DEFAULT_SAVINGS_RATE = Decimal('0.02')


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"  # All operations permitted
    FROZEN = "frozen"  # Money movement blocked until unfrozen
    CLOSED = "closed"  # Terminal, balance is zero forever


class ProductType(Enum):
    """Account variants"""
    CHECKING = "checking"
    SAVINGS = "savings"


@dataclass(frozen=True)
class CheckingTerms:
    """Checking variant: may go negative down to -overdraft_limit"""
    overdraft_limit: Money
    overdraft_fee: Money

    def __post_init__(self):
        if self.overdraft_limit.is_negative():
            raise ValueError("Overdraft limit cannot be negative")
        if self.overdraft_fee.is_negative():
            raise ValueError("Overdraft fee cannot be negative")
        if self.overdraft_limit.currency != self.overdraft_fee.currency:
            raise ValueError("Overdraft limit and fee must share a currency")

    @property
    def product_type(self) -> ProductType:
        return ProductType.CHECKING

    def interest_rate_for(self, rate_provider) -> Decimal:
        """Checking accounts earn the shared default rate"""
        if rate_provider is None:
            raise ValueError("Checking accounts need a rate provider to resolve interest")
        return to_decimal(rate_provider.get_rate())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_type': self.product_type.value,
            'overdraft_limit': str(self.overdraft_limit.amount),
            'overdraft_fee': str(self.overdraft_fee.amount),
        }


@dataclass(frozen=True)
class SavingsTerms:
    """Savings variant: never negative, earns its own configured rate"""
    interest_rate: Decimal

    def __post_init__(self):
        rate = to_decimal(self.interest_rate)
        if rate < Decimal('0') or rate > Decimal('1'):
            raise ValueError("Interest rate must be between 0 and 1")
        object.__setattr__(self, 'interest_rate', rate)

    @property
    def product_type(self) -> ProductType:
        return ProductType.SAVINGS

    def interest_rate_for(self, rate_provider) -> Decimal:
        """Savings accounts ignore the shared rate"""
        return self.interest_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_type': self.product_type.value,
            'interest_rate': str(self.interest_rate),
        }


AccountTerms = Union[CheckingTerms, SavingsTerms]


def terms_from_dict(data: Dict[str, Any], currency: Currency) -> AccountTerms:
    """Rebuild a terms payload from its storage projection"""
    product_type = ProductType(data['product_type'])
    if product_type == ProductType.CHECKING:
        return CheckingTerms(
            overdraft_limit=Money(Decimal(data['overdraft_limit']), currency),
            overdraft_fee=Money(Decimal(data['overdraft_fee']), currency)
        )
    return SavingsTerms(interest_rate=Decimal(data['interest_rate']))


class Account:
    """
    A single bank account.

    The balance only changes through deposit, withdraw and apply_interest,
    each of which appends to the transaction log under the account lock.
    """

    def __init__(
        self,
        account_id: str,
        owner_name: str,
        terms: AccountTerms,
        currency: Currency = DEFAULT_CURRENCY,
        created_at: Optional[datetime] = None
    ):
        if not account_id or not account_id.strip():
            raise ValueError("Account id cannot be empty")
        if not owner_name or not owner_name.strip():
            raise ValueError("Owner name cannot be empty")
        if isinstance(terms, CheckingTerms) and terms.overdraft_limit.currency != currency:
            raise ValueError("Overdraft terms currency must match account currency")

        now = created_at or datetime.now(timezone.utc)
        self._id = account_id
        self._owner_name = owner_name
        self._terms = terms
        self._currency = currency
        self._balance = Money.zero(currency)
        self._status = AccountStatus.ACTIVE
        self._log: List[TransactionRecord] = []
        self._lock = threading.RLock()
        self.created_at = now
        self.updated_at = now

    @classmethod
    def checking(
        cls,
        account_id: str,
        owner_name: str,
        overdraft_limit: Optional[AmountLike] = None,
        overdraft_fee: Optional[AmountLike] = None,
        currency: Currency = DEFAULT_CURRENCY
    ) -> 'Account':
        """Open a checking account (default limit 500.00, fee 35.00)"""
        terms = CheckingTerms(
            overdraft_limit=to_money(
                DEFAULT_OVERDRAFT_LIMIT if overdraft_limit is None else overdraft_limit, currency
            ),
            overdraft_fee=to_money(
                DEFAULT_OVERDRAFT_FEE if overdraft_fee is None else overdraft_fee, currency
            )
        )
        return cls(account_id, owner_name, terms, currency)

    @classmethod
    def savings(
        cls,
        account_id: str,
        owner_name: str,
        interest_rate: Optional[Union[Decimal, float, str]] = None,
        currency: Currency = DEFAULT_CURRENCY
    ) -> 'Account':
        """Open a savings account (default rate 0.02)"""
        rate = DEFAULT_SAVINGS_RATE if interest_rate is None else to_decimal(interest_rate)
        return cls(account_id, owner_name, SavingsTerms(interest_rate=rate), currency)

    # Read-only state

    @property
    def id(self) -> str:
        return self._id

    @property
    def owner_name(self) -> str:
        return self._owner_name

    @property
    def terms(self) -> AccountTerms:
        return self._terms

    @property
    def product_type(self) -> ProductType:
        return self._terms.product_type

    @property
    def currency(self) -> Currency:
        return self._currency

    @property
    def balance(self) -> Money:
        return self._balance

    @property
    def status(self) -> AccountStatus:
        return self._status

    @property
    def lock(self) -> threading.RLock:
        """Per-account mutual exclusion; transfers take two of these in id order"""
        return self._lock

    @property
    def transaction_log(self) -> Tuple[TransactionRecord, ...]:
        with self._lock:
            return tuple(self._log)

    @property
    def is_checking(self) -> bool:
        return self.product_type == ProductType.CHECKING

    @property
    def is_savings(self) -> bool:
        return self.product_type == ProductType.SAVINGS

    @property
    def is_active(self) -> bool:
        return self._status == AccountStatus.ACTIVE

    # Guards

    def _ensure_open(self) -> None:
        """Closed is checked before frozen"""
        if self._status == AccountStatus.CLOSED:
            raise AccountClosedError(
                f"Account {self._id} is closed", account_id=self._id, status=self._status
            )
        if self._status == AccountStatus.FROZEN:
            raise AccountFrozenError(
                f"Account {self._id} is frozen: contact support",
                account_id=self._id, status=self._status
            )

    def _coerce_amount(self, amount: AmountLike) -> Money:
        try:
            money = to_exact_money(amount, self._currency)
        except ValueError as e:
            raise InvalidAmountError(f"Invalid amount: {e}") from e
        if not money.is_positive():
            raise InvalidAmountError(f"Amount must be positive, got {money.to_string()}")
        return money

    def _guard(self, amount: AmountLike) -> Money:
        self._ensure_open()
        return self._coerce_amount(amount)

    def _post(self, amount: Money, kind: TransactionKind, direction: Direction) -> TransactionRecord:
        """Apply a validated movement and append its record"""
        record = TransactionRecord(amount=amount, kind=kind, direction=direction)
        if direction == Direction.CREDIT:
            self._balance = self._balance + amount
        else:
            self._balance = self._balance - amount
        self._log.append(record)
        self.updated_at = record.created_at

        log_action(
            logger, "info",
            f"{kind.name}: {amount.to_string()} (New Balance: {self._balance.to_string()})",
            action=kind.value, resource=f"account:{self._id}",
            extra={
                "transaction_id": record.id,
                "direction": direction.value,
                "amount": str(amount.amount),
                "balance": str(self._balance.amount)
            }
        )
        return record

    # Money movement

    def deposit(self, amount: AmountLike, kind: TransactionKind = TransactionKind.DEPOSIT) -> TransactionRecord:
        """
        Credit the account

        Args:
            amount: Positive amount in the account currency
            kind: Record kind, DEPOSIT unless called by a transfer or interest

        Returns:
            The appended TransactionRecord

        Raises:
            AccountClosedError, AccountFrozenError, InvalidAmountError
        """
        with self._lock:
            money = self._guard(amount)
            return self._post(money, kind, Direction.CREDIT)

    def withdraw(self, amount: AmountLike,
                 kind: TransactionKind = TransactionKind.WITHDRAWAL) -> List[TransactionRecord]:
        """
        Debit the account under the variant's sufficiency rule

        Returns:
            The appended records: the withdrawal, followed by a FEE record
            when a checking account crossed below zero

        Raises:
            AccountClosedError, AccountFrozenError, InvalidAmountError,
            InsufficientFundsError
        """
        with self._lock:
            money = self._guard(amount)
            policy = _WITHDRAWAL_POLICIES[self.product_type]
            return policy(self, money, kind)

    def apply_interest(self, rate: Optional[Union[Decimal, float, str]] = None,
                       rate_provider=None) -> Optional[TransactionRecord]:
        """
        Credit balance x rate as INTEREST

        Without an explicit rate the variant resolves it: savings use their
        own rate, checking use rate_provider.get_rate().

        Returns:
            The INTEREST record, or None when the profit is not positive

        Raises:
            AccountClosedError, AccountFrozenError when there is profit to credit
        """
        with self._lock:
            if rate is None:
                resolved = self._terms.interest_rate_for(rate_provider)
            else:
                resolved = to_decimal(rate)

            profit = self._balance * resolved
            if not profit.is_positive():
                log_action(
                    logger, "info", "No interest applied (zero or negative profit)",
                    action="interest", resource=f"account:{self._id}",
                    extra={"rate": str(resolved), "balance": str(self._balance.amount)}
                )
                return None

            self._ensure_open()
            return self._post(profit, TransactionKind.INTEREST, Direction.CREDIT)

    # Status transitions

    def freeze(self, reason: str = "") -> None:
        """Block money movement; freezing a frozen account is a no-op"""
        with self._lock:
            self._ensure_not_closed()
            self._status = AccountStatus.FROZEN
            self.updated_at = datetime.now(timezone.utc)
            log_action(logger, "info", f"Account {self._id} frozen: {reason}",
                       action="freeze", resource=f"account:{self._id}",
                       extra={"reason": reason})

    def unfreeze(self, reason: str = "") -> None:
        """Restore ACTIVE; unfreezing an active account is a no-op"""
        with self._lock:
            self._ensure_not_closed()
            self._status = AccountStatus.ACTIVE
            self.updated_at = datetime.now(timezone.utc)
            log_action(logger, "info", f"Account {self._id} unfrozen: {reason}",
                       action="unfreeze", resource=f"account:{self._id}",
                       extra={"reason": reason})

    def close(self, reason: str = "") -> None:
        """
        Close the account permanently

        Raises:
            AccountClosedError: If already closed
            AccountNotZeroError: If the balance is not exactly zero
        """
        with self._lock:
            self._ensure_not_closed()
            if self._balance.is_positive():
                raise AccountNotZeroError(
                    f"Withdraw funds before closing: balance {self._balance.to_string()}",
                    balance=self._balance
                )
            if self._balance.is_negative():
                raise AccountNotZeroError(
                    f"Pay off debts before closing: balance {self._balance.to_string()}",
                    balance=self._balance
                )
            self._status = AccountStatus.CLOSED
            self.updated_at = datetime.now(timezone.utc)
            log_action(logger, "info", f"Account {self._id} closed: {reason}",
                       action="close", resource=f"account:{self._id}",
                       extra={"reason": reason})

    def _ensure_not_closed(self) -> None:
        if self._status == AccountStatus.CLOSED:
            raise AccountClosedError(
                f"Account {self._id} is closed", account_id=self._id, status=self._status
            )

    # Queries

    def get_transactions_by_kind(self, kind: TransactionKind) -> List[TransactionRecord]:
        """Records of one kind, in log order"""
        with self._lock:
            return [record for record in self._log if record.kind == kind]

    def statement(self) -> List[str]:
        """Statement lines: header, one line per record, current balance"""
        with self._lock:
            lines = [f"--- STATEMENT FOR: {self._owner_name} ({self._id}) ---"]
            lines.extend(record.to_line() for record in self._log)
            lines.append(f"CURRENT BALANCE: {self._balance.to_string()}")
            return lines

    def print_statement(self, stream: Optional[TextIO] = None) -> None:
        out = stream or sys.stdout
        out.write("\n".join(self.statement()) + "\n")

    # Persistence projection

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for storage, including the full log"""
        with self._lock:
            return {
                'id': self._id,
                'owner_name': self._owner_name,
                'currency': self._currency.code,
                'status': self._status.value,
                'balance': str(self._balance.amount),
                'terms': self._terms.to_dict(),
                'transactions': [record.to_dict() for record in self._log],
                'created_at': self.created_at.isoformat(),
                'updated_at': self.updated_at.isoformat()
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """
        Restore an account snapshot

        Raises:
            ValueError: If replaying the log does not reproduce the stored balance
        """
        currency = Currency[data['currency']]
        account = cls(
            account_id=data['id'],
            owner_name=data['owner_name'],
            terms=terms_from_dict(data['terms'], currency),
            currency=currency,
            created_at=datetime.fromisoformat(data['created_at'])
        )
        account._log = [TransactionRecord.from_dict(item) for item in data.get('transactions', [])]
        replayed = sum((record.signed_amount for record in account._log), Decimal('0'))
        balance = Money(Decimal(data['balance']), currency)
        if Money(replayed, currency) != balance:
            raise ValueError(
                f"Account {account.id} log replays to {replayed}, stored balance is {balance.amount}"
            )
        account._balance = balance
        account._status = AccountStatus(data['status'])
        account.updated_at = datetime.fromisoformat(data['updated_at'])
        return account

    def __eq__(self, other) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"Account({self._id!r}, owner={self._owner_name!r}, "
            f"type={self.product_type.value}, balance={self._balance.to_string()}, "
            f"status={self._status.value})"
        )


def _savings_withdrawal(account: Account, amount: Money,
                        kind: TransactionKind) -> List[TransactionRecord]:
    """Savings never go below zero"""
    if amount > account.balance:
        raise InsufficientFundsError(
            f"Insufficient funds. Attempted: {amount.to_string()}, "
            f"Available: {account.balance.to_string()}",
            requested=amount, available=account.balance
        )
    return [account._post(amount, kind, Direction.DEBIT)]


def _checking_withdrawal(account: Account, amount: Money,
                         kind: TransactionKind) -> List[TransactionRecord]:
    """
    Checking may overdraw down to -overdraft_limit.

    A withdrawal that takes a non-negative balance below zero also pays the
    flat overdraft fee, and the fee must fit inside the limit too.
    """
    terms: CheckingTerms = account.terms
    balance = account.balance
    was_non_negative = not balance.is_negative()
    crossing = was_non_negative and (balance - amount).is_negative()
    fee = terms.overdraft_fee if crossing else Money.zero(account.currency)

    if balance - amount - fee < -terms.overdraft_limit:
        raise InsufficientFundsError(
            f"Overdraft limit exceeded. Withdrawal: {amount.to_string()}, "
            f"Fee: {fee.to_string()}, "
            f"Available: {(balance + terms.overdraft_limit - fee).to_string()} "
            f"(Balance: {balance.to_string()} + Overdraft: {terms.overdraft_limit.to_string()})",
            requested=amount, available=balance + terms.overdraft_limit - fee
        )

    records = [account._post(amount, kind, Direction.DEBIT)]

    if was_non_negative and account.balance.is_negative() and fee.is_positive():
        records.append(account._post(fee, TransactionKind.FEE, Direction.DEBIT))
        log_action(
            logger, "warning",
            f"Overdraft fee {fee.to_string()} charged to account {account.id}",
            action="overdraft_fee", resource=f"account:{account.id}",
            extra={"fee": str(fee.amount), "balance": str(account.balance.amount)}
        )
    return records


_WITHDRAWAL_POLICIES: Dict[ProductType, Callable[[Account, Money, TransactionKind], List[TransactionRecord]]] = {
    ProductType.CHECKING: _checking_withdrawal,
    ProductType.SAVINGS: _savings_withdrawal,
}
