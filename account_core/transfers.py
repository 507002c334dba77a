"""
Transfer Protocol Module

Moves money between two accounts as a withdrawal followed by a deposit.
The withdrawal is durable before the deposit is attempted, so a failed
deposit is undone with a compensating REVERSAL credit to the source. This is
a compensating transaction, not a two-phase commit.

Both account locks are held for the whole transfer, acquired in ascending
account id order so opposite-direction transfers between the same pair
cannot deadlock.
"""

from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Iterator, List

from .accounts import Account, AccountStatus
from .currency import AmountLike, Money, to_exact_money
from .errors import (
    InvalidAmountError, SameAccountError, TargetNotActiveError,
    TransferRollbackFailedError
)
from .logging_config import get_logger, log_action
from .transactions import TransactionKind, TransactionRecord

logger = get_logger("account_core.transfers")


@dataclass(frozen=True)
class TransferResult:
    """Both sides of a completed transfer"""
    source_id: str
    target_id: str
    amount: Money
    source_records: List[TransactionRecord]
    target_record: TransactionRecord

    @property
    def fee_charged(self) -> bool:
        return any(r.kind == TransactionKind.FEE for r in self.source_records)


@contextmanager
def lock_accounts(*accounts: Account) -> Iterator[None]:
    """Hold every given account's lock, acquired in ascending id order"""
    unique = {account.id: account for account in accounts}
    with ExitStack() as stack:
        for account_id in sorted(unique):
            stack.enter_context(unique[account_id].lock)
        yield


def _transfer_amount(amount: AmountLike, source: Account) -> Money:
    try:
        money = to_exact_money(amount, source.currency)
    except ValueError as e:
        raise InvalidAmountError(f"Invalid transfer amount: {e}") from e
    if not money.is_positive():
        raise InvalidAmountError("Transfer amount must be positive")
    return money


def transfer(source: Account, target: Account, amount: AmountLike) -> TransferResult:
    """
    Transfer amount from source to target

    Args:
        source: Account to debit
        target: Account to credit, must be ACTIVE
        amount: Positive amount in the source currency

    Returns:
        TransferResult with the TRANSFER records of both sides

    Raises:
        InvalidAmountError: Amount not finite and positive
        SameAccountError: Source and target are the same account
        TargetNotActiveError: Target is frozen or closed
        ValueError: Accounts hold different currencies
        Any withdrawal error of the source, with no state changed
        The target's deposit error, after the source has been made whole
        TransferRollbackFailedError: The compensating deposit also failed
    """
    money = _transfer_amount(amount, source)
    if source is target or source.id == target.id:
        raise SameAccountError(f"Cannot transfer to the same account ({source.id})")
    if source.currency != target.currency:
        raise ValueError(
            f"Cannot transfer between accounts with different currencies: "
            f"{source.currency.code} -> {target.currency.code}"
        )

    with lock_accounts(source, target):
        if target.status != AccountStatus.ACTIVE:
            raise TargetNotActiveError(
                f"Target account {target.id} is not active ({target.status.value})",
                account_id=target.id, status=target.status
            )

        source_records = source.withdraw(money, TransactionKind.TRANSFER)

        try:
            target_record = target.deposit(money, TransactionKind.TRANSFER)
        except Exception as deposit_error:
            _compensate(source, target, money, deposit_error)
            raise

    log_action(
        logger, "info",
        f"Transferred {money.to_string()} from {source.id} to {target.id}",
        action="transfer", resource=f"account:{source.id}",
        extra={
            "source_id": source.id,
            "target_id": target.id,
            "amount": str(money.amount),
            "source_transaction_id": source_records[0].id,
            "target_transaction_id": target_record.id
        }
    )
    return TransferResult(
        source_id=source.id,
        target_id=target.id,
        amount=money,
        source_records=source_records,
        target_record=target_record
    )


def _compensate(source: Account, target: Account, amount: Money,
                deposit_error: Exception) -> TransactionRecord:
    """Return the withdrawn amount to the source as a REVERSAL credit"""
    try:
        record = source.deposit(amount, TransactionKind.REVERSAL)
    except Exception as rollback_error:
        log_action(
            logger, "critical",
            f"Rollback failed for transfer from {source.id} to {target.id}: "
            f"{amount.to_string()} is held by no account",
            action="transfer_rollback_failed", resource=f"account:{source.id}",
            extra={
                "source_id": source.id,
                "target_id": target.id,
                "amount": str(amount.amount),
                "deposit_error": str(deposit_error),
                "rollback_error": str(rollback_error)
            },
            exc_info=rollback_error
        )
        raise TransferRollbackFailedError(
            source_id=source.id,
            target_id=target.id,
            amount=amount,
            original_error=deposit_error,
            rollback_error=rollback_error
        ) from rollback_error

    log_action(
        logger, "warning",
        f"Transfer from {source.id} to {target.id} failed: {deposit_error}. "
        f"Amount returned to source account.",
        action="transfer_reversed", resource=f"account:{source.id}",
        extra={
            "source_id": source.id,
            "target_id": target.id,
            "amount": str(amount.amount),
            "reversal_transaction_id": record.id
        }
    )
    return record
