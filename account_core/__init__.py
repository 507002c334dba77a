"""
Account Core

Bank accounts with status-gated operations, variant-specific withdrawal and
interest rules, and compensating transfers between accounts.
"""

__version__ = "1.0.0"

from .currency import Currency, Money
from .transactions import Direction, TransactionKind, TransactionRecord
from .errors import (
    AccountError, AccountClosedError, AccountFrozenError, AccountNotFoundError,
    AccountNotZeroError, AccountStatusError, DuplicateAccountError,
    InsufficientFundsError, InvalidAmountError, SameAccountError,
    TargetNotActiveError, TransferRollbackFailedError
)
from .accounts import Account, AccountStatus, CheckingTerms, ProductType, SavingsTerms
from .interest import InterestScheduler, RateProvider, run_interest_batch
from .transfers import TransferResult, transfer
from .registry import AccountRegistry

__all__ = [
    "Currency", "Money",
    "Direction", "TransactionKind", "TransactionRecord",
    "AccountError", "AccountClosedError", "AccountFrozenError", "AccountNotFoundError",
    "AccountNotZeroError", "AccountStatusError", "DuplicateAccountError",
    "InsufficientFundsError", "InvalidAmountError", "SameAccountError",
    "TargetNotActiveError", "TransferRollbackFailedError",
    "Account", "AccountStatus", "CheckingTerms", "ProductType", "SavingsTerms",
    "InterestScheduler", "RateProvider", "run_interest_batch",
    "TransferResult", "transfer",
    "AccountRegistry",
]
