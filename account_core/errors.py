"""
Account Error Taxonomy

Typed, caller-visible failures raised by accounts, the transfer protocol and
the registry. Every guard failure is raised before any mutation happens.
TransferRollbackFailedError is the one fatal case: money has left the source
account and is held by no account.
"""

from typing import Optional

from .currency import Money


class AccountError(Exception):
    """Base class for every account-core failure"""


class InvalidAmountError(AccountError, ValueError):
    """Amount is zero, negative, non-finite or not a number"""


class InsufficientFundsError(AccountError):
    """Withdrawal would breach the zero floor or the overdraft floor"""

    def __init__(self, message: str, requested: Optional[Money] = None,
                 available: Optional[Money] = None):
        super().__init__(message)
        self.requested = requested
        self.available = available


class AccountStatusError(AccountError):
    """Operation attempted while the account is in the wrong status"""

    def __init__(self, message: str, account_id: Optional[str] = None, status=None):
        super().__init__(message)
        self.account_id = account_id
        self.status = status


class AccountFrozenError(AccountStatusError):
    """Account is frozen"""


class AccountClosedError(AccountStatusError):
    """Account is closed"""


class TargetNotActiveError(AccountStatusError):
    """Transfer target is not active"""


class AccountNotZeroError(AccountError):
    """Close attempted with a non-zero balance"""

    def __init__(self, message: str, balance: Optional[Money] = None):
        super().__init__(message)
        self.balance = balance


class SameAccountError(AccountError, ValueError):
    """Transfer source and target are the same account"""


class TransferRollbackFailedError(AccountError):
    """
    Compensating deposit of a failed transfer was itself rejected.

    The amount was withdrawn from the source, never reached the target and
    was not returned. Callers must surface this distinctly from an ordinary
    transfer failure.
    """

    def __init__(
        self,
        source_id: str,
        target_id: str,
        amount: Money,
        original_error: Exception,
        rollback_error: Exception
    ):
        super().__init__(
            f"Transfer rollback failed: {amount.to_string()} withdrawn from {source_id} "
            f"was not deposited to {target_id} and could not be returned "
            f"({rollback_error})"
        )
        self.source_id = source_id
        self.target_id = target_id
        self.amount = amount
        self.original_error = original_error
        self.rollback_error = rollback_error


class AccountNotFoundError(AccountError, KeyError):
    """No account registered under the given id"""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Account not found"


class DuplicateAccountError(AccountError):
    """An account with the same id is already registered"""
