"""
Account Registry Module

Owns the set of accounts: allocates ids, hands out shared Account
references, holds the shared default interest rate, persists account
snapshots through the storage layer and records every successful operation
in the audit trail. Operations are thin wrappers that look accounts up by id
and delegate to the account and transfer core; failures propagate unchanged.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Union
import threading
import uuid

from .accounts import Account, ProductType
from .audit import AuditTrail, AuditEventType
from .config import AccountCoreConfig, get_config
from .currency import AmountLike, Currency
from .errors import AccountNotFoundError, DuplicateAccountError, TransferRollbackFailedError
from .interest import InterestBatchResult, InterestScheduler, RateProvider, run_interest_batch
from .logging_config import get_logger, log_action
from .storage import InMemoryStorage, StorageInterface
from .transactions import TransactionKind, TransactionRecord
from .transfers import TransferResult, lock_accounts, transfer


class AccountRegistry:
    """
    Registry of accounts with persistence, audit and the interest batch
    """

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        audit_trail: Optional[AuditTrail] = None,
        rate_provider: Optional[RateProvider] = None,
        config: Optional[AccountCoreConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage or InMemoryStorage()
        if audit_trail is None and self.config.enable_audit_logging:
            audit_trail = AuditTrail(self.storage)
        self.audit_trail = audit_trail
        self.rate_provider = rate_provider or RateProvider(self.config.default_interest_rate)
        self.currency = Currency[self.config.currency]
        self.accounts_table = "accounts"
        self.logger = get_logger("account_core.registry")

        self._accounts: Dict[str, Account] = {}
        self._lock = threading.RLock()

    # Audit and persistence helpers

    def _audit(self, event_type: AuditEventType, entity_id: str,
               metadata: Optional[Dict] = None, entity_type: str = "account") -> None:
        if self.audit_trail is not None:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata or {}
            )

    def _persist(self, *accounts: Account) -> None:
        if not self.config.persist_on_change:
            return
        with self.storage.atomic():
            for account in accounts:
                self.storage.save(self.accounts_table, account.id, account.to_dict())

    def _audit_records(self, account: Account, records: List[TransactionRecord]) -> None:
        event_types = {
            TransactionKind.DEPOSIT: AuditEventType.DEPOSIT_POSTED,
            TransactionKind.WITHDRAWAL: AuditEventType.WITHDRAWAL_POSTED,
            TransactionKind.FEE: AuditEventType.OVERDRAFT_FEE_CHARGED,
            TransactionKind.INTEREST: AuditEventType.INTEREST_APPLIED,
        }
        for record in records:
            self._audit(event_types[record.kind], account.id, {
                "transaction_id": record.id,
                "amount": record.amount.to_string(),
                "balance": account.balance.to_string()
            })

    # Account lifecycle

    def register_account(self, account: Account) -> Account:
        """
        Add an existing account

        Raises:
            DuplicateAccountError: If the id is already registered
        """
        with account.lock:
            with self._lock:
                if account.id in self._accounts:
                    raise DuplicateAccountError(f"Account {account.id} already exists")
                self._accounts[account.id] = account

            self._persist(account)
            self._audit(AuditEventType.ACCOUNT_OPENED, account.id, {
                "owner_name": account.owner_name,
                "product_type": account.product_type.value,
                "currency": account.currency.code,
                "terms": account.terms.to_dict()
            })
        log_action(
            self.logger, "info", f"Account opened: {account.id} ({account.product_type.value})",
            action="open_account", resource=f"account:{account.id}",
            extra={"owner_name": account.owner_name}
        )
        return account

    def _new_account_id(self) -> str:
        while True:
            account_id = str(uuid.uuid4())
            if account_id not in self._accounts:
                return account_id

    def open_checking_account(self, owner_name: str,
                              overdraft_limit: Optional[AmountLike] = None) -> Account:
        """Open a checking account with the configured limit and fee"""
        account = Account.checking(
            self._new_account_id(),
            owner_name,
            overdraft_limit=(
                self.config.default_overdraft_limit if overdraft_limit is None else overdraft_limit
            ),
            overdraft_fee=self.config.overdraft_fee,
            currency=self.currency
        )
        return self.register_account(account)

    def open_savings_account(self, owner_name: str,
                             interest_rate: Optional[Union[Decimal, float, str]] = None) -> Account:
        """Open a savings account earning its own rate"""
        account = Account.savings(
            self._new_account_id(),
            owner_name,
            interest_rate=(
                self.config.default_savings_rate if interest_rate is None else interest_rate
            ),
            currency=self.currency
        )
        return self.register_account(account)

    def open_account(self, owner_name: str, product_type: Union[ProductType, str],
                     overdraft_limit: Optional[AmountLike] = None,
                     interest_rate: Optional[Union[Decimal, float, str]] = None) -> Account:
        """Open an account of the named variant ("checking" or "savings")"""
        if isinstance(product_type, str):
            try:
                product_type = ProductType(product_type.strip().lower())
            except ValueError:
                raise ValueError(f"Account type is not available: {product_type}")

        if product_type == ProductType.CHECKING:
            return self.open_checking_account(owner_name, overdraft_limit=overdraft_limit)
        return self.open_savings_account(owner_name, interest_rate=interest_rate)

    def get_account(self, account_id: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If no account has this id
        """
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} does not exist")
        return account

    def list_accounts(self) -> List[Account]:
        with self._lock:
            return list(self._accounts.values())

    def savings_accounts(self) -> List[Account]:
        return [account for account in self.list_accounts() if account.is_savings]

    # Each wrapper keeps the account lock until its snapshot is stored, so a
    # later mutation can never be overwritten by an older snapshot.

    def freeze_account(self, account_id: str, reason: str) -> Account:
        account = self.get_account(account_id)
        with account.lock:
            account.freeze(reason)
            self._persist(account)
            self._audit(AuditEventType.ACCOUNT_FROZEN, account_id, {"reason": reason})
        return account

    def unfreeze_account(self, account_id: str, reason: str) -> Account:
        account = self.get_account(account_id)
        with account.lock:
            account.unfreeze(reason)
            self._persist(account)
            self._audit(AuditEventType.ACCOUNT_UNFROZEN, account_id, {"reason": reason})
        return account

    def close_account(self, account_id: str, reason: str) -> Account:
        account = self.get_account(account_id)
        with account.lock:
            account.close(reason)
            self._persist(account)
            self._audit(AuditEventType.ACCOUNT_CLOSED, account_id, {"reason": reason})
        return account

    # Money movement

    def deposit(self, account_id: str, amount: AmountLike) -> TransactionRecord:
        account = self.get_account(account_id)
        with account.lock:
            record = account.deposit(amount)
            self._persist(account)
            self._audit_records(account, [record])
        return record

    def withdraw(self, account_id: str, amount: AmountLike) -> List[TransactionRecord]:
        account = self.get_account(account_id)
        with account.lock:
            records = account.withdraw(amount)
            self._persist(account)
            self._audit_records(account, records)
        return records

    def transfer(self, source_id: str, target_id: str, amount: AmountLike) -> TransferResult:
        """
        Transfer between two registered accounts

        A transfer whose deposit failed and was reversed re-raises the
        deposit error after auditing TRANSFER_REVERSED; a failed reversal is
        audited as TRANSFER_ROLLBACK_FAILED and re-raised.
        """
        source = self.get_account(source_id)
        target = self.get_account(target_id)

        with lock_accounts(source, target):
            mark = len(source.transaction_log)
            try:
                result = transfer(source, target, amount)
            except TransferRollbackFailedError as e:
                self._persist(source)
                self._audit(AuditEventType.TRANSFER_ROLLBACK_FAILED, source_id, {
                    "target_id": target_id,
                    "amount": e.amount.to_string(),
                    "deposit_error": str(e.original_error),
                    "rollback_error": str(e.rollback_error)
                }, entity_type="transfer")
                raise
            except Exception as e:
                reversals = [
                    record for record in source.transaction_log[mark:]
                    if record.kind == TransactionKind.REVERSAL
                ]
                if reversals:
                    self._persist(source)
                    self._audit(AuditEventType.TRANSFER_REVERSED, source_id, {
                        "target_id": target_id,
                        "amount": reversals[0].amount.to_string(),
                        "reversal_transaction_id": reversals[0].id,
                        "error": str(e)
                    }, entity_type="transfer")
                raise

            self._persist(source, target)

        fee_records = [r for r in result.source_records if r.kind == TransactionKind.FEE]
        self._audit(AuditEventType.TRANSFER_COMPLETED, source_id, {
            "target_id": target_id,
            "amount": result.amount.to_string(),
            "source_transaction_id": result.source_records[0].id,
            "target_transaction_id": result.target_record.id
        }, entity_type="transfer")
        self._audit_records(source, fee_records)
        return result

    # Interest

    def set_interest_rate(self, rate: Union[Decimal, float, str]) -> Decimal:
        """Change the shared default rate used by checking accounts"""
        old_rate = self.rate_provider.get_rate()
        self.rate_provider.set_rate(rate)
        new_rate = self.rate_provider.get_rate()
        self._audit(AuditEventType.INTEREST_RATE_CHANGED, "default_rate", {
            "old_rate": str(old_rate),
            "new_rate": str(new_rate)
        }, entity_type="rate")
        return new_rate

    def apply_interest(self, account_id: str) -> Optional[TransactionRecord]:
        """Apply the variant's interest to one account; status errors propagate"""
        account = self.get_account(account_id)
        with account.lock:
            record = account.apply_interest(rate_provider=self.rate_provider)
            if record is not None:
                self._persist(account)
                self._audit_records(account, [record])
        return record

    def pay_global_interest(self) -> InterestBatchResult:
        """Apply interest to every savings account, collecting failures"""
        result = run_interest_batch(self.savings_accounts(), self.rate_provider)

        touched = [self.get_account(account_id) for account_id in result.applied_accounts]
        # Snapshots are taken under the locks, so they include any writes
        # that landed after the batch released an account
        with lock_accounts(*touched):
            if touched:
                self._persist(*touched)
            for account, record in zip(touched, result.applied):
                self._audit_records(account, [record])

        self._audit(AuditEventType.INTEREST_BATCH_RUN, "interest_batch", {
            "applied": len(result.applied),
            "skipped": len(result.skipped),
            "failed": len(result.failures)
        }, entity_type="batch")
        return result

    def create_interest_scheduler(self, interval_seconds: Optional[float] = None) -> InterestScheduler:
        return InterestScheduler(
            self.pay_global_interest,
            interval_seconds or self.config.interest_batch_interval_seconds
        )

    # Queries

    def get_transactions_by_kind(self, account_id: str,
                                 kind: Union[TransactionKind, str]) -> List[TransactionRecord]:
        if isinstance(kind, str):
            kind = TransactionKind(kind.lower())
        return self.get_account(account_id).get_transactions_by_kind(kind)

    def statement(self, account_id: str) -> List[str]:
        return self.get_account(account_id).statement()

    # Persistence

    def save(self) -> int:
        """Write every account snapshot to storage"""
        accounts = self.list_accounts()
        with self.storage.atomic():
            for account in accounts:
                self.storage.save(self.accounts_table, account.id, account.to_dict())
        log_action(self.logger, "info", f"Saved {len(accounts)} accounts",
                   action="save", extra={"count": len(accounts)})
        return len(accounts)

    def load(self) -> int:
        """
        Replace the in-memory accounts with the stored snapshots

        Raises:
            ValueError: If a stored snapshot is inconsistent
        """
        loaded = {}
        for data in self.storage.load_all(self.accounts_table):
            account = Account.from_dict(data)
            loaded[account.id] = account

        with self._lock:
            self._accounts = loaded

        log_action(self.logger, "info", f"Loaded {len(loaded)} accounts",
                   action="load", extra={"count": len(loaded)})
        return len(loaded)
