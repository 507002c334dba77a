"""
Interest Policy Module

Rate resolution per account variant, the shared default rate holder and the
periodic interest batch. Savings accounts earn their own configured rate;
checking accounts earn the shared rate held by a RateProvider that the
registry owns and passes in explicitly.

The batch is the only place where interest failures are logged instead of
raised: Account.apply_interest propagates status errors to its caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Union
import threading

from .accounts import Account
from .currency import to_decimal
from .errors import AccountError
from .logging_config import get_logger, log_action
from .transactions import TransactionRecord

logger = get_logger("account_core.interest")

DEFAULT_INTEREST_RATE = Decimal('0.05')


class RateProvider:
    """
    Thread-safe holder of the shared default interest rate

    The core treats it as an opaque value source: it only ever calls
    get_rate().
    """

    def __init__(self, rate: Union[Decimal, float, str] = DEFAULT_INTEREST_RATE):
        self._lock = threading.Lock()
        self._rate = self._validate(rate)

    @staticmethod
    def _validate(rate: Union[Decimal, float, str]) -> Decimal:
        value = to_decimal(rate)
        if value < Decimal('0') or value > Decimal('1'):
            raise ValueError("Interest rate must be between 0 and 1")
        return value

    def get_rate(self) -> Decimal:
        with self._lock:
            return self._rate

    def set_rate(self, rate: Union[Decimal, float, str]) -> None:
        value = self._validate(rate)
        with self._lock:
            old = self._rate
            self._rate = value
        log_action(logger, "info", f"Default interest rate changed from {old} to {value}",
                   action="set_rate", extra={"old_rate": str(old), "new_rate": str(value)})


def resolve_interest_rate(account: Account, rate_provider: Optional[RateProvider] = None) -> Decimal:
    """Rate the account earns: its own for savings, the shared one for checking"""
    return account.terms.interest_rate_for(rate_provider)


def apply_interest(account: Account, rate_provider: Optional[RateProvider] = None) -> Optional[TransactionRecord]:
    """Resolve the variant's rate and credit the interest; errors propagate"""
    return account.apply_interest(rate_provider=rate_provider)


@dataclass
class InterestBatchResult:
    """Outcome of one interest batch run"""
    started_at: datetime
    applied: List[TransactionRecord] = field(default_factory=list)
    applied_accounts: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)   # No positive profit
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def total_accounts(self) -> int:
        return len(self.applied_accounts) + len(self.skipped) + len(self.failures)

    def to_dict(self) -> Dict:
        return {
            "started_at": self.started_at.isoformat(),
            "applied": {
                account_id: str(record.amount.amount)
                for account_id, record in zip(self.applied_accounts, self.applied)
            },
            "skipped": list(self.skipped),
            "failures": dict(self.failures),
        }


def run_interest_batch(accounts: Iterable[Account],
                       rate_provider: Optional[RateProvider] = None) -> InterestBatchResult:
    """
    Apply interest to every savings account given

    Non-savings accounts are ignored. Failures from frozen or closed
    accounts are logged and collected, never raised.
    """
    result = InterestBatchResult(started_at=datetime.now(timezone.utc))

    for account in accounts:
        if not account.is_savings:
            continue
        try:
            record = apply_interest(account, rate_provider)
        except AccountError as e:
            result.failures[account.id] = str(e)
            log_action(
                logger, "warning", f"Interest not applied to {account.id}: {e}",
                action="interest_batch", resource=f"account:{account.id}",
                extra={"error": type(e).__name__}
            )
            continue

        if record is None:
            result.skipped.append(account.id)
        else:
            result.applied.append(record)
            result.applied_accounts.append(account.id)

    log_action(
        logger, "info",
        f"Interest batch finished: {len(result.applied)} applied, "
        f"{len(result.skipped)} skipped, {len(result.failures)} failed",
        action="interest_batch",
        extra={"applied": len(result.applied), "skipped": len(result.skipped),
               "failed": len(result.failures)}
    )
    return result


class InterestScheduler:
    """
    Background thread that runs an interest batch every interval

    A tick that raises is logged with its traceback and the loop keeps
    running; stop() ends the loop and joins the thread.
    """

    def __init__(self, batch: Callable[[], InterestBatchResult], interval_seconds: float = 10.0):
        if interval_seconds <= 0:
            raise ValueError("Interval must be positive")
        self._batch = batch
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.last_result: Optional[InterestBatchResult] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="interest-batch", daemon=True
        )
        self._thread.start()
        log_action(logger, "info", "Interest scheduler started",
                   action="scheduler_start", extra={"interval_seconds": self.interval_seconds})

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log_action(logger, "info", "Interest scheduler stopped", action="scheduler_stop")

    def run_once(self) -> Optional[InterestBatchResult]:
        """Run one batch, logging rather than raising unexpected errors"""
        try:
            result = self._batch()
        except Exception as e:
            log_action(logger, "error", f"Interest batch failed: {e}",
                       action="interest_batch", exc_info=e)
            return None
        self.runs += 1
        self.last_result = result
        return result

    def _run(self) -> None:
        # First run happens one interval after start
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()
