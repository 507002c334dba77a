"""
Transaction Record Module

Immutable facts of balance-affecting events. A record states the magnitude
of the movement; its kind and direction say which way the balance moved.
Records are created only by account mutations and appended to the owning
account's log. They are never shared between accounts, not even for the two
sides of a transfer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
import uuid

from .currency import Money, Currency


class TransactionKind(Enum):
    """Types of balance-affecting events"""
    DEPOSIT = "deposit"        # Money added to the account
    WITHDRAWAL = "withdrawal"  # Money removed from the account
    TRANSFER = "transfer"      # One side of an inter-account transfer
    FEE = "fee"                # Overdraft fee
    INTEREST = "interest"      # Interest credited
    REVERSAL = "reversal"      # Compensating credit of a failed transfer


class Direction(Enum):
    """Which way a record moved the balance"""
    CREDIT = "credit"
    DEBIT = "debit"


def _new_record_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=False)
class TransactionRecord:
    """
    One immutable balance-affecting event.

    Identity is the id: two records with the same amount, kind and time
    are still different events.
    """
    amount: Money
    kind: TransactionKind
    direction: Direction
    id: str = field(default_factory=_new_record_id)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self):
        if not self.amount.is_positive():
            raise ValueError("Transaction amount must be positive")

    def __eq__(self, other) -> bool:
        if not isinstance(other, TransactionRecord):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_credit(self) -> bool:
        return self.direction == Direction.CREDIT

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign of its effect on the balance"""
        if self.is_credit:
            return self.amount.amount
        return -self.amount.amount

    def to_line(self) -> str:
        """Render as a single statement line"""
        timestamp = self.created_at.strftime("%Y-%m-%d %H:%M:%S")
        return (
            f"[{timestamp}] {self.kind.name}: {self.amount.to_string()} "
            f"(ID: {self.id[:8]})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'amount': str(self.amount.amount),
            'currency': self.amount.currency.code,
            'kind': self.kind.value,
            'direction': self.direction.value,
            'created_at': self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        """Create record from dictionary"""
        return cls(
            id=data['id'],
            amount=Money(Decimal(data['amount']), Currency[data['currency']]),
            kind=TransactionKind(data['kind']),
            direction=Direction(data['direction']),
            created_at=datetime.fromisoformat(data['created_at'])
        )
