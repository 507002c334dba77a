"""
Currency and Money Module

Handles ISO 4217 currency codes and exact Decimal money for every balance,
fee and interest amount. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from enum import Enum
from typing import Union

# Set global decimal context for financial precision
getcontext().prec = 28

AmountLike = Union['Money', Decimal, int, float, str]


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places
    CAD = ("CAD", 2)  # Canadian Dollar, 2 decimal places
    CHF = ("CHF", 2)  # Swiss Franc, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    Amounts are rounded half-up to the currency precision on construction.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        if not self.amount.is_finite():
            raise ValueError(f"Money amount must be finite, got {self.amount}")

        rounded = self.amount.quantize(
            Decimal('0.1') ** self.currency.precision,
            rounding=ROUND_HALF_UP
        )
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(Decimal('0'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency.code} and {other.currency.code}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {other.currency.code} from {self.currency.code}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount), self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        if self.currency.precision == 0:
            return f"{self.currency.code} {self.amount:,.0f}"
        else:
            return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


def decimal_from_string(value: str) -> Decimal:
    """
    Strictly convert a numeric string to Decimal

    Only surrounding whitespace is ignored. Currency symbols, thousands
    separators, underscores and any other stray characters are rejected
    rather than stripped, so "12abc34" never becomes 1234.

    Raises:
        ValueError: If the string is not a plain decimal number
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Value must be a non-empty string")

    text = value.strip()
    if '_' in text:
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a numeric input to a finite Decimal

    Floats go through str() so 0.1 becomes Decimal('0.1'), not its binary
    expansion. Booleans are rejected even though they are ints.

    Raises:
        ValueError: If the value is not a number or is NaN/Infinity
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = decimal_from_string(value)
    else:
        raise ValueError(f"Not a monetary amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def to_money(value: AmountLike, currency: Currency) -> Money:
    """
    Build Money in the given currency from any accepted amount input

    The amount is rounded to the currency precision; use to_exact_money for
    amounts supplied by a caller.

    Raises:
        ValueError: If the value is not a finite number or is Money in
            another currency
    """
    if isinstance(value, Money):
        if value.currency != currency:
            raise ValueError(
                f"Amount currency {value.currency.code} does not match {currency.code}"
            )
        return value
    return Money(to_decimal(value), currency)


def to_exact_money(value: AmountLike, currency: Currency) -> Money:
    """
    Build Money without rounding

    Raises:
        ValueError: As to_money, or if the value has more decimal places
            than the currency allows (0.005 USD is not a cent)
    """
    if isinstance(value, Money):
        return to_money(value, currency)

    amount = to_decimal(value)
    quantum = Decimal('0.1') ** currency.precision
    try:
        exact = amount == amount.quantize(quantum)
    except InvalidOperation:
        raise ValueError(f"Amount {value!r} is out of range")
    if not exact:
        raise ValueError(
            f"Amount {value!r} has more than {currency.precision} decimal places "
            f"for {currency.code}"
        )
    return Money(amount, currency)
