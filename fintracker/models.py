from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from uuid import uuid4


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Category(str, Enum):
    FOOD = "FOOD"
    TRANSPORT = "TRANSPORT"
    SHOPPING = "SHOPPING"
    BILLS = "BILLS"
    ENTERTAINMENT = "ENTERTAINMENT"
    HEALTH = "HEALTH"
    EDUCATION = "EDUCATION"
    SALARY = "SALARY"
    INVESTMENT = "INVESTMENT"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Transaction:
    id: str
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    category: Category

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("Amount must not be negative")

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type is TransactionType.INCOME else -self.amount


@dataclass
class BudgetState:
    monthly_budget: Decimal = Decimal("0")
    alerted: bool = False


def new_transaction_id() -> str:
    return uuid4().hex


def create_transaction(
        t_date: date,
        description: str,
        amount,
        t_type,
        category,
) -> Transaction:
    """Build a validated transaction with a freshly generated id."""
    description = (description or "").strip()
    if not description:
        raise ValueError("Description must not be empty")

    return Transaction(
        id=new_transaction_id(),
        date=t_date,
        description=description,
        amount=to_decimal(amount),
        type=parse_type(t_type),
        category=parse_category(category),
    )


# keeps every amount exact through a JSON float
MAX_AMOUNT = Decimal("999999999999.99")
CENTS = Decimal("0.01")


# ===== BOUNDARY PARSERS =====
def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps floats like 0.1 from dragging binary noise along
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Amount must be a number, got '{value}'")
    if not result.is_finite():
        raise ValueError(f"Amount must be a number, got '{value}'")
    if result < 0:
        raise ValueError("Amount must not be negative")
    if result > MAX_AMOUNT:
        raise ValueError(f"Amount must not exceed {MAX_AMOUNT:,}")
    return result.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_amount(text: str) -> Decimal:
    return to_decimal(text)


def parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except (AttributeError, ValueError):
        raise ValueError("Date must be in YYYY-MM-DD format")


def parse_type(value) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).strip().upper())
    except ValueError:
        raise ValueError("Type must be 'income' or 'expense'")


def parse_category(value) -> Category:
    if isinstance(value, Category):
        return value
    try:
        return Category(str(value).strip().upper())
    except ValueError:
        choices = ", ".join(c.value.lower() for c in Category)
        raise ValueError(f"Unknown category '{value}', use one of: {choices}")
