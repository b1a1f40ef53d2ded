from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from fintracker.models import Category, Transaction, TransactionType


def filter_transactions(
        transactions: Iterable[Transaction],
        category: Optional[Category] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
) -> list[Transaction]:
    """Return the transactions matching every given criterion, in ledger order.

    A criterion left as None matches everything; both date bounds are inclusive.
    """
    return [
        t for t in transactions
        if (category is None or t.category == category) and
           (start_date is None or t.date >= start_date) and
           (end_date is None or t.date <= end_date)
    ]


def month_bounds(reference_date: date) -> tuple[date, date]:
    first = reference_date.replace(day=1)
    last = first + relativedelta(months=1, days=-1)
    return first, last


def month_expense_total(transactions: Iterable[Transaction], reference_date: date) -> Decimal:
    """Total spent in the calendar month containing reference_date."""
    first, last = month_bounds(reference_date)
    return sum(
        (t.amount for t in transactions
         if t.type is TransactionType.EXPENSE and first <= t.date <= last),
        Decimal("0"),
    )


def update_totals(total: dict, t: Transaction) -> None:
    if t.type is TransactionType.INCOME:
        total["income"] += t.amount
    else:
        total["expense"] += t.amount
    total["net"] = total["income"] - total["expense"]


def empty_totals() -> dict:
    return {
        "income": Decimal("0"),
        "expense": Decimal("0"),
        "net": Decimal("0"),
    }


def totals(transactions: Iterable[Transaction]) -> dict:
    total = empty_totals()
    for t in transactions:
        update_totals(total, t)
    return total


def totals_by_category(transactions: Sequence[Transaction]) -> dict[Category, dict]:
    """Income, expense and net per category, for categories that occur."""
    categories: dict[Category, dict] = {}
    for t in transactions:
        update_totals(categories.setdefault(t.category, empty_totals()), t)
    return categories
