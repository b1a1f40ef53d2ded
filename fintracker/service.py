from __future__ import annotations
import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from fintracker.budget import BudgetMonitor, BudgetStatus
from fintracker.events import NotificationDispatcher
from fintracker.logic import filter_transactions, month_expense_total
from fintracker.models import Category, Transaction
from fintracker.storage import JsonStorage

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_BUDGET = Decimal("2000000")


class TransactionService:
    """Owns the session ledger and the budget monitor watching it.

    The ledger is loaded once from storage and written back in full after
    every add or delete; the budget is re-checked after each mutation. All
    public operations are serialized on one lock.
    """

    def __init__(
        self,
        storage: JsonStorage,
        dispatcher: Optional[NotificationDispatcher] = None,
        monthly_budget=DEFAULT_MONTHLY_BUDGET,
        clock: Callable[[], date] = date.today,
    ):
        self._storage = storage
        self._clock = clock
        self._lock = threading.RLock()
        self.dispatcher = dispatcher if dispatcher is not None else NotificationDispatcher()
        self._monitor = BudgetMonitor(self.dispatcher, monthly_budget)
        self._transactions: list[Transaction] = storage.load()
        self._monitor.status = self._monitor.evaluate(self.current_month_expense_total())
        self.last_save_ok = True

    # ===== LEDGER =====
    def add(self, transaction: Transaction) -> None:
        with self._lock:
            if any(t.id == transaction.id for t in self._transactions):
                raise ValueError(f"Transaction id already exists: {transaction.id}")
            self._transactions.append(transaction)
            logger.info("Added %s %s (%s)", transaction.type.value, transaction.amount, transaction.id)
            self._save_and_check()

    def delete(self, transaction_id: str) -> int:
        """Remove every transaction with this id; unknown ids are a no-op."""
        with self._lock:
            count = len(self._transactions)
            self._transactions = [t for t in self._transactions if t.id != transaction_id]
            removed = count - len(self._transactions)
            if removed:
                logger.info("Deleted transaction %s", transaction_id)
            self._save_and_check()
            return removed

    def list(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            return next((t for t in self._transactions if t.id == transaction_id), None)

    def filter(
        self,
        category: Optional[Category] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Transaction]:
        with self._lock:
            return filter_transactions(self._transactions, category, start_date, end_date)

    def current_month_expense_total(self, reference_date: Optional[date] = None) -> Decimal:
        with self._lock:
            return month_expense_total(self._transactions, reference_date or self._clock())

    def _save_and_check(self) -> None:
        self.last_save_ok = self._storage.save(self._transactions)
        if not self.last_save_ok:
            logger.warning("Ledger not persisted; keeping %d transactions in memory", len(self._transactions))
        self._monitor.check_status(self.current_month_expense_total())

    # ===== BUDGET =====
    @property
    def monthly_budget(self) -> Decimal:
        return self._monitor.monthly_budget

    @property
    def alerted(self) -> bool:
        return self._monitor.alerted

    def set_budget(self, value) -> BudgetStatus:
        with self._lock:
            return self._monitor.set_budget(value, self.current_month_expense_total())

    def check_budget_status(self) -> BudgetStatus:
        with self._lock:
            return self._monitor.check_status(self.current_month_expense_total())

    def budget_status(self) -> dict:
        with self._lock:
            spent = self.current_month_expense_total()
            return {
                "budget": self._monitor.monthly_budget,
                "spent": spent,
                "percentage": self._monitor.percentage(spent),
                "status": self._monitor.evaluate(spent),
                "alerted": self._monitor.alerted,
            }
