import unittest
import io
import json
import os
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import openai

from fintracker.models import (
    TransactionType, Category, Transaction, BudgetState,
    create_transaction, parse_amount, parse_date, parse_type, parse_category
)

from fintracker.logic import (
    filter_transactions, month_bounds, month_expense_total, totals, totals_by_category
)

from fintracker.events import NotificationDispatcher, NotificationLogger
from fintracker.budget import BudgetMonitor, BudgetStatus, budget_exceeded_message
from fintracker.storage import JsonStorage
from fintracker.service import TransactionService
from fintracker.reports import (
    DailyReport, MonthlyReport, YearlyReport, REPORTS, generate_report, group_totals
)
from fintracker.advisor import (
    AdviceError, AdviceResult, FinancialAdvisor, build_summary, request_advice
)
from fintracker.config import configure_logging, load_settings
from fintracker.cli import FinanceTrackerCLI
from fintracker.main import build_service


TODAY = date(2024, 3, 15)


def expense(amount, t_date=TODAY, category=Category.FOOD, desc="Groceries"):
    return create_transaction(t_date, desc, amount, TransactionType.EXPENSE, category)


def income(amount, t_date=TODAY, category=Category.SALARY, desc="Salary"):
    return create_transaction(t_date, desc, amount, TransactionType.INCOME, category)


class FailingStorage:
    """Storage whose writes always fail, like a read-only disk."""

    def __init__(self, transactions=None):
        self.transactions = list(transactions or [])
        self.saves = 0

    def load(self):
        return list(self.transactions)

    def save(self, transactions):
        self.saves += 1
        return False


class TempDirTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.addCleanup(self._tmp.cleanup)


class TestModels(unittest.TestCase):
    def test_create_transaction(self):
        """create_transaction validates input and assigns a fresh id"""
        t = create_transaction(date(2024, 1, 5), " Lunch ", "12.50", "expense", "food")
        self.assertEqual(t.date, date(2024, 1, 5))
        self.assertEqual(t.description, "Lunch")
        self.assertEqual(t.amount, Decimal("12.50"))
        self.assertIs(t.type, TransactionType.EXPENSE)
        self.assertIs(t.category, Category.FOOD)
        self.assertEqual(len(t.id), 32)

    def test_ids_are_unique(self):
        ids = {expense(1).id for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_transaction_is_immutable(self):
        t = expense(10)
        with self.assertRaises(AttributeError):
            t.amount = Decimal("20")

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValueError):
            create_transaction(TODAY, "Refund", "-5", "expense", "food")
        with self.assertRaises(ValueError):
            Transaction("x", TODAY, "Refund", Decimal("-1"), TransactionType.EXPENSE, Category.OTHER)

    def test_zero_amount_allowed(self):
        self.assertEqual(expense(0).amount, Decimal("0"))

    def test_empty_description_rejected(self):
        with self.assertRaises(ValueError):
            create_transaction(TODAY, "   ", "5", "expense", "food")

    def test_parsers(self):
        """Boundary parsers accept user text and reject bad values"""
        self.assertEqual(parse_amount(" 1500.75 "), Decimal("1500.75"))
        self.assertEqual(parse_date("2024-02-29"), date(2024, 2, 29))
        self.assertIs(parse_type("Income"), TransactionType.INCOME)
        self.assertIs(parse_category("transport"), Category.TRANSPORT)

        for bad in ("abc", "", "nan", "-3"):
            with self.assertRaises(ValueError):
                parse_amount(bad)
        for bad in ("15/03/2024", "2024-13-01", ""):
            with self.assertRaises(ValueError):
                parse_date(bad)
        with self.assertRaises(ValueError):
            parse_type("transfer")
        with self.assertRaises(ValueError):
            parse_category("yachts")

    def test_amount_bounds_and_rounding(self):
        """Amounts are capped and kept to cents"""
        self.assertEqual(parse_amount("999999999999.99"), Decimal("999999999999.99"))
        self.assertEqual(parse_amount("10.005"), Decimal("10.01"))
        self.assertEqual(parse_amount("1e-9999999"), Decimal("0"))
        for bad in ("1000000000000", "12345678901234567.89", "1e12000000", "1e999999999"):
            with self.assertRaises(ValueError):
                parse_amount(bad)

    def test_signed_amount(self):
        self.assertEqual(income(100).signed_amount, Decimal("100"))
        self.assertEqual(expense(40).signed_amount, Decimal("-40"))

    def test_budget_state_defaults(self):
        state = BudgetState()
        self.assertEqual(state.monthly_budget, Decimal("0"))
        self.assertFalse(state.alerted)


class TestLogic(unittest.TestCase):
    def setUp(self):
        self.ledger = [
            expense(50, date(2024, 3, 1), Category.FOOD),
            income(1000, date(2024, 3, 2)),
            expense(30, date(2024, 3, 31), Category.TRANSPORT),
            expense(20, date(2024, 2, 29), Category.FOOD),
            expense(70, date(2023, 3, 10), Category.FOOD),
        ]

    def test_filter_without_criteria_returns_everything(self):
        self.assertEqual(filter_transactions(self.ledger), self.ledger)

    def test_filter_by_category(self):
        result = filter_transactions(self.ledger, category=Category.FOOD)
        self.assertEqual(len(result), 3)
        self.assertTrue(all(t.category is Category.FOOD for t in result))
        self.assertEqual(result, [self.ledger[0], self.ledger[3], self.ledger[4]])

    def test_filter_date_bounds_inclusive(self):
        result = filter_transactions(self.ledger, start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
        self.assertEqual(result, self.ledger[:3])

        result = filter_transactions(self.ledger, start_date=date(2024, 3, 31))
        self.assertEqual(result, [self.ledger[2]])

        result = filter_transactions(self.ledger, end_date=date(2024, 2, 29))
        self.assertEqual(result, self.ledger[3:])

    def test_filter_combined(self):
        result = filter_transactions(
            self.ledger, category=Category.FOOD, start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)
        )
        self.assertEqual(result, [self.ledger[0], self.ledger[3]])

    def test_month_bounds(self):
        self.assertEqual(month_bounds(date(2024, 2, 10)), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(date(2023, 12, 31)), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_month_expense_total(self):
        """Only expenses in the reference month and year count"""
        self.assertEqual(month_expense_total(self.ledger, date(2024, 3, 15)), Decimal("80"))
        self.assertEqual(month_expense_total(self.ledger, date(2024, 2, 1)), Decimal("20"))
        self.assertEqual(month_expense_total(self.ledger, date(2023, 3, 1)), Decimal("70"))
        self.assertEqual(month_expense_total([], TODAY), Decimal("0"))

    def test_totals(self):
        total = totals(self.ledger)
        self.assertEqual(total["income"], Decimal("1000"))
        self.assertEqual(total["expense"], Decimal("170"))
        self.assertEqual(total["net"], Decimal("830"))

    def test_totals_by_category(self):
        categories = totals_by_category(self.ledger)
        self.assertEqual(set(categories), {Category.FOOD, Category.SALARY, Category.TRANSPORT})
        self.assertEqual(categories[Category.FOOD]["expense"], Decimal("140"))
        self.assertEqual(categories[Category.SALARY]["net"], Decimal("1000"))


class TestNotificationDispatcher(TempDirTestCase):
    def test_publish_in_registration_order(self):
        dispatcher = NotificationDispatcher()
        calls = []
        dispatcher.subscribe(lambda m: calls.append(("first", m)))
        dispatcher.subscribe(lambda m: calls.append(("second", m)))

        dispatcher.publish("hello")
        self.assertEqual(calls, [("first", "hello"), ("second", "hello")])

    def test_unsubscribe(self):
        dispatcher = NotificationDispatcher()
        calls = []
        observer = calls.append
        dispatcher.subscribe(observer)
        dispatcher.unsubscribe(observer)
        dispatcher.unsubscribe(observer)  # not registered any more: no-op
        dispatcher.publish("ignored")
        self.assertEqual(calls, [])
        self.assertEqual(len(dispatcher), 0)

    def test_duplicate_subscription_delivers_twice(self):
        dispatcher = NotificationDispatcher()
        calls = []
        dispatcher.subscribe(calls.append)
        dispatcher.subscribe(calls.append)
        dispatcher.publish("x")
        self.assertEqual(calls, ["x", "x"])

    def test_observer_errors_propagate(self):
        dispatcher = NotificationDispatcher()

        def broken(message):
            raise RuntimeError("boom")

        dispatcher.subscribe(broken)
        with self.assertRaises(RuntimeError):
            dispatcher.publish("x")

    def test_logger_line_format(self):
        log_path = self.tmp / "logs" / "notifications.log"
        observer = NotificationLogger(log_path, clock=lambda: datetime(2024, 3, 15, 9, 30, 0))
        observer("Budget reached")
        observer("Second alert")

        lines = log_path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines, [
            "[2024-03-15T09:30:00] Budget reached",
            "[2024-03-15T09:30:00] Second alert",
        ])
        self.assertEqual(observer.read_entries(), lines)

    def test_logger_never_raises(self):
        blocker = self.tmp / "file"
        blocker.write_text("not a directory")
        observer = NotificationLogger(blocker / "notifications.log")
        with self.assertLogs("fintracker.events", level="ERROR"):
            observer("lost message")
        self.assertEqual(blocker.read_text(), "not a directory")


class TestBudgetMonitor(unittest.TestCase):
    def setUp(self):
        self.dispatcher = NotificationDispatcher()
        self.messages = []
        self.dispatcher.subscribe(self.messages.append)
        self.monitor = BudgetMonitor(self.dispatcher, Decimal("1000"))

    def test_under_threshold(self):
        self.assertIs(self.monitor.check_status(Decimal("999.99")), BudgetStatus.UNDER_THRESHOLD)
        self.assertFalse(self.monitor.alerted)
        self.assertEqual(self.messages, [])

    def test_edge_triggered_alert(self):
        """Crossing the budget notifies once, staying over does not"""
        self.assertIs(self.monitor.check_status(Decimal("1000")), BudgetStatus.AT_OR_OVER_THRESHOLD)
        self.assertTrue(self.monitor.alerted)
        self.assertEqual(len(self.messages), 1)
        self.assertEqual(self.messages[0], budget_exceeded_message(Decimal("1000"), Decimal("1000")))

        self.monitor.check_status(Decimal("1000"))
        self.monitor.check_status(Decimal("1500"))
        self.assertEqual(len(self.messages), 1)

    def test_rearms_after_dropping_below(self):
        self.monitor.check_status(Decimal("1200"))
        self.monitor.check_status(Decimal("200"))
        self.assertFalse(self.monitor.alerted)
        self.monitor.check_status(Decimal("1000"))
        self.assertEqual(len(self.messages), 2)

    def test_no_budget_never_notifies(self):
        self.monitor.check_status(Decimal("5000"))
        self.assertTrue(self.monitor.alerted)

        self.monitor.set_budget(0, Decimal("5000"))
        self.assertFalse(self.monitor.alerted)
        self.assertIs(self.monitor.status, BudgetStatus.NO_BUDGET)
        for _ in range(3):
            self.assertIs(self.monitor.check_status(Decimal("99999")), BudgetStatus.NO_BUDGET)
        self.assertEqual(len(self.messages), 1)

    def test_set_budget_rejects_negative(self):
        self.monitor.check_status(Decimal("1000"))
        with self.assertRaises(ValueError):
            self.monitor.set_budget("-10", Decimal("1000"))
        self.assertEqual(self.monitor.monthly_budget, Decimal("1000"))
        self.assertTrue(self.monitor.alerted)

    def test_set_budget_rechecks(self):
        self.monitor.set_budget("500", Decimal("600"))
        self.assertEqual(len(self.messages), 1)
        self.monitor.set_budget("800", Decimal("600"))
        self.assertFalse(self.monitor.alerted)

    def test_percentage(self):
        self.assertEqual(self.monitor.percentage(Decimal("250")), 25)
        self.monitor.set_budget(0, Decimal("250"))
        self.assertEqual(self.monitor.percentage(Decimal("250")), 0)

    def test_failing_observer_does_not_cause_repeat(self):
        def broken(message):
            raise RuntimeError("observer down")

        self.dispatcher.subscribe(broken)
        with self.assertRaises(RuntimeError):
            self.monitor.check_status(Decimal("1000"))
        self.assertTrue(self.monitor.alerted)
        self.monitor.check_status(Decimal("1000"))
        self.assertEqual(len(self.messages), 1)


class TestJsonStorage(TempDirTestCase):
    def test_round_trip(self):
        """Saving then loading reproduces the same ledger in order"""
        storage = JsonStorage(self.tmp / "transactions.json")
        ledger = [
            expense("12.34", date(2024, 1, 2), Category.FOOD, "Café ☕"),
            income(3000, date(2024, 1, 1)),
            expense("0.1", date(2023, 12, 31), Category.BILLS, "Fee"),
        ]
        self.assertTrue(storage.save(ledger))
        self.assertEqual(storage.load(), ledger)

    def test_round_trip_at_largest_amount(self):
        storage = JsonStorage(self.tmp / "transactions.json")
        ledger = [expense("999999999999.99"), income("123456789012.34"), expense("0.07")]
        self.assertTrue(storage.save(ledger))
        loaded = storage.load()
        self.assertEqual(loaded, ledger)
        self.assertEqual([t.amount for t in loaded], [t.amount for t in ledger])

    def test_file_format(self):
        path = self.tmp / "transactions.json"
        t = expense(1000, date(2024, 3, 1), Category.TRANSPORT, "Train pass")
        JsonStorage(path).save([t])

        text = path.read_text(encoding="utf-8")
        self.assertIn('\n  {', text)
        self.assertEqual(json.loads(text), [{
            "id": t.id,
            "date": "2024-03-01",
            "description": "Train pass",
            "amount": 1000,
            "type": "EXPENSE",
            "category": "TRANSPORT",
        }])

    def test_missing_file_creates_empty_ledger(self):
        path = self.tmp / "nested" / "transactions.json"
        self.assertEqual(JsonStorage(path).load(), [])
        self.assertTrue(path.exists())
        self.assertEqual(json.loads(path.read_text(encoding="utf-8")), [])

    def test_empty_file_is_empty_ledger(self):
        path = self.tmp / "transactions.json"
        path.write_text("")
        self.assertEqual(JsonStorage(path).load(), [])
        self.assertEqual(path.read_text(encoding="utf-8"), "[]")

    def test_malformed_file_falls_back_to_empty(self):
        path = self.tmp / "transactions.json"
        path.write_text("{not json")
        with self.assertLogs("fintracker.storage", level="ERROR"):
            self.assertEqual(JsonStorage(path).load(), [])

    def test_invalid_records_skipped(self):
        path = self.tmp / "transactions.json"
        good = expense(5)
        path.write_text(json.dumps([
            {"id": good.id, "date": good.date.isoformat(), "description": good.description,
             "amount": 5, "type": "EXPENSE", "category": "FOOD"},
            {"id": "bad-date", "date": "yesterday", "description": "x",
             "amount": 1, "type": "EXPENSE", "category": "FOOD"},
            {"id": "bad-amount", "date": "2024-01-01", "description": "x",
             "amount": -3, "type": "EXPENSE", "category": "FOOD"},
            {"id": "missing-type", "date": "2024-01-01", "description": "x", "amount": 1, "category": "FOOD"},
        ]))
        with self.assertLogs("fintracker.storage", level="WARNING") as logs:
            loaded = JsonStorage(path).load()
        self.assertEqual(loaded, [good])
        self.assertEqual(sum("Skipping invalid transaction" in line for line in logs.output), 3)

    def test_save_failure_reported(self):
        blocker = self.tmp / "file"
        blocker.write_text("not a directory")
        storage = JsonStorage(blocker / "transactions.json")
        with self.assertLogs("fintracker.storage", level="ERROR"):
            self.assertFalse(storage.save([expense(1)]))


class TestTransactionService(TempDirTestCase):
    def setUp(self):
        super().setUp()
        self.storage = JsonStorage(self.tmp / "transactions.json")
        self.messages = []
        self.dispatcher = NotificationDispatcher()
        self.dispatcher.subscribe(self.messages.append)
        self.service = TransactionService(
            self.storage, self.dispatcher, monthly_budget=Decimal("1000"), clock=lambda: TODAY
        )

    def test_add_and_list_keep_insertion_order(self):
        a = expense(10, date(2024, 3, 10))
        b = expense(20, date(2024, 1, 1))
        c = income(30, date(2024, 2, 1))
        for t in (a, b, c):
            self.service.add(t)
        self.assertEqual(self.service.list(), [a, b, c])

    def test_list_is_a_copy(self):
        self.service.add(expense(10))
        listing = self.service.list()
        listing.clear()
        self.assertEqual(len(self.service.list()), 1)

    def test_add_delete_sequence(self):
        """list() equals added minus deleted, in insertion order"""
        added = [expense(i + 1, date(2024, 1, i + 1)) for i in range(6)]
        for t in added:
            self.service.add(t)
        self.service.delete(added[1].id)
        self.service.delete(added[4].id)
        self.assertEqual(self.service.list(), [added[0], added[2], added[3], added[5]])

    def test_delete_is_idempotent(self):
        t = expense(10)
        other = expense(20)
        self.service.add(t)
        self.service.add(other)
        self.assertEqual(self.service.delete(t.id), 1)
        self.assertEqual(self.service.delete(t.id), 0)
        self.assertEqual(self.service.delete("no-such-id"), 0)
        self.assertEqual(self.service.list(), [other])

    def test_duplicate_id_rejected(self):
        t = expense(10)
        self.service.add(t)
        with self.assertRaises(ValueError):
            self.service.add(t)
        self.assertEqual(self.service.list(), [t])

    def test_get(self):
        t = expense(10)
        self.service.add(t)
        self.assertEqual(self.service.get(t.id), t)
        self.assertIsNone(self.service.get("missing"))

    def test_mutations_are_persisted(self):
        a, b = expense(10), income(20)
        self.service.add(a)
        self.service.add(b)
        self.service.delete(a.id)
        self.assertEqual(JsonStorage(self.tmp / "transactions.json").load(), [b])

    def test_ledger_loaded_at_startup(self):
        t = expense(10)
        self.storage.save([t])
        service = TransactionService(self.storage, clock=lambda: TODAY)
        self.assertEqual(service.list(), [t])

    def test_filter(self):
        a = expense(10, date(2024, 3, 1), Category.FOOD)
        b = expense(20, date(2024, 3, 5), Category.TRANSPORT)
        c = expense(30, date(2024, 3, 9), Category.FOOD)
        for t in (a, b, c):
            self.service.add(t)
        self.assertEqual(self.service.filter(), [a, b, c])
        self.assertEqual(self.service.filter(category=Category.FOOD), [a, c])
        self.assertEqual(self.service.filter(start_date=date(2024, 3, 5), end_date=date(2024, 3, 9)), [b, c])

    def test_current_month_expense_total_uses_clock(self):
        self.service.add(expense(100, date(2024, 3, 1)))
        self.service.add(expense(50, date(2024, 2, 28)))
        self.service.add(income(900, date(2024, 3, 2)))
        self.assertEqual(self.service.current_month_expense_total(), Decimal("100"))
        self.assertEqual(self.service.current_month_expense_total(date(2024, 2, 1)), Decimal("50"))

    def test_budget_edge_trigger_scenario(self):
        """The full alert lifecycle: fire once, stay quiet, re-arm, fire again"""
        big = expense(1000)
        self.service.add(big)
        self.assertEqual(len(self.messages), 1)
        self.assertTrue(self.service.alerted)

        self.service.check_budget_status()
        self.assertEqual(len(self.messages), 1)

        self.service.add(expense(1))
        self.assertEqual(len(self.messages), 1)

        self.service.delete(big.id)
        self.assertFalse(self.service.alerted)
        self.service.add(big)
        self.assertEqual(len(self.messages), 2)

    def test_expenses_outside_current_month_do_not_alert(self):
        self.service.add(expense(5000, date(2024, 2, 1)))
        self.service.add(income(5000))
        self.assertEqual(self.messages, [])

    def test_disabling_budget(self):
        self.service.add(expense(1500))
        self.assertEqual(len(self.messages), 1)
        self.service.set_budget(0)
        self.assertFalse(self.service.alerted)
        self.service.add(expense(10000))
        self.assertIs(self.service.check_budget_status(), BudgetStatus.NO_BUDGET)
        self.assertEqual(len(self.messages), 1)

    def test_set_budget_validation(self):
        with self.assertRaises(ValueError):
            self.service.set_budget(-1)
        self.assertEqual(self.service.monthly_budget, Decimal("1000"))

    def test_set_budget_triggers_check(self):
        self.service.add(expense(600))
        self.assertEqual(self.messages, [])
        self.service.set_budget(500)
        self.assertEqual(len(self.messages), 1)

    def test_budget_status(self):
        self.service.add(expense(250))
        status = self.service.budget_status()
        self.assertEqual(status["budget"], Decimal("1000"))
        self.assertEqual(status["spent"], Decimal("250"))
        self.assertEqual(status["percentage"], 25)
        self.assertIs(status["status"], BudgetStatus.UNDER_THRESHOLD)
        self.assertFalse(status["alerted"])

    def test_status_known_at_startup(self):
        """A configured budget is reported before any mutation, without alerting"""
        self.storage.save([expense(1200)])
        service = TransactionService(self.storage, self.dispatcher, monthly_budget=Decimal("1000"), clock=lambda: TODAY)
        self.assertIs(service.budget_status()["status"], BudgetStatus.AT_OR_OVER_THRESHOLD)
        self.assertEqual(self.messages, [])

        fresh = TransactionService(JsonStorage(self.tmp / "other.json"), monthly_budget=Decimal("1000"))
        self.assertIs(fresh.budget_status()["status"], BudgetStatus.UNDER_THRESHOLD)
        disabled = TransactionService(JsonStorage(self.tmp / "third.json"), monthly_budget=0)
        self.assertIs(disabled.budget_status()["status"], BudgetStatus.NO_BUDGET)

    def test_save_failure_keeps_memory_state(self):
        storage = FailingStorage()
        service = TransactionService(storage, clock=lambda: TODAY)
        t = expense(10)
        with self.assertLogs("fintracker.service", level="WARNING"):
            service.add(t)
        self.assertFalse(service.last_save_ok)
        self.assertEqual(service.list(), [t])
        self.assertEqual(storage.saves, 1)


class TestReports(unittest.TestCase):
    def setUp(self):
        self.ledger = [
            expense("10.50", date(2024, 3, 2)),
            income(1000, date(2024, 3, 1)),
            expense(40, date(2024, 3, 2), Category.TRANSPORT),
            expense(5, date(2023, 12, 31)),
            income(200, date(2024, 1, 15)),
        ]

    def test_names(self):
        self.assertEqual([s.name() for s in REPORTS.values()], ["Daily Report", "Monthly Report", "Yearly Report"])

    def test_daily_groups_ascending(self):
        groups = group_totals(DailyReport(), self.ledger)
        self.assertEqual(
            [key for key, _ in groups],
            [date(2023, 12, 31), date(2024, 1, 15), date(2024, 3, 1), date(2024, 3, 2)],
        )
        self.assertEqual(groups[-1][1]["expense"], Decimal("50.50"))

    def test_monthly_groups(self):
        groups = dict(group_totals(MonthlyReport(), self.ledger))
        self.assertEqual(list(groups), [(2023, 12), (2024, 1), (2024, 3)])
        self.assertEqual(groups[(2024, 3)]["net"], Decimal("949.50"))

    def test_yearly_groups(self):
        groups = dict(group_totals(YearlyReport(), self.ledger))
        self.assertEqual(list(groups), [2023, 2024])
        self.assertEqual(groups[2023]["expense"], Decimal("5"))

    def test_totals_reconcile_with_query_engine(self):
        """Per-group totals add up to the ledger totals for every variant"""
        expected = totals(self.ledger)
        for strategy in REPORTS.values():
            groups = group_totals(strategy, self.ledger)
            for key in ("income", "expense", "net"):
                self.assertEqual(sum((g[key] for _, g in groups), Decimal("0")), expected[key])

    def test_monthly_group_matches_month_expense_total(self):
        groups = dict(group_totals(MonthlyReport(), self.ledger))
        self.assertEqual(groups[(2024, 3)]["expense"], month_expense_total(self.ledger, date(2024, 3, 20)))

    def test_text_output(self):
        text = generate_report("monthly", self.ledger)
        lines = text.splitlines()
        self.assertIn("Monthly Report", lines[0])
        self.assertTrue(lines[2].startswith("2023-12"))
        self.assertTrue(lines[-1].startswith("TOTAL"))
        self.assertIn("1,200.00", lines[-1])
        self.assertIn("+1,144.50", lines[-1])
        self.assertEqual(text, generate_report("Monthly", list(self.ledger)))

    def test_empty_ledger(self):
        text = generate_report("daily", [])
        self.assertIn("No transactions", text)
        self.assertTrue(text.splitlines()[-1].startswith("TOTAL"))

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            generate_report("weekly", self.ledger)


class TestAdvisor(unittest.TestCase):
    def make_client(self, text="Spend less on food."):
        client = MagicMock()
        client.responses.create.return_value = MagicMock(output_text=text)
        return client

    def test_get_financial_advice(self):
        client = self.make_client()
        advisor = FinancialAdvisor(client=client, model="test-model")
        self.assertEqual(advisor.get_financial_advice("FOOD 100"), "Spend less on food.")

        kwargs = client.responses.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["max_output_tokens"], 400)
        self.assertEqual(kwargs["temperature"], 0.7)
        self.assertIn("FOOD 100", kwargs["input"])

    def test_provider_error_mapped(self):
        client = MagicMock()
        client.responses.create.side_effect = openai.APIConnectionError(request=MagicMock())
        advisor = FinancialAdvisor(client=client)
        with self.assertRaises(AdviceError):
            advisor.get_financial_advice("summary")

    def test_empty_answer_is_an_error(self):
        advisor = FinancialAdvisor(client=self.make_client("  "))
        with self.assertRaises(AdviceError):
            advisor.get_financial_advice("summary")

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            advisor = FinancialAdvisor(api_key=None)
            with self.assertRaises(AdviceError):
                advisor.get_financial_advice("summary")

    def test_request_advice_success(self):
        received = []
        advisor = FinancialAdvisor(client=self.make_client("Save more."))
        result = request_advice(advisor, "summary", callback=received.append).result(timeout=5)
        self.assertTrue(result.ok)
        self.assertEqual(result.advice, "Save more.")
        self.assertEqual(received, [result])

    def test_failing_callback_is_logged(self):
        def broken(result):
            raise RuntimeError("display gone")

        advisor = FinancialAdvisor(client=self.make_client("Save more."))
        with self.assertLogs("fintracker.advisor", level="ERROR") as logs:
            result = request_advice(advisor, "summary", callback=broken).result(timeout=5)
        self.assertTrue(result.ok)
        self.assertIn("Advice callback failed", logs.output[0])

    def test_request_advice_failure_resolves_with_error(self):
        advisor = MagicMock()
        advisor.get_financial_advice.side_effect = AdviceError("rate limited")
        result = request_advice(advisor, "summary").result(timeout=5)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "rate limited")
        self.assertEqual(AdviceResult(advice="x").ok, True)

    def test_build_summary(self):
        summary = build_summary([expense(100)], Decimal("1000"), Decimal("100"))
        self.assertIn("Monthly Report", summary)
        self.assertIn("Monthly budget: 1,000.00, spent this month: 100.00", summary)
        self.assertIn("No monthly budget set", build_summary([], Decimal("0"), Decimal("0")))


class TestConfig(TempDirTestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {"FINTRACKER_DATA_DIR": str(self.tmp)}, clear=True):
            settings = load_settings(env_file=str(self.tmp / "missing.env"))
        self.assertEqual(settings.transactions_file, self.tmp / "transactions.json")
        self.assertEqual(settings.notifications_file, self.tmp / "notifications.log")
        self.assertEqual(settings.monthly_budget, Decimal("2000000"))
        self.assertEqual(settings.openai_model, "gpt-4.1-mini")
        self.assertIsNone(settings.openai_api_key)
        self.assertEqual(settings.ai_timeout, 60.0)

    def test_env_file_loaded(self):
        env_file = self.tmp / ".env"
        env_file.write_text("FINTRACKER_MONTHLY_BUDGET=750\nOPENAI_MODEL=other-model\n")
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings(env_file=str(env_file))
        self.assertEqual(settings.monthly_budget, Decimal("750"))
        self.assertEqual(settings.openai_model, "other-model")

    def test_invalid_values_fall_back(self):
        env = {"FINTRACKER_MONTHLY_BUDGET": "lots", "FINTRACKER_AI_TIMEOUT": "-2"}
        with patch.dict(os.environ, env, clear=True):
            with self.assertLogs("fintracker.config", level="WARNING") as logs:
                settings = load_settings(env_file=str(self.tmp / "missing.env"))
        self.assertEqual(settings.monthly_budget, Decimal("2000000"))
        self.assertEqual(settings.ai_timeout, 60.0)
        self.assertEqual(len(logs.output), 2)

    def test_configure_logging_accepts_unknown_level(self):
        with patch("fintracker.config.logging.basicConfig") as basic_config:
            configure_logging("chatty")
        self.assertEqual(basic_config.call_args.kwargs["level"], 30)


class TestCLI(TempDirTestCase):
    def setUp(self):
        super().setUp()
        with patch.dict(os.environ, {"FINTRACKER_DATA_DIR": str(self.tmp)}, clear=True):
            self.settings = load_settings(env_file=str(self.tmp / "missing.env"))
        self.settings.monthly_budget = Decimal("100")
        self.service = build_service(self.settings)
        self.out = io.StringIO()
        self.history = NotificationLogger(self.settings.notifications_file)
        self.cli = FinanceTrackerCLI(self.service, history=self.history, stdout=self.out)

    def run_cmd(self, line):
        self.out.seek(0)
        self.out.truncate()
        self.cli.onecmd(line)
        return self.out.getvalue()

    def test_add_and_list(self):
        output = self.run_cmd("add 12.5 expense food 2024-03-01 --desc Lunch with team")
        self.assertIn("✓ Added expense of 12.50", output)
        t = self.service.list()[0]
        self.assertEqual(t.description, "Lunch with team")
        self.assertEqual(t.date, date(2024, 3, 1))

        output = self.run_cmd("list")
        self.assertIn(t.id[:8], output)
        self.assertIn("Lunch with team", output)

    def test_invalid_add_does_not_mutate(self):
        for line in ("add abc expense food", "add 5 gift food", "add 5 expense food 03/01/2024", "add 5"):
            self.assertIn("Invalid input", self.run_cmd(line))
        self.assertEqual(self.service.list(), [])

    def test_delete_by_prefix(self):
        self.run_cmd("add 5 expense food")
        t = self.service.list()[0]
        self.assertIn("✓ Deleted", self.run_cmd(f"delete {t.id[:8]}"))
        self.assertIn("Transaction not found", self.run_cmd(f"delete {t.id}"))
        self.assertEqual(self.service.list(), [])

    def test_filter(self):
        self.run_cmd("add 5 expense food 2024-03-01")
        self.run_cmd("add 7 expense transport 2024-03-02")
        output = self.run_cmd("filter --category transport")
        self.assertIn("Transport", output)
        self.assertNotIn("Food", output)
        self.assertIn("Invalid input", self.run_cmd("filter --from 2024-03-05 --to 2024-03-01"))

    def test_budget_alert_is_printed_and_logged(self):
        output = self.run_cmd("add 150 expense food")
        self.assertIn("⚠ BUDGET WARNING", output)
        self.assertEqual(len(self.history.read_entries()), 1)
        self.assertIn("BUDGET WARNING", self.run_cmd("history"))

    def test_budget_shown_at_startup(self):
        output = self.run_cmd("budget")
        self.assertIn("Budget: 100.00", output)
        self.assertIn("Status: under budget", output)

    def test_oversized_budget_rejected(self):
        for line in ("budget 1e12000000", "budget 1e999999999", "add 1e400 expense food"):
            self.assertIn("Invalid input", self.run_cmd(line))
        self.assertEqual(self.service.monthly_budget, Decimal("100"))
        self.assertEqual(self.service.list(), [])

    def test_budget_command(self):
        self.assertIn("Invalid input", self.run_cmd("budget -5"))
        output = self.run_cmd("budget 0")
        self.assertIn("No budget set", output)
        self.run_cmd("add 20 expense food")
        output = self.run_cmd("budget 80")
        self.assertIn("Spent this month: 20.00 (25%)", output)

    def test_report(self):
        self.run_cmd("add 20 expense food 2024-03-01")
        output = self.run_cmd("report yearly --categories")
        self.assertIn("Yearly Report", output)
        self.assertIn("By Category:", output)
        self.assertIn("Invalid input", self.run_cmd("report weekly"))

    def test_advice(self):
        advisor = MagicMock()
        advisor.get_financial_advice.return_value = "Cook at home."
        self.cli.advisor = advisor
        self.assertIn("Cook at home.", self.run_cmd("advice"))

        advisor.get_financial_advice.side_effect = AdviceError("network down")
        self.assertIn("AI advice unavailable: network down", self.run_cmd("advice"))

    def test_exit(self):
        self.assertTrue(self.cli.onecmd("exit"))


if __name__ == "__main__":
    unittest.main()
