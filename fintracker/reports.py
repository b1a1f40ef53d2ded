from datetime import date
from typing import Hashable, Sequence

from fintracker.logic import empty_totals, totals, update_totals
from fintracker.models import Transaction


class ReportStrategy:
    """Reduces transactions to a plain-text table, one row per period."""

    title = "Report"
    period_header = "Period"

    def name(self) -> str:
        return self.title

    def group_key(self, t: Transaction) -> Hashable:
        raise NotImplementedError

    def format_key(self, key) -> str:
        return str(key)

    def groups(self, transactions: Sequence[Transaction]) -> list[tuple[Hashable, dict]]:
        grouped: dict = {}
        for t in transactions:
            update_totals(grouped.setdefault(self.group_key(t), empty_totals()), t)
        return sorted(grouped.items())

    def generate(self, transactions: Sequence[Transaction]) -> str:
        lines = [f"{' ' + self.name() + ' ':-^62}"]
        lines.append(f"{self.period_header:<12}{'Income':>16}{'Expense':>16}{'Net':>18}")

        groups = self.groups(transactions)
        if not groups:
            lines.append("No transactions")
        for key, total in groups:
            lines.append(format_row(self.format_key(key), total))

        lines.append("-" * 62)
        lines.append(format_row("TOTAL", totals(transactions)))
        return "\n".join(lines)


class DailyReport(ReportStrategy):
    title = "Daily Report"
    period_header = "Date"

    def group_key(self, t: Transaction) -> date:
        return t.date

    def format_key(self, key: date) -> str:
        return key.isoformat()


class MonthlyReport(ReportStrategy):
    title = "Monthly Report"
    period_header = "Month"

    def group_key(self, t: Transaction) -> tuple[int, int]:
        return t.date.year, t.date.month

    def format_key(self, key: tuple[int, int]) -> str:
        return f"{key[0]:04d}-{key[1]:02d}"


class YearlyReport(ReportStrategy):
    title = "Yearly Report"
    period_header = "Year"

    def group_key(self, t: Transaction) -> int:
        return t.date.year


def format_row(label: str, total: dict) -> str:
    return f"{label:<12}{total['income']:>16,.2f}{total['expense']:>16,.2f}{total['net']:>+18,.2f}"


REPORTS: dict[str, ReportStrategy] = {
    "daily": DailyReport(),
    "monthly": MonthlyReport(),
    "yearly": YearlyReport(),
}


def get_strategy(kind: str) -> ReportStrategy:
    try:
        return REPORTS[kind.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown report '{kind}', use one of: {', '.join(REPORTS)}")


def generate_report(kind: str, transactions: Sequence[Transaction]) -> str:
    return get_strategy(kind).generate(transactions)


def group_totals(strategy: ReportStrategy, transactions: Sequence[Transaction]) -> list[tuple[Hashable, dict]]:
    """The per-period numbers a report is rendered from, in report order."""
    return strategy.groups(transactions)
