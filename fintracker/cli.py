import cmd
from datetime import date
from typing import Optional

from fintracker.advisor import FinancialAdvisor, build_summary, request_advice
from fintracker.budget import BudgetStatus
from fintracker.events import NotificationLogger
from fintracker.logic import totals, totals_by_category
from fintracker.models import (
    Transaction, create_transaction, parse_amount, parse_category, parse_date, parse_type
)
from fintracker.reports import REPORTS, get_strategy
from fintracker.service import TransactionService


class FinanceTrackerCLI(cmd.Cmd):
    prompt = "(fintracker) "

    def __init__(
        self,
        service: TransactionService,
        advisor: Optional[FinancialAdvisor] = None,
        history: Optional[NotificationLogger] = None,
        stdout=None,
    ):
        super().__init__(stdout=stdout)
        self.intro = "Welcome to Finance Tracker. Type 'help' for commands."
        self.service = service
        self.advisor = advisor
        self.history = history
        self.service.dispatcher.subscribe(self.alert)

    def emit(self, text: str = "") -> None:
        self.stdout.write(text + "\n")

    def alert(self, message: str) -> None:
        self.emit(f"\n⚠ {message}")

    # ===== LEDGER COMMANDS =====
    def do_add(self, arg):
        """Add a transaction: add <amount> <income|expense> <category> [YYYY-MM-DD] [--desc description]"""
        try:
            args = self._parse_add_args(arg)
            transaction = create_transaction(
                t_date=args['date'],
                description=args['desc'] or args['category'].label,
                amount=args['amount'],
                t_type=args['type'],
                category=args['category'],
            )
        except ValueError as e:
            self.emit(f"Invalid input: {e}")
            return

        self.service.add(transaction)
        self.emit(f"✓ Added {transaction.type.value.lower()} of {transaction.amount:,.2f} ({transaction.id[:8]})")
        self._warn_if_unsaved()

    def do_delete(self, arg):
        """Delete a transaction: delete <ID or unique ID prefix>"""
        key = arg.strip()
        if not key:
            self.emit("Usage: delete <ID>")
            return

        matches = [t.id for t in self.service.list() if t.id.startswith(key)]
        if len(matches) > 1:
            self.emit(f"ID prefix '{key}' is ambiguous ({len(matches)} matches)")
            return
        transaction_id = matches[0] if matches else key

        if self.service.delete(transaction_id):
            self.emit(f"✓ Deleted transaction {transaction_id[:8]}")
        else:
            self.emit("Transaction not found")
        self._warn_if_unsaved()

    def do_list(self, arg):
        """List all transactions in the order they were added"""
        self._print_transactions(self.service.list())

    def do_filter(self, arg):
        """Filter transactions: filter [--category NAME] [--from YYYY-MM-DD] [--to YYYY-MM-DD]"""
        try:
            criteria = self._parse_filter_args(arg)
        except ValueError as e:
            self.emit(f"Invalid input: {e}")
            return
        self._print_transactions(self.service.filter(**criteria))

    # ===== BUDGET =====
    def do_budget(self, arg):
        """Show or set the monthly budget: budget [amount] (0 disables monitoring)"""
        if arg.strip():
            try:
                self.service.set_budget(parse_amount(arg))
            except ValueError as e:
                self.emit(f"Invalid input: {e}")
                return
            self.emit(f"✓ Monthly budget set to {self.service.monthly_budget:,.2f}")

        status = self.service.budget_status()
        if status['status'] is BudgetStatus.NO_BUDGET:
            self.emit(f"No budget set. Spent this month: {status['spent']:,.2f}")
            return
        self.emit(f"Budget: {status['budget']:,.2f}")
        self.emit(f"Spent this month: {status['spent']:,.2f} ({status['percentage']}%)")
        self.emit(f"Status: {status['status'].value}")

    def do_history(self, arg):
        """Show the budget notification log"""
        entries = self.history.read_entries() if self.history else []
        if not entries:
            self.emit("No notifications yet")
            return
        for entry in entries:
            self.emit(entry)

    # ===== REPORTS =====
    def do_report(self, arg):
        """Generate a report: report <daily|monthly|yearly> [--categories]"""
        args = arg.split()
        if not args:
            self.emit(f"Usage: report <{'|'.join(REPORTS)}> [--categories]")
            return

        try:
            strategy = get_strategy(args[0])
        except ValueError as e:
            self.emit(f"Invalid input: {e}")
            return

        transactions = self.service.list()
        self.emit(strategy.generate(transactions))

        if '--categories' in args[1:]:
            self.emit("\nBy Category:")
            for category, data in totals_by_category(transactions).items():
                self.emit(
                    f"  {category.label}: {data['net']:+,.2f} "
                    f"(Income: {data['income']:,.2f}, Expense: {data['expense']:,.2f})"
                )

    def do_advice(self, arg):
        """Ask the AI advisor for advice on your spending"""
        if self.advisor is None:
            self.emit("AI advice unavailable: no advisor configured")
            return

        summary = build_summary(
            self.service.list(), self.service.monthly_budget, self.service.current_month_expense_total()
        )
        self.emit("Requesting advice, please wait...")
        result = request_advice(self.advisor, summary).result()
        if result.ok:
            self.emit(f"\n{result.advice}")
        else:
            self.emit(f"AI advice unavailable: {result.error}")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        self.emit("Goodbye!")
        return True

    do_EOF = do_exit

    def emptyline(self):
        pass

    # ===== HELPERS =====
    def _warn_if_unsaved(self):
        if not self.service.last_save_ok:
            self.emit("Warning: changes could not be saved to disk, they are kept for this session only")

    def _print_transactions(self, transactions: list[Transaction]):
        if not transactions:
            self.emit("No transactions")
            return

        self.emit(f"{'ID':<10}{'Date':<12}{'Type':<9}{'Category':<15}{'Amount':>14}  Description")
        for t in transactions:
            self.emit(
                f"{t.id[:8]:<10}{t.date.isoformat():<12}{t.type.value.lower():<9}"
                f"{t.category.label:<15}{t.amount:>14,.2f}  {t.description}"
            )
        total = totals(transactions)
        self.emit(
            f"\n{len(transactions)} transactions. Income: {total['income']:,.2f}, "
            f"Expense: {total['expense']:,.2f}, Net: {total['net']:+,.2f}"
        )

    @staticmethod
    def _parse_add_args(arg):
        """Parse add command arguments"""
        args = arg.split()
        if len(args) < 3:
            raise ValueError("Missing required arguments (amount, type and category)")

        result = {
            'amount': parse_amount(args[0]),
            'type': parse_type(args[1]),
            'category': parse_category(args[2]),
            'date': date.today(),
            'desc': "",
        }

        i = 3
        while i < len(args):
            if args[i] == '--desc':
                result['desc'] = ' '.join(args[i+1:]).strip('"\'')
                break
            elif args[i].startswith('--'):
                raise ValueError(f"Unknown flag: {args[i]}")
            else:
                result['date'] = parse_date(args[i])
                i += 1

        return result

    @staticmethod
    def _parse_filter_args(arg):
        """Parse filter flags into service.filter keyword arguments"""
        args = arg.split()
        result = {'category': None, 'start_date': None, 'end_date': None}

        i = 0
        while i < len(args):
            if i + 1 >= len(args):
                raise ValueError(f"Missing value after {args[i]}")
            if args[i] == '--category':
                result['category'] = parse_category(args[i+1])
            elif args[i] == '--from':
                result['start_date'] = parse_date(args[i+1])
            elif args[i] == '--to':
                result['end_date'] = parse_date(args[i+1])
            else:
                raise ValueError(f"Unknown flag: {args[i]}")
            i += 2

        if result['start_date'] and result['end_date'] and result['start_date'] > result['end_date']:
            raise ValueError("--from date is after --to date")
        return result
