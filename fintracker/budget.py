import logging
from decimal import Decimal
from enum import Enum

from fintracker.events import NotificationDispatcher
from fintracker.models import BudgetState, to_decimal

logger = logging.getLogger(__name__)


class BudgetStatus(Enum):
    NO_BUDGET = "no budget"
    UNDER_THRESHOLD = "under budget"
    AT_OR_OVER_THRESHOLD = "over budget"


def budget_exceeded_message(spent: Decimal, budget: Decimal) -> str:
    return (
        f"BUDGET WARNING: spending this month ({spent:,.2f}) "
        f"has reached the monthly budget ({budget:,.2f})!"
    )


class BudgetMonitor:
    """Tracks the monthly budget and fires one alert per crossing.

    The alert is edge-triggered: it is published when spending first reaches
    the budget and re-armed only once spending drops back below it (or the
    budget is cleared).
    """

    def __init__(self, dispatcher: NotificationDispatcher, monthly_budget=Decimal("0")):
        self.dispatcher = dispatcher
        self.state = BudgetState(monthly_budget=to_decimal(monthly_budget))
        self.status = BudgetStatus.NO_BUDGET

    @property
    def monthly_budget(self) -> Decimal:
        return self.state.monthly_budget

    @property
    def alerted(self) -> bool:
        return self.state.alerted

    @property
    def enabled(self) -> bool:
        return self.state.monthly_budget > 0

    def usage_ratio(self, spent: Decimal) -> Decimal:
        if not self.enabled:
            return Decimal("0")
        return spent / self.state.monthly_budget

    def percentage(self, spent: Decimal) -> int:
        return int(self.usage_ratio(spent) * 100)

    def evaluate(self, spent: Decimal) -> BudgetStatus:
        """Status for this much spending, without touching the alert flag."""
        if not self.enabled:
            return BudgetStatus.NO_BUDGET
        if self.usage_ratio(spent) >= 1:
            return BudgetStatus.AT_OR_OVER_THRESHOLD
        return BudgetStatus.UNDER_THRESHOLD

    def check_status(self, spent: Decimal) -> BudgetStatus:
        if not self.enabled:
            self.state.alerted = False
            self.status = BudgetStatus.NO_BUDGET
            return self.status

        if self.usage_ratio(spent) >= 1:
            self.status = BudgetStatus.AT_OR_OVER_THRESHOLD
            if not self.state.alerted:
                message = budget_exceeded_message(spent, self.state.monthly_budget)
                logger.info(message)
                # flag goes up before dispatch so a failing observer can't cause a repeat
                self.state.alerted = True
                self.dispatcher.publish(message)
        else:
            self.status = BudgetStatus.UNDER_THRESHOLD
            self.state.alerted = False
        return self.status

    def set_budget(self, value, spent: Decimal) -> BudgetStatus:
        try:
            new_budget = to_decimal(value)
        except ValueError:
            raise ValueError("Budget must be a non-negative number") from None
        self.state.monthly_budget = new_budget
        logger.info("Monthly budget set to %s", new_budget)
        return self.check_status(spent)
