import logging
from typing import Optional

from fintracker.advisor import FinancialAdvisor
from fintracker.cli import FinanceTrackerCLI
from fintracker.config import Settings, configure_logging, load_settings
from fintracker.events import NotificationDispatcher, NotificationLogger
from fintracker.service import TransactionService
from fintracker.storage import JsonStorage

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> TransactionService:
    dispatcher = NotificationDispatcher()
    dispatcher.subscribe(NotificationLogger(settings.notifications_file))
    storage = JsonStorage(settings.transactions_file)
    return TransactionService(storage, dispatcher, monthly_budget=settings.monthly_budget)


def build_advisor(settings: Settings) -> FinancialAdvisor:
    return FinancialAdvisor(
        model=settings.openai_model,
        api_key=settings.openai_api_key,
        timeout=settings.ai_timeout,
    )


def main(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    logger.info("Using ledger %s", settings.transactions_file)
    history = NotificationLogger(settings.notifications_file)
    FinanceTrackerCLI(build_service(settings), build_advisor(settings), history).cmdloop()


if __name__ == "__main__":
    main()
