import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional, Sequence

import openai

from fintracker.config import DEFAULT_AI_TIMEOUT, DEFAULT_MODEL
from fintracker.models import Transaction
from fintracker.reports import MonthlyReport

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an experienced personal financial advisor. "
    "Analyse the user's transactions and give practical, realistic advice. "
    "Focus only on the 2-3 points with the biggest impact. "
    "Keep the language clear and easy to understand."
)

USER_PROMPT = (
    "Here is a summary of my transactions:\n\n"
    "{summary}\n\n"
    "Please give specific, actionable financial advice."
)


class AdviceError(Exception):
    """The advice provider could not be reached or refused the request."""


@dataclass
class AdviceResult:
    advice: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_summary(transactions: Sequence[Transaction], monthly_budget: Decimal, spent: Decimal) -> str:
    report = MonthlyReport().generate(transactions)
    if monthly_budget > 0:
        budget_line = f"Monthly budget: {monthly_budget:,.2f}, spent this month: {spent:,.2f}"
    else:
        budget_line = f"No monthly budget set, spent this month: {spent:,.2f}"
    return f"{report}\n\n{budget_line}"


class FinancialAdvisor:
    """Asks an OpenAI model for advice on a plain-text transaction summary."""

    def __init__(
        self,
        client: Optional[openai.OpenAI] = None,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        max_output_tokens: int = 400,
        temperature: float = 0.7,
        timeout: float = DEFAULT_AI_TIMEOUT,
    ):
        self._client = client
        self.model = model
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.timeout = timeout

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            try:
                self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
            except openai.OpenAIError as e:
                raise AdviceError(f"OPENAI_API_KEY is not set: {e}") from e
        return self._client

    def get_financial_advice(self, summary: str) -> str:
        prompt = SYSTEM_PROMPT + "\n\n" + USER_PROMPT.format(summary=summary)
        try:
            response = self.client.responses.create(
                model=self.model,
                input=prompt,
                max_output_tokens=self.max_output_tokens,
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            logger.error("Advice request failed: %s", e)
            raise AdviceError(str(e)) from e

        advice = (response.output_text or "").strip()
        if not advice:
            raise AdviceError("The model returned an empty answer")
        return advice


def _run(advisor: FinancialAdvisor, summary: str, future: Future, callback) -> None:
    try:
        result = AdviceResult(advice=advisor.get_financial_advice(summary))
    except AdviceError as e:
        result = AdviceResult(error=str(e))
    except Exception as e:
        logger.exception("Unexpected error while requesting advice")
        result = AdviceResult(error=f"Unexpected error: {e}")
    if callback is not None:
        try:
            callback(result)
        except Exception:
            logger.exception("Advice callback failed")
    future.set_result(result)


def request_advice(
    advisor: FinancialAdvisor,
    summary: str,
    callback: Optional[Callable[[AdviceResult], None]] = None,
) -> "Future[AdviceResult]":
    """Fetch advice on a daemon thread; the future resolves with an AdviceResult."""
    future: Future = Future()
    future.set_running_or_notify_cancel()
    worker = threading.Thread(
        target=_run, args=(advisor, summary, future, callback), name="advice-request", daemon=True
    )
    worker.start()
    return future
