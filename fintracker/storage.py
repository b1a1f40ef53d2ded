import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from .models import Category, Transaction, TransactionType, to_decimal

logger = logging.getLogger(__name__)


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            # integral amounts stay ints so the file reads "amount": 1000
            return int(obj) if obj == obj.to_integral_value() else float(obj)
        if isinstance(obj, (TransactionType, Category)):
            return obj.value
        return super().default(obj)


def transaction_to_dict(t: Transaction) -> dict:
    return {
        "id": t.id,
        "date": t.date,
        "description": t.description,
        "amount": t.amount,
        "type": t.type,
        "category": t.category,
    }


def transaction_from_dict(data: dict) -> Transaction:
    return Transaction(
        id=str(data["id"]),
        date=date.fromisoformat(data["date"]),
        description=data.get("description", ""),
        amount=to_decimal(data["amount"]),
        type=TransactionType(data["type"]),
        category=Category(data["category"]),
    )


class JsonStorage:
    """Keeps the whole ledger in one pretty-printed JSON file.

    Every save overwrites the file. Neither load nor save raises on I/O
    trouble: failures are logged and reported through the return value.
    """

    def __init__(self, path):
        self.path = Path(path)

    def save(self, transactions: Iterable[Transaction]) -> bool:
        data = [transaction_to_dict(t) for t in transactions]
        try:
            json_str = json.dumps(data, cls=EnhancedJSONEncoder, indent=2, ensure_ascii=False)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json_str, encoding="utf-8")
            logger.debug("Saved %d transactions to %s", len(data), self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving transactions to %s: %s", self.path, e)
            return False

    def load(self) -> list[Transaction]:
        try:
            if not self.path.exists() or self.path.stat().st_size == 0:
                logger.info("No transaction file at %s, starting with an empty ledger", self.path)
                self.save([])
                return []
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error loading transactions from %s: %s", self.path, e)
            return []

        if not isinstance(data, list):
            logger.error("Transaction file %s does not hold a list, ignoring it", self.path)
            return []

        transactions = []
        seen_ids = set()
        for t_data in data:
            try:
                transaction = transaction_from_dict(t_data)
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                t_id = t_data.get("id") if isinstance(t_data, dict) else None
                logger.warning("Skipping invalid transaction %s: %s", t_id, e)
                continue
            if transaction.id in seen_ids:
                logger.warning("Skipping duplicate transaction id %s", transaction.id)
                continue
            seen_ids.add(transaction.id)
            transactions.append(transaction)

        logger.info("Loaded %d transactions from %s", len(transactions), self.path)
        return transactions
