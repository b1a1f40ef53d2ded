import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List

__all__ = ['Observer', 'NotificationDispatcher', 'NotificationLogger']

logger = logging.getLogger(__name__)

Observer = Callable[[str], None]


class NotificationDispatcher:
    """Synchronous subject side of the budget notifications.

    Observers are called in registration order. Whatever an observer raises
    goes straight back to the publisher.
    """

    def __init__(self):
        self._subscribers: List[Observer] = []

    def subscribe(self, observer: Observer) -> None:
        self._subscribers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._subscribers:
            self._subscribers.remove(observer)

    def publish(self, message: str) -> None:
        # snapshot so an observer may unsubscribe itself mid-dispatch
        for observer in list(self._subscribers):
            observer(message)

    def __len__(self) -> int:
        return len(self._subscribers)


class NotificationLogger:
    """Observer appending every alert to a plain-text log, one line each."""

    def __init__(self, path: Path, clock: Callable[[], datetime] = datetime.now):
        self.path = Path(path)
        self._clock = clock

    def __call__(self, message: str) -> None:
        entry = f"[{self._clock().isoformat(timespec='seconds')}] {message}\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as e:
            logger.error("Failed to write notification log %s: %s", self.path, e)

    def read_entries(self) -> list[str]:
        try:
            return self.path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
