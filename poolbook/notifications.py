import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Notification(str, Enum):
    PRICE_UPDATE = "price-update"
    ORDERBOOK_UPDATE = "orderbook-update"
    ERROR = "error"


class Notifier:
    """Synchronous observer registry; handlers run in registration order."""

    def __init__(self) -> None:
        self._handlers: DefaultDict[Notification, List[Handler]] = defaultdict(list)

    def on(self, kind, handler: Handler) -> Callable[[], None]:
        kind = Notification(kind)
        self._handlers[kind].append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers[kind]:
                self._handlers[kind].remove(handler)

        return _unsubscribe

    def emit(self, kind: Notification, payload: Any) -> int:
        delivered = 0
        for handler in list(self._handlers[kind]):
            try:
                handler(payload)
            except Exception:
                logger.exception("%s handler %r raised", kind.value, handler)
                continue
            delivered += 1
        return delivered

    def handler_count(self, kind) -> int:
        return len(self._handlers[Notification(kind)])
