from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]

GROUP_HYDRATED = "catalog.group.hydrated"
PRODUCT_HYDRATED = "catalog.product.hydrated"
HYDRATION_FAILED = "catalog.hydration.failed"


class EventBus:
    """Pub/sub síncrono entre o cache de catálogo e as sessões abertas.

    Um handler que falha é registrado no log e não impede os demais.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        registered = self._handlers.get(event_name, [])
        self._handlers[event_name] = [entry for entry in registered if entry != handler]

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        # cópia: handlers podem se desinscrever durante a entrega
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            logger.debug("no handlers for %s", event_name)
            return

        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "event handler failed for %s",
                    event_name,
                    extra={"kind": payload.get("kind"), "entity_id": payload.get("id")},
                )
