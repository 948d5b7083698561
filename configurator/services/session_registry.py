from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, Optional

from configurator.core.config import SESSION_TTL_SECONDS
from configurator.services.configuration_session import ConfigurationSession

logger = logging.getLogger(__name__)


class InMemorySessionRegistry:
    """Sessões de configuração abertas por id.

    Sessões sem acesso há mais de ``ttl_seconds`` ou já encerradas saem do registro
    no próximo ``add``; as ainda abertas são canceladas para soltar os handlers do cache.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, ConfigurationSession] = {}
        self._last_access: dict[str, float] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = Lock()

    def add(self, session: ConfigurationSession) -> ConfigurationSession:
        with self._lock:
            expired = self._evict_expired()
            self._sessions[session.id] = session
            self._last_access[session.id] = self._clock()

        for stale in expired:
            if stale.is_open:
                stale.cancel()
        if expired:
            logger.info("evicted %s idle configuration session(s)", len(expired))
        return session

    def get(self, session_id: str) -> Optional[ConfigurationSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_access[session_id] = self._clock()
            return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._last_access.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _evict_expired(self) -> list[ConfigurationSession]:
        deadline = self._clock() - self._ttl_seconds
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if not session.is_open or self._last_access.get(session_id, 0.0) <= deadline
        ]
        evicted = []
        for session_id in expired:
            self._last_access.pop(session_id, None)
            evicted.append(self._sessions.pop(session_id))
        return evicted
