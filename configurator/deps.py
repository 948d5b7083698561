# configurator/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from configurator.core.request_context import set_request_context
from configurator.services.catalog_cache import CatalogCache
from configurator.services.configuration_session import ConfigurationSession
from configurator.services.order_lines import OrderLineClient
from configurator.services.session_registry import InMemorySessionRegistry


def get_catalog_cache(request: Request) -> CatalogCache:
    return request.app.state.catalog_cache


def get_session_registry(request: Request) -> InMemorySessionRegistry:
    return request.app.state.session_registry


def get_order_line_client(request: Request) -> OrderLineClient:
    return request.app.state.order_line_client


async def get_configuration_session(
    session_id: str,
    registry: InMemorySessionRegistry = Depends(get_session_registry),
) -> ConfigurationSession:
    """Resolve a sessão do path e marca o contexto de log com o id dela.

    Precisa ser async: dependências síncronas rodam numa thread com cópia do contexto.
    """
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Sessão de configuração não encontrada")
    set_request_context(session_id=session.id)
    return session
