from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, Iterable, Optional, Protocol

import httpx

from configurator.core.errors import CatalogFetchError
from configurator.schemas.catalog import Product, ProductGroup

logger = logging.getLogger(__name__)


class CatalogBackend(Protocol):
    async def fetch_product(self, product_id: int) -> Product:
        """Produto com grupos rasos (id/nome/min/max, opções podem vir vazias)."""
        ...

    async def fetch_group_with_options(self, group_id: int) -> ProductGroup:
        """Grupo com todas as opções carregadas."""
        ...


def _should_retry(status_code: int) -> bool:
    return status_code in (500, 502, 503, 504)


def _backoff_seconds(attempt: int) -> float:
    # 1s, 2s, 4s... (máx 8s)
    sec = 1.0 * (2 ** max(0, attempt - 1))
    return min(sec, 8.0)


class HttpCatalogBackend:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = max(1, retries)
        self._transport = transport
        self._sleep = sleep

    async def fetch_product(self, product_id: int) -> Product:
        payload = await self._get_json(f"/products/{product_id}")
        return Product.model_validate(payload)

    async def fetch_group_with_options(self, group_id: int) -> ProductGroup:
        payload = await self._get_json(f"/groups/{group_id}")
        return ProductGroup.model_validate(payload)

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.retries + 1):
                try:
                    response = await client.get(url, headers={"Accept": "application/json"})
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    logger.warning("catalog request failed url=%s attempt=%s error=%s", url, attempt, exc)
                    if attempt < self.retries:
                        await self._sleep(_backoff_seconds(attempt))
                        continue
                    raise CatalogFetchError(0, str(exc)) from exc

                if 200 <= response.status_code < 300:
                    return response.json()

                if _should_retry(response.status_code) and attempt < self.retries:
                    logger.warning(
                        "catalog request retry url=%s status=%s attempt=%s",
                        url,
                        response.status_code,
                        attempt,
                    )
                    await self._sleep(_backoff_seconds(attempt))
                    continue

                raise CatalogFetchError(response.status_code, response.text)

        raise CatalogFetchError(0, f"sem resposta de {url}")


class InMemoryCatalogBackend:
    """Catálogo em memória: usado em testes e para pré-carregar cenários."""

    def __init__(
        self,
        products: Iterable[Product] = (),
        groups: Iterable[ProductGroup] = (),
    ) -> None:
        self.products: dict[int, Product] = {product.id: product for product in products}
        self.groups: dict[int, ProductGroup] = {group.id: group for group in groups}
        self.calls: Counter[tuple[str, int]] = Counter()
        self.failures: dict[tuple[str, int], int] = {}
        self.gate: Optional[asyncio.Event] = None

    def fail_next(self, kind: str, entity_id: int, times: int = 1) -> None:
        self.failures[(kind, entity_id)] = times

    async def fetch_product(self, product_id: int) -> Product:
        return await self._fetch("product", product_id, self.products)

    async def fetch_group_with_options(self, group_id: int) -> ProductGroup:
        return await self._fetch("group", group_id, self.groups)

    async def _fetch(self, kind: str, entity_id: int, source: dict):
        key = (kind, entity_id)
        self.calls[key] += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)

        pending_failures = self.failures.get(key, 0)
        if pending_failures > 0:
            self.failures[key] = pending_failures - 1
            raise CatalogFetchError(503, f"{kind} {entity_id} indisponível")
        if entity_id not in source:
            raise CatalogFetchError(404, f"{kind} {entity_id} não encontrado")
        return source[entity_id]


def build_catalog_backend(kind: str, *, base_url: str, timeout: float, retries: int) -> CatalogBackend:
    if kind == "sql":
        from configurator.core.database import SessionLocal
        from configurator.services.sql_catalog import SqlCatalogBackend

        return SqlCatalogBackend(SessionLocal)
    return HttpCatalogBackend(base_url, timeout=timeout, retries=retries)
