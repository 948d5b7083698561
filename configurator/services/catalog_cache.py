from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence, Union

from configurator.core.errors import HydrationFailure
from configurator.schemas.catalog import Product, ProductGroup, ProductOption
from configurator.services.catalog_backend import CatalogBackend
from configurator.services.event_bus import (
    GROUP_HYDRATED,
    HYDRATION_FAILED,
    PRODUCT_HYDRATED,
    EventBus,
)

logger = logging.getLogger(__name__)

PRODUCT = "product"
GROUP = "group"

CacheKey = tuple[str, int]
CatalogEntry = Union[Product, ProductGroup]


class CatalogCache:
    """Memoiza produtos e grupos (com opções) buscados no catálogo.

    Cada id é buscado no máximo uma vez por vez: chamadas concorrentes para o mesmo id
    aguardam a mesma tarefa. Falhas não ficam no cache, então uma nova chamada tenta de novo.
    Quando nenhum event loop está rodando, os prefetches ficam adiados até ``drain()``.
    """

    def __init__(self, backend: CatalogBackend, *, events: Optional[EventBus] = None) -> None:
        self._backend = backend
        self.events = events or EventBus()
        self._products: dict[int, Product] = {}
        self._groups: dict[int, ProductGroup] = {}
        self._inflight: dict[CacheKey, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()
        self._deferred: set[CacheKey] = set()
        self.failures: dict[CacheKey, str] = {}

    # Leitura síncrona

    def peek_product(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def peek_group(self, group_id: int) -> Optional[ProductGroup]:
        return self._groups.get(group_id)

    def resolve_group(self, group: ProductGroup) -> ProductGroup:
        return self._groups.get(group.id) or group

    def resolve_groups(self, groups: Sequence[ProductGroup]) -> list[ProductGroup]:
        return [self.resolve_group(group) for group in groups]

    def nested_product(self, option: ProductOption) -> Optional[Product]:
        return self._products.get(option.product_id)

    # Pré-carga

    def store_product(self, product: Product) -> None:
        self._products[product.id] = product
        for group in product.product_groups:
            if group.is_hydrated and group.id not in self._groups:
                self._groups[group.id] = group

    def store_group(self, group: ProductGroup) -> None:
        self._groups[group.id] = group

    # Busca assíncrona

    async def get_product(self, product_id: int) -> Product:
        return await self._load(PRODUCT, product_id)

    async def get_group(self, group_id: int) -> ProductGroup:
        return await self._load(GROUP, group_id)

    def _lookup(self, kind: str, entity_id: int) -> Optional[CatalogEntry]:
        if kind == PRODUCT:
            return self._products.get(entity_id)
        return self._groups.get(entity_id)

    async def _load(self, kind: str, entity_id: int):
        cached = self._lookup(kind, entity_id)
        if cached is not None:
            return cached

        key = (kind, entity_id)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(kind, entity_id))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _fetch(self, kind: str, entity_id: int):
        key = (kind, entity_id)
        try:
            if kind == PRODUCT:
                result = await self._backend.fetch_product(entity_id)
            else:
                result = await self._backend.fetch_group_with_options(entity_id)
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            self.failures[key] = reason
            logger.warning(
                "catalog hydration failed",
                extra={"kind": kind, "entity_id": entity_id},
            )
            self.events.emit(HYDRATION_FAILED, {"kind": kind, "id": entity_id, "reason": reason})
            raise HydrationFailure(kind, entity_id, reason) from exc
        finally:
            self._inflight.pop(key, None)

        self.failures.pop(key, None)
        if kind == PRODUCT:
            self.store_product(result)
            self.events.emit(PRODUCT_HYDRATED, {"kind": kind, "id": entity_id})
        else:
            self.store_group(result)
            self.events.emit(GROUP_HYDRATED, {"kind": kind, "id": entity_id})
        return result

    # Prefetch (fire-and-forget)

    def prefetch_product(self, product_id: int) -> None:
        self._prefetch(PRODUCT, product_id)

    def prefetch_group(self, group_id: int) -> None:
        self._prefetch(GROUP, group_id)

    def hydrate_product_groups(self, product: Product) -> None:
        for group in product.product_groups:
            if not group.is_hydrated and group.id not in self._groups:
                self.prefetch_group(group.id)

    def _prefetch(self, kind: str, entity_id: int) -> None:
        key = (kind, entity_id)
        if self._lookup(kind, entity_id) is not None or key in self._inflight:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.add(key)
            return
        task = loop.create_task(self._prefetch_task(kind, entity_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _prefetch_task(self, kind: str, entity_id: int) -> None:
        try:
            await self._load(kind, entity_id)
        except HydrationFailure as exc:
            # já registrado em failures e notificado via HYDRATION_FAILED
            logger.debug("prefetch gave up: %s", exc)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending or self._deferred or self._inflight)

    async def drain(self) -> None:
        """Executa prefetches adiados e espera todos os pendentes terminarem."""
        while self.has_pending:
            deferred = list(self._deferred)
            self._deferred.clear()
            for kind, entity_id in deferred:
                self._prefetch(kind, entity_id)
            if self._pending:
                await asyncio.gather(*list(self._pending))
            if self._inflight:
                # falhas destas tarefas pertencem a quem as aguarda
                await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)
