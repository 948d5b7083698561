from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Callable

from sqlalchemy.orm import Session

from configurator.core.errors import CatalogFetchError
from configurator.models.catalog_group import CatalogGroup
from configurator.models.catalog_option import CatalogOption
from configurator.models.catalog_product import CatalogProduct
from configurator.models.catalog_product_group import CatalogProductGroup
from configurator.schemas.catalog import Product, ProductGroup


def _group_payload(group: CatalogGroup, options: list[dict] | None = None) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "min_quantity": int(group.min_quantity or 0),
        "max_quantity": int(group.max_quantity or 1),
        "options": options or [],
    }


def load_product(db: Session, *, product_id: int) -> Product:
    product = (
        db.query(CatalogProduct)
        .filter(CatalogProduct.id == product_id, CatalogProduct.active.is_(True))
        .first()
    )
    if not product:
        raise CatalogFetchError(404, f"Produto {product_id} não encontrado")

    groups = (
        db.query(CatalogGroup)
        .join(CatalogProductGroup, CatalogProductGroup.group_id == CatalogGroup.id)
        .filter(
            CatalogProductGroup.product_id == product_id,
            CatalogGroup.active.is_(True),
        )
        .order_by(CatalogProductGroup.order_index.asc(), CatalogGroup.id.asc())
        .all()
    )

    return Product(
        id=product.id,
        name=product.name,
        price=Decimal(product.price or 0),
        composition_type=product.composition_type or "SIMPLE",
        product_groups=[_group_payload(group) for group in groups],
    )


def load_group_with_options(db: Session, *, group_id: int) -> ProductGroup:
    group = (
        db.query(CatalogGroup)
        .filter(CatalogGroup.id == group_id, CatalogGroup.active.is_(True))
        .first()
    )
    if not group:
        raise CatalogFetchError(404, f"Grupo {group_id} não encontrado")

    rows = (
        db.query(CatalogOption, CatalogProduct.name)
        .join(CatalogProduct, CatalogProduct.id == CatalogOption.product_id)
        .filter(CatalogOption.group_id == group_id, CatalogOption.is_active.is_(True))
        .order_by(CatalogOption.order_index.asc(), CatalogOption.id.asc())
        .all()
    )

    options = [
        {
            "id": option.id,
            "product_id": option.product_id,
            "product_name": product_name,
            "max_quantity": int(option.max_quantity or 1),
            "price_increase": Decimal(option.price_increase or 0),
        }
        for option, product_name in rows
    ]
    return ProductGroup.model_validate(_group_payload(group, options))


class SqlCatalogBackend:
    """Adapta os loaders síncronos ao protocolo assíncrono do catálogo.

    Cada busca roda numa thread de worker com sua própria sessão, fora do event loop.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def fetch_product(self, product_id: int) -> Product:
        return await asyncio.to_thread(self._run, load_product, product_id=product_id)

    async def fetch_group_with_options(self, group_id: int) -> ProductGroup:
        return await asyncio.to_thread(self._run, load_group_with_options, group_id=group_id)

    def _run(self, loader, **kwargs):
        db = self._session_factory()
        try:
            return loader(db, **kwargs)
        finally:
            db.close()
