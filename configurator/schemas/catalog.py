from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CatalogRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CompositionType(str, Enum):
    SIMPLE = "SIMPLE"
    SELECTABLE = "SELECTABLE"
    FIXED_SELECTABLE = "FIXED_SELECTABLE"


class ProductOption(CatalogRecord):
    id: int
    product_id: int
    product_name: str = ""
    max_quantity: int = 1
    price_increase: Decimal = Decimal("0")


class ProductGroup(CatalogRecord):
    id: int
    name: str = ""
    min_quantity: int = 0
    max_quantity: int = 1
    options: list[ProductOption] = Field(default_factory=list)

    @property
    def is_hydrated(self) -> bool:
        return bool(self.options)

    @property
    def is_required(self) -> bool:
        return self.min_quantity > 0

    def has_option(self, option_id: int) -> bool:
        return any(option.id == option_id for option in self.options)

    def find_option(self, option_id: int) -> Optional[ProductOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Product(CatalogRecord):
    id: int
    name: str
    price: Decimal = Decimal("0")
    composition_type: CompositionType = CompositionType.SIMPLE
    product_groups: list[ProductGroup] = Field(default_factory=list)

    @property
    def is_configurable(self) -> bool:
        return (
            self.composition_type in (CompositionType.SELECTABLE, CompositionType.FIXED_SELECTABLE)
            and len(self.product_groups) > 0
        )

    @property
    def requires_configuration(self) -> bool:
        return self.is_configurable and any(group.is_required for group in self.product_groups)
