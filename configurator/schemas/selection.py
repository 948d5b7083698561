from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from configurator.schemas.catalog import CamelModel, ProductOption


class SelectedOption(CamelModel):
    """Nó da árvore de escolhas: a opção, quantas unidades e as escolhas feitas dentro dela."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: Optional[int] = None
    product_option: ProductOption
    quantity: int = Field(1, ge=1)
    selected_options: list[SelectedOption] = Field(default_factory=list)


SelectedOption.model_rebuild()
