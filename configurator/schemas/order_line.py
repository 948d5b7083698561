from __future__ import annotations

from pydantic import Field

from configurator.schemas.catalog import CamelModel


class SelectedOptionRequest(CamelModel):
    product_option_id: int
    quantity: int = Field(..., ge=1)
    selected_options: list[SelectedOptionRequest] = Field(default_factory=list)


class OrderLineRequest(CamelModel):
    product_id: int
    quantity: int = 1
    selected_options: list[SelectedOptionRequest] = Field(default_factory=list)
    comment: str = ""


SelectedOptionRequest.model_rebuild()
