from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from configurator.core.config import MAX_ITEM_QUANTITY
from configurator.schemas.catalog import CamelModel
from configurator.schemas.order_line import OrderLineRequest
from configurator.schemas.selection import SelectedOption


class SessionCreate(CamelModel):
    product_id: int
    quantity: int = Field(1, ge=1)
    initial_selections: Optional[List[List[SelectedOption]]] = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, value: int) -> int:
        if value > MAX_ITEM_QUANTITY:
            raise ValueError(f"quantity deve ser <= {MAX_ITEM_QUANTITY}")
        return value


class OptionSelect(CamelModel):
    option_id: int


class OptionRemove(CamelModel):
    item_index: int = Field(..., ge=0)
    path: List[int] = Field(..., min_length=1)


class NodeOpen(CamelModel):
    item_index: int = Field(..., ge=0)
    path: List[int] = Field(default_factory=list)


class ExpansionToggle(CamelModel):
    key: str = Field(..., min_length=1)


class ConfirmRequest(CamelModel):
    comment: str = ""
    order_id: Optional[int] = None


class ContextOut(CamelModel):
    type: str
    item_index: Optional[int] = None
    option_path: Optional[List[int]] = None


class GroupSummaryOut(CamelModel):
    group_id: int
    group_name: str
    current: int
    min_quantity: int
    max_quantity: int
    remaining: int
    is_valid: bool
    is_hydrated: bool


class OptionOut(CamelModel):
    id: int
    product_id: int
    product_name: str
    max_quantity: int
    price_increase: Decimal
    count: int
    disabled: bool


class ItemOut(CamelModel):
    index: int
    product_id: int
    product_name: str
    selections: List[SelectedOption]
    price: Decimal
    is_valid: bool
    badges: List[str]


class HydrationWarningOut(CamelModel):
    kind: str
    entity_id: int
    reason: str


class SessionOut(CamelModel):
    id: str
    state: str
    mode: str
    is_edit_mode: bool
    context: ContextOut
    active_tab: int
    groups: List[GroupSummaryOut]
    options: List[OptionOut]
    items: List[ItemOut]
    total_price: Decimal
    is_valid: bool
    expanded: List[str]
    hydration_warnings: List[HydrationWarningOut]


class SelectionOut(CamelModel):
    result: str
    session: SessionOut


class NodeOpenOut(CamelModel):
    result: str
    session: SessionOut


class UnsatisfiedGroupOut(CamelModel):
    item_index: int
    path: List[int]
    group_id: int
    group_name: str
    current: int
    min_quantity: int


class SubmissionOut(CamelModel):
    submitted: List[int]
    failed: dict[int, str]


class ConfirmOut(CamelModel):
    trees: List[List[SelectedOption]]
    order_lines: List[OrderLineRequest]
    submission: Optional[SubmissionOut] = None
