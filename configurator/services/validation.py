from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from configurator.schemas.catalog import Product, ProductGroup, ProductOption
from configurator.schemas.selection import SelectedOption
from configurator.services.selection_tree import ItemContext, Path


class CatalogLookup(Protocol):
    def resolve_groups(self, groups: Sequence[ProductGroup]) -> list[ProductGroup]:
        ...

    def nested_product(self, option: ProductOption) -> Optional[Product]:
        ...


@dataclass(frozen=True)
class GroupSummary:
    group_id: int
    group_name: str
    current: int
    min_quantity: int
    max_quantity: int
    is_valid: bool
    is_hydrated: bool

    @property
    def remaining(self) -> int:
        return self.max_quantity - self.current


@dataclass(frozen=True)
class UnsatisfiedGroup:
    item_index: int
    path: Path
    group_id: int
    group_name: str
    current: int
    min_quantity: int


def selected_quantity(group: ProductGroup, selections: Sequence[SelectedOption]) -> int:
    return sum(entry.quantity for entry in selections if group.has_option(entry.product_option.id))


def is_group_satisfied(group: ProductGroup, selections: Sequence[SelectedOption]) -> bool:
    # Grupo sem opções carregadas só é válido se for opcional
    if not group.is_hydrated:
        return group.min_quantity == 0
    return selected_quantity(group, selections) >= group.min_quantity


def summarize_group(group: ProductGroup, selections: Sequence[SelectedOption]) -> GroupSummary:
    current = selected_quantity(group, selections) if group.is_hydrated else 0
    return GroupSummary(
        group_id=group.id,
        group_name=group.name,
        current=current,
        min_quantity=group.min_quantity,
        max_quantity=group.max_quantity,
        is_valid=is_group_satisfied(group, selections),
        is_hydrated=group.is_hydrated,
    )


def _node_groups(node: SelectedOption, lookup: CatalogLookup) -> list[ProductGroup]:
    product = lookup.nested_product(node.product_option)
    if product is None:
        return []
    return lookup.resolve_groups(product.product_groups)


def are_selections_valid(selections: Sequence[SelectedOption], lookup: CatalogLookup) -> bool:
    return all(is_node_valid(node, lookup) for node in selections)


def is_node_valid(node: SelectedOption, lookup: CatalogLookup) -> bool:
    groups = _node_groups(node, lookup)
    if not all(is_group_satisfied(group, node.selected_options) for group in groups):
        return False
    return are_selections_valid(node.selected_options, lookup)


def is_item_valid(item: ItemContext, lookup: CatalogLookup) -> bool:
    groups = lookup.resolve_groups(item.product.product_groups)
    if not all(is_group_satisfied(group, item.selections) for group in groups):
        return False
    return are_selections_valid(item.selections, lookup)


def is_session_valid(items: Sequence[ItemContext], lookup: CatalogLookup) -> bool:
    return all(is_item_valid(item, lookup) for item in items)


def _collect_unsatisfied(
    item_index: int,
    path: Path,
    groups: Sequence[ProductGroup],
    selections: Sequence[SelectedOption],
    lookup: CatalogLookup,
    out: list[UnsatisfiedGroup],
) -> None:
    for group in groups:
        if is_group_satisfied(group, selections):
            continue
        out.append(
            UnsatisfiedGroup(
                item_index=item_index,
                path=path,
                group_id=group.id,
                group_name=group.name,
                current=selected_quantity(group, selections) if group.is_hydrated else 0,
                min_quantity=group.min_quantity,
            )
        )
    for position, node in enumerate(selections):
        _collect_unsatisfied(
            item_index,
            path + (position,),
            _node_groups(node, lookup),
            node.selected_options,
            lookup,
            out,
        )


def unsatisfied_groups(items: Sequence[ItemContext], lookup: CatalogLookup) -> list[UnsatisfiedGroup]:
    out: list[UnsatisfiedGroup] = []
    for item_index, item in enumerate(items):
        _collect_unsatisfied(
            item_index,
            (),
            lookup.resolve_groups(item.product.product_groups),
            item.selections,
            lookup,
            out,
        )
    return out
