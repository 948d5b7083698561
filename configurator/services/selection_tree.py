from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from configurator.schemas.catalog import Product, ProductOption
from configurator.schemas.selection import SelectedOption

logger = logging.getLogger(__name__)

Path = tuple[int, ...]


@dataclass(frozen=True)
class ItemContext:
    product: Product
    selections: list[SelectedOption] = field(default_factory=list)


def _in_range(selections: Sequence[SelectedOption], index: int) -> bool:
    return 0 <= index < len(selections)


def get_by_path(selections: Sequence[SelectedOption], path: Sequence[int]) -> Optional[SelectedOption]:
    if not path:
        return None

    index, *rest = path
    if not _in_range(selections, index):
        return None

    node = selections[index]
    if not rest:
        return node
    return get_by_path(node.selected_options, rest)


def add_or_increment(selections: Sequence[SelectedOption], option: ProductOption) -> list[SelectedOption]:
    updated = list(selections)
    for position, entry in enumerate(updated):
        if entry.product_option.id == option.id:
            updated[position] = entry.model_copy(update={"quantity": entry.quantity + 1})
            return updated

    updated.append(SelectedOption(product_option=option, quantity=1, selected_options=[]))
    return updated


def add_at_path(
    selections: Sequence[SelectedOption], path: Sequence[int], option: ProductOption
) -> list[SelectedOption]:
    if not path:
        return list(selections)

    index, *rest = path
    if not _in_range(selections, index):
        logger.debug("add_at_path ignored out-of-range path %s", list(path))
        return list(selections)

    target = selections[index]
    if rest:
        children = add_at_path(target.selected_options, rest, option)
    else:
        children = add_or_increment(target.selected_options, option)

    updated = list(selections)
    updated[index] = target.model_copy(update={"selected_options": children})
    return updated


def remove_at_path(selections: Sequence[SelectedOption], path: Sequence[int]) -> list[SelectedOption]:
    if not path:
        return list(selections)

    index, *rest = path
    if not _in_range(selections, index):
        logger.debug("remove_at_path ignored out-of-range path %s", list(path))
        return list(selections)

    if not rest:
        return [entry for position, entry in enumerate(selections) if position != index]

    target = selections[index]
    updated = list(selections)
    updated[index] = target.model_copy(
        update={"selected_options": remove_at_path(target.selected_options, rest)}
    )
    return updated


def find_index(selections: Sequence[SelectedOption], option: ProductOption) -> int:
    for position, entry in enumerate(selections):
        if entry.product_option.id == option.id:
            return position
    return -1


def option_quantity(selections: Sequence[SelectedOption], option_id: int) -> int:
    for entry in selections:
        if entry.product_option.id == option_id:
            return entry.quantity
    return 0


def iter_nodes(selections: Sequence[SelectedOption]) -> Iterator[SelectedOption]:
    """Percorre a árvore em profundidade, pai antes dos filhos."""
    for entry in selections:
        yield entry
        yield from iter_nodes(entry.selected_options)


def collect_badges(selections: Sequence[SelectedOption]) -> list[str]:
    badges: list[str] = []
    for entry in iter_nodes(selections):
        name = entry.product_option.product_name
        badges.append(f"{entry.quantity}x {name}" if entry.quantity > 1 else name)
    return badges


def item_key(item_index: int) -> str:
    return f"item-{item_index}"


def node_key(item_index: int, path: Sequence[int]) -> str:
    key = item_key(item_index)
    for index in path:
        key = f"{key}-opt-{index}"
    return key
