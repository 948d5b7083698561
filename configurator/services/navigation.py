from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Sequence

from configurator.schemas.catalog import Product, ProductGroup
from configurator.schemas.selection import SelectedOption
from configurator.services.catalog_cache import CatalogCache
from configurator.services.selection_tree import ItemContext, Path, get_by_path, item_key
from configurator.services.validation import GroupSummary, is_item_valid, summarize_group

logger = logging.getLogger(__name__)


class ContextKind(str, Enum):
    CATEGORY = "category"
    OPTION = "option"


class NodeOpenResult(str, Enum):
    OPENED = "opened"
    IGNORED = "ignored"
    PENDING = "pending"


@dataclass(frozen=True)
class NavigationContext:
    type: ContextKind
    item_index: Optional[int] = None
    option_path: Optional[Path] = None

    @classmethod
    def category(cls) -> "NavigationContext":
        return cls(type=ContextKind.CATEGORY)

    @classmethod
    def option(cls, item_index: int, option_path: Optional[Sequence[int]] = None) -> "NavigationContext":
        return cls(
            type=ContextKind.OPTION,
            item_index=item_index,
            option_path=tuple(option_path) if option_path else None,
        )

    @property
    def is_option(self) -> bool:
        return self.type is ContextKind.OPTION and self.item_index is not None


def has_required_groups(product: Product) -> bool:
    return any(group.is_required for group in product.product_groups)


class NavigationStateMachine:
    """Onde o usuário está: qual item, qual caminho dentro dele e qual aba de grupo.

    Contexto ``category`` só existe no modo de navegação pelo catálogo. Em ``option``,
    ``option_path`` vazio significa os grupos raiz do produto do item; um caminho aponta
    para o SelectedOption cujo produto aninhado está sendo configurado.
    """

    def __init__(self, cache: CatalogCache, *, expand: Optional[Callable[[str], None]] = None) -> None:
        self.cache = cache
        self.context = NavigationContext.category()
        self.active_tab = 0
        self.last_category_tab = 0
        self.pending_open: Optional[tuple[int, Path]] = None
        self._expand = expand or (lambda _key: None)

    # Resolução do nível atual

    def level_product(
        self, items: Sequence[ItemContext], item_index: int, path: Optional[Sequence[int]]
    ) -> Optional[Product]:
        if not 0 <= item_index < len(items):
            return None
        item = items[item_index]
        if not path:
            return item.product
        node = get_by_path(item.selections, path)
        if node is None:
            return None
        return self.cache.nested_product(node.product_option)

    def level_groups(
        self, items: Sequence[ItemContext], item_index: int, path: Optional[Sequence[int]]
    ) -> list[ProductGroup]:
        product = self.level_product(items, item_index, path)
        if product is None:
            return []
        return self.cache.resolve_groups(product.product_groups)

    def level_selections(
        self, items: Sequence[ItemContext], item_index: int, path: Optional[Sequence[int]]
    ) -> list[SelectedOption]:
        if not 0 <= item_index < len(items):
            return []
        item = items[item_index]
        if not path:
            return list(item.selections)
        node = get_by_path(item.selections, path)
        return list(node.selected_options) if node else []

    def current_groups(self, items: Sequence[ItemContext]) -> list[ProductGroup]:
        if not self.context.is_option:
            return []
        return self.level_groups(items, self.context.item_index, self.context.option_path)

    def current_selections(self, items: Sequence[ItemContext]) -> list[SelectedOption]:
        if not self.context.is_option:
            return []
        return self.level_selections(items, self.context.item_index, self.context.option_path)

    def group_summaries(self, items: Sequence[ItemContext]) -> list[GroupSummary]:
        selections = self.current_selections(items)
        return [summarize_group(group, selections) for group in self.current_groups(items)]

    def active_group(self, items: Sequence[ItemContext]) -> Optional[ProductGroup]:
        groups = self.current_groups(items)
        if 0 <= self.active_tab < len(groups):
            return groups[self.active_tab]
        return None

    def current_group_remaining(self, items: Sequence[ItemContext]) -> int:
        summaries = self.group_summaries(items)
        if not 0 <= self.active_tab < len(summaries):
            return 0
        return summaries[self.active_tab].remaining

    # Transições

    def enter(self, items: Sequence[ItemContext], item_index: int, path: Optional[Sequence[int]] = None) -> None:
        self.context = NavigationContext.option(item_index, path)
        self.active_tab = 0
        self.pending_open = None
        product = self.level_product(items, item_index, path)
        if product is not None:
            self.cache.hydrate_product_groups(product)
        self._expand(item_key(item_index))

    def switch_tab(self, index: int) -> None:
        self.active_tab = index

    def to_category(self) -> None:
        self.context = NavigationContext.category()
        self.active_tab = self.last_category_tab
        self.pending_open = None

    def auto_navigate(self, items: Sequence[ItemContext], *, edit_mode: bool) -> None:
        if not self.context.is_option:
            return

        while True:
            summaries = self.group_summaries(items)
            if 0 <= self.active_tab < len(summaries) and summaries[self.active_tab].remaining > 0:
                return
            for index in range(self.active_tab + 1, len(summaries)):
                if summaries[index].remaining > 0:
                    self.active_tab = index
                    return
            if not self.context.option_path:
                break
            self._pop_level(items)

        next_index = self._next_item_to_configure(items)
        if next_index is not None:
            logger.debug("auto navigation moved to item", extra={"item_index": next_index})
            self.enter(items, next_index)
            return

        # Em modo edição nunca volta para o catálogo
        if not edit_mode:
            self.to_category()

    def _pop_level(self, items: Sequence[ItemContext]) -> None:
        item_index = self.context.item_index
        path = self.context.option_path or ()
        child = get_by_path(items[item_index].selections, path)
        parent_path = path[:-1] or None

        self.context = NavigationContext.option(item_index, parent_path)
        self.active_tab = 0
        groups = self.level_groups(items, item_index, parent_path)
        if child is not None:
            for index, group in enumerate(groups):
                if group.has_option(child.product_option.id):
                    self.active_tab = index
                    break

        product = self.level_product(items, item_index, parent_path)
        if product is not None:
            self.cache.hydrate_product_groups(product)

    def _next_item_to_configure(self, items: Sequence[ItemContext]) -> Optional[int]:
        current = self.context.item_index or 0
        count = len(items)
        for offset in range(1, count):
            index = (current + offset) % count
            item = items[index]
            if has_required_groups(item.product) and not is_item_valid(item, self.cache):
                return index
        return None

    def open_node(
        self, items: Sequence[ItemContext], item_index: int, path: Optional[Sequence[int]] = None
    ) -> NodeOpenResult:
        if not 0 <= item_index < len(items):
            return NodeOpenResult.IGNORED

        if not path:
            if not items[item_index].product.product_groups:
                return NodeOpenResult.IGNORED
            self.enter(items, item_index)
            return NodeOpenResult.OPENED

        node = get_by_path(items[item_index].selections, path)
        if node is None:
            logger.debug("open_node ignored unknown path %s", list(path), extra={"item_index": item_index})
            return NodeOpenResult.IGNORED

        product = self.cache.nested_product(node.product_option)
        if product is None:
            self.pending_open = (item_index, tuple(path))
            self.cache.prefetch_product(node.product_option.product_id)
            return NodeOpenResult.PENDING

        if not product.is_configurable:
            return NodeOpenResult.IGNORED
        self.enter(items, item_index, path)
        return NodeOpenResult.OPENED

    def complete_pending_open(self, items: Sequence[ItemContext], product_id: int) -> bool:
        if self.pending_open is None:
            return False

        item_index, path = self.pending_open
        node = get_by_path(items[item_index].selections, path) if item_index < len(items) else None
        if node is None:
            self.pending_open = None
            return False
        if node.product_option.product_id != product_id:
            return False

        self.pending_open = None
        product = self.cache.peek_product(product_id)
        if product is None or not product.is_configurable:
            return False
        self.enter(items, item_index, path)
        return True

    def item_removed(self, items: Sequence[ItemContext], removed_index: int) -> None:
        self.pending_open = None
        if not items:
            self.to_category()
            return
        if not self.context.is_option:
            return

        current = self.context.item_index
        if current == removed_index:
            self.to_category()
        elif current > removed_index:
            self.context = replace(self.context, item_index=current - 1)

    def option_removed(self, item_index: int, removed_path: Sequence[int]) -> None:
        self.pending_open = None
        context = self.context
        if not context.is_option or context.item_index != item_index or not context.option_path:
            return

        current = context.option_path
        removed = tuple(removed_path)
        depth = len(removed) - 1
        if depth < 0 or len(current) <= depth or current[:depth] != removed[:depth]:
            return

        if current[depth] == removed[depth]:
            self.context = NavigationContext.option(item_index, removed[:-1] or None)
            self.active_tab = 0
        elif current[depth] > removed[depth]:
            shifted = current[:depth] + (current[depth] - 1,) + current[depth + 1 :]
            self.context = NavigationContext.option(item_index, shifted)
