from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from configurator.core.errors import ConfirmWhileInvalid, InvalidSelection, SessionClosed
from configurator.schemas.catalog import Product, ProductGroup, ProductOption
from configurator.schemas.selection import SelectedOption
from configurator.services.catalog_cache import GROUP, PRODUCT, CatalogCache
from configurator.services.event_bus import GROUP_HYDRATED, HYDRATION_FAILED, PRODUCT_HYDRATED
from configurator.services.navigation import (
    NavigationContext,
    NavigationStateMachine,
    NodeOpenResult,
)
from configurator.services.selection_tree import (
    ItemContext,
    add_at_path,
    add_or_increment,
    collect_badges,
    find_index,
    get_by_path,
    item_key,
    iter_nodes,
    node_key,
    option_quantity,
    remove_at_path,
)
from configurator.services.validation import (
    GroupSummary,
    UnsatisfiedGroup,
    is_item_valid,
    is_session_valid,
    unsatisfied_groups,
)

logger = logging.getLogger(__name__)


class SelectionResult(str, Enum):
    ADDED = "added"
    DESCENDED = "descended"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NOT_OFFERED = "not_offered"
    NO_CONTEXT = "no_context"


class SessionState(str, Enum):
    OPEN = "open"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class HydrationWarning:
    kind: str
    entity_id: int
    reason: str


def item_price(item: ItemContext) -> Decimal:
    total = Decimal(item.product.price)
    for node in iter_nodes(item.selections):
        total += Decimal(node.product_option.price_increase) * node.quantity
    return total


async def resolve_selections(
    cache: CatalogCache,
    product: Product,
    trees: Sequence[Sequence[SelectedOption]],
) -> list[list[SelectedOption]]:
    """Troca as opções recebidas pelas do catálogo, nível a nível.

    Preço, máximo e nome passam a vir do grupo hidratado; uma opção que não pertence
    ao produto do nível ou uma quantidade acima do máximo gera ``InvalidSelection``.
    """
    return [await _resolve_level(cache, product, tree) for tree in trees]


async def _resolve_level(
    cache: CatalogCache,
    product: Product,
    nodes: Sequence[SelectedOption],
) -> list[SelectedOption]:
    resolved = []
    for node in nodes:
        option = await _catalog_option(cache, product, node.product_option.id)
        if option is None:
            raise InvalidSelection(node.product_option.id, f"não pertence ao produto {product.id}")
        if node.quantity > option.max_quantity:
            raise InvalidSelection(option.id, f"quantidade {node.quantity} acima de {option.max_quantity}")

        children: list[SelectedOption] = []
        if node.selected_options:
            nested = await cache.get_product(option.product_id)
            children = await _resolve_level(cache, nested, node.selected_options)
        resolved.append(node.model_copy(update={"product_option": option, "selected_options": children}))
    return resolved


async def _catalog_option(cache: CatalogCache, product: Product, option_id: int) -> Optional[ProductOption]:
    for group in product.product_groups:
        hydrated = group if group.is_hydrated else await cache.get_group(group.id)
        option = hydrated.find_option(option_id)
        if option is not None:
            return option
    return None


class ConfigurationSession:
    """Buffer de edição em memória para configurar N cópias de um produto.

    Toda mutação passa pelas operações endereçadas por caminho daqui; o estado derivado
    (``group_summaries``, validade) é recalculado após cada mutação e quando o catálogo
    termina de carregar algo que a sessão usa. A sessão termina em ``confirm()`` ou ``cancel()``.
    """

    def __init__(self, cache: CatalogCache, *, session_id: Optional[str] = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.cache = cache
        self.items: list[ItemContext] = []
        self.expanded: set[str] = set()
        self.is_edit_mode = False
        self.mode = "root"
        self.state = SessionState.OPEN
        self.hydration_warnings: list[HydrationWarning] = []
        self.summaries: list[GroupSummary] = []
        self.on_change: Optional[Callable[["ConfigurationSession"], None]] = None
        self.navigation = NavigationStateMachine(cache, expand=self.expanded.add)

        cache.events.subscribe(GROUP_HYDRATED, self._on_group_hydrated)
        cache.events.subscribe(PRODUCT_HYDRATED, self._on_product_hydrated)
        cache.events.subscribe(HYDRATION_FAILED, self._on_hydration_failed)

    # Criação

    @classmethod
    def begin(
        cls,
        product: Product,
        quantity: int,
        initial_selections: Optional[Sequence[Sequence[SelectedOption]]] = None,
        *,
        cache: CatalogCache,
        session_id: Optional[str] = None,
    ) -> "ConfigurationSession":
        if quantity < 1:
            raise ValueError("quantity deve ser >= 1")

        initial = list(initial_selections or [])
        session = cls(cache, session_id=session_id)
        session.mode = "product"
        session.items = [
            ItemContext(product=product, selections=list(initial[index]) if index < len(initial) else [])
            for index in range(quantity)
        ]
        session.is_edit_mode = any(len(tree) > 0 for tree in initial)
        session.navigation.context = NavigationContext.option(0)
        session.navigation.active_tab = 0

        cache.store_product(product)
        cache.hydrate_product_groups(product)
        for item in session.items:
            for node in iter_nodes(item.selections):
                nested = cache.nested_product(node.product_option)
                if nested is None:
                    cache.prefetch_product(node.product_option.product_id)
                else:
                    cache.hydrate_product_groups(nested)

        if initial and initial[0]:
            session.expanded.add(item_key(0))

        session._refresh()
        logger.info(
            "configuration session started product_id=%s quantity=%s edit_mode=%s",
            product.id,
            quantity,
            session.is_edit_mode,
            extra={"session_id": session.id},
        )
        return session

    @classmethod
    def browse(cls, *, cache: CatalogCache, session_id: Optional[str] = None) -> "ConfigurationSession":
        session = cls(cache, session_id=session_id)
        session._refresh()
        return session

    # Leitura

    @property
    def context(self) -> NavigationContext:
        return self.navigation.context

    @property
    def active_tab(self) -> int:
        return self.navigation.active_tab

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    def current_groups(self) -> list[ProductGroup]:
        return self.navigation.current_groups(self.items)

    def current_selections(self) -> list[SelectedOption]:
        return self.navigation.current_selections(self.items)

    def active_group(self) -> Optional[ProductGroup]:
        return self.navigation.active_group(self.items)

    def group_summaries(self) -> list[GroupSummary]:
        return self.navigation.group_summaries(self.items)

    def current_group_remaining(self) -> int:
        return self.navigation.current_group_remaining(self.items)

    def option_count(self, option: ProductOption) -> int:
        return option_quantity(self.current_selections(), option.id)

    def is_option_disabled(self, option: ProductOption) -> bool:
        if self.option_count(option) >= option.max_quantity:
            return True
        return self.current_group_remaining() <= 0 and self.option_count(option) == 0

    def is_item_valid(self, item_index: int) -> bool:
        return is_item_valid(self.items[item_index], self.cache)

    def is_valid(self) -> bool:
        return is_session_valid(self.items, self.cache)

    def unsatisfied_groups(self) -> list[UnsatisfiedGroup]:
        return unsatisfied_groups(self.items, self.cache)

    def price(self, item_index: int) -> Decimal:
        return item_price(self.items[item_index])

    def total_price(self) -> Decimal:
        return sum((item_price(item) for item in self.items), Decimal("0"))

    def item_badges(self, item_index: int) -> list[str]:
        return collect_badges(self.items[item_index].selections)

    # Mutações

    def select_product(self, product: Product) -> bool:
        self._ensure_open()
        if self.is_edit_mode:
            return False

        if not self.context.is_option:
            self.navigation.last_category_tab = self.navigation.active_tab

        self.cache.store_product(product)
        self.items.append(ItemContext(product=product, selections=[]))
        item_index = len(self.items) - 1
        if product.is_configurable and product.requires_configuration:
            self.navigation.enter(self.items, item_index)
        self._refresh()
        return True

    def select_option(self, option: ProductOption) -> SelectionResult:
        self._ensure_open()
        context = self.context
        if not context.is_option:
            return SelectionResult.NO_CONTEXT

        groups = self.current_groups()
        group_index = next((index for index, group in enumerate(groups) if group.has_option(option.id)), None)
        if group_index is None:
            logger.warning(
                "option %s not offered at current level",
                option.id,
                extra={"session_id": self.id, "item_index": context.item_index},
            )
            return SelectionResult.NOT_OFFERED

        self.navigation.switch_tab(group_index)
        if self.current_group_remaining() <= 0 or self.option_count(option) >= option.max_quantity:
            logger.debug(
                "selection ignored, capacity exceeded option_id=%s",
                option.id,
                extra={"session_id": self.id, "item_index": context.item_index},
            )
            return SelectionResult.CAPACITY_EXCEEDED

        item_index = context.item_index
        item = self.items[item_index]
        if context.option_path is None:
            selections = add_or_increment(item.selections, option)
            level = selections
        else:
            selections = add_at_path(item.selections, context.option_path, option)
            parent = get_by_path(selections, context.option_path)
            level = parent.selected_options if parent else []
            self.expanded.add(node_key(item_index, context.option_path))
        self.items[item_index] = replace(item, selections=selections)
        self.expanded.add(item_key(item_index))

        product = self.cache.nested_product(option)
        if product is None:
            # Sem o produto ainda não dá para saber se exige configuração
            self.cache.prefetch_product(option.product_id)
        elif product.is_configurable and product.requires_configuration:
            path = (context.option_path or ()) + (find_index(level, option),)
            self.navigation.enter(self.items, item_index, path)
            self._refresh()
            return SelectionResult.DESCENDED

        self.navigation.auto_navigate(self.items, edit_mode=self.is_edit_mode)
        self._refresh()
        return SelectionResult.ADDED

    def switch_tab(self, index: int) -> None:
        self._ensure_open()
        self.navigation.switch_tab(index)
        self._refresh()

    def click_node(self, item_index: int, path: Optional[Sequence[int]] = None) -> NodeOpenResult:
        self._ensure_open()
        result = self.navigation.open_node(self.items, item_index, path)
        if result is NodeOpenResult.OPENED:
            self._refresh()
        return result

    def remove_item(self, item_index: int) -> bool:
        self._ensure_open()
        # Em modo edição o item configurado não pode ser removido
        if self.is_edit_mode or not 0 <= item_index < len(self.items):
            return False

        del self.items[item_index]
        reindexed = _reindex_expanded(self.expanded, item_index)
        self.expanded.clear()
        self.expanded.update(reindexed)
        self.navigation.item_removed(self.items, item_index)
        self._refresh()
        return True

    def remove_option(self, item_index: int, path: Sequence[int]) -> bool:
        self._ensure_open()
        if not 0 <= item_index < len(self.items) or get_by_path(self.items[item_index].selections, path) is None:
            logger.debug("remove_option ignored invalid path %s", list(path), extra={"item_index": item_index})
            return False

        item = self.items[item_index]
        self.items[item_index] = replace(item, selections=remove_at_path(item.selections, path))
        self.navigation.option_removed(item_index, path)
        self._refresh()
        return True

    def toggle_expansion(self, key: str) -> None:
        self._ensure_open()
        if key in self.expanded:
            self.expanded.discard(key)
        else:
            self.expanded.add(key)

    def back_to_catalog(self) -> bool:
        self._ensure_open()
        if self.is_edit_mode:
            return False
        self.navigation.to_category()
        self._refresh()
        return True

    def retry_hydration(self) -> None:
        self._ensure_open()
        warnings, self.hydration_warnings = self.hydration_warnings, []
        for warning in warnings:
            if warning.kind == PRODUCT:
                self.cache.prefetch_product(warning.entity_id)
            else:
                self.cache.prefetch_group(warning.entity_id)

    # Fim da sessão

    def confirm(self) -> list[list[SelectedOption]]:
        self._ensure_open()
        if not self.is_valid():
            unsatisfied = self.unsatisfied_groups()
            logger.info(
                "confirm rejected, %s unsatisfied group(s)",
                len(unsatisfied),
                extra={"session_id": self.id},
            )
            raise ConfirmWhileInvalid(unsatisfied)

        trees = [list(item.selections) for item in self.items]
        self._close(SessionState.CONFIRMED)
        return trees

    def cancel(self) -> None:
        self._ensure_open()
        self._close(SessionState.CANCELLED)

    def _close(self, state: SessionState) -> None:
        self.state = state
        self.cache.events.unsubscribe(GROUP_HYDRATED, self._on_group_hydrated)
        self.cache.events.unsubscribe(PRODUCT_HYDRATED, self._on_product_hydrated)
        self.cache.events.unsubscribe(HYDRATION_FAILED, self._on_hydration_failed)
        logger.info("configuration session %s", state.value, extra={"session_id": self.id})

    def _ensure_open(self) -> None:
        if self.state is not SessionState.OPEN:
            raise SessionClosed(self.id, self.state.value)

    # Estado derivado e observadores

    def _refresh(self) -> None:
        self.summaries = self.group_summaries()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _references_product(self, product_id: int) -> bool:
        for item in self.items:
            if item.product.id == product_id:
                return True
            if any(node.product_option.product_id == product_id for node in iter_nodes(item.selections)):
                return True
        return False

    def _on_group_hydrated(self, payload: dict[str, Any]) -> None:
        group_id = payload.get("id")
        if not self._references_group(group_id):
            return
        self.hydration_warnings = [
            warning
            for warning in self.hydration_warnings
            if not (warning.kind == GROUP and warning.entity_id == group_id)
        ]
        self._refresh()
        self._notify()

    def _on_product_hydrated(self, payload: dict[str, Any]) -> None:
        product_id = payload.get("id")
        if not self._references_product(product_id):
            return
        self.hydration_warnings = [
            warning
            for warning in self.hydration_warnings
            if not (warning.kind == PRODUCT and warning.entity_id == product_id)
        ]
        product = self.cache.peek_product(product_id)
        if product is not None:
            self.cache.hydrate_product_groups(product)
        self.navigation.complete_pending_open(self.items, product_id)
        self._refresh()
        self._notify()

    def _on_hydration_failed(self, payload: dict[str, Any]) -> None:
        warning = HydrationWarning(
            kind=str(payload.get("kind") or GROUP),
            entity_id=int(payload.get("id") or 0),
            reason=str(payload.get("reason") or ""),
        )
        if warning.kind == GROUP and not self._references_group(warning.entity_id):
            return
        if warning.kind == PRODUCT and not self._references_product(warning.entity_id):
            return
        if any(
            existing.kind == warning.kind and existing.entity_id == warning.entity_id
            for existing in self.hydration_warnings
        ):
            return
        self.hydration_warnings.append(warning)
        pending = self.navigation.pending_open
        if warning.kind == PRODUCT and pending is not None:
            node = get_by_path(self.items[pending[0]].selections, pending[1]) if pending[0] < len(self.items) else None
            if node is None or node.product_option.product_id == warning.entity_id:
                self.navigation.pending_open = None
        self._notify()

    def _references_group(self, group_id: int) -> bool:
        products = [item.product for item in self.items]
        for item in self.items:
            for node in iter_nodes(item.selections):
                nested = self.cache.nested_product(node.product_option)
                if nested is not None:
                    products.append(nested)
        return any(group.id == group_id for product in products for group in product.product_groups)


def _reindex_expanded(expanded: set[str], removed_index: int) -> set[str]:
    reindexed: set[str] = set()
    for key in expanded:
        head, _, rest = key.partition("-opt-")
        prefix, _, raw_index = head.partition("-")
        if prefix != "item" or not raw_index.isdigit():
            reindexed.add(key)
            continue
        index = int(raw_index)
        if index == removed_index:
            continue
        if index > removed_index:
            index -= 1
        reindexed.add(item_key(index) + (f"-opt-{rest}" if rest else ""))
    return reindexed
