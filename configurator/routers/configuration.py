import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from configurator.core.errors import ConfirmWhileInvalid, HydrationFailure, InvalidSelection
from configurator.deps import (
    get_catalog_cache,
    get_configuration_session,
    get_order_line_client,
    get_session_registry,
)
from configurator.schemas.catalog import ProductOption
from configurator.schemas.configuration import (
    ConfirmOut,
    ConfirmRequest,
    ExpansionToggle,
    NodeOpen,
    NodeOpenOut,
    OptionRemove,
    OptionSelect,
    SelectionOut,
    SessionCreate,
    SessionOut,
    UnsatisfiedGroupOut,
)
from configurator.services.catalog_cache import CatalogCache
from configurator.services.configuration_session import ConfigurationSession, resolve_selections
from configurator.services.order_lines import OrderLineClient, build_order_line_requests, submit_order_lines
from configurator.services.session_registry import InMemorySessionRegistry

router = APIRouter(prefix="/api/configuration", tags=["configuration"])

logger = logging.getLogger(__name__)


def _session_to_dict(session: ConfigurationSession) -> dict:
    context = session.context
    options = []
    active_group = session.active_group()
    if active_group is not None:
        for option in active_group.options:
            options.append(
                {
                    "id": option.id,
                    "product_id": option.product_id,
                    "product_name": option.product_name,
                    "max_quantity": option.max_quantity,
                    "price_increase": option.price_increase,
                    "count": session.option_count(option),
                    "disabled": session.is_option_disabled(option),
                }
            )

    return {
        "id": session.id,
        "state": session.state.value,
        "mode": session.mode,
        "is_edit_mode": session.is_edit_mode,
        "context": {
            "type": context.type.value,
            "item_index": context.item_index,
            "option_path": list(context.option_path) if context.option_path else None,
        },
        "active_tab": session.active_tab,
        "groups": [
            {
                "group_id": summary.group_id,
                "group_name": summary.group_name,
                "current": summary.current,
                "min_quantity": summary.min_quantity,
                "max_quantity": summary.max_quantity,
                "remaining": summary.remaining,
                "is_valid": summary.is_valid,
                "is_hydrated": summary.is_hydrated,
            }
            for summary in session.summaries
        ],
        "options": options,
        "items": [
            {
                "index": index,
                "product_id": item.product.id,
                "product_name": item.product.name,
                "selections": item.selections,
                "price": session.price(index),
                "is_valid": session.is_item_valid(index),
                "badges": session.item_badges(index),
            }
            for index, item in enumerate(session.items)
        ],
        "total_price": session.total_price(),
        "is_valid": session.is_valid(),
        "expanded": sorted(session.expanded),
        "hydration_warnings": [
            {"kind": warning.kind, "entity_id": warning.entity_id, "reason": warning.reason}
            for warning in session.hydration_warnings
        ],
    }


def _require_open(session: ConfigurationSession) -> None:
    if not session.is_open:
        raise HTTPException(status_code=409, detail="Sessão de configuração já encerrada")


def _find_option(session: ConfigurationSession, option_id: int) -> Optional[ProductOption]:
    for group in session.current_groups():
        option = group.find_option(option_id)
        if option is not None:
            return option
    return None


@router.post("/sessions", response_model=SessionOut)
async def create_session(
    payload: SessionCreate,
    cache: CatalogCache = Depends(get_catalog_cache),
    registry: InMemorySessionRegistry = Depends(get_session_registry),
):
    try:
        product = await cache.get_product(payload.product_id)
    except HydrationFailure as exc:
        status_code = getattr(exc.__cause__, "status_code", None)
        if status_code == 404:
            raise HTTPException(status_code=404, detail="Produto não encontrado")
        logger.warning("catalog unavailable product_id=%s", payload.product_id)
        raise HTTPException(status_code=502, detail="Catálogo indisponível")

    try:
        initial = await resolve_selections(cache, product, payload.initial_selections or [])
    except InvalidSelection as exc:
        raise HTTPException(status_code=422, detail=f"Opção {exc.option_id} inválida: {exc.reason}")
    except HydrationFailure:
        logger.warning("catalog unavailable while resolving selections product_id=%s", product.id)
        raise HTTPException(status_code=502, detail="Catálogo indisponível")

    session = ConfigurationSession.begin(product, payload.quantity, initial, cache=cache)
    registry.add(session)
    await cache.drain()
    return _session_to_dict(session)


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session: ConfigurationSession = Depends(get_configuration_session)):
    return _session_to_dict(session)


@router.post("/sessions/{session_id}/options", response_model=SelectionOut)
async def select_option(
    payload: OptionSelect,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    option = _find_option(session, payload.option_id)
    if option is None:
        raise HTTPException(status_code=404, detail="Opção não disponível neste nível")

    # Carrega o produto da opção antes de decidir se a seleção desce de nível
    try:
        await session.cache.get_product(option.product_id)
    except HydrationFailure:
        logger.warning("option product not loaded option_id=%s", option.id)

    result = session.select_option(option)
    await session.cache.drain()
    return {"result": result.value, "session": _session_to_dict(session)}


@router.post("/sessions/{session_id}/options/remove", response_model=SessionOut)
async def remove_option(
    payload: OptionRemove,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    session.remove_option(payload.item_index, payload.path)
    await session.cache.drain()
    return _session_to_dict(session)


@router.delete("/sessions/{session_id}/items/{item_index}", response_model=SessionOut)
async def remove_item(
    item_index: int,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    session.remove_item(item_index)
    await session.cache.drain()
    return _session_to_dict(session)


@router.post("/sessions/{session_id}/navigate", response_model=NodeOpenOut)
async def navigate(
    payload: NodeOpen,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    result = session.click_node(payload.item_index, payload.path)
    await session.cache.drain()
    return {"result": result.value, "session": _session_to_dict(session)}


@router.post("/sessions/{session_id}/tabs/{index}", response_model=SessionOut)
def switch_tab(
    index: int,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    if not 0 <= index < len(session.current_groups()):
        raise HTTPException(status_code=422, detail="Aba inválida")
    session.switch_tab(index)
    return _session_to_dict(session)


@router.post("/sessions/{session_id}/expansion", response_model=SessionOut)
def toggle_expansion(
    payload: ExpansionToggle,
    session: ConfigurationSession = Depends(get_configuration_session),
):
    _require_open(session)
    session.toggle_expansion(payload.key)
    return _session_to_dict(session)


@router.post("/sessions/{session_id}/hydration/retry", response_model=SessionOut)
async def retry_hydration(session: ConfigurationSession = Depends(get_configuration_session)):
    _require_open(session)
    session.retry_hydration()
    await session.cache.drain()
    return _session_to_dict(session)


@router.post("/sessions/{session_id}/confirm", response_model=ConfirmOut)
async def confirm_session(
    payload: Optional[ConfirmRequest] = None,
    session: ConfigurationSession = Depends(get_configuration_session),
    client: OrderLineClient = Depends(get_order_line_client),
):
    _require_open(session)
    payload = payload or ConfirmRequest()
    try:
        trees = session.confirm()
    except ConfirmWhileInvalid as exc:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Configuração incompleta",
                "unsatisfied": [
                    UnsatisfiedGroupOut(
                        item_index=entry.item_index,
                        path=list(entry.path),
                        group_id=entry.group_id,
                        group_name=entry.group_name,
                        current=entry.current,
                        min_quantity=entry.min_quantity,
                    ).model_dump(by_alias=True)
                    for entry in exc.unsatisfied
                ],
            },
        )

    order_lines = build_order_line_requests(session.items, payload.comment)
    submission = None
    if payload.order_id is not None:
        report = await submit_order_lines(client, payload.order_id, order_lines)
        submission = {"submitted": report.submitted, "failed": report.failed}

    logger.info("configuration confirmed items=%s", len(trees))
    return {"trees": trees, "order_lines": order_lines, "submission": submission}


@router.post("/sessions/{session_id}/cancel", response_model=SessionOut)
def cancel_session(session: ConfigurationSession = Depends(get_configuration_session)):
    _require_open(session)
    session.cancel()
    return _session_to_dict(session)
