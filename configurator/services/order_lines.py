from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import httpx

from configurator.core.errors import OrderLineSubmitError
from configurator.schemas.order_line import OrderLineRequest, SelectedOptionRequest
from configurator.schemas.selection import SelectedOption
from configurator.services.catalog_backend import _backoff_seconds, _should_retry
from configurator.services.selection_tree import ItemContext

logger = logging.getLogger(__name__)


def lower_selections(tree: Sequence[SelectedOption]) -> list[SelectedOptionRequest]:
    return [
        SelectedOptionRequest(
            product_option_id=node.product_option.id,
            quantity=node.quantity,
            selected_options=lower_selections(node.selected_options),
        )
        for node in tree
    ]


def build_order_line_requests(items: Sequence[ItemContext], comment: str = "") -> list[OrderLineRequest]:
    """Uma linha de pedido por cópia configurada (quantidade sempre 1)."""
    return [
        OrderLineRequest(
            product_id=item.product.id,
            quantity=1,
            selected_options=lower_selections(item.selections),
            comment=comment,
        )
        for item in items
    ]


class OrderLineClient(Protocol):
    async def submit(self, order_id: int, request: OrderLineRequest) -> None:
        ...


class HttpOrderLineClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = max(1, retries)
        self._transport = transport
        self._sleep = sleep

    async def submit(self, order_id: int, request: OrderLineRequest) -> None:
        url = f"{self.base_url}/orders/{order_id}/items"
        body = [request.model_dump(mode="json", by_alias=True)]

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.retries + 1):
                try:
                    response = await client.post(url, json=body)
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    logger.warning("order line submit failed url=%s attempt=%s error=%s", url, attempt, exc)
                    if attempt < self.retries:
                        await self._sleep(_backoff_seconds(attempt))
                        continue
                    raise OrderLineSubmitError(0, str(exc)) from exc

                if 200 <= response.status_code < 300:
                    return

                if _should_retry(response.status_code) and attempt < self.retries:
                    logger.warning(
                        "order line submit retry url=%s status=%s attempt=%s",
                        url,
                        response.status_code,
                        attempt,
                    )
                    await self._sleep(_backoff_seconds(attempt))
                    continue

                raise OrderLineSubmitError(response.status_code, response.text)


@dataclass
class SubmissionReport:
    submitted: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


async def submit_order_lines(
    client: OrderLineClient, order_id: int, requests: Sequence[OrderLineRequest]
) -> SubmissionReport:
    report = SubmissionReport()
    for index, request in enumerate(requests):
        try:
            await client.submit(order_id, request)
        except OrderLineSubmitError as exc:
            logger.warning(
                "order line not submitted order_id=%s status=%s",
                order_id,
                exc.status_code,
                extra={"item_index": index},
            )
            report.failed[index] = str(exc)
            continue
        report.submitted.append(index)

    logger.info(
        "order lines submitted order_id=%s ok=%s failed=%s",
        order_id,
        len(report.submitted),
        len(report.failed),
    )
    return report
