# watergo/client/api.py
import logging
import uuid
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from watergo.client.config import ClientSettings, get_client_settings
from watergo.client.errors import ApiError, NetworkError
from watergo.models.status import OrderStatus
from watergo.schemas.order import (
    DriverRead,
    OrderCreate,
    OrderRead,
    OrderStatusRead,
    OrderWithItemsRead,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class OrderApiClient:
    """
    Async HTTP client for the order API.

    Errors:
      - NetworkError: transport failure, timeout, 5xx, or a 2xx body
        that is not the expected payload
      - ApiError: 4xx, with the server's error kind and message

    Mutations are sent once; retrying is the caller's decision.

    Usage:

        async with OrderApiClient.from_settings() as api:
            status = await api.get_order_status(order_id)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings | None = None) -> "OrderApiClient":
        settings = settings or get_client_settings()
        return cls(
            settings.API_BASE_URL,
            token=settings.API_TOKEN,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "OrderApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ---- transport ----

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code >= 500:
            raise NetworkError(f"{method} {path} answered {resp.status_code}")
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            detail = body.get("detail") if isinstance(body, dict) else body
            raise ApiError.from_detail(resp.status_code, detail)
        try:
            return resp.json()
        except ValueError as exc:
            # e.g. an HTML page from a proxy or captive portal
            raise NetworkError(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise NetworkError(f"Unexpected {model.__name__} payload: {exc}") from exc

    @classmethod
    def _parse_list(cls, model: type[ModelT], data: Any) -> list[ModelT]:
        if not isinstance(data, list):
            raise NetworkError(f"Expected a list of {model.__name__}, got {type(data).__name__}")
        return [cls._parse(model, item) for item in data]

    # ---- orders ----

    async def create_order(self, payload: OrderCreate) -> OrderWithItemsRead:
        data = await self._request("POST", "/orders", json=payload.model_dump(mode="json"))
        return self._parse(OrderWithItemsRead, data)

    async def get_order(self, order_id: uuid.UUID) -> OrderWithItemsRead:
        data = await self._request("GET", f"/orders/{order_id}")
        return self._parse(OrderWithItemsRead, data)

    async def get_order_status(self, order_id: uuid.UUID) -> OrderStatusRead:
        data = await self._request("GET", f"/orders/{order_id}/status")
        return self._parse(OrderStatusRead, data)

    async def get_order_driver(self, order_id: uuid.UUID) -> DriverRead | None:
        data = await self._request("GET", f"/orders/{order_id}/driver")
        if data is None:
            return None
        return self._parse(DriverRead, data)

    async def list_my_orders(self, skip: int = 0, limit: int = 50) -> list[OrderRead]:
        data = await self._request(
            "GET", "/orders/me", params={"skip": skip, "limit": limit}
        )
        return self._parse_list(OrderRead, data)

    async def list_orders(
        self,
        firm_id: uuid.UUID,
        status: OrderStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        params: dict[str, Any] = {"skip": skip, "limit": limit}
        if status is not None:
            params["status"] = status.value
        data = await self._request("GET", f"/firms/{firm_id}/orders", params=params)
        return self._parse_list(OrderRead, data)

    # ---- dispatch ----

    async def assign_driver(
        self,
        order_id: uuid.UUID,
        driver_id: uuid.UUID,
        driver_name: str,
    ) -> OrderRead:
        data = await self._request(
            "POST",
            f"/orders/{order_id}/assign",
            json={"driver_id": str(driver_id), "driver_name": driver_name},
        )
        return self._parse(OrderRead, data)

    async def advance_stage(
        self,
        order_id: uuid.UUID,
        next_status: OrderStatus,
    ) -> OrderRead:
        data = await self._request(
            "POST",
            f"/orders/{order_id}/advance",
            json={"status": next_status.value},
        )
        return self._parse(OrderRead, data)

    async def cancel_order(self, order_id: uuid.UUID, reason: str | None) -> OrderRead:
        data = await self._request(
            "POST",
            f"/orders/{order_id}/cancel",
            json={"reason": reason},
        )
        return self._parse(OrderRead, data)

    async def return_to_queue(self, order_id: uuid.UUID) -> OrderRead:
        data = await self._request("POST", f"/orders/{order_id}/return-to-queue")
        return self._parse(OrderRead, data)
