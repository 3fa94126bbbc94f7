"""REST client for the dashboard's view group service.

Implements :class:`viewnav.service.NavigationBackend` on top of
``httpx.AsyncClient``. Reorder calls always carry the complete final order,
so retrying a transient failure is safe.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .models import Group, Item, NavigationSettings, OrderEntry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://localhost:7273/api"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Status codes worth another attempt: network failure (0), timeout, server errors
RETRYABLE_STATUS = {0, 408, 500, 502, 503, 504}


class ApiError(Exception):
    """A request failed or the service answered with a non-2xx status."""

    def __init__(self, status: int, message: str, data: Any = None):
        super().__init__(message)
        self.status = status
        self.data = data

    @property
    def retryable(self) -> bool:
        return self.status in RETRYABLE_STATUS


class HttpNavigationBackend:
    """View group and navigation settings endpoints of the dashboard API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = max(0.0, float(retry_delay))
        self.backoff_multiplier = max(1.0, float(backoff_multiplier))
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, config, base_url: Optional[str] = None, **kwargs) -> "HttpNavigationBackend":
        return cls(
            base_url or config.get_setting("api.base_url", DEFAULT_BASE_URL),
            timeout=config.get_setting("api.timeout", DEFAULT_TIMEOUT),
            max_attempts=config.get_setting("api.retry.max_attempts", DEFAULT_MAX_ATTEMPTS),
            retry_delay=config.get_setting("api.retry.delay", DEFAULT_RETRY_DELAY),
            backoff_multiplier=config.get_setting(
                "api.retry.backoff_multiplier", DEFAULT_BACKOFF_MULTIPLIER
            ),
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpNavigationBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------ transport
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> Any:
        delay = self.retry_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._send(method, path, params=params, json=json)
            except ApiError as exc:
                if not exc.retryable or attempt == self.max_attempts:
                    raise
                logger.warning(
                    "%s %s failed with status %s (attempt %d/%d); retrying in %.1fs",
                    method,
                    path,
                    exc.status,
                    attempt,
                    self.max_attempts,
                    delay,
                )
            await asyncio.sleep(delay)
            delay *= self.backoff_multiplier

    async def _send(self, method: str, path: str, *, params=None, json=None) -> Any:
        logger.debug("API request: %s %s", method, path)
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise ApiError(408, "Request timed out") from exc
        except httpx.TransportError as exc:
            raise ApiError(0, f"Network request failed: {exc}") from exc

        if response.is_error:
            try:
                data = response.json()
            except ValueError:
                data = {}
            message = data.get("message") if isinstance(data, dict) else None
            raise ApiError(
                response.status_code,
                message or f"Request failed with status {response.status_code}",
                data,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------ reorder
    async def reorder_groups(self, owner_id: str, items: Sequence[OrderEntry]) -> None:
        await self._request(
            "POST",
            "/viewgroups/reorder",
            json={"userId": owner_id, "items": [entry.to_dict() for entry in items]},
        )

    async def reorder_items_in_group(
        self, group_id: str, owner_id: str, items: Sequence[OrderEntry]
    ) -> None:
        await self._request(
            "POST",
            f"/viewgroups/{group_id}/views/reorder",
            json={"userId": owner_id, "items": [entry.to_dict() for entry in items]},
        )

    # ------------------------------------------------------------ membership
    async def add_items_to_group(self, group_id: str, owner_id: str, item_ids: Sequence[str]) -> None:
        await self._request(
            "POST",
            f"/viewgroups/{group_id}/views",
            json={"userId": owner_id, "viewIds": list(item_ids)},
        )

    async def remove_item_from_group(self, group_id: str, item_id: str, owner_id: str) -> None:
        await self._request(
            "DELETE",
            f"/viewgroups/{group_id}/views/{item_id}",
            params={"userId": owner_id},
        )

    # ------------------------------------------------------------ queries
    async def fetch_groups(self, owner_id: str) -> List[Group]:
        payload = await self._request("GET", f"/viewgroups/user/{owner_id}")
        return [group_from_dto(dto) for dto in payload or []]

    async def fetch_items(self, owner_id: str) -> List[Item]:
        payload = await self._request("GET", f"/views/user/{owner_id}")
        return [item_from_dto(dto) for dto in payload or []]

    async def fetch_navigation_settings(self, owner_id: str) -> NavigationSettings:
        payload = await self._request("GET", f"/navigation/{owner_id}")
        return settings_from_dto(payload or {})

    async def update_expanded_groups(self, owner_id: str, expanded_group_ids: Sequence[str]) -> None:
        # The settings record is replaced as a whole, so read it first
        current = await self._request("GET", f"/navigation/{owner_id}") or {}
        body = {
            "viewGroupOrder": current.get("viewGroupOrder") or [],
            "viewOrders": current.get("viewOrders") or {},
            "hiddenViewGroups": current.get("hiddenViewGroups") or [],
            "hiddenViews": current.get("hiddenViews") or [],
            "isNavigationCollapsed": bool(current.get("isNavigationCollapsed", False)),
            "expandedViewGroups": list(expanded_group_ids),
        }
        await self._request("PUT", f"/navigation/{owner_id}", json=body)

    # ------------------------------------------------------------ deletion
    async def delete_group(self, group_id: str, owner_id: str) -> None:
        await self._request("DELETE", f"/viewgroups/{group_id}", params={"userId": owner_id})

    async def delete_item(self, item_id: str, owner_id: str) -> None:
        await self._request("DELETE", f"/views/{item_id}", params={"userId": owner_id})


def group_from_dto(dto: Dict[str, Any]) -> Group:
    return Group(
        id=str(dto["viewGroupId"]),
        name=dto.get("name") or "",
        item_ids=tuple(str(view_id) for view_id in dto.get("viewIds") or []),
        order_index=int(dto.get("orderIndex") or 0),
        is_default=bool(dto.get("isDefault", False)),
        is_visible=bool(dto.get("isVisible", True)),
    )


def item_from_dto(dto: Dict[str, Any]) -> Item:
    return Item(
        id=str(dto["viewId"]),
        name=dto.get("name") or "",
        order_index=int(dto.get("orderIndex") or 0),
        is_visible=bool(dto.get("isVisible", True)),
    )


def settings_from_dto(dto: Dict[str, Any]) -> NavigationSettings:
    expanded = dto.get("expandedViewGroups")
    return NavigationSettings(
        expanded_group_ids=tuple(expanded or ()),
        hidden_group_ids=tuple(dto.get("hiddenViewGroups") or ()),
        hidden_item_ids=tuple(dto.get("hiddenViews") or ()),
        navigation_collapsed=bool(dto.get("isNavigationCollapsed", False)),
        has_expanded_preference=expanded is not None,
    )


__all__ = [
    "ApiError",
    "HttpNavigationBackend",
    "group_from_dto",
    "item_from_dto",
    "settings_from_dto",
]
