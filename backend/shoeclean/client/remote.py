"""
Remote store boundary.

RemoteStore is what the entity store talks to: bulk read, insert returning
the canonical row, partial update, delete, and a change subscription.
HttpRemoteStore implements it against the shoeclean REST backend with
httpx; the subscription polls the backend's change journal.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

import httpx

logger = logging.getLogger(__name__)

COLLECTION_TABLES = ("orders", "customers", "discounts", "cash_flows", "app_users", "branches")
SETTINGS_TABLE = "store_settings"


class RemoteError(Exception):
    """Any failure talking to the remote store."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteReadError(RemoteError):
    pass


class RemoteWriteError(RemoteError):
    pass


class SettingsNotFound(RemoteReadError):
    """The settings singleton has not been created yet."""


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    id: Optional[int] = None


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


async def dispatch_change(callback: ChangeCallback, event: ChangeEvent) -> None:
    result = callback(event)
    if inspect.isawaitable(result):
        await result


class Subscription:
    """Handle for a running change subscription; close() stops it."""

    def __init__(self, task: Optional[asyncio.Task] = None):
        self._task = task
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class RemoteStore(abc.ABC):
    @abc.abstractmethod
    async def select_all(self, table: str) -> list[dict]:
        ...

    @abc.abstractmethod
    async def select_where(self, table: str, filters: Mapping[str, Any]) -> list[dict]:
        """Rows whose columns equal every value in `filters`."""

    @abc.abstractmethod
    async def select_settings(self) -> dict:
        """The settings row; raises SettingsNotFound when there is none."""

    @abc.abstractmethod
    async def insert(self, table: str, row: Mapping[str, Any]) -> dict:
        """Create a row and return it as stored, with its server id."""

    @abc.abstractmethod
    async def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> dict:
        ...

    @abc.abstractmethod
    async def delete(self, table: str, row_id: str) -> None:
        ...

    @abc.abstractmethod
    async def subscribe(
        self, callback: ChangeCallback, tables: Iterable[str] = COLLECTION_TABLES
    ) -> Subscription:
        ...

    async def aclose(self) -> None:
        return None


class HttpRemoteStore(RemoteStore):
    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config) -> "HttpRemoteStore":
        return cls(
            config.api_url,
            api_key=config.api_key,
            timeout=config.request_timeout,
            poll_interval=config.poll_interval,
        )

    async def _request(self, error_cls, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise error_cls(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            raise error_cls(
                f"{method} {url} returned {response.status_code}: {_error_text(response)}",
                status_code=response.status_code,
            )
        return response

    async def select_all(self, table: str) -> list[dict]:
        response = await self._request(RemoteReadError, "GET", f"/{table}")
        return _body_field(response, "rows", RemoteReadError)

    async def select_where(self, table: str, filters: Mapping[str, Any]) -> list[dict]:
        params = {key: _query_value(value) for key, value in filters.items()}
        response = await self._request(RemoteReadError, "GET", f"/{table}", params=params)
        return _body_field(response, "rows", RemoteReadError)

    async def select_settings(self) -> dict:
        try:
            response = await self._request(RemoteReadError, "GET", f"/{SETTINGS_TABLE}")
        except RemoteReadError as exc:
            if exc.status_code == 404:
                raise SettingsNotFound("store settings row does not exist", status_code=404) from exc
            raise
        return _body_field(response, "row", RemoteReadError)

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict:
        response = await self._request(RemoteWriteError, "POST", f"/{table}", json=dict(row))
        return _body_field(response, "row", RemoteWriteError)

    async def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> dict:
        response = await self._request(RemoteWriteError, "PATCH", f"/{table}/{row_id}", json=dict(fields))
        return _body_field(response, "row", RemoteWriteError)

    async def delete(self, table: str, row_id: str) -> None:
        await self._request(RemoteWriteError, "DELETE", f"/{table}/{row_id}")

    async def latest_change_id(self) -> int:
        response = await self._request(RemoteReadError, "GET", "/changes", params={"after": 0, "limit": 0})
        last_id = _body_field(response, "last_id", RemoteReadError)
        try:
            return int(last_id)
        except (TypeError, ValueError) as exc:
            raise RemoteReadError(f"GET /changes returned a bad last_id: {last_id!r}") from exc

    async def changes_after(self, after: int) -> tuple[list[ChangeEvent], int]:
        response = await self._request(RemoteReadError, "GET", "/changes", params={"after": after})
        raw = _body_field(response, "events", RemoteReadError)
        try:
            events = [
                ChangeEvent(table=e["table"], event_type=e["event_type"], id=e.get("id"))
                for e in raw
            ]
        except (AttributeError, KeyError, TypeError) as exc:
            raise RemoteReadError(f"GET /changes returned a malformed event: {exc}") from exc
        last_id = max([after, *(e.id for e in events if e.id is not None)])
        return events, last_id

    async def subscribe(
        self, callback: ChangeCallback, tables: Iterable[str] = COLLECTION_TABLES
    ) -> Subscription:
        wanted = frozenset(tables)
        cursor = await self.latest_change_id()
        task = asyncio.create_task(self._poll(callback, wanted, cursor), name="shoeclean-change-poll")
        return Subscription(task)

    async def _poll(self, callback: ChangeCallback, wanted: frozenset, cursor: int) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                events, cursor = await self.changes_after(cursor)
            except RemoteError as exc:
                logger.warning("Change poll failed, retrying in %ss: %s", self.poll_interval, exc)
                continue
            for event in events:
                if event.table not in wanted:
                    continue
                try:
                    await dispatch_change(callback, event)
                except Exception:
                    logger.exception("Change handler failed for %s %s", event.event_type, event.table)

    async def aclose(self) -> None:
        await self._client.aclose()


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _body_field(response: httpx.Response, key: str, error_cls):
    """Decode the JSON body and return `key`; a malformed body raises `error_cls`."""
    request = response.request
    try:
        return response.json()[key]
    except (ValueError, KeyError, TypeError) as exc:
        raise error_cls(
            f"{request.method} {request.url.path} returned a malformed body: {exc!r}",
            status_code=response.status_code,
        ) from exc


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return str(body)[:200]
