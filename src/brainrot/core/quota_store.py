"""Remote quota document stores.

The usage ledger talks to a per-user document::

    users/{user_id}/metadata/usage
    {"total": int, "used": int, "subscriptionType": str, "updatedAt": str}

through the small interface defined by :class:`QuotaStoreBase`: read, write
(merge or replace), atomic increment, and a live subscription that pushes
the latest document to a callback.

Implementations
---------------
InMemoryQuotaStore
    Process-local store.  Writes push to subscribers synchronously, which
    makes it the reference implementation for tests and offline demos.
HttpQuotaStore
    REST document store accessed with ``httpx``.  The live subscription is a
    background polling task that reports the document whenever it changes.

HTTP Protocol
-------------
==========  ========================================  ============================
Method      Path                                      Purpose
==========  ========================================  ============================
GET         ``/users/{uid}/metadata/usage``           Read (404 = absent)
PATCH       ``/users/{uid}/metadata/usage``           Merge write
PUT         ``/users/{uid}/metadata/usage``           Replace write
POST        ``/users/{uid}/metadata/usage:increment`` ``{"field", "amount", ...}``
==========  ========================================  ============================
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

from .errors import LedgerSyncError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[dict], None]
ErrorCallback = Callable[[Exception], None]
Cancel = Callable[[], None]


def usage_document_path(user_id: str) -> str:
    """Path of the usage document for ``user_id``."""
    return f"users/{user_id}/metadata/usage"


class QuotaStoreBase(ABC):
    """Interface for the remote per-user quota document."""

    @abstractmethod
    async def get(self, user_id: str) -> dict | None:
        """Return the usage document, or ``None`` if it does not exist."""

    @abstractmethod
    async def set(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        """Write ``fields``; with ``merge`` other stored fields are left untouched."""

    @abstractmethod
    async def increment(
        self, user_id: str, field: str, amount: int = 1, extra: dict[str, Any] | None = None
    ) -> None:
        """Atomically add ``amount`` to ``field`` and merge ``extra`` fields."""

    @abstractmethod
    def subscribe(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Cancel:
        """Deliver document changes to ``on_change`` until the returned handle is called."""


class InMemoryQuotaStore(QuotaStoreBase):
    """Quota store kept in a dictionary; subscribers are notified synchronously."""

    def __init__(self, documents: dict[str, dict] | None = None):
        self.documents: dict[str, dict] = documents or {}
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    async def get(self, user_id: str) -> dict | None:
        document = self.documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        if merge and user_id in self.documents:
            self.documents[user_id].update(fields)
        else:
            self.documents[user_id] = dict(fields)
        self._publish(user_id)

    async def increment(
        self, user_id: str, field: str, amount: int = 1, extra: dict[str, Any] | None = None
    ) -> None:
        if user_id not in self.documents:
            raise LedgerSyncError(f"No usage document for user {user_id}")
        document = self.documents[user_id]
        document[field] = int(document.get(field, 0)) + amount
        if extra:
            document.update(extra)
        self._publish(user_id)

    def subscribe(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Cancel:
        callbacks = self._subscribers.setdefault(user_id, [])
        callbacks.append(on_change)

        def cancel() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return cancel

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, []))

    def _publish(self, user_id: str) -> None:
        document = self.documents.get(user_id)
        if document is None:
            return
        for callback in list(self._subscribers.get(user_id, [])):
            callback(copy.deepcopy(document))


class HttpQuotaStore(QuotaStoreBase):
    """Quota store backed by a REST document service.

    Args:
        base_url: Service root, e.g. ``https://quota.example.com/v1``.
        token: Optional bearer token.
        timeout: Request timeout in seconds.
        poll_interval: Seconds between subscription polls.
        http_client: Optional shared ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        poll_interval: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http_client = http_client

    def _url(self, user_id: str, suffix: str = "") -> str:
        return f"{self.base_url}/{usage_document_path(user_id)}{suffix}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.request(
                    method, url, headers=self._headers, timeout=self.timeout, **kwargs
                )
            async with httpx.AsyncClient(headers=self._headers, timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise LedgerSyncError(f"Quota store request {method} {url} failed: {e}") from e

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if not response.is_success:
            raise LedgerSyncError(
                f"Quota store returned HTTP {response.status_code}: {response.text}"
            )

    async def get(self, user_id: str) -> dict | None:
        response = await self._request("GET", self._url(user_id))
        if response.status_code == 404:
            return None
        self._check(response)
        try:
            document = response.json()
        except ValueError as e:
            raise LedgerSyncError(f"Quota store returned invalid JSON: {e}") from e
        if not isinstance(document, dict):
            raise LedgerSyncError("Quota store returned a non-object document")
        return document

    async def set(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        method = "PATCH" if merge else "PUT"
        response = await self._request(method, self._url(user_id), json=fields)
        self._check(response)

    async def increment(
        self, user_id: str, field: str, amount: int = 1, extra: dict[str, Any] | None = None
    ) -> None:
        body: dict[str, Any] = {"field": field, "amount": amount}
        if extra:
            body["set"] = extra
        response = await self._request("POST", self._url(user_id, ":increment"), json=body)
        self._check(response)

    def subscribe(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Cancel:
        task = asyncio.get_running_loop().create_task(
            self._poll(user_id, on_change, on_error),
            name=f"quota-poll-{user_id}",
        )
        return task.cancel

    async def _poll(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        last_seen: dict | None = None
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                document = await self.get(user_id)
            except LedgerSyncError as e:
                logger.warning(f"Quota poll for {user_id} failed: {e}")
                if on_error is not None:
                    on_error(e)
                continue

            if document is not None and document != last_seen:
                last_seen = document
                try:
                    on_change(document)
                except Exception:
                    logger.exception(f"Quota change handler for {user_id} failed")
