from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from dmchat.domain.errors import FatalAuthError, FetchError, SendError
from dmchat.protocol.models import (
    Account,
    InboxPage,
    LoginRequest,
    SendTextRequest,
    SessionResponse,
    ThreadSummary,
)

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class HttpInboxFeed:
    """Inbox pagination cursor backed by ``GET /v1/inbox``."""

    def __init__(self, client: HttpMessagingClient) -> None:
        self._client = client
        self._cursor: str | None = None
        self._more = True
        self._started = False

    def has_more(self) -> bool:
        return self._more

    async def fetch_page(self) -> list[ThreadSummary]:
        if self._started and not self._more:
            return []
        page = await self._client.fetch_inbox_page(self._cursor)
        self._started = True
        self._cursor = page.cursor
        self._more = bool(page.more_available and page.cursor)
        return list(page.threads)

    async def fetch_remaining(self) -> list[ThreadSummary]:
        threads: list[ThreadSummary] = []
        while self.has_more():
            threads.extend(await self.fetch_page())
        return threads


class HttpMessagingClient:
    """Messaging provider client speaking JSON over HTTP with a bearer token."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self._token: str | None = None
        self._account: Account | None = None

    # --- session ---
    @property
    def token(self) -> str | None:
        return self._token

    @property
    def account(self) -> Account | None:
        return self._account

    @property
    def current_account_id(self) -> str:
        if self._account is None:
            raise FatalAuthError("Not logged in")
        return self._account.id

    async def login(self, username: str, password: str) -> SessionResponse:
        payload = LoginRequest(username=username, password=password).model_dump()
        try:
            response = await self._client.post("/v1/session", json=payload)
        except httpx.RequestError as exc:
            raise FatalAuthError(f"Unable to reach {self.base_url}: {exc}") from exc
        return self._accept_session(response)

    async def resume(self, token: str) -> SessionResponse:
        try:
            response = await self._client.get("/v1/session", headers={"Authorization": f"Bearer {token}"})
        except httpx.RequestError as exc:
            raise FatalAuthError(f"Unable to reach {self.base_url}: {exc}") from exc
        return self._accept_session(response)

    def _accept_session(self, response: httpx.Response) -> SessionResponse:
        if response.is_error:
            raise FatalAuthError(_error_detail(response))
        try:
            session = SessionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise FatalAuthError(f"Malformed session response: {exc}") from exc
        self._token = session.token
        self._account = session.account
        self._client.headers["Authorization"] = f"Bearer {session.token}"
        logger.info("Authenticated as %s", session.account.username)
        return session

    # --- inbox and threads ---
    def inbox_feed(self) -> HttpInboxFeed:
        return HttpInboxFeed(self)

    async def fetch_inbox_page(self, cursor: str | None = None) -> InboxPage:
        params = {"cursor": cursor} if cursor else None
        data = await self._get_json("/v1/inbox", params=params)
        try:
            return InboxPage.model_validate(data)
        except ValidationError as exc:
            raise FetchError(f"Malformed inbox page: {exc}") from exc

    async def fetch_thread(self, thread_id: str) -> ThreadSummary:
        data = await self._get_json(f"/v1/threads/{quote(thread_id, safe='')}")
        try:
            return ThreadSummary.model_validate(data)
        except ValidationError as exc:
            raise FetchError(f"Malformed thread {thread_id}: {exc}") from exc

    async def send_text(self, thread_id: str, text: str) -> None:
        payload = SendTextRequest(text=text).model_dump()
        path = f"/v1/threads/{quote(thread_id, safe='')}/items"
        try:
            response = await self._client.post(path, json=payload)
        except httpx.RequestError as exc:
            raise SendError(f"Unable to reach {self.base_url}: {exc}") from exc
        if response.is_error:
            raise SendError(_error_detail(response))
        logger.debug("Sent %d chars to thread %s", len(text), thread_id)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.RequestError as exc:
            raise FetchError(f"Unable to reach {self.base_url}: {exc}") from exc
        if response.is_error:
            raise FetchError(_error_detail(response))
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {path}") from exc
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("GET %s -> %s", path, response.status_code)
        return data
