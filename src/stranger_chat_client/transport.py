from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .errors import (
    ChallengeTokenError,
    StrangerChatProtocolError,
    StrangerChatTransportError,
)
from .protocol import (
    DISCONNECT_PATH,
    EVENTS_PATH,
    EXPIRED_SESSION_BODY,
    SEND_PATH,
    START_PATH,
    STATUS_NOCACHE,
    STOP_COMMON_LIKES_PATH,
    make_id_form,
    make_send_form,
)

# Bootstrap parameters that arrive already percent-escaped.
_PRE_ESCAPED_PARAMS = frozenset({"topics"})


@dataclass(slots=True, frozen=True)
class HttpReply:
    """Status and text body of one HTTP response."""

    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(ABC):
    """Abstract interface over the chat server's HTTP endpoints."""

    @abstractmethod
    async def fetch_challenge_token(self) -> str:
        """Fetch the one-time challenge token from the check endpoint."""
        raise NotImplementedError

    @abstractmethod
    async def start_session(self, params: Mapping[str, str]) -> HttpReply:
        """Issue the bootstrap request."""
        raise NotImplementedError

    @abstractmethod
    async def poll(self, client_id: str) -> str:
        """Issue one long-poll request and return its body.

        Raises:
            StrangerChatError: When the request fails or the server answers
                with anything but a usable event body.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_message(self, client_id: str, text: str) -> HttpReply:
        """Post one chat message."""
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self, client_id: str) -> HttpReply:
        """Post a disconnect notice."""
        raise NotImplementedError

    @abstractmethod
    async def stop_searching(self, client_id: str) -> HttpReply:
        """Abandon a common-interest search."""
        raise NotImplementedError

    @abstractmethod
    async def site_status(self, random_id: str) -> dict[str, Any]:
        """Query the advisory site metadata."""
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""
        raise NotImplementedError


class HttpxTransport(Transport):
    """Transport over `httpx.AsyncClient` with form-encoded POST requests."""

    def __init__(
        self,
        base_url: str,
        *,
        check_url: str,
        status_url: str,
        headers: Mapping[str, str] | None = None,
        request_timeout: float = 10.0,
        poll_timeout: float = 65.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Configure the HTTP transport.

        Args:
            base_url: Front server root, e.g. ``https://front1.example.com``.
            check_url: Absolute URL of the challenge token endpoint.
            status_url: Absolute URL of the site status endpoint.
            headers: Extra headers sent with every request.
            request_timeout: Timeout for short requests.
            poll_timeout: Timeout for long-poll requests; must exceed the
                server's hold time.
            client: Optional preconfigured client, mostly for tests.
        """
        if not base_url:
            raise ValueError("base_url must not be empty")
        self._base_url = base_url.rstrip("/")
        self._check_url = check_url
        self._status_url = status_url
        self._request_timeout = request_timeout
        self._poll_timeout = poll_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=dict(headers) if headers is not None else None,
            timeout=request_timeout,
        )

    async def fetch_challenge_token(self) -> str:
        """POST to the check endpoint and return its body."""
        try:
            response = await self._client.post(self._check_url, data={})
        except httpx.HTTPError as exc:
            raise ChallengeTokenError(
                f"failed to fetch challenge token ({exc.__class__.__name__}: {exc})"
            ) from exc
        token = response.text.strip()
        if response.status_code != 200 or not token:
            raise ChallengeTokenError(
                f"check endpoint answered {response.status_code} with {len(token)} bytes"
            )
        return token

    async def start_session(self, params: Mapping[str, str]) -> HttpReply:
        """POST the bootstrap request with parameters in the query string."""
        url = f"{self._base_url}{START_PATH}?{_build_query(params)}"
        return await self._post(url, None, timeout=self._request_timeout)

    async def poll(self, client_id: str) -> str:
        """POST to the events endpoint and wait for the server to answer."""
        reply = await self._post(
            f"{self._base_url}{EVENTS_PATH}",
            make_id_form(client_id),
            timeout=self._poll_timeout,
        )
        if not reply.ok:
            raise StrangerChatProtocolError(
                f"events endpoint answered HTTP {reply.status_code}",
                status_code=reply.status_code,
                body=reply.text,
            )
        # The server answers a bare null once it has forgotten the handle.
        if reply.text.strip() == EXPIRED_SESSION_BODY:
            raise StrangerChatProtocolError(
                f"session {client_id} is unknown to the server",
                status_code=reply.status_code,
                body=reply.text,
            )
        return reply.text

    async def send_message(self, client_id: str, text: str) -> HttpReply:
        return await self._post(
            f"{self._base_url}{SEND_PATH}",
            make_send_form(client_id, text),
            timeout=self._request_timeout,
        )

    async def disconnect(self, client_id: str) -> HttpReply:
        return await self._post(
            f"{self._base_url}{DISCONNECT_PATH}",
            make_id_form(client_id),
            timeout=self._request_timeout,
        )

    async def stop_searching(self, client_id: str) -> HttpReply:
        return await self._post(
            f"{self._base_url}{STOP_COMMON_LIKES_PATH}",
            make_id_form(client_id),
            timeout=self._request_timeout,
        )

    async def site_status(self, random_id: str) -> dict[str, Any]:
        """GET the status endpoint and decode its JSON object."""
        try:
            response = await self._client.get(
                self._status_url,
                params={"nocache": STATUS_NOCACHE, "randid": random_id},
                timeout=self._request_timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StrangerChatTransportError(
                f"failed to query site status ({exc.__class__.__name__}: {exc})"
            ) from exc
        if not isinstance(payload, dict):
            raise StrangerChatProtocolError(
                "site status is not a JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _post(
        self,
        url: str,
        form: Mapping[str, str] | None,
        *,
        timeout: float,
    ) -> HttpReply:
        try:
            response = await self._client.post(
                url,
                data=dict(form) if form is not None else None,
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            raise StrangerChatTransportError(
                f"request to {url} failed ({exc.__class__.__name__}: {exc})"
            ) from exc
        return HttpReply(status_code=response.status_code, text=response.text)


def _build_query(params: Mapping[str, str]) -> str:
    parts = []
    for key, value in params.items():
        encoded = value if key in _PRE_ESCAPED_PARAMS else quote(value, safe=",")
        parts.append(f"{quote(key, safe='')}={encoded}")
    return "&".join(parts)
