import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from stranger_chat_client.errors import (
    ChallengeTokenError,
    StrangerChatProtocolError,
    StrangerChatTransportError,
)
from stranger_chat_client.protocol import make_start_params
from stranger_chat_client.transport import HttpxTransport


def _transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxTransport(
        "https://front1.example.com/",
        check_url="https://check.example.com/check",
        status_url="https://example.com/status",
        client=client,
    )


def test_transport_requires_base_url() -> None:
    with pytest.raises(ValueError):
        HttpxTransport("", check_url="x", status_url="y")


def test_endpoints_use_form_encoded_posts() -> None:
    seen: list[tuple[str, str, dict[str, list[str]]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = parse_qs(request.content.decode())
        seen.append((request.method, request.url.path, body))
        if request.url.path == "/events":
            return httpx.Response(200, text='[["waiting"]]')
        return httpx.Response(200, text="win")

    async def _run() -> None:
        transport = _transport(handler)
        assert await transport.poll("central1:abc") == '[["waiting"]]'
        assert (await transport.send_message("central1:abc", "hi there")).text == "win"
        assert (await transport.disconnect("central1:abc")).status_code == 200
        assert (await transport.stop_searching("central1:abc")).ok
        await transport.close()

    asyncio.run(_run())
    assert seen == [
        ("POST", "/events", {"id": ["central1:abc"]}),
        ("POST", "/send", {"msg": ["hi there"], "id": ["central1:abc"]}),
        ("POST", "/disconnect", {"id": ["central1:abc"]}),
        ("POST", "/stoplookingforcommonlikes", {"id": ["central1:abc"]}),
    ]


def test_start_session_keeps_topics_escaped_once() -> None:
    captured: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["query"] = request.url.query.decode()
        return httpx.Response(200, json={"clientID": "central1:abc", "events": []})

    async def _run() -> None:
        transport = _transport(handler)
        params = make_start_params(
            random_id="1A2B3C", challenge_token="cc", interests=["music", "books"]
        )
        reply = await transport.start_session(params)
        assert reply.ok

    asyncio.run(_run())
    assert captured["path"] == "/start"
    query = captured["query"]
    assert "topics=%5B%22music%22,%20%22books%22%5D" in query
    assert "caps=recaptcha2,t3" in query
    assert "randid=1A2B3C" in query
    assert "spid=&" in query


def test_challenge_token_errors() -> None:
    def empty_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="  ")

    def failing_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    def ok_handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "check.example.com"
        return httpx.Response(200, text="token-123\n")

    async def _run() -> None:
        with pytest.raises(ChallengeTokenError):
            await _transport(empty_handler).fetch_challenge_token()
        with pytest.raises(ChallengeTokenError) as exc_info:
            await _transport(failing_handler).fetch_challenge_token()
        assert "ConnectError" in str(exc_info.value)
        assert await _transport(ok_handler).fetch_challenge_token() == "token-123"

    asyncio.run(_run())


def test_network_failures_are_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async def _run() -> None:
        transport = _transport(handler)
        with pytest.raises(StrangerChatTransportError) as exc_info:
            await transport.poll("central1:abc")
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    asyncio.run(_run())


def test_site_status_decodes_object() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["randid"] == "1A2B3C"
        assert "nocache" in request.url.params
        return httpx.Response(200, json={"count": 42, "servers": ["front1"]})

    def list_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2])

    async def _run() -> None:
        assert await _transport(handler).site_status("1A2B3C") == {
            "count": 42,
            "servers": ["front1"],
        }
        with pytest.raises(StrangerChatProtocolError) as exc_info:
            await _transport(list_handler).site_status("1A2B3C")
        assert exc_info.value.status_code == 200

    asyncio.run(_run())


def test_poll_error_status_raises_with_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    async def _run() -> None:
        transport = _transport(handler)
        with pytest.raises(StrangerChatProtocolError) as exc_info:
            await transport.poll("central1:abc")
        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "<html>Bad Gateway</html>"

    asyncio.run(_run())


def test_poll_for_forgotten_handle_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="null")

    async def _run() -> None:
        with pytest.raises(StrangerChatProtocolError) as exc_info:
            await _transport(handler).poll("central1:gone")
        assert exc_info.value.status_code == 200
        assert "central1:gone" in str(exc_info.value)

    asyncio.run(_run())
