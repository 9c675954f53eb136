"""Tests for the aiohttp transport against a local test server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from apiwave.transport.http import AiohttpTransport, TransportError, TransportTimeout


def make_app():
    app = web.Application()

    async def echo(request):
        return web.json_response(
            {
                "method": request.method,
                "body": await request.text(),
                "header": request.headers.get("X-Test"),
                "user_agent": request.headers.get("User-Agent"),
            },
            status=201,
            headers={"X-Request-Id": "r-1"},
        )

    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(text="late")

    async def moved(request):
        return web.Response(status=302, headers={"Location": "/echo"})

    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/slow", slow)
    app.router.add_get("/moved", moved)
    return app


@pytest.mark.asyncio
async def test_exchange_sends_request_and_reads_response():
    """Test method, headers and body go out and the response comes back."""
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport(user_agent="apiwave-tests") as transport:
            response = await transport.exchange(
                "POST",
                str(server.make_url("/echo")),
                {"X-Test": "yes", "Content-Type": "application/json"},
                '{"a": 1}',
                5,
            )

    assert response.status == 201
    assert response.headers["X-Request-Id"] == "r-1"
    assert '"method": "POST"' in response.body
    assert '"header": "yes"' in response.body
    assert '"user_agent": "apiwave-tests"' in response.body
    assert '{\\"a\\": 1}' in response.body


@pytest.mark.asyncio
async def test_redirects_not_followed():
    """Test the transport reports redirects instead of following them."""
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport() as transport:
            response = await transport.exchange("GET", str(server.make_url("/moved")), {}, None, 5)

    assert response.status == 302
    assert response.headers["Location"] == "/echo"


@pytest.mark.asyncio
async def test_timeout_raises_transport_timeout():
    """Test a slow server surfaces as TransportTimeout."""
    async with test_utils.TestServer(make_app()) as server:
        async with AiohttpTransport() as transport:
            with pytest.raises(TransportTimeout) as exc_info:
                await transport.exchange("GET", str(server.make_url("/slow")), {}, None, 0.1)

    assert exc_info.value.method == "GET"
    assert "timed out after 100ms" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connection_refused_raises_transport_error():
    """Test an unreachable host surfaces as TransportError."""
    port = test_utils.unused_port()

    async with AiohttpTransport() as transport:
        with pytest.raises(TransportError) as exc_info:
            await transport.exchange("GET", f"http://127.0.0.1:{port}/", {}, None, 5)

    assert not isinstance(exc_info.value, TransportTimeout)
    assert exc_info.value.url == f"http://127.0.0.1:{port}/"


@pytest.mark.asyncio
async def test_invalid_url_raises_transport_error():
    """Test a malformed URL is a transport error, not a crash."""
    async with AiohttpTransport() as transport:
        with pytest.raises(TransportError):
            await transport.exchange("GET", "not a url", {}, None, 5)
