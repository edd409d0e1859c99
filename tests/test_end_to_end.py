'''Runs the display client against a small Starlette event-stream app.'''

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse
from starlette.routing import Route

from uptime_display import ClientState, UptimeDisplayClient
from uptime_page import HtmlDisplay
from uptime_settings import ClientSettings

pytestmark = pytest.mark.anyio


def make_app(uptimes, seen):
    '''Pushes each uptime once, then answers 204 so the client stops.'''

    async def uptime(request: Request) -> Response:
        seen.append((dict(request.query_params), request.headers.get("last-event-id")))
        if len(seen) > 1:
            return Response(status_code=204)
        seconds = request.query_params.get("units") == "s"

        async def gen():
            yield "retry: 1\n\n"
            for i, value in enumerate(uptimes):
                shown = value if seconds else value // 60
                yield f"id: {i}\ndata: {shown}\n\n"

        return StreamingResponse(gen(), media_type="text/event-stream")

    return Starlette(routes=[Route("/uptime", uptime)])


async def test_client_shows_latest_uptime() -> None:
    seen = []
    app = make_app([59, 60, 125], seen)
    display = HtmlDisplay()
    settings = ClientSettings(base_url="http://testserver", units="s", reconnection_time=0.001)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as http:
        async with UptimeDisplayClient(settings, display=display, client=http) as client:
            await client.run()

    assert display.text_of("uptime") == "125"
    assert client.state is ClientState.CLOSED
    assert seen == [({"units": "s"}, None), ({"units": "s"}, "2")]


async def test_server_default_units() -> None:
    seen = []
    app = make_app([59, 60, 125], seen)
    settings = ClientSettings(base_url="http://testserver", reconnection_time=0.001)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as http:
        async with UptimeDisplayClient(settings, client=http) as client:
            await client.run()

    assert client.slot.value == "2"
    assert seen[0][0] == {}


async def test_unknown_path_closes_immediately() -> None:
    app = Starlette(routes=[])
    settings = ClientSettings(base_url="http://testserver", path="/missing")

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as http:
        async with UptimeDisplayClient(settings, client=http) as client:
            await client.run()

    assert client.slot.value == "whatever"
    assert client.state is ClientState.CLOSED
