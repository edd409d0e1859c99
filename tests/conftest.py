from typing import List

import httpx
import pytest

EVENT_STREAM_HEADERS = {"content-type": "text/event-stream; charset=utf-8"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


def stream_response(body: str) -> httpx.Response:
    return httpx.Response(200, headers=EVENT_STREAM_HEADERS, content=body.encode("utf-8"))


class ScriptedServer:
    '''Answers successive requests from a script; 204 once the script runs out.

    Script items are responses or exceptions to raise.
    '''

    def __init__(self, *script):
        self.script = list(script)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.script:
            return httpx.Response(204)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
