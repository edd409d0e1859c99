'''
Server-sent events client.

Reads a text/event-stream response over a persistent HTTP connection and
dispatches the events it carries to registered listeners. Connection loss is
handled the way a browser EventSource handles it: the source drops back to
CONNECTING, fires an error event, waits the reconnection time and reconnects.
A response that is not an event stream fails the source for good.
'''

import codecs
import logging
import re
from enum import Enum
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

import anyio
import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Constants
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
DEFAULT_RECONNECTION_TIME = 3.0
DEFAULT_CONNECT_TIMEOUT = 10.0

_LINE_END = re.compile(r"\r\n|\r|\n")

# Enums
class ReadyState(str, Enum):
    '''Lifecycle phase of an EventSource.'''
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"

# Event models
class Event(BaseModel):
    '''A lifecycle event (open, error) with no payload.'''
    model_config = ConfigDict(frozen=True)

    type: str

class MessageEvent(Event):
    '''An event parsed from the stream.'''
    type: str = "message"
    data: str = ""
    last_event_id: str = ""
    origin: str = ""

Listener = Callable[[Event], None]


class EventStreamParser:
    '''Incremental parser for the text/event-stream format.

    Text may be fed in chunks of any size; lines can end in LF, CR or CRLF.
    The last event id and the reconnection time (set by ``retry:``) survive
    ``reset()`` so they carry over to the next connection.
    '''

    def __init__(self, origin: str = ""):
        self.origin = origin
        self.last_event_id = ""
        self.reconnection_time: Optional[float] = None
        self.reset()

    def reset(self) -> None:
        '''Drop any partial line and pending event.'''
        self._buffer = ""
        self._skip_lf = False
        self._at_start = True
        self._event_type = ""
        self._data: List[str] = []
        self._id_buffer = self.last_event_id

    def feed(self, chunk: str) -> List[MessageEvent]:
        if not chunk:
            return []
        if self._at_start:
            if chunk.startswith("\ufeff"):
                chunk = chunk[1:]
            self._at_start = False
        # CRLF split across two chunks
        if self._skip_lf and chunk.startswith("\n"):
            chunk = chunk[1:]
        self._skip_lf = False

        text = self._buffer + chunk
        events = []
        pos = 0
        for match in _LINE_END.finditer(text):
            if match.group() == "\r" and match.end() == len(text):
                self._skip_lf = True
            event = self._process_line(text[pos:match.start()])
            if event is not None:
                events.append(event)
            pos = match.end()
        self._buffer = text[pos:]
        return events

    def _process_line(self, line: str) -> Optional[MessageEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event_type = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._id_buffer = value
        elif field == "retry":
            if value.isascii() and value.isdigit():
                self.reconnection_time = int(value) / 1000.0
        return None

    def _dispatch(self) -> Optional[MessageEvent]:
        # An id only counts once the event carrying it is complete.
        self.last_event_id = self._id_buffer
        if not self._data:
            self._event_type = ""
            return None
        event = MessageEvent(
            type=self._event_type or "message",
            data="\n".join(self._data),
            last_event_id=self.last_event_id,
            origin=self.origin,
        )
        self._event_type = ""
        self._data = []
        return event


class EventSource:
    '''Long-lived server-push connection to a single URL.

    Nothing happens until ``run()`` is awaited. Listeners are synchronous and
    are called on the task running ``run()``, one at a time, in registration
    order. An exception raised by a listener propagates out of ``run()``.
    '''

    def __init__(
        self,
        url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        reconnection_time: float = DEFAULT_RECONNECTION_TIME,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.url = url
        self._owns_client = client is None
        if client is None:
            # No read timeout: the server may stay quiet for a long time.
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect_timeout, read=None),
                follow_redirects=True,
            )
        self._client = client
        self._headers = dict(headers or {})
        self._default_reconnection_time = reconnection_time
        self._listeners: Dict[str, List[Listener]] = {}
        self._ready_state = ReadyState.CONNECTING
        self._cancel_scope: Optional[anyio.CancelScope] = None

        parts = urlsplit(url)
        self._parser = EventStreamParser(origin=f"{parts.scheme}://{parts.netloc}")

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @property
    def last_event_id(self) -> str:
        return self._parser.last_event_id

    @property
    def reconnection_time(self) -> float:
        '''Seconds to wait before reconnecting, as last set by the server.'''
        if self._parser.reconnection_time is not None:
            return self._parser.reconnection_time
        return self._default_reconnection_time

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    async def run(self) -> None:
        '''Connect and pump events until the source is closed.

        Returns once the source is CLOSED, either because ``close()`` was
        called or because the server answered with something other than an
        event stream.
        '''
        if self._ready_state is ReadyState.CLOSED:
            return
        try:
            with anyio.CancelScope() as scope:
                self._cancel_scope = scope
                while self._ready_state is not ReadyState.CLOSED:
                    await self._connect_once()
                    if self._ready_state is ReadyState.CLOSED:
                        break
                    await self._reestablish()
        finally:
            self._cancel_scope = None
            self._ready_state = ReadyState.CLOSED

    def close(self) -> None:
        '''Stop the stream without firing an error event.'''
        if self._ready_state is ReadyState.CLOSED:
            return
        logger.debug("Closing event source %s", self.url)
        self._ready_state = ReadyState.CLOSED
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()

    async def aclose(self) -> None:
        self.close()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "EventSource":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _connect_once(self) -> None:
        headers = {
            "Accept": EVENT_STREAM_MEDIA_TYPE,
            "Cache-Control": "no-cache",
            **self._headers,
        }
        if self._parser.last_event_id:
            headers["Last-Event-ID"] = self._parser.last_event_id
        self._parser.reset()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        # Only the HTTP I/O is guarded; errors from listeners propagate.
        request = self._client.build_request("GET", self.url, headers=headers)
        try:
            response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Event stream %s unreachable: %s", self.url, e)
            return

        try:
            if not self._announce(response) or self._ready_state is ReadyState.CLOSED:
                return
            chunks = response.aiter_bytes()
            while True:
                try:
                    raw = await anext(chunks)
                except StopAsyncIteration:
                    logger.debug("Event stream %s ended by server", self.url)
                    return
                except (httpx.HTTPError, OSError) as e:
                    logger.debug("Event stream %s interrupted: %s", self.url, e)
                    return
                for event in self._parser.feed(decoder.decode(raw)):
                    self._fire(event)
                    if self._ready_state is ReadyState.CLOSED:
                        return
        finally:
            await response.aclose()

    def _announce(self, response: httpx.Response) -> bool:
        media_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if response.status_code != 200 or media_type != EVENT_STREAM_MEDIA_TYPE:
            logger.debug(
                "Event stream %s refused: status %s, content type %r",
                self.url, response.status_code, media_type,
            )
            self._fail()
            return False
        self._ready_state = ReadyState.OPEN
        self._fire(Event(type="open"))
        return True

    def _fail(self) -> None:
        self._ready_state = ReadyState.CLOSED
        self._fire(Event(type="error"))

    async def _reestablish(self) -> None:
        self._ready_state = ReadyState.CONNECTING
        self._fire(Event(type="error"))
        if self._ready_state is ReadyState.CLOSED:
            return
        delay = self.reconnection_time
        logger.debug("Reconnecting to %s in %.3fs", self.url, delay)
        await anyio.sleep(delay)

    def _fire(self, event: Event) -> None:
        for listener in list(self._listeners.get(event.type, ())):
            listener(event)
