#!/usr/bin/env python3
'''
Live uptime display.

Subscribes to the server's /uptime event stream and keeps the latest value in
the "uptime" display slot. Reconnection is left to the event source; the
client only logs what happens and overwrites the slot on every message.
'''

import argparse
import logging
import sys
from enum import Enum
from typing import List, Optional

import anyio
import httpx
from pydantic import ValidationError

from event_stream import Event, EventSource, MessageEvent, ReadyState
from uptime_page import ConsoleDisplay, Display, DisplaySlot, HtmlDisplay
from uptime_settings import ClientSettings, Units

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Enums
class ClientState(str, Enum):
    '''Idle until the stream opens; Closed is terminal.'''
    IDLE = "idle"
    OPEN = "open"
    CLOSED = "closed"


class UptimeDisplayClient:
    '''Reflects the latest /uptime payload into a display slot.

    Creating the client initialises the slot to the placeholder. ``run()``
    drives the stream; leaving the ``async with`` block closes it.
    '''

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        display: Optional[Display] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or ClientSettings()
        self.state = ClientState.IDLE
        self.slot = DisplaySlot(
            self.settings.element_id, self.settings.placeholder, display=display
        )
        self.source = EventSource(
            self.settings.stream_url,
            client=client,
            reconnection_time=self.settings.reconnection_time,
            connect_timeout=self.settings.connect_timeout,
        )
        self.source.add_event_listener("open", self.on_open)
        self.source.add_event_listener("message", self.on_message)
        self.source.add_event_listener("error", self.on_error)

    def on_open(self, event: Event) -> None:
        if self.state is not ClientState.CLOSED:
            self.state = ClientState.OPEN
        logger.info("> stream opened")

    def on_message(self, event: MessageEvent) -> None:
        logger.info("> received %s", event.data)
        self.slot.set(event.data)

    def on_error(self, event: Event) -> None:
        # Transient errors leave the source CONNECTING while it retries.
        if self.source.ready_state is ReadyState.CLOSED:
            self.state = ClientState.CLOSED
            logger.info("> stream closed")

    async def run(self) -> None:
        await self.source.run()

    def close(self) -> None:
        self.source.close()

    async def __aenter__(self) -> "UptimeDisplayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.source.aclose()


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show the uptime pushed by the server's /uptime event stream."
    )
    parser.add_argument("--base-url", help="server URL, e.g. http://localhost:8088")
    parser.add_argument(
        "--units", choices=[u.value for u in Units],
        help="ask the server for seconds (s) or minutes (m)"
    )
    parser.add_argument("--html", metavar="FILE", help="write the page to FILE after every update")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> ClientSettings:
    '''Environment settings with command line options on top.'''
    settings = ClientSettings.from_env()
    overrides = {
        name: value
        for name, value in (
            ("base_url", args.base_url),
            ("units", args.units),
            ("log_level", args.log_level),
        )
        if value is not None
    }
    if not overrides:
        return settings
    return ClientSettings(**{**settings.model_dump(), **overrides})


async def _serve(settings: ClientSettings, display: Display) -> None:
    async with UptimeDisplayClient(settings, display=display) as client:
        await client.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    display = HtmlDisplay(path=args.html) if args.html else ConsoleDisplay()
    logger.info("Watching %s", settings.stream_url)
    try:
        anyio.run(_serve, settings, display)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
