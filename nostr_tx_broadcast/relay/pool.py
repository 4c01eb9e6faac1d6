"""Nostr relay pool: WebSocket connections -> one ordered event queue.

Connects to every configured relay, sends one NIP-01 `REQ` per connection and
funnels the resulting `EVENT`s into a single asyncio queue consumed by the
bridge. Events are validated before they are queued; an event id already
delivered by another relay is not delivered again.

Fault tolerance: each relay reconnects independently with exponential backoff
and re-sends the subscription. `since` is fixed when the pool is created so a
reconnect never replays events older than the bridge itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import websockets
from websockets.exceptions import WebSocketException

from nostr_tx_broadcast.contracts import kinds as k
from nostr_tx_broadcast.contracts.validation import validate_event_dict
from nostr_tx_broadcast.core.ids import new_subscription_id
from nostr_tx_broadcast.core.models import NostrEvent
from nostr_tx_broadcast.core.seen import InMemorySeenEventStore, SeenEventStore


logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_MIN_SEC = 1.0
DEFAULT_RECONNECT_MAX_SEC = 60.0
DEFAULT_SEEN_TTL_SEC = 3600

_STOP = object()


class RelayPool:
    def __init__(
        self,
        urls: Iterable[str],
        *,
        kinds: Iterable[int],
        since: int | None = None,
        reconnect_min_seconds: float = DEFAULT_RECONNECT_MIN_SEC,
        reconnect_max_seconds: float = DEFAULT_RECONNECT_MAX_SEC,
        seen: Optional[SeenEventStore] = None,
        seen_ttl_seconds: int = DEFAULT_SEEN_TTL_SEC,
        subscription_id: str | None = None,
        connect: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.urls = tuple(urls)
        self.kinds = tuple(kinds)
        self.since = since
        self.reconnect_min_seconds = reconnect_min_seconds
        self.reconnect_max_seconds = reconnect_max_seconds
        self.seen_ttl_seconds = seen_ttl_seconds
        self.subscription_id = subscription_id or new_subscription_id()
        self._seen = seen or InMemorySeenEventStore()
        self._connect = connect or websockets.connect
        self._queue: asyncio.Queue | None = None
        self._tasks: list[asyncio.Task] = []
        self._closed = False

    def subscription_request(self) -> str:
        filt: dict[str, Any] = {"kinds": list(self.kinds)}
        if self.since is not None:
            filt["since"] = self.since
        return json.dumps([k.MSG_REQ, self.subscription_id, filt])

    def parse_message(self, relay_url: str, raw: str | bytes) -> NostrEvent | None:
        """Turn one relay message into a deliverable event, or None."""

        try:
            msg = json.loads(raw)
        except Exception as e:
            # Includes RecursionError on deeply nested arrays.
            logger.warning(f"Invalid JSON from {relay_url}: {e}")
            return None
        if not isinstance(msg, list) or not msg or not isinstance(msg[0], str):
            logger.warning(f"Unexpected message from {relay_url}: {str(raw)[:200]}")
            return None

        mtype = msg[0]
        if mtype == k.MSG_EVENT:
            if len(msg) < 3 or msg[1] != self.subscription_id:
                logger.debug(f"Ignoring EVENT for another subscription from {relay_url}")
                return None
            try:
                validate_event_dict(msg[2])
                event = NostrEvent.from_wire_dict(msg[2])
            except Exception as e:
                logger.warning(f"Invalid event from {relay_url}: {e}")
                return None
            if self._seen.seen(event.id):
                return None
            self._seen.mark(event.id, ttl_seconds=self.seen_ttl_seconds)
            return event

        if mtype == k.MSG_NOTICE:
            logger.info(f"Notice from {relay_url}: {msg[1:]}")
        elif mtype == k.MSG_CLOSED:
            logger.warning(f"Subscription closed by {relay_url}: {msg[1:]}")
        elif mtype in (k.MSG_EOSE, k.MSG_OK):
            logger.debug(f"{mtype} from {relay_url}")
        else:
            logger.debug(f"Unknown message type {mtype!r} from {relay_url}")
        return None

    async def start(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        for url in self.urls:
            self._tasks.append(asyncio.create_task(self._run_relay(url), name=f"relay:{url}"))

    async def _run_relay(self, url: str) -> None:
        assert self._queue is not None
        delay = self.reconnect_min_seconds
        while not self._closed:
            try:
                async with self._connect(url) as ws:
                    logger.info(f"Connected to relay {url}")
                    delay = self.reconnect_min_seconds
                    await ws.send(self.subscription_request())
                    async for raw in ws:
                        event = self.parse_message(url, raw)
                        if event is not None:
                            await self._queue.put(event)
                logger.info(f"Relay {url} closed the connection")
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                logger.warning(f"Relay {url} disconnected: {e}")
            except Exception:
                logger.exception(f"Relay {url} connection failed")
            if self._closed:
                break
            logger.info(f"Reconnecting to {url} in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.reconnect_max_seconds)

    async def events(self) -> AsyncIterator[NostrEvent]:
        """Yield events in delivery order until the pool is closed."""

        if self._queue is None:
            raise RuntimeError("RelayPool.start() must be awaited before events()")
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            yield item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        if self._queue is not None:
            self._queue.put_nowait(_STOP)
