from __future__ import annotations

import asyncio
import json
import logging

import pytest

from nostr_tx_broadcast.relay.pool import RelayPool

from txdata import LEGACY_TX_HEX, MAINNET_MAGIC


def _event(event_id: str, **overrides) -> dict:
    ev = {
        "id": event_id,
        "pubkey": "a" * 64,
        "created_at": 1_700_000_000,
        "kind": 28333,
        "tags": [["magic", MAINNET_MAGIC], ["transactions", LEGACY_TX_HEX]],
        "content": "",
        "sig": "b" * 128,
    }
    ev.update(overrides)
    return ev


def _pool(**kwargs) -> RelayPool:
    return RelayPool(["wss://relay.example"], kinds=[28333], subscription_id="sub1", **kwargs)


def test_subscription_request_filters_kind_and_since() -> None:
    pool = _pool(since=1_700_000_000)
    assert json.loads(pool.subscription_request()) == ["REQ", "sub1", {"kinds": [28333], "since": 1_700_000_000}]


def test_event_message_becomes_nostr_event() -> None:
    pool = _pool()
    ev = pool.parse_message("wss://relay.example", json.dumps(["EVENT", "sub1", _event("1" * 64)]))
    assert ev is not None
    assert ev.id == "1" * 64
    assert ev.kind == 28333
    assert ev.tags[0] == ("magic", MAINNET_MAGIC)


def test_same_event_id_is_delivered_once() -> None:
    pool = _pool()
    raw = json.dumps(["EVENT", "sub1", _event("1" * 64)])
    assert pool.parse_message("wss://a", raw) is not None
    assert pool.parse_message("wss://b", raw) is None
    assert pool.parse_message("wss://a", json.dumps(["EVENT", "sub1", _event("2" * 64)])) is not None


def test_event_for_other_subscription_is_ignored() -> None:
    pool = _pool()
    assert pool.parse_message("wss://a", json.dumps(["EVENT", "other", _event("1" * 64)])) is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"EVENT": 1}),
        json.dumps([]),
        json.dumps(["EVENT", "sub1", _event("XYZ")]),
        json.dumps(["EVENT", "sub1", _event("1" * 64, kind="28333")]),
        json.dumps(["EVENT", "sub1", _event("1" * 64, tags=[["magic", 1]])]),
    ],
)
def test_malformed_messages_are_dropped(raw: str, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    assert _pool().parse_message("wss://a", raw) is None
    assert any(r.levelno == logging.WARNING for r in caplog.records)


@pytest.mark.parametrize(
    "msg",
    [["EOSE", "sub1"], ["NOTICE", "rate limited"], ["CLOSED", "sub1", "error: shutting down"], ["OK", "x", True, ""]],
)
def test_control_messages_yield_no_event(msg: list) -> None:
    assert _pool().parse_message("wss://a", json.dumps(msg)) is None


class _FakeConnection:
    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        self.sent: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for m in self.messages:
            yield m


def test_pool_delivers_events_once_across_relays_and_reconnects() -> None:
    messages = [
        json.dumps(["EVENT", "sub1", _event("1" * 64)]),
        json.dumps(["EOSE", "sub1"]),
        json.dumps(["EVENT", "sub1", _event("2" * 64)]),
    ]
    connections: dict[str, _FakeConnection] = {}

    def connect(url: str) -> _FakeConnection:
        return connections.setdefault(url, _FakeConnection(messages))

    async def scenario():
        pool = RelayPool(
            ["wss://a", "wss://b"],
            kinds=[28333],
            subscription_id="sub1",
            reconnect_min_seconds=0.01,
            reconnect_max_seconds=0.01,
            connect=connect,
        )
        await pool.start()
        got = []
        async for ev in pool.events():
            got.append(ev.id)
            if len(got) == 2:
                break
        # Let both relays reconnect a few times.
        await asyncio.sleep(0.1)
        await pool.close()
        rest = [ev.id async for ev in pool.events()]
        return pool, got, rest

    pool, got, rest = asyncio.run(scenario())
    assert got == ["1" * 64, "2" * 64]
    assert rest == []
    # Every (re)connection re-sends the subscription.
    for conn in connections.values():
        assert len(conn.sent) >= 2
        assert all(json.loads(s)[0] == "REQ" for s in conn.sent)


def test_events_before_start_is_an_error() -> None:
    async def scenario():
        async for _ in _pool().events():
            pass

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_deeply_nested_message_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    raw = "[" * 200_000 + "]" * 200_000
    assert _pool().parse_message("wss://a", raw) is None
    assert any(r.levelno == logging.WARNING for r in caplog.records)


class _BrokenConnection(_FakeConnection):
    async def _iter(self):
        raise RuntimeError("unexpected frame handling failure")
        yield  # pragma: no cover


def test_unexpected_connection_error_reconnects() -> None:
    attempts: list[str] = []
    healthy = _FakeConnection([json.dumps(["EVENT", "sub1", _event("1" * 64)])])

    def connect(url: str) -> _FakeConnection:
        attempts.append(url)
        return _BrokenConnection([]) if len(attempts) == 1 else healthy

    async def scenario():
        pool = RelayPool(
            ["wss://a"],
            kinds=[28333],
            subscription_id="sub1",
            reconnect_min_seconds=0.01,
            reconnect_max_seconds=0.01,
            connect=connect,
        )
        await pool.start()
        async for ev in pool.events():
            await pool.close()
            return ev.id

    assert asyncio.run(scenario()) == "1" * 64
    assert len(attempts) >= 2
