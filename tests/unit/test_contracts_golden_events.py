from __future__ import annotations

import json
from pathlib import Path

import pytest

from nostr_tx_broadcast.bitcoin.network import Network
from nostr_tx_broadcast.bridge.service import BridgeContext, BridgeService
from nostr_tx_broadcast.contracts.validation import validate_event_dict
from nostr_tx_broadcast.core.errors import InvalidEventError
from nostr_tx_broadcast.core.models import NostrEvent
from nostr_tx_broadcast.core.seen import InMemorySeenEventStore

from txdata import LEGACY_TXID, SEGWIT_TXID


GOLDEN_DIR = Path(__file__).resolve().parents[1] / "golden_events"


def _load(name: str) -> dict:
    return json.loads((GOLDEN_DIR / name).read_text(encoding="utf-8"))


class _RecordingNode:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []

    def send_raw_transaction(self, tx):
        self.calls.append(("single", [tx.txid]))
        return tx.txid

    def submit_package(self, txs):
        self.calls.append(("package", [tx.txid for tx in txs]))
        return {"package_msg": "success"}


@pytest.mark.parametrize("path", sorted(GOLDEN_DIR.glob("*.json")), ids=lambda p: p.name)
def test_golden_events_contract_validation(path: Path) -> None:
    ev = json.loads(path.read_text(encoding="utf-8"))
    if "invalid" in path.name:
        with pytest.raises(InvalidEventError):
            validate_event_dict(ev)
    else:
        validate_event_dict(ev)
        assert NostrEvent.from_wire_dict(ev).to_wire_dict() == ev


@pytest.mark.parametrize(
    "name,expected",
    [
        ("01_valid_mainnet_package.json", [("package", [LEGACY_TXID, SEGWIT_TXID])]),
        ("02_valid_mainnet_single.json", [("single", [LEGACY_TXID])]),
        ("03_valid_testnet_single.json", []),
        ("04_valid_no_transactions.json", []),
    ],
)
def test_golden_events_through_mainnet_bridge(name: str, expected: list) -> None:
    node = _RecordingNode()
    service = BridgeService(BridgeContext(node=node, network=Network.BITCOIN))
    service.handle_event(NostrEvent.from_wire_dict(_load(name)))
    assert node.calls == expected


def test_seen_store_detects_duplicate_event_ids() -> None:
    a = _load("01_valid_mainnet_package.json")
    store = InMemorySeenEventStore()
    assert store.seen(a["id"]) is False
    store.mark(a["id"], ttl_seconds=60)
    assert store.seen(a["id"]) is True


def test_seen_store_is_bounded() -> None:
    store = InMemorySeenEventStore(max_entries=2)
    for event_id in ("a", "b", "c"):
        store.mark(event_id, ttl_seconds=60)
    assert len(store) == 2
    assert store.seen("a") is False
    assert store.seen("c") is True


def test_seen_store_entries_expire() -> None:
    store = InMemorySeenEventStore()
    store.mark("a", ttl_seconds=0)
    assert store.seen("a") is False
