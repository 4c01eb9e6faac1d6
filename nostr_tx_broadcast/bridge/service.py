"""Bridge service - subscribes to relays and forwards transactions to bitcoin core.

This service:
1. Confirms the bitcoin core connection (fatal if unreachable)
2. Subscribes to kind 28333 events on every configured relay
3. For each event: network magic filter -> transaction extraction -> dispatch

Processing errors are logged and never stop the subscription.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from typing import AsyncIterable, Optional, Sequence

from nostr_tx_broadcast.bitcoin.network import Network
from nostr_tx_broadcast.contracts.kinds import BITCOIN_TX_KIND
from nostr_tx_broadcast.core.errors import BridgeError
from nostr_tx_broadcast.core.logging_setup import configure_logging
from nostr_tx_broadcast.core.models import NostrEvent
from nostr_tx_broadcast.core.settings import DEFAULT_SETTINGS_PATH, Settings, load_settings
from nostr_tx_broadcast.node.base import NodeClient
from nostr_tx_broadcast.node.bitcoin_core import BitcoinCoreNode
from nostr_tx_broadcast.relay.pool import RelayPool

from .dispatch import DispatchReport, dispatch
from .extractor import extract_transactions
from .network_filter import matches_network


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgeContext:
    """Read-only state shared by every processing pass."""

    node: NodeClient
    network: Network
    listen_kind: int = BITCOIN_TX_KIND


class BridgeService:
    def __init__(self, context: BridgeContext) -> None:
        self.context = context

    def handle_event(self, event: NostrEvent) -> Optional[DispatchReport]:
        """Run one event through filter -> extract -> dispatch.

        Returns the dispatch report, or None when the event was ignored or the
        dispatch failed.
        """

        ctx = self.context
        if event.kind != ctx.listen_kind:
            return None
        if not matches_network(event, ctx.network):
            logger.debug(f"Ignoring event {event.id}: not for {ctx.network.value}")
            return None

        txs = extract_transactions(event)
        try:
            return dispatch(ctx.node, txs)
        except BridgeError as e:
            logger.error(f"Error broadcasting txs: {e}", extra={"event_id": event.id})
            return None

    async def run(self, events: AsyncIterable[NostrEvent]) -> int:
        """Process events one at a time, in delivery order; returns the count seen.

        A failure while handling one event is logged and never ends the loop.
        """

        seen = 0
        async for event in events:
            try:
                # Node RPC is blocking; keep it off the loop so relay sockets stay serviced.
                await asyncio.to_thread(self.handle_event, event)
            except Exception:
                logger.exception(f"Error broadcasting txs for event {event.id}")
            seen += 1
        return seen


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="nostr-tx-broadcast",
        description="Relay Bitcoin transactions published on Nostr into a Bitcoin Core node.",
    )
    ap.add_argument("-c", "--config", default=DEFAULT_SETTINGS_PATH, help="YAML settings file (optional)")
    ap.add_argument("-n", "--network", help="bitcoin | testnet | testnet4 | signet | regtest")
    ap.add_argument("-r", "--relays", action="append", help="relay URL; repeat for several relays")
    ap.add_argument("--bitcoin-host", help="bitcoin core RPC URL, e.g. http://127.0.0.1:8332")
    ap.add_argument("--bitcoin-user")
    ap.add_argument("--bitcoin-password")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    return ap


def settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.config,
        overrides={
            "network": args.network,
            "relays": args.relays,
            "bitcoin_host": args.bitcoin_host,
            "bitcoin_user": args.bitcoin_user,
            "bitcoin_password": args.bitcoin_password,
            "log_level": args.log_level,
        },
    )


async def run_bridge(s: Settings, *, node: Optional[BitcoinCoreNode] = None) -> None:
    logger.info("Connecting bitcoin core...")
    node = node or BitcoinCoreNode(
        s.bitcoin_host,
        user=s.bitcoin_user,
        password=s.bitcoin_password,
        timeout=s.rpc_timeout,
    )
    version = await asyncio.to_thread(node.connect)
    logger.info(f"Connected to bitcoin core version {version}")

    pool = RelayPool(
        s.relays,
        kinds=[s.listen_kind],
        since=int(time.time()),
        reconnect_min_seconds=s.reconnect_min_seconds,
        reconnect_max_seconds=s.reconnect_max_seconds,
    )
    await pool.start()

    loop = asyncio.get_running_loop()
    shutdown: list[asyncio.Task] = []
    try:
        loop.add_signal_handler(signal.SIGTERM, lambda: shutdown.append(loop.create_task(pool.close())))
    except (NotImplementedError, RuntimeError):  # pragma: no cover - non-unix
        pass

    service = BridgeService(BridgeContext(node=node, network=s.network, listen_kind=s.listen_kind))
    logger.info(f"Listening for bitcoin txs on {s.network.value} ({len(s.relays)} relays)...")
    try:
        await service.run(pool.events())
    finally:
        await pool.close()
        await asyncio.gather(*shutdown)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    s = settings_from_args(args)
    configure_logging(s.log_level)
    s.validate()

    try:
        asyncio.run(run_bridge(s))
    except KeyboardInterrupt:
        logger.info("Shutting down bridge...")


if __name__ == "__main__":
    main()
