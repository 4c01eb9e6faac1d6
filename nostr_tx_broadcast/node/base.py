from __future__ import annotations

from typing import Any, Dict, Protocol, Sequence

from nostr_tx_broadcast.bitcoin.transaction import Transaction


class NodeClient(Protocol):
    """Submission capability of a transaction-processing node.

    Both operations raise `NodeSubmissionError` when the node rejects the
    request and `NodeConnectionError` when the node cannot be reached.
    """

    def send_raw_transaction(self, tx: Transaction) -> str:
        """Submit one transaction; returns the txid reported by the node."""

    def submit_package(self, txs: Sequence[Transaction]) -> Dict[str, Any]:
        """Submit an ordered package; returns the node's package result verbatim."""
