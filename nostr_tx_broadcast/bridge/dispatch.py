"""Submission policy for decoded transactions.

Must be purely mechanical:
- 0 transactions: nothing to do
- 1 transaction: `sendrawtransaction` (submitpackage does not accept a
  single-transaction package)
- 2+ transactions: one `submitpackage` call with every transaction, in order

A single-transaction failure (rejection or lost connection) is reported, never
raised. A failed package call is raised as `PackageSubmissionError` for the
caller to log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from nostr_tx_broadcast.bitcoin.transaction import Transaction
from nostr_tx_broadcast.core.errors import BridgeError, NodeSubmissionError, PackageSubmissionError
from nostr_tx_broadcast.node.base import NodeClient


logger = logging.getLogger(__name__)


class DispatchMode(str, Enum):
    NONE = "none"
    SINGLE = "single"
    PACKAGE = "package"


@dataclass(frozen=True)
class SubmissionResult:
    txid: str
    accepted: bool
    reason: str | None = None


@dataclass(frozen=True)
class DispatchReport:
    mode: DispatchMode
    txids: Tuple[str, ...] = ()
    results: Tuple[SubmissionResult, ...] = ()
    package_result: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return all(r.accepted for r in self.results)

    @property
    def package_status(self) -> str | None:
        if self.package_result is None:
            return None
        msg = self.package_result.get("package_msg")
        return None if msg is None else str(msg)

    def summary(self) -> str:
        return f"Submitted transactions: {','.join(self.txids)}"


def _failure_reason(e: BridgeError) -> str:
    return e.reason if isinstance(e, NodeSubmissionError) else str(e)


def _send_single(node: NodeClient, tx: Transaction) -> SubmissionResult:
    txid = tx.txid
    try:
        node.send_raw_transaction(tx)
    except BridgeError as e:
        # Terminal for this transaction; do not retry.
        reason = _failure_reason(e)
        logger.warning(f"Error broadcasting tx: {reason}", extra={"txid": txid})
        return SubmissionResult(txid=txid, accepted=False, reason=reason)
    logger.info(f"Broadcasted tx: {txid}")
    return SubmissionResult(txid=txid, accepted=True)


def _send_package(node: NodeClient, txs: Sequence[Transaction]) -> Dict[str, Any]:
    try:
        result = node.submit_package(list(txs))
    except BridgeError as e:
        reason = _failure_reason(e)
        raise PackageSubmissionError(f"Error submitting package: {reason}") from e
    logger.info(f"{result!r}")
    return result


def dispatch(node: NodeClient, transactions: Sequence[Transaction]) -> DispatchReport:
    """Submit `transactions` to `node` and report what happened."""

    if not transactions:
        return DispatchReport(mode=DispatchMode.NONE)

    txids = tuple(tx.txid for tx in transactions)
    if len(transactions) == 1:
        results = (_send_single(node, transactions[0]),)
        report = DispatchReport(mode=DispatchMode.SINGLE, txids=txids, results=results)
    else:
        package_result = _send_package(node, transactions)
        report = DispatchReport(mode=DispatchMode.PACKAGE, txids=txids, package_result=package_result)

    logger.info(report.summary())
    return report
