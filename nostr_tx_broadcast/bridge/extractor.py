from __future__ import annotations

import logging
from typing import Optional

from nostr_tx_broadcast.bitcoin.transaction import Transaction, decode_transaction_hex
from nostr_tx_broadcast.contracts.kinds import TAG_TRANSACTIONS
from nostr_tx_broadcast.core.errors import TransactionDecodeError
from nostr_tx_broadcast.core.models import NostrEvent
from nostr_tx_broadcast.core.tags import find_tag, tag_values


logger = logging.getLogger(__name__)


def _decode_entry(event_id: str, index: int, value: str) -> Optional[Transaction]:
    try:
        return decode_transaction_hex(value)
    except TransactionDecodeError as e:
        logger.debug(f"skip_malformed_transaction event_id={event_id} index={index}: {e}")
        return None


def extract_transactions(event: NostrEvent) -> list[Transaction]:
    """Decode the first `transactions` tag, keeping tag order.

    Entries that are not valid hex or not a valid transaction are dropped;
    the remaining entries are still returned.
    """

    tag = find_tag(event.tags, TAG_TRANSACTIONS)
    if tag is None:
        return []

    decoded = (_decode_entry(event.id, i, value) for i, value in enumerate(tag_values(tag)))
    return [tx for tx in decoded if tx is not None]
