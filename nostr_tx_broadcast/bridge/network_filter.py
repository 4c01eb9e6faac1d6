from __future__ import annotations

from nostr_tx_broadcast.bitcoin.network import Network, parse_magic
from nostr_tx_broadcast.contracts.kinds import TAG_MAGIC
from nostr_tx_broadcast.core.models import NostrEvent
from nostr_tx_broadcast.core.tags import find_tag, tag_values


def event_magic(event: NostrEvent) -> bytes | None:
    """Magic carried by the first `magic` tag, or None if absent or unparseable."""

    tag = find_tag(event.tags, TAG_MAGIC)
    if tag is None:
        return None
    values = tag_values(tag)
    if not values:
        return None
    try:
        return parse_magic(values[0])
    except ValueError:
        return None


def matches_network(event: NostrEvent, target: Network) -> bool:
    magic = event_magic(event)
    return magic is not None and magic == target.magic
