from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class NostrEvent:
    """A Nostr event as delivered by a relay.

    Only `kind` and `tags` matter to the bridge; id, pubkey, sig and content are
    carried through for logging.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tuple[Tuple[str, ...], ...]
    content: str
    sig: str

    @classmethod
    def from_wire_dict(cls, d: Dict[str, Any]) -> "NostrEvent":
        # Callers validate first (contracts.validation.validate_event_dict).
        return cls(
            id=d["id"],
            pubkey=d["pubkey"],
            created_at=int(d["created_at"]),
            kind=int(d["kind"]),
            tags=tuple(tuple(tag) for tag in d["tags"]),
            content=d["content"],
            sig=d["sig"],
        )

    def to_wire_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }
