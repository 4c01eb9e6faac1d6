from __future__ import annotations

# Ephemeral event kind used for Bitcoin transaction broadcast.
BITCOIN_TX_KIND = 28333

# Tag keys.
TAG_MAGIC = "magic"
TAG_TRANSACTIONS = "transactions"

# NIP-01 message types.
MSG_REQ = "REQ"
MSG_EVENT = "EVENT"
MSG_EOSE = "EOSE"
MSG_NOTICE = "NOTICE"
MSG_CLOSED = "CLOSED"
MSG_OK = "OK"
