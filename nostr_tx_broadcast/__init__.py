"""Relay Bitcoin transactions published on Nostr into a Bitcoin Core node.

Subpackages:
- contracts: event kind, tag keys and wire validation for inbound events
- core: shared models, settings, errors and logging setup
- bitcoin: network magics and consensus transaction decoding
- node: Bitcoin Core JSON-RPC adapter
- relay: WebSocket relay pool producing inbound events
- bridge: filter -> extract -> dispatch pipeline and the service entrypoint
"""

__version__ = "0.1.0"
