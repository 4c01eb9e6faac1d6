"""Nostr -> Bitcoin Core bridge.

The only connector between the public relay network and the local node. It
forwards transactions from events that carry the configured network magic;
everything else is dropped before any node call is made.
"""
