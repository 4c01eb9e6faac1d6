"""Contracts package.

Defines the public inbound contract: the event kind the bridge listens to, the
tag keys it reads, and strict validation of Nostr events as they arrive on the
wire. Everything downstream of the relay pool may assume a validated event.
"""
