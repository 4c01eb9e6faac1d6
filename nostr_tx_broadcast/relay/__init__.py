"""Nostr relay transport (subscription side only)."""
