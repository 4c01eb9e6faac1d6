from __future__ import annotations


class BridgeError(Exception):
    """Base class for errors raised by the bridge."""


class ConfigurationError(BridgeError):
    """Startup configuration is unusable (e.g. no relays)."""


class NodeConnectionError(BridgeError):
    """The Bitcoin node could not be reached or refused our credentials."""


class NodeSubmissionError(BridgeError):
    """The node rejected a submission.

    `reason` is the message supplied by the node.
    """

    def __init__(self, reason: str, *, code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code


class PackageSubmissionError(BridgeError):
    """A `submitpackage` call failed as a whole."""


class TransactionDecodeError(ValueError):
    """A transaction payload is not valid hex or not a valid consensus encoding."""


class InvalidEventError(ValueError):
    """An inbound relay message does not carry a well-formed Nostr event."""
