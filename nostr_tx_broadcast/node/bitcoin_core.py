"""Bitcoin Core JSON-RPC adapter.

Mechanical only: serialize, call the RPC, translate errors. No retries here;
a submission that fails is reported back to the dispatcher as-is.
"""

from __future__ import annotations

import http.client
import logging
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

from bitcoinrpc.authproxy import AuthServiceProxy, JSONRPCException

from nostr_tx_broadcast.bitcoin.transaction import Transaction
from nostr_tx_broadcast.core.errors import ConfigurationError, NodeConnectionError, NodeSubmissionError


logger = logging.getLogger(__name__)

# Transport failures that mean "node unreachable" rather than "node said no".
_TRANSPORT_ERRORS = (OSError, http.client.HTTPException)


def build_rpc_url(host: str, user: str | None = None, password: str | None = None) -> str:
    """Return an RPC URL with credentials embedded, as AuthServiceProxy expects.

    `host` may be a bare `host:port` or a full `http(s)://` URL. AuthServiceProxy
    reads the credentials back with `urlparse` and never unquotes them, so they
    are embedded verbatim and must survive that round trip.
    """

    if "://" not in host:
        host = "http://" + host
    parts = urlsplit(host)
    if not parts.hostname:
        raise ValueError(f"invalid bitcoin host: {host!r}")
    netloc = parts.hostname
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if user is not None:
        auth = user if password is None else f"{user}:{password}"
        netloc = f"{auth}@{netloc}"
    elif parts.username:
        # Credentials already in the URL.
        netloc = parts.netloc
    url = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    if user is not None:
        parsed = urlsplit(url)
        if parsed.username != user or parsed.password != password:
            raise ConfigurationError(
                "bitcoin RPC credentials cannot be embedded in a URL: the user must not contain ':' "
                "and neither may contain '/', '?' or '#'"
            )
    return url


def _reason(e: JSONRPCException) -> str:
    # JSONRPCException.__str__ fails on errors without a code; never call it.
    error = getattr(e, "error", None)
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return f"rpc error: {error!r}"


class BitcoinCoreNode:
    """Submits transactions through `sendrawtransaction` / `submitpackage`."""

    name = "bitcoin-core"

    def __init__(
        self,
        host: str,
        *,
        user: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        proxy_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.host = host
        self._url = build_rpc_url(host, user, password)
        self._timeout = timeout
        self._proxy_factory = proxy_factory or (lambda url: AuthServiceProxy(url, timeout=int(self._timeout)))
        self._proxy = None

    def _get_proxy(self):
        if self._proxy is None:
            self._proxy = self._proxy_factory(self._url)
        return self._proxy

    def _call(self, method: str, *params: Any) -> Any:
        proxy = self._get_proxy()
        logger.debug(f"rpc call: {method}")
        try:
            return getattr(proxy, method)(*params)
        except JSONRPCException as e:
            raise NodeSubmissionError(_reason(e), code=getattr(e, "code", None)) from e
        except _TRANSPORT_ERRORS as e:
            # Drop the connection so the next call reconnects.
            self._proxy = None
            raise NodeConnectionError(f"{method} failed: {e}") from e

    def connect(self) -> str:
        """Probe the node; returns its subversion string (e.g. "/Satoshi:27.0.0/")."""

        try:
            info = self._call("getnetworkinfo")
        except NodeSubmissionError as e:
            # Bad credentials surface as a JSON-RPC error on the first call.
            raise NodeConnectionError(f"bitcoin core rejected getnetworkinfo: {e.reason}") from e
        if not isinstance(info, dict) or "subversion" not in info:
            raise NodeConnectionError("unexpected getnetworkinfo response")
        return str(info["subversion"])

    def send_raw_transaction(self, tx: Transaction) -> str:
        return str(self._call("sendrawtransaction", tx.to_hex()))

    def submit_package(self, txs: Sequence[Transaction]) -> Dict[str, Any]:
        result = self._call("submitpackage", [tx.to_hex() for tx in txs])
        if not isinstance(result, dict):
            raise NodeSubmissionError(f"unexpected submitpackage response: {result!r}")
        return result
