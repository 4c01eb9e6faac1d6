from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import os

from nostr_tx_broadcast.bitcoin.network import Network, parse_network
from nostr_tx_broadcast.contracts.kinds import BITCOIN_TX_KIND
from nostr_tx_broadcast.core.errors import ConfigurationError

ENV_PREFIX = "NOSTR_TX_BROADCAST_"
DEFAULT_SETTINGS_PATH = "config/settings.yaml"
DEFAULT_BITCOIN_HOST = "http://127.0.0.1:8332"


@dataclass(frozen=True)
class Settings:
    network: Network = Network.BITCOIN
    relays: tuple[str, ...] = ()
    bitcoin_host: str = DEFAULT_BITCOIN_HOST
    bitcoin_user: str | None = field(default=None, repr=False)
    bitcoin_password: str | None = field(default=None, repr=False)
    rpc_timeout: float = 30.0
    listen_kind: int = BITCOIN_TX_KIND
    reconnect_min_seconds: float = 1.0
    reconnect_max_seconds: float = 60.0
    log_level: str = "INFO"

    def validate(self) -> "Settings":
        if not self.relays:
            raise ConfigurationError("No relay(s) provided")
        for url in self.relays:
            if not (url.startswith("ws://") or url.startswith("wss://")):
                raise ConfigurationError(f"relay url must start with ws:// or wss://: {url}")
        if not self.bitcoin_host:
            raise ConfigurationError("bitcoin_host is required")
        if self.reconnect_min_seconds <= 0 or self.reconnect_max_seconds < self.reconnect_min_seconds:
            raise ConfigurationError("reconnect delays must satisfy 0 < min <= max")
        return self


def _split_relays(value: str) -> tuple[str, ...]:
    return tuple(r.strip() for r in value.split(",") if r.strip())


def _network(value: Any) -> Network:
    try:
        return parse_network(str(value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def _read_yaml(p: Path) -> Dict[str, Any]:
    # Keep imports optional at module import time (tests may not need YAML).
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "PyYAML is required to load config/settings.yaml. Install with: pip install pyyaml"
        ) from e

    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{p} must contain a mapping")
    return data


def load_settings(
    path: str | Path | None = DEFAULT_SETTINGS_PATH,
    *,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """Load settings from YAML, then env, then explicit overrides (CLI).

    A missing YAML file is not an error; defaults apply.
    """

    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if p.is_file():
            data = _read_yaml(p)

    bitcoin_section = data.get("bitcoin") or {}
    relay_section = data.get("relay") or {}
    relays = data.get("relays") or []
    if isinstance(relays, str):
        relays = _split_relays(relays)

    s = Settings(
        network=_network(data.get("network", Network.BITCOIN.value)),
        relays=tuple(str(r) for r in relays),
        bitcoin_host=str(bitcoin_section.get("host") or DEFAULT_BITCOIN_HOST),
        bitcoin_user=bitcoin_section.get("user"),
        bitcoin_password=bitcoin_section.get("password"),
        rpc_timeout=float(bitcoin_section.get("timeout", 30.0)),
        listen_kind=int(data.get("listen_kind", BITCOIN_TX_KIND)),
        reconnect_min_seconds=float(relay_section.get("reconnect_min_seconds", 1.0)),
        reconnect_max_seconds=float(relay_section.get("reconnect_max_seconds", 60.0)),
        log_level=str(data.get("log_level", "INFO")),
    )

    # Env overrides (used for container deployments).
    changes: Dict[str, Any] = {}
    if env.get(ENV_PREFIX + "NETWORK"):
        changes["network"] = _network(env[ENV_PREFIX + "NETWORK"])
    if env.get(ENV_PREFIX + "RELAYS"):
        changes["relays"] = _split_relays(env[ENV_PREFIX + "RELAYS"])
    for name in ("bitcoin_host", "bitcoin_user", "bitcoin_password", "log_level"):
        value = env.get(ENV_PREFIX + name.upper())
        if value:
            changes[name] = value

    for name, value in (overrides or {}).items():
        if value is None:
            continue
        if name == "network":
            value = _network(value)
        elif name == "relays":
            if not value:
                continue
            value = tuple(value)
        changes[name] = value

    return replace(s, **changes)
