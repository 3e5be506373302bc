import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from poolbook.abis import MULTICALL3_ADDRESS
from poolbook.errors import ConfigurationError
from poolbook.sampler import DEFAULT_WINDOW_SIZE


@dataclass
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str
    wss_url: str
    multicall_address: str = MULTICALL3_ADDRESS


@dataclass
class ListenerConfig:
    chain_id: int
    market_address: str
    market_id: str
    rpc_url: Optional[str] = None  # must be ws:// or wss://
    window_size: int = DEFAULT_WINDOW_SIZE
    refresh_interval: Optional[float] = None  # seconds; None disables timer refresh


@dataclass
class AppConfig:
    listener: ListenerConfig
    chains: Dict[int, ChainConfig] = field(default_factory=dict)


def resolve_chain(config: ListenerConfig, chains: Mapping[int, ChainConfig]) -> ChainConfig:
    """Validate ``config`` against the chain table and return the endpoints to use."""
    chain = chains.get(config.chain_id)
    if chain is None:
        supported = ", ".join(str(chain_id) for chain_id in sorted(chains)) or "none"
        raise ConfigurationError(
            f"Unsupported chainId: {config.chain_id}. Configured chain IDs are: {supported}"
        )
    if config.window_size < 1:
        raise ConfigurationError(f"window_size must be at least 1, got {config.window_size}")
    if config.refresh_interval is not None and config.refresh_interval <= 0:
        raise ConfigurationError(f"refresh_interval must be positive, got {config.refresh_interval}")
    if config.rpc_url is None:
        return chain
    if not config.rpc_url.startswith(("ws://", "wss://")):
        raise ConfigurationError(
            f"RPC URL {config.rpc_url!r} is not a subscription endpoint (expected ws:// or wss://)"
        )
    return replace(chain, wss_url=config.rpc_url)


def _load_config_from_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _get_env_or_default(key: str, fallback: Optional[str]) -> Optional[str]:
    return os.getenv(key, fallback)


def _get_int_env(key: str, fallback: Optional[int], default: int) -> int:
    raw_value = os.getenv(key)
    if raw_value is not None:
        try:
            return int(raw_value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {raw_value!r}")
    if fallback is not None:
        try:
            return int(fallback)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be an integer, got {fallback!r}")
    return default


def _get_float_env(key: str, fallback) -> Optional[float]:
    raw_value = os.getenv(key, fallback)
    if raw_value is None or raw_value == "":
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {raw_value!r}")


def parse_chains(chains_data: list) -> Dict[int, ChainConfig]:
    chains: Dict[int, ChainConfig] = {}
    for entry in chains_data:
        try:
            chain = ChainConfig(
                chain_id=int(entry["chain_id"]),
                name=entry["name"],
                rpc_url=entry["rpc_url"],
                wss_url=entry["wss_url"],
                multicall_address=entry.get("multicall_address", MULTICALL3_ADDRESS),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Malformed chain entry {entry!r}: {exc}") from exc
        chains[chain.chain_id] = chain
    return chains


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load ``config.json`` (or ``$POOLBOOK_CONFIG``) with environment overrides."""
    config_path = path or Path(_get_env_or_default("POOLBOOK_CONFIG", "config.json"))
    data = _load_config_from_file(config_path)
    listener_data = data.get("listener", {})

    market_address = _get_env_or_default("MARKET_ADDRESS", listener_data.get("market_address"))
    market_id = _get_env_or_default("MARKET_ID", listener_data.get("market_id"))
    if not market_address or market_id is None:
        raise ConfigurationError(
            "MARKET_ADDRESS and MARKET_ID must be provided via environment variables or config.json"
        )

    listener = ListenerConfig(
        chain_id=_get_int_env("CHAIN_ID", listener_data.get("chain_id"), 8453),
        market_address=market_address,
        market_id=str(market_id),
        rpc_url=_get_env_or_default("RPC_URL", listener_data.get("rpc_url")),
        window_size=_get_int_env("WINDOW_SIZE", listener_data.get("window_size"), DEFAULT_WINDOW_SIZE),
        refresh_interval=_get_float_env("REFRESH_INTERVAL", listener_data.get("refresh_interval")),
    )
    return AppConfig(listener=listener, chains=parse_chains(data.get("chains", [])))
