"""
quorum.config — YAML Configuration Loader
==========================================

**Why this file exists:**
This module reads ``config.yaml`` for **infrastructure-only** settings
(chain network, reconciliation cadence, blockchain service wiring).  Secrets
such as ``DATABASE_URL`` and ``JWT_SECRET`` come from the environment.

Usage::

    from quorum.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.solana_network)            # "mainnet-beta"
    print(cfg.reconcile_interval_minutes)  # 15
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from quorum.blockchain.client import BlockchainService

DEFAULT_NETWORK = "mainnet-beta"
DEFAULT_RECONCILE_INTERVAL_MINUTES = 15
DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS = 30.0


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class QuorumConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # Dashboard / admin API
    dashboard_port: int

    # Blockchain wiring: ``"package.module:factory"``
    blockchain_service: str

    # Reconciliation
    solana_network: str = DEFAULT_NETWORK
    reconcile_interval_minutes: int = DEFAULT_RECONCILE_INTERVAL_MINUTES
    blockchain_timeout_seconds: float = DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> QuorumConfig:
    """Read *path* and return a :class:`QuorumConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a numeric setting is not positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    interval = int(raw.get("reconcile_interval_minutes", DEFAULT_RECONCILE_INTERVAL_MINUTES))
    timeout = float(raw.get("blockchain_timeout_seconds", DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS))
    if interval <= 0:
        raise ValueError(f"reconcile_interval_minutes must be positive, got {interval}")
    if timeout <= 0:
        raise ValueError(f"blockchain_timeout_seconds must be positive, got {timeout}")

    return QuorumConfig(
        platform_name=raw["platform_name"],
        dashboard_port=int(raw["dashboard_port"]),
        blockchain_service=raw["blockchain_service"],
        solana_network=raw.get("solana_network") or DEFAULT_NETWORK,
        reconcile_interval_minutes=interval,
        blockchain_timeout_seconds=timeout,
    )


def load_blockchain_service(target: str) -> BlockchainService:
    """Import ``"module:factory"`` and call the factory with no arguments."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"blockchain_service must look like 'package.module:factory', got {target!r}"
        )
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    return factory()
