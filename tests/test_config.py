"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import sys
import types
from unittest.mock import MagicMock, patch

import pytest
import yaml

from quorum.config import (
    DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS,
    DEFAULT_NETWORK,
    DEFAULT_RECONCILE_INTERVAL_MINUTES,
    load_blockchain_service,
    load_config,
)


def _write(tmp_path, data: dict):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


_REQUIRED = {
    "platform_name": "Quorum Test",
    "dashboard_port": 8000,
    "blockchain_service": "chain.service:create",
}


class TestLoadConfig:
    def test_defaults_fill_optional_keys(self, tmp_path):
        cfg = load_config(_write(tmp_path, _REQUIRED))
        assert cfg.platform_name == "Quorum Test"
        assert cfg.solana_network == DEFAULT_NETWORK
        assert cfg.reconcile_interval_minutes == DEFAULT_RECONCILE_INTERVAL_MINUTES
        assert cfg.blockchain_timeout_seconds == DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS

    def test_overrides(self, tmp_path):
        cfg = load_config(_write(tmp_path, {
            **_REQUIRED,
            "solana_network": "devnet",
            "reconcile_interval_minutes": 5,
            "blockchain_timeout_seconds": 2.5,
        }))
        assert cfg.solana_network == "devnet"
        assert cfg.reconcile_interval_minutes == 5
        assert cfg.blockchain_timeout_seconds == 2.5

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, _REQUIRED))
        with pytest.raises(AttributeError):
            cfg.solana_network = "devnet"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        data = dict(_REQUIRED)
        del data["blockchain_service"]
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, data))

    @pytest.mark.parametrize("key", ["reconcile_interval_minutes", "blockchain_timeout_seconds"])
    def test_rejects_non_positive_values(self, tmp_path, key):
        with pytest.raises(ValueError, match=key):
            load_config(_write(tmp_path, {**_REQUIRED, key: 0}))


class TestLoadBlockchainService:
    def test_imports_and_calls_factory(self):
        service = MagicMock()
        module = types.ModuleType("fake_chain_service")
        module.create = MagicMock(return_value=service)

        with patch.dict(sys.modules, {"fake_chain_service": module}):
            assert load_blockchain_service("fake_chain_service:create") is service
        module.create.assert_called_once_with()

    @pytest.mark.parametrize("target", ["no_colon", ":factory", "module:"])
    def test_rejects_malformed_target(self, target):
        with pytest.raises(ValueError, match="package.module:factory"):
            load_blockchain_service(target)
