import logging

import pytest
from pydantic import ValidationError

from core_transfer.errors import ConfigurationError
from core_transfer.settings import Settings, configure_logging, resolve_rpc_url, require


def make(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


def test_defaults():
    settings = make()
    assert settings.solana_network == "mainnet"
    assert settings.commitment == "confirmed"
    assert settings.max_attempts == 3
    assert settings.retry_base_delay == 5.0
    assert settings.retry_backoff == 1.5
    assert settings.min_balance_lamports == 10_000_000
    assert settings.transfer_encoder == "layout"


def test_env_variables_are_read(monkeypatch):
    monkeypatch.setenv("SOLANA_NETWORK", "devnet")
    monkeypatch.setenv("MAX_ATTEMPTS", "5")
    monkeypatch.setenv("SKIP_PREFLIGHT", "true")
    settings = make()
    assert settings.solana_network == "devnet"
    assert settings.max_attempts == 5
    assert settings.skip_preflight is True


def test_env_file_is_read(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("DESTINATION_WALLET=abc\nUNRELATED_VAR=1\n", encoding="utf-8")
    settings = Settings(_env_file=str(env_file))
    assert settings.destination_wallet == "abc"


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({}, "https://api.mainnet-beta.solana.com"),
        ({"solana_network": "devnet"}, "https://api.devnet.solana.com"),
        ({"solana_network": "Mainnet", "helius_api_key": "k1"}, "https://mainnet.helius-rpc.com/?api-key=k1"),
        ({"solana_network": "devnet", "helius_api_key": "k2"}, "https://devnet.helius-rpc.com/?api-key=k2"),
        ({"solana_rpc": "http://localhost:8899", "helius_api_key": "k3"}, "http://localhost:8899"),
    ],
)
def test_resolve_rpc_url(kwargs, expected):
    assert resolve_rpc_url(make(**kwargs)) == expected


def test_resolve_rpc_url_unknown_network():
    with pytest.raises(ConfigurationError):
        resolve_rpc_url(make(solana_network="testnet-x"))


def test_require_names_the_env_variable():
    with pytest.raises(ConfigurationError, match="NFT_ASSET_ADDRESS"):
        require(make(), "nft_asset_address")
    assert require(make(nft_asset_address="x"), "nft_asset_address") == "x"


def test_configure_logging_returns_package_logger():
    logger = configure_logging("debug")
    assert logger.name == "core_transfer"
    assert isinstance(logger, logging.Logger)


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"retry_backoff": 1.0}, {"retry_backoff": 0.5}, {"retry_base_delay": 0}],
)
def test_retry_settings_are_validated(kwargs):
    with pytest.raises(ValidationError):
        make(**kwargs)


def test_retry_backoff_from_env_is_validated(monkeypatch):
    monkeypatch.setenv("RETRY_BACKOFF", "1")
    with pytest.raises(ValidationError):
        make()
