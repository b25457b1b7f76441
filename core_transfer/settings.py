from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

PUBLIC_CLUSTERS = {
    "mainnet": "https://api.mainnet-beta.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
}
HELIUS_NETWORKS = {"mainnet": "mainnet", "mainnet-beta": "mainnet", "devnet": "devnet"}


class Settings(BaseSettings):
    solana_network: str = "mainnet"
    helius_api_key: Optional[str] = None
    solana_rpc: Optional[str] = None  # explicit override, wins over network/helius
    wallet_private_key: Optional[str] = None  # JSON byte array, e.g. "[12,34,...]"
    wallet_keypair_path: Optional[str] = None
    nft_asset_address: Optional[str] = None
    nft_collection_address: Optional[str] = None
    destination_wallet: Optional[str] = None
    safe_address: Optional[str] = None
    safe_program_id: Optional[str] = None
    safe_client_factory: Optional[str] = None  # "module:attr" returning a SafeClient
    existing_proposal: Optional[str] = None
    commitment: str = "confirmed"
    skip_preflight: bool = False
    max_attempts: int = Field(3, ge=1)
    retry_base_delay: float = Field(5.0, gt=0)
    retry_backoff: float = Field(1.5, gt=1)
    retry_max_delay: float = 60.0
    confirm_timeout: float = 30.0
    settle_seconds: float = 5.0
    min_balance_lamports: int = 10_000_000  # 0.01 SOL
    transfer_encoder: str = "layout"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)


def resolve_rpc_url(settings: Settings) -> str:
    if settings.solana_rpc:
        return settings.solana_rpc
    network = settings.solana_network.lower()
    if settings.helius_api_key:
        helius_network = HELIUS_NETWORKS.get(network)
        if helius_network is None:
            raise ConfigurationError(f"SOLANA_NETWORK={settings.solana_network} has no Helius endpoint")
        return f"https://{helius_network}.helius-rpc.com/?api-key={settings.helius_api_key}"
    url = PUBLIC_CLUSTERS.get(network)
    if url is None:
        raise ConfigurationError(f"SOLANA_NETWORK must be mainnet or devnet, got {settings.solana_network!r}")
    return url


def require(settings: Settings, field: str) -> str:
    value = getattr(settings, field)
    if value in (None, ""):
        raise ConfigurationError(f"Environment variable {field.upper()} is required")
    return value


def configure_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    return logging.getLogger("core_transfer")
