import json
from pathlib import Path
from typing import Union

import base58
from solders.keypair import Keypair

from .errors import ConfigurationError, InvalidKeyError
from .settings import Settings


def load_keypair_from_json(text: str) -> Keypair:
    """Keypair from a JSON array of the 64 secret key bytes, e.g. "[12,34,...]"."""
    try:
        secret = json.loads(text)
        return Keypair.from_bytes(bytes(secret))
    except Exception as exc:  # noqa: BLE001
        raise InvalidKeyError(f"secret key is not a JSON byte array of 64 bytes: {exc}") from exc


def load_keypair(keypair_path: Union[str, Path]) -> Keypair:
    path = Path(keypair_path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Keypair not found: {keypair_path}")
    return load_keypair_from_json(path.read_text(encoding="utf-8"))


def keypair_from_settings(settings: Settings) -> Keypair:
    if settings.wallet_private_key:
        return load_keypair_from_json(settings.wallet_private_key)
    if settings.wallet_keypair_path:
        return load_keypair(settings.wallet_keypair_path)
    raise ConfigurationError("WALLET_PRIVATE_KEY or WALLET_KEYPAIR_PATH must be set")


def keypair_to_json(keypair: Keypair) -> str:
    return json.dumps(list(bytes(keypair)))


def convert_base58_secret(private_key_b58: str) -> Keypair:
    """Wallet-export (base58) secret key to a Keypair."""
    try:
        return Keypair.from_bytes(base58.b58decode(private_key_b58.strip()))
    except Exception as exc:  # noqa: BLE001
        raise InvalidKeyError(f"not a base58 encoded 64 byte secret key: {exc}") from exc


def generate_keypair() -> Keypair:
    return Keypair()


def write_keypair(keypair: Keypair, path: Union[str, Path]) -> Path:
    target = Path(path).expanduser()
    target.write_text(keypair_to_json(keypair), encoding="utf-8")
    return target
