"""
Transfer a Metaplex Core asset from the configured wallet to a destination wallet.

Env (or .env):
  SOLANA_NETWORK           mainnet | devnet (default mainnet)
  HELIUS_API_KEY           optional, uses the Helius RPC endpoint
  WALLET_PRIVATE_KEY       JSON array of the 64 secret key bytes (or WALLET_KEYPAIR_PATH)
  NFT_ASSET_ADDRESS        address of the asset account (not a mint)
  NFT_COLLECTION_ADDRESS   optional collection address
  DESTINATION_WALLET       receiver's public key

Usage: python scripts/transfer_core_asset.py [asset] [destination]
"""
import logging
import sys

from core_transfer.errors import CoreTransferError
from core_transfer.keys import keypair_from_settings
from core_transfer.settings import configure_logging, load_settings, require
from core_transfer.submitter import KeypairSigner
from core_transfer.transfer import build_context, transfer_asset

logger = logging.getLogger("core_transfer.scripts.transfer")


def explorer_cluster_suffix(network: str) -> str:
    if network.lower() in ("mainnet", "mainnet-beta"):
        return ""
    return f"?cluster={network}"


def main(argv) -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    try:
        asset = argv[1] if len(argv) > 1 else require(settings, "nft_asset_address")
        destination = argv[2] if len(argv) > 2 else require(settings, "destination_wallet")
        signer = KeypairSigner(keypair_from_settings(settings))
        ctx = build_context(settings, signer)
        result = transfer_asset(ctx, asset, destination, settings.nft_collection_address)
    except (CoreTransferError, FileNotFoundError) as exc:
        logger.error("transfer_aborted error=%s", exc)
        for line in getattr(exc, "logs", []):
            logger.error("  %s", line)
        return 1
    print(f"{result.status}: {result.message}")
    if result.signature:
        print(f"Signature: {result.signature}")
        cluster = explorer_cluster_suffix(settings.solana_network)
        print(f"Explorer: https://explorer.solana.com/tx/{result.signature}{cluster}")
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv))
