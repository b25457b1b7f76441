"""
Move a Metaplex Core asset out of a Snowflake Safe by way of a transfer proposal.

Env (or .env), in addition to the transfer variables:
  SAFE_ADDRESS             the Safe account
  SAFE_PROGRAM_ID          program that owns the Safe (derives the SafeSigner PDA)
  SAFE_CLIENT_FACTORY      "package.module:factory"; factory(settings, keypair) -> SafeClient
  NFT_COLLECTION_ADDRESS   required for Safe transfers
  EXISTING_PROPOSAL        optional, reuse a proposal instead of creating one

Usage: python scripts/safe_retrieve_asset.py
"""
import importlib
import logging
import sys

from core_transfer.errors import ConfigurationError, CoreTransferError
from core_transfer.keys import keypair_from_settings
from core_transfer.safe import AWAITING_APPROVALS, retrieve_from_safe
from core_transfer.settings import configure_logging, load_settings, require
from core_transfer.submitter import KeypairSigner
from core_transfer.transfer import ALREADY_OWNED, TRANSFERRED, build_context

logger = logging.getLogger("core_transfer.scripts.safe")


def load_safe_client(settings, keypair):
    path = require(settings, "safe_client_factory")
    module_name, _, attr = path.partition(":")
    if not attr:
        raise ConfigurationError(f"SAFE_CLIENT_FACTORY must look like module:attr, got {path!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory(settings, keypair)


def main() -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    try:
        keypair = keypair_from_settings(settings)
        ctx = build_context(settings, KeypairSigner(keypair))
        result = retrieve_from_safe(
            ctx,
            load_safe_client(settings, keypair),
            require(settings, "safe_address"),
            require(settings, "nft_asset_address"),
            require(settings, "destination_wallet"),
            require(settings, "nft_collection_address"),
            existing_proposal=settings.existing_proposal,
        )
    except (CoreTransferError, FileNotFoundError) as exc:
        logger.error("safe_retrieval_aborted error=%s", exc)
        for line in getattr(exc, "logs", []):
            logger.error("  %s", line)
        return 1

    if result.status == AWAITING_APPROVALS:
        print(f"Proposal {result.proposal} has {result.approvals}/{result.approvals_required} approvals.")
        print(f"Share it with the other owners, then rerun with EXISTING_PROPOSAL={result.proposal}")
        return 0
    print(f"{result.status}: proposal={result.proposal} signature={result.signature}")
    return 0 if result.status in (TRANSFERRED, ALREADY_OWNED) else 1


if __name__ == "__main__":
    sys.exit(main())
