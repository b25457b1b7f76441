from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from solana.rpc.api import Client as SolanaClient
from solders.pubkey import Pubkey

from .asset import AccountReader, RpcAccountReader, fetch_asset, verify_owner
from .errors import (
    AmbiguousOutcome,
    ConfigurationError,
    CoreTransferError,
    PermanentSubmissionError,
    VerificationError,
)
from .orchestrator import SubmissionAttempt, submit_with_report
from .settings import Settings, resolve_rpc_url
from .submitter import RpcSubmitter, SendOptions, SignerContext, TransactionSubmitter
from .tx_builder import build_transfer_v1_ix, select_transfer_encoder, validate_pubkey

logger = logging.getLogger(__name__)

TRANSFERRED = "transferred"
ALREADY_OWNED = "already_owned"
FAILED = "failed"
AMBIGUOUS = "ambiguous"


@dataclass
class TransferContext:
    settings: Settings
    reader: AccountReader
    submitter: TransactionSubmitter
    signer: SignerContext
    encoder: object
    sleep: Callable[[float], None] = time.sleep

    @property
    def send_options(self) -> SendOptions:
        return SendOptions(skip_preflight=self.settings.skip_preflight, commitment=self.settings.commitment)


@dataclass
class TransferResult:
    status: str
    asset: Pubkey
    destination: Pubkey
    signature: Optional[str] = None
    attempts: List[SubmissionAttempt] = field(default_factory=list)
    error: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (TRANSFERRED, ALREADY_OWNED)

    def raise_for_status(self) -> None:
        if self.status == AMBIGUOUS:
            raise AmbiguousOutcome(self.message, signature=self.signature, reason=self.error)
        if self.status == FAILED:
            raise PermanentSubmissionError(self.error or self.message, attempts=len(self.attempts), history=self.attempts)


def build_context(settings: Settings, signer: SignerContext, client: Optional[SolanaClient] = None) -> TransferContext:
    """Wire the RPC-backed collaborators once, from settings."""
    client = client or SolanaClient(resolve_rpc_url(settings), commitment=settings.commitment)
    return TransferContext(
        settings=settings,
        reader=RpcAccountReader(client, settings.commitment),
        submitter=RpcSubmitter(client, confirm_timeout=settings.confirm_timeout),
        signer=signer,
        encoder=select_transfer_encoder(settings.transfer_encoder),
    )


def check_balance(ctx: TransferContext) -> None:
    get_balance = getattr(ctx.reader, "get_balance", None)
    if get_balance is None or ctx.settings.min_balance_lamports <= 0:
        return
    lamports = get_balance(ctx.signer.pubkey)
    logger.info("wallet_balance wallet=%s sol=%s", ctx.signer.pubkey, lamports / 1_000_000_000)
    if lamports < ctx.settings.min_balance_lamports:
        raise ConfigurationError(
            f"Low wallet balance: {lamports / 1_000_000_000} SOL. "
            f"Need at least {ctx.settings.min_balance_lamports / 1_000_000_000} SOL."
        )


def confirm_ownership(ctx: TransferContext, asset: Pubkey, destination: Pubkey, checks: int = 2) -> Optional[bool]:
    """Re-read the asset owner up to ``checks`` times. None when every read failed."""
    seen = None
    for check in range(checks):
        ctx.sleep(ctx.settings.settle_seconds)
        try:
            if verify_owner(ctx.reader, asset, destination):
                return True
            seen = False
        except CoreTransferError as exc:
            logger.warning("ownership_check_failed check=%s asset=%s error=%s", check + 1, asset, exc)
    return seen


def transfer_asset(ctx: TransferContext, asset, destination, collection=None) -> TransferResult:
    asset_pk = validate_pubkey(asset, "asset")
    destination_pk = validate_pubkey(destination, "destination")
    logger.info(
        "transfer_start asset=%s wallet=%s destination=%s collection=%s",
        asset_pk,
        ctx.signer.pubkey,
        destination_pk,
        collection,
    )

    state = fetch_asset(ctx.reader, asset_pk)
    logger.info("asset_fetched asset=%s name=%s owner=%s", asset_pk, state.name, state.owner)
    if state.owner == destination_pk:
        logger.info("transfer_skip already_owned asset=%s destination=%s", asset_pk, destination_pk)
        return TransferResult(ALREADY_OWNED, asset_pk, destination_pk, message="No transfer needed - already owned by destination wallet")
    if state.owner != ctx.signer.pubkey:
        raise VerificationError(f"You are not the owner of this asset. Current owner is: {state.owner}")

    check_balance(ctx)

    if collection is None and state.collection is not None:
        logger.info("collection_from_asset collection=%s", state.collection)
        collection = state.collection
    if collection is None:
        logger.warning("transfer_no_collection asset=%s plugin checks on the collection will be skipped", asset_pk)

    ix = build_transfer_v1_ix(asset_pk, ctx.signer.pubkey, destination_pk, collection, encoder=ctx.encoder)
    logger.debug("transfer_instruction program=%s accounts=%s data=%s", ix.program_id, [str(m.pubkey) for m in ix.accounts], bytes(ix.data).hex())

    signature = None
    attempts: List[SubmissionAttempt] = []
    error = None
    try:
        report = submit_with_report(
            ix,
            ctx.signer,
            ctx.settings.max_attempts,
            submitter=ctx.submitter,
            options=ctx.send_options,
            base_delay=ctx.settings.retry_base_delay,
            backoff_multiplier=ctx.settings.retry_backoff,
            max_delay=ctx.settings.retry_max_delay,
            sleep=ctx.sleep,
        )
        signature = report.signature
        attempts = report.attempts
    except PermanentSubmissionError as exc:
        error = str(exc)
        attempts = exc.history
        logger.warning("transfer_submit_exhausted asset=%s error=%s; checking on-chain state", asset_pk, exc)

    owned = confirm_ownership(ctx, asset_pk, destination_pk)
    if owned:
        if signature is None:
            logger.info("transfer_confirmed_despite_client_error asset=%s", asset_pk)
        else:
            logger.info("transfer_confirmed asset=%s signature=%s", asset_pk, signature)
        return TransferResult(TRANSFERRED, asset_pk, destination_pk, signature, attempts, error, "Asset is now owned by the destination wallet")
    if owned is False and signature is None:
        logger.error("transfer_failed asset=%s ownership unchanged", asset_pk)
        return TransferResult(FAILED, asset_pk, destination_pk, None, attempts, error, "Transfer did not happen")
    logger.warning("transfer_ambiguous asset=%s signature=%s", asset_pk, signature)
    return TransferResult(
        AMBIGUOUS,
        asset_pk,
        destination_pk,
        signature,
        attempts,
        error,
        "Transfer may have failed or is still pending. Check a block explorer to confirm.",
    )
