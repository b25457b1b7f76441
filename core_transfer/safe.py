"""
Retrieve a Metaplex Core asset held by a Snowflake Safe multisig.

The transfer instruction is built here with the Safe signer PDA as owner,
update authority and payer. Creating, approving and executing the proposal is
delegated to a SafeClient; this module never encodes Safe program instructions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .asset import fetch_asset
from .errors import InvalidKeyError, PermanentSubmissionError, TransientSubmissionError, VerificationError
from .orchestrator import SubmissionAttempt, submit_with_report
from .settings import require
from .submitter import ConfirmationStatus, SendOptions, SignerContext, extract_logs
from .transfer import AMBIGUOUS, ALREADY_OWNED, FAILED, TRANSFERRED, TransferContext, confirm_ownership
from .tx_builder import build_transfer_v1_ix, to_pubkey, validate_pubkey

logger = logging.getLogger(__name__)

SAFE_SIGNER_SEED = b"SafeSigner"
PROPOSAL_NAME = "Transfer Metaplex Core NFT"
AWAITING_APPROVALS = "awaiting_approvals"


@dataclass(frozen=True)
class SafeInfo:
    owners: List[Pubkey]
    approvals_required: int


@dataclass(frozen=True)
class ProposalInfo:
    approvals: List[bool]

    @property
    def approval_count(self) -> int:
        return sum(1 for approved in self.approvals if approved)


class SafeClient(Protocol):
    def create_proposal(self, safe: Pubkey, name: str, instructions: Sequence[Instruction]) -> Tuple[Pubkey, str]: ...

    def fetch_safe(self, safe: Pubkey) -> SafeInfo: ...

    def fetch_proposal(self, proposal: Pubkey) -> Optional[ProposalInfo]: ...

    def execute_proposal(self, proposal: Pubkey, options: SendOptions) -> str: ...


@dataclass
class SafeRetrievalResult:
    status: str
    proposal: Optional[Pubkey] = None
    signature: Optional[str] = None
    approvals: int = 0
    approvals_required: int = 0
    attempts: List[SubmissionAttempt] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def missing_approvals(self) -> int:
        return max(0, self.approvals_required - self.approvals)


class ProposalExecutionSubmitter:
    """Adapts SafeClient.execute_proposal to the submitter interface the orchestrator drives.

    The transfer instruction already lives in the proposal, so ``send`` ignores it.
    """

    def __init__(self, safe_client: SafeClient, proposal: Pubkey, confirmer=None):
        self.safe_client = safe_client
        self.proposal = proposal
        self.confirmer = confirmer

    def send(self, instruction: Instruction, signer: SignerContext, options: SendOptions) -> str:
        try:
            return self.safe_client.execute_proposal(self.proposal, options)
        except Exception as exc:  # noqa: BLE001
            raise TransientSubmissionError(f"execute proposal failed: {exc}", logs=extract_logs(exc)) from exc

    def confirm(self, signature: str, commitment: str) -> ConfirmationStatus:
        if self.confirmer is None:
            return ConfirmationStatus("confirmed")
        return self.confirmer.confirm(signature, commitment)


def find_safe_signer_address(safe, safe_program_id) -> Pubkey:
    safe_pk = to_pubkey(safe, "safe")
    program_pk = to_pubkey(safe_program_id, "safe_program_id")
    return Pubkey.find_program_address([SAFE_SIGNER_SEED, bytes(safe_pk)], program_pk)[0]


def build_safe_transfer_ix(safe_signer: Pubkey, asset, destination, collection, encoder=None) -> Instruction:
    return build_transfer_v1_ix(
        asset,
        safe_signer,
        destination,
        collection,
        require_collection=True,
        update_authority=safe_signer,
        payer=safe_signer,
        encoder=encoder,
    )


def _resolve_proposal(safe_client: SafeClient, safe: Pubkey, ix: Instruction, existing_proposal) -> Pubkey:
    if existing_proposal:
        try:
            proposal = to_pubkey(existing_proposal, "existing_proposal")
            logger.info("safe_proposal_reuse proposal=%s", proposal)
            return proposal
        except InvalidKeyError as exc:
            logger.warning("safe_proposal_invalid existing=%s error=%s; creating a new one", existing_proposal, exc)
    proposal, signature = safe_client.create_proposal(safe, PROPOSAL_NAME, [ix])
    logger.info("safe_proposal_created proposal=%s signature=%s", proposal, signature)
    return proposal


def retrieve_from_safe(
    ctx: TransferContext,
    safe_client: SafeClient,
    safe,
    asset,
    destination,
    collection,
    existing_proposal=None,
) -> SafeRetrievalResult:
    safe_pk = to_pubkey(safe, "safe")
    asset_pk = validate_pubkey(asset, "asset")
    destination_pk = validate_pubkey(destination, "destination")
    safe_signer = find_safe_signer_address(safe_pk, require(ctx.settings, "safe_program_id"))
    # builds (and validates the collection) before any network read
    ix = build_safe_transfer_ix(safe_signer, asset_pk, destination_pk, collection, ctx.encoder)
    logger.info("safe_retrieval_start safe=%s signer=%s asset=%s destination=%s", safe_pk, safe_signer, asset_pk, destination_pk)

    state = fetch_asset(ctx.reader, asset_pk)
    if state.owner == destination_pk:
        logger.info("safe_retrieval_skip already_owned asset=%s", asset_pk)
        return SafeRetrievalResult(ALREADY_OWNED)
    if state.owner != safe_signer:
        raise VerificationError(f"Asset {asset_pk} is not held by safe signer {safe_signer}; owner is {state.owner}")

    proposal = _resolve_proposal(safe_client, safe_pk, ix, existing_proposal)
    ctx.sleep(ctx.settings.settle_seconds)

    safe_info = safe_client.fetch_safe(safe_pk)
    logger.info("safe_config owners=%s threshold=%s", ",".join(str(o) for o in safe_info.owners), safe_info.approvals_required)
    try:
        proposal_info = safe_client.fetch_proposal(proposal)
    except Exception as exc:  # noqa: BLE001
        logger.warning("safe_proposal_fetch_failed proposal=%s error=%s; assuming creator approval", proposal, exc)
        proposal_info = None
    approvals = proposal_info.approval_count if proposal_info is not None else safe_info.approvals_required
    result = SafeRetrievalResult(AWAITING_APPROVALS, proposal, approvals=approvals, approvals_required=safe_info.approvals_required)
    if approvals < safe_info.approvals_required:
        logger.info("safe_proposal_pending proposal=%s missing=%s", proposal, result.missing_approvals)
        return result

    try:
        report = submit_with_report(
            ix,
            ctx.signer,
            ctx.settings.max_attempts,
            submitter=ProposalExecutionSubmitter(safe_client, proposal, confirmer=ctx.submitter),
            options=ctx.send_options,
            base_delay=ctx.settings.retry_base_delay,
            backoff_multiplier=ctx.settings.retry_backoff,
            max_delay=ctx.settings.retry_max_delay,
            sleep=ctx.sleep,
        )
        result.signature = report.signature
        result.attempts = report.attempts
    except PermanentSubmissionError as exc:
        result.error = str(exc)
        result.attempts = exc.history

    owned = confirm_ownership(ctx, asset_pk, destination_pk)
    if owned:
        result.status = TRANSFERRED
    elif owned is False and result.signature is None:
        result.status = FAILED
    else:
        result.status = AMBIGUOUS
        logger.warning("safe_retrieval_ambiguous proposal=%s; verify %s manually", proposal, destination_pk)
    logger.info("safe_retrieval_done status=%s proposal=%s signature=%s", result.status, proposal, result.signature)
    return result
