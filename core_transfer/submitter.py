import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from solana.rpc.api import Client as SolanaClient
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import TransientSubmissionError

logger = logging.getLogger(__name__)

COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


@dataclass(frozen=True)
class SendOptions:
    skip_preflight: bool = False
    commitment: str = "confirmed"


@dataclass(frozen=True)
class ConfirmationStatus:
    state: str  # "confirmed" | "timeout" | "rejected"
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == "confirmed"


class SignerContext(Protocol):
    @property
    def pubkey(self) -> Pubkey: ...

    def sign(self, message: MessageV0) -> VersionedTransaction: ...


class TransactionSubmitter(Protocol):
    def send(self, instruction: Instruction, signer: SignerContext, options: SendOptions) -> str: ...

    def confirm(self, signature: str, commitment: str) -> ConfirmationStatus: ...


class KeypairSigner:
    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, message: MessageV0) -> VersionedTransaction:
        return VersionedTransaction(message, [self._keypair])

    def __repr__(self) -> str:
        return f"KeypairSigner(pubkey={self.pubkey})"


def extract_logs(exc: BaseException) -> List[str]:
    """Pull program log lines out of an RPC preflight failure, if it carries any."""
    logs = getattr(exc, "logs", None)
    if logs:
        return list(logs)
    for arg in getattr(exc, "args", ()):
        data = getattr(arg, "data", None)
        logs = getattr(data, "logs", None)
        if logs:
            return list(logs)
    return []


def _status_label(confirmation_status) -> str:
    return str(confirmation_status).rsplit(".", 1)[-1].lower()


class RpcSubmitter:
    def __init__(
        self,
        client: SolanaClient,
        confirm_timeout: float = 30.0,
        poll_interval: float = 0.8,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def send(self, instruction: Instruction, signer: SignerContext, options: SendOptions) -> str:
        try:
            blockhash = self.client.get_latest_blockhash(commitment=options.commitment).value.blockhash
            message = MessageV0.try_compile(signer.pubkey, [instruction], [], blockhash)
            tx = signer.sign(message)
            resp = self.client.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_preflight=options.skip_preflight, preflight_commitment=options.commitment),
            )
        except Exception as exc:  # noqa: BLE001
            raise TransientSubmissionError(f"send failed: {exc}", logs=extract_logs(exc)) from exc
        signature = str(resp.value)
        logger.info("transaction_sent signature=%s skip_preflight=%s", signature, options.skip_preflight)
        return signature

    def confirm(self, signature: str, commitment: str = "confirmed") -> ConfirmationStatus:
        wanted = COMMITMENT_RANK.get(commitment, 1)
        sig = Signature.from_string(signature)
        start = self._clock()
        while self._clock() - start < self.confirm_timeout:
            try:
                resp = self.client.get_signature_statuses([sig])
            except Exception as exc:  # noqa: BLE001
                logger.warning("signature_status_failed signature=%s error=%s", signature, exc, exc_info=True)
                resp = None
            if resp is not None and resp.value and resp.value[0]:
                status = resp.value[0]
                if status.err is not None:
                    return ConfirmationStatus("rejected", self.fetch_logs(sig), error=str(status.err))
                if status.confirmation_status is not None:
                    if COMMITMENT_RANK.get(_status_label(status.confirmation_status), -1) >= wanted:
                        return ConfirmationStatus("confirmed")
            self._sleep(self.poll_interval)
        return ConfirmationStatus("timeout", error=f"not {commitment} after {self.confirm_timeout}s")

    def fetch_logs(self, sig: Signature) -> List[str]:
        try:
            resp = self.client.get_transaction(sig, max_supported_transaction_version=0)
        except Exception as exc:  # noqa: BLE001
            logger.warning("transaction_logs_unavailable signature=%s error=%s", sig, exc)
            return []
        meta = resp.value.transaction.meta if resp.value is not None else None
        if meta is None or meta.log_messages is None:
            return []
        return list(meta.log_messages)
