"""Shared fakes for the core_transfer test-suite: an in-memory chain, submitter and Safe client."""
from __future__ import annotations

from typing import Dict, List, Optional

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from core_transfer.asset import AccountSnapshot
from core_transfer.errors import TransientSubmissionError
from core_transfer.safe import ProposalInfo, SafeInfo
from core_transfer.settings import Settings
from core_transfer.submitter import ConfirmationStatus, KeypairSigner
from core_transfer.transfer import TransferContext
from core_transfer.tx_builder import MPL_CORE_PROGRAM_ID, select_transfer_encoder

UA_TAGS = {"none": 0, "address": 1, "collection": 2}


def asset_data(owner: Pubkey, ua_kind: str = "none", update_authority: Optional[Pubkey] = None,
               name: str = "Card #1", uri: str = "https://example.com/1.json", trailing: bytes = b"") -> bytes:
    out = bytes([1]) + bytes(owner) + bytes([UA_TAGS[ua_kind]])
    if ua_kind != "none":
        out += bytes(update_authority)
    for text in (name, uri):
        raw = text.encode()
        out += len(raw).to_bytes(4, "little") + raw
    return out + trailing


class FakeReader:
    def __init__(self, balance: int = 1_000_000_000):
        self.accounts: Dict[Pubkey, AccountSnapshot] = {}
        self.balance = balance
        self.reads = 0

    def put_asset(self, asset: Pubkey, owner: Pubkey, ua_kind: str = "none", update_authority=None,
                  program: Pubkey = MPL_CORE_PROGRAM_ID) -> None:
        self.accounts[asset] = AccountSnapshot(program, asset_data(owner, ua_kind, update_authority))

    def set_owner(self, asset: Pubkey, owner: Pubkey) -> None:
        self.put_asset(asset, owner)

    def get_account(self, pubkey: Pubkey) -> Optional[AccountSnapshot]:
        self.reads += 1
        return self.accounts.get(pubkey)

    def get_balance(self, pubkey: Pubkey) -> int:
        return self.balance


class FakeSubmitter:
    """Plays back a script of outcomes, one per attempt.

    Callables are invoked at send time and their result used. "ok" confirms, an
    exception is raised from send, a ConfirmationStatus is returned from confirm.
    ``on_success`` runs after a confirmed attempt (e.g. to move ownership on the fake chain).
    """

    def __init__(self, outcomes: List, on_success=None):
        self.outcomes = list(outcomes)
        self.on_success = on_success
        self.sent = []
        self._current = None

    def send(self, instruction, signer, options) -> str:
        self._current = self.outcomes.pop(0) if self.outcomes else "ok"
        if callable(self._current):
            self._current = self._current()
        self.sent.append(instruction)
        if isinstance(self._current, BaseException):
            raise self._current
        return f"sig{len(self.sent)}"

    def confirm(self, signature, commitment) -> ConfirmationStatus:
        if isinstance(self._current, ConfirmationStatus):
            return self._current
        if self.on_success is not None:
            self.on_success()
        return ConfirmationStatus("confirmed")


class FakeSafeClient:
    def __init__(self, approvals_required: int = 1, approvals: Optional[List[bool]] = None,
                 execute_outcomes: Optional[List] = None, on_execute=None):
        self.approvals_required = approvals_required
        self.approvals = approvals if approvals is not None else [True]
        self.execute_outcomes = list(execute_outcomes or [])
        self.on_execute = on_execute
        self.created = []
        self.executed = []
        self.proposal = Keypair().pubkey()

    def create_proposal(self, safe, name, instructions):
        self.created.append((safe, name, list(instructions)))
        return self.proposal, "create-sig"

    def fetch_safe(self, safe) -> SafeInfo:
        return SafeInfo(owners=[Keypair().pubkey()], approvals_required=self.approvals_required)

    def fetch_proposal(self, proposal) -> ProposalInfo:
        return ProposalInfo(approvals=self.approvals)

    def execute_proposal(self, proposal, options) -> str:
        self.executed.append(proposal)
        outcome = self.execute_outcomes.pop(0) if self.execute_outcomes else "ok"
        if isinstance(outcome, BaseException):
            raise outcome
        if self.on_execute is not None:
            self.on_execute()
        return f"exec{len(self.executed)}"


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def transient(message: str = "rpc timeout", logs=None) -> TransientSubmissionError:
    return TransientSubmissionError(message, logs=logs)


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, settle_seconds=0.0, retry_base_delay=1.0, max_attempts=3,
                    safe_program_id=str(Keypair().pubkey()))


@pytest.fixture()
def wallet() -> Keypair:
    return Keypair()


@pytest.fixture()
def reader() -> FakeReader:
    return FakeReader()


@pytest.fixture()
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def make_ctx(settings, reader, wallet, sleeper):
    def _make(submitter) -> TransferContext:
        return TransferContext(
            settings=settings,
            reader=reader,
            submitter=submitter,
            signer=KeypairSigner(wallet),
            encoder=select_transfer_encoder(settings.transfer_encoder),
            sleep=sleeper,
        )

    return _make
