from .errors import (
    AmbiguousOutcome,
    ConfigurationError,
    CoreTransferError,
    InvalidKeyError,
    PermanentSubmissionError,
    SubmissionError,
    TransientSubmissionError,
    VerificationError,
)
from .orchestrator import SubmissionAttempt, submit, submit_with_report
from .transfer import TransferContext, TransferResult, build_context, transfer_asset
from .tx_builder import build_transfer_v1_ix

__version__ = "0.1.0"
