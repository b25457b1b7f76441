from typing import List, Optional, Sequence


class CoreTransferError(Exception):
    """Base class for every error surfaced by core_transfer."""


class InvalidKeyError(CoreTransferError):
    pass


class ConfigurationError(CoreTransferError):
    pass


class VerificationError(CoreTransferError):
    pass


class SubmissionError(CoreTransferError):
    def __init__(self, message: str, logs: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.logs: List[str] = list(logs or [])


class TransientSubmissionError(SubmissionError):
    """RPC/network failure, simulation rejection or confirmation timeout. Retried."""


class PermanentSubmissionError(SubmissionError):
    """Raised once the attempt budget is exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
        logs: Optional[Sequence[str]] = None,
        history: Optional[Sequence] = None,
    ):
        super().__init__(message, logs)
        self.attempts = attempts
        self.last_error = last_error
        self.history = list(history or [])


class AmbiguousOutcome(CoreTransferError):
    """Client saw a result that on-chain state does not (yet) back up."""

    def __init__(self, message: str, signature: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.signature = signature
        self.reason = reason
