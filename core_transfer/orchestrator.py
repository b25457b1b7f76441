"""
Submission with confirmation and geometric backoff.

One attempt = send + confirm. Transient failures are retried until the attempt
budget runs out; anything else propagates untouched. Whether the transfer
actually happened is decided by the caller's ownership read, not here.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from solders.instruction import Instruction

from .errors import PermanentSubmissionError, TransientSubmissionError
from .submitter import SendOptions, SignerContext, TransactionSubmitter

logger = logging.getLogger(__name__)

PENDING = "pending"
SENT = "sent"
CONFIRMED = "confirmed"
FAILED = "failed"
RETRY = "retry"
ABORTED = "aborted"


@dataclass(frozen=True)
class SubmissionAttempt:
    attempt: int
    outcome: str  # "success" | "failure"
    timestamp: float
    signature: Optional[str] = None
    reason: Optional[str] = None
    logs: List[str] = field(default_factory=list)


@dataclass
class SubmissionReport:
    signature: str
    attempts: List[SubmissionAttempt]


def backoff_delay(attempt: int, base_delay: float = 5.0, multiplier: float = 1.5, max_delay: float = 60.0) -> float:
    """Delay after failed attempt ``attempt`` (1-indexed): base * multiplier^(attempt-1).

    Strictly increasing until it reaches ``max_delay``; every later delay equals the cap.
    """
    return min(base_delay * (multiplier ** (attempt - 1)), max_delay)


def submit_with_report(
    instruction: Instruction,
    signer: SignerContext,
    max_attempts: int,
    confirm_check: Optional[Callable[[str], bool]] = None,
    *,
    submitter: TransactionSubmitter,
    options: SendOptions = SendOptions(),
    base_delay: float = 5.0,
    backoff_multiplier: float = 1.5,
    max_delay: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
) -> SubmissionReport:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    history: List[SubmissionAttempt] = []
    last_error: Optional[TransientSubmissionError] = None

    for attempt in range(1, max_attempts + 1):
        state = PENDING
        signature = None
        try:
            signature = submitter.send(instruction, signer, options)
            state = SENT
            status = submitter.confirm(signature, options.commitment)
            if not status.ok:
                raise TransientSubmissionError(
                    f"transaction {signature} {status.state}: {status.error or 'no detail'}", logs=status.logs
                )
            if confirm_check is not None and not confirm_check(signature):
                raise TransientSubmissionError(f"transaction {signature} failed confirmation check")
            state = CONFIRMED
        except TransientSubmissionError as exc:
            last_error = exc
            state = FAILED
            history.append(
                SubmissionAttempt(attempt, "failure", time.time(), signature=signature, reason=str(exc), logs=exc.logs)
            )
            logger.warning("submit_attempt_failed attempt=%s/%s signature=%s error=%s", attempt, max_attempts, signature, exc)
            for line in exc.logs:
                logger.warning("  program_log %s", line)

        if state == CONFIRMED:
            history.append(SubmissionAttempt(attempt, "success", time.time(), signature=signature))
            logger.info("submit_confirmed attempt=%s/%s signature=%s", attempt, max_attempts, signature)
            return SubmissionReport(signature=signature, attempts=history)

        if attempt < max_attempts:
            state = RETRY
            delay = backoff_delay(attempt, base_delay, backoff_multiplier, max_delay)
            logger.info("submit_retry_wait attempt=%s delay=%.2fs", attempt, delay)
            sleep(delay)

    state = ABORTED
    logger.error("submit_%s attempts=%s last_error=%s", state, max_attempts, last_error)
    raise PermanentSubmissionError(
        f"All {max_attempts} attempts exhausted. Last error: {last_error}",
        attempts=max_attempts,
        last_error=last_error,
        logs=last_error.logs if last_error else None,
        history=history,
    ) from last_error


def submit(
    instruction: Instruction,
    signer: SignerContext,
    max_attempts: int,
    confirm_check: Optional[Callable[[str], bool]] = None,
    **kwargs,
) -> str:
    return submit_with_report(instruction, signer, max_attempts, confirm_check, **kwargs).signature
