"""
Model Fallback Chain
====================

Tries an ordered list of model candidates, one at a time, each raced against its
own timeout. Retryable failures (timeout, overload, content too long) move on
to the next candidate; anything else stops the chain. The first successful
candidate wins and later candidates are never consulted.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from completion_gateway import (
    CompletionGateway,
    ErrorClass,
    ProviderCallError,
    RETRYABLE_CLASSES,
    classify_error,
    get_gateway,
)
from models import CompletionResult, GenerationRequest, ModelCandidate
from response_decoders import decode_text


logger = logging.getLogger(__name__)

T = TypeVar("T")

TOO_LARGE_MESSAGE = (
    "The request took too long to process. The attached content is likely too large; "
    "please retry with a narrower scope (a shorter excerpt, fewer attachments or a shorter clip)."
)
BUSY_MESSAGE = "All available models are busy right now. Please try again in a moment."
TERMINAL_MESSAGE = (
    "The AI provider could not complete this request. "
    "Please check your input and attachments, then try again."
)

_MAX_REASON_CHARS = 200


class GenerationError(RuntimeError):
    """Terminal generation failure carrying a message safe to show the user."""

    def __init__(self, message: str, user_message: str):
        super().__init__(message)
        self.user_message = user_message


@dataclass
class AttemptRecord:
    model_id: str
    error_class: ErrorClass
    detail: str


class TerminalProviderError(GenerationError):
    """A non-retryable failure stopped the chain."""

    def __init__(self, model_id: str, error_class: ErrorClass, cause: BaseException, user_message: str):
        super().__init__(f"Terminal failure on {model_id}: {cause}", user_message)
        self.model_id = model_id
        self.error_class = error_class
        self.cause = cause


class AllCandidatesExhausted(GenerationError):
    """Every candidate failed with a retryable error."""

    def __init__(self, attempts: List[AttemptRecord], user_message: str):
        summary = ", ".join(f"{a.model_id}={a.error_class.value}" for a in attempts)
        super().__init__(f"All model candidates failed: {summary}", user_message)
        self.attempts = attempts


def _short_reason(cause: BaseException) -> str:
    reason = " ".join(str(cause).split()) or type(cause).__name__
    if len(reason) > _MAX_REASON_CHARS:
        reason = reason[:_MAX_REASON_CHARS].rstrip() + "..."
    return reason


def _exhausted_message(last_class: ErrorClass) -> str:
    if last_class in (ErrorClass.TIMEOUT, ErrorClass.CONTENT_TOO_LONG):
        return TOO_LARGE_MESSAGE
    return BUSY_MESSAGE


def _discard_orphan(task: "asyncio.Future[Any]") -> None:
    # Abandoned attempts may still finish; consume their outcome so it is not reported as unhandled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned provider call finished with error: %s", exc)


async def run_candidates(
    contents: List[Dict[str, Any]],
    provider_config: Dict[str, Any],
    candidates: Sequence[ModelCandidate],
    decoder: Callable[[Dict[str, Any]], T],
    *,
    gateway: Optional[CompletionGateway] = None,
    action: str = "generation",
) -> Tuple[T, ModelCandidate]:
    """
    Run one request down the candidate list and decode the first success.

    Returns (decoded completion, serving candidate). Raises TerminalProviderError
    or AllCandidatesExhausted.
    """
    if not candidates:
        raise ValueError("At least one model candidate is required")

    gateway = gateway or get_gateway()
    attempts: List[AttemptRecord] = []
    total = len(candidates)

    for index, candidate in enumerate(candidates, start=1):
        task = asyncio.ensure_future(
            gateway.send(candidate.identifier, contents, provider_config, action=action)
        )
        try:
            raw = await asyncio.wait_for(asyncio.shield(task), timeout=candidate.timeout_seconds)
            decoded = decoder(raw)
        except asyncio.TimeoutError as exc:
            # The in-flight call is abandoned, not cancelled
            task.add_done_callback(_discard_orphan)
            error_class, cause = ErrorClass.TIMEOUT, exc
            cause_text = f"no response within {candidate.timeout_ms} ms"
        except ProviderCallError as exc:
            error_class, cause = exc.error_class, exc.cause
            cause_text = _short_reason(exc.cause)
        except Exception as exc:
            # Decoder failures: the payload arrived but is unusable
            error_class, cause = classify_error(exc), exc
            cause_text = _short_reason(exc)
        else:
            logger.info("AI %s served by %s (attempt %d/%d)", action, candidate.identifier, index, total)
            return decoded, candidate

        attempts.append(AttemptRecord(candidate.identifier, error_class, cause_text))

        if error_class not in RETRYABLE_CLASSES:
            logger.error("AI %s failed terminally on %s: %s", action, candidate.identifier, cause_text)
            raise TerminalProviderError(
                candidate.identifier,
                error_class,
                cause,
                TERMINAL_MESSAGE,
            ) from cause

        logger.warning(
            "AI %s failed on %s (%s) on attempt %d/%d: %s",
            action,
            candidate.identifier,
            error_class.value,
            index,
            total,
            cause_text,
        )

    last_class = attempts[-1].error_class
    raise AllCandidatesExhausted(attempts, _exhausted_message(last_class))


async def run_with_fallback(
    request: GenerationRequest,
    candidates: Sequence[ModelCandidate],
    *,
    gateway: Optional[CompletionGateway] = None,
) -> CompletionResult:
    """Run a text/tool generation request down the candidate chain."""
    completion, candidate = await run_candidates(
        request.build_contents(),
        request.build_config(),
        candidates,
        decode_text,
        gateway=gateway,
        action="generation",
    )
    return completion.to_result(model=candidate.identifier)
