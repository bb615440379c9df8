"""Error taxonomy for the writing workflow.

Every failure is recovered at the controller boundary and turned into a single
user-facing message stored in ``WorkflowState.last_error``. Classification:

  quota / rate limit   → QUOTA_MESSAGE, the user should simply try again later
  malformed response   → MalformedResponseError, surfaced with the step number
  anything else        → "步驟 {step} 失敗: {message}"
"""

from __future__ import annotations

QUOTA_MESSAGE = "請求過於頻繁，已超出您的目前配額。請稍候片刻再試一次。"
MALFORMED_PANEL_MESSAGE = "AI 回傳了無效的角色格式，請重試。"
UNKNOWN_ERROR_MESSAGE = "發生未知錯誤。"

# Message substrings for errors that carry no status attribute.
RATE_LIMIT_PATTERNS: tuple[str, ...] = ("429", "RESOURCE_EXHAUSTED")


class WorkflowError(Exception):
    """Base class for errors raised by the workflow engine."""


class MalformedResponseError(WorkflowError):
    """Structured generation returned data that does not match the schema."""

    def __init__(self, message: str = MALFORMED_PANEL_MESSAGE) -> None:
        super().__init__(message)


class InvalidInputError(WorkflowError):
    """User-supplied data rejected before any state change."""


class StepLockedError(WorkflowError):
    """Navigation to a step that is ahead of the current one and not completed."""


class StreamStateError(WorkflowError):
    """Illegal StreamAggregator transition (e.g. consume before begin)."""


def is_rate_limit_error(exc: BaseException) -> bool:
    # openai.RateLimitError / anthropic.RateLimitError expose status_code
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if value == 429 or value == "429" or value == "RESOURCE_EXHAUSTED":
            return True
    message = str(exc)
    return any(pattern in message for pattern in RATE_LIMIT_PATTERNS)


def describe_failure(step: int, exc: BaseException) -> str:
    """Map an exception raised while running ``step`` to the message shown to the user."""
    if is_rate_limit_error(exc):
        return QUOTA_MESSAGE
    message = str(exc).strip()
    if not message:
        return UNKNOWN_ERROR_MESSAGE
    return f"步驟 {step} 失敗: {message}"
