"""Error taxonomy for the roundtable engine.

Every engine error carries an ErrorKind so retry and fallback logic can branch
on kind instead of inspecting types or message strings.
"""

from enum import Enum


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"
    STRATEGY_FAILURE = "strategy_failure"
    INVALID_TRANSITION = "invalid_transition"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT)


class RoundtableError(Exception):
    """Base class for all roundtable errors."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        self.provider = provider
        prefix = f"[{provider}] " if provider else ""
        super().__init__(f"{prefix}{message}")

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class RateLimitError(RoundtableError):
    """Provider (or the local token bucket) refused the call for now."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: str | None = None,
        retry_after_sec: float | None = None,
    ) -> None:
        self.retry_after_sec = retry_after_sec
        super().__init__(message, provider=provider)


class TransientWorkerError(RoundtableError):
    """Network blip, timeout or provider overload. Worth another attempt."""

    kind = ErrorKind.TRANSIENT


class FatalWorkerError(RoundtableError):
    """Authentication or malformed request. Retrying will not help."""

    kind = ErrorKind.FATAL


class ConsensusStrategyError(RoundtableError):
    """A consensus strategy could not produce a result; callers fall back."""

    kind = ErrorKind.STRATEGY_FAILURE


class InvalidStateTransition(RoundtableError):
    """A session control operation was rejected. Session state is unchanged."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, message: str, *, current: str | None = None, requested: str | None = None) -> None:
        self.current = current
        self.requested = requested
        super().__init__(message)


class ConfigurationError(RoundtableError):
    kind = ErrorKind.FATAL


class RetriesExhaustedError(RoundtableError):
    """Raised by the retry executor once the attempt budget is spent.

    Keeps the kind of the last underlying error so callers can still tell a
    rate-limit exhaustion from a transient one.
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        self.kind = getattr(last_error, "kind", ErrorKind.FATAL)
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}",
            provider=getattr(last_error, "provider", None),
        )


class RoundFailedError(RoundtableError):
    """A participant failed for good, so the whole round is abandoned."""

    def __init__(self, round_number: int, agent_id: str, cause: BaseException) -> None:
        self.round_number = round_number
        self.agent_id = agent_id
        self.cause = cause
        self.kind = getattr(cause, "kind", ErrorKind.FATAL)
        super().__init__(f"Round {round_number} failed: agent {agent_id}: {cause}")
