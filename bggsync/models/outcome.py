"""Per-attempt fetch outcome models."""

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(Enum):
    """Classification of a single HTTP attempt against the upstream service."""
    SUCCESS = "success"
    PENDING = "pending"  # 202: export still being generated
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"  # timeout, connection reset, DNS failure
    CLIENT_ERROR = "client_error"
    MALFORMED = "malformed"


RETRYABLE_KINDS = frozenset({
    OutcomeKind.PENDING,
    OutcomeKind.RATE_LIMITED,
    OutcomeKind.SERVER_ERROR,
    OutcomeKind.TRANSPORT_ERROR,
})


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one HTTP attempt. Never persisted."""
    kind: OutcomeKind
    status_code: int | None = None
    body: bytes | None = None

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def is_fatal(self) -> bool:
        return not self.is_success and not self.is_retryable


@dataclass
class RetryState:
    """Mutable bookkeeping owned by a single retry loop run."""
    attempt: int = 0
    last_status_code: int | None = None
