# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Failure taxonomy for the issuance pipeline.

Every stage returns a Result instead of raising. The policy table decides,
per ErrorKind, whether the owning queue message is redelivered and whether
an .err artifact is written next to the request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from botocore.exceptions import ClientError

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Every way a queued request can fail."""

    MALFORMED_ENVELOPE = "malformed_envelope"
    UNMATCHED_EVENT = "unmatched_event"
    MALFORMED_KEY = "malformed_key"
    CA_UNAVAILABLE = "ca_unavailable"
    VALIDATION = "validation"
    ISSUANCE_TERMINAL = "issuance_terminal"
    ISSUANCE_TRANSIENT = "issuance_transient"
    ISSUANCE_TIMEOUT = "issuance_timeout"
    VERIFICATION_FAILED = "verification_failed"
    WRITE_TRANSIENT = "write_transient"
    WRITE_PERMANENT = "write_permanent"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FailurePolicy:
    """How a failure kind is handled."""

    retryable: bool
    writes_artifact: bool


POLICIES: dict[ErrorKind, FailurePolicy] = {
    ErrorKind.MALFORMED_ENVELOPE: FailurePolicy(retryable=False, writes_artifact=False),
    ErrorKind.UNMATCHED_EVENT: FailurePolicy(retryable=False, writes_artifact=False),
    ErrorKind.MALFORMED_KEY: FailurePolicy(retryable=False, writes_artifact=False),
    ErrorKind.CA_UNAVAILABLE: FailurePolicy(retryable=True, writes_artifact=False),
    ErrorKind.VALIDATION: FailurePolicy(retryable=False, writes_artifact=True),
    ErrorKind.ISSUANCE_TERMINAL: FailurePolicy(retryable=False, writes_artifact=True),
    ErrorKind.ISSUANCE_TRANSIENT: FailurePolicy(retryable=True, writes_artifact=True),
    ErrorKind.ISSUANCE_TIMEOUT: FailurePolicy(retryable=True, writes_artifact=True),
    # Redelivery resubmits the same CSR with the same idempotency token
    ErrorKind.VERIFICATION_FAILED: FailurePolicy(retryable=False, writes_artifact=True),
    # The success artifact is lost either way; nothing else gets written
    ErrorKind.WRITE_TRANSIENT: FailurePolicy(retryable=True, writes_artifact=False),
    ErrorKind.WRITE_PERMANENT: FailurePolicy(retryable=False, writes_artifact=False),
    ErrorKind.UNEXPECTED: FailurePolicy(retryable=True, writes_artifact=True),
}

_uncategorized = set(ErrorKind) - set(POLICIES)
if _uncategorized:
    raise RuntimeError(f"Failure kinds without a policy: {sorted(k.name for k in _uncategorized)}")


# Private CA error codes that redelivery cannot fix
TERMINAL_CA_ERROR_CODES = frozenset({
    "ResourceNotFoundException",
    "InvalidArnException",
    "InvalidArgsException",
    "MalformedCSRException",
})

# Private CA has not finished issuing yet
CA_IN_PROGRESS_CODE = "RequestInProgressException"

# Storage error codes that redelivery cannot fix
PERMANENT_STORAGE_ERROR_CODES = frozenset({
    "NoSuchBucket",
    "NoSuchKey",
})


class MalformedKey(ValueError):
    """Raised when a storage key does not follow <ca>/<pai>/<pid>/<name>.<ext>."""


@dataclass(frozen=True)
class Failure:
    """A classified failure with the exception that caused it, if any."""

    kind: ErrorKind
    message: str
    cause: Optional[BaseException] = None

    @property
    def policy(self) -> FailurePolicy:
        return policy_for(self.kind)

    @property
    def retryable(self) -> bool:
        return self.policy.retryable


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged stage result: exactly one of value or failure is meaningful."""

    value: Optional[T] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def error(
        cls,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> "Result[T]":
        return cls(failure=Failure(kind=kind, message=message, cause=cause))


def policy_for(kind: ErrorKind) -> FailurePolicy:
    """Look up the handling policy for a failure kind."""
    return POLICIES[kind]


def error_code(exc: BaseException) -> Optional[str]:
    """Return the service error code of a botocore ClientError, else None."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def classify_ca_error(exc: BaseException) -> ErrorKind:
    """Classify a private CA failure as terminal or transient."""
    if error_code(exc) in TERMINAL_CA_ERROR_CODES:
        return ErrorKind.ISSUANCE_TERMINAL
    return ErrorKind.ISSUANCE_TRANSIENT


def classify_storage_write_error(exc: BaseException) -> ErrorKind:
    """Classify a failed storage write as permanent or transient."""
    if error_code(exc) in PERMANENT_STORAGE_ERROR_CODES:
        return ErrorKind.WRITE_PERMANENT
    return ErrorKind.WRITE_TRANSIENT


def describe(failure: Failure) -> str:
    """
    Human-readable description of a failure, including its cause chain.

    Used both for logs and for the body of .err artifacts.
    """
    lines = [f"{failure.kind.value}: {failure.message}"]
    current = failure.cause
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"  caused by {type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return "\n".join(lines) + "\n"
