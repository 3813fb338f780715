"""
Gateway error taxonomy.

Every failure the gateway reports carries a stable, machine-readable
``reason`` and a human-readable message. Engine exception text may end up in
the message for diagnostics but never in the reason.
"""

# Request reasons
NOT_FOUND = "not_found"
MALFORMED = "malformed"

# Rejection reasons
REJECTED = "rejected"
NON_FAST_FORWARD = "non_fast_forward"
PUSH_REJECTED = "push_rejected"
REPOSITORY_BUSY = "repository_busy"
DIRTY_WORKTREE = "dirty_worktree"
MERGE_IN_PROGRESS = "merge_in_progress"
UNRESOLVED_CONFLICTS = "unresolved_conflicts"
TARGET_EXISTS = "target_exists"
CANCELLED = "cancelled"

# Engine failure reasons
NETWORK_FAILURE = "network_failure"
AUTHENTICATION_FAILURE = "authentication_failure"
ENGINE_FAILURE = "engine_failure"


class GatewayError(Exception):
    """Base class for errors rendered as ``{"reason", "detail"}`` responses."""

    status_code: int = 500
    default_reason: str = ENGINE_FAILURE

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def to_dict(self) -> dict:
        return {"reason": self.reason, "detail": self.message}


class NotFoundError(GatewayError):
    """Unknown project, remote, branch, ref, clone or task (including evicted tasks)."""

    status_code = 404
    default_reason = NOT_FOUND


class MalformedError(GatewayError):
    """Missing required field or bad protocol-version header."""

    status_code = 400
    default_reason = MALFORMED


class RejectedError(GatewayError):
    """The repository refused the operation (non-fast-forward push, busy handle, ...)."""

    status_code = 409
    default_reason = REJECTED


class EngineFailure(GatewayError):
    """The underlying operation failed for environmental reasons (network, auth, disk)."""

    status_code = 500
    default_reason = ENGINE_FAILURE
