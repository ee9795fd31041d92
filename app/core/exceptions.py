"""
Domain exceptions for the group competition engine.

Services raise these for validation, authorization and state violations; the
HTTP layer (app.main) is the only place they are turned into status codes.
Each error carries the group id and offending field where known so callers can
build their own user-facing message.
"""

from typing import Any, Dict, Optional


class GroupEngineError(Exception):
    """Base class for every error the engine raises on purpose."""

    kind: str = "error"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        group_id: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        self.message = message
        self.group_id = group_id
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "detail": self.message}
        if self.group_id is not None:
            payload["group_id"] = self.group_id
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, group_id={self.group_id!r}, field={self.field!r})"
        )


class ValidationError(GroupEngineError):
    """Malformed input: bad name/description length, limits, date ranges."""

    kind = "validation"
    status_code = 400


class NotFoundError(GroupEngineError):
    kind = "not_found"
    status_code = 404


class PermissionDeniedError(GroupEngineError):
    """Rejected by the role matrix, or an invalid join code."""

    kind = "permission_denied"
    status_code = 403


class AlreadyExistsError(GroupEngineError):
    kind = "already_exists"
    status_code = 409


class AlreadyMemberError(AlreadyExistsError):
    kind = "already_member"


class InvalidStateError(GroupEngineError):
    """The request is well formed but the group is not in a state that allows it."""

    kind = "invalid_state"
    status_code = 409


class InvariantViolationError(GroupEngineError):
    """Internal inconsistency, e.g. a group left without an owner. Always a bug."""

    kind = "invariant_violation"
    status_code = 500


class UpstreamError(GroupEngineError):
    """A storage or collaborator call failed."""

    kind = "upstream"
    status_code = 502
