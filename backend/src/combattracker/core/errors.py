"""
Typed failures of the combat tracker.

Every public engine operation either succeeds or raises one of these; the
API layer maps them onto HTTP responses (see api/error_handlers.py).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class TrackerError(Exception):
    """Base class for all tracker failures."""

    code: str = "TRACKER_ERROR"
    http_status: int = 500

    def __init__(self, message: str, *, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.meta: Dict[str, Any] = dict(meta or {})

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "meta": self.meta,
            }
        }


class ValidationError(TrackerError):
    """One or more field-level problems; all of them are reported together."""

    code = "VALIDATION_ERROR"
    http_status = 422

    def __init__(
        self,
        messages: Iterable[str],
        *,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.messages: List[str] = list(messages)
        super().__init__(
            "Validation failed: " + "; ".join(self.messages), meta=meta
        )

    def to_response(self) -> Dict[str, Any]:
        out = super().to_response()
        out["error"]["messages"] = list(self.messages)
        return out


class NotFoundError(TrackerError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id!r} not found",
            meta={"resource": resource, "id": resource_id},
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidStateError(TrackerError):
    """Operation not allowed in the current turn-cursor state."""

    code = "INVALID_STATE"
    http_status = 409


class UnknownConditionError(ValidationError, InvalidStateError):
    """Tag outside the fixed condition enumeration.

    Counts both as a validation failure and as an invalid-state failure so
    callers catching either one see it.
    """

    code = "UNKNOWN_CONDITION"
    http_status = 422

    def __init__(self, tag: Any):
        ValidationError.__init__(
            self,
            [f"Unknown condition: {tag!r}"],
            meta={"condition": tag},
        )
        self.tag = tag


class PersistenceError(TrackerError):
    """The persistence gateway failed; in-memory state is left as it was."""

    code = "PERSISTENCE_ERROR"
    http_status = 503

    def __init__(self, message: str, *, operation: str, encounter_id: Any = None):
        super().__init__(
            f"Persistence {operation} failed: {message}",
            meta={"operation": operation, "encounter_id": encounter_id},
        )
        self.operation = operation
        self.encounter_id = encounter_id
