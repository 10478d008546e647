"""Errors surfaced by action processors."""

from __future__ import annotations


class ActionError(Exception):
    """Base exception for failures reported back to the flow engine."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ActionValidationError(ActionError):
    """Option bag does not conform to the processor schema."""

    def __init__(self, action_id: str, violations: list[str]):
        self.violations = violations
        super().__init__(
            f"Invalid options for {action_id}: " + "; ".join(violations),
            code="400",
        )


class NotFoundError(ActionError):
    """A named realm, client, user, group or role does not exist."""

    def __init__(self, message: str):
        super().__init__(message, code="404")


class RemoteOperationError(ActionError):
    """Keycloak rejected an operation with a structured error body."""

    pass
