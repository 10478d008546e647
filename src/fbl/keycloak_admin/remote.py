"""Uniform error shape for remote Keycloak calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from fbl.keycloak_admin.client import KeycloakError
from fbl.keycloak_admin.errors import RemoteOperationError

T = TypeVar("T")

# Keys Keycloak uses for the human-readable part of an error body, by preference.
_MESSAGE_KEYS = ("errorMessage", "error_description", "error")


@dataclass(frozen=True)
class ServiceError:
    """Structured error payload returned by the identity service."""

    status: int
    message: str


def extract_service_error(exc: BaseException) -> ServiceError | None:
    """Return the structured service error carried by ``exc``, if any.

    Only Keycloak API failures with both a status code and a decoded body
    holding a message qualify; transport errors and anything else yield None.
    """
    if not isinstance(exc, KeycloakError):
        return None
    if exc.status_code is None or not isinstance(exc.response, dict):
        return None

    for key in _MESSAGE_KEYS:
        message = exc.response.get(key)
        if isinstance(message, str) and message:
            return ServiceError(status=exc.status_code, message=message)
    return None


async def wrap_request(operation: Callable[[], Awaitable[T]]) -> T:
    """Await a single remote call, normalizing structured service errors.

    No retry happens here: the flow engine owns retry policy.
    """
    try:
        return await operation()
    except KeycloakError as e:
        service_error = extract_service_error(e)
        if service_error is None:
            raise
        raise RemoteOperationError(
            f"{e}: {service_error.message}", code=str(service_error.status)
        ) from e
