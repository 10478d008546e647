"""Keycloak Admin API client.

Wraps the Keycloak Admin REST API for managing:
- Clients and client roles
- Realm roles and role composites
- Users and their role mappings
- Groups and their role mappings

Unlike a realm-bound client, every operation takes the target realm
explicitly: one authenticated session may act on several realms.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from fbl.keycloak_admin.config import Settings, get_settings
from fbl.keycloak_admin.credentials import Credentials

logger = logging.getLogger(__name__)


class KeycloakError(Exception):
    """Base exception for Keycloak API errors."""

    def __init__(
        self, message: str, status_code: int | None = None, response: dict | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class KeycloakAuthError(KeycloakError):
    """Authentication failed."""

    pass


class KeycloakNotFoundError(KeycloakError):
    """Resource not found."""

    pass


class KeycloakConflictError(KeycloakError):
    """Resource already exists."""

    pass


@dataclass
class TokenInfo:
    """OAuth token information."""

    access_token: str
    expires_at: float
    refresh_token: str | None = None

    def is_valid(self, leeway: int = 30) -> bool:
        """Check if token is still valid."""
        return time.time() < (self.expires_at - leeway)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _error_body(response: httpx.Response) -> dict | None:
    """Decode a JSON error body, if the server sent one."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class KeycloakAdminClient:
    """Async client for Keycloak Admin REST API."""

    def __init__(
        self,
        credentials: Credentials,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = credentials
        self._timeout = timeout
        self._verify = verify
        self._transport = transport
        self._token: TokenInfo | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "KeycloakAdminClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def base_url(self) -> str:
        return self._credentials.base_url.rstrip("/")

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> None:
        """Authenticate and obtain an access token for the configured grant."""
        creds = self._credentials
        token_url = (
            f"{self.base_url}/realms/{_segment(creds.realm_name)}"
            "/protocol/openid-connect/token"
        )

        if creds.grant_type == "client_credentials":
            data = {
                "grant_type": "client_credentials",
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
            }
            principal = creds.client_id
        else:
            data = {
                "grant_type": "password",
                "client_id": creds.client_id,
                "username": creds.username,
                "password": creds.password,
            }
            if creds.client_secret:
                data["client_secret"] = creds.client_secret
            principal = creds.username

        logger.debug("Authenticating (%s grant): %s", creds.grant_type, principal)

        response = await self._client.post(token_url, data=data)

        if response.status_code != 200:
            raise KeycloakAuthError(
                f"Authentication failed for {principal}: {response.text}",
                status_code=response.status_code,
                response=_error_body(response),
            )

        payload = response.json()
        self._token = TokenInfo(
            access_token=payload["access_token"],
            expires_at=time.time() + float(payload.get("expires_in", 300)),
            refresh_token=payload.get("refresh_token"),
        )
        logger.info("Authenticated against realm %s as %s", creds.realm_name, principal)

    async def _ensure_token(self) -> str:
        """Ensure we have a valid token."""
        if not self._token or not self._token.is_valid():
            await self.authenticate()
        return self._token.access_token

    async def _headers(self) -> dict[str, str]:
        """Get request headers with auth token."""
        token = await self._ensure_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def _url(self, realm: str, path: str) -> str:
        return f"{self.base_url}/admin/realms/{_segment(realm)}{path}"

    async def _get(self, realm: str, path: str, params: dict | None = None) -> Any:
        """Make GET request to admin API."""
        headers = await self._headers()
        response = await self._client.get(
            self._url(realm, path), headers=headers, params=params
        )
        return self._handle_response(response)

    async def _post(self, realm: str, path: str, json: list | dict | None = None) -> Any:
        """Make POST request to admin API."""
        headers = await self._headers()
        response = await self._client.post(
            self._url(realm, path), headers=headers, json=json
        )
        return self._handle_response(response, expected_status=[200, 201, 204])

    async def _put(self, realm: str, path: str, json: dict | None = None) -> Any:
        """Make PUT request to admin API."""
        headers = await self._headers()
        response = await self._client.put(
            self._url(realm, path), headers=headers, json=json
        )
        return self._handle_response(response, expected_status=[200, 204])

    async def _delete(self, realm: str, path: str, json: list | None = None) -> Any:
        """Make DELETE request to admin API.

        Role-mapping removals carry the roles in the request body.
        """
        headers = await self._headers()
        response = await self._client.request(
            "DELETE", self._url(realm, path), headers=headers, json=json
        )
        return self._handle_response(response, expected_status=[200, 204])

    def _handle_response(
        self,
        response: httpx.Response,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Handle API response."""
        expected = expected_status or [200]

        if response.status_code == 404:
            raise KeycloakNotFoundError(
                f"Resource not found: {response.request.url}",
                status_code=404,
                response=_error_body(response),
            )

        if response.status_code == 409:
            raise KeycloakConflictError(
                f"Resource already exists: {response.request.url}",
                status_code=409,
                response=_error_body(response),
            )

        if response.status_code == 401:
            raise KeycloakAuthError(
                "Authentication expired or invalid",
                status_code=401,
                response=_error_body(response),
            )

        if response.status_code not in expected:
            raise KeycloakError(
                f"Unexpected response {response.status_code} from "
                f"{response.request.method} {response.request.url}",
                status_code=response.status_code,
                response=_error_body(response),
            )

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    # -------------------------------------------------------------------------
    # Realms
    # -------------------------------------------------------------------------

    async def get_realm(self, realm: str) -> dict[str, Any]:
        """Get a realm representation."""
        return await self._get(realm, "")

    # -------------------------------------------------------------------------
    # Clients and client roles
    # -------------------------------------------------------------------------

    async def find_clients(self, realm: str, client_id: str) -> list[dict[str, Any]]:
        """Find clients by clientId."""
        return await self._get(realm, "/clients", params={"clientId": client_id}) or []

    async def get_client(self, realm: str, client_uuid: str) -> dict[str, Any]:
        """Get a client by UUID."""
        return await self._get(realm, f"/clients/{client_uuid}")

    async def list_client_roles(
        self, realm: str, client_uuid: str
    ) -> list[dict[str, Any]]:
        """Get all roles for a client."""
        return await self._get(realm, f"/clients/{client_uuid}/roles") or []

    async def get_client_role(
        self, realm: str, client_uuid: str, name: str
    ) -> dict[str, Any]:
        """Get a client role by name."""
        return await self._get(realm, f"/clients/{client_uuid}/roles/{_segment(name)}")

    async def create_client_role(
        self, realm: str, client_uuid: str, role: dict[str, Any]
    ) -> None:
        """Create a client role."""
        logger.debug("Creating client role %s on %s", role.get("name"), client_uuid)
        await self._post(realm, f"/clients/{client_uuid}/roles", json=role)

    async def update_client_role(
        self, realm: str, client_uuid: str, name: str, role: dict[str, Any]
    ) -> None:
        """Update a client role."""
        logger.debug("Updating client role %s on %s", name, client_uuid)
        await self._put(
            realm, f"/clients/{client_uuid}/roles/{_segment(name)}", json=role
        )

    async def delete_client_role(self, realm: str, client_uuid: str, name: str) -> None:
        """Delete a client role."""
        logger.debug("Deleting client role %s on %s", name, client_uuid)
        await self._delete(realm, f"/clients/{client_uuid}/roles/{_segment(name)}")

    # -------------------------------------------------------------------------
    # Realm roles and composites
    # -------------------------------------------------------------------------

    async def list_realm_roles(self, realm: str) -> list[dict[str, Any]]:
        """Get all realm roles."""
        return await self._get(realm, "/roles") or []

    async def get_realm_role(self, realm: str, name: str) -> dict[str, Any]:
        """Get a realm role by name."""
        return await self._get(realm, f"/roles/{_segment(name)}")

    async def create_realm_role(self, realm: str, role: dict[str, Any]) -> None:
        """Create a realm role."""
        logger.debug("Creating realm role %s in %s", role.get("name"), realm)
        await self._post(realm, "/roles", json=role)

    async def update_realm_role(
        self, realm: str, name: str, role: dict[str, Any]
    ) -> None:
        """Update a realm role."""
        logger.debug("Updating realm role %s in %s", name, realm)
        await self._put(realm, f"/roles/{_segment(name)}", json=role)

    async def delete_realm_role(self, realm: str, name: str) -> None:
        """Delete a realm role."""
        logger.debug("Deleting realm role %s in %s", name, realm)
        await self._delete(realm, f"/roles/{_segment(name)}")

    async def list_role_composites(
        self, realm: str, role_id: str
    ) -> list[dict[str, Any]]:
        """Get the composites of a role (realm or client) by role id."""
        return await self._get(realm, f"/roles-by-id/{role_id}/composites") or []

    async def add_role_composites(
        self, realm: str, role_id: str, roles: list[dict[str, Any]]
    ) -> None:
        """Attach composite roles to a role."""
        logger.debug("Adding %d composites to role %s", len(roles), role_id)
        await self._post(realm, f"/roles-by-id/{role_id}/composites", json=roles)

    async def delete_role_composites(
        self, realm: str, role_id: str, roles: list[dict[str, Any]]
    ) -> None:
        """Detach composite roles from a role."""
        logger.debug("Removing %d composites from role %s", len(roles), role_id)
        await self._delete(realm, f"/roles-by-id/{role_id}/composites", json=roles)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def create_user(self, realm: str, user: dict[str, Any]) -> None:
        """Create a user."""
        logger.debug("Creating user %s in %s", user.get("username"), realm)
        await self._post(realm, "/users", json=user)

    async def find_users(
        self, realm: str, username: str, exact: bool = True
    ) -> list[dict[str, Any]]:
        """Find users by username."""
        params = {"username": username, "exact": str(exact).lower()}
        return await self._get(realm, "/users", params=params) or []

    async def update_user(self, realm: str, user_id: str, user: dict[str, Any]) -> None:
        """Update a user."""
        await self._put(realm, f"/users/{user_id}", json=user)

    async def delete_user(self, realm: str, user_id: str) -> None:
        """Delete a user."""
        await self._delete(realm, f"/users/{user_id}")

    async def list_user_role_mappings(self, realm: str, user_id: str) -> dict[str, Any]:
        """Get realm and client role mappings of a user."""
        return await self._get(realm, f"/users/{user_id}/role-mappings") or {}

    async def add_user_realm_role_mappings(
        self, realm: str, user_id: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._post(realm, f"/users/{user_id}/role-mappings/realm", json=roles)

    async def delete_user_realm_role_mappings(
        self, realm: str, user_id: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._delete(realm, f"/users/{user_id}/role-mappings/realm", json=roles)

    async def add_user_client_role_mappings(
        self, realm: str, user_id: str, client_uuid: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._post(
            realm, f"/users/{user_id}/role-mappings/clients/{client_uuid}", json=roles
        )

    async def delete_user_client_role_mappings(
        self, realm: str, user_id: str, client_uuid: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._delete(
            realm, f"/users/{user_id}/role-mappings/clients/{client_uuid}", json=roles
        )

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def get_group_by_path(self, realm: str, path: str) -> dict[str, Any]:
        """Get a group by its path, e.g. ``/parent/child``."""
        segments = "/".join(_segment(p) for p in path.strip("/").split("/"))
        return await self._get(realm, f"/group-by-path/{segments}")

    async def create_group(self, realm: str, group: dict[str, Any]) -> None:
        """Create a top-level group."""
        logger.debug("Creating group %s in %s", group.get("name"), realm)
        await self._post(realm, "/groups", json=group)

    async def create_child_group(
        self, realm: str, parent_id: str, group: dict[str, Any]
    ) -> None:
        """Create a group under an existing parent."""
        logger.debug("Creating group %s under %s", group.get("name"), parent_id)
        await self._post(realm, f"/groups/{parent_id}/children", json=group)

    async def update_group(self, realm: str, group_id: str, group: dict[str, Any]) -> None:
        await self._put(realm, f"/groups/{group_id}", json=group)

    async def delete_group(self, realm: str, group_id: str) -> None:
        await self._delete(realm, f"/groups/{group_id}")

    async def list_group_role_mappings(
        self, realm: str, group_id: str
    ) -> dict[str, Any]:
        """Get realm and client role mappings of a group."""
        return await self._get(realm, f"/groups/{group_id}/role-mappings") or {}

    async def add_group_realm_role_mappings(
        self, realm: str, group_id: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._post(realm, f"/groups/{group_id}/role-mappings/realm", json=roles)

    async def delete_group_realm_role_mappings(
        self, realm: str, group_id: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._delete(realm, f"/groups/{group_id}/role-mappings/realm", json=roles)

    async def add_group_client_role_mappings(
        self, realm: str, group_id: str, client_uuid: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._post(
            realm, f"/groups/{group_id}/role-mappings/clients/{client_uuid}", json=roles
        )

    async def delete_group_client_role_mappings(
        self, realm: str, group_id: str, client_uuid: str, roles: list[dict[str, Any]]
    ) -> None:
        await self._delete(
            realm, f"/groups/{group_id}/role-mappings/clients/{client_uuid}", json=roles
        )


@asynccontextmanager
async def connect(
    credentials: Credentials,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[KeycloakAdminClient]:
    """Open an authenticated admin session.

    Sessions are never shared: each action invocation authenticates anew.
    """
    settings = settings or get_settings()
    async with KeycloakAdminClient(
        credentials,
        timeout=settings.http_timeout,
        verify=settings.verify_tls,
        transport=transport,
    ) as client:
        await client.authenticate()
        yield client
