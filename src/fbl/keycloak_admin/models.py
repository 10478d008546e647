"""Pydantic models for action options.

Example YAML structure (user.role.mappings.apply):
    credentials:
      baseUrl: http://localhost:8080
      username: admin
      password: ${KEYCLOAK_ADMIN_PASSWORD}
    realmName: demo
    username: bob
    add:
      realm: [offline_access]
      client:
        account: [view-profile, manage-account]
    remove:
      client:
        realm-management: [view-users]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fbl.keycloak_admin.credentials import Credentials


def _unique(names: list[str]) -> list[str]:
    """Drop repeated names, keeping first occurrence order."""
    seen: set[str] = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


class CompositeRoleMapping(BaseModel):
    """Role names assigned to a principal, split by scope.

    A snapshot, never a live view: re-fetch after mutating the principal.
    """

    model_config = ConfigDict(extra="forbid")

    realm: list[str] = Field(default_factory=list)
    client: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("realm")
    @classmethod
    def unique_realm_names(cls, v: list[str]) -> list[str]:
        return _unique(v)

    @field_validator("client")
    @classmethod
    def unique_client_names(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        return {client_id: _unique(names) for client_id, names in v.items()}

    def client_roles(self, client_id: str) -> list[str]:
        return self.client.get(client_id, [])

    @property
    def is_empty(self) -> bool:
        return not self.realm and not any(self.client.values())


@dataclass
class ResolvedRoles:
    """Role representations resolved from a CompositeRoleMapping."""

    realm: list[dict[str, Any]] = field(default_factory=list)
    client: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def flatten(self) -> list[dict[str, Any]]:
        roles = list(self.realm)
        for client_roles in self.client.values():
            roles.extend(client_roles)
        return roles

    def names(self) -> CompositeRoleMapping:
        return CompositeRoleMapping(
            realm=[r["name"] for r in self.realm],
            client={
                client_id: [r["name"] for r in roles]
                for client_id, roles in self.client.items()
            },
        )


# -----------------------------------------------------------------------------
# Payloads
# -----------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_representation(self, exclude: set[str] | None = None) -> dict[str, Any]:
        """Dump as a Keycloak representation (camelCase, no unset values)."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)


class UserPayload(_Payload):
    """User representation accepted on creation."""

    email: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    enabled: bool | None = None
    first_name: str | None = None
    last_name: str | None = None
    email_verified: bool | None = None
    attributes: dict[str, list[str]] | None = None


class UserUpdatePayload(_Payload):
    """Partial user representation; unknown Keycloak keys pass through."""

    model_config = ConfigDict(extra="allow")

    email: str | None = Field(default=None, min_length=1)
    enabled: bool | None = None
    first_name: str | None = None
    last_name: str | None = None
    email_verified: bool | None = None
    attributes: dict[str, list[str]] | None = None


class RolePayload(_Payload):
    """Role representation; unknown Keycloak keys pass through."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    description: str | None = None
    attributes: dict[str, list[str]] | None = None
    composites: CompositeRoleMapping | None = None


class GroupPayload(_Payload):
    """Group identified by its full path, e.g. ``/staff/admins``."""

    model_config = ConfigDict(extra="allow")

    path: str = Field(..., min_length=2, pattern=r"^/[^/].*")
    attributes: dict[str, list[str]] | None = None

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def parent_path(self) -> str | None:
        parent = self.path.rstrip("/").rsplit("/", 1)[0]
        return parent or None


class GroupUpdatePayload(_Payload):
    """Partial group representation; unknown Keycloak keys pass through.

    Renaming is done through ``name``; the group stays under its parent.
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = Field(default=None, min_length=1, pattern=r"^[^/]+$")
    attributes: dict[str, list[str]] | None = None


# -----------------------------------------------------------------------------
# Option bags
# -----------------------------------------------------------------------------


class ActionOptions(BaseModel):
    """Fields shared by every action."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    credentials: Credentials
    realm_name: str = Field(..., min_length=1)


class UserCreateOptions(ActionOptions):
    user: UserPayload


class UserUpdateOptions(ActionOptions):
    username: str = Field(..., min_length=1)
    user: UserUpdatePayload


class UserDeleteOptions(ActionOptions):
    username: str = Field(..., min_length=1)


class RoleMappingsApplyOptions(ActionOptions):
    add: CompositeRoleMapping = Field(default_factory=CompositeRoleMapping)
    remove: CompositeRoleMapping = Field(default_factory=CompositeRoleMapping)

    @model_validator(mode="after")
    def check_no_overlap(self) -> "RoleMappingsApplyOptions":
        clashes = [f"realm:{r}" for r in self.add.realm if r in self.remove.realm]
        for client_id, names in self.add.client.items():
            removed = self.remove.client_roles(client_id)
            clashes.extend(f"{client_id}:{r}" for r in names if r in removed)
        if clashes:
            raise ValueError(
                "roles listed in both add and remove: " + ", ".join(clashes)
            )
        return self


class UserRoleMappingsApplyOptions(RoleMappingsApplyOptions):
    username: str = Field(..., min_length=1)


class GroupRoleMappingsApplyOptions(RoleMappingsApplyOptions):
    group_path: str = Field(..., min_length=2)


class GroupCreateOptions(ActionOptions):
    group: GroupPayload


class GroupUpdateOptions(ActionOptions):
    group_path: str = Field(..., min_length=2)
    group: GroupUpdatePayload


class GroupDeleteOptions(ActionOptions):
    group_path: str = Field(..., min_length=2)


class RealmRoleOptions(ActionOptions):
    role: RolePayload


class RealmRoleDeleteOptions(ActionOptions):
    role_name: str = Field(..., min_length=1)


class ClientRoleOptions(ActionOptions):
    client_id: str = Field(..., min_length=1)
    role: RolePayload


class ClientRoleDeleteOptions(ActionOptions):
    client_id: str = Field(..., min_length=1)
    role_name: str = Field(..., min_length=1)
