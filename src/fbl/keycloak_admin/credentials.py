"""Credentials accepted by every action.

Example YAML structure:
    credentials:
      baseUrl: http://localhost:8080
      realmName: master
      grantType: password
      clientId: admin-cli
      username: admin
      password: ${KEYCLOAK_ADMIN_PASSWORD}
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Credentials(BaseModel):
    """Connection and authentication data for the Keycloak Admin API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    base_url: str = Field(..., min_length=1, description="Keycloak base URL")
    realm_name: str = Field(
        default="master",
        min_length=1,
        description="Realm to authenticate against",
    )
    grant_type: Literal["password", "client_credentials"] = "password"
    client_id: str = Field(default="admin-cli", min_length=1)
    client_secret: str | None = None
    username: str | None = None
    password: str | None = None

    @model_validator(mode="after")
    def check_grant_fields(self) -> "Credentials":
        if self.grant_type == "password" and not (self.username and self.password):
            raise ValueError("password grant requires username and password")
        if self.grant_type == "client_credentials" and not self.client_secret:
            raise ValueError("client_credentials grant requires clientSecret")
        return self
