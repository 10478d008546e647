"""Base class for action processors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, ClassVar, Generic, TypeVar

from pydantic import ValidationError

from fbl.keycloak_admin.client import KeycloakAdminClient, connect
from fbl.keycloak_admin.credentials import Credentials
from fbl.keycloak_admin.errors import ActionValidationError
from fbl.keycloak_admin.logs import ActionSnapshot
from fbl.keycloak_admin.lookups import find_realm
from fbl.keycloak_admin.models import ActionOptions

ACTION_ID_PREFIX = "com.fireblink.fbl.plugins.keycloak.admin."

OptionsT = TypeVar("OptionsT", bound=ActionOptions)
Connector = Callable[[Credentials], AbstractAsyncContextManager[KeycloakAdminClient]]


def format_violations(error: ValidationError) -> list[str]:
    """Render pydantic errors as ``dotted.path: reason`` lines."""
    violations = []
    for err in error.errors():
        path = ".".join(str(p) for p in err["loc"]) or "<options>"
        violations.append(f"{path}: {err['msg']}")
    return violations


class ActionProcessor(ABC, Generic[OptionsT]):
    """One action verb: validate an option bag, then orchestrate remote calls.

    Subclasses declare ``action_id``, ``options_model`` and implement
    ``process``. The target realm is resolved before ``process`` runs. Steps
    run strictly one after another; a failing step aborts the invocation and
    nothing already applied is rolled back.
    """

    action_id: ClassVar[str]
    aliases: ClassVar[tuple[str, ...]] = ()
    options_model: ClassVar[type[ActionOptions]]

    def __init__(
        self,
        options: Any,
        snapshot: ActionSnapshot | None = None,
        connector: Connector | None = None,
    ):
        self.options = options
        self.snapshot = snapshot or ActionSnapshot(self.action_id)
        self._connector = connector or connect
        self.params: OptionsT | None = None

    def validate(self) -> OptionsT:
        """Parse the option bag into its typed model."""
        try:
            self.params = self.options_model.model_validate(self.options)
        except ValidationError as e:
            raise ActionValidationError(self.action_id, format_violations(e)) from None
        return self.params

    async def execute(self) -> Any:
        """Authenticate and run ``process`` with a fresh admin session."""
        if self.params is None:
            self.validate()

        async with self._connector(self.params.credentials) as admin:
            await find_realm(admin, self.snapshot, self.params.realm_name)
            return await self.process(admin, self.params)

    @abstractmethod
    async def process(self, admin: KeycloakAdminClient, params: OptionsT) -> Any:
        """Run the action's remote calls against an existing realm."""

    async def run(self) -> Any:
        """Validate, then execute."""
        self.validate()
        return await self.execute()
