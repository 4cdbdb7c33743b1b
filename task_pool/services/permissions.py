"""Policy engine: role defaults overridden by explicit per-user records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Protocol
from uuid import UUID


class Role(str, Enum):
    """Organization roles. Each maps to a default permission set in ROLE_PERMISSIONS."""

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    ACCOUNTANT = "accountant"
    STAFF = "staff"
    VIEWER = "viewer"


class Permission(str, Enum):
    """
    Gated actions. Claim, release, handoff, completion and steps are open to
    any member of the organization; only these are checked.
    """

    TASKS_CREATE = "tasks:create"
    TASKS_ASSIGN = "tasks:assign"
    TASKS_MANAGE_ACTION_TYPES = "tasks:manage_action_types"
    SUGGESTIONS_REVIEW = "suggestions:review"


_STAFF = {Permission.TASKS_CREATE, Permission.SUGGESTIONS_REVIEW}
_MANAGER = _STAFF | {Permission.TASKS_ASSIGN}
_ADMIN = _MANAGER | {Permission.TASKS_MANAGE_ACTION_TYPES}

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.OWNER: frozenset(_ADMIN),
    Role.ADMIN: frozenset(_ADMIN),
    Role.MANAGER: frozenset(_MANAGER),
    Role.ACCOUNTANT: frozenset(_STAFF),
    Role.STAFF: frozenset(_STAFF),
    Role.VIEWER: frozenset(),
}


class PermissionOracle(Protocol):
    """Anything that can answer "may this actor do this?"."""

    def can(self, actor_id: UUID, action: str) -> bool: ...


@dataclass
class PermissionOverride:
    """Explicit grant (granted=True) or deny (granted=False) for one user."""

    user_id: UUID
    permission: str
    granted: bool
    expires_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        if self.expires_at is None:
            return True
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > now


@dataclass
class PolicyEngine:
    """
    Evaluates permissions for known actors.

    An active override for (user, permission) wins over the role default;
    when several overrides match, a deny wins. Unknown actors have no
    permissions.
    """

    roles: dict[UUID, Role] = field(default_factory=dict)
    overrides: list[PermissionOverride] = field(default_factory=list)

    def can(self, actor_id: UUID, action: str) -> bool:
        action = _permission_name(action)
        now = datetime.now(timezone.utc)

        matching = [
            o for o in self.overrides
            if o.user_id == actor_id
            and _permission_name(o.permission) == action
            and o.is_active(now)
        ]
        if matching:
            return all(o.granted for o in matching)

        role = self.roles.get(actor_id)
        if role is None:
            return False
        return action in {p.value for p in ROLE_PERMISSIONS.get(role, frozenset())}

    def with_actor(
        self,
        actor_id: UUID,
        role: Role | str,
        overrides: Iterable[PermissionOverride] = (),
    ) -> "PolicyEngine":
        """Return a copy that also knows about the given actor."""
        roles = dict(self.roles)
        roles[actor_id] = Role(role)
        return PolicyEngine(roles=roles, overrides=[*self.overrides, *overrides])


def _permission_name(action: str | Permission) -> str:
    if isinstance(action, Permission):
        return action.value
    # Bare verbs such as "assign" are task permissions
    return action if ":" in action else f"tasks:{action}"
