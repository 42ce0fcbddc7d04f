"""
Acting identity passed explicitly into the record lifecycle.

The JWT middleware builds one per request and stores it on ``g.actor``;
services and tests construct their own.
"""

from dataclasses import dataclass, field

from flask import current_app, g, has_app_context

from coreapi.core.constants import DEFAULT_ACTOR

DEFAULT_SUPERADMIN_ROLE = "superadmin"


@dataclass(frozen=True)
class Actor:
    name: str = DEFAULT_ACTOR
    privileges: frozenset[str] = field(default_factory=frozenset)
    superadmin_role: str = DEFAULT_SUPERADMIN_ROLE

    @property
    def is_privileged(self) -> bool:
        return self.superadmin_role in self.privileges

    @classmethod
    def from_claims(cls, claims: dict, superadmin_role: str = DEFAULT_SUPERADMIN_ROLE) -> "Actor":
        """Build an actor from decoded token claims (``username``/``sub`` and ``roles``)."""
        name = claims.get("username") or claims.get("sub") or DEFAULT_ACTOR
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        return cls(name=str(name), privileges=frozenset(str(r) for r in roles), superadmin_role=superadmin_role)


SYSTEM = Actor()


def current_actor() -> Actor:
    """Actor of the current request, or the system actor outside one."""
    if not has_app_context():
        return SYSTEM
    actor = g.get("actor")
    if actor is not None:
        return actor
    return Actor(superadmin_role=current_app.config.get("SUPERADMIN_ROLE", DEFAULT_SUPERADMIN_ROLE))
