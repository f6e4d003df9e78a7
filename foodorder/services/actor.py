from dataclasses import dataclass

from foodorder.errors import Unauthorized
from foodorder.models.core import UserRole


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a service operation."""
    id: str
    role: UserRole


def require_role(actor: Actor, *roles: UserRole, message: str) -> None:
    if actor.role not in roles:
        raise Unauthorized(message)
