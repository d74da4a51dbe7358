"""Who may act on which reservation."""

from collections.abc import Iterable
from dataclasses import dataclass

from scheduling.domain.errors import AuthorizationError
from scheduling.domain.value_objects import ResourceKey


@dataclass(frozen=True)
class Actor:
    """The caller, resolved once at the API boundary."""

    user_id: int | None
    staff_id: int | None = None
    is_admin: bool = False

    @property
    def staff_key(self) -> ResourceKey | None:
        if self.staff_id is None:
            return None
        return ResourceKey.staff(self.staff_id)


SYSTEM_ACTOR = Actor(user_id=None, is_admin=True)


def ensure_can_manage(actor: Actor, resource_keys: Iterable[ResourceKey]) -> None:
    """Admins manage everything; staff only reservations that book them."""
    if actor.is_admin:
        return
    if actor.staff_key is None:
        raise AuthorizationError("Only staff members can manage reservations")
    if actor.staff_key not in set(resource_keys):
        raise AuthorizationError()
