from __future__ import annotations

from dataclasses import dataclass

from cinema.domain.enums import GlobalRole


@dataclass(frozen=True)
class Actor:
    """
    Per-request identity, as yielded by the identity provider.

    Passed explicitly into every dispatcher call; there is no process-wide
    session object in the core.
    """

    user_id: int
    global_role: GlobalRole
    active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.global_role is GlobalRole.ADMIN
