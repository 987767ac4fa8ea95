"""The authenticated user on whose behalf a command runs."""

from dataclasses import dataclass, field

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    name: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @classmethod
    def from_command(cls, command) -> "Actor":
        return cls(actor_id=str(command.actor_id), roles=(ADMIN_ROLE,) if command.is_admin else ())
