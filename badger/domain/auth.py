from dataclasses import dataclass
from badger.domain.errors import Forbidden

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass(frozen=True)
class AuthContext:
    """Quién llama. Se pasa explícitamente a cada operación; el dominio no lee sesión ni globals."""
    user_id: str
    role: str = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def require_admin(caller: AuthContext) -> None:
    if not caller.is_admin:
        raise Forbidden("Admin role required")
