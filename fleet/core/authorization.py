from fleet.core.errors import PermissionDenied
from fleet.core.security import ADMIN_ROLE
from fleet.db import models


def is_admin_user(user: models.User | None) -> bool:
    return bool(user) and user.role == ADMIN_ROLE and user.status == "active"


def ensure_admin(user: models.User | None, action: str) -> None:
    if not is_admin_user(user):
        login = user.login if user else "anonimo"
        raise PermissionDenied(f"Usuario {login} sem permissao para {action}.")
