import os

from fleet.core.security import ADMIN_ROLE, get_password_hash
from fleet.db import models
from fleet.db.session import SessionLocal


def main() -> None:
    login = os.getenv("ADMIN_BOOTSTRAP_LOGIN")
    password = os.getenv("ADMIN_BOOTSTRAP_PASSWORD")
    if not login or not password:
        raise SystemExit("ADMIN_BOOTSTRAP_LOGIN/ADMIN_BOOTSTRAP_PASSWORD nao definidos.")
    login = login.strip().lower()

    db = SessionLocal()
    try:
        admin = db.query(models.User).filter(models.User.login == login).first()
        if not admin:
            admin = models.User(name="Administrador", login=login, permissions=[])
            db.add(admin)
        admin.password_hash = get_password_hash(password)
        admin.role = ADMIN_ROLE
        admin.status = "active"
        db.commit()
        print(f"Admin ativo: {admin.login}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
