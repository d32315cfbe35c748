import logging
import os

from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from fleet.core.config import settings
from fleet.core.security import ADMIN_ROLE, get_password_hash
from fleet.db import models
from fleet.db.session import SessionLocal

RESET_DEFAULT_PASSWORDS = os.getenv("RESET_DEFAULT_PASSWORDS", "").strip().lower() in {"1", "true", "yes"}

logger = logging.getLogger("fleet.init_db")


def ensure_missing_columns(engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer
    existing_tables = set(inspector.get_table_names())
    for table_name, table in models.Base.metadata.tables.items():
        if table_name not in existing_tables:
            continue
        existing_columns = {col["name"] for col in inspector.get_columns(table_name)}
        for column in table.columns:
            if column.name in existing_columns:
                continue
            col_type = column.type.compile(dialect=engine.dialect)
            with engine.begin() as connection:
                connection.execute(
                    text(
                        f"ALTER TABLE {preparer.quote(table_name)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {col_type}"
                    )
                )
            logger.info("coluna adicionada table=%s column=%s", table_name, column.name)


def seed_admin(db: Session) -> models.User:
    admin_login = settings.ADMIN_LOGIN
    admin_user = db.query(models.User).filter(models.User.login == admin_login).first()
    if not admin_user:
        admin_user = models.User(
            name="Administrador",
            login=admin_login,
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            role=ADMIN_ROLE,
            permissions=[],
            status="active",
        )
        db.add(admin_user)
    else:
        admin_user.role = ADMIN_ROLE
        admin_user.status = "active"
        if RESET_DEFAULT_PASSWORDS or not admin_user.password_hash:
            admin_user.password_hash = get_password_hash(settings.ADMIN_PASSWORD)
    db.commit()
    db.refresh(admin_user)
    return admin_user


def seed_initial_data() -> None:
    db: Session = SessionLocal()
    try:
        admin = seed_admin(db)
        logger.info("Seed OK: usuario administrador %s", admin.login)
    finally:
        db.close()
