import logging

from fastapi import APIRouter
from sqlalchemy import text

from fleet.core import config
from fleet.db.session import engine
from fleet.services.storage import StorageClient

router = APIRouter()
logger = logging.getLogger("fleet.doctor")


@router.get("/doctor")
def doctor():
    settings = config.settings
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        database_ok = True
    except Exception:
        logger.warning("doctor/database failed", exc_info=True)
        database_ok = False
    try:
        client = StorageClient()
        storage_mode = "local" if client.use_local else "gcs"
        storage_ok = True
    except Exception:
        logger.warning("doctor/storage failed", exc_info=True)
        storage_mode = None
        storage_ok = False
    secret_ok = not (
        settings.ENV.lower() == "production" and settings.SECRET_KEY == "dev-secret-change-me"
    )

    overall = all([database_ok, storage_ok, secret_ok])
    return {
        "status": "OK" if overall else "WARN",
        "database": "OK" if database_ok else "ERROR",
        "storage": "OK" if storage_ok else "ERROR",
        "storage_mode": storage_mode,
        "secret_key": "OK" if secret_ok else "ERROR",
        "cors": "OK" if settings.BACKEND_CORS_ORIGINS else "ERROR",
    }
