from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleet.consumption.dashboard import fleet_summary, refrigeration_summary
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard/summary")
def dashboard_summary(
    current_user: models.User = Depends(require_permission("dashboard.view")),
    db: Session = Depends(get_db),
):
    return fleet_summary(EntityStore(db))


@router.get("/dashboard/refrigeration")
def dashboard_refrigeration(
    current_user: models.User = Depends(require_permission("dashboard.view")),
    db: Session = Depends(get_db),
):
    return refrigeration_summary(EntityStore(db))
