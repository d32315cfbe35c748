from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleet.api.errors import http_error
from fleet.consumption.calculator import ConsumptionCalculator
from fleet.core.errors import FleetError
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore

router = APIRouter(tags=["Consumo"])


@router.get("/vehicles/{vehicle_id}/consumption")
def vehicle_consumption(
    vehicle_id: str,
    current_user: models.User = Depends(require_permission("vehicles.view")),
    db: Session = Depends(get_db),
):
    try:
        average = ConsumptionCalculator(EntityStore(db)).for_vehicle(vehicle_id)
    except FleetError as exc:
        raise http_error(exc) from exc
    return {"vehicle_id": vehicle_id, "unit": "km/l", "average": average, "available": average is not None}


@router.get("/refrigeration-units/{unit_id}/consumption")
def unit_consumption(
    unit_id: str,
    current_user: models.User = Depends(require_permission("refrigeration.view")),
    db: Session = Depends(get_db),
):
    try:
        average = ConsumptionCalculator(EntityStore(db)).for_refrigeration_unit(unit_id)
    except FleetError as exc:
        raise http_error(exc) from exc
    return {"refrigeration_unit_id": unit_id, "unit": "h/l", "average": average, "available": average is not None}
