from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from fleet.api.errors import http_error
from fleet.core.errors import FleetError
from fleet.core.formatters import parse_integer
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore

router = APIRouter(tags=["Refrigeracao"])


class RefrigerationUnitCreate(BaseModel):
    vehicle_id: str | None = None
    company_id: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    unit_type: str | None = None
    min_temp: float | None = None
    max_temp: float | None = None
    install_date: date | None = None
    usage_hours: int = 0
    fuel_type: str | None = None
    status: str | None = None

    @field_validator("usage_hours", mode="before")
    @classmethod
    def parse_hours(cls, value):
        return parse_integer(value)


class RefrigerationUnitUpdate(BaseModel):
    vehicle_id: str | None = None
    company_id: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    unit_type: str | None = None
    min_temp: float | None = None
    max_temp: float | None = None
    install_date: date | None = None
    usage_hours: int | None = None
    fuel_type: str | None = None
    status: str | None = None

    model_config = {"extra": "forbid"}


def _to_response(unit: models.RefrigerationUnit) -> dict:
    return {
        "id": unit.id,
        "vehicle_id": unit.vehicle_id,
        "company_id": unit.company_id,
        "brand": unit.brand,
        "model": unit.model,
        "serial_number": unit.serial_number,
        "unit_type": unit.unit_type,
        "min_temp": unit.min_temp,
        "max_temp": unit.max_temp,
        "install_date": unit.install_date.isoformat() if unit.install_date else None,
        "usage_hours": unit.usage_hours,
        "fuel_type": unit.fuel_type,
        "status": unit.status,
        "previous_status": unit.previous_status,
        "sale_info": unit.sale_info,
        "created_at": unit.created_at.isoformat(),
    }


@router.get("/refrigeration-units")
def list_units(
    status_filter: str | None = Query(default=None, alias="status"),
    current_user: models.User = Depends(require_permission("refrigeration.view")),
    db: Session = Depends(get_db),
):
    units = EntityStore(db).list_refrigeration_units(status_filter)
    return {"refrigeration_units": [_to_response(u) for u in units]}


@router.post("/refrigeration-units", status_code=status.HTTP_201_CREATED)
def create_unit(
    payload: RefrigerationUnitCreate,
    current_user: models.User = Depends(require_permission("refrigeration.edit")),
    db: Session = Depends(get_db),
):
    try:
        unit = EntityStore(db).create_refrigeration_unit(payload.model_dump())
        return {"refrigeration_unit": _to_response(unit)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.get("/refrigeration-units/{unit_id}")
def get_unit(
    unit_id: str,
    current_user: models.User = Depends(require_permission("refrigeration.view")),
    db: Session = Depends(get_db),
):
    try:
        return {"refrigeration_unit": _to_response(EntityStore(db).get_refrigeration_unit(unit_id))}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.patch("/refrigeration-units/{unit_id}")
def update_unit(
    unit_id: str,
    payload: RefrigerationUnitUpdate,
    current_user: models.User = Depends(require_permission("refrigeration.edit")),
    db: Session = Depends(get_db),
):
    try:
        unit = EntityStore(db).update_refrigeration_unit(unit_id, payload.model_dump(exclude_unset=True))
        return {"refrigeration_unit": _to_response(unit)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/refrigeration-units/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_unit(
    unit_id: str,
    current_user: models.User = Depends(require_permission("refrigeration.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_refrigeration_unit(unit_id)
    except FleetError as exc:
        raise http_error(exc) from exc
