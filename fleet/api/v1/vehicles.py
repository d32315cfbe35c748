from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from fleet.api.errors import http_error, storage_error
from fleet.core.errors import FleetError
from fleet.core.formatters import parse_currency, parse_integer
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.sales.schemas import DocumentPayload
from fleet.services.storage import PendingAttachments, StorageClient, StorageError
from fleet.store import EntityStore

router = APIRouter(tags=["Veiculos"])


class VehicleCreate(BaseModel):
    plate: str = Field(..., min_length=7)
    vehicle_type: str
    axles: int = 2
    brand: str | None = None
    model: str | None = None
    chassis: str | None = None
    renavam: str | None = None
    manufacturing_year: int | None = None
    model_year: int | None = None
    color: str | None = None
    status: str | None = None
    purchase_km: int = 0
    fuel_type: str | None = None
    purchase_date: date | None = None
    purchase_value: float | None = None
    company_id: str | None = None
    driver_id: str | None = None
    crlv_document: DocumentPayload | None = None

    @field_validator("purchase_km", mode="before")
    @classmethod
    def parse_km(cls, value):
        return parse_integer(value)

    @field_validator("purchase_value", mode="before")
    @classmethod
    def parse_value(cls, value):
        return float(parse_currency(value)) if value is not None else None


class VehicleUpdate(BaseModel):
    plate: str | None = None
    vehicle_type: str | None = None
    axles: int | None = None
    brand: str | None = None
    model: str | None = None
    chassis: str | None = None
    renavam: str | None = None
    manufacturing_year: int | None = None
    model_year: int | None = None
    color: str | None = None
    status: str | None = None
    current_km: int | None = None
    fuel_type: str | None = None
    purchase_date: date | None = None
    purchase_value: float | None = None
    company_id: str | None = None
    driver_id: str | None = None
    crlv_document: DocumentPayload | None = None

    model_config = {"extra": "forbid"}

    @field_validator("current_km", mode="before")
    @classmethod
    def parse_km(cls, value):
        return parse_integer(value) if value is not None else None


def _to_response(vehicle: models.Vehicle) -> dict:
    return {
        "id": vehicle.id,
        "plate": vehicle.plate,
        "vehicle_type": vehicle.vehicle_type,
        "axles": vehicle.axles,
        "brand": vehicle.brand,
        "model": vehicle.model,
        "chassis": vehicle.chassis,
        "renavam": vehicle.renavam,
        "manufacturing_year": vehicle.manufacturing_year,
        "model_year": vehicle.model_year,
        "color": vehicle.color,
        "status": vehicle.status,
        "previous_status": vehicle.previous_status,
        "purchase_km": vehicle.purchase_km,
        "current_km": vehicle.current_km,
        "fuel_type": vehicle.fuel_type,
        "purchase_date": vehicle.purchase_date.isoformat() if vehicle.purchase_date else None,
        "purchase_value": vehicle.purchase_value,
        "company_id": vehicle.company_id,
        "driver_id": vehicle.driver_id,
        "has_composition": vehicle.has_composition,
        "composition_plates": list(vehicle.composition_plates or []),
        "sale_info": vehicle.sale_info,
        "crlv_document_url": vehicle.crlv_document_url,
        "created_at": vehicle.created_at.isoformat(),
        "updated_at": vehicle.updated_at.isoformat(),
    }


@router.get("/vehicles")
def list_vehicles(
    status_filter: str | None = Query(default=None, alias="status"),
    current_user: models.User = Depends(require_permission("vehicles.view")),
    db: Session = Depends(get_db),
):
    return {"vehicles": [_to_response(v) for v in EntityStore(db).list_vehicles(status_filter)]}


@router.post("/vehicles", status_code=status.HTTP_201_CREATED)
def create_vehicle(
    payload: VehicleCreate,
    current_user: models.User = Depends(require_permission("vehicles.edit")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"crlv_document"})
    try:
        with PendingAttachments(StorageClient(), "vehicles") as pending:
            document = payload.crlv_document.model_dump() if payload.crlv_document else None
            data["crlv_document_url"] = pending.attach("crlv", document)
            vehicle = EntityStore(db).create_vehicle(data)
            pending.keep()
        return {"vehicle": _to_response(vehicle)}
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc


@router.get("/vehicles/{vehicle_id}")
def get_vehicle(
    vehicle_id: str,
    current_user: models.User = Depends(require_permission("vehicles.view")),
    db: Session = Depends(get_db),
):
    try:
        return {"vehicle": _to_response(EntityStore(db).get_vehicle(vehicle_id))}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.patch("/vehicles/{vehicle_id}")
def update_vehicle(
    vehicle_id: str,
    payload: VehicleUpdate,
    current_user: models.User = Depends(require_permission("vehicles.edit")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude_unset=True, exclude={"crlv_document"})
    try:
        with PendingAttachments(StorageClient(), f"vehicles/{vehicle_id}") as pending:
            if payload.crlv_document:
                data["crlv_document_url"] = pending.attach("crlv", payload.crlv_document.model_dump())
            vehicle = EntityStore(db).update_vehicle(vehicle_id, data)
            pending.keep()
        return {"vehicle": _to_response(vehicle)}
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(
    vehicle_id: str,
    current_user: models.User = Depends(require_permission("vehicles.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_vehicle(vehicle_id)
    except FleetError as exc:
        raise http_error(exc) from exc
