import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from fleet.api.errors import http_error, internal_error, storage_error
from fleet.core.errors import FleetError
from fleet.core.formatters import parse_direct_decimal, parse_integer
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.refuelings import service
from fleet.sales.schemas import DocumentPayload
from fleet.services.storage import PendingAttachments, StorageClient, StorageError
from fleet.store import EntityStore

router = APIRouter(tags=["Abastecimentos"])


class RefuelingCreate(BaseModel):
    vehicle_id: str | None = None
    refrigeration_unit_id: str | None = None
    supplier_id: str | None = None
    driver_id: str | None = None
    date: datetime.date
    km: int | None = None
    usage_hours: int | None = None
    liters: float
    price_per_liter: float
    fuel_type: str | None = None
    payment_receipt: DocumentPayload | None = None
    fiscal_note: DocumentPayload | None = None

    model_config = {"extra": "forbid"}

    @field_validator("km", "usage_hours", mode="before")
    @classmethod
    def parse_reading(cls, value):
        return parse_integer(value) if value not in (None, "") else None

    @field_validator("liters", "price_per_liter", mode="before")
    @classmethod
    def parse_amount(cls, value):
        return float(parse_direct_decimal(value))


class RefuelingUpdate(BaseModel):
    supplier_id: str | None = None
    driver_id: str | None = None
    date: datetime.date | None = None
    km: int | None = None
    usage_hours: int | None = None
    liters: float | None = None
    price_per_liter: float | None = None
    fuel_type: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("liters", "price_per_liter", mode="before")
    @classmethod
    def parse_amount(cls, value):
        return float(parse_direct_decimal(value)) if value is not None else None


def _to_response(refueling: models.Refueling) -> dict:
    return {
        "id": refueling.id,
        "vehicle_id": refueling.vehicle_id,
        "refrigeration_unit_id": refueling.refrigeration_unit_id,
        "supplier_id": refueling.supplier_id,
        "driver_id": refueling.driver_id,
        "date": refueling.date.isoformat(),
        "km": refueling.km,
        "usage_hours": refueling.usage_hours,
        "liters": refueling.liters,
        "price_per_liter": refueling.price_per_liter,
        "total_value": refueling.total_value,
        "fuel_type": refueling.fuel_type,
        "payment_receipt_url": refueling.payment_receipt_url,
        "fiscal_note_url": refueling.fiscal_note_url,
        "created_at": refueling.created_at.isoformat(),
    }


@router.get("/refuelings")
def list_refuelings(
    vehicle_id: str | None = Query(default=None),
    refrigeration_unit_id: str | None = Query(default=None),
    driver_id: str | None = Query(default=None),
    supplier_id: str | None = Query(default=None),
    start_date: datetime.date | None = Query(default=None),
    end_date: datetime.date | None = Query(default=None),
    current_user: models.User = Depends(require_permission("refuelings.view")),
    db: Session = Depends(get_db),
):
    refuelings = EntityStore(db).list_refuelings(
        vehicle_id=vehicle_id,
        refrigeration_unit_id=refrigeration_unit_id,
        driver_id=driver_id,
        supplier_id=supplier_id,
        start_date=start_date,
        end_date=end_date,
    )
    return {"refuelings": [_to_response(r) for r in refuelings]}


@router.post("/refuelings", status_code=status.HTTP_201_CREATED)
def create_refueling(
    payload: RefuelingCreate,
    current_user: models.User = Depends(require_permission("refuelings.edit")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"payment_receipt", "fiscal_note"})
    try:
        with PendingAttachments(StorageClient(), "refuelings") as pending:
            if payload.payment_receipt:
                data["payment_receipt_url"] = pending.attach("payment_receipt", payload.payment_receipt.model_dump())
            if payload.fiscal_note:
                data["fiscal_note_url"] = pending.attach("fiscal_note", payload.fiscal_note.model_dump())
            refueling = service.register_refueling(EntityStore(db), data)
            pending.keep()
        return {"refueling": _to_response(refueling)}
    except HTTPException:
        raise
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc
    except Exception:
        return internal_error("Erro ao registrar abastecimento")


@router.patch("/refuelings/{refueling_id}")
def update_refueling(
    refueling_id: str,
    payload: RefuelingUpdate,
    current_user: models.User = Depends(require_permission("refuelings.edit")),
    db: Session = Depends(get_db),
):
    try:
        refueling = service.update_refueling(
            EntityStore(db), refueling_id, payload.model_dump(exclude_unset=True)
        )
        return {"refueling": _to_response(refueling)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/refuelings/{refueling_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_refueling(
    refueling_id: str,
    current_user: models.User = Depends(require_permission("refuelings.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_refueling(refueling_id)
    except FleetError as exc:
        raise http_error(exc) from exc
