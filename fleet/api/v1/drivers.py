from datetime import date

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fleet.api.errors import http_error, storage_error
from fleet.core.errors import FleetError
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.sales.schemas import DocumentPayload
from fleet.services.storage import PendingAttachments, StorageClient, StorageError
from fleet.store import EntityStore

router = APIRouter(tags=["Motoristas"])


class DriverCreate(BaseModel):
    name: str = Field(..., min_length=3)
    cpf: str
    birth_date: date | None = None
    cnh_category: str | None = None
    cnh_validity: date | None = None
    active: bool = True
    cnh_document: DocumentPayload | None = None


class DriverUpdate(BaseModel):
    name: str | None = None
    cpf: str | None = None
    birth_date: date | None = None
    cnh_category: str | None = None
    cnh_validity: date | None = None
    active: bool | None = None
    cnh_document: DocumentPayload | None = None


def _to_response(driver: models.Driver) -> dict:
    return {
        "id": driver.id,
        "name": driver.name,
        "cpf": driver.cpf,
        "birth_date": driver.birth_date.isoformat() if driver.birth_date else None,
        "cnh_category": driver.cnh_category,
        "cnh_validity": driver.cnh_validity.isoformat() if driver.cnh_validity else None,
        "cnh_document_url": driver.cnh_document_url,
        "active": driver.active,
        "created_at": driver.created_at.isoformat(),
    }


@router.get("/drivers")
def list_drivers(
    current_user: models.User = Depends(require_permission("drivers.view")),
    db: Session = Depends(get_db),
):
    return {"drivers": [_to_response(d) for d in EntityStore(db).list_drivers()]}


@router.post("/drivers", status_code=status.HTTP_201_CREATED)
def create_driver(
    payload: DriverCreate,
    current_user: models.User = Depends(require_permission("drivers.edit")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"cnh_document"})
    try:
        with PendingAttachments(StorageClient(), "drivers") as pending:
            document = payload.cnh_document.model_dump() if payload.cnh_document else None
            data["cnh_document_url"] = pending.attach("cnh", document)
            driver = EntityStore(db).create_driver(data)
            pending.keep()
        return {"driver": _to_response(driver)}
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc


@router.patch("/drivers/{driver_id}")
def update_driver(
    driver_id: str,
    payload: DriverUpdate,
    current_user: models.User = Depends(require_permission("drivers.edit")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude_unset=True, exclude={"cnh_document"})
    try:
        with PendingAttachments(StorageClient(), f"drivers/{driver_id}") as pending:
            if payload.cnh_document:
                data["cnh_document_url"] = pending.attach("cnh", payload.cnh_document.model_dump())
            driver = EntityStore(db).update_driver(driver_id, data)
            pending.keep()
        return {"driver": _to_response(driver)}
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/drivers/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_driver(
    driver_id: str,
    current_user: models.User = Depends(require_permission("drivers.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_driver(driver_id)
    except FleetError as exc:
        raise http_error(exc) from exc
