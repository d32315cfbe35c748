from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fleet.api.errors import http_error
from fleet.core.errors import FleetError
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore

router = APIRouter(tags=["Fornecedores"])


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1)
    fantasy_name: str | None = None
    tax_id: str
    supplier_type: str = "other"
    brand: str | None = None
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    contact_person: str | None = None
    active: bool = True


class SupplierUpdate(BaseModel):
    name: str | None = None
    fantasy_name: str | None = None
    tax_id: str | None = None
    supplier_type: str | None = None
    brand: str | None = None
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    contact_person: str | None = None
    active: bool | None = None


def _to_response(supplier: models.Supplier) -> dict:
    return {
        "id": supplier.id,
        "name": supplier.name,
        "fantasy_name": supplier.fantasy_name,
        "tax_id": supplier.tax_id,
        "supplier_type": supplier.supplier_type,
        "brand": supplier.brand,
        "city": supplier.city,
        "state": supplier.state,
        "phone": supplier.phone,
        "contact_person": supplier.contact_person,
        "active": supplier.active,
        "created_at": supplier.created_at.isoformat(),
    }


@router.get("/suppliers")
def list_suppliers(
    current_user: models.User = Depends(require_permission("suppliers.view")),
    db: Session = Depends(get_db),
):
    return {"suppliers": [_to_response(s) for s in EntityStore(db).list_suppliers()]}


@router.post("/suppliers", status_code=status.HTTP_201_CREATED)
def create_supplier(
    payload: SupplierCreate,
    current_user: models.User = Depends(require_permission("suppliers.edit")),
    db: Session = Depends(get_db),
):
    try:
        return {"supplier": _to_response(EntityStore(db).create_supplier(payload.model_dump()))}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.patch("/suppliers/{supplier_id}")
def update_supplier(
    supplier_id: str,
    payload: SupplierUpdate,
    current_user: models.User = Depends(require_permission("suppliers.edit")),
    db: Session = Depends(get_db),
):
    try:
        supplier = EntityStore(db).update_supplier(supplier_id, payload.model_dump(exclude_unset=True))
        return {"supplier": _to_response(supplier)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/suppliers/{supplier_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_supplier(
    supplier_id: str,
    current_user: models.User = Depends(require_permission("suppliers.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_supplier(supplier_id)
    except FleetError as exc:
        raise http_error(exc) from exc
