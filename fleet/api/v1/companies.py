from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fleet.api.errors import http_error, internal_error
from fleet.core.errors import FleetError
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore

router = APIRouter(tags=["Empresas"])


class CompanyCreate(BaseModel):
    company_type: str
    name: str = Field(..., min_length=1)
    cnpj: str
    city: str | None = None
    state: str | None = None
    matriz_id: str | None = None
    active: bool = True


class CompanyUpdate(BaseModel):
    company_type: str | None = None
    name: str | None = None
    cnpj: str | None = None
    city: str | None = None
    state: str | None = None
    matriz_id: str | None = None
    active: bool | None = None


class CompanyResponse(BaseModel):
    id: str
    company_type: str
    name: str
    cnpj: str
    city: str | None = None
    state: str | None = None
    matriz_id: str | None = None
    active: bool
    created_at: str
    updated_at: str


def _to_response(company: models.Company) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        company_type=company.company_type,
        name=company.name,
        cnpj=company.cnpj,
        city=company.city,
        state=company.state,
        matriz_id=company.matriz_id,
        active=company.active,
        created_at=company.created_at.isoformat(),
        updated_at=company.updated_at.isoformat(),
    )


@router.get("/companies")
def list_companies(
    current_user: models.User = Depends(require_permission("companies.view")),
    db: Session = Depends(get_db),
):
    return {"companies": [_to_response(c) for c in EntityStore(db).list_companies()]}


@router.post("/companies", status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    current_user: models.User = Depends(require_permission("companies.edit")),
    db: Session = Depends(get_db),
):
    try:
        company = EntityStore(db).create_company(payload.model_dump())
        return {"company": _to_response(company)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.get("/companies/{company_id}")
def get_company(
    company_id: str,
    current_user: models.User = Depends(require_permission("companies.view")),
    db: Session = Depends(get_db),
):
    try:
        return {"company": _to_response(EntityStore(db).get_company(company_id))}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.patch("/companies/{company_id}")
def update_company(
    company_id: str,
    payload: CompanyUpdate,
    current_user: models.User = Depends(require_permission("companies.edit")),
    db: Session = Depends(get_db),
):
    try:
        company = EntityStore(db).update_company(company_id, payload.model_dump(exclude_unset=True))
        return {"company": _to_response(company)}
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/companies/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(
    company_id: str,
    current_user: models.User = Depends(require_permission("companies.delete")),
    db: Session = Depends(get_db),
):
    try:
        EntityStore(db).delete_company(company_id)
    except HTTPException:
        raise
    except FleetError as exc:
        raise http_error(exc) from exc
    except Exception:
        return internal_error("Erro ao excluir empresa")
