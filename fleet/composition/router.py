from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fleet.api.errors import http_error
from fleet.composition.service import CompositionLinker
from fleet.core.errors import FleetError
from fleet.core.security import require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.store import EntityStore


router = APIRouter(tags=["Composicoes"])


class CompositionAdd(BaseModel):
    trailer_id: str


def _composition_response(linker: CompositionLinker, tractor: models.Vehicle) -> dict:
    return {
        "vehicle_id": tractor.id,
        "plate": tractor.plate,
        "has_composition": tractor.has_composition,
        "composition_plates": list(tractor.composition_plates or []),
        "total_axles": linker.total_axles(tractor.id),
    }


@router.post("/vehicles/{vehicle_id}/compositions", status_code=status.HTTP_201_CREATED)
def add_composition(
    vehicle_id: str,
    payload: CompositionAdd,
    current_user: models.User = Depends(require_permission("vehicles.edit")),
    db: Session = Depends(get_db),
):
    linker = CompositionLinker(EntityStore(db))
    try:
        tractor = linker.add_composition(vehicle_id, payload.trailer_id)
        return _composition_response(linker, tractor)
    except FleetError as exc:
        raise http_error(exc) from exc


@router.delete("/vehicles/{vehicle_id}/compositions/{plate}")
def remove_composition(
    vehicle_id: str,
    plate: str,
    current_user: models.User = Depends(require_permission("vehicles.edit")),
    db: Session = Depends(get_db),
):
    linker = CompositionLinker(EntityStore(db))
    try:
        tractor = linker.remove_composition(vehicle_id, plate)
        return _composition_response(linker, tractor)
    except FleetError as exc:
        raise http_error(exc) from exc


@router.get("/vehicles/{vehicle_id}/axles")
def get_axles(
    vehicle_id: str,
    current_user: models.User = Depends(require_permission("vehicles.view")),
    db: Session = Depends(get_db),
):
    linker = CompositionLinker(EntityStore(db))
    try:
        return _composition_response(linker, linker.store.get_vehicle(vehicle_id))
    except FleetError as exc:
        raise http_error(exc) from exc
