import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fleet.api.errors import http_error, internal_error, storage_error
from fleet.core.errors import FleetError, PartialCommitError
from fleet.core.security import get_current_user, require_permission
from fleet.db import models
from fleet.db.session import get_db
from fleet.sales.schemas import (
    RefrigerationSaleForm,
    RefrigerationSaleRequest,
    VehicleSaleForm,
    VehicleSaleRequest,
)
from fleet.sales.workflow import (
    AwaitingRefrigerationDecision,
    CollectingRefrigerationSale,
    SaleWorkflow,
    sell_refrigeration_unit,
)
from fleet.services.storage import PendingAttachments, StorageClient, StorageError
from fleet.store import EntityStore

logger = logging.getLogger("fleet.sales")

router = APIRouter(tags=["Vendas"])

VEHICLE_DOCUMENTS = ("payment_receipt", "transfer_document", "sale_invoice")
UNIT_DOCUMENTS = ("payment_receipt", "sale_invoice")


def _attach_all(pending: PendingAttachments, payload, kinds) -> dict[str, str]:
    documents = {}
    for kind in kinds:
        document = getattr(payload, kind)
        if document is not None:
            documents[kind] = pending.attach(kind, document.model_dump())
    return documents


def _vehicle_summary(vehicle: models.Vehicle) -> dict:
    return {
        "id": vehicle.id,
        "plate": vehicle.plate,
        "status": vehicle.status,
        "previous_status": vehicle.previous_status,
        "current_km": vehicle.current_km,
        "driver_id": vehicle.driver_id,
        "sale_info": vehicle.sale_info,
    }


def _unit_summary(unit: models.RefrigerationUnit) -> dict:
    return {
        "id": unit.id,
        "vehicle_id": unit.vehicle_id,
        "status": unit.status,
        "previous_status": unit.previous_status,
        "usage_hours": unit.usage_hours,
        "sale_info": unit.sale_info,
    }


def _run_vehicle_sale(workflow: SaleWorkflow, vehicle_id: str, payload: VehicleSaleRequest, pending: PendingAttachments):
    form = VehicleSaleForm(
        buyer_name=payload.buyer_name,
        buyer_tax_id=payload.buyer_tax_id,
        sale_date=payload.sale_date,
        sale_km=payload.sale_km,
        sale_price=payload.sale_price,
        documents=_attach_all(pending, payload, VEHICLE_DOCUMENTS),
    )
    state = workflow.start_sale(vehicle_id, form)
    if isinstance(state, AwaitingRefrigerationDecision) and payload.refrigeration_decision is not None:
        state = workflow.answer_refrigeration_decision(payload.refrigeration_decision)
    if isinstance(state, CollectingRefrigerationSale) and payload.refrigeration_sale is not None:
        unit_payload = payload.refrigeration_sale
        state = workflow.submit_refrigeration_sale(
            RefrigerationSaleForm(
                usage_hours=unit_payload.usage_hours,
                sale_price=unit_payload.sale_price,
                buyer_name=unit_payload.buyer_name,
                buyer_tax_id=unit_payload.buyer_tax_id,
                sale_date=unit_payload.sale_date,
                documents=_attach_all(pending, unit_payload, UNIT_DOCUMENTS),
            )
        )
    return state


@router.post("/vehicles/{vehicle_id}/sale")
def sell_vehicle(
    vehicle_id: str,
    payload: VehicleSaleRequest,
    current_user: models.User = Depends(require_permission("vehicles.edit")),
    db: Session = Depends(get_db),
):
    """
    Runs the whole sale dialog in one request.

    Without ``refrigeration_decision`` a vehicle carrying a refrigeration
    unit stops at ``awaiting_refrigeration_decision`` and nothing is
    written; the client asks the question and resubmits with the answer
    (and ``refrigeration_sale`` when the answer is yes).
    """
    store = EntityStore(db)
    workflow = SaleWorkflow(store)
    try:
        with PendingAttachments(StorageClient(), f"vehicles/{vehicle_id}/sale") as pending:
            try:
                state = _run_vehicle_sale(workflow, vehicle_id, payload, pending)
            except PartialCommitError:
                pending.keep()
                raise
            if state.writes:
                pending.keep()

        response = {
            "state": state.name,
            "writes": [write.label for write in state.writes],
            "vehicle": _vehicle_summary(store.get_vehicle(vehicle_id)),
            "refrigeration_unit": None,
        }
        unit_id = getattr(state, "unit_id", None)
        if unit_id:
            response["refrigeration_unit"] = _unit_summary(store.get_refrigeration_unit(unit_id))
        if state.writes:
            store.record_audit(
                current_user,
                "vehicle.sold",
                "vehicle",
                vehicle_id,
                {"writes": response["writes"], "sale_price": response["vehicle"]["sale_info"]["sale_price"]},
            )
        return response
    except HTTPException:
        raise
    except StorageError as exc:
        raise storage_error(exc) from exc
    except PartialCommitError as exc:
        logger.error("venda parcial vehicle_id=%s detalhe=%s", vehicle_id, exc.to_dict())
        raise http_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc
    except Exception:
        return internal_error("Erro ao registrar venda de veiculo")


@router.delete("/vehicles/{vehicle_id}/sale")
def reverse_vehicle_sale(
    vehicle_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = EntityStore(db)
    try:
        vehicle = SaleWorkflow(store).reverse_sale(vehicle_id, current_user)
    except FleetError as exc:
        raise http_error(exc) from exc
    store.record_audit(current_user, "vehicle.sale_reversed", "vehicle", vehicle.id)
    return {"vehicle": _vehicle_summary(vehicle)}


@router.post("/refrigeration-units/{unit_id}/sale")
def sell_unit(
    unit_id: str,
    payload: RefrigerationSaleRequest,
    current_user: models.User = Depends(require_permission("refrigeration.edit")),
    db: Session = Depends(get_db),
):
    store = EntityStore(db)
    try:
        with PendingAttachments(StorageClient(), f"refrigeration/{unit_id}/sale") as pending:
            documents = _attach_all(pending, payload, UNIT_DOCUMENTS)
            form = RefrigerationSaleForm(
                usage_hours=payload.usage_hours,
                sale_price=payload.sale_price,
                buyer_name=payload.buyer_name,
                buyer_tax_id=payload.buyer_tax_id,
                sale_date=payload.sale_date,
                documents=documents,
            )
            unit = sell_refrigeration_unit(store, unit_id, form)
            pending.keep()
    except StorageError as exc:
        raise storage_error(exc) from exc
    except FleetError as exc:
        raise http_error(exc) from exc
    store.record_audit(current_user, "refrigeration.sold", "refrigeration_unit", unit.id)
    return {"refrigeration_unit": _unit_summary(unit)}


@router.delete("/refrigeration-units/{unit_id}/sale")
def reverse_unit_sale(
    unit_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = EntityStore(db)
    try:
        unit = SaleWorkflow(store).reverse_refrigeration_sale(unit_id, current_user)
    except FleetError as exc:
        raise http_error(exc) from exc
    store.record_audit(current_user, "refrigeration.sale_reversed", "refrigeration_unit", unit.id)
    return {"refrigeration_unit": _unit_summary(unit)}
