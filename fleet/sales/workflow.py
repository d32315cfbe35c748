"""
Vehicle sale workflow.

The dialog is an explicit state machine::

    Collecting --valid, no unit--------------------------> Committed
    Collecting --valid, unit linked--> AwaitingRefrigerationDecision
    AwaitingRefrigerationDecision --no----------------------> Committed
    AwaitingRefrigerationDecision --yes--> CollectingRefrigerationSale
    CollectingRefrigerationSale --valid---------------------> Committed
    (any non-terminal) --cancel-----------------------------> Cancelled

A rejected input raises ``ValidationError`` and leaves the workflow in the
state it was in.  Only the transitions into ``Committed`` write to the
store, and the writes they performed travel on the returned state.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from fleet.composition.service import CompositionLinker
from fleet.core.authorization import ensure_admin
from fleet.core.errors import ValidationError
from fleet.db import models
from fleet.sales.schemas import RefrigerationSaleForm, VehicleSaleForm
from fleet.sales.unit_of_work import SaleUnitOfWork, Write
from fleet.store import EntityStore

logger = logging.getLogger("fleet.sales")

DEFAULT_VEHICLE_RESTORE_STATUS = "active"
DEFAULT_UNIT_RESTORE_STATUS = "maintenance"


@dataclass(frozen=True)
class Collecting:
    vehicle_id: str
    writes: tuple[Write, ...] = ()
    name = "collecting"


@dataclass(frozen=True)
class AwaitingRefrigerationDecision:
    vehicle_id: str
    sale: VehicleSaleForm
    unit_id: str
    writes: tuple[Write, ...] = ()
    name = "awaiting_refrigeration_decision"


@dataclass(frozen=True)
class CollectingRefrigerationSale:
    vehicle_id: str
    sale: VehicleSaleForm
    unit_id: str
    writes: tuple[Write, ...] = ()
    name = "collecting_refrigeration_sale"


@dataclass(frozen=True)
class Committed:
    vehicle_id: str
    unit_id: Optional[str] = None
    unit_sold: bool = False
    writes: tuple[Write, ...] = ()
    name = "committed"


@dataclass(frozen=True)
class Cancelled:
    vehicle_id: Optional[str] = None
    writes: tuple[Write, ...] = ()
    name = "cancelled"


WorkflowState = Union[
    Collecting,
    AwaitingRefrigerationDecision,
    CollectingRefrigerationSale,
    Committed,
    Cancelled,
]

TERMINAL_STATES = (Committed, Cancelled)


def _money(value: Decimal) -> float:
    return float(value)


def _validate_buyer(name: Optional[str], tax_id: Optional[str]) -> None:
    if not name or len(name) < 3:
        raise ValidationError("buyer_name", "Nome do comprador deve ter ao menos 3 caracteres")
    if not tax_id or len(tax_id) < 11:
        raise ValidationError("buyer_tax_id", "CPF/CNPJ do comprador invalido")


def _validate_sale_date(sale_date: date, today: date) -> None:
    if sale_date > today:
        raise ValidationError("sale_date", "Data da venda nao pode ser futura")


def _validate_price(price: Decimal) -> None:
    if price <= 0:
        raise ValidationError("sale_price", "Valor da venda deve ser maior que zero")


def _check_vehicle_sellable(vehicle: models.Vehicle, sale_km: int) -> None:
    if vehicle.status == "sold":
        raise ValidationError("status", "Veiculo ja vendido")
    if sale_km < vehicle.current_km:
        raise ValidationError(
            "sale_km",
            f"KM da venda deve ser maior ou igual ao KM atual do veiculo ({vehicle.current_km})",
        )


def _check_unit_sellable(unit: models.RefrigerationUnit, usage_hours: int) -> None:
    if unit.status == "sold":
        raise ValidationError("status", "Equipamento ja vendido")
    if usage_hours < unit.usage_hours:
        raise ValidationError(
            "usage_hours",
            f"Horas de uso na venda devem ser maiores ou iguais as horas atuais ({unit.usage_hours})",
        )


def _check_unit_mounted(unit: models.RefrigerationUnit, vehicle_id: str) -> None:
    if unit.vehicle_id != vehicle_id:
        raise ValidationError("vehicle_id", "Equipamento nao esta mais vinculado ao veiculo vendido")


def _recheck_unit(store: EntityStore, unit_id: str, vehicle_id: str, usage_hours: Optional[int] = None) -> None:
    unit = store.get_refrigeration_unit(unit_id)
    _check_unit_mounted(unit, vehicle_id)
    if usage_hours is not None:
        _check_unit_sellable(unit, usage_hours)


def _vehicle_sale_info(sale: VehicleSaleForm) -> dict[str, Any]:
    return {
        "buyer_name": sale.buyer_name,
        "buyer_tax_id": sale.buyer_tax_id,
        "sale_date": sale.sale_date.isoformat(),
        "sale_km": sale.sale_km,
        "sale_price": _money(sale.sale_price),
        "documents": dict(sale.documents),
    }


def _unit_sale_info(form: RefrigerationSaleForm, fallback: Optional[VehicleSaleForm] = None) -> dict[str, Any]:
    return {
        "buyer_name": form.buyer_name or (fallback.buyer_name if fallback else None),
        "buyer_tax_id": form.buyer_tax_id or (fallback.buyer_tax_id if fallback else None),
        "sale_date": (form.sale_date or (fallback.sale_date if fallback else date.today())).isoformat(),
        "usage_hours": form.usage_hours,
        "sale_price": _money(form.sale_price),
        "documents": dict(form.documents),
    }


class SaleWorkflow:
    def __init__(self, store: EntityStore, today: Callable[[], date] = date.today) -> None:
        self.store = store
        self.today = today
        self.state: Optional[WorkflowState] = None

    def _require(self, *expected):
        if not isinstance(self.state, expected):
            current = self.state.name if self.state is not None else "none"
            raise ValidationError(None, f"Transicao invalida a partir do estado {current}")
        return self.state

    def _validate_vehicle_sale(self, vehicle: models.Vehicle, sale: VehicleSaleForm) -> None:
        _check_vehicle_sellable(vehicle, sale.sale_km)
        _validate_buyer(sale.buyer_name, sale.buyer_tax_id)
        _validate_price(sale.sale_price)
        _validate_sale_date(sale.sale_date, self.today())
        problems = CompositionLinker(self.store).composition_problems(vehicle)
        if problems:
            raise ValidationError("composition_plates", "; ".join(problems))

    def _vehicle_write(self, vehicle: models.Vehicle, sale: VehicleSaleForm) -> Write:
        return Write(
            "vehicle",
            vehicle.id,
            {
                "status": "sold",
                "previous_status": vehicle.status,
                "current_km": sale.sale_km,
                "sale_info": _vehicle_sale_info(sale),
                "driver_id": None,
            },
        )

    def _commit(self, uow: SaleUnitOfWork, state: Committed) -> Committed:
        writes = uow.commit()
        self.state = Committed(state.vehicle_id, state.unit_id, state.unit_sold, writes)
        return self.state

    def _vehicle_uow(self, vehicle_id: str, sale: VehicleSaleForm) -> SaleUnitOfWork:
        vehicle = self.store.get_vehicle(vehicle_id)
        uow = SaleUnitOfWork(self.store)
        uow.register(
            self._vehicle_write(vehicle, sale),
            lambda store: _check_vehicle_sellable(store.get_vehicle(vehicle_id), sale.sale_km),
        )
        return uow

    def start_sale(self, vehicle_id: str, form: VehicleSaleForm) -> WorkflowState:
        if self.state is None:
            self.state = Collecting(vehicle_id)
        state = self._require(Collecting)
        if state.vehicle_id != vehicle_id:
            raise ValidationError(None, "Fluxo de venda iniciado para outro veiculo")

        vehicle = self.store.get_vehicle(vehicle_id)
        self._validate_vehicle_sale(vehicle, form)

        unit = self.store.get_refrigeration_unit_by_vehicle(vehicle.id)
        if unit is None:
            logger.info("venda de veiculo sem equipamento vehicle_id=%s", vehicle.id)
            return self._commit(self._vehicle_uow(vehicle.id, form), Committed(vehicle.id))

        self.state = AwaitingRefrigerationDecision(vehicle.id, form, unit.id)
        return self.state

    def answer_refrigeration_decision(self, sell_refrigeration: bool) -> WorkflowState:
        state = self._require(AwaitingRefrigerationDecision)
        if sell_refrigeration:
            self.state = CollectingRefrigerationSale(state.vehicle_id, state.sale, state.unit_id)
            return self.state

        uow = self._vehicle_uow(state.vehicle_id, state.sale)
        uow.register(
            Write("refrigeration_unit", state.unit_id, {"vehicle_id": None}),
            lambda store: _recheck_unit(store, state.unit_id, state.vehicle_id),
        )
        logger.info(
            "venda de veiculo com equipamento desvinculado vehicle_id=%s unit_id=%s",
            state.vehicle_id,
            state.unit_id,
        )
        return self._commit(uow, Committed(state.vehicle_id, state.unit_id, unit_sold=False))

    def submit_refrigeration_sale(self, form: RefrigerationSaleForm) -> WorkflowState:
        state = self._require(CollectingRefrigerationSale)
        unit = self.store.get_refrigeration_unit(state.unit_id)
        _check_unit_mounted(unit, state.vehicle_id)
        _check_unit_sellable(unit, form.usage_hours)
        _validate_price(form.sale_price)
        if form.sale_date is not None:
            _validate_sale_date(form.sale_date, self.today())

        uow = self._vehicle_uow(state.vehicle_id, state.sale)
        uow.register(
            Write(
                "refrigeration_unit",
                unit.id,
                {
                    "status": "sold",
                    "previous_status": unit.status,
                    "usage_hours": form.usage_hours,
                    "sale_info": _unit_sale_info(form, state.sale),
                    "vehicle_id": None,
                },
            ),
            lambda store: _recheck_unit(store, unit.id, state.vehicle_id, form.usage_hours),
        )
        logger.info("venda de veiculo e equipamento vehicle_id=%s unit_id=%s", state.vehicle_id, unit.id)
        return self._commit(uow, Committed(state.vehicle_id, unit.id, unit_sold=True))

    def cancel(self) -> WorkflowState:
        if isinstance(self.state, Cancelled):
            return self.state
        if isinstance(self.state, Committed):
            raise ValidationError(None, "Venda ja gravada nao pode ser cancelada")
        vehicle_id = self.state.vehicle_id if self.state is not None else None
        self.state = Cancelled(vehicle_id)
        return self.state

    def reverse_sale(self, vehicle_id: str, actor: Optional[models.User]) -> models.Vehicle:
        ensure_admin(actor, "estornar venda de veiculo")
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle.status != "sold":
            raise ValidationError("status", "Veiculo nao esta vendido")
        restored = vehicle.previous_status or DEFAULT_VEHICLE_RESTORE_STATUS
        vehicle = self.store.update_vehicle(
            vehicle.id,
            {"status": restored, "previous_status": None, "sale_info": None},
            sale_transition=True,
        )
        logger.info("venda estornada vehicle_id=%s status=%s actor=%s", vehicle.id, restored, actor.login)
        return vehicle

    def reverse_refrigeration_sale(self, unit_id: str, actor: Optional[models.User]) -> models.RefrigerationUnit:
        ensure_admin(actor, "estornar venda de equipamento")
        unit = self.store.get_refrigeration_unit(unit_id)
        if unit.status != "sold":
            raise ValidationError("status", "Equipamento nao esta vendido")
        restored = unit.previous_status or DEFAULT_UNIT_RESTORE_STATUS
        unit = self.store.update_refrigeration_unit(
            unit.id,
            {"status": restored, "previous_status": None, "sale_info": None},
            sale_transition=True,
        )
        logger.info("venda de equipamento estornada unit_id=%s status=%s actor=%s", unit.id, restored, actor.login)
        return unit


def sell_refrigeration_unit(
    store: EntityStore,
    unit_id: str,
    form: RefrigerationSaleForm,
    today: Callable[[], date] = date.today,
) -> models.RefrigerationUnit:
    """Sell a refrigeration unit on its own, detaching it from its vehicle."""
    unit = store.get_refrigeration_unit(unit_id)
    _check_unit_sellable(unit, form.usage_hours)
    _validate_buyer(form.buyer_name, form.buyer_tax_id)
    _validate_price(form.sale_price)
    if form.sale_date is None:
        raise ValidationError("sale_date", "Data da venda obrigatoria")
    _validate_sale_date(form.sale_date, today())

    uow = SaleUnitOfWork(store)
    uow.register(
        Write(
            "refrigeration_unit",
            unit.id,
            {
                "status": "sold",
                "previous_status": unit.status,
                "usage_hours": form.usage_hours,
                "sale_info": _unit_sale_info(form),
                "vehicle_id": None,
            },
        ),
        lambda s: _check_unit_sellable(s.get_refrigeration_unit(unit.id), form.usage_hours),
    )
    uow.commit()
    logger.info("equipamento vendido unit_id=%s", unit.id)
    return store.get_refrigeration_unit(unit.id)
