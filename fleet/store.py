"""
Record store for the fleet entities.

Every write commits on its own: there is no transaction spanning two
records, so callers that need several writes (the sale workflow, the
refueling propagation) apply them one by one and deal with a failure in the
middle themselves.  Per-record invariants live here: odometer and
horimeter readings never go backwards, plates are unique and uppercase, a
sold vehicle is frozen outside of the sale transitions.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from fleet.core.errors import InUse, NotFound, ValidationError, VehicleSold
from fleet.core.formatters import normalize_plate, only_digits
from fleet.db import models

logger = logging.getLogger("fleet.store")

EDITABLE_STATUSES = ("active", "maintenance", "inactive", "defective")
COMPANY_TYPES = ("matriz", "filial")
SUPPLIER_TYPES = (
    "gas_station",
    "workshop",
    "dealer",
    "parts_store",
    "tire_store",
    "refrigeration_equipment",
    "other",
)
REFRIGERATION_TYPES = ("freezer", "cooled", "climatized")

VEHICLE_PROTECTED_FIELDS = {"id", "composition_plates", "has_composition", "sale_info", "previous_status"}
UNIT_PROTECTED_FIELDS = {"id", "sale_info", "previous_status"}


class EntityStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self, *records) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        for record in records:
            self.db.refresh(record)

    def _get(self, model, record_id: str, label: str):
        record = self.db.query(model).filter(model.id == record_id).first()
        if not record:
            raise NotFound(f"{label} nao encontrado")
        return record

    # Vehicles

    def get_vehicle(self, vehicle_id: str) -> models.Vehicle:
        return self._get(models.Vehicle, vehicle_id, "Veiculo")

    def get_vehicle_by_plate(self, plate: str) -> Optional[models.Vehicle]:
        return (
            self.db.query(models.Vehicle)
            .filter(models.Vehicle.plate == normalize_plate(plate))
            .first()
        )

    def list_vehicles(self, status: Optional[str] = None) -> list[models.Vehicle]:
        query = self.db.query(models.Vehicle)
        if status:
            query = query.filter(models.Vehicle.status == status)
        return query.order_by(models.Vehicle.plate.asc()).all()

    def list_tractors_with_composition(self) -> list[models.Vehicle]:
        return (
            self.db.query(models.Vehicle)
            .filter(models.Vehicle.has_composition.is_(True))
            .all()
        )

    def _check_plate(self, plate: str, vehicle_id: Optional[str] = None) -> str:
        normalized = normalize_plate(plate)
        if len(normalized) != 7:
            raise ValidationError("plate", "Placa invalida")
        existing = self.get_vehicle_by_plate(normalized)
        if existing and existing.id != vehicle_id:
            raise ValidationError("plate", "Placa ja cadastrada")
        return normalized

    def _check_driver(self, vehicle_type: str, driver_id: Optional[str]) -> None:
        if not driver_id:
            return
        if vehicle_type in models.TRAILER_TYPES:
            raise ValidationError("driver_id", "Reboques nao possuem motorista vinculado")
        driver = self.db.query(models.Driver).filter(models.Driver.id == driver_id).first()
        if not driver or not driver.active:
            raise ValidationError("driver_id", "Motorista nao encontrado ou inativo")

    def create_vehicle(self, data: dict[str, Any]) -> models.Vehicle:
        payload = {k: v for k, v in data.items() if k not in VEHICLE_PROTECTED_FIELDS}
        payload["plate"] = self._check_plate(payload.get("plate", ""))
        if payload.get("vehicle_type") not in models.VEHICLE_TYPES:
            raise ValidationError("vehicle_type", "Tipo de veiculo invalido")
        status = payload.get("status") or "active"
        if status not in EDITABLE_STATUSES:
            raise ValidationError("status", "Status invalido para cadastro")
        payload["status"] = status
        if int(payload.get("axles") or 0) < 1:
            raise ValidationError("axles", "Quantidade de eixos deve ser maior que zero")
        purchase_km = int(payload.get("purchase_km") or 0)
        if purchase_km < 0:
            raise ValidationError("purchase_km", "Quilometragem deve ser positiva")
        payload["purchase_km"] = purchase_km
        payload["current_km"] = max(purchase_km, int(payload.get("current_km") or 0))
        self._check_driver(payload["vehicle_type"], payload.get("driver_id"))
        vehicle = models.Vehicle(composition_plates=[], has_composition=False, **payload)
        self.db.add(vehicle)
        self._commit(vehicle)
        logger.info("veiculo criado id=%s plate=%s", vehicle.id, vehicle.plate)
        return vehicle

    def update_vehicle(
        self,
        vehicle_id: str,
        partial: dict[str, Any],
        sale_transition: bool = False,
    ) -> models.Vehicle:
        """
        Apply ``partial`` to a vehicle.

        ``sale_transition`` is reserved for the sale workflow: it is the only
        way to write ``status="sold"``, ``sale_info`` and ``previous_status``
        and the only way to touch a vehicle that is already sold.
        """
        vehicle = self.get_vehicle(vehicle_id)
        changes = dict(partial)
        if not sale_transition:
            if vehicle.status == "sold":
                raise VehicleSold("Veiculo vendido nao pode ser alterado")
            blocked = VEHICLE_PROTECTED_FIELDS.intersection(changes)
            if blocked:
                raise ValidationError(sorted(blocked)[0], "Campo nao pode ser alterado diretamente")
            if "status" in changes and changes["status"] not in EDITABLE_STATUSES:
                raise ValidationError("status", "Status invalido")

        if "current_km" in changes:
            new_km = int(changes["current_km"])
            if new_km < vehicle.current_km:
                raise ValidationError(
                    "current_km",
                    f"KM deve ser maior ou igual ao KM atual do veiculo ({vehicle.current_km})",
                )
        if "plate" in changes:
            changes["plate"] = self._check_plate(changes["plate"], vehicle.id)
        if "vehicle_type" in changes:
            if changes["vehicle_type"] not in models.VEHICLE_TYPES:
                raise ValidationError("vehicle_type", "Tipo de veiculo invalido")
            if vehicle.composition_plates and changes["vehicle_type"] not in models.TRACTOR_TYPES:
                raise ValidationError("vehicle_type", "Veiculo com composicao deve ser de tracao")
        if "axles" in changes and int(changes["axles"]) < 1:
            raise ValidationError("axles", "Quantidade de eixos deve ser maior que zero")
        if changes.get("driver_id"):
            self._check_driver(changes.get("vehicle_type", vehicle.vehicle_type), changes["driver_id"])

        for field, value in changes.items():
            setattr(vehicle, field, value)
        self._commit(vehicle)
        return vehicle

    def set_composition(self, vehicle_id: str, plates: Iterable[str]) -> models.Vehicle:
        vehicle = self.get_vehicle(vehicle_id)
        vehicle.composition_plates = list(plates)
        vehicle.has_composition = bool(vehicle.composition_plates)
        self._commit(vehicle)
        return vehicle

    def delete_vehicle(self, vehicle_id: str) -> None:
        vehicle = self.get_vehicle(vehicle_id)
        if vehicle.composition_plates:
            raise InUse("Remova as composicoes antes de excluir o veiculo")
        linked_to = self.find_tractor_for_plate(vehicle.plate)
        if linked_to:
            raise InUse(f"Veiculo vinculado a composicao de {linked_to.plate}")
        has_refuelings = (
            self.db.query(models.Refueling.id)
            .filter(models.Refueling.vehicle_id == vehicle.id)
            .first()
        )
        if has_refuelings:
            raise InUse("Veiculo possui abastecimentos registrados")
        for unit in (
            self.db.query(models.RefrigerationUnit)
            .filter(models.RefrigerationUnit.vehicle_id == vehicle.id)
            .all()
        ):
            unit.vehicle_id = None
        self.db.delete(vehicle)
        self._commit()

    def find_tractor_for_plate(self, plate: str, exclude_id: Optional[str] = None) -> Optional[models.Vehicle]:
        normalized = normalize_plate(plate)
        for tractor in self.list_tractors_with_composition():
            if tractor.id == exclude_id:
                continue
            if normalized in (tractor.composition_plates or []):
                return tractor
        return None

    # Refrigeration units

    def get_refrigeration_unit(self, unit_id: str) -> models.RefrigerationUnit:
        return self._get(models.RefrigerationUnit, unit_id, "Equipamento de refrigeracao")

    def get_refrigeration_unit_by_vehicle(self, vehicle_id: str) -> Optional[models.RefrigerationUnit]:
        return (
            self.db.query(models.RefrigerationUnit)
            .filter(
                models.RefrigerationUnit.vehicle_id == vehicle_id,
                models.RefrigerationUnit.status != "sold",
            )
            .first()
        )

    def list_refrigeration_units(self, status: Optional[str] = None) -> list[models.RefrigerationUnit]:
        query = self.db.query(models.RefrigerationUnit)
        if status:
            query = query.filter(models.RefrigerationUnit.status == status)
        return query.order_by(models.RefrigerationUnit.created_at.asc()).all()

    def _check_mount(self, vehicle_id: Optional[str], unit_id: Optional[str] = None) -> None:
        if not vehicle_id:
            return
        vehicle = self.get_vehicle(vehicle_id)
        if vehicle.status == "sold":
            raise ValidationError("vehicle_id", "Veiculo vendido nao pode receber equipamento")
        current = self.get_refrigeration_unit_by_vehicle(vehicle_id)
        if current and current.id != unit_id:
            raise ValidationError("vehicle_id", "Veiculo ja possui equipamento de refrigeracao")

    def create_refrigeration_unit(self, data: dict[str, Any]) -> models.RefrigerationUnit:
        payload = {k: v for k, v in data.items() if k not in UNIT_PROTECTED_FIELDS}
        status = payload.get("status") or "active"
        if status not in EDITABLE_STATUSES:
            raise ValidationError("status", "Status invalido para cadastro")
        payload["status"] = status
        if payload.get("unit_type") and payload["unit_type"] not in REFRIGERATION_TYPES:
            raise ValidationError("unit_type", "Tipo de refrigeracao invalido")
        if int(payload.get("usage_hours") or 0) < 0:
            raise ValidationError("usage_hours", "Horas de uso devem ser positivas")
        self._check_mount(payload.get("vehicle_id"))
        unit = models.RefrigerationUnit(**payload)
        self.db.add(unit)
        self._commit(unit)
        logger.info("equipamento criado id=%s vehicle_id=%s", unit.id, unit.vehicle_id)
        return unit

    def update_refrigeration_unit(
        self,
        unit_id: str,
        partial: dict[str, Any],
        sale_transition: bool = False,
    ) -> models.RefrigerationUnit:
        unit = self.get_refrigeration_unit(unit_id)
        changes = dict(partial)
        if not sale_transition:
            if unit.status == "sold":
                raise ValidationError("status", "Equipamento vendido nao pode ser alterado")
            blocked = UNIT_PROTECTED_FIELDS.intersection(changes)
            if blocked:
                raise ValidationError(sorted(blocked)[0], "Campo nao pode ser alterado diretamente")
            if "status" in changes and changes["status"] not in EDITABLE_STATUSES:
                raise ValidationError("status", "Status invalido")
            if changes.get("vehicle_id"):
                self._check_mount(changes["vehicle_id"], unit.id)
        if "usage_hours" in changes:
            new_hours = int(changes["usage_hours"])
            if new_hours < unit.usage_hours:
                raise ValidationError(
                    "usage_hours",
                    f"Horas de uso devem ser maiores ou iguais as horas atuais ({unit.usage_hours})",
                )
        for field, value in changes.items():
            setattr(unit, field, value)
        self._commit(unit)
        return unit

    def delete_refrigeration_unit(self, unit_id: str) -> None:
        unit = self.get_refrigeration_unit(unit_id)
        has_refuelings = (
            self.db.query(models.Refueling.id)
            .filter(models.Refueling.refrigeration_unit_id == unit.id)
            .first()
        )
        if has_refuelings:
            raise InUse("Equipamento possui abastecimentos registrados")
        self.db.delete(unit)
        self._commit()

    # Drivers

    def get_driver(self, driver_id: str) -> models.Driver:
        return self._get(models.Driver, driver_id, "Motorista")

    def list_drivers(self) -> list[models.Driver]:
        return self.db.query(models.Driver).order_by(models.Driver.name.asc()).all()

    def _check_cpf(self, cpf: str, driver_id: Optional[str] = None) -> str:
        digits = only_digits(cpf)
        if len(digits) != 11:
            raise ValidationError("cpf", "CPF invalido")
        existing = self.db.query(models.Driver).filter(models.Driver.cpf == digits).first()
        if existing and existing.id != driver_id:
            raise ValidationError("cpf", "CPF ja cadastrado")
        return digits

    def create_driver(self, data: dict[str, Any]) -> models.Driver:
        payload = dict(data)
        payload["cpf"] = self._check_cpf(payload.get("cpf", ""))
        driver = models.Driver(**payload)
        self.db.add(driver)
        self._commit(driver)
        return driver

    def update_driver(self, driver_id: str, partial: dict[str, Any]) -> models.Driver:
        driver = self.get_driver(driver_id)
        changes = dict(partial)
        if "cpf" in changes:
            changes["cpf"] = self._check_cpf(changes["cpf"], driver.id)
        for field, value in changes.items():
            setattr(driver, field, value)
        if changes.get("active") is False:
            assigned = (
                self.db.query(models.Vehicle)
                .filter(models.Vehicle.driver_id == driver.id, models.Vehicle.status != "sold")
                .all()
            )
            for vehicle in assigned:
                vehicle.driver_id = None
            if assigned:
                logger.info("motorista inativado driver_id=%s veiculos_desvinculados=%s", driver.id, len(assigned))
        self._commit(driver)
        return driver

    def delete_driver(self, driver_id: str) -> None:
        driver = self.get_driver(driver_id)
        assigned = (
            self.db.query(models.Vehicle)
            .filter(models.Vehicle.driver_id == driver.id)
            .first()
        )
        if assigned:
            raise InUse(f"Motorista vinculado ao veiculo {assigned.plate}")
        self.db.delete(driver)
        self._commit()

    # Suppliers

    def get_supplier(self, supplier_id: str) -> models.Supplier:
        return self._get(models.Supplier, supplier_id, "Fornecedor")

    def list_suppliers(self) -> list[models.Supplier]:
        return self.db.query(models.Supplier).order_by(models.Supplier.name.asc()).all()

    def _check_tax_id(self, tax_id: str, supplier_id: Optional[str] = None) -> str:
        digits = only_digits(tax_id)
        if len(digits) not in (11, 14):
            raise ValidationError("tax_id", "CPF/CNPJ invalido")
        existing = self.db.query(models.Supplier).filter(models.Supplier.tax_id == digits).first()
        if existing and existing.id != supplier_id:
            raise ValidationError("tax_id", "CPF/CNPJ ja cadastrado")
        return digits

    def create_supplier(self, data: dict[str, Any]) -> models.Supplier:
        payload = dict(data)
        payload["tax_id"] = self._check_tax_id(payload.get("tax_id", ""))
        if payload.get("supplier_type", "other") not in SUPPLIER_TYPES:
            raise ValidationError("supplier_type", "Tipo de fornecedor invalido")
        supplier = models.Supplier(**payload)
        self.db.add(supplier)
        self._commit(supplier)
        return supplier

    def update_supplier(self, supplier_id: str, partial: dict[str, Any]) -> models.Supplier:
        supplier = self.get_supplier(supplier_id)
        changes = dict(partial)
        if "tax_id" in changes:
            changes["tax_id"] = self._check_tax_id(changes["tax_id"], supplier.id)
        if "supplier_type" in changes and changes["supplier_type"] not in SUPPLIER_TYPES:
            raise ValidationError("supplier_type", "Tipo de fornecedor invalido")
        for field, value in changes.items():
            setattr(supplier, field, value)
        self._commit(supplier)
        return supplier

    def delete_supplier(self, supplier_id: str) -> None:
        supplier = self.get_supplier(supplier_id)
        used = (
            self.db.query(models.Refueling.id)
            .filter(models.Refueling.supplier_id == supplier.id)
            .first()
        )
        if used:
            raise InUse("Fornecedor possui abastecimentos registrados")
        self.db.delete(supplier)
        self._commit()

    # Companies

    def get_company(self, company_id: str) -> models.Company:
        return self._get(models.Company, company_id, "Empresa")

    def list_companies(self) -> list[models.Company]:
        return self.db.query(models.Company).order_by(models.Company.created_at.asc()).all()

    def _check_cnpj(self, cnpj: str, company_id: Optional[str] = None) -> str:
        digits = only_digits(cnpj)
        if len(digits) != 14:
            raise ValidationError("cnpj", "CNPJ invalido")
        existing = self.db.query(models.Company).filter(models.Company.cnpj == digits).first()
        if existing and existing.id != company_id:
            raise ValidationError("cnpj", "CNPJ ja cadastrado")
        return digits

    def _check_matriz_reference(self, matriz_id: Optional[str]) -> None:
        if not matriz_id:
            raise ValidationError("matriz_id", "Filial deve referenciar uma Matriz")
        matriz = self.db.query(models.Company).filter(models.Company.id == matriz_id).first()
        if not matriz or matriz.company_type != "matriz":
            raise ValidationError("matriz_id", "Matriz informada nao encontrada")

    def create_company(self, data: dict[str, Any]) -> models.Company:
        payload = dict(data)
        company_type = payload.get("company_type")
        if company_type not in COMPANY_TYPES:
            raise ValidationError("company_type", "Tipo de empresa invalido")
        payload["cnpj"] = self._check_cnpj(payload.get("cnpj", ""))
        if company_type == "filial":
            has_matriz = (
                self.db.query(models.Company.id)
                .filter(models.Company.company_type == "matriz")
                .first()
            )
            if not has_matriz:
                raise ValidationError(
                    "company_type",
                    "O primeiro cadastro deve ser obrigatoriamente uma Matriz.",
                )
            self._check_matriz_reference(payload.get("matriz_id"))
        else:
            payload["matriz_id"] = None
        company = models.Company(**payload)
        self.db.add(company)
        self._commit(company)
        logger.info("empresa criada id=%s tipo=%s", company.id, company.company_type)
        return company

    def _branches_of(self, company_id: str) -> list[models.Company]:
        return self.db.query(models.Company).filter(models.Company.matriz_id == company_id).all()

    def update_company(self, company_id: str, partial: dict[str, Any]) -> models.Company:
        company = self.get_company(company_id)
        changes = dict(partial)
        if "cnpj" in changes:
            changes["cnpj"] = self._check_cnpj(changes["cnpj"], company.id)
        new_type = changes.get("company_type", company.company_type)
        if new_type not in COMPANY_TYPES:
            raise ValidationError("company_type", "Tipo de empresa invalido")
        if new_type == "filial":
            if company.company_type == "matriz" and self._branches_of(company.id):
                raise ValidationError("company_type", "Matriz com filiais nao pode virar filial")
            matriz_id = changes.get("matriz_id", company.matriz_id)
            if matriz_id == company.id:
                raise ValidationError("matriz_id", "Empresa nao pode ser matriz de si mesma")
            self._check_matriz_reference(matriz_id)
        else:
            changes["matriz_id"] = None
        for field, value in changes.items():
            setattr(company, field, value)
        self._commit(company)
        return company

    def delete_company(self, company_id: str) -> None:
        company = self.get_company(company_id)
        if self._branches_of(company.id):
            raise InUse("Matriz possui filiais cadastradas")
        in_use = (
            self.db.query(models.Vehicle.id)
            .filter(models.Vehicle.company_id == company.id)
            .first()
        )
        if in_use:
            raise InUse("Empresa possui veiculos vinculados")
        self.db.delete(company)
        self._commit()

    # Refuelings

    def get_refueling(self, refueling_id: str) -> models.Refueling:
        return self._get(models.Refueling, refueling_id, "Abastecimento")

    def list_refuelings_for(self, entity_id: str) -> list[models.Refueling]:
        return (
            self.db.query(models.Refueling)
            .filter(
                or_(
                    models.Refueling.vehicle_id == entity_id,
                    models.Refueling.refrigeration_unit_id == entity_id,
                )
            )
            .order_by(models.Refueling.date.asc(), models.Refueling.created_at.asc())
            .all()
        )

    def list_refuelings(self, **filters: Any) -> list[models.Refueling]:
        query = self.db.query(models.Refueling)
        for field in ("vehicle_id", "refrigeration_unit_id", "driver_id", "supplier_id"):
            if filters.get(field):
                query = query.filter(getattr(models.Refueling, field) == filters[field])
        if filters.get("start_date"):
            query = query.filter(models.Refueling.date >= filters["start_date"])
        if filters.get("end_date"):
            query = query.filter(models.Refueling.date <= filters["end_date"])
        return query.order_by(models.Refueling.date.desc(), models.Refueling.created_at.desc()).all()

    def create_refueling(self, data: dict[str, Any]) -> models.Refueling:
        if bool(data.get("vehicle_id")) == bool(data.get("refrigeration_unit_id")):
            raise ValidationError(
                "vehicle_id",
                "Informe apenas um veiculo ou um equipamento de refrigeracao",
            )
        refueling = models.Refueling(**data)
        self.db.add(refueling)
        self._commit(refueling)
        return refueling

    def update_refueling(self, refueling_id: str, partial: dict[str, Any]) -> models.Refueling:
        refueling = self.get_refueling(refueling_id)
        changes = {k: v for k, v in partial.items() if k not in {"vehicle_id", "refrigeration_unit_id"}}
        for field, value in changes.items():
            setattr(refueling, field, value)
        self._commit(refueling)
        return refueling

    def delete_refueling(self, refueling_id: str) -> None:
        refueling = self.get_refueling(refueling_id)
        self.db.delete(refueling)
        self._commit()

    # Users and audit

    def record_audit(
        self,
        user: Optional[models.User],
        action: str,
        resource_type: str,
        resource_id: str,
        payload: Optional[dict] = None,
    ) -> None:
        self.db.add(
            models.AuditLog(
                user_id=user.id if user else None,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                payload_resumo=payload,
            )
        )
        self._commit()
