import logging
from typing import Any

from fleet.core.errors import ValidationError
from fleet.db import models
from fleet.store import EntityStore

logger = logging.getLogger("fleet.refuelings")


def _check_amounts(data: dict[str, Any]) -> None:
    if float(data.get("liters") or 0) <= 0:
        raise ValidationError("liters", "Quantidade de litros deve ser maior que zero")
    if float(data.get("price_per_liter") or 0) <= 0:
        raise ValidationError("price_per_liter", "Preco por litro deve ser maior que zero")


def _advance_vehicle(store: EntityStore, vehicle: models.Vehicle, km: int) -> None:
    increment = km - vehicle.current_km
    if increment <= 0:
        return
    store.update_vehicle(vehicle.id, {"current_km": km})
    for plate in vehicle.composition_plates or []:
        trailer = store.get_vehicle_by_plate(plate)
        if trailer is None or trailer.status == "sold":
            continue
        store.update_vehicle(trailer.id, {"current_km": trailer.current_km + increment})
        logger.info("km propagado trailer=%s increment=%s", trailer.plate, increment)


def register_refueling(store: EntityStore, data: dict[str, Any]) -> models.Refueling:
    """
    Record a refueling and advance the reading of its target.

    A vehicle refueling moves ``current_km`` up to the informed km and adds
    the same increment to every trailer in the vehicle's composition.  A
    refrigeration unit refueling moves ``usage_hours`` the same way.
    """
    vehicle_id = data.get("vehicle_id")
    unit_id = data.get("refrigeration_unit_id")
    if bool(vehicle_id) == bool(unit_id):
        raise ValidationError("vehicle_id", "Informe apenas um veiculo ou um equipamento de refrigeracao")
    _check_amounts(data)

    if data.get("supplier_id"):
        store.get_supplier(data["supplier_id"])
    if data.get("driver_id"):
        store.get_driver(data["driver_id"])

    if vehicle_id:
        vehicle = store.get_vehicle(vehicle_id)
        if vehicle.status == "sold":
            raise ValidationError("vehicle_id", "Veiculo vendido nao pode ser abastecido")
        km = data.get("km")
        if km is None:
            raise ValidationError("km", "KM obrigatorio para abastecimento de veiculo")
        if int(km) < vehicle.current_km:
            raise ValidationError(
                "km",
                f"KM deve ser maior ou igual ao KM atual do veiculo ({vehicle.current_km})",
            )
        payload = {**data, "km": int(km), "usage_hours": None, "refrigeration_unit_id": None}
        refueling = store.create_refueling(payload)
        _advance_vehicle(store, vehicle, int(km))
    else:
        unit = store.get_refrigeration_unit(unit_id)
        if unit.status == "sold":
            raise ValidationError("refrigeration_unit_id", "Equipamento vendido nao pode ser abastecido")
        hours = data.get("usage_hours")
        if hours is None:
            raise ValidationError("usage_hours", "Horas de uso obrigatorias para abastecimento de equipamento")
        if int(hours) < unit.usage_hours:
            raise ValidationError(
                "usage_hours",
                f"Horas de uso devem ser maiores ou iguais as horas atuais ({unit.usage_hours})",
            )
        payload = {**data, "usage_hours": int(hours), "km": None, "vehicle_id": None}
        refueling = store.create_refueling(payload)
        if int(hours) > unit.usage_hours:
            store.update_refrigeration_unit(unit.id, {"usage_hours": int(hours)})

    logger.info(
        "abastecimento registrado id=%s vehicle_id=%s unit_id=%s liters=%s",
        refueling.id,
        refueling.vehicle_id,
        refueling.refrigeration_unit_id,
        refueling.liters,
    )
    return refueling


def update_refueling(store: EntityStore, refueling_id: str, partial: dict[str, Any]) -> models.Refueling:
    refueling = store.get_refueling(refueling_id)
    merged = {
        "liters": partial.get("liters", refueling.liters),
        "price_per_liter": partial.get("price_per_liter", refueling.price_per_liter),
    }
    _check_amounts(merged)
    refueling = store.update_refueling(refueling.id, partial)
    if refueling.vehicle_id and refueling.km is not None:
        vehicle = store.get_vehicle(refueling.vehicle_id)
        if vehicle.status != "sold":
            _advance_vehicle(store, vehicle, refueling.km)
    elif refueling.refrigeration_unit_id and refueling.usage_hours is not None:
        unit = store.get_refrigeration_unit(refueling.refrigeration_unit_id)
        if unit.status != "sold" and refueling.usage_hours > unit.usage_hours:
            store.update_refrigeration_unit(unit.id, {"usage_hours": refueling.usage_hours})
    return refueling
