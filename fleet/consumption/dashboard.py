from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from fleet.consumption.calculator import ConsumptionCalculator, average_consumption
from fleet.core.formatters import round_money
from fleet.store import EntityStore

OPERATIONAL_STATUSES = ("active", "maintenance", "defective", "inactive")


def _status_counts(records) -> dict[str, int]:
    counts = {status: 0 for status in OPERATIONAL_STATUSES + ("sold",)}
    for record in records:
        counts[record.status] = counts.get(record.status, 0) + 1
    return counts


def _availability(counts: dict[str, int]) -> float:
    fleet_size = sum(counts[status] for status in OPERATIONAL_STATUSES)
    if not fleet_size:
        return 0.0
    return round(counts["active"] * 100 / fleet_size, 1)


def _average(values: list[Optional[float]]) -> Optional[float]:
    known = [v for v in values if v is not None]
    if not known:
        return None
    return sum(known) / len(known)


def _month_cost(refuelings, today: date) -> float:
    total = Decimal("0")
    for refueling in refuelings:
        if refueling.date.year == today.year and refueling.date.month == today.month:
            total += Decimal(str(refueling.total_value))
    return float(round_money(total))


def _consumption_entry(refuelings) -> Optional[dict]:
    records = list(refuelings)
    consumption = average_consumption(records)
    if consumption is None:
        return None
    readings = [r.reading for r in records if r.reading is not None]
    return {
        "liters": round(sum(r.liters or 0 for r in records), 2),
        "distance": max(readings) - min(readings),
        "consumption": round(consumption, 2),
    }


def vehicle_consumption_ranking(store: EntityStore) -> list[dict]:
    """Consumption per operating vehicle, lowest km/l first."""
    ranking = []
    for vehicle in store.list_vehicles():
        if vehicle.status == "sold" or vehicle.is_trailer:
            continue
        entry = _consumption_entry(
            r for r in store.list_refuelings_for(vehicle.id) if r.vehicle_id == vehicle.id
        )
        if entry is None:
            continue
        ranking.append(
            {
                "vehicle_id": vehicle.id,
                "plate": vehicle.plate,
                "model": vehicle.model,
                "liters": entry["liters"],
                "km_diff": entry["distance"],
                "consumption": entry["consumption"],
            }
        )
    ranking.sort(key=lambda item: item["consumption"])
    return ranking


def refrigeration_consumption_list(store: EntityStore) -> list[dict]:
    items = []
    for unit in store.list_refrigeration_units():
        if unit.status == "sold":
            continue
        entry = _consumption_entry(
            r for r in store.list_refuelings_for(unit.id) if r.refrigeration_unit_id == unit.id
        )
        if entry is None:
            continue
        items.append(
            {
                "unit_id": unit.id,
                "brand": unit.brand,
                "model": unit.model,
                "liters": entry["liters"],
                "hours": entry["distance"],
                "consumption": entry["consumption"],
            }
        )
    items.sort(key=lambda item: item["consumption"])
    return items


def fleet_summary(store: EntityStore, today: Callable[[], date] = date.today) -> dict:
    vehicles = store.list_vehicles()
    counts = _status_counts(vehicles)
    calculator = ConsumptionCalculator(store)
    averages = [
        calculator.for_vehicle(v.id)
        for v in vehicles
        if v.status != "sold" and not v.is_trailer
    ]
    refuelings = [r for r in store.list_refuelings() if r.vehicle_id]
    ranking = vehicle_consumption_ranking(store)
    return {
        "total_vehicles": len(vehicles) - counts["sold"],
        "status_counts": counts,
        "availability_percent": _availability(counts),
        "month_fuel_cost": _month_cost(refuelings, today()),
        "average_consumption": _average(averages),
        "composition_count": sum(1 for v in vehicles if v.has_composition),
        "vehicles_consumption": ranking,
        "top_vehicles": ranking[:5],
    }


def refrigeration_summary(store: EntityStore, today: Callable[[], date] = date.today) -> dict:
    units = store.list_refrigeration_units()
    counts = _status_counts(units)
    calculator = ConsumptionCalculator(store)
    averages = [calculator.for_refrigeration_unit(u.id) for u in units if u.status != "sold"]
    refuelings = [r for r in store.list_refuelings() if r.refrigeration_unit_id]
    return {
        "total_units": len(units) - counts["sold"],
        "status_counts": counts,
        "availability_percent": _availability(counts),
        "month_fuel_cost": _month_cost(refuelings, today()),
        "average_consumption": _average(averages),
        "linked_units": sum(1 for u in units if u.vehicle_id and u.status != "sold"),
        "units_consumption": refrigeration_consumption_list(store),
    }
