"""
Average consumption from refueling history.

For vehicles the reading is the odometer (km) and the result is km per
liter; for refrigeration units the reading is the horimeter and the result
is hours per liter.  The distance is taken between the lowest and highest
readings, so records entered out of order still produce the same value.
"""

from typing import Iterable, Optional

from fleet.db import models
from fleet.store import EntityStore


def average_consumption(refuelings: Iterable[models.Refueling]) -> Optional[float]:
    records = list(refuelings)
    readings = [r.reading for r in records if r.reading is not None]
    if len(readings) < 2:
        return None
    liters = sum(r.liters or 0 for r in records)
    if liters <= 0:
        return None
    return (max(readings) - min(readings)) / liters


class ConsumptionCalculator:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def for_vehicle(self, vehicle_id: str) -> Optional[float]:
        self.store.get_vehicle(vehicle_id)
        return average_consumption(
            r for r in self.store.list_refuelings_for(vehicle_id) if r.vehicle_id == vehicle_id
        )

    def for_refrigeration_unit(self, unit_id: str) -> Optional[float]:
        self.store.get_refrigeration_unit(unit_id)
        return average_consumption(
            r for r in self.store.list_refuelings_for(unit_id) if r.refrigeration_unit_id == unit_id
        )
