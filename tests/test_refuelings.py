from datetime import date

import pytest

from fleet.composition.service import CompositionLinker
from fleet.core.errors import ValidationError
from fleet.refuelings.service import register_refueling, update_refueling


def _payload(**overrides):
    data = {"date": date(2026, 1, 10), "liters": 120.0, "price_per_liter": 6.19}
    data.update(overrides)
    return data


def test_vehicle_refueling_advances_km_and_trailers(store, make_vehicle):
    tractor = make_vehicle(purchase_km=1000)
    trailer = make_vehicle(vehicle_type="Carreta", purchase_km=20000)
    CompositionLinker(store).add_composition(tractor.id, trailer.id)

    refueling = register_refueling(store, _payload(vehicle_id=tractor.id, km=1350))

    assert refueling.total_value == 742.8
    assert store.get_vehicle(tractor.id).current_km == 1350
    assert store.get_vehicle(trailer.id).current_km == 20350


def test_refueling_reading_below_current_rejected(store, make_vehicle):
    vehicle = make_vehicle(purchase_km=1000)
    with pytest.raises(ValidationError) as exc:
        register_refueling(store, _payload(vehicle_id=vehicle.id, km=900))
    assert exc.value.field == "km"
    assert store.list_refuelings_for(vehicle.id) == []


def test_unit_refueling_advances_hours(store, make_unit):
    unit = make_unit(usage_hours=500)
    register_refueling(store, _payload(refrigeration_unit_id=unit.id, usage_hours=540, liters=30.0))
    assert store.get_refrigeration_unit(unit.id).usage_hours == 540


def test_refueling_requires_single_target(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit()
    with pytest.raises(ValidationError):
        register_refueling(store, _payload(vehicle_id=vehicle.id, refrigeration_unit_id=unit.id, km=1100))
    with pytest.raises(ValidationError):
        register_refueling(store, _payload())


def test_refueling_rejects_non_positive_amounts(store, make_vehicle):
    vehicle = make_vehicle()
    with pytest.raises(ValidationError) as exc:
        register_refueling(store, _payload(vehicle_id=vehicle.id, km=1100, liters=0))
    assert exc.value.field == "liters"


def test_sold_vehicle_cannot_refuel(store, make_vehicle):
    vehicle = make_vehicle()
    store.update_vehicle(vehicle.id, {"status": "sold"}, sale_transition=True)
    with pytest.raises(ValidationError):
        register_refueling(store, _payload(vehicle_id=vehicle.id, km=1100))


def test_update_refueling_moves_reading_forward(store, make_vehicle):
    vehicle = make_vehicle(purchase_km=1000)
    refueling = register_refueling(store, _payload(vehicle_id=vehicle.id, km=1100))
    update_refueling(store, refueling.id, {"km": 1250, "liters": 80.0})
    assert store.get_vehicle(vehicle.id).current_km == 1250
    assert store.get_refueling(refueling.id).liters == 80.0
