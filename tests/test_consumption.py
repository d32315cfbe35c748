from datetime import date

import pytest

from fleet.consumption.calculator import ConsumptionCalculator, average_consumption
from fleet.consumption.dashboard import (
    fleet_summary,
    refrigeration_consumption_list,
    refrigeration_summary,
    vehicle_consumption_ranking,
)
from fleet.core.errors import NotFound
from fleet.db import models


def _refueling(km, liters):
    return models.Refueling(vehicle_id="v1", km=km, liters=liters, price_per_liter=6.0)


def test_unavailable_without_two_readings():
    assert average_consumption([]) is None
    assert average_consumption([_refueling(1000, 50)]) is None


def test_average_over_all_liters():
    records = [_refueling(1000, 50), _refueling(1500, 50)]
    assert average_consumption(records) == pytest.approx(5.0)


def test_out_of_order_readings_are_tolerated():
    ordered = [_refueling(1000, 40), _refueling(1300, 30), _refueling(1600, 30)]
    shuffled = [ordered[2], ordered[0], ordered[1]]
    assert average_consumption(shuffled) == average_consumption(ordered) == pytest.approx(6.0)


def test_zero_distance_is_a_value_not_unavailable():
    assert average_consumption([_refueling(1000, 20), _refueling(1000, 20)]) == 0.0


def test_zero_liters_is_unavailable():
    assert average_consumption([_refueling(1000, 0), _refueling(1200, 0)]) is None


def test_calculator_for_vehicle_and_unit(store, make_vehicle, make_unit, make_refueling):
    vehicle = make_vehicle()
    unit = make_unit()
    make_refueling(vehicle_id=vehicle.id, reading=1000, liters=100)
    make_refueling(vehicle_id=vehicle.id, reading=1600, liters=100)
    make_refueling(unit_id=unit.id, reading=500, liters=20)
    calculator = ConsumptionCalculator(store)

    assert calculator.for_vehicle(vehicle.id) == pytest.approx(3.0)
    assert calculator.for_refrigeration_unit(unit.id) is None
    make_refueling(unit_id=unit.id, reading=540, liters=20)
    assert calculator.for_refrigeration_unit(unit.id) == pytest.approx(1.0)
    with pytest.raises(NotFound):
        calculator.for_vehicle("missing")


def test_fleet_summary(store, make_vehicle, make_refueling):
    active = make_vehicle()
    make_vehicle(status="maintenance")
    make_vehicle(vehicle_type="Carreta")
    sold = make_vehicle()
    store.update_vehicle(sold.id, {"status": "sold"}, sale_transition=True)
    make_refueling(vehicle_id=active.id, reading=1000, liters=50, price=6.0, day=date(2026, 1, 3))
    make_refueling(vehicle_id=active.id, reading=1400, liters=50, price=6.0, day=date(2026, 1, 20))
    make_refueling(vehicle_id=active.id, reading=1800, liters=10, price=6.0, day=date(2025, 12, 20))

    summary = fleet_summary(store, today=lambda: date(2026, 1, 31))

    assert summary["total_vehicles"] == 3
    assert summary["status_counts"]["sold"] == 1
    assert summary["availability_percent"] == pytest.approx(66.7)
    assert summary["month_fuel_cost"] == 600.0
    assert summary["average_consumption"] == pytest.approx(800 / 110)


def test_refrigeration_summary(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    make_unit(vehicle_id=vehicle.id)
    make_unit(status="defective")
    summary = refrigeration_summary(store, today=lambda: date(2026, 1, 31))
    assert summary["total_units"] == 2
    assert summary["linked_units"] == 1
    assert summary["availability_percent"] == 50.0
    assert summary["average_consumption"] is None


def test_sold_units_left_out_of_total(store, make_unit):
    make_unit()
    sold = make_unit()
    store.update_refrigeration_unit(sold.id, {"status": "sold"}, sale_transition=True)
    summary = refrigeration_summary(store, today=lambda: date(2026, 1, 31))
    assert summary["total_units"] == 1
    assert summary["status_counts"]["sold"] == 1


def test_vehicle_consumption_ranking(store, make_vehicle, make_refueling):
    thirsty = make_vehicle(model="FH 540")
    economic = make_vehicle(model="Actros 2651")
    no_history = make_vehicle()
    sold = make_vehicle()
    make_refueling(vehicle_id=thirsty.id, reading=1000, liters=100)
    make_refueling(vehicle_id=thirsty.id, reading=1200, liters=100)
    make_refueling(vehicle_id=economic.id, reading=1000, liters=50)
    make_refueling(vehicle_id=economic.id, reading=1300, liters=50)
    make_refueling(vehicle_id=no_history.id, reading=1000, liters=50)
    make_refueling(vehicle_id=sold.id, reading=1000, liters=10)
    make_refueling(vehicle_id=sold.id, reading=1100, liters=10)
    store.update_vehicle(sold.id, {"status": "sold"}, sale_transition=True)

    ranking = vehicle_consumption_ranking(store)

    assert [item["vehicle_id"] for item in ranking] == [thirsty.id, economic.id]
    assert ranking[0] == {
        "vehicle_id": thirsty.id,
        "plate": thirsty.plate,
        "model": "FH 540",
        "liters": 200.0,
        "km_diff": 200,
        "consumption": 1.0,
    }
    assert ranking[1]["consumption"] == 3.0
    summary = fleet_summary(store, today=lambda: date(2026, 1, 31))
    assert summary["top_vehicles"] == ranking
    assert summary["vehicles_consumption"] == ranking


def test_refrigeration_consumption_list(store, make_unit, make_refueling):
    unit = make_unit(brand="Thermo King", model="SLXi 300", usage_hours=500)
    idle = make_unit()
    make_refueling(unit_id=unit.id, reading=500, liters=20)
    make_refueling(unit_id=unit.id, reading=560, liters=20)
    make_refueling(unit_id=idle.id, reading=500, liters=20)

    items = refrigeration_consumption_list(store)

    assert items == [
        {
            "unit_id": unit.id,
            "brand": "Thermo King",
            "model": "SLXi 300",
            "liters": 40.0,
            "hours": 60,
            "consumption": 1.5,
        }
    ]
    assert refrigeration_summary(store, today=lambda: date(2026, 1, 31))["units_consumption"] == items
