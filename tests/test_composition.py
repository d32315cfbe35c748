import pytest

from fleet.composition.service import CompositionLinker
from fleet.core.errors import AlreadyLinked, InvalidType, NotAvailable, NotFound, VehicleSold


@pytest.fixture()
def linker(store):
    return CompositionLinker(store)


def test_add_composition_appends_plate(linker, make_vehicle):
    tractor = make_vehicle(axles=3)
    trailer = make_vehicle(plate="CAR1A11", vehicle_type="Carreta", axles=3)

    tractor = linker.add_composition(tractor.id, trailer.id)

    assert tractor.composition_plates == ["CAR1A11"]
    assert tractor.has_composition is True
    assert linker.total_axles(tractor.id) == 6


def test_add_same_trailer_twice_is_noop(linker, make_vehicle):
    tractor = make_vehicle()
    trailer = make_vehicle(vehicle_type="Sider")
    linker.add_composition(tractor.id, trailer.id)
    tractor = linker.add_composition(tractor.id, trailer.id)
    assert tractor.composition_plates == [trailer.plate]


def test_trailer_linked_elsewhere_is_rejected(linker, store, make_vehicle):
    first = make_vehicle()
    second = make_vehicle()
    trailer = make_vehicle(vehicle_type="Graneleiro")
    linker.add_composition(first.id, trailer.id)

    with pytest.raises(AlreadyLinked):
        linker.add_composition(second.id, trailer.id)

    assert store.get_vehicle(first.id).composition_plates == [trailer.plate]
    assert store.get_vehicle(second.id).composition_plates == []
    assert store.get_vehicle(second.id).has_composition is False


def test_type_checks(linker, make_vehicle):
    tractor = make_vehicle()
    other_tractor = make_vehicle(vehicle_type="Truck")
    trailer = make_vehicle(vehicle_type="Baú")
    with pytest.raises(InvalidType):
        linker.add_composition(tractor.id, other_tractor.id)
    with pytest.raises(InvalidType):
        linker.add_composition(trailer.id, tractor.id)


def test_inactive_trailer_not_available(linker, make_vehicle):
    tractor = make_vehicle()
    trailer = make_vehicle(vehicle_type="Carreta", status="maintenance")
    with pytest.raises(NotAvailable):
        linker.add_composition(tractor.id, trailer.id)


def test_sold_trailer_not_available(linker, store, make_vehicle):
    tractor = make_vehicle()
    trailer = make_vehicle(vehicle_type="Carreta")
    store.update_vehicle(trailer.id, {"status": "sold"}, sale_transition=True)
    with pytest.raises(NotAvailable):
        linker.add_composition(tractor.id, trailer.id)


def test_sold_tractor_is_frozen(linker, store, make_vehicle):
    tractor = make_vehicle()
    trailer = make_vehicle(vehicle_type="Carreta")
    linker.add_composition(tractor.id, trailer.id)
    store.update_vehicle(tractor.id, {"status": "sold"}, sale_transition=True)
    spare = make_vehicle(vehicle_type="Carreta")

    with pytest.raises(VehicleSold):
        linker.add_composition(tractor.id, spare.id)
    with pytest.raises(VehicleSold):
        linker.remove_composition(tractor.id, trailer.plate)


def test_sold_check_precedes_type_check(linker, store, make_vehicle):
    tractor = make_vehicle()
    store.update_vehicle(tractor.id, {"status": "sold"}, sale_transition=True)
    not_a_trailer = make_vehicle()
    with pytest.raises(VehicleSold):
        linker.add_composition(tractor.id, not_a_trailer.id)


def test_remove_composition(linker, make_vehicle):
    tractor = make_vehicle()
    trailer = make_vehicle(vehicle_type="Carreta")
    linker.add_composition(tractor.id, trailer.id)

    tractor = linker.remove_composition(tractor.id, trailer.plate.lower())

    assert tractor.composition_plates == []
    assert tractor.has_composition is False
    with pytest.raises(NotFound):
        linker.remove_composition(tractor.id, trailer.plate)


def test_total_axles_is_live(linker, store, make_vehicle):
    tractor = make_vehicle(axles=3)
    trailer_a = make_vehicle(vehicle_type="Carreta", axles=3)
    trailer_b = make_vehicle(vehicle_type="Carreta", axles=2)
    linker.add_composition(tractor.id, trailer_a.id)
    linker.add_composition(tractor.id, trailer_b.id)
    assert linker.total_axles(tractor.id) == 8

    store.update_vehicle(trailer_b.id, {"axles": 4})
    assert linker.total_axles(tractor.id) == 10

    linker.remove_composition(tractor.id, trailer_a.plate)
    assert linker.total_axles(tractor.id) == 7


def test_total_axles_ignores_missing_plates(linker, store, make_vehicle):
    tractor = make_vehicle(axles=2)
    store.set_composition(tractor.id, ["GHO5T00"])
    assert linker.total_axles(tractor.id) == 2
