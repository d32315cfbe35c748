from datetime import date
from unittest.mock import patch

import pytest

from fleet.core.errors import PartialCommitError, PermissionDenied, ValidationError
from fleet.db import models
from fleet.sales.schemas import RefrigerationSaleForm, VehicleSaleForm
from fleet.sales.workflow import (
    AwaitingRefrigerationDecision,
    Cancelled,
    Collecting,
    CollectingRefrigerationSale,
    Committed,
    SaleWorkflow,
    sell_refrigeration_unit,
)

TODAY = date(2026, 1, 31)


def _today():
    return TODAY


def _sale_form(**overrides):
    data = {
        "buyer_name": "Transportes Andrade",
        "buyer_tax_id": "11.222.333/0001-81",
        "sale_date": date(2026, 1, 20),
        "sale_km": "1.200",
        "sale_price": "150.000,00",
    }
    data.update(overrides)
    return VehicleSaleForm(**data)


def _workflow(store):
    return SaleWorkflow(store, today=_today)


def _admin(db_session):
    user = models.User(name="Admin", login="admin", password_hash="x", role="ADMIN", permissions=[])
    db_session.add(user)
    db_session.commit()
    return user


def _operator(db_session):
    user = models.User(name="Operador", login="operador", password_hash="x", role="OPERADOR", permissions=[])
    db_session.add(user)
    db_session.commit()
    return user


def test_sale_form_parses_ptbr_inputs():
    form = _sale_form()
    assert form.sale_km == 1200
    assert str(form.sale_price) == "150000.00"
    assert form.buyer_tax_id == "11222333000181"


def test_sale_without_unit_commits_directly(store, make_vehicle):
    vehicle = make_vehicle(purchase_km=1000)
    workflow = _workflow(store)

    state = workflow.start_sale(vehicle.id, _sale_form())

    assert isinstance(state, Committed)
    assert [w.target for w in state.writes] == ["vehicle"]
    vehicle = store.get_vehicle(vehicle.id)
    assert vehicle.status == "sold"
    assert vehicle.previous_status == "active"
    assert vehicle.current_km == 1200
    assert vehicle.sale_info["buyer_name"] == "Transportes Andrade"
    assert vehicle.sale_info["sale_price"] == 150000.0


def test_sale_clears_driver(store, make_vehicle):
    driver = store.create_driver({"name": "Joao da Silva", "cpf": "12345678901"})
    vehicle = make_vehicle(driver_id=driver.id)
    _workflow(store).start_sale(vehicle.id, _sale_form())
    assert store.get_vehicle(vehicle.id).driver_id is None


def test_sale_km_below_current_km_is_rejected(store, make_vehicle):
    vehicle = make_vehicle(purchase_km=1000)
    workflow = _workflow(store)

    with pytest.raises(ValidationError) as exc:
        workflow.start_sale(vehicle.id, _sale_form(sale_km=999))

    assert exc.value.field == "sale_km"
    assert isinstance(workflow.state, Collecting)
    vehicle = store.get_vehicle(vehicle.id)
    assert vehicle.status == "active"
    assert vehicle.current_km == 1000
    assert vehicle.sale_info is None


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"buyer_name": "Jo"}, "buyer_name"),
        ({"buyer_tax_id": "123.456"}, "buyer_tax_id"),
        ({"sale_price": "0"}, "sale_price"),
        ({"sale_date": date(2026, 2, 1)}, "sale_date"),
    ],
)
def test_sale_form_rules(store, make_vehicle, overrides, field):
    vehicle = make_vehicle()
    workflow = _workflow(store)
    with pytest.raises(ValidationError) as exc:
        workflow.start_sale(vehicle.id, _sale_form(**overrides))
    assert exc.value.field == field
    assert store.get_vehicle(vehicle.id).status == "active"


def test_rejected_input_can_be_corrected(store, make_vehicle):
    vehicle = make_vehicle()
    workflow = _workflow(store)
    with pytest.raises(ValidationError):
        workflow.start_sale(vehicle.id, _sale_form(sale_km=10))
    state = workflow.start_sale(vehicle.id, _sale_form())
    assert isinstance(state, Committed)


def test_selling_sold_vehicle_fails(store, make_vehicle):
    vehicle = make_vehicle()
    _workflow(store).start_sale(vehicle.id, _sale_form())
    with pytest.raises(ValidationError) as exc:
        _workflow(store).start_sale(vehicle.id, _sale_form(sale_km=1300))
    assert exc.value.field == "status"


def test_linked_unit_asks_for_decision(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)

    state = workflow.start_sale(vehicle.id, _sale_form())

    assert isinstance(state, AwaitingRefrigerationDecision)
    assert state.unit_id == unit.id
    assert state.writes == ()
    assert store.get_vehicle(vehicle.id).status == "active"


def test_decline_refrigeration_sale_unlinks_unit(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id, status="maintenance")
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())

    state = workflow.answer_refrigeration_decision(False)

    assert isinstance(state, Committed)
    assert [w.target for w in state.writes] == ["vehicle", "refrigeration_unit"]
    unit = store.get_refrigeration_unit(unit.id)
    assert unit.vehicle_id is None
    assert unit.status == "maintenance"
    assert unit.sale_info is None
    assert store.get_vehicle(vehicle.id).status == "sold"


def test_refrigeration_hours_below_current_rejected(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id, usage_hours=500)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    assert isinstance(workflow.answer_refrigeration_decision(True), CollectingRefrigerationSale)

    with pytest.raises(ValidationError) as exc:
        workflow.submit_refrigeration_sale(RefrigerationSaleForm(usage_hours=499, sale_price="10.000,00"))

    assert exc.value.field == "usage_hours"
    assert isinstance(workflow.state, CollectingRefrigerationSale)
    unit = store.get_refrigeration_unit(unit.id)
    assert unit.status == "active"
    assert unit.usage_hours == 500
    assert unit.vehicle_id == vehicle.id
    assert store.get_vehicle(vehicle.id).status == "active"


def test_refrigeration_price_required(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    workflow.answer_refrigeration_decision(True)
    with pytest.raises(ValidationError) as exc:
        workflow.submit_refrigeration_sale(RefrigerationSaleForm(usage_hours=600, sale_price=0))
    assert exc.value.field == "sale_price"


def test_full_sale_with_refrigeration_unit(store, make_vehicle, make_unit):
    vehicle = make_vehicle(purchase_km=1000)
    unit = make_unit(vehicle_id=vehicle.id, usage_hours=500)
    workflow = _workflow(store)

    assert isinstance(workflow.start_sale(vehicle.id, _sale_form(sale_km=1200)), AwaitingRefrigerationDecision)
    assert isinstance(workflow.answer_refrigeration_decision(True), CollectingRefrigerationSale)
    state = workflow.submit_refrigeration_sale(RefrigerationSaleForm(usage_hours=600, sale_price="25.000,00"))

    assert isinstance(state, Committed)
    assert state.unit_sold is True
    assert [w.label for w in state.writes] == [f"vehicle:{vehicle.id}", f"refrigeration_unit:{unit.id}"]
    vehicle = store.get_vehicle(vehicle.id)
    assert vehicle.status == "sold"
    assert vehicle.current_km == 1200
    unit = store.get_refrigeration_unit(unit.id)
    assert unit.status == "sold"
    assert unit.previous_status == "active"
    assert unit.usage_hours == 600
    assert unit.vehicle_id is None
    assert unit.sale_info["buyer_name"] == "Transportes Andrade"
    assert unit.sale_info["sale_price"] == 25000.0


def test_partial_commit_reports_failed_write(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    workflow.answer_refrigeration_decision(True)

    with patch.object(store, "update_refrigeration_unit", side_effect=RuntimeError("falha de rede")):
        with pytest.raises(PartialCommitError) as exc:
            workflow.submit_refrigeration_sale(RefrigerationSaleForm(usage_hours=600, sale_price="1.000,00"))

    assert exc.value.failed_write == f"refrigeration_unit:{unit.id}"
    assert exc.value.applied_writes == [f"vehicle:{vehicle.id}"]
    assert "conferir manualmente" in exc.value.message
    assert store.get_vehicle(vehicle.id).status == "sold"
    assert store.get_refrigeration_unit(unit.id).status == "active"


def test_first_write_failure_is_not_partial(store, make_vehicle):
    vehicle = make_vehicle()
    with patch.object(store, "update_vehicle", side_effect=RuntimeError("indisponivel")):
        with pytest.raises(RuntimeError):
            _workflow(store).start_sale(vehicle.id, _sale_form())


def test_commit_revalidates_against_fresh_state(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form(sale_km=1200))
    store.update_vehicle(vehicle.id, {"current_km": 1500})

    with pytest.raises(ValidationError) as exc:
        workflow.answer_refrigeration_decision(False)

    assert exc.value.field == "sale_km"
    assert store.get_vehicle(vehicle.id).status == "active"


def test_decline_rejected_when_unit_moved_to_other_vehicle(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    other = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    store.update_refrigeration_unit(unit.id, {"vehicle_id": other.id})

    with pytest.raises(ValidationError) as exc:
        workflow.answer_refrigeration_decision(False)

    assert exc.value.field == "vehicle_id"
    assert store.get_refrigeration_unit(unit.id).vehicle_id == other.id
    assert store.get_vehicle(vehicle.id).status == "active"


def test_unit_sale_rejected_when_unit_moved_to_other_vehicle(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    other = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    workflow.answer_refrigeration_decision(True)
    store.update_refrigeration_unit(unit.id, {"vehicle_id": other.id})

    with pytest.raises(ValidationError) as exc:
        workflow.submit_refrigeration_sale(RefrigerationSaleForm(usage_hours=600, sale_price="1.000,00"))

    assert exc.value.field == "vehicle_id"
    assert isinstance(workflow.state, CollectingRefrigerationSale)
    unit = store.get_refrigeration_unit(unit.id)
    assert unit.vehicle_id == other.id
    assert unit.status == "active"
    assert store.get_vehicle(vehicle.id).status == "active"


def test_cancel_writes_nothing(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id)
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())

    state = workflow.cancel()

    assert isinstance(state, Cancelled)
    assert state.writes == ()
    assert store.get_vehicle(vehicle.id).status == "active"
    assert store.get_refrigeration_unit(unit.id).vehicle_id == vehicle.id
    with pytest.raises(ValidationError):
        workflow.answer_refrigeration_decision(True)


def test_cancel_after_commit_is_rejected(store, make_vehicle):
    vehicle = make_vehicle()
    workflow = _workflow(store)
    workflow.start_sale(vehicle.id, _sale_form())
    with pytest.raises(ValidationError):
        workflow.cancel()


def test_reverse_sale_requires_admin(store, db_session, make_vehicle):
    vehicle = make_vehicle()
    _workflow(store).start_sale(vehicle.id, _sale_form())

    with pytest.raises(PermissionDenied):
        _workflow(store).reverse_sale(vehicle.id, _operator(db_session))

    assert store.get_vehicle(vehicle.id).status == "sold"


def test_reverse_sale_restores_previous_status(store, db_session, make_vehicle):
    vehicle = make_vehicle(status="maintenance")
    _workflow(store).start_sale(vehicle.id, _sale_form())

    reversed_vehicle = _workflow(store).reverse_sale(vehicle.id, _admin(db_session))

    assert reversed_vehicle.status == "maintenance"
    assert reversed_vehicle.sale_info is None
    assert reversed_vehicle.previous_status is None
    assert reversed_vehicle.current_km == 1200


def test_reverse_sale_of_unsold_vehicle_fails(store, db_session, make_vehicle):
    vehicle = make_vehicle()
    with pytest.raises(ValidationError):
        _workflow(store).reverse_sale(vehicle.id, _admin(db_session))


def test_reverse_refrigeration_sale_defaults_to_maintenance(store, db_session, make_unit):
    unit = make_unit()
    store.update_refrigeration_unit(unit.id, {"status": "sold", "sale_info": {}}, sale_transition=True)

    restored = _workflow(store).reverse_refrigeration_sale(unit.id, _admin(db_session))

    assert restored.status == "maintenance"
    assert restored.sale_info is None


def test_standalone_refrigeration_sale(store, make_vehicle, make_unit):
    vehicle = make_vehicle()
    unit = make_unit(vehicle_id=vehicle.id, usage_hours=300)
    form = RefrigerationSaleForm(
        usage_hours="350",
        sale_price="8.000,00",
        buyer_name="Frios do Sul",
        buyer_tax_id="12345678901",
        sale_date=date(2026, 1, 15),
    )

    sold = sell_refrigeration_unit(store, unit.id, form, today=_today)

    assert sold.status == "sold"
    assert sold.usage_hours == 350
    assert sold.vehicle_id is None
    assert sold.sale_info["buyer_name"] == "Frios do Sul"
    assert store.get_vehicle(vehicle.id).status == "active"


def test_standalone_refrigeration_sale_requires_buyer(store, make_unit):
    unit = make_unit()
    form = RefrigerationSaleForm(usage_hours=600, sale_price="100,00", sale_date=date(2026, 1, 15))
    with pytest.raises(ValidationError) as exc:
        sell_refrigeration_unit(store, unit.id, form, today=_today)
    assert exc.value.field == "buyer_name"


def test_sale_blocked_by_broken_composition(store, make_vehicle):
    tractor = make_vehicle()
    store.set_composition(tractor.id, ["ZZZ9999"])
    with pytest.raises(ValidationError) as exc:
        _workflow(store).start_sale(tractor.id, _sale_form())
    assert exc.value.field == "composition_plates"
