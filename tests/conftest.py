import os
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleet.db import models
from fleet.store import EntityStore


@pytest.fixture()
def db_session(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCAL_STORAGE", "1")
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path / "storage"))
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    os.environ.pop("LOCAL_STORAGE", None)
    os.environ.pop("LOCAL_STORAGE_DIR", None)


@pytest.fixture()
def store(db_session):
    return EntityStore(db_session)


@pytest.fixture()
def make_vehicle(store):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "plate": f"ABC{1000 + counter['n']}",
            "vehicle_type": "Cavalo Mecânico",
            "axles": 3,
            "purchase_km": 1000,
        }
        data.update(overrides)
        return store.create_vehicle(data)

    return _make


@pytest.fixture()
def make_unit(store):
    def _make(vehicle_id=None, usage_hours=500, **overrides):
        data = {"vehicle_id": vehicle_id, "usage_hours": usage_hours, "unit_type": "freezer", "brand": "Thermo King"}
        data.update(overrides)
        return store.create_refrigeration_unit(data)

    return _make


@pytest.fixture()
def make_refueling(store):
    def _make(vehicle_id=None, unit_id=None, reading=None, liters=100.0, price=6.0, day=date(2026, 1, 5)):
        return store.create_refueling(
            {
                "vehicle_id": vehicle_id,
                "refrigeration_unit_id": unit_id,
                "date": day,
                "km": reading if vehicle_id else None,
                "usage_hours": reading if unit_id else None,
                "liters": liters,
                "price_per_liter": price,
            }
        )

    return _make
