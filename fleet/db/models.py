import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
)
from sqlalchemy.orm import declarative_base, relationship

from fleet.core.formatters import round_money

Base = declarative_base()

VEHICLE_STATUSES = ("active", "maintenance", "inactive", "defective", "sold")

TRACTOR_TYPES = frozenset({"Truck", "Cavalo Mecânico", "Toco", "VUC", "3/4", "Bitruck"})
TRAILER_TYPES = frozenset(
    {
        "Baú",
        "Carreta",
        "Graneleiro",
        "Container",
        "Caçamba",
        "Baú Frigorífico",
        "Sider",
        "Prancha",
        "Tanque",
        "Cegonheiro",
        "Rodotrem",
    }
)
VEHICLE_TYPES = TRACTOR_TYPES | TRAILER_TYPES


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    login = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="OPERADOR")
    permissions = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=True)
    resource_id = Column(String, nullable=True)
    payload_resumo = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Company(Base):
    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=_uuid)
    company_type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    cnpj = Column(String, nullable=False, unique=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    matriz_id = Column(String, ForeignKey("companies.id"), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    matriz = relationship("Company", remote_side=[id])


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    fantasy_name = Column(String, nullable=True)
    tax_id = Column(String, nullable=False, unique=True)
    supplier_type = Column(String, nullable=False, default="other")
    brand = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    contact_person = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    cpf = Column(String, nullable=False, unique=True)
    birth_date = Column(Date, nullable=True)
    cnh_category = Column(String, nullable=True)
    cnh_validity = Column(Date, nullable=True)
    cnh_document_url = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True, default=_uuid)
    plate = Column(String, nullable=False, unique=True)
    chassis = Column(String, nullable=True)
    renavam = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    manufacturing_year = Column(Integer, nullable=True)
    model_year = Column(Integer, nullable=True)
    color = Column(String, nullable=True)
    vehicle_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")
    previous_status = Column(String, nullable=True)
    axles = Column(Integer, nullable=False, default=2)
    purchase_km = Column(Integer, nullable=False, default=0)
    current_km = Column(Integer, nullable=False, default=0)
    fuel_type = Column(String, nullable=True)
    purchase_date = Column(Date, nullable=True)
    purchase_value = Column(Float, nullable=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=True)
    driver_id = Column(String, ForeignKey("drivers.id"), nullable=True)
    has_composition = Column(Boolean, default=False, nullable=False)
    composition_plates = Column(JSON, nullable=False, default=list)
    sale_info = Column(JSON, nullable=True)
    crlv_document_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    driver = relationship("Driver")
    company = relationship("Company")

    @property
    def is_trailer(self) -> bool:
        return self.vehicle_type in TRAILER_TYPES

    @property
    def is_tractor(self) -> bool:
        return self.vehicle_type in TRACTOR_TYPES


class RefrigerationUnit(Base):
    __tablename__ = "refrigeration_units"

    id = Column(String, primary_key=True, default=_uuid)
    vehicle_id = Column(String, ForeignKey("vehicles.id"), nullable=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    unit_type = Column(String, nullable=True)
    min_temp = Column(Float, nullable=True)
    max_temp = Column(Float, nullable=True)
    install_date = Column(Date, nullable=True)
    usage_hours = Column(Integer, nullable=False, default=0)
    fuel_type = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    previous_status = Column(String, nullable=True)
    sale_info = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    vehicle = relationship("Vehicle")


class Refueling(Base):
    __tablename__ = "refuelings"
    __table_args__ = (
        CheckConstraint(
            "(vehicle_id IS NULL) <> (refrigeration_unit_id IS NULL)",
            name="ck_refueling_single_target",
        ),
    )

    id = Column(String, primary_key=True, default=_uuid)
    vehicle_id = Column(String, ForeignKey("vehicles.id"), nullable=True)
    refrigeration_unit_id = Column(String, ForeignKey("refrigeration_units.id"), nullable=True)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=True)
    driver_id = Column(String, ForeignKey("drivers.id"), nullable=True)
    date = Column(Date, nullable=False)
    km = Column(Integer, nullable=True)
    usage_hours = Column(Integer, nullable=True)
    liters = Column(Float, nullable=False)
    price_per_liter = Column(Float, nullable=False)
    fuel_type = Column(String, nullable=True)
    payment_receipt_url = Column(String, nullable=True)
    fiscal_note_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def reading(self) -> int | None:
        return self.km if self.vehicle_id else self.usage_hours

    @property
    def total_value(self) -> float:
        return float(round_money(Decimal(str(self.liters)) * Decimal(str(self.price_per_liter))))
