"""fleet schema

Revision ID: 0001_fleet_schema
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_fleet_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("login", sa.String(), nullable=False, unique=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="OPERADOR"),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource_type", sa.String(), nullable=True),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("payload_resumo", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])

    op.create_table(
        "companies",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("company_type", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cnpj", sa.String(), nullable=False, unique=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("matriz_id", sa.String(), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("fantasy_name", sa.String(), nullable=True),
        sa.Column("tax_id", sa.String(), nullable=False, unique=True),
        sa.Column("supplier_type", sa.String(), nullable=False, server_default="other"),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("contact_person", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "drivers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cpf", sa.String(), nullable=False, unique=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("cnh_category", sa.String(), nullable=True),
        sa.Column("cnh_validity", sa.Date(), nullable=True),
        sa.Column("cnh_document_url", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("plate", sa.String(), nullable=False, unique=True),
        sa.Column("chassis", sa.String(), nullable=True),
        sa.Column("renavam", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("manufacturing_year", sa.Integer(), nullable=True),
        sa.Column("model_year", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("vehicle_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("previous_status", sa.String(), nullable=True),
        sa.Column("axles", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("purchase_km", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_km", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fuel_type", sa.String(), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("purchase_value", sa.Float(), nullable=True),
        sa.Column("company_id", sa.String(), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("driver_id", sa.String(), sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("has_composition", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("composition_plates", sa.JSON(), nullable=False),
        sa.Column("sale_info", sa.JSON(), nullable=True),
        sa.Column("crlv_document_url", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_vehicles_status", "vehicles", ["status"])
    op.create_index("ix_vehicles_driver_id", "vehicles", ["driver_id"])

    op.create_table(
        "refrigeration_units",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("vehicle_id", sa.String(), sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("company_id", sa.String(), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("serial_number", sa.String(), nullable=True),
        sa.Column("unit_type", sa.String(), nullable=True),
        sa.Column("min_temp", sa.Float(), nullable=True),
        sa.Column("max_temp", sa.Float(), nullable=True),
        sa.Column("install_date", sa.Date(), nullable=True),
        sa.Column("usage_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fuel_type", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("previous_status", sa.String(), nullable=True),
        sa.Column("sale_info", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_refrigeration_units_vehicle_id", "refrigeration_units", ["vehicle_id"])

    op.create_table(
        "refuelings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("vehicle_id", sa.String(), sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("refrigeration_unit_id", sa.String(), sa.ForeignKey("refrigeration_units.id"), nullable=True),
        sa.Column("supplier_id", sa.String(), sa.ForeignKey("suppliers.id"), nullable=True),
        sa.Column("driver_id", sa.String(), sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("km", sa.Integer(), nullable=True),
        sa.Column("usage_hours", sa.Integer(), nullable=True),
        sa.Column("liters", sa.Float(), nullable=False),
        sa.Column("price_per_liter", sa.Float(), nullable=False),
        sa.Column("fuel_type", sa.String(), nullable=True),
        sa.Column("payment_receipt_url", sa.String(), nullable=True),
        sa.Column("fiscal_note_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint(
            "(vehicle_id IS NULL) <> (refrigeration_unit_id IS NULL)",
            name="ck_refueling_single_target",
        ),
    )
    op.create_index("ix_refuelings_vehicle_id", "refuelings", ["vehicle_id"])
    op.create_index("ix_refuelings_refrigeration_unit_id", "refuelings", ["refrigeration_unit_id"])


def downgrade() -> None:
    op.drop_index("ix_refuelings_refrigeration_unit_id", table_name="refuelings")
    op.drop_index("ix_refuelings_vehicle_id", table_name="refuelings")
    op.drop_table("refuelings")
    op.drop_index("ix_refrigeration_units_vehicle_id", table_name="refrigeration_units")
    op.drop_table("refrigeration_units")
    op.drop_index("ix_vehicles_driver_id", table_name="vehicles")
    op.drop_index("ix_vehicles_status", table_name="vehicles")
    op.drop_table("vehicles")
    op.drop_table("drivers")
    op.drop_table("suppliers")
    op.drop_table("companies")
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("users")
