from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from fleet.core.formatters import only_digits, parse_currency, parse_integer


class DocumentPayload(BaseModel):
    base64: str
    extension: str


class VehicleSaleForm(BaseModel):
    """Sale data typed by the user; business rules are checked by the workflow."""

    buyer_name: str = ""
    buyer_tax_id: str = ""
    sale_date: date
    sale_km: int
    sale_price: Decimal
    documents: dict[str, str] = Field(default_factory=dict)

    @field_validator("buyer_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return (value or "").strip()

    @field_validator("buyer_tax_id", mode="before")
    @classmethod
    def tax_id_digits(cls, value):
        return only_digits(value)

    @field_validator("sale_km", mode="before")
    @classmethod
    def parse_km(cls, value):
        return parse_integer(value)

    @field_validator("sale_price", mode="before")
    @classmethod
    def parse_price(cls, value):
        return parse_currency(value)


class RefrigerationSaleForm(BaseModel):
    """
    Refrigeration unit sale data.

    In the bundled vehicle sale the buyer fields are optional and default to
    the vehicle buyer; the standalone unit sale requires them.
    """

    usage_hours: int
    sale_price: Decimal
    buyer_name: Optional[str] = None
    buyer_tax_id: Optional[str] = None
    sale_date: Optional[date] = None
    documents: dict[str, str] = Field(default_factory=dict)

    @field_validator("usage_hours", mode="before")
    @classmethod
    def parse_hours(cls, value):
        return parse_integer(value)

    @field_validator("sale_price", mode="before")
    @classmethod
    def parse_price(cls, value):
        return parse_currency(value)

    @field_validator("buyer_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("buyer_tax_id", mode="before")
    @classmethod
    def tax_id_digits(cls, value):
        return only_digits(value) if value is not None else None


class RefrigerationSaleRequest(BaseModel):
    usage_hours: int | str
    sale_price: Decimal | str | float
    buyer_name: Optional[str] = None
    buyer_tax_id: Optional[str] = None
    sale_date: Optional[date] = None
    payment_receipt: Optional[DocumentPayload] = None
    sale_invoice: Optional[DocumentPayload] = None

    model_config = {"extra": "forbid"}


class VehicleSaleRequest(BaseModel):
    buyer_name: str
    buyer_tax_id: str
    sale_date: date
    sale_km: int | str
    sale_price: Decimal | str | float
    payment_receipt: Optional[DocumentPayload] = None
    transfer_document: Optional[DocumentPayload] = None
    sale_invoice: Optional[DocumentPayload] = None
    refrigeration_decision: Optional[bool] = None
    refrigeration_sale: Optional[RefrigerationSaleRequest] = None

    model_config = {"extra": "forbid"}
