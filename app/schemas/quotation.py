"""
Quotation schemas.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional


class QuotationStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class QuotationItemCreate(BaseModel):
    """One line; unit_price defaults to the product's base price."""

    product_id: int
    quantity: int = Field(1, ge=1)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    notes: Optional[str] = None


class QuotationCreate(BaseModel):
    """Request schema for creating a quotation. New quotations start as DRAFT."""

    quotation_number: Optional[str] = Field(
        None, max_length=50, description="Generated as QT{YYYYMMDD}{seq} when omitted"
    )
    customer_name: str = Field(..., min_length=1, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)
    phone_number: str = Field(..., min_length=1, max_length=50)
    quotation_date: Optional[date] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    items: List[QuotationItemCreate] = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customer_name": "Jane Doe",
                "company_name": "Acme Ltd",
                "phone_number": "+1 555 0100",
                "valid_until": "2024-02-15",
                "items": [
                    {"product_id": 1, "quantity": 10, "unit_price": "12.50"},
                    {"product_id": 2, "quantity": 2}
                ]
            }
        }
    )


class QuotationUpdate(BaseModel):
    """Partial update; `items`, when sent, replaces all lines and recomputes the total."""

    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=50)
    quotation_date: Optional[date] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    items: Optional[List[QuotationItemCreate]] = Field(None, min_length=1)


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus
