"""
Product schemas.
"""

from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Optional


class DynamicAttributeValue(BaseModel):
    """Value of one dynamic attribute; which field is used depends on the attribute's data type."""

    attribute_id: int
    text_value: Optional[str] = None
    number_value: Optional[Decimal] = Field(None, max_digits=15, decimal_places=4)

    @model_validator(mode="after")
    def check_one_value(self):
        if self.text_value is None and self.number_value is None:
            raise ValueError("Either text_value or number_value is required")
        return self


class ProductBase(BaseModel):
    sku: Optional[str] = Field(None, max_length=100)
    brand_id: Optional[int] = None
    manufacturer_id: Optional[int] = None
    material_id: Optional[int] = None
    manufacturing_method_id: Optional[int] = None
    color_id: Optional[int] = None
    size_id: Optional[int] = None
    product_type_id: Optional[int] = None
    packaging_type_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None


class ProductCreate(ProductBase):
    """Request schema for creating a product."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=100)
    category_id: int
    base_price: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    is_active: bool = True
    dynamic_attributes: List[DynamicAttributeValue] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Steel Bottle 750ml",
                "code": "BTL-750",
                "sku": "SKU-BTL-750",
                "category_id": 1,
                "brand_id": 2,
                "base_price": "12.50",
                "dynamic_attributes": [
                    {"attribute_id": 1, "number_value": "0.35"}
                ]
            }
        }
    )


class ProductUpdate(ProductBase):
    """Partial update; `dynamic_attributes`, when sent, replaces all stored values."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=100)
    category_id: Optional[int] = None
    base_price: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    is_active: Optional[bool] = None
    dynamic_attributes: Optional[List[DynamicAttributeValue]] = None
