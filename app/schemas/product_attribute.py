"""
Product attribute schemas.
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional


class ProductAttributeCreate(BaseModel):
    """Request schema for defining a dynamic product attribute."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=100)
    data_type: str = Field("TEXT", pattern="^(TEXT|NUMBER)$")
    description: Optional[str] = None
    is_required: bool = False
    is_active: bool = True

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Weight",
                "code": "WEIGHT_KG",
                "data_type": "NUMBER",
                "is_required": False
            }
        }
    )

    @field_validator("data_type", mode="before")
    @classmethod
    def upper_data_type(cls, v):
        return v.upper() if isinstance(v, str) else v


class ProductAttributeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=100)
    data_type: Optional[str] = Field(None, pattern="^(TEXT|NUMBER)$")
    description: Optional[str] = None
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("data_type", mode="before")
    @classmethod
    def upper_data_type(cls, v):
        return v.upper() if isinstance(v, str) else v


class ProductAttributeValueCreate(BaseModel):
    """A predefined option for an attribute."""

    value: str = Field(..., min_length=1, max_length=500)
    display_order: int = Field(0, ge=0)
    is_active: bool = True
