"""
Master data schemas.
One request shape shared by every master-data type; parent_id applies to
categories and hex_code to colors.
"""

import re
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional

HEX_CODE_REGEX = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def _check_hex(v: Optional[str]) -> Optional[str]:
    if v is not None and not HEX_CODE_REGEX.match(v):
        raise ValueError("hex_code must look like #RGB or #RRGGBB")
    return v


class MasterDataCreate(BaseModel):
    """Request schema for creating a master-data row."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True
    parent_id: Optional[int] = Field(None, description="Categories only")
    hex_code: Optional[str] = Field(None, max_length=7, description="Colors only")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Stainless Steel",
                "code": "STAINLESS_STEEL",
                "description": "Grade 304",
                "is_active": True
            }
        }
    )

    @field_validator("name", "code")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("hex_code")
    @classmethod
    def validate_hex(cls, v: Optional[str]) -> Optional[str]:
        return _check_hex(v)


class MasterDataUpdate(BaseModel):
    """Request schema for a partial update; unset fields keep their stored value."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    parent_id: Optional[int] = None
    hex_code: Optional[str] = Field(None, max_length=7)

    @field_validator("name", "code")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("hex_code")
    @classmethod
    def validate_hex(cls, v: Optional[str]) -> Optional[str]:
        return _check_hex(v)
