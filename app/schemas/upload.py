"""
Pydantic schemas for Excel import endpoints.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Any


class ImportRowError(BaseModel):
    """One rejected sheet row."""

    row: int = Field(description="Row number in the sheet (header is row 1)")
    field: Optional[str] = None
    message: str
    value: Optional[Any] = None


class CreatedMasterData(BaseModel):
    entity_type: str
    id: int
    name: str


class ProductImportResponse(BaseModel):
    """Response schema for a product import."""

    total_rows: int
    success_count: int
    error_count: int
    errors: List[ImportRowError] = []
    created_product_ids: List[int] = []
    created_master_data: List[CreatedMasterData] = []

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_rows": 3,
                "success_count": 2,
                "error_count": 1,
                "errors": [
                    {"row": 4, "field": "code", "message": "Product code 'P-1' already exists", "value": "P-1"}
                ],
                "created_product_ids": [41, 42],
                "created_master_data": [{"entity_type": "brands", "id": 7, "name": "Brand A"}]
            }
        }
    )
