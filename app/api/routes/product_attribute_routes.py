"""
Product Attribute API Routes.
Dynamic attribute definitions and their option values.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Dict, Any, Optional
from app.schemas.product_attribute import (
    ProductAttributeCreate,
    ProductAttributeUpdate,
    ProductAttributeValueCreate,
)
from app.core.product_attribute_service import ProductAttributeService
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_current_user, get_pagination
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/product-attributes", tags=["Product Attributes"])


def _list(result, pagination: Dict[str, int]) -> Dict[str, Any]:
    rows, total_count = result
    return ResponseHandler.list_response(
        data=rows,
        page=pagination["page"],
        page_size=pagination["page_size"],
        total_count=total_count
    )


@router.get("", response_model=Dict[str, Any])
async def list_attributes(
    search: Optional[str] = Query(None),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        if search:
            return _list(ProductAttributeService.search(search, **pagination), pagination)
        return _list(ProductAttributeService.find_all(**pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_attributes: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_attribute(
    request: ProductAttributeCreate,
    user: str = Depends(get_current_user)
):
    try:
        attribute = ProductAttributeService.create(request.model_dump(), user)
        return ResponseHandler.success(data=attribute, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in create_attribute: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/required", response_model=Dict[str, Any])
async def list_required_attributes(pagination: Dict[str, int] = Depends(get_pagination)):
    try:
        return _list(ProductAttributeService.find_required(**pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_required_attributes: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-data-type/{data_type}", response_model=Dict[str, Any])
async def list_attributes_by_data_type(
    data_type: str,
    pagination: Dict[str, int] = Depends(get_pagination)
):
    """- **data_type**: TEXT or NUMBER"""
    try:
        return _list(ProductAttributeService.find_by_data_type(data_type, **pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_attributes_by_data_type: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-code/{code}", response_model=Dict[str, Any])
async def get_attribute_by_code(code: str):
    try:
        return ResponseHandler.success(data=ProductAttributeService.find_by_code(code))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_attribute_by_code: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{attribute_id}", response_model=Dict[str, Any])
async def get_attribute(attribute_id: int):
    try:
        return ResponseHandler.success(data=ProductAttributeService.find_one(attribute_id))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_attribute: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{attribute_id}", response_model=Dict[str, Any])
async def update_attribute(
    attribute_id: int,
    request: ProductAttributeUpdate,
    user: str = Depends(get_current_user)
):
    try:
        attribute = ProductAttributeService.update(attribute_id, request.model_dump(exclude_unset=True), user)
        return ResponseHandler.success(data=attribute)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in update_attribute: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{attribute_id}", response_model=Dict[str, Any])
async def delete_attribute(
    attribute_id: int,
    user: str = Depends(get_current_user)
):
    try:
        ProductAttributeService.remove(attribute_id, user)
        return ResponseHandler.success(data={"id": attribute_id, "deleted": True})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in delete_attribute: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{attribute_id}/values", response_model=Dict[str, Any])
async def list_attribute_values(attribute_id: int):
    try:
        return ResponseHandler.success(data=ProductAttributeService.list_values(attribute_id))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_attribute_values: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{attribute_id}/values", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def add_attribute_value(
    attribute_id: int,
    request: ProductAttributeValueCreate,
    user: str = Depends(get_current_user)
):
    try:
        value = ProductAttributeService.add_value(attribute_id, request.model_dump(), user)
        return ResponseHandler.success(data=value, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in add_attribute_value: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{attribute_id}/values/{value_id}", response_model=Dict[str, Any])
async def delete_attribute_value(
    attribute_id: int,
    value_id: int,
    user: str = Depends(get_current_user)
):
    try:
        ProductAttributeService.remove_value(attribute_id, value_id, user)
        return ResponseHandler.success(data={"id": value_id, "deleted": True})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in delete_attribute_value: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
