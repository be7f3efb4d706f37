"""
Master Data API Routes.
CRUD endpoints shared by every master-data type, plus the category tree.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Dict, Any, Optional
from app.schemas.master_data import MasterDataCreate, MasterDataUpdate
from app.core.master_data_service import MasterDataService
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_current_user, get_master_data_definition, get_pagination
from app.models.database_models import MasterDataDefinition
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/master-data", tags=["Master Data"])


@router.get("/types", response_model=Dict[str, Any])
async def list_master_data_types():
    """List the supported master-data types and their extra fields."""
    return ResponseHandler.success(data=MasterDataService.list_types())


@router.get("/categories/tree", response_model=Dict[str, Any])
async def get_category_tree():
    """Active categories nested under their parents."""
    try:
        tree = MasterDataService.get_category_tree()
        return ResponseHandler.success(data=tree)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_category_tree: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{entity_type}", response_model=Dict[str, Any])
async def list_master_data(
    definition: MasterDataDefinition = Depends(get_master_data_definition),
    search: Optional[str] = Query(None, description="Substring of name or code"),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    """
    List active rows of a master-data type.

    - **search**: optional case-insensitive substring of name or code
    """
    try:
        if search:
            rows, total_count = MasterDataService.search(definition, search, **pagination)
        else:
            rows, total_count = MasterDataService.find_all(definition, **pagination)

        return ResponseHandler.list_response(
            data=rows,
            page=pagination["page"],
            page_size=pagination["page_size"],
            total_count=total_count
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_master_data: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{entity_type}", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_master_data(
    request: MasterDataCreate,
    definition: MasterDataDefinition = Depends(get_master_data_definition),
    user: str = Depends(get_current_user)
):
    """Create a master-data row. Codes must be unique within the type."""
    try:
        row = MasterDataService.create(definition, request.model_dump(exclude_none=True), user)
        return ResponseHandler.success(data=row, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in create_master_data: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{entity_type}/by-code/{code}", response_model=Dict[str, Any])
async def get_master_data_by_code(
    code: str,
    definition: MasterDataDefinition = Depends(get_master_data_definition)
):
    try:
        row = MasterDataService.find_by_code(definition, code)
        return ResponseHandler.success(data=row)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_master_data_by_code: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{entity_type}/{entity_id}", response_model=Dict[str, Any])
async def get_master_data(
    entity_id: int,
    definition: MasterDataDefinition = Depends(get_master_data_definition)
):
    try:
        row = MasterDataService.find_one(definition, entity_id)
        return ResponseHandler.success(data=row)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_master_data: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{entity_type}/{entity_id}", response_model=Dict[str, Any])
async def update_master_data(
    entity_id: int,
    request: MasterDataUpdate,
    definition: MasterDataDefinition = Depends(get_master_data_definition),
    user: str = Depends(get_current_user)
):
    """Merge the sent fields onto the stored row."""
    try:
        row = MasterDataService.update(definition, entity_id, request.model_dump(exclude_unset=True), user)
        return ResponseHandler.success(data=row)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in update_master_data: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{entity_type}/{entity_id}", response_model=Dict[str, Any])
async def delete_master_data(
    entity_id: int,
    definition: MasterDataDefinition = Depends(get_master_data_definition),
    user: str = Depends(get_current_user)
):
    """Soft delete."""
    try:
        MasterDataService.remove(definition, entity_id, user)
        return ResponseHandler.success(data={"id": entity_id, "deleted": True})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in delete_master_data: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
