"""
API Dependencies.
Acting user for audit columns, pagination parameters and master-data type lookup.
"""

from fastapi import Header, HTTPException, Query, status
from typing import Dict, Optional
from app.config import settings
from app.core.exceptions import NotFoundException
from app.core.master_data_service import MasterDataService
from app.models.database_models import MasterDataDefinition
import logging

logger = logging.getLogger(__name__)

DEFAULT_USER = "system"


async def get_current_user(
    x_user: Optional[str] = Header(None, description="Acting user recorded in created_by/updated_by")
) -> str:
    """
    Resolve the acting user from the optional X-User header.

    Returns:
        The header value, or "system" when absent or blank
    """
    user = (x_user or "").strip()
    return user[:255] if user else DEFAULT_USER


async def get_pagination(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, description=f"Records per page (max {settings.MAX_PAGE_SIZE})"
    )
) -> Dict[str, int]:
    return {"page": page, "page_size": min(page_size, settings.MAX_PAGE_SIZE)}


async def get_master_data_definition(entity_type: str) -> MasterDataDefinition:
    """
    Resolve the {entity_type} path segment.

    Raises:
        HTTPException: 404 for an unknown type
    """
    try:
        return MasterDataService.get_definition(entity_type)
    except NotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
