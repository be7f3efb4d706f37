"""
Dashboard API Routes.
"""

from fastapi import APIRouter, HTTPException, Query
from typing import Dict, Any
from app.core.dashboard_service import DashboardService
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=Dict[str, Any])
async def get_dashboard_summary(
    recent_limit: int = Query(5, ge=0, le=50, description="Number of recent quotations to include")
):
    """
    Product count, quotation counts and totals per status, open pipeline value,
    accepted revenue, active master-data counts and the latest quotations.
    """
    try:
        summary = DashboardService.get_summary(recent_limit=recent_limit)
        return ResponseHandler.success(data=summary)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_dashboard_summary: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
