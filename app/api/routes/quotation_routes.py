"""
Quotation API Routes.
Quotation CRUD, status workflow, number generation and Excel export.
"""

from datetime import date
from io import BytesIO
from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import StreamingResponse
from typing import Dict, Any, Optional
from app.schemas.quotation import (
    QuotationCreate,
    QuotationStatus,
    QuotationStatusUpdate,
    QuotationUpdate,
)
from app.core.quotation_service import QuotationService
from app.core.excel_export_service import ExcelExportService, XLSX_MEDIA_TYPE
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_current_user, get_pagination
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotations", tags=["Quotations"])


def _list(result, pagination: Dict[str, int]) -> Dict[str, Any]:
    rows, total_count = result
    return ResponseHandler.list_response(
        data=rows,
        page=pagination["page"],
        page_size=pagination["page_size"],
        total_count=total_count
    )


def _xlsx(content: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("", response_model=Dict[str, Any])
async def list_quotations(
    search: Optional[str] = Query(None, description="Substring of number, customer, company or phone"),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    """List quotations, newest first."""
    try:
        if search:
            return _list(QuotationService.search(search, **pagination), pagination)
        return _list(QuotationService.find_all(**pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_quotations: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_quotation(
    request: QuotationCreate,
    user: str = Depends(get_current_user)
):
    """
    Create a DRAFT quotation.

    Line totals and the quotation total are computed server-side. The
    quotation number is generated when omitted.
    """
    try:
        quotation = QuotationService.create(request.model_dump(), user)
        return ResponseHandler.success(data=quotation, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in create_quotation: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/generate-number", response_model=Dict[str, Any])
async def generate_quotation_number(
    for_date: Optional[date] = Query(None, description="Defaults to today")
):
    """Preview the next quotation number for a day."""
    try:
        number = QuotationService.generate_quotation_number(for_date)
        return ResponseHandler.success(data={"quotation_number": number})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in generate_quotation_number: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/search", response_model=Dict[str, Any])
async def search_quotations(
    term: str = Query(..., min_length=1),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        return _list(QuotationService.search(term, **pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in search_quotations: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-status/{quotation_status}", response_model=Dict[str, Any])
async def list_quotations_by_status(
    quotation_status: QuotationStatus,
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        return _list(QuotationService.find_by_status(quotation_status.value, **pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_quotations_by_status: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-customer/{customer_name}", response_model=Dict[str, Any])
async def list_quotations_by_customer(
    customer_name: str,
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        return _list(QuotationService.find_by_customer(customer_name, **pagination), pagination)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_quotations_by_customer: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-number/{quotation_number}", response_model=Dict[str, Any])
async def get_quotation_by_number(quotation_number: str):
    try:
        return ResponseHandler.success(data=QuotationService.find_by_quotation_number(quotation_number))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_quotation_by_number: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/export/summary")
async def export_quotations_summary(
    quotation_status: Optional[QuotationStatus] = Query(None, alias="status")
):
    """Download all quotations (optionally one status) as an Excel summary."""
    try:
        quotations = QuotationService.list_for_export(quotation_status.value if quotation_status else None)
        content = ExcelExportService.export_quotations_summary(quotations)
        return _xlsx(content, "quotations_summary.xlsx")

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in export_quotations_summary: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{quotation_id}", response_model=Dict[str, Any])
async def get_quotation(quotation_id: int):
    try:
        return ResponseHandler.success(data=QuotationService.find_one(quotation_id))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_quotation: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{quotation_id}", response_model=Dict[str, Any])
async def update_quotation(
    quotation_id: int,
    request: QuotationUpdate,
    user: str = Depends(get_current_user)
):
    """Merge header fields; `items`, when sent, replaces all lines and recomputes the total."""
    try:
        quotation = QuotationService.update(quotation_id, request.model_dump(exclude_unset=True), user)
        return ResponseHandler.success(data=quotation)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in update_quotation: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{quotation_id}/status", response_model=Dict[str, Any])
async def update_quotation_status(
    quotation_id: int,
    request: QuotationStatusUpdate,
    user: str = Depends(get_current_user)
):
    """DRAFT -> SENT -> ACCEPTED | REJECTED | EXPIRED"""
    try:
        quotation = QuotationService.update_status(quotation_id, request.status.value, user)
        return ResponseHandler.success(data=quotation)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in update_quotation_status: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{quotation_id}", response_model=Dict[str, Any])
async def delete_quotation(
    quotation_id: int,
    user: str = Depends(get_current_user)
):
    try:
        QuotationService.remove(quotation_id, user)
        return ResponseHandler.success(data={"id": quotation_id, "deleted": True})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in delete_quotation: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{quotation_id}/export")
async def export_quotation(quotation_id: int):
    """Download one quotation as Excel with live total formulas."""
    try:
        quotation = QuotationService.find_one(quotation_id)
        content = ExcelExportService.export_quotation(quotation)
        return _xlsx(content, f"{quotation['quotation_number']}.xlsx")

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in export_quotation: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
