"""
Product API Routes.
Product CRUD, lookups and Excel template/import.
"""

from io import BytesIO
from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from fastapi.responses import StreamingResponse
from typing import Dict, Any, Optional
from app.schemas.product import ProductCreate, ProductUpdate
from app.schemas.upload import ProductImportResponse
from app.core.product_service import ProductService
from app.core.excel_import_service import ExcelImportService
from app.core.excel_export_service import ExcelExportService, XLSX_MEDIA_TYPE
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_current_user, get_pagination
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=Dict[str, Any])
async def list_products(
    search: Optional[str] = Query(None, description="Substring of name, code, SKU or description"),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    """List active products, newest first."""
    try:
        if search:
            products, total_count = ProductService.search(search, **pagination)
        else:
            products, total_count = ProductService.find_all(**pagination)
        return ResponseHandler.list_response(
            data=products,
            page=pagination["page"],
            page_size=pagination["page_size"],
            total_count=total_count
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_products: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductCreate,
    user: str = Depends(get_current_user)
):
    """Create a product with its dynamic attribute values."""
    try:
        product = ProductService.create(request.model_dump(), user)
        return ResponseHandler.success(data=product, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in create_product: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/search", response_model=Dict[str, Any])
async def search_products(
    term: str = Query(..., min_length=1),
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        products, total_count = ProductService.search(term, **pagination)
        return ResponseHandler.list_response(
            data=products,
            page=pagination["page"],
            page_size=pagination["page_size"],
            total_count=total_count
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in search_products: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-category/{category_id}", response_model=Dict[str, Any])
async def list_products_by_category(
    category_id: int,
    pagination: Dict[str, int] = Depends(get_pagination)
):
    try:
        products, total_count = ProductService.find_by_category(category_id, **pagination)
        return ResponseHandler.list_response(
            data=products,
            page=pagination["page"],
            page_size=pagination["page_size"],
            total_count=total_count
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_products_by_category: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-code/{code}", response_model=Dict[str, Any])
async def get_product_by_code(code: str):
    try:
        return ResponseHandler.success(data=ProductService.find_by_code(code))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_product_by_code: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/by-sku/{sku}", response_model=Dict[str, Any])
async def get_product_by_sku(sku: str):
    try:
        return ResponseHandler.success(data=ProductService.find_by_sku(sku))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_product_by_sku: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/excel/template")
async def download_import_template():
    """Download the Excel import template with current attribute columns and master-data lists."""
    try:
        content = ExcelExportService.generate_template()
        return StreamingResponse(
            BytesIO(content),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": "attachment; filename=product_import_template.xlsx"}
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in download_import_template: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/excel/import", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def import_products(
    file: UploadFile = File(...),
    user: str = Depends(get_current_user)
):
    """
    Import products from an Excel file.

    Rows that fail validation are reported with their sheet row number; the
    remaining rows are still imported.
    """
    try:
        if not file.filename or not file.filename.lower().endswith(('.xlsx', '.xlsm')):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only Excel files (.xlsx, .xlsm) are allowed"
            )

        file_content = await file.read()
        result = ExcelImportService.import_products(file_content, user)

        response_data = ProductImportResponse(**result)
        return ResponseHandler.success(data=response_data.model_dump(), status_code=201)

    except HTTPException:
        raise
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in import_products: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{product_id}", response_model=Dict[str, Any])
async def get_product(product_id: int):
    try:
        return ResponseHandler.success(data=ProductService.find_one(product_id))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_product: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{product_id}", response_model=Dict[str, Any])
async def update_product(
    product_id: int,
    request: ProductUpdate,
    user: str = Depends(get_current_user)
):
    """Merge the sent fields; `dynamic_attributes`, when sent, replaces all values."""
    try:
        product = ProductService.update(product_id, request.model_dump(exclude_unset=True), user)
        return ResponseHandler.success(data=product)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in update_product: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{product_id}", response_model=Dict[str, Any])
async def delete_product(
    product_id: int,
    user: str = Depends(get_current_user)
):
    try:
        ProductService.remove(product_id, user)
        return ResponseHandler.success(data={"id": product_id, "deleted": True})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in delete_product: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")
