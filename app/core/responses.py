"""
Standardized API response handler module.
Provides consistent response format across all endpoints.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from fastapi.encoders import jsonable_encoder


class ResponseHandler:
    """Utility class for generating standardized responses."""

    @staticmethod
    def _encode(data: Any) -> Any:
        # Money columns come back from psycopg2 as Decimal; keep them exact as strings.
        return jsonable_encoder(data, custom_encoder={Decimal: str})

    @staticmethod
    def success(
        data: Any = None,
        status_code: int = 200
    ) -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            status_code: HTTP status code

        Returns:
            Standardized success response dictionary
        """
        return {
            "success": True,
            "data": ResponseHandler._encode(data),
            "metadata": {
                "timestamp": datetime.utcnow().isoformat(),
                "status_code": status_code
            }
        }

    @staticmethod
    def list_response(
        data: List[Any],
        page: int,
        page_size: int,
        total_count: int,
        status_code: int = 200
    ) -> Dict[str, Any]:
        """
        Create a list response with pagination.

        Args:
            data: List of records
            page: Current page number
            page_size: Records per page
            total_count: Total number of records
            status_code: HTTP status code

        Returns:
            Standardized list response dictionary
        """
        total_pages = (total_count + page_size - 1) // page_size

        return {
            "success": True,
            "data": ResponseHandler._encode(data),
            "pagination": {
                "page": page,
                "page_size": page_size,
                "total_count": total_count,
                "total_pages": total_pages
            },
            "metadata": {
                "timestamp": datetime.utcnow().isoformat(),
                "status_code": status_code
            }
        }

    @staticmethod
    def error(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            code: Error code
            message: Error message
            status_code: HTTP status code
            details: Additional error details

        Returns:
            Standardized error response dictionary
        """
        return {
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or {}
            },
            "metadata": {
                "timestamp": datetime.utcnow().isoformat(),
                "status_code": status_code
            }
        }
