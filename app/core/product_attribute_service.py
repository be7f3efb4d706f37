"""
Product Attribute Service.
Definitions of dynamic product attributes and their predefined option values.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Optional, Tuple

from app.core.database import get_db_manager, rows_to_dicts, row_to_dict
from app.core.exceptions import (
    AppException,
    ConflictException,
    DatabaseException,
    NotFoundException,
    ValidationException,
)
from app.core.query_builder import QueryBuilder

logger = logging.getLogger(__name__)

ATTRIBUTE_DATA_TYPES = ("TEXT", "NUMBER")

ATTRIBUTE_COLUMNS = [
    "id", "name", "code", "data_type", "description", "is_required", "is_active",
    "created_at", "updated_at", "created_by", "updated_by"
]
VALUE_COLUMNS = ["id", "attribute_id", "value", "display_order", "is_active", "created_at", "updated_at"]


class ProductAttributeService:
    """Service for product attribute definitions."""

    @staticmethod
    def get_active_attributes(cursor) -> List[Dict[str, Any]]:
        """Active attributes ordered by name, on the caller's cursor."""
        cursor.execute(f"""
            SELECT {', '.join(ATTRIBUTE_COLUMNS)}
            FROM product_attributes
            WHERE {QueryBuilder.active_filter()}
            ORDER BY name, id
        """)
        return rows_to_dicts(cursor)

    @staticmethod
    def _fetch(cursor, attribute_id: int, include_inactive: bool = False) -> Optional[Dict[str, Any]]:
        cursor.execute(
            f"""
            SELECT {', '.join(ATTRIBUTE_COLUMNS)}
            FROM product_attributes
            WHERE id = %s AND {QueryBuilder.active_filter(has_is_active=not include_inactive)}
            """,
            (attribute_id,)
        )
        return row_to_dict(cursor, cursor.fetchone())

    @staticmethod
    def _code_taken(cursor, code: str, exclude_id: Optional[int] = None) -> bool:
        query = "SELECT id FROM product_attributes WHERE code = %s AND deleted_at IS NULL"
        params: List[Any] = [code]
        if exclude_id is not None:
            query += " AND id <> %s"
            params.append(exclude_id)
        cursor.execute(query, params)
        return cursor.fetchone() is not None

    @staticmethod
    def create(payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    if ProductAttributeService._code_taken(cursor, payload["code"]):
                        raise ConflictException(f"Product attribute code '{payload['code']}' already exists")

                    data = {k: v for k, v in payload.items() if k in ATTRIBUTE_COLUMNS}
                    query, values = QueryBuilder.build_insert_query("product_attributes", data, user)
                    cursor.execute(query, values)
                    new_id = cursor.fetchone()[0]
                    logger.info(f"Created product attribute {new_id} ({payload['code']})")
                    return ProductAttributeService._fetch(cursor, new_id, include_inactive=True)
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to create product attribute: {str(e)}")
            raise DatabaseException(f"Failed to create product attribute: {str(e)}")

    @staticmethod
    def find_all(
        page: int = 1,
        page_size: int = 50,
        search: Optional[str] = None,
        data_type: Optional[str] = None,
        required_only: bool = False
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List active attributes with optional filters.

        Returns:
            Tuple of (attributes, total_count)
        """
        where = QueryBuilder.active_filter()
        params: List[Any] = []
        if search:
            where += " AND " + QueryBuilder.build_search_clause(["name", "code"])
            pattern = QueryBuilder.like_pattern(search)
            params.extend([pattern, pattern])
        if data_type:
            if data_type.upper() not in ATTRIBUTE_DATA_TYPES:
                raise ValidationException(f"Invalid data type: {data_type}")
            where += " AND data_type = %s"
            params.append(data_type.upper())
        if required_only:
            where += " AND is_required = TRUE"

        limit, offset = QueryBuilder.pagination(page, page_size)
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"SELECT COUNT(*) FROM product_attributes WHERE {where}", params)
                total_count = cursor.fetchone()[0]
                cursor.execute(
                    f"""
                    SELECT {', '.join(ATTRIBUTE_COLUMNS)}
                    FROM product_attributes
                    WHERE {where}
                    ORDER BY name, id
                    LIMIT %s OFFSET %s
                    """,
                    params + [limit, offset]
                )
                return rows_to_dicts(cursor), total_count
            finally:
                cursor.close()

    @staticmethod
    def search(term: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return ProductAttributeService.find_all(page, page_size, search=term)

    @staticmethod
    def find_by_data_type(data_type: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return ProductAttributeService.find_all(page, page_size, data_type=data_type)

    @staticmethod
    def find_required(page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return ProductAttributeService.find_all(page, page_size, required_only=True)

    @staticmethod
    def find_one(attribute_id: int) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                attribute = ProductAttributeService._fetch(cursor, attribute_id)
                if attribute is None:
                    raise NotFoundException("ProductAttribute", attribute_id)
                attribute["values"] = ProductAttributeService._fetch_values(cursor, attribute_id)
                return attribute
            finally:
                cursor.close()

    @staticmethod
    def find_by_code(code: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"""
                    SELECT {', '.join(ATTRIBUTE_COLUMNS)}
                    FROM product_attributes
                    WHERE code = %s AND {QueryBuilder.active_filter()}
                    """,
                    (code,)
                )
                attribute = row_to_dict(cursor, cursor.fetchone())
                if attribute is None:
                    raise NotFoundException("ProductAttribute", code)
                return attribute
            finally:
                cursor.close()

    @staticmethod
    def update(attribute_id: int, payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """Merge-then-save. Changing data_type is refused while products still carry values."""
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    existing = ProductAttributeService._fetch(cursor, attribute_id, include_inactive=True)
                    if existing is None:
                        raise NotFoundException("ProductAttribute", attribute_id)

                    mutable = ("name", "code", "data_type", "description", "is_required", "is_active")
                    merged = QueryBuilder.merge(
                        existing, payload, mutable,
                        required=("name", "code", "data_type", "is_required", "is_active")
                    )

                    if merged["code"] != existing["code"] and ProductAttributeService._code_taken(
                        cursor, merged["code"], exclude_id=attribute_id
                    ):
                        raise ConflictException(f"Product attribute code '{merged['code']}' already exists")

                    if merged["data_type"] != existing["data_type"]:
                        cursor.execute(
                            """
                            SELECT COUNT(*) FROM product_dynamic_attributes
                            WHERE attribute_id = %s AND deleted_at IS NULL
                            """,
                            (attribute_id,)
                        )
                        if cursor.fetchone()[0] > 0:
                            raise ValidationException(
                                "Cannot change data type of an attribute that products already use"
                            )

                    query, values = QueryBuilder.build_update_query("product_attributes", attribute_id, merged, user)
                    cursor.execute(query, values)
                    logger.info(f"Updated product attribute {attribute_id}")
                    return ProductAttributeService._fetch(cursor, attribute_id, include_inactive=True)
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to update product attribute {attribute_id}: {str(e)}")
            raise DatabaseException(f"Failed to update product attribute: {str(e)}")

    @staticmethod
    def remove(attribute_id: int, user: str) -> None:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(QueryBuilder.build_soft_delete_query("product_attributes"), (user, attribute_id))
                if cursor.fetchone() is None:
                    raise NotFoundException("ProductAttribute", attribute_id)
                cursor.execute(
                    QueryBuilder.build_soft_delete_query("product_attribute_values", "attribute_id"),
                    (user, attribute_id)
                )
                logger.info(f"Soft-deleted product attribute {attribute_id}")
            finally:
                cursor.close()

    # ------------------------------------------------------------------
    # Option values
    # ------------------------------------------------------------------

    @staticmethod
    def _fetch_values(cursor, attribute_id: int) -> List[Dict[str, Any]]:
        cursor.execute(
            f"""
            SELECT {', '.join(VALUE_COLUMNS)}
            FROM product_attribute_values
            WHERE attribute_id = %s AND {QueryBuilder.active_filter()}
            ORDER BY display_order, id
            """,
            (attribute_id,)
        )
        return rows_to_dicts(cursor)

    @staticmethod
    def list_values(attribute_id: int) -> List[Dict[str, Any]]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                if ProductAttributeService._fetch(cursor, attribute_id) is None:
                    raise NotFoundException("ProductAttribute", attribute_id)
                return ProductAttributeService._fetch_values(cursor, attribute_id)
            finally:
                cursor.close()

    @staticmethod
    def add_value(attribute_id: int, payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                attribute = ProductAttributeService._fetch(cursor, attribute_id)
                if attribute is None:
                    raise NotFoundException("ProductAttribute", attribute_id)
                if attribute["data_type"] == "NUMBER":
                    try:
                        number = Decimal(str(payload["value"]).strip())
                    except InvalidOperation:
                        number = None
                    if number is None or not number.is_finite():
                        raise ValidationException(
                            f"Value '{payload['value']}' is not numeric for attribute {attribute['name']}",
                            details={"field": "value", "value": payload["value"]}
                        )

                data = {
                    "attribute_id": attribute_id,
                    "value": payload["value"],
                    "display_order": payload.get("display_order", 0),
                    "is_active": payload.get("is_active", True),
                }
                query, values = QueryBuilder.build_insert_query("product_attribute_values", data, user)
                cursor.execute(query, values)
                new_id = cursor.fetchone()[0]
                cursor.execute(
                    f"SELECT {', '.join(VALUE_COLUMNS)} FROM product_attribute_values WHERE id = %s",
                    (new_id,)
                )
                return row_to_dict(cursor, cursor.fetchone())
            finally:
                cursor.close()

    @staticmethod
    def remove_value(attribute_id: int, value_id: int, user: str) -> None:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    UPDATE product_attribute_values
                    SET deleted_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP, updated_by = %s
                    WHERE id = %s AND attribute_id = %s AND deleted_at IS NULL
                    RETURNING id
                    """,
                    (user, value_id, attribute_id)
                )
                if cursor.fetchone() is None:
                    raise NotFoundException("ProductAttributeValue", value_id)
            finally:
                cursor.close()
