"""
Product Service.
Product CRUD with master-data references and dynamic (EAV) attributes.
"""

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
from app.core.logging_config import get_logger
from app.core.master_data_service import MasterDataService
from app.core.product_attribute_service import ProductAttributeService
from app.core.query_builder import QueryBuilder
from app.models.database_models import MASTER_DATA_DEFINITIONS, PRODUCT_RELATIONS

logger = get_logger(__name__)

PRODUCT_FIELDS = [
    "name", "code", "sku", *PRODUCT_RELATIONS.keys(),
    "image_url", "description", "base_price", "is_active"
]
PRODUCT_COLUMNS = ["id", *PRODUCT_FIELDS, "created_at", "updated_at", "created_by", "updated_by"]
SEARCH_COLUMNS = ["p.name", "p.code", "p.sku", "p.description"]


def normalize_dynamic_attributes(
    entries: List[Dict[str, Any]],
    attributes: Dict[int, Dict[str, Any]],
    enforce_required: bool = True
) -> List[Dict[str, Any]]:
    """
    Validate dynamic attribute values against their definitions.

    Args:
        entries: [{attribute_id, text_value?, number_value?}]
        attributes: Active attribute definitions keyed by id
        enforce_required: Whether every required attribute must be present

    Returns:
        Rows ready for product_dynamic_attributes; TEXT attributes carry only
        text_value and NUMBER attributes only number_value.

    Raises:
        ValidationException: Unknown attribute, duplicate, wrong type or missing required value
    """
    normalized = []
    seen = set()
    for entry in entries:
        attribute_id = entry["attribute_id"]
        attribute = attributes.get(attribute_id)
        if attribute is None:
            raise ValidationException(
                f"Product attribute {attribute_id} does not exist",
                details={"field": "attributes", "attribute_id": attribute_id}
            )
        if attribute_id in seen:
            raise ValidationException(
                f"Attribute '{attribute['name']}' is specified more than once",
                details={"field": "attributes", "attribute_id": attribute_id}
            )
        seen.add(attribute_id)

        text_value = entry.get("text_value")
        number_value = entry.get("number_value")
        if attribute["data_type"] == "NUMBER":
            raw = number_value if number_value is not None else text_value
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                if attribute["is_required"] and enforce_required:
                    raise ValidationException(
                        f"Attribute '{attribute['name']}' is required",
                        details={"field": "attributes", "attribute_id": attribute_id}
                    )
                continue
            try:
                number = Decimal(str(raw).strip())
            except InvalidOperation:
                raise ValidationException(
                    f"Attribute '{attribute['name']}' expects a number, got '{raw}'",
                    details={"field": "attributes", "attribute_id": attribute_id, "value": str(raw)}
                )
            if not number.is_finite():
                raise ValidationException(
                    f"Attribute '{attribute['name']}' expects a finite number",
                    details={"field": "attributes", "attribute_id": attribute_id, "value": str(raw)}
                )
            normalized.append({"attribute_id": attribute_id, "text_value": None, "number_value": number})
        else:
            raw = text_value if text_value is not None else number_value
            if raw is None or not str(raw).strip():
                if attribute["is_required"] and enforce_required:
                    raise ValidationException(
                        f"Attribute '{attribute['name']}' is required",
                        details={"field": "attributes", "attribute_id": attribute_id}
                    )
                continue
            normalized.append({"attribute_id": attribute_id, "text_value": str(raw).strip(), "number_value": None})

    if enforce_required:
        provided = {row["attribute_id"] for row in normalized}
        missing = [a["name"] for a in attributes.values() if a["is_required"] and a["id"] not in provided]
        if missing:
            raise ValidationException(
                f"Missing required attributes: {', '.join(sorted(missing))}",
                details={"field": "attributes", "missing": sorted(missing)}
            )
    return normalized


class ProductService:
    """Service for product operations."""

    # ------------------------------------------------------------------
    # Cursor-level helpers (shared with the import pipeline)
    # ------------------------------------------------------------------

    @staticmethod
    def ensure_unique(cursor, code: str, sku: Optional[str], exclude_id: Optional[int] = None) -> None:
        """
        Raises:
            ConflictException: If code or SKU belongs to another live product
        """
        exclude_sql = " AND id <> %s" if exclude_id is not None else ""
        extra = [exclude_id] if exclude_id is not None else []

        cursor.execute(
            f"SELECT id FROM products WHERE code = %s AND deleted_at IS NULL{exclude_sql}",
            [code, *extra]
        )
        if cursor.fetchone():
            raise ConflictException(f"Product code '{code}' already exists", details={"field": "code", "value": code})

        if sku:
            cursor.execute(
                f"SELECT id FROM products WHERE sku = %s AND deleted_at IS NULL{exclude_sql}",
                [sku, *extra]
            )
            if cursor.fetchone():
                raise ConflictException(f"Product SKU '{sku}' already exists", details={"field": "sku", "value": sku})

    @staticmethod
    def validate_relations(cursor, data: Dict[str, Any]) -> None:
        if data.get("category_id") is None:
            raise ValidationException("Category is required", details={"field": "category_id"})
        for column, slug in PRODUCT_RELATIONS.items():
            value = data.get(column)
            if value is None:
                continue
            definition = MASTER_DATA_DEFINITIONS[slug]
            if not MasterDataService.exists(cursor, definition, value):
                raise ValidationException(
                    f"{definition.display_name} {value} does not exist",
                    details={"field": column}
                )

    @staticmethod
    def load_attribute_definitions(cursor) -> Dict[int, Dict[str, Any]]:
        return {a["id"]: a for a in ProductAttributeService.get_active_attributes(cursor)}

    @staticmethod
    def insert_product(cursor, data: Dict[str, Any], user: str) -> int:
        query, values = QueryBuilder.build_insert_query(
            "products", {k: v for k, v in data.items() if k in PRODUCT_FIELDS}, user
        )
        cursor.execute(query, values)
        return cursor.fetchone()[0]

    @staticmethod
    def insert_dynamic_attributes(cursor, product_id: int, rows: List[Dict[str, Any]], user: str) -> None:
        for row in rows:
            query, values = QueryBuilder.build_insert_query(
                "product_dynamic_attributes",
                {
                    "product_id": product_id,
                    "attribute_id": row["attribute_id"],
                    "text_value": row["text_value"],
                    "number_value": row["number_value"],
                },
                user
            )
            cursor.execute(query, values)

    @staticmethod
    def _select_sql() -> str:
        """Product columns plus the display name of each referenced master-data row."""
        select = [f"p.{col}" for col in PRODUCT_COLUMNS]
        joins = []
        for index, (column, slug) in enumerate(PRODUCT_RELATIONS.items()):
            alias = f"m{index}"
            table = MASTER_DATA_DEFINITIONS[slug].table_name
            select.append(f"{alias}.name AS {column[:-3]}_name")
            joins.append(f"LEFT JOIN {table} {alias} ON {alias}.id = p.{column}")
        return f"SELECT {', '.join(select)} FROM products p {' '.join(joins)}"

    @staticmethod
    def _fetch(cursor, product_id: int) -> Optional[Dict[str, Any]]:
        cursor.execute(
            f"{ProductService._select_sql()} WHERE p.id = %s AND {QueryBuilder.active_filter('p')}",
            (product_id,)
        )
        product = row_to_dict(cursor, cursor.fetchone())
        if product is not None:
            product["dynamic_attributes"] = ProductService._fetch_dynamic_attributes(cursor, product_id)
        return product

    @staticmethod
    def _fetch_dynamic_attributes(cursor, product_id: int) -> List[Dict[str, Any]]:
        cursor.execute(
            """
            SELECT pda.id, pda.attribute_id, pa.name AS attribute_name, pa.code AS attribute_code,
                   pa.data_type, pda.text_value, pda.number_value
            FROM product_dynamic_attributes pda
            JOIN product_attributes pa ON pa.id = pda.attribute_id
            WHERE pda.product_id = %s AND pda.deleted_at IS NULL
            ORDER BY pa.name, pda.id
            """,
            (product_id,)
        )
        return rows_to_dicts(cursor)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @staticmethod
    def create(payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Create a product and its dynamic attributes in one transaction.

        Raises:
            ConflictException: Duplicate code or SKU
            ValidationException: Unknown master data or invalid attribute values
        """
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    ProductService.ensure_unique(cursor, payload["code"], payload.get("sku"))
                    ProductService.validate_relations(cursor, payload)
                    dynamic_rows = normalize_dynamic_attributes(
                        payload.get("dynamic_attributes") or [],
                        ProductService.load_attribute_definitions(cursor)
                    )

                    product_id = ProductService.insert_product(cursor, payload, user)
                    ProductService.insert_dynamic_attributes(cursor, product_id, dynamic_rows, user)

                    logger.info(f"Created product {product_id} ({payload['code']}) with {len(dynamic_rows)} attributes")
                    return ProductService._fetch(cursor, product_id)
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to create product: {str(e)}")
            raise DatabaseException(f"Failed to create product: {str(e)}")

    @staticmethod
    def _list(
        where: str,
        params: List[Any],
        page: int,
        page_size: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        limit, offset = QueryBuilder.pagination(page, page_size)
        where = f"{QueryBuilder.active_filter('p')} AND {where}" if where else QueryBuilder.active_filter('p')

        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(f"SELECT COUNT(*) FROM products p WHERE {where}", params)
                    total_count = cursor.fetchone()[0]
                    cursor.execute(
                        f"""
                        {ProductService._select_sql()}
                        WHERE {where}
                        ORDER BY p.created_at DESC, p.id DESC
                        LIMIT %s OFFSET %s
                        """,
                        params + [limit, offset]
                    )
                    return rows_to_dicts(cursor), total_count
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to list products: {str(e)}")
            raise DatabaseException(f"Failed to list products: {str(e)}")

    @staticmethod
    def find_all(page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return ProductService._list("", [], page, page_size)

    @staticmethod
    def search(term: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        """Substring match on name, code, SKU or description."""
        pattern = QueryBuilder.like_pattern(term)
        return ProductService._list(
            QueryBuilder.build_search_clause(SEARCH_COLUMNS),
            [pattern] * len(SEARCH_COLUMNS),
            page,
            page_size
        )

    @staticmethod
    def find_by_category(category_id: int, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return ProductService._list("p.category_id = %s", [category_id], page, page_size)

    @staticmethod
    def find_one(product_id: int) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                product = ProductService._fetch(cursor, product_id)
                if product is None:
                    raise NotFoundException("Product", product_id)
                return product
            finally:
                cursor.close()

    @staticmethod
    def _find_by_column(column: str, value: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"SELECT id FROM products WHERE {column} = %s AND {QueryBuilder.active_filter()}",
                    (value,)
                )
                row = cursor.fetchone()
                if row is None:
                    raise NotFoundException("Product", value)
                return ProductService._fetch(cursor, row[0])
            finally:
                cursor.close()

    @staticmethod
    def find_by_code(code: str) -> Dict[str, Any]:
        return ProductService._find_by_column("code", code)

    @staticmethod
    def find_by_sku(sku: str) -> Dict[str, Any]:
        return ProductService._find_by_column("sku", sku)

    @staticmethod
    def update(product_id: int, payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Merge the provided fields onto the stored product and save it.

        When `dynamic_attributes` is present the product's attribute values are
        replaced as a whole; otherwise they are left untouched.
        """
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(
                        f"SELECT {', '.join(PRODUCT_COLUMNS)} FROM products WHERE id = %s AND deleted_at IS NULL",
                        (product_id,)
                    )
                    existing = row_to_dict(cursor, cursor.fetchone())
                    if existing is None:
                        raise NotFoundException("Product", product_id)

                    merged = QueryBuilder.merge(
                        existing, payload, tuple(PRODUCT_FIELDS),
                        required=("name", "code", "category_id", "base_price", "is_active")
                    )

                    if merged["code"] != existing["code"] or merged["sku"] != existing["sku"]:
                        ProductService.ensure_unique(
                            cursor,
                            merged["code"],
                            merged["sku"] if merged["sku"] != existing["sku"] else None,
                            exclude_id=product_id
                        )
                    ProductService.validate_relations(cursor, merged)

                    query, values = QueryBuilder.build_update_query("products", product_id, merged, user)
                    cursor.execute(query, values)

                    if payload.get("dynamic_attributes") is not None:
                        dynamic_rows = normalize_dynamic_attributes(
                            payload["dynamic_attributes"],
                            ProductService.load_attribute_definitions(cursor)
                        )
                        cursor.execute(
                            QueryBuilder.build_soft_delete_query("product_dynamic_attributes", "product_id"),
                            (user, product_id)
                        )
                        ProductService.insert_dynamic_attributes(cursor, product_id, dynamic_rows, user)

                    logger.info(f"Updated product {product_id}")
                    cursor.execute(
                        f"{ProductService._select_sql()} WHERE p.id = %s", (product_id,)
                    )
                    product = row_to_dict(cursor, cursor.fetchone())
                    product["dynamic_attributes"] = ProductService._fetch_dynamic_attributes(cursor, product_id)
                    return product
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to update product {product_id}: {str(e)}")
            raise DatabaseException(f"Failed to update product: {str(e)}")

    @staticmethod
    def remove(product_id: int, user: str) -> None:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(QueryBuilder.build_soft_delete_query("products"), (user, product_id))
                if cursor.fetchone() is None:
                    raise NotFoundException("Product", product_id)
                cursor.execute(
                    QueryBuilder.build_soft_delete_query("product_dynamic_attributes", "product_id"),
                    (user, product_id)
                )
                logger.info(f"Soft-deleted product {product_id}")
            finally:
                cursor.close()
