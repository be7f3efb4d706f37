"""
Quotation Service.
Quotation headers, line items, pricing and date-scoped numbering.
"""

from datetime import date
from typing import Dict, Any, List, Optional, Tuple

from app.config import settings
from app.core.database import get_db_manager, rows_to_dicts, row_to_dict
from app.core.exceptions import (
    AppException,
    ConflictException,
    DatabaseException,
    NotFoundException,
    ValidationException,
)
from app.core.logging_config import get_logger, log_operation_start, log_operation_end
from app.core.query_builder import QueryBuilder
from app.core.quotation_pricing import (
    format_quotation_number,
    next_sequence,
    price_items,
    quotation_number_prefix,
    validate_status_transition,
)

logger = get_logger(__name__)

HEADER_FIELDS = [
    "quotation_number", "customer_name", "company_name", "phone_number",
    "quotation_date", "valid_until", "status", "total_amount", "notes"
]
QUOTATION_COLUMNS = ["id", *HEADER_FIELDS, "created_at", "updated_at", "created_by", "updated_by"]
EDITABLE_FIELDS = ("customer_name", "company_name", "phone_number", "quotation_date", "valid_until", "notes")
SEARCH_COLUMNS = ["quotation_number", "customer_name", "company_name", "phone_number"]


class QuotationService:
    """Service for quotation operations."""

    # ------------------------------------------------------------------
    # Numbering
    # ------------------------------------------------------------------

    @staticmethod
    def next_number(cursor, for_date: date) -> str:
        """
        Next free number for the day, on the caller's cursor.

        Takes a transaction-scoped advisory lock on the day prefix so two
        concurrent creates cannot compute the same number.
        """
        day_prefix = quotation_number_prefix(settings.QUOTATION_NUMBER_PREFIX, for_date)
        cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (day_prefix,))
        cursor.execute(
            "SELECT quotation_number FROM quotations WHERE quotation_number LIKE %s",
            (day_prefix + "%",)
        )
        existing = [row[0] for row in cursor.fetchall()]
        return format_quotation_number(
            day_prefix,
            next_sequence(existing, day_prefix),
            settings.QUOTATION_SEQUENCE_WIDTH
        )

    @staticmethod
    def generate_quotation_number(for_date: Optional[date] = None) -> str:
        """Preview the number the next quotation created on `for_date` would get."""
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                return QuotationService.next_number(cursor, for_date or date.today())
            finally:
                cursor.close()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_item_prices(cursor, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Check every product exists; missing unit prices default to the product's base price."""
        product_ids = sorted({item["product_id"] for item in items})
        cursor.execute(
            f"""
            SELECT id, base_price FROM products
            WHERE id = ANY(%s) AND {QueryBuilder.active_filter()}
            """,
            (product_ids,)
        )
        base_prices = {row[0]: row[1] for row in cursor.fetchall()}

        resolved = []
        for index, item in enumerate(items, start=1):
            if item["product_id"] not in base_prices:
                raise ValidationException(
                    f"Item {index}: product {item['product_id']} does not exist",
                    details={"line_number": index, "product_id": item["product_id"]}
                )
            unit_price = item.get("unit_price")
            resolved.append({
                **item,
                "unit_price": unit_price if unit_price is not None else base_prices[item["product_id"]],
            })
        return resolved

    @staticmethod
    def _write_items(cursor, quotation_id: int, items: List[Dict[str, Any]], user: str):
        """
        Price and insert items.

        Returns:
            The quotation total
        """
        if not items:
            raise ValidationException("A quotation needs at least one item")
        priced, total_amount = price_items(QuotationService._resolve_item_prices(cursor, items))
        for item in priced:
            query, values = QueryBuilder.build_insert_query(
                "quotation_items",
                {
                    "quotation_id": quotation_id,
                    "product_id": item["product_id"],
                    "line_number": item["line_number"],
                    "quantity": item["quantity"],
                    "unit_price": item["unit_price"],
                    "total_price": item["total_price"],
                    "notes": item.get("notes"),
                },
                user
            )
            cursor.execute(query, values)
        return total_amount

    @staticmethod
    def _fetch_items(cursor, quotation_id: int) -> List[Dict[str, Any]]:
        cursor.execute(
            """
            SELECT qi.id, qi.product_id, p.name AS product_name, p.code AS product_code,
                   p.description AS product_description, qi.line_number, qi.quantity,
                   qi.unit_price, qi.total_price, qi.notes
            FROM quotation_items qi
            JOIN products p ON p.id = qi.product_id
            WHERE qi.quotation_id = %s AND qi.deleted_at IS NULL
            ORDER BY qi.line_number, qi.id
            """,
            (quotation_id,)
        )
        return rows_to_dicts(cursor)

    @staticmethod
    def _fetch(cursor, quotation_id: int) -> Optional[Dict[str, Any]]:
        cursor.execute(
            f"""
            SELECT {', '.join(QUOTATION_COLUMNS)}
            FROM quotations
            WHERE id = %s AND deleted_at IS NULL
            """,
            (quotation_id,)
        )
        quotation = row_to_dict(cursor, cursor.fetchone())
        if quotation is not None:
            quotation["items"] = QuotationService._fetch_items(cursor, quotation_id)
        return quotation

    @staticmethod
    def _validate_dates(quotation_date: Optional[date], valid_until: Optional[date]) -> None:
        if quotation_date and valid_until and valid_until < quotation_date:
            raise ValidationException("valid_until cannot be earlier than quotation_date")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @staticmethod
    def create(payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Create a DRAFT quotation with its items.

        The quotation number is generated for the current day when not
        supplied, whatever the quotation date; a supplied number must be unused.
        """
        log_operation_start(logger, "create_quotation", customer=payload.get("customer_name"))
        quotation_date = payload.get("quotation_date") or date.today()
        QuotationService._validate_dates(quotation_date, payload.get("valid_until"))

        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    number = payload.get("quotation_number")
                    if number:
                        cursor.execute("SELECT id FROM quotations WHERE quotation_number = %s", (number,))
                        if cursor.fetchone():
                            raise ConflictException(f"Quotation number '{number}' already exists")
                    else:
                        number = QuotationService.next_number(cursor, date.today())

                    header = {
                        "quotation_number": number,
                        "customer_name": payload["customer_name"],
                        "company_name": payload.get("company_name"),
                        "phone_number": payload["phone_number"],
                        "quotation_date": quotation_date,
                        "valid_until": payload.get("valid_until"),
                        "status": "DRAFT",
                        "total_amount": 0,
                        "notes": payload.get("notes"),
                    }
                    query, values = QueryBuilder.build_insert_query("quotations", header, user)
                    cursor.execute(query, values)
                    quotation_id = cursor.fetchone()[0]

                    total_amount = QuotationService._write_items(cursor, quotation_id, payload.get("items") or [], user)
                    cursor.execute(
                        "UPDATE quotations SET total_amount = %s WHERE id = %s",
                        (total_amount, quotation_id)
                    )

                    logger.info(f"Created quotation {number} (id={quotation_id}) total={total_amount}")
                    log_operation_end(logger, "create_quotation", success=True, quotation_id=quotation_id)
                    return QuotationService._fetch(cursor, quotation_id)
                finally:
                    cursor.close()
        except AppException as e:
            log_operation_end(logger, "create_quotation", success=False, error=e.message)
            raise
        except Exception as e:
            logger.error(f"Failed to create quotation: {str(e)}")
            log_operation_end(logger, "create_quotation", success=False, error=str(e))
            raise DatabaseException(f"Failed to create quotation: {str(e)}")

    @staticmethod
    def _list(
        where: str,
        params: List[Any],
        page: int,
        page_size: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        limit, offset = QueryBuilder.pagination(page, page_size)
        where = f"deleted_at IS NULL AND {where}" if where else "deleted_at IS NULL"

        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"SELECT COUNT(*) FROM quotations WHERE {where}", params)
                total_count = cursor.fetchone()[0]
                cursor.execute(
                    f"""
                    SELECT {', '.join(QUOTATION_COLUMNS)}
                    FROM quotations
                    WHERE {where}
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    params + [limit, offset]
                )
                return rows_to_dicts(cursor), total_count
            finally:
                cursor.close()

    @staticmethod
    def find_all(page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return QuotationService._list("", [], page, page_size)

    @staticmethod
    def search(term: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        pattern = QueryBuilder.like_pattern(term)
        return QuotationService._list(
            QueryBuilder.build_search_clause(SEARCH_COLUMNS),
            [pattern] * len(SEARCH_COLUMNS),
            page,
            page_size
        )

    @staticmethod
    def find_by_status(status: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return QuotationService._list("status = %s", [status], page, page_size)

    @staticmethod
    def find_by_customer(customer_name: str, page: int = 1, page_size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        return QuotationService._list(
            "customer_name ILIKE %s", [QueryBuilder.like_pattern(customer_name)], page, page_size
        )

    @staticmethod
    def list_for_export(status: Optional[str] = None) -> List[Dict[str, Any]]:
        """All quotations (optionally one status), oldest first, without items."""
        where = "deleted_at IS NULL"
        params: List[Any] = []
        if status:
            where += " AND status = %s"
            params.append(status)
        db_manager = get_db_manager()
        return db_manager.execute_query(
            f"SELECT {', '.join(QUOTATION_COLUMNS)} FROM quotations WHERE {where} ORDER BY quotation_date, id",
            tuple(params)
        )

    @staticmethod
    def find_one(quotation_id: int) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                quotation = QuotationService._fetch(cursor, quotation_id)
                if quotation is None:
                    raise NotFoundException("Quotation", quotation_id)
                return quotation
            finally:
                cursor.close()

    @staticmethod
    def find_by_quotation_number(quotation_number: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "SELECT id FROM quotations WHERE quotation_number = %s AND deleted_at IS NULL",
                    (quotation_number,)
                )
                row = cursor.fetchone()
                if row is None:
                    raise NotFoundException("Quotation", quotation_number)
                return QuotationService._fetch(cursor, row[0])
            finally:
                cursor.close()

    @staticmethod
    def update(quotation_id: int, payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Merge header fields. When `items` is supplied the items are replaced
        and the total recomputed; otherwise the stored total is kept.
        """
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(
                        f"SELECT {', '.join(QUOTATION_COLUMNS)} FROM quotations WHERE id = %s AND deleted_at IS NULL",
                        (quotation_id,)
                    )
                    existing = row_to_dict(cursor, cursor.fetchone())
                    if existing is None:
                        raise NotFoundException("Quotation", quotation_id)

                    merged = QueryBuilder.merge(
                        existing, payload, EDITABLE_FIELDS,
                        required=("customer_name", "phone_number", "quotation_date")
                    )
                    QuotationService._validate_dates(merged["quotation_date"], merged["valid_until"])

                    if payload.get("items") is not None:
                        cursor.execute(
                            QueryBuilder.build_soft_delete_query("quotation_items", "quotation_id"),
                            (user, quotation_id)
                        )
                        merged["total_amount"] = QuotationService._write_items(
                            cursor, quotation_id, payload["items"], user
                        )

                    query, values = QueryBuilder.build_update_query("quotations", quotation_id, merged, user)
                    cursor.execute(query, values)

                    logger.info(f"Updated quotation {existing['quotation_number']} (id={quotation_id})")
                    return QuotationService._fetch(cursor, quotation_id)
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to update quotation {quotation_id}: {str(e)}")
            raise DatabaseException(f"Failed to update quotation: {str(e)}")

    @staticmethod
    def update_status(quotation_id: int, status: str, user: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "SELECT status FROM quotations WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
                    (quotation_id,)
                )
                row = cursor.fetchone()
                if row is None:
                    raise NotFoundException("Quotation", quotation_id)

                if validate_status_transition(row[0], status):
                    query, values = QueryBuilder.build_update_query(
                        "quotations", quotation_id, {"status": status}, user
                    )
                    cursor.execute(query, values)
                    logger.info(f"Quotation {quotation_id} status {row[0]} -> {status}")
                return QuotationService._fetch(cursor, quotation_id)
            finally:
                cursor.close()

    @staticmethod
    def remove(quotation_id: int, user: str) -> None:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(QueryBuilder.build_soft_delete_query("quotations"), (user, quotation_id))
                if cursor.fetchone() is None:
                    raise NotFoundException("Quotation", quotation_id)
                cursor.execute(
                    QueryBuilder.build_soft_delete_query("quotation_items", "quotation_id"),
                    (user, quotation_id)
                )
                logger.info(f"Soft-deleted quotation {quotation_id}")
            finally:
                cursor.close()
