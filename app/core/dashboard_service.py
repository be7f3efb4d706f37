"""
Dashboard Service.
Aggregate counts and quotation totals for the admin dashboard.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, List, Tuple

from app.core.database import get_db_manager, rows_to_dicts
from app.core.exceptions import AppException, DatabaseException
from app.core.query_builder import QueryBuilder
from app.core.quotation_pricing import OPEN_STATUSES, QUOTATION_STATUSES, to_money
from app.models.database_models import MASTER_DATA_DEFINITIONS

logger = logging.getLogger(__name__)


def summarize_quotation_statuses(rows: List[Tuple[str, int, Any]]) -> Dict[str, Any]:
    """
    Fold (status, count, total) rows into per-status figures.

    Every status is present in the result, zero-filled when no quotation has it.
    """
    by_status = {status: {"count": 0, "total_amount": Decimal("0.00")} for status in QUOTATION_STATUSES}
    for status, count, total in rows:
        if status in by_status:
            by_status[status] = {"count": int(count), "total_amount": to_money(total or 0)}

    return {
        "total": sum(s["count"] for s in by_status.values()),
        "open": sum(by_status[s]["count"] for s in OPEN_STATUSES),
        "accepted_revenue": by_status["ACCEPTED"]["total_amount"],
        "pipeline_value": to_money(sum(by_status[s]["total_amount"] for s in OPEN_STATUSES)),
        "by_status": by_status,
    }


class DashboardService:
    """Service for dashboard aggregates."""

    @staticmethod
    def get_summary(recent_limit: int = 5) -> Dict[str, Any]:
        """
        Returns:
            products, quotations (per-status counts and totals), master-data
            counts and the most recent quotations
        """
        db_manager = get_db_manager()
        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(f"SELECT COUNT(*) FROM products WHERE {QueryBuilder.active_filter()}")
                    product_count = cursor.fetchone()[0]

                    cursor.execute("""
                        SELECT status, COUNT(*), COALESCE(SUM(total_amount), 0)
                        FROM quotations
                        WHERE deleted_at IS NULL
                        GROUP BY status
                    """)
                    quotations = summarize_quotation_statuses(cursor.fetchall())

                    master_data_counts = {}
                    for slug, definition in MASTER_DATA_DEFINITIONS.items():
                        cursor.execute(
                            f"SELECT COUNT(*) FROM {definition.table_name} WHERE {QueryBuilder.active_filter()}"
                        )
                        master_data_counts[slug] = cursor.fetchone()[0]

                    cursor.execute(
                        """
                        SELECT id, quotation_number, customer_name, quotation_date, status, total_amount
                        FROM quotations
                        WHERE deleted_at IS NULL
                        ORDER BY created_at DESC, id DESC
                        LIMIT %s
                        """,
                        (recent_limit,)
                    )
                    recent = rows_to_dicts(cursor)

                    logger.info(f"Dashboard summary: {product_count} products, {quotations['total']} quotations")
                    return {
                        "products": {"total": product_count},
                        "quotations": quotations,
                        "master_data": master_data_counts,
                        "recent_quotations": recent,
                    }
                finally:
                    cursor.close()
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to build dashboard summary: {str(e)}")
            raise DatabaseException(f"Failed to build dashboard summary: {str(e)}")
