"""
Query Builder - SQL construction for catalog tables.
Centralized query building with parameterized queries for security.
"""

from typing import Dict, Any, List, Tuple, Optional


class QueryBuilder:
    """Builds parameterized SQL for inserts, updates and list queries."""

    @staticmethod
    def build_insert_query(
        table_name: str,
        data: Dict[str, Any],
        user: str
    ) -> Tuple[str, List[Any]]:
        """
        Build INSERT query with parameterized values.

        Args:
            table_name: Target table
            data: Column values to insert
            user: Acting user recorded in created_by/updated_by

        Returns:
            Tuple of (query, values)
        """
        columns = list(data.keys()) + ['created_by', 'updated_by']
        values = list(data.values()) + [user, user]
        placeholders = ['%s'] * len(columns)

        query = f"""
            INSERT INTO {table_name} ({', '.join(columns)})
            VALUES ({', '.join(placeholders)})
            RETURNING id
        """
        return query, values

    @staticmethod
    def build_update_query(
        table_name: str,
        entity_id: int,
        data: Dict[str, Any],
        user: str
    ) -> Tuple[str, List[Any]]:
        """
        Build UPDATE query for a single non-deleted row.

        Returns:
            Tuple of (query, values)
        """
        set_clauses = [f"{col} = %s" for col in data.keys()]
        set_clauses.extend(["updated_at = CURRENT_TIMESTAMP", "updated_by = %s"])
        values = list(data.values()) + [user, entity_id]

        query = f"""
            UPDATE {table_name}
            SET {', '.join(set_clauses)}
            WHERE id = %s AND deleted_at IS NULL
            RETURNING id
        """
        return query, values

    @staticmethod
    def merge(
        existing: Dict[str, Any],
        payload: Dict[str, Any],
        fields: Tuple[str, ...],
        required: Tuple[str, ...] = ()
    ) -> Dict[str, Any]:
        """
        Overlay payload values onto the stored row, limited to `fields`.

        A null sent for a `required` column keeps the stored value.
        """
        merged = {key: existing[key] for key in fields}
        for key, value in payload.items():
            if key not in fields or (value is None and key in required):
                continue
            merged[key] = value
        return merged

    @staticmethod
    def build_soft_delete_query(table_name: str, key_column: str = "id") -> str:
        return f"""
            UPDATE {table_name}
            SET deleted_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP, updated_by = %s
            WHERE {key_column} = %s AND deleted_at IS NULL
            RETURNING id
        """

    @staticmethod
    def like_pattern(term: str) -> str:
        """Substring pattern for ILIKE with wildcard characters escaped."""
        escaped = term.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    @staticmethod
    def build_search_clause(columns: List[str]) -> str:
        """OR of ILIKE conditions, one placeholder per column."""
        return "(" + " OR ".join(f"{col} ILIKE %s" for col in columns) + ")"

    @staticmethod
    def pagination(page: int, page_size: int) -> Tuple[int, int]:
        """
        Returns:
            Tuple of (limit, offset)
        """
        page = max(page, 1)
        return page_size, (page - 1) * page_size

    @staticmethod
    def active_filter(alias: Optional[str] = None, has_is_active: bool = True) -> str:
        prefix = f"{alias}." if alias else ""
        clause = f"{prefix}deleted_at IS NULL"
        if has_is_active:
            clause += f" AND {prefix}is_active = TRUE"
        return clause
