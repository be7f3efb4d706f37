"""
Master Data Service.
Generic CRUD for the nine reference-data types (categories, brands, colors, ...).
"""

import logging
import re
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
from app.models.database_models import MASTER_DATA_DEFINITIONS, MasterDataDefinition

logger = logging.getLogger(__name__)

HEX_CODE_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
MAX_CODE_LENGTH = 50


def generate_code_from_name(name: str) -> str:
    """
    Derive a master-data code from a display name.

    "Stainless Steel 304" -> "STAINLESS_STEEL_304"
    """
    code = re.sub(r"[^A-Z0-9]", "_", (name or "").upper())
    code = re.sub(r"_+", "_", code).strip("_")
    return code[:MAX_CODE_LENGTH] or "ITEM"


def build_category_tree(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Nest flat category rows under their parents.

    Rows whose parent is absent from the list (inactive, deleted or missing)
    are returned as roots.
    """
    nodes = {row["id"]: {**row, "children": []} for row in rows}
    roots = []
    for row in rows:
        node = nodes[row["id"]]
        parent = nodes.get(row.get("parent_id"))
        if parent is not None and parent is not node:
            parent["children"].append(node)
        else:
            roots.append(node)
    return roots


class MasterDataService:
    """Service for master-data CRUD operations."""

    @staticmethod
    def get_definition(entity_type: str) -> MasterDataDefinition:
        definition = MASTER_DATA_DEFINITIONS.get(entity_type)
        if definition is None:
            raise NotFoundException("Master data type", entity_type)
        return definition

    @staticmethod
    def list_types() -> List[Dict[str, Any]]:
        return [d.to_dict() for d in MASTER_DATA_DEFINITIONS.values()]

    # ------------------------------------------------------------------
    # Cursor-level helpers (shared with product and import services)
    # ------------------------------------------------------------------

    @staticmethod
    def fetch_active(cursor, definition: MasterDataDefinition, entity_id: int) -> Optional[Dict[str, Any]]:
        cursor.execute(
            f"""
            SELECT {', '.join(definition.columns)}
            FROM {definition.table_name}
            WHERE id = %s AND {QueryBuilder.active_filter()}
            """,
            (entity_id,)
        )
        return row_to_dict(cursor, cursor.fetchone())

    @staticmethod
    def exists(cursor, definition: MasterDataDefinition, entity_id: int) -> bool:
        cursor.execute(
            f"SELECT 1 FROM {definition.table_name} WHERE id = %s AND {QueryBuilder.active_filter()}",
            (entity_id,)
        )
        return cursor.fetchone() is not None

    @staticmethod
    def _code_taken(cursor, definition: MasterDataDefinition, code: str, exclude_id: Optional[int] = None) -> bool:
        query = f"SELECT id FROM {definition.table_name} WHERE code = %s AND deleted_at IS NULL"
        params: List[Any] = [code]
        if exclude_id is not None:
            query += " AND id <> %s"
            params.append(exclude_id)
        cursor.execute(query, params)
        return cursor.fetchone() is not None

    @staticmethod
    def _validate_payload(definition: MasterDataDefinition, payload: Dict[str, Any]) -> None:
        for column in ("parent_id", "hex_code"):
            if column in payload and payload[column] is not None and column not in definition.extra_column_names:
                raise ValidationException(
                    f"Field '{column}' is not supported for {definition.display_name}"
                )
        hex_code = payload.get("hex_code")
        if hex_code and not HEX_CODE_PATTERN.match(hex_code):
            raise ValidationException(f"Invalid hex color code: {hex_code}")

    @staticmethod
    def _validate_parent(cursor, parent_id: Optional[int], entity_id: Optional[int] = None) -> None:
        """Parent must exist and must not create a cycle in the category tree."""
        if parent_id is None:
            return
        if entity_id is not None and parent_id == entity_id:
            raise ValidationException("A category cannot be its own parent")

        categories = MASTER_DATA_DEFINITIONS["categories"]
        if not MasterDataService.exists(cursor, categories, parent_id):
            raise ValidationException(f"Parent category {parent_id} does not exist")

        if entity_id is None:
            return
        visited = set()
        current = parent_id
        while current is not None and current not in visited:
            if current == entity_id:
                raise ValidationException("Category parent would create a cycle")
            visited.add(current)
            cursor.execute(
                "SELECT parent_id FROM categories WHERE id = %s AND deleted_at IS NULL",
                (current,)
            )
            row = cursor.fetchone()
            current = row[0] if row else None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @staticmethod
    def create(definition: MasterDataDefinition, payload: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Create a master-data row.

        Raises:
            ConflictException: If the code is already used
            ValidationException: If type-specific fields are invalid
        """
        MasterDataService._validate_payload(definition, payload)
        db_manager = get_db_manager()

        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    if MasterDataService._code_taken(cursor, definition, payload["code"]):
                        raise ConflictException(
                            f"{definition.display_name} code '{payload['code']}' already exists"
                        )
                    if definition.slug == "categories":
                        MasterDataService._validate_parent(cursor, payload.get("parent_id"))

                    data = {
                        key: value for key, value in payload.items()
                        if key in ("name", "code", "description", "is_active", *definition.extra_column_names)
                    }
                    query, values = QueryBuilder.build_insert_query(definition.table_name, data, user)
                    cursor.execute(query, values)
                    new_id = cursor.fetchone()[0]

                    logger.info(f"Created {definition.resource_name} {new_id} ({payload['code']})")
                    cursor.execute(
                        f"SELECT {', '.join(definition.columns)} FROM {definition.table_name} WHERE id = %s",
                        (new_id,)
                    )
                    return row_to_dict(cursor, cursor.fetchone())
                finally:
                    cursor.close()

        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to create {definition.resource_name}: {str(e)}")
            raise DatabaseException(f"Failed to create {definition.display_name}: {str(e)}")

    @staticmethod
    def find_all(
        definition: MasterDataDefinition,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Active, non-deleted rows ordered by name.

        Returns:
            Tuple of (rows, total_count)
        """
        return MasterDataService._list(definition, None, page, page_size)

    @staticmethod
    def search(
        definition: MasterDataDefinition,
        term: str,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Case-insensitive substring match on name or code."""
        return MasterDataService._list(definition, term, page, page_size)

    @staticmethod
    def _list(
        definition: MasterDataDefinition,
        term: Optional[str],
        page: int,
        page_size: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        db_manager = get_db_manager()
        limit, offset = QueryBuilder.pagination(page, page_size)

        where = QueryBuilder.active_filter()
        params: List[Any] = []
        if term:
            where += " AND " + QueryBuilder.build_search_clause(["name", "code"])
            pattern = QueryBuilder.like_pattern(term)
            params.extend([pattern, pattern])

        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(f"SELECT COUNT(*) FROM {definition.table_name} WHERE {where}", params)
                    total_count = cursor.fetchone()[0]

                    cursor.execute(
                        f"""
                        SELECT {', '.join(definition.columns)}
                        FROM {definition.table_name}
                        WHERE {where}
                        ORDER BY name, id
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
            logger.error(f"Failed to list {definition.resource_name}: {str(e)}")
            raise DatabaseException(f"Failed to list {definition.display_name}: {str(e)}")

    @staticmethod
    def find_one(definition: MasterDataDefinition, entity_id: int) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                row = MasterDataService.fetch_active(cursor, definition, entity_id)
                if row is None:
                    raise NotFoundException(definition.resource_name, entity_id)
                return row
            finally:
                cursor.close()

    @staticmethod
    def find_by_code(definition: MasterDataDefinition, code: str) -> Dict[str, Any]:
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"""
                    SELECT {', '.join(definition.columns)}
                    FROM {definition.table_name}
                    WHERE code = %s AND {QueryBuilder.active_filter()}
                    """,
                    (code,)
                )
                row = row_to_dict(cursor, cursor.fetchone())
                if row is None:
                    raise NotFoundException(definition.resource_name, code)
                return row
            finally:
                cursor.close()

    @staticmethod
    def update(
        definition: MasterDataDefinition,
        entity_id: int,
        payload: Dict[str, Any],
        user: str
    ) -> Dict[str, Any]:
        """
        Merge the provided fields onto the stored row and save it.

        Inactive rows can still be updated so they can be re-activated.
        """
        MasterDataService._validate_payload(definition, payload)
        db_manager = get_db_manager()

        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(
                        f"""
                        SELECT {', '.join(definition.columns)}
                        FROM {definition.table_name}
                        WHERE id = %s AND deleted_at IS NULL
                        """,
                        (entity_id,)
                    )
                    existing = row_to_dict(cursor, cursor.fetchone())
                    if existing is None:
                        raise NotFoundException(definition.resource_name, entity_id)

                    mutable = ("name", "code", "description", "is_active", *definition.extra_column_names)
                    merged = QueryBuilder.merge(existing, payload, mutable, required=("name", "code", "is_active"))

                    if merged["code"] != existing["code"] and MasterDataService._code_taken(
                        cursor, definition, merged["code"], exclude_id=entity_id
                    ):
                        raise ConflictException(
                            f"{definition.display_name} code '{merged['code']}' already exists"
                        )
                    if definition.slug == "categories" and merged.get("parent_id") != existing.get("parent_id"):
                        MasterDataService._validate_parent(cursor, merged.get("parent_id"), entity_id)

                    query, values = QueryBuilder.build_update_query(definition.table_name, entity_id, merged, user)
                    cursor.execute(query, values)

                    logger.info(f"Updated {definition.resource_name} {entity_id}")
                    cursor.execute(
                        f"SELECT {', '.join(definition.columns)} FROM {definition.table_name} WHERE id = %s",
                        (entity_id,)
                    )
                    return row_to_dict(cursor, cursor.fetchone())
                finally:
                    cursor.close()

        except AppException:
            raise
        except Exception as e:
            logger.error(f"Failed to update {definition.resource_name} {entity_id}: {str(e)}")
            raise DatabaseException(f"Failed to update {definition.display_name}: {str(e)}")

    @staticmethod
    def remove(definition: MasterDataDefinition, entity_id: int, user: str) -> None:
        """Soft delete: the row keeps its data and gets a deleted_at timestamp."""
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(QueryBuilder.build_soft_delete_query(definition.table_name), (user, entity_id))
                if cursor.fetchone() is None:
                    raise NotFoundException(definition.resource_name, entity_id)
                logger.info(f"Soft-deleted {definition.resource_name} {entity_id}")
            finally:
                cursor.close()

    @staticmethod
    def get_category_tree() -> List[Dict[str, Any]]:
        definition = MASTER_DATA_DEFINITIONS["categories"]
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"""
                    SELECT {', '.join(definition.columns)}
                    FROM categories
                    WHERE {QueryBuilder.active_filter()}
                    ORDER BY name, id
                    """
                )
                return build_category_tree(rows_to_dicts(cursor))
            finally:
                cursor.close()

    @staticmethod
    def find_or_create_by_name(
        cursor,
        definition: MasterDataDefinition,
        name: str,
        user: str
    ) -> Tuple[int, bool]:
        """
        Resolve a display name to an id, creating the row when no active match exists.

        Runs on the caller's cursor so the import batch stays in one transaction.

        Returns:
            Tuple of (id, created)
        """
        name = name.strip()
        cursor.execute(
            f"""
            SELECT id FROM {definition.table_name}
            WHERE name = %s AND {QueryBuilder.active_filter()}
            ORDER BY id
            LIMIT 1
            """,
            (name,)
        )
        row = cursor.fetchone()
        if row:
            return row[0], False

        base_code = generate_code_from_name(name)
        code = base_code
        suffix = 2
        while MasterDataService._code_taken(cursor, definition, code):
            tail = f"_{suffix}"
            code = base_code[:MAX_CODE_LENGTH - len(tail)] + tail
            suffix += 1

        query, values = QueryBuilder.build_insert_query(
            definition.table_name,
            {"name": name, "code": code, "is_active": True},
            user
        )
        cursor.execute(query, values)
        new_id = cursor.fetchone()[0]
        logger.info(f"Auto-created {definition.resource_name} '{name}' with code {code}")
        return new_id, True
