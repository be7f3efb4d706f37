"""
Database models and table creation utilities.
"""

from typing import Dict, List, Any, Optional


class ColumnDefinition:
    """Represents an extra column owned by one master-data type."""

    def __init__(
            self,
            column_name: str,
            data_type: str,
            field_length: Optional[int] = None,
            references: Optional[str] = None,
            description: Optional[str] = None
        ):
            self.column_name = column_name
            self.data_type = data_type
            self.field_length = field_length
            self.references = references
            self.description = description

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "column_name": self.column_name,
            "data_type": self.data_type,
            "field_length": self.field_length,
            "references": self.references,
            "description": self.description
        }

    def get_sql_type(self) -> str:
        """Convert data type to SQL type."""
        data_type_upper = self.data_type.upper()
        if data_type_upper == "CHAR":
            return f"VARCHAR({self.field_length or 255})"
        elif data_type_upper == "INTEGER":
            return "INTEGER"
        elif data_type_upper == "TEXT":
            return "TEXT"
        elif data_type_upper == "BOOLEAN":
            return "BOOLEAN"
        return "VARCHAR(255)"

    def get_column_sql(self) -> str:
        sql = f"{self.column_name} {self.get_sql_type()}"
        if self.references:
            sql += f" REFERENCES {self.references}(id)"
        return sql


class MasterDataDefinition:
    """One reference-data type: its URL slug, table and any extra columns."""

    def __init__(
            self,
            slug: str,
            table_name: str,
            resource_name: str,
            display_name: str,
            extra_columns: Optional[List[ColumnDefinition]] = None
        ):
            self.slug = slug
            self.table_name = table_name
            self.resource_name = resource_name
            self.display_name = display_name
            self.extra_columns = extra_columns or []

    @property
    def extra_column_names(self) -> List[str]:
        return [c.column_name for c in self.extra_columns]

    @property
    def columns(self) -> List[str]:
        """Columns returned by every read."""
        return [
            "id", "name", "code", "description", *self.extra_column_names,
            "is_active", "created_at", "updated_at", "created_by", "updated_by"
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.slug,
            "table_name": self.table_name,
            "display_name": self.display_name,
            "extra_columns": [c.to_dict() for c in self.extra_columns]
        }


MASTER_DATA_DEFINITIONS: Dict[str, MasterDataDefinition] = {
    d.slug: d for d in [
        MasterDataDefinition(
            "categories", "categories", "Category", "Category",
            [ColumnDefinition("parent_id", "INTEGER", references="categories",
                              description="Parent category (tree)")]
        ),
        MasterDataDefinition("brands", "brands", "Brand", "Brand"),
        MasterDataDefinition("manufacturers", "manufacturers", "Manufacturer", "Manufacturer"),
        MasterDataDefinition("materials", "materials", "Material", "Material"),
        MasterDataDefinition(
            "manufacturing-methods", "manufacturing_methods",
            "ManufacturingMethod", "Manufacturing Method"
        ),
        MasterDataDefinition(
            "colors", "colors", "Color", "Color",
            [ColumnDefinition("hex_code", "CHAR", field_length=7,
                              description="#RGB or #RRGGBB")]
        ),
        MasterDataDefinition("sizes", "sizes", "Size", "Size"),
        MasterDataDefinition("product-types", "product_types", "ProductType", "Product Type"),
        MasterDataDefinition("packaging-types", "packaging_types", "PackagingType", "Packaging Type"),
    ]
}

# Product foreign-key column -> master-data slug
PRODUCT_RELATIONS: Dict[str, str] = {
    "category_id": "categories",
    "brand_id": "brands",
    "manufacturer_id": "manufacturers",
    "material_id": "materials",
    "manufacturing_method_id": "manufacturing-methods",
    "color_id": "colors",
    "size_id": "sizes",
    "product_type_id": "product-types",
    "packaging_type_id": "packaging-types",
}

AUDIT_COLUMNS_SQL = """
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    deleted_at TIMESTAMP,
    created_by VARCHAR(255),
    updated_by VARCHAR(255)
"""


class TableSchemaBuilder:
    """Builds SQL DDL for master-data tables."""

    @staticmethod
    def build_master_data_table(definition: MasterDataDefinition) -> str:
        """
        Build CREATE TABLE statement for a master-data type.

        Args:
            definition: Master-data definition

        Returns:
            CREATE TABLE SQL statement
        """
        columns = [
            "id SERIAL PRIMARY KEY",
            "name VARCHAR(255) NOT NULL",
            "code VARCHAR(100) NOT NULL",
            "description TEXT",
        ]
        columns.extend(c.get_column_sql() for c in definition.extra_columns)
        columns.append("is_active BOOLEAN NOT NULL DEFAULT TRUE")
        columns.append(AUDIT_COLUMNS_SQL.strip())

        columns_sql = ",\n    ".join(columns)
        return f"CREATE TABLE IF NOT EXISTS {definition.table_name} (\n    {columns_sql}\n)"

    @staticmethod
    def build_unique_index(table_name: str, column_name: str) -> str:
        """Unique index among rows that are not soft-deleted."""
        return (
            f"CREATE UNIQUE INDEX IF NOT EXISTS uq_{table_name}_{column_name} "
            f"ON {table_name}({column_name}) WHERE deleted_at IS NULL"
        )

    @staticmethod
    def build_index(table_name: str, column_name: str) -> str:
        return (
            f"CREATE INDEX IF NOT EXISTS idx_{table_name}_{column_name} "
            f"ON {table_name}({column_name})"
        )
