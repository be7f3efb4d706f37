"""
Schema management utilities.
Creates catalog and quotation tables idempotently at startup.
"""

from typing import List
from app.models.database_models import (
    AUDIT_COLUMNS_SQL,
    MASTER_DATA_DEFINITIONS,
    TableSchemaBuilder,
)
from app.core.database import get_db_manager
from app.core.exceptions import DatabaseException
import logging

logger = logging.getLogger(__name__)


class SchemaManager:
    """Manages the database schema."""

    @staticmethod
    def get_schema_statements() -> List[str]:
        """
        All DDL statements in dependency order.

        Returns:
            List of SQL statements, each safe to re-run
        """
        statements: List[str] = []

        for definition in MASTER_DATA_DEFINITIONS.values():
            statements.append(TableSchemaBuilder.build_master_data_table(definition))
            statements.append(TableSchemaBuilder.build_unique_index(definition.table_name, "code"))
            statements.append(TableSchemaBuilder.build_index(definition.table_name, "name"))
        statements.append(TableSchemaBuilder.build_index("categories", "parent_id"))

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS product_attributes (
                id SERIAL PRIMARY KEY,
                name VARCHAR(255) NOT NULL,
                code VARCHAR(100) NOT NULL,
                data_type VARCHAR(20) NOT NULL DEFAULT 'TEXT',
                description TEXT,
                is_required BOOLEAN NOT NULL DEFAULT FALSE,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                {AUDIT_COLUMNS_SQL},
                CONSTRAINT check_attribute_data_type CHECK (data_type IN ('TEXT', 'NUMBER'))
            )
        """)
        statements.append(TableSchemaBuilder.build_unique_index("product_attributes", "code"))

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS product_attribute_values (
                id SERIAL PRIMARY KEY,
                attribute_id INTEGER NOT NULL REFERENCES product_attributes(id),
                value VARCHAR(500) NOT NULL,
                display_order INTEGER NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                {AUDIT_COLUMNS_SQL}
            )
        """)
        statements.append(TableSchemaBuilder.build_index("product_attribute_values", "attribute_id"))

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS products (
                id SERIAL PRIMARY KEY,
                name VARCHAR(255) NOT NULL,
                code VARCHAR(100) NOT NULL,
                sku VARCHAR(100),
                category_id INTEGER NOT NULL REFERENCES categories(id),
                brand_id INTEGER REFERENCES brands(id),
                manufacturer_id INTEGER REFERENCES manufacturers(id),
                material_id INTEGER REFERENCES materials(id),
                manufacturing_method_id INTEGER REFERENCES manufacturing_methods(id),
                color_id INTEGER REFERENCES colors(id),
                size_id INTEGER REFERENCES sizes(id),
                product_type_id INTEGER REFERENCES product_types(id),
                packaging_type_id INTEGER REFERENCES packaging_types(id),
                image_url VARCHAR(500),
                description TEXT,
                base_price NUMERIC(15, 2) NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                {AUDIT_COLUMNS_SQL},
                CONSTRAINT check_base_price CHECK (base_price >= 0)
            )
        """)
        statements.append(TableSchemaBuilder.build_unique_index("products", "code"))
        statements.append(TableSchemaBuilder.build_unique_index("products", "sku"))
        statements.append(TableSchemaBuilder.build_index("products", "category_id"))

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS product_dynamic_attributes (
                id SERIAL PRIMARY KEY,
                product_id INTEGER NOT NULL REFERENCES products(id),
                attribute_id INTEGER NOT NULL REFERENCES product_attributes(id),
                text_value TEXT,
                number_value NUMERIC(15, 4),
                {AUDIT_COLUMNS_SQL}
            )
        """)
        statements.append("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_product_dynamic_attributes_pair
            ON product_dynamic_attributes(product_id, attribute_id) WHERE deleted_at IS NULL
        """)

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS quotations (
                id SERIAL PRIMARY KEY,
                quotation_number VARCHAR(50) NOT NULL,
                customer_name VARCHAR(255) NOT NULL,
                company_name VARCHAR(255),
                phone_number VARCHAR(50) NOT NULL,
                quotation_date DATE NOT NULL DEFAULT CURRENT_DATE,
                valid_until DATE,
                status VARCHAR(20) NOT NULL DEFAULT 'DRAFT',
                total_amount NUMERIC(15, 2) NOT NULL DEFAULT 0,
                notes TEXT,
                {AUDIT_COLUMNS_SQL},
                CONSTRAINT check_quotation_status
                    CHECK (status IN ('DRAFT', 'SENT', 'ACCEPTED', 'REJECTED', 'EXPIRED'))
            )
        """)
        # Numbers stay unique even after soft delete so generated sequences never repeat
        statements.append("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_quotations_quotation_number
            ON quotations(quotation_number)
        """)
        statements.append(TableSchemaBuilder.build_index("quotations", "status"))
        statements.append(TableSchemaBuilder.build_index("quotations", "customer_name"))

        statements.append(f"""
            CREATE TABLE IF NOT EXISTS quotation_items (
                id SERIAL PRIMARY KEY,
                quotation_id INTEGER NOT NULL REFERENCES quotations(id),
                product_id INTEGER NOT NULL REFERENCES products(id),
                line_number INTEGER NOT NULL,
                quantity INTEGER NOT NULL DEFAULT 1,
                unit_price NUMERIC(15, 2) NOT NULL,
                total_price NUMERIC(15, 2) NOT NULL,
                notes TEXT,
                {AUDIT_COLUMNS_SQL},
                CONSTRAINT check_item_quantity CHECK (quantity >= 1),
                CONSTRAINT check_item_unit_price CHECK (unit_price >= 0)
            )
        """)
        statements.append(TableSchemaBuilder.build_index("quotation_items", "quotation_id"))

        return statements

    @staticmethod
    def initialize_schema() -> bool:
        """
        Create every table and index if missing.

        Raises:
            DatabaseException: If schema creation fails
        """
        db_manager = get_db_manager()
        statements = SchemaManager.get_schema_statements()

        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    for statement in statements:
                        cursor.execute(statement)
                    logger.info(f"Schema initialized ({len(statements)} statements)")
                    return True
                finally:
                    cursor.close()
        except Exception as e:
            logger.error(f"Failed to initialize schema: {str(e)}")
            raise DatabaseException(f"Failed to initialize schema: {str(e)}")
