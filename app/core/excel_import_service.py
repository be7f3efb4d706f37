"""
Excel product import service.
Parses a product sheet, resolves master-data names to ids (creating missing
rows) and creates products row by row, collecting per-row errors.
"""

import re
import time
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd

from app.config import settings
from app.core.database import get_db_manager
from app.core.exceptions import AppException, DatabaseException, ValidationException
from app.core.logging_config import get_logger, log_operation_start, log_operation_end
from app.core.master_data_service import MasterDataService
from app.core.product_attribute_service import ProductAttributeService
from app.core.product_service import ProductService, normalize_dynamic_attributes
from app.models.database_models import MASTER_DATA_DEFINITIONS

logger = get_logger(__name__)

# Normalized header -> row key
HEADER_MAP = {
    "name": "name",
    "code": "code",
    "sku": "sku",
    "category": "category",
    "brand": "brand",
    "manufacturer": "manufacturer",
    "material": "material",
    "manufacturing method": "manufacturing_method",
    "color": "color",
    "size": "size",
    "product type": "product_type",
    "packaging type": "packaging_type",
    "base price": "base_price",
    "image url": "image_url",
    "description": "description",
    "is active": "is_active",
}

# Row key holding a master-data name -> master-data slug
RELATION_FIELDS = {
    "category": "categories",
    "brand": "brands",
    "manufacturer": "manufacturers",
    "material": "materials",
    "manufacturing_method": "manufacturing-methods",
    "color": "colors",
    "size": "sizes",
    "product_type": "product-types",
    "packaging_type": "packaging-types",
}

ATTRIBUTE_HEADER_PATTERN = re.compile(r"^(.+)\s+\((.+)\)$")
TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0"}


def normalize_header(header: Any) -> str:
    """'Manufacturing  Method*' -> 'manufacturing method'"""
    return " ".join(str(header).replace("*", "").split()).lower()


def clean_cell(value: Any) -> Optional[str]:
    """Cell value as trimmed text; blanks become None and whole floats lose their '.0'."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValidationException(
        f"Invalid boolean value '{value}'",
        details={"field": "is_active", "value": value}
    )


def parse_price(value: Optional[str]) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        price = Decimal(value.replace(",", ""))
    except InvalidOperation:
        raise ValidationException(
            f"Base price '{value}' is not a number",
            details={"field": "base_price", "value": value}
        )
    if not price.is_finite() or price < 0:
        raise ValidationException(
            "Base price must be zero or positive",
            details={"field": "base_price", "value": value}
        )
    return price


class ExcelImportService:
    """Service for bulk product import from Excel."""

    @staticmethod
    def map_columns(
        columns: List[Any],
        attributes: List[Dict[str, Any]]
    ) -> Tuple[Dict[Any, str], Dict[Any, int]]:
        """
        Map sheet headers to row keys and attribute ids.

        Returns:
            Tuple of (column -> row key, column -> attribute id)
        """
        attributes_by_name = {a["name"].strip().lower(): a["id"] for a in attributes}
        field_columns: Dict[Any, str] = {}
        attribute_columns: Dict[Any, int] = {}
        skipped = []

        for column in columns:
            normalized = normalize_header(column)
            if normalized in HEADER_MAP:
                field_columns[column] = HEADER_MAP[normalized]
                continue
            match = ATTRIBUTE_HEADER_PATTERN.match(str(column).replace("*", "").strip())
            if match and match.group(1).strip().lower() in attributes_by_name:
                attribute_columns[column] = attributes_by_name[match.group(1).strip().lower()]
                continue
            skipped.append(column)

        if skipped:
            logger.warning(f"Skipping unrecognised columns: {skipped}")
        return field_columns, attribute_columns

    @staticmethod
    def parse_workbook(content: bytes, attributes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Parse the first worksheet into row dictionaries.

        Header is row 1; fully blank rows are skipped. Each parsed row keeps
        its sheet row number under `row_number`.

        Raises:
            ValidationException: Unreadable file or no usable header
        """
        try:
            df = pd.read_excel(BytesIO(content), engine="openpyxl", sheet_name=0, dtype=object)
        except Exception as e:
            logger.error(f"Error parsing Excel file: {str(e)}")
            raise ValidationException(f"Invalid Excel file format: {str(e)}")

        field_columns, attribute_columns = ExcelImportService.map_columns(list(df.columns), attributes)
        if "name" not in field_columns.values() or "code" not in field_columns.values():
            raise ValidationException("Excel file must have 'Name' and 'Code' columns")

        original_rows = len(df)
        df = df.dropna(how="all")
        if original_rows - len(df):
            logger.info(f"Removed {original_rows - len(df)} empty rows from Excel file")

        rows = []
        for idx, record in df.iterrows():
            row: Dict[str, Any] = {"row_number": int(idx) + 2, "attributes": {}}
            for column, key in field_columns.items():
                row[key] = clean_cell(record[column])
            for column, attribute_id in attribute_columns.items():
                value = clean_cell(record[column])
                if value is not None:
                    row["attributes"][attribute_id] = value
            if any(row.get(key) for key in field_columns.values()) or row["attributes"]:
                rows.append(row)
        return rows

    @staticmethod
    def resolve_master_data(
        cursor,
        rows: List[Dict[str, Any]],
        user: str
    ) -> Tuple[Dict[str, Dict[str, int]], List[Dict[str, Any]], Dict[str, Dict[str, str]]]:
        """
        Resolve every distinct master-data name in the batch once.

        Each lookup runs in its own savepoint. A name the database rejects
        (too long, constraint failure) is recorded instead of failing the batch,
        and every row referencing it is reported later.

        Returns:
            Tuple of (row key -> {name -> id}, list of rows created on the fly,
            row key -> {name -> error message})
        """
        lookups: Dict[str, Dict[str, int]] = {}
        failures: Dict[str, Dict[str, str]] = {}
        created = []
        for key, slug in RELATION_FIELDS.items():
            definition = MASTER_DATA_DEFINITIONS[slug]
            names = sorted({row[key] for row in rows if row.get(key)})
            lookups[key] = {}
            failures[key] = {}
            for index, name in enumerate(names, start=1):
                savepoint = f"ref_{key}_{index}"
                cursor.execute(f"SAVEPOINT {savepoint}")
                try:
                    entity_id, is_new = MasterDataService.find_or_create_by_name(cursor, definition, name, user)
                    cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
                except Exception as e:
                    cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                    cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
                    message = e.message if isinstance(e, AppException) else str(e).strip()
                    failures[key][name] = message
                    logger.warning(f"Could not resolve {definition.resource_name} '{name[:50]}': {message}")
                    continue
                lookups[key][name] = entity_id
                if is_new:
                    created.append({"entity_type": slug, "id": entity_id, "name": name})
        return lookups, created, failures

    @staticmethod
    def build_product(
        row: Dict[str, Any],
        lookups: Dict[str, Dict[str, int]],
        failures: Optional[Dict[str, Dict[str, str]]] = None
    ) -> Dict[str, Any]:
        """Turn a parsed row into product column values."""
        for key in ("name", "code", "category"):
            if not row.get(key):
                raise ValidationException(
                    f"{key.capitalize()} is required",
                    details={"field": key, "value": None}
                )

        product = {
            "name": row["name"],
            "code": row["code"],
            "sku": row.get("sku"),
            "image_url": row.get("image_url"),
            "description": row.get("description"),
            "base_price": parse_price(row.get("base_price")),
            "is_active": parse_bool(row.get("is_active")),
        }
        for key in RELATION_FIELDS:
            name = row.get(key)
            failed = (failures or {}).get(key, {})
            if name in failed:
                raise ValidationException(
                    f"Could not resolve {key.replace('_', ' ')} '{name}': {failed[name]}",
                    details={"field": key, "value": name}
                )
            product[f"{key}_id"] = lookups[key].get(name) if name else None
        return product

    @staticmethod
    def import_products(content: bytes, user: str) -> Dict[str, Any]:
        """
        Import products from an Excel file.

        Master-data rows referenced by name are created when missing. Each
        product row runs inside its own savepoint so a failing row is rolled
        back and reported without aborting the rest of the batch.

        Returns:
            Import result with counts, errors and created ids
        """
        max_bytes = settings.IMPORT_MAX_FILE_SIZE_MB * 1024 * 1024
        if len(content) > max_bytes:
            raise ValidationException(f"File exceeds {settings.IMPORT_MAX_FILE_SIZE_MB} MB limit")

        log_operation_start(logger, "import_products", file_size_bytes=len(content))
        logger.perf.log_performance_snapshot("Before product import")
        start_time = time.time()

        db_manager = get_db_manager()
        errors: List[Dict[str, Any]] = []
        created_ids: List[int] = []

        try:
            with db_manager.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    attributes = ProductAttributeService.get_active_attributes(cursor)
                    attributes_by_id = {a["id"]: a for a in attributes}
                    rows = ExcelImportService.parse_workbook(content, attributes)
                    if not rows:
                        raise ValidationException("Excel file contains no product rows")

                    lookups, created_master_data, failures = ExcelImportService.resolve_master_data(
                        cursor, rows, user
                    )

                    seen_codes = set()
                    seen_skus = set()
                    for row in rows:
                        savepoint = f"row_{row['row_number']}"
                        cursor.execute(f"SAVEPOINT {savepoint}")
                        try:
                            product = ExcelImportService.build_product(row, lookups, failures)
                            if product["code"] in seen_codes:
                                raise ValidationException(
                                    "Duplicate product code in file",
                                    details={"field": "code", "value": product["code"]}
                                )
                            if product["sku"] and product["sku"] in seen_skus:
                                raise ValidationException(
                                    "Duplicate SKU in file",
                                    details={"field": "sku", "value": product["sku"]}
                                )
                            ProductService.ensure_unique(cursor, product["code"], product["sku"])
                            dynamic_rows = normalize_dynamic_attributes(
                                [
                                    {"attribute_id": attribute_id, "text_value": value}
                                    for attribute_id, value in row["attributes"].items()
                                ],
                                attributes_by_id
                            )

                            product_id = ProductService.insert_product(cursor, product, user)
                            ProductService.insert_dynamic_attributes(cursor, product_id, dynamic_rows, user)
                            cursor.execute(f"RELEASE SAVEPOINT {savepoint}")

                            seen_codes.add(product["code"])
                            if product["sku"]:
                                seen_skus.add(product["sku"])
                            created_ids.append(product_id)

                        except Exception as e:
                            cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                            cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
                            details = e.details if isinstance(e, AppException) else {}
                            message = e.message if isinstance(e, AppException) else str(e)
                            errors.append({
                                "row": row["row_number"],
                                "field": details.get("field"),
                                "message": message,
                                "value": details.get("value"),
                            })
                            if len(errors) <= 10:
                                logger.warning(f"Import row {row['row_number']} failed: {message}")
                            elif len(errors) == 11:
                                logger.warning("More than 10 row errors, suppressing detailed logs")
                finally:
                    cursor.close()

        except AppException as e:
            log_operation_end(logger, "import_products", success=False, error=e.message)
            raise
        except Exception as e:
            logger.error(f"Fatal error during product import: {str(e)}", exc_info=True)
            log_operation_end(logger, "import_products", success=False, error=str(e))
            raise DatabaseException(f"Database error during import: {str(e)}")

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Product import complete: {len(created_ids)} created, {len(errors)} failed, {duration_ms:.2f}ms"
        )
        logger.perf.log_performance_snapshot("After product import")
        log_operation_end(logger, "import_products", success=True, success_count=len(created_ids))

        return {
            "total_rows": len(rows),
            "success_count": len(created_ids),
            "error_count": len(errors),
            "errors": errors[:settings.IMPORT_ERROR_LIMIT],
            "created_product_ids": created_ids,
            "created_master_data": created_master_data,
        }
