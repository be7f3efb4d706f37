import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

import main
from app.core.exceptions import ConflictException, DatabaseException, NotFoundException, ValidationException
from app.core.excel_import_service import ExcelImportService
from app.core.master_data_service import MasterDataService
from app.core.product_service import ProductService
from app.core.quotation_service import QuotationService
from app.core.dashboard_service import DashboardService

# no context manager: the lifespan (pool + schema) stays off
client = TestClient(main.app)

QUOTATION_BODY = {
    "customer_name": "Jane Doe",
    "phone_number": "+1 555 0100",
    "items": [{"product_id": 1, "quantity": 2}],
}


def test_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["api_prefix"] == "/api/v1"


def test_health_reports_pool_status(monkeypatch, fake_db):
    monkeypatch.setattr(main, "get_db_manager", lambda: fake_db)

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["database"]["initialized"] is True


def test_health_degraded_when_database_unreachable(monkeypatch, fake_db):
    def unreachable():
        raise DatabaseException("Connection validation failed: connection refused")

    monkeypatch.setattr(fake_db, "validate_connection", unreachable)
    monkeypatch.setattr(main, "get_db_manager", lambda: fake_db)

    assert client.get("/health").json()["status"] == "degraded"


def handle(handler, exc):
    request = Request({
        "type": "http", "method": "GET", "path": "/api/v1/products", "headers": [], "query_string": b"",
    })
    response = asyncio.run(handler(request, exc))
    return response.status_code, json.loads(response.body)


def test_app_exception_handler_builds_error_envelope():
    status_code, body = handle(
        main.app_exception_handler,
        ConflictException("Product code 'BTL-1' already exists", details={"field": "code"})
    )

    assert status_code == 409
    assert body["success"] is False
    assert body["error"] == {
        "code": "CONFLICT",
        "message": "Product code 'BTL-1' already exists",
        "details": {"field": "code"},
    }
    assert body["metadata"]["status_code"] == 409


def test_generic_exception_handler_hides_message(monkeypatch):
    monkeypatch.setattr(main.settings, "DEBUG", False)

    status_code, body = handle(main.generic_exception_handler, RuntimeError("driver exploded"))

    assert status_code == 500
    assert body["error"]["code"] == "INTERNAL_ERROR"
    assert body["error"]["message"] == "An unexpected error occurred"


def test_master_data_types():
    body = client.get("/api/v1/master-data/types").json()
    assert len(body["data"]) == 9


def test_unknown_master_data_type():
    response = client.get("/api/v1/master-data/planets")
    assert response.status_code == 404


def test_create_master_data_uses_acting_user(monkeypatch):
    calls = {}

    def fake_create(definition, payload, user):
        calls.update(slug=definition.slug, payload=payload, user=user)
        return {"id": 1, **payload}

    monkeypatch.setattr(MasterDataService, "create", fake_create)

    response = client.post(
        "/api/v1/master-data/brands",
        json={"name": " Acme ", "code": "ACME"},
        headers={"X-User": "alice"},
    )

    assert response.status_code == 201
    assert calls["slug"] == "brands"
    assert calls["user"] == "alice"
    assert calls["payload"] == {"name": "Acme", "code": "ACME", "is_active": True}


def test_create_master_data_defaults_user_to_system(monkeypatch):
    calls = {}

    def fake_create(definition, payload, user):
        calls["user"] = user
        return {"id": 1}

    monkeypatch.setattr(MasterDataService, "create", fake_create)

    client.post("/api/v1/master-data/brands", json={"name": "Acme", "code": "ACME"})

    assert calls["user"] == "system"


def test_create_color_rejects_bad_hex():
    response = client.post("/api/v1/master-data/colors", json={"name": "Red", "code": "RED", "hex_code": "red"})
    assert response.status_code == 422


def test_master_data_not_found(monkeypatch):
    def missing(definition, entity_id):
        raise NotFoundException(definition.resource_name, entity_id)

    monkeypatch.setattr(MasterDataService, "find_one", missing)

    response = client.get("/api/v1/master-data/brands/42")

    assert response.status_code == 404
    assert response.json()["detail"] == "Brand with ID 42 not found"


def test_product_list_caps_page_size(monkeypatch):
    calls = {}

    def fake_find_all(page, page_size):
        calls.update(page=page, page_size=page_size)
        return [{"id": 1, "base_price": Decimal("12.50")}], 1

    monkeypatch.setattr(ProductService, "find_all", fake_find_all)

    body = client.get("/api/v1/products?page=2&page_size=1000").json()

    assert calls == {"page": 2, "page_size": 500}
    assert body["pagination"]["total_count"] == 1
    assert body["data"][0]["base_price"] == "12.50"


def test_product_search_routes_to_search(monkeypatch):
    monkeypatch.setattr(ProductService, "search", lambda term, page, page_size: ([{"id": 3, "code": term}], 1))

    body = client.get("/api/v1/products/search?term=bottle").json()

    assert body["data"] == [{"id": 3, "code": "bottle"}]


def test_create_product_conflict(monkeypatch):
    def conflict(payload, user):
        raise ConflictException("Product code 'BTL-1' already exists")

    monkeypatch.setattr(ProductService, "create", conflict)

    response = client.post("/api/v1/products", json={"name": "Bottle", "code": "BTL-1", "category_id": 1})

    assert response.status_code == 409
    assert "BTL-1" in response.json()["detail"]


def test_create_product_rejects_negative_price():
    response = client.post(
        "/api/v1/products",
        json={"name": "Bottle", "code": "BTL-1", "category_id": 1, "base_price": "-1"},
    )
    assert response.status_code == 422


def test_unexpected_error_becomes_500(monkeypatch):
    def boom(product_id):
        raise RuntimeError("driver exploded")

    monkeypatch.setattr(ProductService, "find_one", boom)

    response = client.get("/api/v1/products/1")

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_import_rejects_non_excel_file():
    response = client.post(
        "/api/v1/products/excel/import",
        files={"file": ("products.csv", b"name,code\n", "text/csv")},
    )
    assert response.status_code == 400


def test_import_returns_summary(monkeypatch):
    result = {
        "total_rows": 2,
        "success_count": 1,
        "error_count": 1,
        "errors": [{"row": 3, "field": "code", "message": "Duplicate product code in file", "value": "P-1"}],
        "created_product_ids": [41],
        "created_master_data": [],
    }
    monkeypatch.setattr(ExcelImportService, "import_products", lambda content, user: result)

    response = client.post(
        "/api/v1/products/excel/import",
        files={"file": ("products.xlsx", b"fake", "application/octet-stream")},
    )

    assert response.status_code == 201
    assert response.json()["data"]["errors"][0]["row"] == 3


def test_create_quotation(monkeypatch):
    calls = {}

    def fake_create(payload, user):
        calls["payload"] = payload
        return {"id": 5, "quotation_number": "QT20240115001", "status": "DRAFT", "total_amount": Decimal("25.00")}

    monkeypatch.setattr(QuotationService, "create", fake_create)

    response = client.post("/api/v1/quotations", json=QUOTATION_BODY)

    assert response.status_code == 201
    assert response.json()["data"]["total_amount"] == "25.00"
    assert calls["payload"]["items"] == [{"product_id": 1, "quantity": 2, "unit_price": None, "notes": None}]


def test_create_quotation_requires_items():
    response = client.post("/api/v1/quotations", json={**QUOTATION_BODY, "items": []})
    assert response.status_code == 422


def test_create_quotation_rejects_zero_quantity():
    body = {**QUOTATION_BODY, "items": [{"product_id": 1, "quantity": 0}]}
    assert client.post("/api/v1/quotations", json=body).status_code == 422


def test_generate_quotation_number(monkeypatch):
    monkeypatch.setattr(
        QuotationService, "generate_quotation_number",
        lambda for_date: f"QT{for_date:%Y%m%d}001"
    )

    body = client.get("/api/v1/quotations/generate-number?for_date=2024-01-15").json()

    assert body["data"] == {"quotation_number": "QT20240115001"}


def test_quotation_status_update(monkeypatch):
    calls = {}

    def fake_update_status(quotation_id, status, user):
        calls.update(id=quotation_id, status=status)
        return {"id": quotation_id, "status": status}

    monkeypatch.setattr(QuotationService, "update_status", fake_update_status)

    response = client.patch("/api/v1/quotations/5/status", json={"status": "SENT"})

    assert response.status_code == 200
    assert calls == {"id": 5, "status": "SENT"}


def test_quotation_status_rejects_unknown_value():
    response = client.patch("/api/v1/quotations/5/status", json={"status": "ARCHIVED"})
    assert response.status_code == 422


def test_quotation_forbidden_transition(monkeypatch):
    def forbidden(quotation_id, status, user):
        raise ValidationException("Cannot change quotation status from DRAFT to ACCEPTED")

    monkeypatch.setattr(QuotationService, "update_status", forbidden)

    response = client.patch("/api/v1/quotations/5/status", json={"status": "ACCEPTED"})

    assert response.status_code == 400


def test_quotations_by_status_validates_path():
    assert client.get("/api/v1/quotations/by-status/ARCHIVED").status_code == 422


def test_export_quotation_downloads_workbook(monkeypatch):
    quotation = {
        "quotation_number": "QT20240115001",
        "customer_name": "Jane Doe",
        "quotation_date": date(2024, 1, 15),
        "status": "DRAFT",
        "items": [{"line_number": 1, "product_name": "Bottle", "quantity": 2, "unit_price": Decimal("12.50")}],
    }
    monkeypatch.setattr(QuotationService, "find_one", lambda quotation_id: quotation)

    response = client.get("/api/v1/quotations/5/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "QT20240115001.xlsx" in response.headers["content-disposition"]
    assert response.content[:2] == b"PK"


def test_export_summary_passes_status(monkeypatch):
    calls = {}

    def fake_list(status=None):
        calls["status"] = status
        return []

    monkeypatch.setattr(QuotationService, "list_for_export", fake_list)

    response = client.get("/api/v1/quotations/export/summary?status=SENT")

    assert response.status_code == 200
    assert calls["status"] == "SENT"


@pytest.mark.parametrize("path", ["/api/v1/quotations/search?term=jane", "/api/v1/quotations?search=jane"])
def test_quotation_search(monkeypatch, path):
    monkeypatch.setattr(QuotationService, "search", lambda term, page, page_size: ([{"customer_name": "Jane"}], 1))

    body = client.get(path).json()

    assert body["data"][0]["customer_name"] == "Jane"


def test_dashboard_summary(monkeypatch):
    monkeypatch.setattr(
        DashboardService, "get_summary",
        lambda recent_limit: {"products": {"total": 4}, "recent_limit": recent_limit}
    )

    body = client.get("/api/v1/dashboard/summary?recent_limit=3").json()

    assert body["data"] == {"products": {"total": 4}, "recent_limit": 3}
