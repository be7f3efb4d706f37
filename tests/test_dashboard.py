from decimal import Decimal

from app.core.dashboard_service import DashboardService, summarize_quotation_statuses


def test_summarize_fills_missing_statuses():
    summary = summarize_quotation_statuses([
        ("DRAFT", 2, Decimal("100.00")),
        ("SENT", 1, Decimal("40.50")),
        ("ACCEPTED", 3, Decimal("900.004")),
    ])

    assert summary["total"] == 6
    assert summary["open"] == 3
    assert summary["pipeline_value"] == Decimal("140.50")
    assert summary["accepted_revenue"] == Decimal("900.00")
    assert summary["by_status"]["EXPIRED"] == {"count": 0, "total_amount": Decimal("0.00")}


def test_summarize_empty():
    summary = summarize_quotation_statuses([])
    assert summary["total"] == 0
    assert summary["pipeline_value"] == Decimal("0.00")
    assert len(summary["by_status"]) == 5


def test_get_summary(fake_db):
    fake_db.on("SELECT COUNT(*) FROM products", [{"count": 4}])
    fake_db.on("SELECT COUNT(*) FROM brands", [{"count": 3}])
    fake_db.on("SELECT COUNT(*) FROM", [{"count": 0}])
    fake_db.on("GROUP BY status", [
        {"status": "DRAFT", "count": 2, "sum": Decimal("100.00")},
        {"status": "ACCEPTED", "count": 1, "sum": Decimal("50.00")},
    ])
    fake_db.on("ORDER BY created_at DESC", [
        {"id": 9, "quotation_number": "QT20240115003", "status": "DRAFT"},
    ])

    summary = DashboardService.get_summary(recent_limit=1)

    assert summary["products"] == {"total": 4}
    assert summary["quotations"]["total"] == 3
    assert summary["quotations"]["accepted_revenue"] == Decimal("50.00")
    assert summary["master_data"]["brands"] == 3
    assert summary["master_data"]["colors"] == 0
    assert summary["recent_quotations"][0]["quotation_number"] == "QT20240115003"
    assert fake_db.statements("ORDER BY created_at DESC")[0][1] == (1,)
