from app.core.query_builder import QueryBuilder


def test_insert_query_adds_audit_columns():
    query, values = QueryBuilder.build_insert_query("brands", {"name": "Acme", "code": "ACME"}, "alice")

    assert "INSERT INTO brands (name, code, created_by, updated_by)" in query
    assert "RETURNING id" in query
    assert values == ["Acme", "ACME", "alice", "alice"]


def test_update_query_targets_live_row():
    query, values = QueryBuilder.build_update_query("brands", 7, {"name": "Acme"}, "bob")

    assert "name = %s" in query
    assert "updated_by = %s" in query
    assert "WHERE id = %s AND deleted_at IS NULL" in query
    assert values == ["Acme", "bob", 7]


def test_merge_keeps_required_values_on_null():
    existing = {"name": "Old", "description": "text", "is_active": True, "id": 1}
    merged = QueryBuilder.merge(
        existing,
        {"name": None, "description": None, "unknown": "x"},
        ("name", "description", "is_active"),
        required=("name", "is_active"),
    )

    assert merged == {"name": "Old", "description": None, "is_active": True}


def test_like_pattern_escapes_wildcards():
    assert QueryBuilder.like_pattern(" 50%_off ") == "%50\\%\\_off%"


def test_search_clause():
    assert QueryBuilder.build_search_clause(["p.name", "p.code"]) == "(p.name ILIKE %s OR p.code ILIKE %s)"


def test_pagination_clamps_page():
    assert QueryBuilder.pagination(1, 20) == (20, 0)
    assert QueryBuilder.pagination(3, 20) == (20, 40)
    assert QueryBuilder.pagination(0, 20) == (20, 0)


def test_active_filter():
    assert QueryBuilder.active_filter("p") == "p.deleted_at IS NULL AND p.is_active = TRUE"
    assert QueryBuilder.active_filter(has_is_active=False) == "deleted_at IS NULL"
