import pytest

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.core.master_data_service import (
    MasterDataService,
    build_category_tree,
    generate_code_from_name,
)
from app.models.database_models import MASTER_DATA_DEFINITIONS

BRANDS = MASTER_DATA_DEFINITIONS["brands"]
COLORS = MASTER_DATA_DEFINITIONS["colors"]
CATEGORIES = MASTER_DATA_DEFINITIONS["categories"]


def category_row(entity_id, parent_id=None, code="CAT"):
    return {
        "id": entity_id, "name": f"Category {entity_id}", "code": code, "description": None,
        "parent_id": parent_id, "is_active": True, "created_at": None, "updated_at": None,
        "created_by": "system", "updated_by": "system",
    }


@pytest.mark.parametrize("name,expected", [
    ("Stainless Steel 304", "STAINLESS_STEEL_304"),
    ("  red / blue  ", "RED_BLUE"),
    ("Café Noir", "CAF_NOIR"),
    ("---", "ITEM"),
    ("", "ITEM"),
])
def test_generate_code_from_name(name, expected):
    assert generate_code_from_name(name) == expected


def test_generate_code_is_truncated():
    assert len(generate_code_from_name("x" * 80)) == 50


def test_build_category_tree_nests_children():
    rows = [
        {"id": 1, "name": "Tools", "parent_id": None},
        {"id": 2, "name": "Hand tools", "parent_id": 1},
        {"id": 3, "name": "Hammers", "parent_id": 2},
        {"id": 4, "name": "Orphan", "parent_id": 99},
    ]
    tree = build_category_tree(rows)

    assert [node["id"] for node in tree] == [1, 4]
    assert tree[0]["children"][0]["id"] == 2
    assert tree[0]["children"][0]["children"][0]["name"] == "Hammers"
    assert tree[1]["children"] == []


def test_get_definition_unknown_type():
    with pytest.raises(NotFoundException):
        MasterDataService.get_definition("planets")


def test_list_types_covers_all_definitions():
    slugs = [t["entity_type"] for t in MasterDataService.list_types()]
    assert "manufacturing-methods" in slugs
    assert len(slugs) == 9


def test_create_rejects_duplicate_code(fake_db):
    fake_db.on("SELECT id FROM brands WHERE code = %s", [{"id": 1}])

    with pytest.raises(ConflictException):
        MasterDataService.create(BRANDS, {"name": "Acme", "code": "ACME"}, "alice")
    assert fake_db.statements("INSERT INTO brands") == []


def test_create_inserts_and_returns_row(fake_db):
    stored = {"id": 7, "name": "Acme", "code": "ACME", "description": None, "is_active": True}
    fake_db.on("SELECT id FROM brands WHERE code", [])
    fake_db.on("INSERT INTO brands", [{"id": 7}])
    fake_db.on("FROM brands WHERE id = %s", [stored])

    result = MasterDataService.create(BRANDS, {"name": "Acme", "code": "ACME", "is_active": True}, "alice")

    assert result["id"] == 7
    _, params = fake_db.statements("INSERT INTO brands")[0]
    assert params == ["Acme", "ACME", True, "alice", "alice"]


def test_create_rejects_field_of_other_type(fake_db):
    with pytest.raises(ValidationException):
        MasterDataService.create(BRANDS, {"name": "Acme", "code": "ACME", "hex_code": "#FFFFFF"}, "alice")


def test_create_rejects_bad_hex_code(fake_db):
    with pytest.raises(ValidationException):
        MasterDataService.create(COLORS, {"name": "Red", "code": "RED", "hex_code": "red"}, "alice")


def test_create_category_requires_existing_parent(fake_db):
    fake_db.on("SELECT 1 FROM categories", [])

    with pytest.raises(ValidationException):
        MasterDataService.create(CATEGORIES, {"name": "Sub", "code": "SUB", "parent_id": 42}, "alice")


def test_update_category_cannot_be_own_parent(fake_db):
    fake_db.on("FROM categories WHERE id = %s AND deleted_at IS NULL", [category_row(3)])

    with pytest.raises(ValidationException):
        MasterDataService.update(CATEGORIES, 3, {"parent_id": 3}, "alice")


def test_update_category_rejects_cycle(fake_db):
    fake_db.on("SELECT 1 FROM categories", [{"exists": 1}])
    fake_db.on("SELECT parent_id FROM categories", lambda params: [{"parent_id": 1}] if params[0] == 2 else [])
    fake_db.on("FROM categories WHERE id = %s AND deleted_at IS NULL", [category_row(1)])

    with pytest.raises(ValidationException) as exc:
        MasterDataService.update(CATEGORIES, 1, {"parent_id": 2}, "alice")
    assert "cycle" in exc.value.message


def test_update_missing_row(fake_db):
    with pytest.raises(NotFoundException):
        MasterDataService.update(BRANDS, 5, {"name": "New"}, "alice")


def test_update_keeps_code_when_null_sent(fake_db):
    existing = {"id": 5, "name": "Old", "code": "OLD", "description": "d", "is_active": False}
    fake_db.on("FROM brands WHERE id = %s AND deleted_at IS NULL", [existing])
    fake_db.on("FROM brands WHERE id = %s", [{**existing, "name": "New", "is_active": True}])

    MasterDataService.update(BRANDS, 5, {"name": "New", "code": None, "is_active": True}, "bob")

    _, params = fake_db.statements("UPDATE brands")[0]
    assert params == ["New", "OLD", "d", True, "bob", 5]


def test_remove_missing_row(fake_db):
    with pytest.raises(NotFoundException):
        MasterDataService.remove(BRANDS, 5, "alice")


def test_remove_soft_deletes(fake_db):
    fake_db.on("UPDATE brands SET deleted_at", [{"id": 5}])

    MasterDataService.remove(BRANDS, 5, "alice")

    _, params = fake_db.statements("UPDATE brands SET deleted_at")[0]
    assert params == ("alice", 5)


def test_find_or_create_by_name_reuses_existing(fake_db):
    fake_db.on("WHERE name = %s", [{"id": 3}])
    with fake_db.get_connection() as conn:
        result = MasterDataService.find_or_create_by_name(conn.cursor(), BRANDS, " Acme ", "alice")

    assert result == (3, False)
    assert fake_db.executed[0][1] == ("Acme",)


def test_find_or_create_by_name_suffixes_taken_code(fake_db):
    fake_db.on("WHERE name = %s", [])
    fake_db.on("SELECT id FROM brands WHERE code", lambda params: [{"id": 1}] if params[0] == "ACME" else [])
    fake_db.on("INSERT INTO brands", [{"id": 9}])
    with fake_db.get_connection() as conn:
        result = MasterDataService.find_or_create_by_name(conn.cursor(), BRANDS, "Acme", "alice")

    assert result == (9, True)
    _, params = fake_db.statements("INSERT INTO brands")[0]
    assert params[:3] == ["Acme", "ACME_2", True]


def test_get_category_tree_reads_active_categories(fake_db):
    fake_db.on("FROM categories WHERE deleted_at IS NULL AND is_active = TRUE", [
        category_row(1, code="TOOLS"),
        category_row(2, parent_id=1, code="HAND"),
        category_row(3, parent_id=7, code="LOST"),
    ])

    tree = MasterDataService.get_category_tree()

    assert [node["id"] for node in tree] == [1, 3]
    assert tree[0]["children"][0]["code"] == "HAND"
