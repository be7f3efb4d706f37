import pytest

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.core.product_attribute_service import ProductAttributeService


def attribute_row(attribute_id=3, data_type="NUMBER", code="WEIGHT", name="Weight"):
    return {
        "id": attribute_id, "name": name, "code": code, "data_type": data_type,
        "description": None, "is_required": False, "is_active": True,
        "created_at": None, "updated_at": None, "created_by": "system", "updated_by": "system",
    }


def test_create_rejects_duplicate_code(fake_db):
    fake_db.on("SELECT id FROM product_attributes WHERE code", [{"id": 1}])

    with pytest.raises(ConflictException):
        ProductAttributeService.create({"name": "Weight", "code": "WEIGHT", "data_type": "NUMBER"}, "alice")
    assert fake_db.statements("INSERT INTO product_attributes") == []


def test_create_inserts_known_columns_only(fake_db):
    fake_db.on("SELECT id FROM product_attributes WHERE code", [])
    fake_db.on("INSERT INTO product_attributes", [{"id": 3}])
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row()])

    result = ProductAttributeService.create(
        {"name": "Weight", "code": "WEIGHT", "data_type": "NUMBER", "is_required": True, "values": ["1"]},
        "alice",
    )

    assert result["id"] == 3
    _, params = fake_db.statements("INSERT INTO product_attributes")[0]
    assert params == ["Weight", "WEIGHT", "NUMBER", True, "alice", "alice"]


def test_find_one_missing(fake_db):
    with pytest.raises(NotFoundException):
        ProductAttributeService.find_one(3)


def test_find_one_includes_option_values(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row(data_type="TEXT")])
    fake_db.on("FROM product_attribute_values WHERE attribute_id", [
        {"id": 1, "attribute_id": 3, "value": "Matte", "display_order": 0},
        {"id": 2, "attribute_id": 3, "value": "Gloss", "display_order": 1},
    ])

    attribute = ProductAttributeService.find_one(3)

    assert [v["value"] for v in attribute["values"]] == ["Matte", "Gloss"]


def test_find_by_data_type_rejects_unknown_type(fake_db):
    with pytest.raises(ValidationException):
        ProductAttributeService.find_by_data_type("DATE")
    assert fake_db.executed == []


def test_find_by_data_type_normalizes_case(fake_db):
    fake_db.on("SELECT COUNT(*) FROM product_attributes", [{"count": 1}])

    rows, total = ProductAttributeService.find_by_data_type("number")

    assert (rows, total) == ([], 1)
    _, params = fake_db.statements("ORDER BY name, id LIMIT")[0]
    assert params == ["NUMBER", 50, 0]


def test_update_refuses_data_type_change_while_in_use(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row(data_type="TEXT")])
    fake_db.on("SELECT COUNT(*) FROM product_dynamic_attributes", [{"count": 2}])

    with pytest.raises(ValidationException):
        ProductAttributeService.update(3, {"data_type": "NUMBER"}, "bob")
    assert fake_db.statements("UPDATE product_attributes") == []


def test_update_changes_data_type_when_unused(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row(data_type="TEXT")])
    fake_db.on("SELECT COUNT(*) FROM product_dynamic_attributes", [{"count": 0}])

    ProductAttributeService.update(3, {"data_type": "NUMBER", "name": None}, "bob")

    _, params = fake_db.statements("UPDATE product_attributes SET")[0]
    # name, code, data_type, description, is_required, is_active, updated_by, id
    assert params == ["Weight", "WEIGHT", "NUMBER", None, False, True, "bob", 3]


def test_update_rejects_code_used_by_another_attribute(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row()])
    fake_db.on("SELECT id FROM product_attributes WHERE code", [{"id": 8}])

    with pytest.raises(ConflictException):
        ProductAttributeService.update(3, {"code": "FINISH"}, "bob")

    _, params = fake_db.statements("SELECT id FROM product_attributes WHERE code")[0]
    assert params == ["FINISH", 3]


def test_remove_soft_deletes_option_values(fake_db):
    fake_db.on("UPDATE product_attributes SET deleted_at", [{"id": 3}])

    ProductAttributeService.remove(3, "alice")

    _, params = fake_db.statements("UPDATE product_attribute_values SET deleted_at")[0]
    assert params == ("alice", 3)


def test_remove_missing(fake_db):
    with pytest.raises(NotFoundException):
        ProductAttributeService.remove(3, "alice")


@pytest.mark.parametrize("value", ["heavy", "nan", "inf", "-Infinity", ""])
def test_add_value_rejects_non_numeric_for_number_attribute(fake_db, value):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row()])

    with pytest.raises(ValidationException) as exc:
        ProductAttributeService.add_value(3, {"value": value}, "alice")
    assert exc.value.details["field"] == "value"
    assert fake_db.statements("INSERT INTO product_attribute_values") == []


def test_add_value_accepts_number(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row()])
    fake_db.on("INSERT INTO product_attribute_values", [{"id": 9}])
    fake_db.on("FROM product_attribute_values WHERE id = %s", [{"id": 9, "attribute_id": 3, "value": "12.5"}])

    value = ProductAttributeService.add_value(3, {"value": "12.5", "display_order": 2}, "alice")

    assert value["id"] == 9
    _, params = fake_db.statements("INSERT INTO product_attribute_values")[0]
    assert params == [3, "12.5", 2, True, "alice", "alice"]


def test_add_value_accepts_free_text_for_text_attribute(fake_db):
    fake_db.on("FROM product_attributes WHERE id = %s", [attribute_row(data_type="TEXT")])
    fake_db.on("INSERT INTO product_attribute_values", [{"id": 9}])

    ProductAttributeService.add_value(3, {"value": "heavy"}, "alice")

    assert fake_db.statements("INSERT INTO product_attribute_values")


def test_add_value_to_missing_attribute(fake_db):
    with pytest.raises(NotFoundException):
        ProductAttributeService.add_value(3, {"value": "1"}, "alice")


def test_remove_value_missing(fake_db):
    with pytest.raises(NotFoundException) as exc:
        ProductAttributeService.remove_value(3, 42, "alice")
    assert exc.value.details["resource_type"] == "ProductAttributeValue"

    _, params = fake_db.statements("UPDATE product_attribute_values")[0]
    assert params == ("alice", 42, 3)
