import pytest

from database import MockDatabase, seed_database


def test_seed_is_independent_per_call():
    first, second = seed_database(), seed_database()
    first.update_one("product", {"id": "1"}, {"stock": 0})
    assert second.find_one("product", {"id": "1"}).stock == 120


def test_seeded_users_cover_every_role(db):
    assert sorted(u.role for u in db.get_documents("user")) == ["admin", "cashier", "staff"]


def test_document_helpers(db, make_product):
    assert db.create_document("product", make_product(pid="x")) == "x"
    assert db.get_documents("product", {"category": "Dairy"}, limit=2)[1].id == "2"
    assert db.update_one("product", {"id": "missing"}, {"stock": 1}) == 0
    assert db.delete_one("product", {"id": "x"}) == 1
    assert db.delete_one("product", {"id": "x"}) == 0


def test_next_product_id_follows_highest_numeric_id(db):
    assert db.next_product_id() == "15"
    db.delete_one("product", {"id": "3"})
    assert db.next_product_id() == "15"
    assert MockDatabase().next_product_id() == "1"


def test_unknown_collection():
    with pytest.raises(KeyError):
        MockDatabase().get_documents("orders")
