# WORKFLOW: Test suite for schema ensure and the store gateway.
# Used by: CI pipelines, development testing
# Test scenarios:
# 1. Idempotent schema creation and added optional columns on legacy tables
# 2. Inserts with uniqueness conflicts reported as duplicates
# 3. Transaction rollback and StoreError wrapping
# 4. Conjunctive filter bounds in the select statement

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, inspect, text

from db.session import init_db
from db.store import PriceStore
from etl.errors import StoreError
from etl.tabular_decoder import PriceRecord


def stored_rows(store: PriceStore):
    return [tuple(row) for row in store.session.execute(store.select_statement()).all()]


class TestSchemaEnsure:

    def test_init_db_is_idempotent(self, engine):
        before = {column["name"] for column in inspect(engine).get_columns("prices")}

        init_db(engine)
        init_db(engine)

        after = {column["name"] for column in inspect(engine).get_columns("prices")}
        assert before == after == {"id", "name", "category", "price", "create_date"}

    def test_adds_missing_optional_column(self, tmp_path):
        legacy = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
        with legacy.begin() as conn:
            conn.execute(text(
                "CREATE TABLE prices (id INTEGER PRIMARY KEY, name TEXT NOT NULL, "
                "category TEXT NOT NULL, price NUMERIC NOT NULL)"
            ))
            conn.execute(text("INSERT INTO prices (name, category, price) VALUES ('tea', 'drinks', 3)"))

        init_db(legacy)

        columns = {column["name"] for column in inspect(legacy).get_columns("prices")}
        assert "create_date" in columns
        with legacy.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM prices")).scalar_one() == 1
        legacy.dispose()


class TestPriceStore:

    def test_insert_and_select_in_insertion_order(self, store):
        with store.transaction():
            store.reset()
            assert store.insert(PriceRecord("bread", "bakery", Decimal("50"))) is True
            assert store.insert(PriceRecord("apple", "fruit", Decimal("100"), date(2024, 1, 2))) is True

        assert stored_rows(store) == [
            ("bread", "bakery", Decimal("50.00"), None),
            ("apple", "fruit", Decimal("100.00"), date(2024, 1, 2)),
        ]

    def test_uniqueness_conflict_is_reported_not_raised(self, store):
        record = PriceRecord("apple", "fruit", Decimal("100"), date(2024, 1, 2))
        with store.transaction():
            store.reset()
            assert store.insert(record) is True
            assert store.insert(record) is False
            assert store.insert(PriceRecord("bread", "bakery", Decimal("50"))) is True

        assert store.count() == 2

    def test_reset_removes_everything(self, store):
        with store.transaction():
            store.insert(PriceRecord("apple", "fruit", Decimal("1")))
        with store.transaction():
            store.reset()

        assert store.count() == 0

    def test_failed_transaction_rolls_back(self, store):
        with store.transaction():
            store.insert(PriceRecord("apple", "fruit", Decimal("1")))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.reset()
                store.insert(PriceRecord("bread", "bakery", Decimal("2")))
                raise RuntimeError("boom")

        assert [row[0] for row in stored_rows(store)] == ["apple"]

    def test_database_errors_become_store_errors(self, store):
        with pytest.raises(StoreError):
            with store.transaction():
                store.session.execute(text("SELECT * FROM missing_table"))

    def test_select_statement_filters(self, store):
        with store.transaction():
            store.reset()
            store.insert(PriceRecord("a", "x", Decimal("10"), date(2024, 1, 1)))
            store.insert(PriceRecord("b", "x", Decimal("20"), date(2024, 2, 1)))
            store.insert(PriceRecord("c", "y", Decimal("30")))

        statement = store.select_statement(start_date=date(2024, 1, 15), max_price=Decimal("25"))
        assert [row.name for row in store.session.execute(statement)] == ["b"]

        statement = store.select_statement(min_price=Decimal("15"))
        assert [row.name for row in store.session.execute(statement)] == ["b", "c"]
