# tests/conftest.py
import os
from contextlib import contextmanager

import pytest

# no log files from the test run
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")

from app.core.exceptions import AppException  # noqa: E402

SERVICE_MODULES = [
    "app.core.master_data_service",
    "app.core.product_attribute_service",
    "app.core.product_service",
    "app.core.quotation_service",
    "app.core.excel_import_service",
    "app.core.excel_export_service",
    "app.core.dashboard_service",
    "app.core.schema_manager",
]


def normalize_sql(sql):
    return " ".join(sql.split())


class FakeCursor:
    """
    Answers queries from a list of (sql fragment, rows) rules; first match wins.

    `rows` is a list of dicts or a callable taking the params and returning one.
    Unmatched statements return no rows.
    """

    def __init__(self, db):
        self.db = db
        self.description = None
        self._rows = []

    def execute(self, sql, params=None):
        sql = normalize_sql(sql)
        self.db.executed.append((sql, params))
        rows = []
        for fragment, result in self.db.rules:
            if fragment in sql:
                rows = result(params) if callable(result) else result
                break
        rows = rows or []
        self.description = [(key,) for key in rows[0].keys()] if rows else None
        self._rows = [tuple(row.values()) for row in rows]

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        pass


class FakeConnection:
    def __init__(self, db):
        self.db = db

    def cursor(self):
        return FakeCursor(self.db)


class FakeDB:
    """Stands in for DatabaseManager: same transaction contract, no server."""

    def __init__(self):
        self.rules = []
        self.executed = []
        self.commits = 0
        self.rollbacks = 0

    def on(self, fragment, rows):
        self.rules.append((fragment, rows))
        return self

    def statements(self, fragment):
        return [(sql, params) for sql, params in self.executed if fragment in sql]

    @contextmanager
    def get_connection(self):
        try:
            yield FakeConnection(self)
            self.commits += 1
        except AppException:
            self.rollbacks += 1
            raise

    def execute_query(self, query, params=(), fetch_one=False):
        cursor = FakeCursor(self)
        cursor.execute(query, params)
        if cursor.description is None:
            return None if fetch_one else []
        names = [d[0] for d in cursor.description]
        if fetch_one:
            row = cursor.fetchone()
            return dict(zip(names, row)) if row else None
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def get_pool_status(self):
        return {"initialized": True, "min_connections": 1, "max_connections": 10}

    def validate_connection(self):
        return True

    def close_pool(self):
        pass


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDB()
    for module in SERVICE_MODULES:
        monkeypatch.setattr(f"{module}.get_db_manager", lambda: db)
    return db
