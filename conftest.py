import pytest

import database
from library import Library


@pytest.fixture
def lib(tmp_path, request, monkeypatch):
    # Create a unique database file for each test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    # Restored after the test, so other Library() instances are unaffected
    monkeypatch.setattr(database, "DATABASE_FILE", db_file)
    lib = Library()
    yield lib
    lib.close()
