"""
Shared pytest fixtures.

Environment variables are set here, before anything imports
``backoffice.core.config``, so every test module sees the same temporary
database, upload directory and a stderr-only logger.
"""
import os
import sys
import tempfile

import pytest

# Ensure the backoffice package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp_db.close()

os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_db.name}"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp()
os.environ["LOG_FILE"] = ""

from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import backoffice.models  # noqa: E402,F401 – registers every table
from backoffice.core.storage import LocalAssetStorage  # noqa: E402


@pytest.fixture()
def session():
    """A fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


@pytest.fixture()
def storage(tmp_path):
    return LocalAssetStorage(tmp_path / "assets", "/uploads/products")
