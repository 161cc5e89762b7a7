"""Shared fixtures: in-memory workbooks and an in-memory database."""

from __future__ import annotations

import io
import os

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pandas as pd
import pytest
from sqlalchemy.orm import sessionmaker


def make_xlsx(rows) -> bytes:
    """Write a row-major grid to .xlsx bytes with no header handling."""
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False, engine="openpyxl")
    return buffer.getvalue()


def make_csv(rows, encoding: str = "utf-8", delimiter: str = ",") -> bytes:
    lines = [delimiter.join("" if c is None else str(c) for c in row) for row in rows]
    return ("\n".join(lines) + "\n").encode(encoding)


@pytest.fixture
def xlsx_factory():
    return make_xlsx


@pytest.fixture
def csv_factory():
    return make_csv


@pytest.fixture
def db_session():
    from pv_rsd.database import Base, create_db_engine, seed_demo_device, seed_test_standards

    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    seed_test_standards(session)
    seed_demo_device(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
