"""Pytest configuration and fixtures for lemrecon tests.

Store-backed tests get a fresh SQLite file per test. The engine uses NullPool
so connections are opened on whichever event loop runs the operation (the
pytest-asyncio loop, or the TestClient loop in route tests).
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from lemrecon.config import reset_config
from lemrecon.db.models import Base
from lemrecon.db.store import SQLRecordStore
from lemrecon.models import EquipmentEntry, FieldLogEntry, LabourEntry


def make_engine(path: Path) -> AsyncEngine:
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def make_store(engine: AsyncEngine) -> SQLRecordStore:
    return SQLRecordStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("DEFAULT_ORG_ID", "test-org")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("NOTIFICATIONS_ENABLED", "false")
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def store(tmp_path: Path) -> SQLRecordStore:
    """Record store over a fresh SQLite file."""
    engine = make_engine(tmp_path / "lemrecon.db")
    await create_schema(engine)
    try:
        yield make_store(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def sync_store(tmp_path: Path) -> SQLRecordStore:
    """Record store for synchronous tests (CLI, TestClient)."""
    engine = make_engine(tmp_path / "lemrecon.db")
    asyncio.run(create_schema(engine))
    return make_store(engine)


@pytest.fixture
def work_date() -> date:
    return date(2024, 6, 1)


@pytest.fixture
def field_log(work_date: date) -> FieldLogEntry:
    """Field log claiming two workers and one machine."""
    return FieldLogEntry(
        field_log_id="LEM-1001",
        date=work_date,
        foreman="R. Nelson",
        contractor="Acme Pipeline",
        account_number="2160",
        labour_entries=[
            LabourEntry(name="J. Smith", classification="Labourer", regular_hours=8, overtime_hours=2),
            LabourEntry(name="Maria Lopez", classification="Operator", regular_hours=8),
        ],
        equipment_entries=[EquipmentEntry(type_or_id="Excavator 320", hours=10)],
        total_labour_cost=Decimal("1100.00"),
        total_equipment_cost=Decimal("1000.00"),
    )


@pytest.fixture
def inspector_report(work_date: date) -> dict:
    """Daily report as stored: raw observed rows in both legacy shapes."""
    return {
        "date": work_date,
        "inspector_name": "Pat Inspector",
        "labour": [
            {"employeeName": "Smith, John", "hours": 8},
            {"name": "Maria Lopez", "rt": 6, "ot": 2},
            {"name": "Chen Wei", "hours": 4, "classification": "Labourer"},
        ],
        "equipment": [{"type": "Excavator 320", "hours": 10}],
    }
