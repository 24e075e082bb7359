"""Generic record store over the SQLAlchemy models.

Services talk to persistence only through the ``RecordStore`` protocol:
collections of plain dict records addressed by collection name. Each call is
its own unit of work; there are no cross-record transactions, so multi-record
operations must tolerate a failure between two calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy import JSON, Uuid, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lemrecon.db.models import (
    AuditLogModel,
    Base,
    CorrectionModel,
    DailyReportModel,
    DisputeModel,
    EquipmentRateModel,
    FieldLogModel,
    InvoiceModel,
    LabourRateModel,
    ReportSegmentModel,
)
from lemrecon.exceptions import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

COLLECTIONS: dict[str, type[Base]] = {
    "daily_reports": DailyReportModel,
    "report_segments": ReportSegmentModel,
    "field_logs": FieldLogModel,
    "disputes": DisputeModel,
    "corrections": CorrectionModel,
    "invoices": InvoiceModel,
    "audit_log": AuditLogModel,
    "labour_rates": LabourRateModel,
    "equipment_rates": EquipmentRateModel,
}


class RecordStore(Protocol):
    """Minimal CRUD surface the lifecycle services depend on."""

    async def get(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        """Records matching every filter. List/tuple/set values match any member."""
        ...

    async def get_one(self, collection: str, record_id: Any) -> dict[str, Any] | None:
        ...

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        ...

    async def update(
        self, collection: str, record_id: Any, patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        ...

    async def batch_update(
        self, collection: str, record_ids: Iterable[Any], patch: Mapping[str, Any]
    ) -> int:
        ...


def _model_for(collection: str) -> type[Base]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def _coerce(column, value: Any) -> Any:
    """Convert a domain value to what the column type binds."""
    if value is None:
        return None
    if isinstance(column.type, JSON):
        return to_jsonable_python(value)
    if isinstance(column.type, Uuid) and not isinstance(value, UUID):
        return UUID(str(value))
    if isinstance(value, Enum):
        return value.value
    return value


def _row_values(model: type[Base], values: Mapping[str, Any], *, skip_none: bool) -> dict:
    columns = model.__table__.columns
    out = {}
    for key, value in values.items():
        if key not in columns:
            continue
        if value is None and skip_none:
            continue
        out[key] = _coerce(columns[key], value)
    return out


def _filter_value(column, value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce(column, v) for v in value]
    return _coerce(column, value)


def to_dict(obj: Base) -> dict[str, Any]:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


class SQLRecordStore:
    """RecordStore backed by an async SQLAlchemy session factory.

    Every call opens and commits its own session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        model = _model_for(collection)
        stmt = select(model)
        for key, value in filters.items():
            column = model.__table__.columns[key]
            value = _filter_value(column, value)
            attr = getattr(model, key)
            if isinstance(value, list):
                stmt = stmt.where(attr.in_(value))
            elif value is None:
                stmt = stmt.where(attr.is_(None))
            else:
                stmt = stmt.where(attr == value)
        stmt = stmt.order_by(model.created_at)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [to_dict(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("store_read_failed: %s %s", collection, exc)
            raise PersistenceError(f"Failed to read {collection}: {exc}") from exc

    async def get_one(self, collection: str, record_id: Any) -> dict[str, Any] | None:
        model = _model_for(collection)
        try:
            async with self._session_factory() as session:
                obj = await session.get(model, _coerce(model.__table__.columns["id"], record_id))
                return to_dict(obj) if obj is not None else None
        except SQLAlchemyError as exc:
            logger.error("store_read_failed: %s %s", collection, exc)
            raise PersistenceError(f"Failed to read {collection}: {exc}") from exc

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        model = _model_for(collection)
        obj = model(**_row_values(model, record, skip_none=True))
        try:
            async with self._session_factory() as session:
                session.add(obj)
                await session.commit()
                return to_dict(obj)
        except SQLAlchemyError as exc:
            logger.error("store_insert_failed: %s %s", collection, exc)
            raise PersistenceError(f"Failed to insert into {collection}: {exc}") from exc

    async def update(
        self, collection: str, record_id: Any, patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        model = _model_for(collection)
        values = _row_values(model, patch, skip_none=False)
        try:
            async with self._session_factory() as session:
                obj = await session.get(model, _coerce(model.__table__.columns["id"], record_id))
                if obj is None:
                    raise NotFoundError(collection, record_id)
                for key, value in values.items():
                    setattr(obj, key, value)
                await session.commit()
                return to_dict(obj)
        except SQLAlchemyError as exc:
            logger.error("store_update_failed: %s %s %s", collection, record_id, exc)
            raise PersistenceError(f"Failed to update {collection} {record_id}: {exc}") from exc

    async def batch_update(
        self, collection: str, record_ids: Iterable[Any], patch: Mapping[str, Any]
    ) -> int:
        """Apply one patch to many records in a single statement. Returns rows hit."""
        model = _model_for(collection)
        id_column = model.__table__.columns["id"]
        ids = [_coerce(id_column, rid) for rid in record_ids]
        if not ids:
            return 0
        values = _row_values(model, patch, skip_none=False)
        stmt = (
            update(model)
            .where(model.id.in_(ids))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount
        except SQLAlchemyError as exc:
            logger.error("store_batch_update_failed: %s %s", collection, exc)
            raise PersistenceError(
                f"Failed to update {len(ids)} {collection} records: {exc}",
                pending=[str(i) for i in ids],
            ) from exc
