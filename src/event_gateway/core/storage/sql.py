# event_gateway/core/storage/sql.py
"""
SQLAlchemy subscription storage.

Two tables: ``event_subscription`` and its owned ``event_subscription_filter``
rows, deleted with their parent. Every finder loads filters eagerly.

Example:
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    storage = SqlSubscriptionStorage(create_sessionmaker(engine))
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from event_gateway.contracts.storage import SubscriptionStorage
from event_gateway.contracts.subscription import Filter, Subscription, SubscriptionStatus
from event_gateway.core.config import settings
from event_gateway.core.db import Base, session_scope
from event_gateway.core.exceptions import SubscriptionNotFoundError

logger = logging.getLogger(__name__)

_SCHEMA_PREFIX = f"{settings.database_schema}." if settings.database_schema else ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubscriptionRecord(Base):
    __tablename__ = "event_subscription"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    type: Mapped[str] = mapped_column(String(64))
    user: Mapped[str | None] = mapped_column(String(255), index=True)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    modified_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    filters: Mapped[list[FilterRecord]] = relationship(
        back_populates="subscription",
        cascade="all, delete-orphan",
        order_by="FilterRecord.position",
    )


class FilterRecord(Base):
    __tablename__ = "event_subscription_filter"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subscription_id: Mapped[str] = mapped_column(
        ForeignKey(f"{_SCHEMA_PREFIX}event_subscription.id", ondelete="CASCADE"),
        index=True,
    )
    position: Mapped[int] = mapped_column(default=0)
    type: Mapped[str] = mapped_column(String(64), index=True)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    subscription: Mapped[SubscriptionRecord] = relationship(back_populates="filters")


def _to_domain(record: SubscriptionRecord) -> Subscription:
    try:
        status: SubscriptionStatus | str = SubscriptionStatus(record.status)
    except ValueError:
        status = record.status
    return Subscription(
        id=record.id,
        status=status,
        type=record.type,
        user=record.user,
        config=dict(record.config) if record.config is not None else None,
        filters=[
            Filter(id=f.id, type=f.type, config=dict(f.config or {}))
            for f in record.filters
        ],
        created_date=_aware(record.created_date),
        modified_date=_aware(record.modified_date),
    )


def _status_value(status: SubscriptionStatus | str | None) -> str | None:
    if isinstance(status, SubscriptionStatus):
        return status.value
    return status


class SqlSubscriptionStorage(SubscriptionStorage):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def save(self, subscription: Subscription) -> Subscription:
        async with session_scope(self._sessionmaker) as session:
            record: SubscriptionRecord | None = None
            if subscription.id is not None:
                record = await session.get(
                    SubscriptionRecord,
                    subscription.id,
                    options=[selectinload(SubscriptionRecord.filters)],
                )

            now = _utcnow()
            if record is None:
                record = SubscriptionRecord(
                    id=subscription.id or str(uuid4()),
                    created_date=subscription.created_date or now,
                    filters=[],
                )
                session.add(record)

            record.status = _status_value(subscription.status)
            record.type = subscription.type
            record.user = subscription.user
            record.config = dict(subscription.config) if subscription.config is not None else None
            record.modified_date = subscription.modified_date or now
            self._merge_filters(record, subscription.filters)

            await session.flush()
            saved = _to_domain(record)

        logger.debug("Saved subscription %s", saved.id)
        return saved

    @staticmethod
    def _merge_filters(record: SubscriptionRecord, filters: list[Filter]) -> None:
        existing = {f.id: f for f in record.filters}
        merged: list[FilterRecord] = []
        for position, filter_ in enumerate(filters):
            filter_record = existing.get(filter_.id) if filter_.id else None
            if filter_record is None:
                filter_record = FilterRecord(id=filter_.id or str(uuid4()))
            filter_record.position = position
            filter_record.type = filter_.type
            filter_record.config = dict(filter_.config or {})
            merged.append(filter_record)
        record.filters = merged

    async def get_by_id(self, subscription_id: str) -> Subscription:
        async with session_scope(self._sessionmaker) as session:
            record = await session.get(
                SubscriptionRecord,
                subscription_id,
                options=[selectinload(SubscriptionRecord.filters)],
            )
            if record is None:
                raise SubscriptionNotFoundError(subscription_id)
            return _to_domain(record)

    async def find_by_status(self, status: SubscriptionStatus) -> list[Subscription]:
        stmt = (
            select(SubscriptionRecord)
            .where(SubscriptionRecord.status == _status_value(status))
            .options(selectinload(SubscriptionRecord.filters))
        )
        return await self._find(stmt)

    async def find_by_user_and_status(
        self, user: str, status: SubscriptionStatus
    ) -> list[Subscription]:
        stmt = (
            select(SubscriptionRecord)
            .where(SubscriptionRecord.user == user)
            .where(SubscriptionRecord.status == _status_value(status))
            .options(selectinload(SubscriptionRecord.filters))
        )
        return await self._find(stmt)

    async def find_by_user_and_filter_type(
        self, user: str, filter_type: str
    ) -> list[Subscription]:
        stmt = (
            select(SubscriptionRecord)
            .where(SubscriptionRecord.user == user)
            .where(SubscriptionRecord.filters.any(FilterRecord.type == filter_type))
            .options(selectinload(SubscriptionRecord.filters))
        )
        return await self._find(stmt)

    async def find_owners(self) -> list[str]:
        stmt = (
            select(SubscriptionRecord.user)
            .where(SubscriptionRecord.user.is_not(None))
            .distinct()
            .order_by(SubscriptionRecord.user)
        )
        async with session_scope(self._sessionmaker) as session:
            return list((await session.scalars(stmt)).all())

    async def _find(self, stmt) -> list[Subscription]:
        async with session_scope(self._sessionmaker) as session:
            records = (await session.scalars(stmt)).all()
            return [_to_domain(r) for r in records]
