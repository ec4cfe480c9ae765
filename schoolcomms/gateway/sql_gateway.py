from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import MetaData, Table, and_, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from starlette.concurrency import run_in_threadpool

from schoolcomms.gateway.base import (
    AllOf,
    AnyOf,
    ChangeEvent,
    ChangeHandler,
    ChangeSubscription,
    ChangeType,
    Condition,
    DataStoreGateway,
    Order,
    Row,
    StatusHandler,
    StoreError,
    StoreUnavailableError,
    SubscriptionStatus,
    UniqueViolationError,
)
from schoolcomms.gateway.change_bus import ChangeBus
from schoolcomms.gateway.presence import InMemoryPresenceChannel, PresenceHub


logger = logging.getLogger(__name__)


class SqlAlchemyGateway(DataStoreGateway):
    """Gateway over SQLAlchemy Core tables with in-process change fan-out.

    Blocking database work runs in the threadpool; change events are emitted
    on the calling event loop once the write has committed.
    """

    def __init__(
        self,
        engine: Engine,
        metadata: MetaData,
        *,
        bus: ChangeBus | None = None,
        presence: PresenceHub | None = None,
    ) -> None:
        self.engine = engine
        self.metadata = metadata
        self.bus = bus or ChangeBus()
        self.presence = presence or PresenceHub()

    def _table(self, name: str) -> Table:
        table = self.metadata.tables.get(name)
        if table is None:
            raise StoreError(f'Unknown table: {name}')
        return table

    def _clause(self, table: Table, condition: Any):
        if isinstance(condition, AnyOf):
            return or_(*(self._clause(table, branch) for branch in condition.branches))
        if isinstance(condition, AllOf):
            return and_(*(self._clause(table, item) for item in condition.conditions))
        if not isinstance(condition, Condition):
            raise StoreError(f'Unsupported filter: {condition!r}')
        column = table.c[condition.column]
        if condition.op == 'eq':
            return column == condition.value
        if condition.op == 'neq':
            # SQL "!=" drops NULL rows; the in-memory matcher keeps them.
            return or_(column != condition.value, column.is_(None))
        if condition.op == 'is_null':
            return column.is_(None)
        if condition.op == 'in':
            return column.in_(list(condition.value))
        raise StoreError(f'Unsupported operator: {condition.op}')

    def _where(self, table: Table, filters: Sequence[Any] | None):
        return [self._clause(table, condition) for condition in (filters or ())]

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        filters: Sequence[Any] | None = None,
        order: Sequence[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        target = self._table(table)
        cols = [target.c[name] for name in columns] if columns else list(target.c)
        stmt = select(*cols).where(*self._where(target, filters))
        for item in order or ():
            column = target.c[item.column]
            stmt = stmt.order_by(column.asc() if item.ascending else column.desc())
        if limit is not None:
            stmt = stmt.limit(int(limit))
        return await run_in_threadpool(self._fetch_all, stmt)

    async def count(self, table: str, *, filters: Sequence[Any] | None = None) -> int:
        target = self._table(table)
        stmt = select(func.count()).select_from(target).where(*self._where(target, filters))
        return await run_in_threadpool(self._fetch_scalar, stmt)

    async def insert(self, table: str, row: Row) -> Row:
        target = self._table(table)
        stmt = target.insert().values(**row).returning(*target.c)
        created = await run_in_threadpool(self._write_one, stmt)
        await self.bus.emit(ChangeEvent(table=table, event_type=ChangeType.INSERT, new=created))
        return created

    async def update(self, table: str, patch: Row, *, filters: Sequence[Any]) -> list[Row]:
        target = self._table(table)
        if not filters:
            raise StoreError('Refusing an unfiltered update')
        stmt = target.update().where(*self._where(target, filters)).values(**patch).returning(*target.c)
        updated = await run_in_threadpool(self._write_many, stmt)
        for row in updated:
            await self.bus.emit(ChangeEvent(table=table, event_type=ChangeType.UPDATE, new=row))
        return updated

    async def subscribe_changes(
        self,
        table: str,
        on_event: ChangeHandler,
        *,
        event_types: Sequence[ChangeType] = (ChangeType.ALL,),
        filters: Sequence[Any] | None = None,
        on_status: StatusHandler | None = None,
    ) -> ChangeSubscription:
        self._table(table)
        subscription = self.bus.add(
            ChangeSubscription(
                table=table,
                event_types=tuple(event_types),
                filters=tuple(filters or ()),
                on_event=on_event,
                on_status=on_status,
            )
        )
        if on_status is not None:
            await on_status(SubscriptionStatus.SUBSCRIBED)
        return subscription

    def presence_channel(self, name: str, *, key: str | None = None) -> InMemoryPresenceChannel:
        return self.presence.channel(name, key=key)

    async def reset_connections(self) -> None:
        """Simulate a dropped realtime connection followed by a reconnect."""
        logger.warning('realtime_connections_reset subscribers=%s', self.bus.subscriber_count())
        await self.bus.emit_status(SubscriptionStatus.CLOSED)
        await self.presence.reset_connections()
        await self.bus.emit_status(SubscriptionStatus.SUBSCRIBED)

    def _fetch_all(self, stmt) -> list[Row]:
        try:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings().all()]
        except (OperationalError, DBAPIError) as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def _fetch_scalar(self, stmt) -> int:
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar() or 0)
        except (OperationalError, DBAPIError) as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def _write_one(self, stmt) -> Row:
        rows = self._write_many(stmt)
        if not rows:
            raise StoreError('Write returned no row')
        return rows[0]

    def _write_many(self, stmt) -> list[Row]:
        try:
            with self.engine.begin() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings().all()]
        except IntegrityError as exc:
            if 'unique' in str(exc.orig).lower():
                raise UniqueViolationError(str(exc.orig)) from exc
            raise StoreError(str(exc.orig)) from exc
        except (OperationalError, DBAPIError) as exc:
            raise StoreUnavailableError(str(exc)) from exc
