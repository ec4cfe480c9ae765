from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


Row = dict[str, Any]


class StoreError(RuntimeError):
    pass


class StoreUnavailableError(StoreError):
    pass


class UniqueViolationError(StoreError):
    pass


class ChangeType(str, Enum):
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    ALL = '*'


class SubscriptionStatus(str, Enum):
    SUBSCRIBED = 'SUBSCRIBED'
    CLOSED = 'CLOSED'
    CHANNEL_ERROR = 'CHANNEL_ERROR'


@dataclass(frozen=True)
class Condition:
    column: str
    op: str
    value: Any = None

    def matches(self, row: Row) -> bool:
        current = row.get(self.column)
        if self.op == 'eq':
            return current == self.value
        if self.op == 'neq':
            return current != self.value
        if self.op == 'is_null':
            return current is None
        if self.op == 'in':
            return current in self.value
        raise ValueError(f'Unsupported operator: {self.op}')


@dataclass(frozen=True)
class AnyOf:
    """OR over conditions; each branch is a single condition or an AllOf."""

    branches: tuple[Any, ...]

    def matches(self, row: Row) -> bool:
        return any(branch.matches(row) for branch in self.branches)


@dataclass(frozen=True)
class AllOf:
    conditions: tuple[Any, ...]

    def matches(self, row: Row) -> bool:
        return all(condition.matches(row) for condition in self.conditions)


def eq(column: str, value: Any) -> Condition:
    return Condition(column, 'eq', value)


def neq(column: str, value: Any) -> Condition:
    return Condition(column, 'neq', value)


def is_null(column: str) -> Condition:
    return Condition(column, 'is_null')


def in_(column: str, values: Sequence[Any]) -> Condition:
    return Condition(column, 'in', tuple(values))


def any_of(*branches: Any) -> AnyOf:
    return AnyOf(tuple(branches))


def all_of(*conditions: Any) -> AllOf:
    return AllOf(tuple(conditions))


def row_matches(row: Row, filters: Sequence[Any] | None) -> bool:
    return all(condition.matches(row) for condition in (filters or ()))


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


def asc(column: str) -> Order:
    return Order(column, True)


def desc(column: str) -> Order:
    return Order(column, False)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: ChangeType
    new: Row
    old: Row | None = None


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]
StatusHandler = Callable[[SubscriptionStatus], Awaitable[None]]
SyncHandler = Callable[[list[Row]], Awaitable[None]]


@dataclass
class ChangeSubscription:
    """Handle returned by ``subscribe_changes``; ``cancel`` is immediate."""

    table: str
    event_types: tuple[ChangeType, ...]
    filters: tuple[Any, ...]
    on_event: ChangeHandler
    on_status: StatusHandler | None = None
    active: bool = True
    _cancel: Callable[['ChangeSubscription'], None] | None = field(default=None, repr=False)

    def wants(self, event: ChangeEvent) -> bool:
        if not self.active or event.table != self.table:
            return False
        if ChangeType.ALL not in self.event_types and event.event_type not in self.event_types:
            return False
        return row_matches(event.new, self.filters)

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._cancel is not None:
            self._cancel(self)


class PresenceChannel:
    """Ephemeral shared state: who is announced on a named channel."""

    name: str

    def on_sync(self, handler: SyncHandler) -> None:
        raise NotImplementedError

    async def subscribe(self, on_status: StatusHandler | None = None) -> None:
        raise NotImplementedError

    async def track(self, payload: Row) -> None:
        raise NotImplementedError

    async def untrack(self) -> None:
        raise NotImplementedError

    async def unsubscribe(self) -> None:
        raise NotImplementedError

    def state(self) -> list[Row]:
        raise NotImplementedError


class DataStoreGateway:
    """Generic row storage consumed by the messaging services."""

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        filters: Sequence[Any] | None = None,
        order: Sequence[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        raise NotImplementedError

    async def count(self, table: str, *, filters: Sequence[Any] | None = None) -> int:
        raise NotImplementedError

    async def insert(self, table: str, row: Row) -> Row:
        raise NotImplementedError

    async def update(self, table: str, patch: Row, *, filters: Sequence[Any]) -> list[Row]:
        raise NotImplementedError

    async def subscribe_changes(
        self,
        table: str,
        on_event: ChangeHandler,
        *,
        event_types: Sequence[ChangeType] = (ChangeType.ALL,),
        filters: Sequence[Any] | None = None,
        on_status: StatusHandler | None = None,
    ) -> ChangeSubscription:
        raise NotImplementedError

    def presence_channel(self, name: str, *, key: str | None = None) -> PresenceChannel:
        raise NotImplementedError
