from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from schoolcomms import models  # noqa: F401  registers tables on Base.metadata
from schoolcomms.db import Base, build_engine, engine as default_engine
from schoolcomms.gateway import ChangeBus, PresenceHub, SqlAlchemyGateway


@dataclass
class AppContext:
    engine: Engine
    bus: ChangeBus
    presence: PresenceHub
    gateway: SqlAlchemyGateway


_ctx: AppContext | None = None


def build_context(database_url: str | None = None) -> AppContext:
    engine = build_engine(database_url) if database_url else default_engine
    bus = ChangeBus()
    presence = PresenceHub()
    gateway = SqlAlchemyGateway(engine, Base.metadata, bus=bus, presence=presence)
    return AppContext(engine=engine, bus=bus, presence=presence, gateway=gateway)


def set_context(ctx: AppContext | None) -> None:
    global _ctx
    _ctx = ctx


def get_context() -> AppContext:
    if _ctx is None:
        set_context(build_context())
    return _ctx
