from schoolcomms.gateway.base import (
    ChangeEvent,
    ChangeSubscription,
    ChangeType,
    DataStoreGateway,
    PresenceChannel,
    StoreError,
    StoreUnavailableError,
    SubscriptionStatus,
    UniqueViolationError,
    all_of,
    any_of,
    asc,
    desc,
    eq,
    in_,
    is_null,
    neq,
)
from schoolcomms.gateway.change_bus import ChangeBus
from schoolcomms.gateway.presence import PresenceHub
from schoolcomms.gateway.sql_gateway import SqlAlchemyGateway

__all__ = [
    "ChangeBus",
    "ChangeEvent",
    "ChangeSubscription",
    "ChangeType",
    "DataStoreGateway",
    "PresenceChannel",
    "PresenceHub",
    "SqlAlchemyGateway",
    "StoreError",
    "StoreUnavailableError",
    "SubscriptionStatus",
    "UniqueViolationError",
    "all_of",
    "any_of",
    "asc",
    "desc",
    "eq",
    "in_",
    "is_null",
    "neq",
]
