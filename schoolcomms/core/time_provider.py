from __future__ import annotations

from datetime import datetime, timezone


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def utcnow(self) -> datetime:
        # Persisted timestamps are naive UTC.
        return self.now().astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    return default_time_provider.utcnow()


default_time_provider = TimeProvider()
