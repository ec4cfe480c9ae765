import asyncio
import sys

import httpx
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from schoolcomms.app_state import build_context
from schoolcomms.config import settings
from schoolcomms.db import engine
from schoolcomms.gateway import eq
from schoolcomms.realtime import PresenceIdentity, PresenceTracker


EXPECTED_TABLES = {
    'admin_conversations',
    'admin_messages',
    'messages',
    'message_reads',
    'student_notices',
    'content_updates',
    'profiles',
    'students',
    'activity_logs',
}

GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_messaging_tables():
    ctx = build_context()
    missing = sorted(name for name in EXPECTED_TABLES if name not in ctx.gateway.metadata.tables)
    if missing:
        raise RuntimeError(f'Missing tables: {missing}')

    async def _count():
        return await ctx.gateway.count('messages', filters=[eq('is_read', False)])

    return f'unread_messages={asyncio.run(_count())}'


def check_presence_round_trip():
    ctx = build_context()

    async def _run():
        observer = PresenceTracker.observer(ctx.gateway)
        probe = PresenceTracker(ctx.gateway, PresenceIdentity(id='healthcheck', name='Healthcheck', type='admin'))
        await observer.start()
        await probe.start()
        seen = observer.is_online('healthcheck')
        await probe.stop()
        gone = not observer.is_online('healthcheck')
        await observer.stop()
        return seen and gone

    if not asyncio.run(_run()):
        raise RuntimeError('Presence announce/withdraw did not round-trip')
    return 'announce + withdraw ok'


def check_http_health():
    res = httpx.get(f'{settings.app_base_url.rstrip("/")}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code}')
    return res.json().get('status', '')


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Messaging tables registered', check_messaging_tables),
        ('Presence channel round trip', check_presence_round_trip),
        ('HTTP health endpoint reachable', check_http_health),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
