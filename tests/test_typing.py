import asyncio
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from schoolcomms.app_state import build_context, set_context
from schoolcomms.core.time_provider import default_time_provider
from schoolcomms.main import app
from schoolcomms.realtime import TypingIndicator, typing_label
from schoolcomms.schemas import TypingEntry

from tests.support import GatewayTestCase


def _entry(user_id, name=''):
    return TypingEntry(id=user_id, name=name, started_at=datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc))


def test_typing_label():
    assert typing_label([]) == ''
    assert typing_label([_entry('admin-1', 'Principal Rao')]) == 'Principal Rao is typing...'
    assert typing_label([_entry('admin-1')]) == 'Someone is typing...'
    assert typing_label([_entry('admin-1'), _entry('admin-2')]) == '2 people are typing...'


class TypingIndicatorTests(GatewayTestCase):
    def _indicator(self, user_id, name, **kwargs):
        return TypingIndicator(self.gateway, 'conv-1', user_id, name, **kwargs)

    def test_other_user_sees_typist_but_not_self(self):
        async def _run():
            rao = await self._indicator('admin-1', 'Principal Rao').start()
            iyer = await self._indicator('admin-2', 'Ms. Iyer').start()
            await rao.set_typing(True)
            seen = (iyer.label, [entry.id for entry in rao.typing_users], rao.is_typing)
            await rao.set_typing(False)
            after = (iyer.label, rao.is_typing)
            await rao.stop()
            await iyer.stop()
            return seen, after

        seen, after = self.run_async(_run())
        self.assertEqual(seen, ('Principal Rao is typing...', [], True))
        self.assertEqual(after, ('', False))

    def test_typing_expires_without_keystrokes(self):
        async def _run():
            changes = []

            async def record(entries):
                changes.append([entry.id for entry in entries])

            rao = await self._indicator('admin-1', 'Principal Rao', expire_after=0.01).start()
            iyer = await self._indicator('admin-2', 'Ms. Iyer', on_change=record).start()
            await rao.set_typing(True)
            await asyncio.sleep(0.1)
            result = (iyer.typing_users, rao.is_typing, changes)
            await rao.stop()
            await iyer.stop()
            return result

        typing_users, is_typing, changes = self.run_async(_run())
        self.assertEqual(typing_users, [])
        self.assertFalse(is_typing)
        self.assertEqual(changes[-2:], [['admin-1'], []])

    def test_stale_entries_are_ignored(self):
        async def _run():
            strict = await self._indicator('admin-2', 'Ms. Iyer', stale_after=5).start()
            lenient = await self._indicator('admin-3', 'Mr. Das', stale_after=60).start()
            # A typist that went away without withdrawing.
            gone = self.gateway.presence_channel(strict.channel_name, key='admin-9')
            await gone.subscribe()
            await gone.track(
                {'id': 'admin-9', 'name': 'Gone Admin', 'started_at': default_time_provider.now() - timedelta(seconds=30)}
            )
            result = (strict.typing_users, [entry.id for entry in lenient.typing_users])
            await gone.unsubscribe()
            await strict.stop()
            await lenient.stop()
            return result

        strict_view, lenient_view = self.run_async(_run())
        self.assertEqual(strict_view, [])
        self.assertEqual(lenient_view, ['admin-9'])

    def test_conversations_do_not_share_typists(self):
        async def _run():
            rao = await self._indicator('admin-1', 'Principal Rao').start()
            elsewhere = await TypingIndicator(self.gateway, 'conv-2', 'admin-2', 'Ms. Iyer').start()
            await rao.set_typing(True)
            label = elsewhere.label
            await rao.stop()
            await elsewhere.stop()
            return label

        self.assertEqual(self.run_async(_run()), '')

    def test_set_typing_before_start_is_ignored(self):
        indicator = self._indicator('admin-1', 'Principal Rao')
        self.run_async(indicator.set_typing(True))
        self.assertFalse(indicator.is_typing)
        self.assertFalse(indicator.started)


class TypingSocketTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_typing_ws.db'
        cls._ctx = build_context(f'sqlite:///{db_path}')
        set_context(cls._ctx)

    @classmethod
    def tearDownClass(cls):
        set_context(None)
        cls._ctx.engine.dispose()
        cls._tmpdir.cleanup()

    def test_watcher_sees_typing_and_idle(self):
        with TestClient(app) as client:
            with client.websocket_connect('/ws/typing/conv-1?user_id=admin-2&name=Ms.%20Iyer') as watcher:
                self.assertEqual(watcher.receive_json()['typing'], [])
                with client.websocket_connect('/ws/typing/conv-1?user_id=admin-1&name=Principal%20Rao') as typist:
                    typist.receive_json()
                    typist.send_text('typing')
                    started = watcher.receive_json()
                    typist.send_text('idle')
                    stopped = watcher.receive_json()

        self.assertEqual(started['type'], 'typing_sync')
        self.assertEqual(started['label'], 'Principal Rao is typing...')
        self.assertEqual(stopped['typing'], [])

    def test_anonymous_typist_is_refused(self):
        with TestClient(app) as client:
            with self.assertRaises(WebSocketDisconnect):
                with client.websocket_connect('/ws/typing/conv-1') as ws:
                    ws.receive_json()
