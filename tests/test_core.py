import asyncio
import unittest
from datetime import datetime, timezone

import pytest
from freezegun import freeze_time

from schoolcomms.core.drafts import DraftBuffer
from schoolcomms.core.errors import NotFoundError, ValidationError
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.core.outcome import Outcome, guarded
from schoolcomms.core.time_provider import default_time_provider, utc_now
from schoolcomms.gateway import StoreUnavailableError
from schoolcomms.metrics import timed_service


class PartyTests(unittest.TestCase):
    def test_broadcast_party_has_no_id(self):
        party = Party.any_admin()
        self.assertTrue(party.is_broadcast)
        self.assertEqual(party.role, 'admin')
        with self.assertRaises(ValidationError):
            Party(PartyKind.ANY_ADMIN, 'admin-1')

    def test_named_parties_require_id(self):
        for kind in (PartyKind.ADMIN, PartyKind.TEACHER, PartyKind.STUDENT):
            with self.assertRaises(ValidationError):
                Party(kind, '  ')

    def test_from_role(self):
        self.assertEqual(Party.from_role('Teacher', 't-1'), Party.teacher('t-1'))
        with self.assertRaises(ValidationError):
            Party.from_role('parent', 'p-1')
        with self.assertRaises(ValidationError):
            Party.from_role('any_admin', 'a-1')

    def test_columns_for_student_and_broadcast(self):
        self.assertEqual(
            Party.student('stu-1').sender_columns(),
            {'sender_type': 'student', 'sender_user_id': None, 'sender_student_id': 'stu-1'},
        )
        self.assertEqual(
            Party.any_admin().recipient_columns(),
            {'recipient_type': 'admin', 'recipient_user_id': None, 'recipient_student_id': None},
        )
        with self.assertRaises(ValidationError):
            Party.any_admin().sender_columns()

    def test_recipient_of_row(self):
        broadcast = {'recipient_type': 'admin', 'recipient_user_id': None, 'recipient_student_id': None}
        direct = {'recipient_type': 'admin', 'recipient_user_id': 'admin-1', 'recipient_student_id': None}
        student = {'recipient_type': 'student', 'recipient_user_id': None, 'recipient_student_id': 'stu-1'}
        self.assertEqual(Party.recipient_of(broadcast), Party.any_admin())
        self.assertEqual(Party.recipient_of(direct), Party.admin('admin-1'))
        self.assertEqual(Party.recipient_of(student), Party.student('stu-1'))

    def test_sender_of_row(self):
        row = {'sender_type': 'teacher', 'sender_user_id': 't-1', 'sender_student_id': None}
        self.assertEqual(Party.sender_of(row), Party.teacher('t-1'))


class DraftBufferTests(unittest.TestCase):
    def test_rollback_restores_text(self):
        draft = DraftBuffer()
        draft.current = 'See you at 4'
        correlation_id = draft.stage(draft.current)
        self.assertEqual(draft.current, '')
        self.assertEqual(draft.in_flight, 1)

        self.assertEqual(draft.rollback(correlation_id), 'See you at 4')
        self.assertEqual(draft.in_flight, 0)

    def test_rollback_keeps_text_typed_meanwhile(self):
        draft = DraftBuffer()
        correlation_id = draft.stage('first line')
        draft.current = 'second line'
        self.assertEqual(draft.rollback(correlation_id), 'first line\nsecond line')

    def test_confirm_drops_staged_text(self):
        draft = DraftBuffer()
        correlation_id = draft.stage('sent')
        draft.confirm(correlation_id)
        self.assertEqual(draft.in_flight, 0)
        self.assertEqual(draft.rollback(correlation_id), '')


@guarded('sample')
async def _sample(mode):
    if mode == 'validation':
        raise ValidationError('bad input')
    if mode == 'store':
        raise StoreUnavailableError('db down')
    if mode == 'bug':
        raise KeyError('boom')
    return 'fine'


@pytest.mark.parametrize(
    ('mode', 'ok', 'code', 'retryable'),
    [
        ('ok', True, None, None),
        ('validation', False, 'validation', False),
        ('store', False, 'store_unavailable', True),
        ('bug', False, 'internal', False),
    ],
)
def test_guarded_maps_failures(mode, ok, code, retryable):
    outcome = asyncio.run(_sample(mode))
    assert outcome.ok is ok
    if ok:
        assert outcome.value == 'fine'
    else:
        assert outcome.error.code == code
        assert outcome.error.retryable is retryable


def test_outcome_unwrap_raises_error():
    outcome = Outcome.failure(NotFoundError('gone'))
    assert not outcome
    with pytest.raises(NotFoundError):
        outcome.unwrap()


@freeze_time('2026-02-13 10:00:00')
def test_time_provider_is_utc():
    assert default_time_provider.now() == datetime(2026, 2, 13, 10, 0, tzinfo=timezone.utc)
    assert utc_now() == datetime(2026, 2, 13, 10, 0)
    assert utc_now().tzinfo is None


def test_timed_service_logs_slow_calls(caplog):
    @timed_service('sample_lookup', threshold_ms=0)
    async def lookup(value):
        return value * 2

    with caplog.at_level('INFO', logger='schoolcomms.metrics'):
        assert asyncio.run(lookup(21)) == 42

    assert lookup.__name__ == 'lookup'
    assert any('service_timer label=sample_lookup' in record.getMessage() for record in caplog.records)


def test_timed_service_stays_quiet_under_threshold(caplog):
    @timed_service('sample_lookup', threshold_ms=60_000)
    async def lookup():
        return 'done'

    with caplog.at_level('INFO', logger='schoolcomms.metrics'):
        assert asyncio.run(lookup()) == 'done'

    assert not [record for record in caplog.records if record.name == 'schoolcomms.metrics']
