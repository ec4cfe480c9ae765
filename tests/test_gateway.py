from schoolcomms.gateway import (
    ChangeType,
    StoreError,
    SubscriptionStatus,
    UniqueViolationError,
    any_of,
    desc,
    eq,
    in_,
    is_null,
    neq,
)

from tests.support import GatewayTestCase


class SqlAlchemyGatewayTests(GatewayTestCase):
    def setUp(self):
        super().setUp()
        self.add_student('stu-1', 'Aarav Sharma')

    def _message(self, **overrides):
        row = {
            'sender_type': 'teacher',
            'sender_user_id': 'teacher-1',
            'recipient_type': 'student',
            'recipient_student_id': 'stu-1',
            'content': 'hello',
        }
        row.update(overrides)
        return self.run_async(self.gateway.insert('messages', row))

    def test_insert_fills_defaults(self):
        row = self._message()
        self.assertEqual(len(row['id']), 36)
        self.assertFalse(row['is_read'])
        self.assertIsNotNone(row['created_at'])

    def test_neq_keeps_null_rows(self):
        self._message(sender_user_id=None, sender_type='student', sender_student_id='stu-1')
        self._message(sender_user_id='admin-1', sender_type='admin')

        rows = self.run_async(self.gateway.select('messages', filters=[neq('sender_user_id', 'admin-1')]))
        self.assertEqual([r['sender_type'] for r in rows], ['student'])

    def test_filters_order_limit_and_count(self):
        for index in range(3):
            self._message(content=f'm{index}')
        self._message(content='broadcast', recipient_type='admin', recipient_student_id=None)

        rows = self.run_async(
            self.gateway.select(
                'messages',
                columns=['content'],
                filters=[any_of(eq('recipient_student_id', 'stu-1'), is_null('recipient_user_id'))],
                order=[desc('created_at')],
                limit=2,
            )
        )
        self.assertEqual([r['content'] for r in rows], ['broadcast', 'm2'])
        self.assertEqual(
            self.run_async(self.gateway.count('messages', filters=[in_('content', ['m0', 'm1'])])),
            2,
        )

    def test_update_requires_filters(self):
        with self.assertRaises(StoreError):
            self.run_async(self.gateway.update('messages', {'is_read': True}, filters=[]))

    def test_unique_violation_is_mapped(self):
        message = self._message()
        self.run_async(self.gateway.insert('message_reads', {'message_id': message['id'], 'reader_id': 'admin-1'}))
        with self.assertRaises(UniqueViolationError):
            self.run_async(self.gateway.insert('message_reads', {'message_id': message['id'], 'reader_id': 'admin-1'}))

    def test_unknown_table(self):
        with self.assertRaises(StoreError):
            self.run_async(self.gateway.select('no_such_table'))

    def test_change_subscription_filters_and_cancel(self):
        async def _run():
            events = []
            statuses = []

            async def on_event(event):
                events.append((event.event_type, event.new['content']))

            async def on_status(status):
                statuses.append(status)

            subscription = await self.gateway.subscribe_changes(
                'messages',
                on_event,
                event_types=(ChangeType.UPDATE,),
                filters=[eq('recipient_student_id', 'stu-1')],
                on_status=on_status,
            )
            created = await self.gateway.insert(
                'messages',
                {'sender_type': 'teacher', 'sender_user_id': 't', 'recipient_type': 'student', 'recipient_student_id': 'stu-1', 'content': 'watched'},
            )
            await self.gateway.update('messages', {'is_read': True}, filters=[eq('id', created['id'])])
            subscription.cancel()
            await self.gateway.update('messages', {'is_read': False}, filters=[eq('id', created['id'])])
            return events, statuses, subscription.active

        events, statuses, active = self.run_async(_run())
        self.assertEqual(events, [(ChangeType.UPDATE, 'watched')])
        self.assertEqual(statuses, [SubscriptionStatus.SUBSCRIBED])
        self.assertFalse(active)
        self.assertEqual(self.gateway.bus.subscriber_count(), 0)

    def test_failing_handler_does_not_break_write(self):
        async def _run():
            async def broken(event):
                raise RuntimeError('handler bug')

            await self.gateway.subscribe_changes('messages', broken)
            return await self.gateway.insert(
                'messages',
                {'sender_type': 'teacher', 'sender_user_id': 't', 'recipient_type': 'student', 'recipient_student_id': 'stu-1', 'content': 'kept'},
            )

        row = self.run_async(_run())
        self.assertEqual(self.rows('messages', id=row['id'])[0]['content'], 'kept')
