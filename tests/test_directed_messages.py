import pytest
from freezegun import freeze_time

from schoolcomms.core.errors import ValidationError
from schoolcomms.core.identity import Party
from schoolcomms.services import directed_message_service, notification_service
from schoolcomms.services.directed_message_service import check_parties, reply_subject, reply_target

from tests.support import GatewayTestCase


def test_reply_subject_prefixes_original():
    assert reply_subject('Homework') == 'Re: Homework'


def test_reply_subject_without_original():
    assert reply_subject(None) == 'Re: No Subject'
    assert reply_subject('   ') == 'Re: No Subject'


def test_reply_target_is_student_sender():
    row = {'sender_type': 'student', 'sender_student_id': 'stu-1', 'sender_user_id': None}
    assert reply_target(row) == Party.student('stu-1')


def test_reply_target_missing_for_staff_sender():
    row = {'sender_type': 'teacher', 'sender_student_id': None, 'sender_user_id': 'teacher-1'}
    assert reply_target(row) is None


def test_check_parties_rejects_student_pairs_and_broadcast_senders():
    assert check_parties(Party.teacher('teacher-1'), Party.student('stu-1')) == Party.student('stu-1')
    with pytest.raises(ValidationError):
        check_parties(Party.student('stu-2'), Party.student('stu-1'))
    with pytest.raises(ValidationError):
        check_parties(Party.any_admin(), Party.teacher('teacher-1'))
    with pytest.raises(ValidationError):
        check_parties(Party.student('stu-1'), None)


class DirectedMessageTests(GatewayTestCase):
    def setUp(self):
        super().setUp()
        self.add_profile('admin-1', 'Principal Rao', role='admin')
        self.add_profile('admin-2', 'Office Admin', role='admin')
        self.add_profile('teacher-1', 'Ms. Iyer', role='teacher')
        self.add_student('stu-1', 'Aarav Sharma')
        self.add_student('stu-2', 'Diya Kapoor')
        self.admin_1 = Party.admin('admin-1')
        self.admin_2 = Party.admin('admin-2')
        self.teacher = Party.teacher('teacher-1')
        self.student = Party.student('stu-1')

    def _send(self, sender, recipient, content='Hello', subject=None):
        return self.run_async(
            directed_message_service.send_directed_message(
                self.gateway, sender=sender, recipient=recipient, content=content, subject=subject
            )
        )

    def _inbox(self, viewer):
        return self.run_async(directed_message_service.list_inbox(self.gateway, viewer)).unwrap()

    def _unread(self, viewer):
        return self.run_async(notification_service.inbox_unread_count(self.gateway, viewer)).unwrap()

    def test_student_message_to_any_admin_reaches_every_admin(self):
        sent = self._send(self.student, Party.any_admin(), 'Need help with the quiz', subject='Quiz 3').unwrap()

        self.assertEqual(sent.recipient_type, 'admin')
        self.assertIsNone(sent.recipient_id)
        self.assertEqual([m.id for m in self._inbox(self.admin_1)], [sent.id])
        self.assertEqual([m.id for m in self._inbox(self.admin_2)], [sent.id])
        self.assertEqual(self._inbox(self.teacher), [])

    def test_broadcast_read_state_is_per_admin(self):
        sent = self._send(self.student, Party.any_admin()).unwrap()

        changed = self.run_async(directed_message_service.mark_message_read(self.gateway, sent.id, self.admin_1)).unwrap()

        self.assertTrue(changed)
        self.assertEqual(self._unread(self.admin_1), 0)
        self.assertEqual(self._unread(self.admin_2), 1)
        self.assertTrue(self._inbox(self.admin_1)[0].is_read)
        self.assertFalse(self._inbox(self.admin_2)[0].is_read)
        row = self.rows('messages', id=sent.id)[0]
        self.assertFalse(row['is_read'])

    def test_admin_broadcast_is_not_in_senders_own_inbox(self):
        self._send(self.admin_1, Party.any_admin(), 'Staff meeting at 3')
        self.assertEqual(self._inbox(self.admin_1), [])
        self.assertEqual(self._unread(self.admin_1), 0)
        self.assertEqual(self._unread(self.admin_2), 1)

    def test_student_send_writes_activity_log(self):
        sent = self._send(self.student, self.teacher, 'Question about homework').unwrap()

        logs = self.rows('activity_logs', action='send_message')
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]['student_id'], 'stu-1')
        self.assertEqual(logs[0]['entity_id'], sent.id)

    def test_staff_send_does_not_log_activity(self):
        self._send(self.teacher, self.student)
        self.assertEqual(self.rows('activity_logs'), [])

    def test_subject_is_trimmed_and_blank_becomes_null(self):
        with_subject = self._send(self.teacher, self.student, subject='  Results  ').unwrap()
        blank = self._send(self.teacher, self.student, subject='   ').unwrap()

        self.assertEqual(with_subject.subject, 'Results')
        self.assertIsNone(blank.subject)

    def test_overlong_subject_is_rejected(self):
        outcome = self._send(self.teacher, self.student, subject='s' * 201)
        self.assertEqual(outcome.error.code, 'validation')
        self.assertEqual(self.rows('messages'), [])

    def test_recipient_is_required(self):
        outcome = self._send(self.teacher, None)
        self.assertFalse(outcome)
        self.assertEqual(outcome.error.code, 'validation')

    def test_student_cannot_message_student(self):
        outcome = self._send(self.student, Party.student('stu-2'))
        self.assertEqual(outcome.error.code, 'validation')

    def test_student_inbox_is_newest_first_and_scoped(self):
        with freeze_time('2026-03-01 09:00:00'):
            first = self._send(self.teacher, self.student, 'first').unwrap()
        with freeze_time('2026-03-01 10:00:00'):
            second = self._send(self.admin_1, self.student, 'second').unwrap()
        self._send(self.teacher, Party.student('stu-2'), 'not yours')

        inbox = self._inbox(self.student)

        self.assertEqual([m.id for m in inbox], [second.id, first.id])
        self.assertEqual(inbox[0].sender_name, 'Principal Rao')
        self.assertEqual(inbox[1].sender_name, 'Ms. Iyer')

    def test_inbox_limit(self):
        for index in range(5):
            self._send(self.teacher, self.student, f'note {index}')

        inbox = self.run_async(directed_message_service.list_inbox(self.gateway, self.student, limit=3)).unwrap()
        self.assertEqual(len(inbox), 3)

    def test_reply_goes_to_student_with_derived_subject(self):
        original = self._send(self.student, self.teacher, 'Can I resubmit?', subject='Project').unwrap()
        self.assertTrue(original.can_reply)

        reply = self.run_async(
            directed_message_service.reply_to_message(
                self.gateway, message_id=original.id, replier=self.teacher, content='Yes, by Friday'
            )
        ).unwrap()

        self.assertEqual(reply.subject, 'Re: Project')
        self.assertEqual(reply.recipient_type, 'student')
        self.assertEqual(reply.recipient_id, 'stu-1')
        self.assertEqual(reply.sender_id, 'teacher-1')

    def test_reply_without_original_subject(self):
        original = self._send(self.student, Party.any_admin(), 'Hello').unwrap()
        reply = self.run_async(
            directed_message_service.reply_to_message(
                self.gateway, message_id=original.id, replier=self.admin_2, content='Hi'
            )
        ).unwrap()
        self.assertEqual(reply.subject, 'Re: No Subject')

    def test_reply_is_disabled_without_student_sender(self):
        original = self._send(self.admin_1, self.teacher, 'Timetable changed').unwrap()
        self.assertFalse(original.can_reply)

        outcome = self.run_async(
            directed_message_service.reply_to_message(
                self.gateway, message_id=original.id, replier=self.teacher, content='Noted'
            )
        )

        self.assertEqual(outcome.error.code, 'reply_not_allowed')
        self.assertEqual(len(self.rows('messages')), 1)

    def test_other_teacher_cannot_reply_to_private_message(self):
        self.add_profile('teacher-2', 'Mr. Das', role='teacher')
        original = self._send(self.student, self.teacher, 'Please check my essay').unwrap()

        outcome = self.run_async(
            directed_message_service.reply_to_message(
                self.gateway, message_id=original.id, replier=Party.teacher('teacher-2'), content='Looks fine'
            )
        )

        self.assertEqual(outcome.error.code, 'not_found')
        self.assertEqual(len(self.rows('messages')), 1)

    def test_student_cannot_reply_to_another_students_message(self):
        original = self._send(self.student, self.teacher, 'Is the lab open today?').unwrap()

        outcome = self.run_async(
            directed_message_service.reply_to_message(
                self.gateway, message_id=original.id, replier=Party.student('stu-2'), content='Yes'
            )
        )

        self.assertFalse(outcome)
        self.assertEqual(self.rows('messages', recipient_type='student'), [])

    def test_read_at_is_set_once(self):
        sent = self._send(self.teacher, self.student).unwrap()

        with freeze_time('2026-04-01 08:00:00'):
            first = self.run_async(directed_message_service.mark_message_read(self.gateway, sent.id, self.student))
        with freeze_time('2026-04-02 08:00:00'):
            second = self.run_async(directed_message_service.mark_message_read(self.gateway, sent.id, self.student))

        self.assertTrue(first.value)
        self.assertFalse(second.value)
        row = self.rows('messages', id=sent.id)[0]
        self.assertTrue(row['is_read'])
        self.assertEqual(row['read_at'].isoformat(), '2026-04-01T08:00:00')

    def test_mark_read_outside_inbox_is_not_found(self):
        sent = self._send(self.teacher, self.student).unwrap()
        outcome = self.run_async(
            directed_message_service.mark_message_read(self.gateway, sent.id, Party.student('stu-2'))
        )
        self.assertEqual(outcome.error.code, 'not_found')

    def test_mark_all_as_read_is_idempotent(self):
        self._send(self.student, self.admin_1, 'direct')
        self._send(self.student, Party.any_admin(), 'broadcast')
        self.assertEqual(self._unread(self.admin_1), 2)

        first = self.run_async(notification_service.mark_all_as_read(self.gateway, self.admin_1)).unwrap()
        second = self.run_async(notification_service.mark_all_as_read(self.gateway, self.admin_1)).unwrap()

        self.assertEqual(first, 2)
        self.assertEqual(second, 0)
        self.assertEqual(self._unread(self.admin_1), 0)
        self.assertEqual(self._unread(self.admin_2), 1)

    def test_sent_messages_listing(self):
        self._send(self.teacher, self.student, 'one')
        self._send(self.teacher, Party.student('stu-2'), 'two')
        self._send(self.admin_1, self.student, 'other sender')

        sent = self.run_async(directed_message_service.list_sent_messages(self.gateway, self.teacher)).unwrap()
        self.assertEqual(sorted(m.content for m in sent), ['one', 'two'])
