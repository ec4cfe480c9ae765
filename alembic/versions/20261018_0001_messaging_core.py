"""messaging core tables

Revision ID: 20261018_0001
Revises: 
Create Date: 2026-10-18 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('user_id', sa.String(length=36), primary_key=True),
        sa.Column('full_name', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='teacher'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_profiles_role', 'profiles', ['role'])

    op.create_table(
        'students',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('full_name', sa.String(length=180), nullable=False, server_default=''),
        sa.Column('student_code', sa.String(length=50), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_students_student_code', 'students', ['student_code'])

    op.create_table(
        'admin_conversations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('participant_a', sa.String(length=36), nullable=False),
        sa.Column('participant_b', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('participant_a', 'participant_b', name='uq_admin_conversations_pair'),
    )
    op.create_index('ix_admin_conversations_participant_a', 'admin_conversations', ['participant_a'])
    op.create_index('ix_admin_conversations_participant_b', 'admin_conversations', ['participant_b'])
    op.create_index('ix_admin_conversations_updated_at', 'admin_conversations', ['updated_at'])

    op.create_table(
        'admin_messages',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('conversation_id', sa.String(length=36), sa.ForeignKey('admin_conversations.id'), nullable=False),
        sa.Column('sender_id', sa.String(length=36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_admin_messages_conversation_id', 'admin_messages', ['conversation_id'])
    op.create_index('ix_admin_messages_sender_id', 'admin_messages', ['sender_id'])
    op.create_index('ix_admin_messages_is_read', 'admin_messages', ['is_read'])
    op.create_index('ix_admin_messages_created_at', 'admin_messages', ['created_at'])
    op.create_index('ix_admin_messages_conversation_created', 'admin_messages', ['conversation_id', 'created_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('sender_type', sa.String(length=20), nullable=False),
        sa.Column('sender_user_id', sa.String(length=36), nullable=True),
        sa.Column('sender_student_id', sa.String(length=36), sa.ForeignKey('students.id'), nullable=True),
        sa.Column('recipient_type', sa.String(length=20), nullable=False),
        sa.Column('recipient_user_id', sa.String(length=36), nullable=True),
        sa.Column('recipient_student_id', sa.String(length=36), sa.ForeignKey('students.id'), nullable=True),
        sa.Column('subject', sa.String(length=200), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_messages_sender_user_id', 'messages', ['sender_user_id'])
    op.create_index('ix_messages_sender_student_id', 'messages', ['sender_student_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])
    op.create_index('ix_messages_recipient_user', 'messages', ['recipient_type', 'recipient_user_id'])
    op.create_index('ix_messages_recipient_student', 'messages', ['recipient_student_id', 'is_read'])

    op.create_table(
        'message_reads',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('message_id', sa.String(length=36), sa.ForeignKey('messages.id'), nullable=False),
        sa.Column('reader_id', sa.String(length=36), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('message_id', 'reader_id', name='uq_message_reads_message_reader'),
    )
    op.create_index('ix_message_reads_message_id', 'message_reads', ['message_id'])
    op.create_index('ix_message_reads_reader_id', 'message_reads', ['reader_id'])

    op.create_table(
        'student_notices',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('student_id', sa.String(length=36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('posted_by', sa.String(length=36), nullable=False),
        sa.Column('notice_type', sa.String(length=20), nullable=False, server_default='info'),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_student_notices_student_id', 'student_notices', ['student_id'])
    op.create_index('ix_student_notices_student_created', 'student_notices', ['student_id', 'created_at'])

    op.create_table(
        'content_updates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('student_id', sa.String(length=36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('update_type', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_content_updates_student_id', 'content_updates', ['student_id'])
    op.create_index('ix_content_updates_student_created', 'content_updates', ['student_id', 'created_at'])

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_type', sa.String(length=20), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('student_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=60), nullable=False),
        sa.Column('entity_type', sa.String(length=40), nullable=True),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activity_logs_student_id', 'activity_logs', ['student_id'])
    op.create_index('ix_activity_logs_action', 'activity_logs', ['action'])


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('content_updates')
    op.drop_table('student_notices')
    op.drop_table('message_reads')
    op.drop_table('messages')
    op.drop_table('admin_messages')
    op.drop_table('admin_conversations')
    op.drop_table('students')
    op.drop_table('profiles')
