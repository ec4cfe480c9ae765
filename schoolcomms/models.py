from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schoolcomms.core.time_provider import utc_now
from schoolcomms.db import Base


def new_id() -> str:
    return str(uuid4())


class Role(str, Enum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    STUDENT = 'student'


class NoticeType(str, Enum):
    INFO = 'info'
    WARNING = 'warning'
    ATTENDANCE = 'attendance'
    ACHIEVEMENT = 'achievement'


class UpdateType(str, Enum):
    QUIZ = 'quiz'
    LMS = 'lms'
    CA_PROJECT = 'ca_project'


class Profile(Base):
    __tablename__ = 'profiles'

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    full_name: Mapped[str] = mapped_column(String(180), default='')
    email: Mapped[str] = mapped_column(String(255), default='')
    role: Mapped[str] = mapped_column(String(20), default=Role.TEACHER.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


class Student(Base):
    __tablename__ = 'students'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    full_name: Mapped[str] = mapped_column(String(180), default='')
    student_code: Mapped[str] = mapped_column(String(50), default='', index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    notices: Mapped[list['StudentNotice']] = relationship('StudentNotice', back_populates='student')
    content_updates: Mapped[list['ContentUpdate']] = relationship('ContentUpdate', back_populates='student')


class AdminConversation(Base):
    __tablename__ = 'admin_conversations'
    __table_args__ = (
        UniqueConstraint('participant_a', 'participant_b', name='uq_admin_conversations_pair'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    participant_a: Mapped[str] = mapped_column(String(36), index=True)
    participant_b: Mapped[str] = mapped_column(String(36), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)

    messages: Mapped[list['AdminMessage']] = relationship('AdminMessage', back_populates='conversation')


class AdminMessage(Base):
    __tablename__ = 'admin_messages'
    __table_args__ = (
        Index('ix_admin_messages_conversation_created', 'conversation_id', 'created_at'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    conversation_id: Mapped[str] = mapped_column(ForeignKey('admin_conversations.id'), index=True)
    sender_id: Mapped[str] = mapped_column(String(36), index=True)
    content: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)

    conversation: Mapped['AdminConversation'] = relationship('AdminConversation', back_populates='messages')


class DirectedMessage(Base):
    __tablename__ = 'messages'
    __table_args__ = (
        Index('ix_messages_recipient_user', 'recipient_type', 'recipient_user_id'),
        Index('ix_messages_recipient_student', 'recipient_student_id', 'is_read'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    sender_type: Mapped[str] = mapped_column(String(20))
    sender_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    sender_student_id: Mapped[str | None] = mapped_column(ForeignKey('students.id'), nullable=True, index=True)
    recipient_type: Mapped[str] = mapped_column(String(20))
    recipient_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    recipient_student_id: Mapped[str | None] = mapped_column(ForeignKey('students.id'), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    content: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)

    reads: Mapped[list['MessageRead']] = relationship('MessageRead', back_populates='message')


class MessageRead(Base):
    __tablename__ = 'message_reads'
    __table_args__ = (
        UniqueConstraint('message_id', 'reader_id', name='uq_message_reads_message_reader'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(ForeignKey('messages.id'), index=True)
    reader_id: Mapped[str] = mapped_column(String(36), index=True)
    read_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    message: Mapped['DirectedMessage'] = relationship('DirectedMessage', back_populates='reads')


class StudentNotice(Base):
    __tablename__ = 'student_notices'
    __table_args__ = (
        Index('ix_student_notices_student_created', 'student_id', 'created_at'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(ForeignKey('students.id'), index=True)
    posted_by: Mapped[str] = mapped_column(String(36))
    notice_type: Mapped[str] = mapped_column(String(20), default=NoticeType.INFO.value)
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    student: Mapped['Student'] = relationship('Student', back_populates='notices')


class ContentUpdate(Base):
    __tablename__ = 'content_updates'
    __table_args__ = (
        Index('ix_content_updates_student_created', 'student_id', 'created_at'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(ForeignKey('students.id'), index=True)
    update_type: Mapped[str] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(200))
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    student: Mapped['Student'] = relationship('Student', back_populates='content_updates')


class ActivityLog(Base):
    __tablename__ = 'activity_logs'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_type: Mapped[str] = mapped_column(String(20))
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    student_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(60), index=True)
    entity_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
