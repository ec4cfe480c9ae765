from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ConversationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    participant_a: str
    participant_b: str
    created_at: datetime
    updated_at: datetime

    def other_participant(self, viewer_id: str) -> str:
        return self.participant_b if self.participant_a == viewer_id else self.participant_a


class ConversationSummary(BaseModel):
    id: str
    other_participant_id: str
    other_participant_name: str
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0
    updated_at: datetime


class MessageView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool = False


class DirectedMessageView(BaseModel):
    id: str
    sender_type: str
    sender_id: str | None = None
    sender_name: str | None = None
    recipient_type: str
    recipient_id: str | None = None
    subject: str | None = None
    content: str
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime
    can_reply: bool = False


class NoticeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    posted_by: str
    notice_type: str
    title: str
    content: str
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class ContentUpdateView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    update_type: str
    title: str
    reference_id: str | None = None
    is_read: bool = False
    created_at: datetime


class StaffContact(BaseModel):
    user_id: str
    full_name: str
    role: Literal['admin', 'teacher']


class StaffThreadPreview(BaseModel):
    contact_id: str
    contact_name: str
    contact_role: Literal['admin', 'teacher']
    last_message: str
    last_message_at: datetime
    unread_count: int = 0


class PresenceEntry(BaseModel):
    id: str
    name: str
    type: Literal['admin', 'teacher', 'student']
    online_at: datetime


class TypingEntry(BaseModel):
    id: str
    name: str = ''
    started_at: datetime


class StudentUnreadSummary(BaseModel):
    messages: int = 0
    notices: int = 0
    updates: int = 0

    @property
    def total(self) -> int:
        return self.messages + self.notices + self.updates


class BadgeOut(BaseModel):
    count: int
    label: str


class StartConversationRequest(BaseModel):
    other_user_id: str = Field(min_length=1)


class SendMessageRequest(BaseModel):
    content: str


class DirectedMessageRequest(BaseModel):
    recipient_type: Literal['admin', 'teacher', 'student']
    recipient_id: str | None = None
    subject: str | None = None
    content: str


class ReplyRequest(BaseModel):
    content: str


class NoticeCreateRequest(BaseModel):
    student_id: str = Field(min_length=1)
    notice_type: Literal['info', 'warning', 'attendance', 'achievement'] = 'info'
    title: str
    content: str


class ContentUpdateCreateRequest(BaseModel):
    student_id: str = Field(min_length=1)
    update_type: Literal['quiz', 'lms', 'ca_project']
    title: str
    reference_id: str | None = None


class StaffMessageRequest(BaseModel):
    content: str
