from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from schoolcomms.core.errors import ValidationError


class PartyKind(str, Enum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    STUDENT = 'student'
    ANY_ADMIN = 'any_admin'


@dataclass(frozen=True)
class Party:
    """Sender or recipient of a directed message.

    ``ANY_ADMIN`` is the broadcast recipient: it has no id and is delivered to
    every admin's inbox. Every other kind must carry an id.
    """

    kind: PartyKind
    id: str | None = None

    def __post_init__(self) -> None:
        if self.kind == PartyKind.ANY_ADMIN:
            if self.id is not None:
                raise ValidationError('A broadcast recipient cannot carry an id')
            return
        if not str(self.id or '').strip():
            raise ValidationError(f'A {self.kind.value} party requires an id')

    @classmethod
    def admin(cls, user_id: str) -> 'Party':
        return cls(PartyKind.ADMIN, user_id)

    @classmethod
    def teacher(cls, user_id: str) -> 'Party':
        return cls(PartyKind.TEACHER, user_id)

    @classmethod
    def student(cls, student_id: str) -> 'Party':
        return cls(PartyKind.STUDENT, student_id)

    @classmethod
    def any_admin(cls) -> 'Party':
        return cls(PartyKind.ANY_ADMIN)

    @classmethod
    def from_role(cls, role: str, party_id: str) -> 'Party':
        try:
            kind = PartyKind((role or '').strip().lower())
        except ValueError as exc:
            raise ValidationError(f'Unknown role: {role!r}') from exc
        if kind == PartyKind.ANY_ADMIN:
            raise ValidationError('A viewer cannot be a broadcast party')
        return cls(kind, party_id)

    @property
    def is_broadcast(self) -> bool:
        return self.kind == PartyKind.ANY_ADMIN

    @property
    def is_student(self) -> bool:
        return self.kind == PartyKind.STUDENT

    @property
    def role(self) -> str:
        # Column value for sender_type / recipient_type.
        if self.kind == PartyKind.ANY_ADMIN:
            return PartyKind.ADMIN.value
        return self.kind.value

    def sender_columns(self) -> dict[str, Any]:
        if self.is_broadcast:
            raise ValidationError('A broadcast party cannot send messages')
        return {
            'sender_type': self.role,
            'sender_user_id': None if self.is_student else self.id,
            'sender_student_id': self.id if self.is_student else None,
        }

    def recipient_columns(self) -> dict[str, Any]:
        return {
            'recipient_type': self.role,
            'recipient_user_id': None if (self.is_student or self.is_broadcast) else self.id,
            'recipient_student_id': self.id if self.is_student else None,
        }

    @classmethod
    def sender_of(cls, row: dict[str, Any]) -> 'Party':
        sender_type = row.get('sender_type') or ''
        if sender_type == PartyKind.STUDENT.value:
            return cls.student(row.get('sender_student_id'))
        return cls.from_role(sender_type, row.get('sender_user_id'))

    @classmethod
    def recipient_of(cls, row: dict[str, Any]) -> 'Party':
        recipient_type = row.get('recipient_type') or ''
        if recipient_type == PartyKind.STUDENT.value:
            return cls.student(row.get('recipient_student_id'))
        if recipient_type == PartyKind.ADMIN.value and row.get('recipient_user_id') is None:
            return cls.any_admin()
        return cls.from_role(recipient_type, row.get('recipient_user_id'))
