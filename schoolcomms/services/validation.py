from __future__ import annotations

from schoolcomms.config import settings
from schoolcomms.core.errors import ValidationError


def clean_content(content: str | None) -> str:
    text = (content or '').strip()
    if not text:
        raise ValidationError('Message content is required')
    if len(text) > settings.message_max_length:
        raise ValidationError(f'Message must be less than {settings.message_max_length:,} characters')
    return text


def clean_subject(subject: str | None) -> str | None:
    text = (subject or '').strip()
    if not text:
        return None
    if len(text) > settings.subject_max_length:
        raise ValidationError(f'Subject must be less than {settings.subject_max_length} characters')
    return text


def require_text(value: str | None, field: str) -> str:
    text = (value or '').strip()
    if not text:
        raise ValidationError(f'{field} is required')
    return text
