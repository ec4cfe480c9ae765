from __future__ import annotations


class MessagingError(Exception):
    """Base failure surfaced to UI callers through an Outcome."""

    code = 'internal'
    retryable = False

    def __init__(self, message: str = 'Something went wrong') -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError):
    code = 'validation'


class ReplyNotAllowedError(ValidationError):
    code = 'reply_not_allowed'


class NotFoundError(MessagingError):
    code = 'not_found'


class TransientStoreError(MessagingError):
    code = 'store_unavailable'
    retryable = True
