from schoolcomms.routers import admin_chat, messages, presence, publishing, staff_chat, student

__all__ = [
    'admin_chat',
    'messages',
    'presence',
    'publishing',
    'staff_chat',
    'student',
]
