from __future__ import annotations

from uuid import uuid4


class DraftBuffer:
    """Unsent input staged while a send is in flight.

    A view clears its input field when a send starts and stages the text here
    under a correlation id; on failure the text is rolled back into the field.
    """

    def __init__(self) -> None:
        self.current: str = ''
        self._pending: dict[str, str] = {}

    def stage(self, text: str) -> str:
        correlation_id = str(uuid4())
        self._pending[correlation_id] = text
        self.current = ''
        return correlation_id

    def confirm(self, correlation_id: str) -> None:
        self._pending.pop(correlation_id, None)

    def rollback(self, correlation_id: str) -> str:
        text = self._pending.pop(correlation_id, '')
        # Keep anything typed while the send was in flight.
        self.current = f'{text}\n{self.current}' if self.current else text
        return self.current

    @property
    def in_flight(self) -> int:
        return len(self._pending)
