# Client-side conversation view
# Reconciles optimistic local entries with the authoritative messages that
# arrive through the realtime hub or a history fetch.

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Union

from database.models import utcnow
from schemas.marketplace import ChatMessageResponse, MessageType
from services.chat_service import conversation_key


@dataclass
class PendingEntry:
    """A locally appended message awaiting store confirmation."""
    sender_id: str
    receiver_id: str
    content: str
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)
    failed: bool = False
    type: str = MessageType.TEXT.value


Entry = Union[PendingEntry, ChatMessageResponse]


class ConversationView:
    """
    Ordered messages of one conversation as seen by ``owner_id``.

    An authoritative message replaces the pending entry with the same
    correlation id, or failing that the oldest pending entry with the same
    sender, receiver and content. Echoes of an already known id, or of a
    correlation id already received from the same sender, are ignored.
    """

    def __init__(self, owner_id: str, other_id: str):
        self.owner_id = owner_id
        self.other_id = other_id
        self.key = conversation_key(owner_id, other_id)
        self._entries: List[Entry] = []
        self._known_ids = set()
        self._known_correlations = set()

    @property
    def messages(self) -> List[Entry]:
        return list(self._entries)

    @property
    def pending(self) -> List[PendingEntry]:
        return [e for e in self._entries if isinstance(e, PendingEntry)]

    def add_pending(self, content: str, correlation_id: Optional[str] = None) -> PendingEntry:
        entry = PendingEntry(
            sender_id=self.owner_id,
            receiver_id=self.other_id,
            content=content,
        )
        if correlation_id:
            entry.correlation_id = correlation_id
        self._entries.append(entry)
        return entry

    def mark_failed(self, correlation_id: str) -> bool:
        for entry in self.pending:
            if entry.correlation_id == correlation_id:
                entry.failed = True
                return True
        return False

    def discard(self, correlation_id: str) -> bool:
        for i, entry in enumerate(self._entries):
            if isinstance(entry, PendingEntry) and entry.correlation_id == correlation_id:
                del self._entries[i]
                return True
        return False

    def receive(self, message: ChatMessageResponse) -> bool:
        """Apply one authoritative message. Returns False if it was ignored."""
        if conversation_key(message.sender_id, message.receiver_id) != self.key:
            return False
        if message.id in self._known_ids:
            return False
        correlation = (message.sender_id, message.correlation_id) if message.correlation_id else None
        if correlation in self._known_correlations:
            return False
        self._known_ids.add(message.id)
        if correlation:
            self._known_correlations.add(correlation)

        index = self._find_pending(message)
        if index is not None:
            self._entries[index] = message
        else:
            self._entries.append(message)
        return True

    def merge(self, messages: Iterable[ChatMessageResponse]) -> int:
        return sum(1 for m in messages if self.receive(m))

    def _find_pending(self, message: ChatMessageResponse) -> Optional[int]:
        if message.correlation_id:
            for i, entry in enumerate(self._entries):
                if isinstance(entry, PendingEntry) and entry.correlation_id == message.correlation_id:
                    return i
        for i, entry in enumerate(self._entries):
            if (
                isinstance(entry, PendingEntry)
                and entry.sender_id == message.sender_id
                and entry.receiver_id == message.receiver_id
                and entry.content == message.content
            ):
                return i
        return None
