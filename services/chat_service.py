# Messaging Channel for Collab Marketplace
# Validates, rate-limits and persists chat messages, then fans them out to
# live subscribers of the receiver. Transient store failures are queued for
# retry instead of failing the send.

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from config.app_config import MAX_MESSAGE_LENGTH
from database.models import UserProfile
from database.marketplace_models import ChatMessage, MessageTypeDB
from schemas.marketplace import ChatMessageResponse
from services.errors import (
    DeliveryDelayed, ProfileIncompleteError, RateLimitExceeded, StoreUnavailable, ValidationError,
)
from services.rate_limit import SlidingWindowRateLimiter
from services.realtime import RealtimeHub

logger = logging.getLogger(__name__)

MESSAGE_TYPES = {t.value for t in MessageTypeDB}


def conversation_key(user_a: str, user_b: str) -> str:
    """Stable key for the conversation between two users, independent of argument order."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


@dataclass
class MessageDraft:
    """A message not yet confirmed by the store."""
    sender_id: Optional[str]
    receiver_id: Optional[str]
    content: Optional[str]
    message_type: str = MessageTypeDB.TEXT.value
    correlation_id: Optional[str] = None
    metadata: Optional[dict] = None
    attempts: int = 0

    def __post_init__(self):
        if not self.correlation_id:
            self.correlation_id = str(uuid.uuid4())


@dataclass
class ChatSummaryRow:
    user_id: str
    last_message: str
    last_message_time: object
    unread_count: int = 0
    full_name: Optional[str] = None


def validate_message_draft(draft: MessageDraft, max_length: int = MAX_MESSAGE_LENGTH) -> List[str]:
    errors = []
    if not draft.sender_id:
        errors.append("Sender ID is required")
    if not draft.receiver_id:
        errors.append("Receiver ID is required")
    if draft.sender_id and draft.sender_id == draft.receiver_id:
        errors.append("Cannot send message to yourself")
    if not (draft.content or "").strip():
        errors.append("Message content is required")
    elif len(draft.content) > max_length:
        errors.append(f"Message content cannot exceed {max_length} characters")
    if draft.message_type not in MESSAGE_TYPES:
        errors.append("Invalid message type")
    return errors


def is_transient_store_error(exc: Exception) -> bool:
    """Errors worth retrying: lost connections, timeouts, locked databases."""
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def persist_message(db: Session, draft: MessageDraft) -> ChatMessage:
    """Add the message row and flush it. The caller owns the commit."""
    message = ChatMessage(
        sender_id=draft.sender_id,
        receiver_id=draft.receiver_id,
        conversation_key=conversation_key(draft.sender_id, draft.receiver_id),
        content=draft.content,
        message_type=draft.message_type,
        correlation_id=draft.correlation_id,
        metadata_json=draft.metadata,
    )
    db.add(message)
    db.flush()
    return message


def find_stored_message(db: Session, draft: MessageDraft) -> Optional[ChatMessage]:
    """The row an earlier attempt of ``draft`` already wrote, if any."""
    return (
        db.query(ChatMessage)
        .filter(
            ChatMessage.sender_id == draft.sender_id,
            ChatMessage.correlation_id == draft.correlation_id,
        )
        .first()
    )


class ChatService:
    """
    Chat operations for one request.

    The hub, rate limiter and delivery queue are process-wide and injected;
    the session is per request.
    """

    def __init__(
        self,
        db: Session,
        hub: RealtimeHub,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        delivery_queue=None,
        max_message_length: int = MAX_MESSAGE_LENGTH,
    ):
        self.db = db
        self.hub = hub
        self.rate_limiter = rate_limiter
        self.delivery_queue = delivery_queue
        self.max_message_length = max_message_length

    # =========================================================================
    # SENDING
    # =========================================================================

    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: str = MessageTypeDB.TEXT.value,
        correlation_id: Optional[str] = None,
    ) -> ChatMessage:
        """
        Persist a user message and push it to the receiver's live subscriptions.

        Raises:
            ValidationError: every violated input rule at once
            ProfileIncompleteError: the sender's basic profile is not filled in
            RateLimitExceeded: too many messages in the sender's window
            DeliveryDelayed: store unavailable, message queued for retry
            StoreUnavailable: store failure that cannot be queued
        """
        draft = MessageDraft(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=message_type,
            correlation_id=correlation_id,
        )
        errors = validate_message_draft(draft, self.max_message_length)
        if message_type == MessageTypeDB.SYSTEM.value:
            errors.append("System messages cannot be sent directly")
        if errors:
            raise ValidationError(errors)

        self._require_complete_profile(sender_id)

        if self.rate_limiter is not None and not self.rate_limiter.try_acquire(sender_id):
            raise RateLimitExceeded(sender_id, self.rate_limiter.retry_after(sender_id))

        try:
            message = persist_message(self.db, draft)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            message = self._stored_duplicate(draft)
            if message is None:
                logger.error(f"Failed to send message from {sender_id}: {e}")
                raise StoreUnavailable("Failed to send message") from e
            # Already delivered by the earlier attempt
            logger.info(f"Message {draft.correlation_id} from {sender_id} was already stored as {message.id}")
            return message
        except SQLAlchemyError as e:
            self.db.rollback()
            if self.delivery_queue is not None and is_transient_store_error(e):
                logger.warning(f"Store unavailable, queueing message {draft.correlation_id} from {sender_id}: {e}")
                self.delivery_queue.enqueue(draft)
                raise DeliveryDelayed(draft) from e
            logger.error(f"Failed to send message from {sender_id}: {e}")
            raise StoreUnavailable("Failed to send message") from e

        self.publish(message)
        return message

    def add_system_message(self, sender_id: str, receiver_id: str, content: str, metadata: Optional[dict] = None) -> ChatMessage:
        """
        Append a system message inside the caller's transaction.

        Bypasses profile and rate-limit checks. Call ``publish`` after commit.
        """
        draft = MessageDraft(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=MessageTypeDB.SYSTEM.value,
            metadata=metadata,
        )
        errors = validate_message_draft(draft, self.max_message_length)
        if errors:
            raise ValidationError(errors)
        return persist_message(self.db, draft)

    def publish(self, message: ChatMessage) -> int:
        event = ChatMessageResponse.from_message(message)
        return self.hub.publish(message.receiver_id, event)

    def _require_complete_profile(self, user_id: str):
        try:
            profile = self.db.get(UserProfile, user_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Failed to load sender profile") from e
        if profile is None or not profile.basic_info_complete:
            raise ProfileIncompleteError(user_id)

    def _stored_duplicate(self, draft: MessageDraft) -> Optional[ChatMessage]:
        try:
            return find_stored_message(self.db, draft)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Failed to send message") from e

    # =========================================================================
    # READING
    # =========================================================================

    async def get_conversation(self, user_id: str, other_user_id: str, limit: int = 50, offset: int = 0) -> List[ChatMessage]:
        """Latest page of the conversation, oldest first."""
        if user_id == other_user_id:
            return []
        try:
            page = (
                self.db.query(ChatMessage)
                .filter(ChatMessage.conversation_key == conversation_key(user_id, other_user_id))
                .order_by(ChatMessage.seq.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get conversation: {e}")
            raise StoreUnavailable("Failed to get conversation") from e
        return list(reversed(page))

    async def list_chats(self, user_id: str) -> List[ChatSummaryRow]:
        """One row per counterparty: last message and unread count, newest first."""
        try:
            messages = (
                self.db.query(ChatMessage)
                .filter(or_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == user_id))
                .order_by(ChatMessage.seq.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get chat list: {e}")
            raise StoreUnavailable("Failed to get chat list") from e

        chats: Dict[str, ChatSummaryRow] = {}
        for msg in messages:
            other_id = msg.receiver_id if msg.sender_id == user_id else msg.sender_id
            if other_id not in chats:
                chats[other_id] = ChatSummaryRow(
                    user_id=other_id,
                    last_message=msg.content,
                    last_message_time=msg.timestamp,
                )
            if msg.receiver_id == user_id and not msg.is_read:
                chats[other_id].unread_count += 1

        if chats:
            profiles = self.db.query(UserProfile).filter(UserProfile.user_id.in_(list(chats))).all()
            for profile in profiles:
                chats[profile.user_id].full_name = profile.full_name

        return list(chats.values())

    async def mark_read(self, user_id: str, message_ids: List[str]) -> int:
        """Mark messages addressed to ``user_id`` as read. Others' messages are ignored."""
        if not message_ids:
            return 0
        try:
            count = self.db.query(ChatMessage).filter(
                and_(ChatMessage.id.in_(message_ids), ChatMessage.receiver_id == user_id)
            ).update({ChatMessage.is_read: True}, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("Failed to mark messages as read") from e
        return count

    async def unread_count(self, user_id: str) -> int:
        try:
            return self.db.query(func.count(ChatMessage.seq)).filter(
                ChatMessage.receiver_id == user_id,
                ChatMessage.is_read == False,  # noqa: E712
            ).scalar() or 0
        except SQLAlchemyError as e:
            raise StoreUnavailable("Failed to count unread messages") from e
