# Delivery-delay queue for Collab Marketplace
# Holds chat messages whose write failed transiently and retries them in
# order with exponential backoff. Each sender's backlog drives the
# connection state reported to that sender.

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config.app_config import DELIVERY_RETRY_BASE_SECONDS, DELIVERY_RETRY_MAX_SECONDS, MAX_MESSAGE_LENGTH
from database.config import SessionLocal, get_db_context
from schemas.marketplace import ChatMessageResponse, ConnectionState, ConnectionStatusResponse
from services.chat_service import (
    MessageDraft, find_stored_message, is_transient_store_error, persist_message, validate_message_draft,
)
from services.realtime import RealtimeHub

logger = logging.getLogger(__name__)


class DeliveryQueue:
    """
    FIFO of undelivered message drafts.

    ``drain`` stops at the first transient failure so later messages never
    overtake earlier ones. Permanently failing drafts are dropped.
    """

    def __init__(
        self,
        hub: RealtimeHub,
        session_factory: Callable = SessionLocal,
        base_delay: float = DELIVERY_RETRY_BASE_SECONDS,
        max_delay: float = DELIVERY_RETRY_MAX_SECONDS,
        sleep: Callable = asyncio.sleep,
    ):
        self.hub = hub
        self.session_factory = session_factory
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._pending: Deque[MessageDraft] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._failures = 0

    @property
    def backlog(self) -> int:
        return len(self._pending)

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTING if self._pending else ConnectionState.CONNECTED

    def backlog_for(self, sender_id: str) -> int:
        return sum(1 for draft in self._pending if draft.sender_id == sender_id)

    def state_for(self, sender_id: str) -> ConnectionState:
        return ConnectionState.CONNECTING if self.backlog_for(sender_id) else ConnectionState.CONNECTED

    def status_for(self, sender_id: str) -> ConnectionStatusResponse:
        backlog = self.backlog_for(sender_id)
        return ConnectionStatusResponse(
            state=ConnectionState.CONNECTING if backlog else ConnectionState.CONNECTED,
            queued_messages=backlog,
        )

    def next_delay(self) -> float:
        """Backoff before the next attempt: base * 2^failures, capped."""
        if self._failures == 0:
            return self.base_delay
        return min(self.base_delay * (2 ** self._failures), self.max_delay)

    def enqueue(self, draft: MessageDraft):
        first_for_sender = self.backlog_for(draft.sender_id) == 0
        self._pending.append(draft)
        logger.info(f"Queued message {draft.correlation_id} ({self.backlog} pending)")
        if first_for_sender:
            self._push_status(draft.sender_id)
        self._ensure_worker()

    def _push_status(self, sender_id: str):
        """Tell the sender's live subscriptions that their connection state changed."""
        self.hub.publish(sender_id, self.status_for(sender_id))

    def _ensure_worker(self):
        if self._worker is not None and not self._worker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync caller); drain() must be driven explicitly
            return
        self._worker = loop.create_task(self._run())

    async def _run(self):
        while self._pending:
            await self._sleep(self.next_delay())
            await self.drain()

    def _persist(self, draft: MessageDraft) -> ChatMessageResponse:
        with get_db_context(self.session_factory) as db:
            try:
                message = persist_message(db, draft)
            except IntegrityError:
                db.rollback()
                # The attempt that reported failure may have committed anyway
                message = find_stored_message(db, draft)
                if message is None:
                    raise
                logger.info(f"Queued message {draft.correlation_id} was already stored as {message.id}")
            return ChatMessageResponse.from_message(message)

    def _settle(self, draft: MessageDraft):
        """Remove the head draft; the sender is connected again once their last draft settles."""
        self._pending.popleft()
        if self.backlog_for(draft.sender_id) == 0:
            self._push_status(draft.sender_id)

    async def drain(self) -> int:
        """Try to deliver queued drafts in order. Returns the number delivered."""
        delivered = 0
        while self._pending:
            draft = self._pending[0]
            draft.attempts += 1

            errors = validate_message_draft(draft, MAX_MESSAGE_LENGTH)
            if errors:
                self._settle(draft)
                logger.warning(f"Dropping queued message {draft.correlation_id}: {'; '.join(errors)}")
                continue

            try:
                event = self._persist(draft)
            except SQLAlchemyError as e:
                if is_transient_store_error(e):
                    self._failures += 1
                    logger.warning(
                        f"Delivery of {draft.correlation_id} failed (attempt {draft.attempts}), "
                        f"retrying in {self.next_delay():.1f}s: {e}"
                    )
                    break
                self._settle(draft)
                logger.error(f"Dropping queued message {draft.correlation_id} after permanent error: {e}")
                continue

            self._failures = 0
            delivered += 1
            self.hub.publish(draft.receiver_id, event)
            self._settle(draft)
            logger.info(f"Delivered queued message {draft.correlation_id} as {event.id}")

        return delivered

    async def stop(self):
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
