"""
Tests for the delivery-delay queue and the realtime hub.
"""
import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from database.marketplace_models import ChatMessage
from schemas.marketplace import ConnectionState
from services.chat_service import ChatService, MessageDraft
from services.errors import DeliveryDelayed
from services.delivery_queue import DeliveryQueue
from services.realtime import RealtimeHub


class FlakyFactory:
    """Session factory that fails with ``error`` for the first ``failures`` calls."""

    def __init__(self, factory, failures, error=None):
        self.factory = factory
        self.failures = failures
        self.error = error or OperationalError("CONNECT", {}, Exception("connection refused"))

    def __call__(self):
        if self.failures:
            self.failures -= 1
            raise self.error
        return self.factory()


async def no_sleep(delay):
    return None


# ---------------------------------------------------------------------------
# DeliveryQueue
# ---------------------------------------------------------------------------

class TestDeliveryQueue:

    @pytest.mark.asyncio
    async def test_drain_delivers_and_publishes(self, session, session_factory, hub):
        subscription = hub.subscribe("influencer-1")
        queue = DeliveryQueue(hub, session_factory=session_factory, sleep=no_sleep)
        queue._pending.append(MessageDraft("advertiser-1", "influencer-1", "queued hello", correlation_id="c-1"))

        assert queue.state == ConnectionState.CONNECTING
        assert await queue.drain() == 1

        assert queue.state == ConnectionState.CONNECTED
        stored = session.query(ChatMessage).one()
        assert stored.correlation_id == "c-1"
        event = await subscription.get(timeout=1)
        assert event.id == stored.id

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_order(self, session, session_factory, hub):
        queue = DeliveryQueue(hub, session_factory=FlakyFactory(session_factory, 1), sleep=no_sleep)
        queue._pending.extend([
            MessageDraft("advertiser-1", "influencer-1", "first"),
            MessageDraft("advertiser-1", "influencer-1", "second"),
        ])

        assert await queue.drain() == 0
        assert queue.backlog == 2
        assert queue.state == ConnectionState.CONNECTING

        assert await queue.drain() == 2
        assert [m.content for m in session.query(ChatMessage).order_by(ChatMessage.seq)] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_invalid_and_permanent_failures_are_dropped(self, session, session_factory, hub):
        permanent = IntegrityError("INSERT", {}, Exception("constraint"))
        queue = DeliveryQueue(hub, session_factory=FlakyFactory(session_factory, 1, error=permanent), sleep=no_sleep)
        queue._pending.extend([
            MessageDraft("advertiser-1", "influencer-1", "rejected by the store"),
            MessageDraft("advertiser-1", "influencer-1", "   "),
            MessageDraft("advertiser-1", "influencer-1", "delivered"),
        ])

        assert await queue.drain() == 1
        assert queue.backlog == 0
        assert [m.content for m in session.query(ChatMessage)] == ["delivered"]

    @pytest.mark.asyncio
    async def test_worker_retries_with_exponential_backoff(self, session, session_factory, hub):
        delays = []

        async def record_sleep(delay):
            delays.append(delay)

        queue = DeliveryQueue(
            hub,
            session_factory=FlakyFactory(session_factory, 2),
            base_delay=5,
            max_delay=15,
            sleep=record_sleep,
        )
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "eventually"))
        await asyncio.wait_for(queue._worker, timeout=5)

        assert delays == [5, 10, 15]
        assert queue.state == ConnectionState.CONNECTED
        assert session.query(ChatMessage).count() == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_worker(self, session_factory, hub):
        async def slow_sleep(delay):
            await asyncio.sleep(3600)

        queue = DeliveryQueue(hub, session_factory=session_factory, sleep=slow_sleep)
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "never sent"))

        await queue.stop()

        assert queue.backlog == 1

    def test_enqueue_without_loop_waits_for_drain(self, session_factory, hub):
        queue = DeliveryQueue(hub, session_factory=session_factory)
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "later"))

        assert queue.backlog == 1
        assert queue._worker is None

    def test_state_is_per_sender(self, session_factory, hub):
        queue = DeliveryQueue(hub, session_factory=session_factory)
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "later"))

        assert queue.state_for("advertiser-1") == ConnectionState.CONNECTING
        assert queue.state_for("influencer-1") == ConnectionState.CONNECTED
        assert queue.status_for("influencer-1").queued_messages == 0
        assert queue.status_for("advertiser-1").queued_messages == 1

    @pytest.mark.asyncio
    async def test_sender_is_told_when_backlog_starts_and_drains(self, session, session_factory, hub):
        sender = hub.subscribe("advertiser-1")
        queue = DeliveryQueue(hub, session_factory=session_factory, sleep=no_sleep)
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "one"))
        queue.enqueue(MessageDraft("advertiser-1", "influencer-1", "two"))
        await asyncio.wait_for(queue._worker, timeout=5)

        first = await sender.get(timeout=1)
        last = await sender.get(timeout=1)
        assert (first.state, first.queued_messages) == (ConnectionState.CONNECTING, 1)
        assert (last.state, last.queued_messages) == (ConnectionState.CONNECTED, 0)
        assert sender.pending() == 0

    @pytest.mark.asyncio
    async def test_write_that_landed_is_not_stored_twice(
        self, session, session_factory, hub, advertiser, influencer, monkeypatch,
    ):
        receiver = hub.subscribe(influencer.user_id)
        queue = DeliveryQueue(hub, session_factory=session_factory, sleep=no_sleep)
        chat = ChatService(session, hub=hub, delivery_queue=queue)
        real_commit = session.commit

        def commit_then_fail():
            real_commit()
            raise OperationalError("COMMIT", {}, Exception("connection reset after commit"))

        monkeypatch.setattr(session, "commit", commit_then_fail)
        with pytest.raises(DeliveryDelayed):
            await chat.send_message(advertiser.user_id, influencer.user_id, "hello", correlation_id="c-1")
        monkeypatch.undo()

        await asyncio.wait_for(queue._worker, timeout=5)

        assert queue.backlog == 0
        assert session.query(ChatMessage).count() == 1
        event = await receiver.get(timeout=1)
        assert event.correlation_id == "c-1"
        assert receiver.pending() == 0


# ---------------------------------------------------------------------------
# RealtimeHub
# ---------------------------------------------------------------------------

class TestRealtimeHub:

    @pytest.mark.asyncio
    async def test_fan_out_to_every_subscription_of_user(self):
        hub = RealtimeHub()
        tab_one = hub.subscribe("u1")
        tab_two = hub.subscribe("u1")
        other = hub.subscribe("u2")

        assert hub.publish("u1", "event") == 2
        assert await tab_one.get(timeout=1) == "event"
        assert await tab_two.get(timeout=1) == "event"
        assert other.pending() == 0

    @pytest.mark.asyncio
    async def test_events_arrive_in_publish_order(self):
        hub = RealtimeHub()
        subscription = hub.subscribe("u1")
        for i in range(3):
            hub.publish("u1", i)
        hub.unsubscribe(subscription)

        assert [event async for event in subscription] == [0, 1, 2]

    def test_unsubscribe_is_idempotent(self):
        hub = RealtimeHub()
        subscription = hub.subscribe("u1")

        assert subscription.key.startswith("chat_u1")
        assert hub.unsubscribe(subscription.key) is True
        assert hub.unsubscribe(subscription.key) is False
        assert hub.unsubscribe(subscription) is False
        assert hub.subscriber_count("u1") == 0
        assert hub.publish("u1", "dropped") == 0

    @pytest.mark.asyncio
    async def test_closed_subscription_returns_none(self):
        hub = RealtimeHub()
        subscription = hub.subscribe("u1")
        hub.close()

        assert await subscription.get(timeout=1) is None
        assert hub.subscriber_count() == 0
