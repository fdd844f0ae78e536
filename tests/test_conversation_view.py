"""
Tests for services.conversation_view: optimistic entries reconciled with authoritative echoes.
"""
from datetime import datetime

from schemas.marketplace import ChatMessageResponse
from services.conversation_view import ConversationView, PendingEntry


def echo(message_id, content, sender="me", receiver="you", correlation_id=None):
    return ChatMessageResponse(
        id=message_id,
        sender_id=sender,
        receiver_id=receiver,
        content=content,
        type="text",
        timestamp=datetime(2030, 1, 1, 12, 0),
        correlation_id=correlation_id,
    )


class TestConversationView:

    def test_echo_replaces_pending_by_correlation_id(self):
        view = ConversationView("me", "you")
        pending = view.add_pending("hello", correlation_id="c-1")

        assert view.receive(echo("m-1", "hello", correlation_id="c-1"))

        assert len(view.messages) == 1
        assert view.messages[0].id == "m-1"
        assert view.pending == []
        assert pending.correlation_id == "c-1"

    def test_echo_without_correlation_matches_on_content(self):
        view = ConversationView("me", "you")
        view.add_pending("same text")
        view.add_pending("same text")

        view.receive(echo("m-1", "same text"))

        assert [type(e) for e in view.messages] == [ChatMessageResponse, PendingEntry]

    def test_duplicate_echo_is_ignored(self):
        view = ConversationView("me", "you")
        view.add_pending("hi", correlation_id="c-1")

        assert view.receive(echo("m-1", "hi", correlation_id="c-1"))
        assert not view.receive(echo("m-1", "hi", correlation_id="c-1"))

        assert len(view.messages) == 1

    def test_incoming_messages_are_appended(self):
        view = ConversationView("me", "you")
        view.add_pending("question")

        view.receive(echo("m-1", "question", sender="you", receiver="me"))

        assert len(view.messages) == 2
        assert len(view.pending) == 1

    def test_other_conversations_are_ignored(self):
        view = ConversationView("me", "you")

        assert not view.receive(echo("m-1", "hi", sender="me", receiver="someone-else"))
        assert view.messages == []

    def test_merge_history_after_reconnect(self):
        view = ConversationView("me", "you")
        view.receive(echo("m-1", "before"))
        view.add_pending("during outage", correlation_id="c-2")

        added = view.merge([
            echo("m-1", "before"),
            echo("m-2", "during outage", correlation_id="c-2"),
        ])

        assert added == 1
        assert [e.id for e in view.messages] == ["m-1", "m-2"]

    def test_failed_entries_stay_visible_until_discarded(self):
        view = ConversationView("me", "you")
        view.add_pending("lost", correlation_id="c-3")

        assert view.mark_failed("c-3")
        assert view.pending[0].failed
        assert view.discard("c-3")
        assert view.messages == []

    def test_redelivered_write_shows_once(self):
        view = ConversationView("me", "you")
        view.add_pending("hello", correlation_id="c-1")

        assert view.receive(echo("m-1", "hello", correlation_id="c-1"))
        assert not view.receive(echo("m-2", "hello", correlation_id="c-1"))

        assert [e.id for e in view.messages] == ["m-1"]

    def test_same_correlation_from_other_sender_is_kept(self):
        view = ConversationView("me", "you")

        view.receive(echo("m-1", "hi", correlation_id="c-1"))
        view.receive(echo("m-2", "hi back", sender="you", receiver="me", correlation_id="c-1"))

        assert [e.id for e in view.messages] == ["m-1", "m-2"]
