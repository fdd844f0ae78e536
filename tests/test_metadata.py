"""
Tests for schemas.metadata: tagged unions stored in JSON columns.
"""
import pytest
from pydantic import ValidationError

from schemas.metadata import (
    FilterMatch,
    FilterMatchEvidence,
    OfferEventMetadata,
    OpaqueMetadata,
    dump_metadata,
    load_message_metadata,
    load_moderation_evidence,
)


class TestMessageMetadata:

    def test_offer_event_is_typed(self):
        raw = dump_metadata(OfferEventMetadata(offer_id="o-1", new_status="accepted", changed_by="u-1"))

        loaded = load_message_metadata(raw)

        assert isinstance(loaded, OfferEventMetadata)
        assert loaded.new_status == "accepted"
        assert raw["kind"] == "offer_event"

    def test_opaque_payload_keeps_raw_bytes(self):
        raw = dump_metadata(OpaqueMetadata.from_bytes(b"\x00\xffbinary"))

        loaded = load_message_metadata(raw)

        assert isinstance(loaded, OpaqueMetadata)
        assert loaded.data == b"\x00\xffbinary"

    def test_none_passes_through(self):
        assert dump_metadata(None) is None
        assert load_message_metadata(None) is None

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            load_message_metadata({"kind": "mystery", "anything": 1})

    def test_evidence_kind_not_valid_on_messages(self):
        with pytest.raises(ValidationError):
            load_message_metadata({"kind": "filter_matches", "matches": []})


class TestModerationEvidence:

    def test_filter_matches(self):
        evidence = FilterMatchEvidence(matches=[FilterMatch(filter="spam", match="buy now", severity=3)])

        loaded = load_moderation_evidence(dump_metadata(evidence))

        assert loaded == evidence
