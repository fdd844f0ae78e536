# Typed metadata blobs stored in JSON columns
# Each blob is a tagged union keyed by ``kind``; unknown payloads travel as
# opaque bytes instead of an untyped dict.

import base64
from pydantic import BaseModel, Base64Bytes, Field, TypeAdapter
from typing import Annotated, List, Literal, Optional, Union


class OfferEventMetadata(BaseModel):
    """Attached to system messages emitted by offer transitions."""
    kind: Literal["offer_event"] = "offer_event"
    offer_id: str
    previous_status: Optional[str] = None
    new_status: str
    changed_by: str


class FilterMatch(BaseModel):
    filter: str
    match: str
    severity: int


class FilterMatchEvidence(BaseModel):
    """Why the moderation gate flagged a piece of content."""
    kind: Literal["filter_matches"] = "filter_matches"
    matches: List[FilterMatch] = []


class OpaqueMetadata(BaseModel):
    """Forward-compatible fallback for payloads this version does not understand."""
    kind: Literal["opaque"] = "opaque"
    data: Base64Bytes

    @classmethod
    def from_bytes(cls, raw: bytes) -> "OpaqueMetadata":
        # Base64Bytes decodes on validation, so raw payloads go in encoded
        return cls(data=base64.b64encode(raw))


MessageMetadata = Annotated[
    Union[OfferEventMetadata, OpaqueMetadata],
    Field(discriminator="kind"),
]

ModerationEvidence = Annotated[
    Union[FilterMatchEvidence, OpaqueMetadata],
    Field(discriminator="kind"),
]

_message_metadata_adapter = TypeAdapter(Optional[MessageMetadata])
_evidence_adapter = TypeAdapter(Optional[ModerationEvidence])


def dump_metadata(value) -> Optional[dict]:
    """Serialize a metadata model for a JSON column."""
    if value is None:
        return None
    return value.model_dump(mode="json")


def load_message_metadata(raw: Optional[dict]):
    return _message_metadata_adapter.validate_python(raw)


def load_moderation_evidence(raw: Optional[dict]):
    return _evidence_adapter.validate_python(raw)
