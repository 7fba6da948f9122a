"""Inbound event models for the signaling channel."""

from __future__ import annotations

from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _require_payload(value: Any) -> Any:
    # Containers are opaque negotiation data and count as present even when empty.
    if value is None or value is False or value == "" or (isinstance(value, (int, float)) and value == 0):
        raise ValueError("payload must not be empty")
    return value


Payload = Annotated[Any, AfterValidator(_require_payload)]
NonEmpty = Annotated[str, Field(min_length=1)]


class InboundMessage(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    missing_message: ClassVar[str] = "Missing required fields"


class RegisterMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing userId"

    user_id: NonEmpty


class CallRequestMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing callId, from, or to"

    call_id: NonEmpty
    from_user: NonEmpty = Field(alias="from")
    to: NonEmpty


class CallResponseMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing callId, from, to, or accepted"

    call_id: NonEmpty
    from_user: NonEmpty = Field(alias="from")
    to: NonEmpty
    accepted: bool


class JoinCallMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing callId, userId, or role"

    call_id: NonEmpty
    user_id: NonEmpty
    role: NonEmpty


class OfferMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing required fields in offer"
    payload_field: ClassVar[str] = "offer"
    forward_event: ClassVar[str] = "offer"

    call_id: NonEmpty
    offer: Payload
    to: NonEmpty


class AnswerMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing required fields in answer"
    payload_field: ClassVar[str] = "answer"
    forward_event: ClassVar[str] = "answer"

    call_id: NonEmpty
    answer: Payload
    to: NonEmpty


class IceCandidateMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing required fields in ICE candidate"
    payload_field: ClassVar[str] = "candidate"
    forward_event: ClassVar[str] = "ice-candidate"

    call_id: NonEmpty
    candidate: Payload
    to: NonEmpty


class AnnotationMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing required fields in annotation"

    call_id: NonEmpty
    id: NonEmpty
    text: NonEmpty
    x: float
    y: float
    from_user: NonEmpty = Field(alias="from")
    object_id: str | None = None


class EndCallMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing callId"

    call_id: NonEmpty
    to: str | None = None


class LogoutMessage(InboundMessage):
    missing_message: ClassVar[str] = "Missing userId"

    user_id: NonEmpty


class PingMessage(InboundMessage):
    pass


RelayedMessage = OfferMessage | AnswerMessage | IceCandidateMessage
