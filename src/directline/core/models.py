"""
Core Pydantic models for the Direct Line client.

This module contains the wire-level data models exchanged with the Direct Line
service: conversations, activities and their building blocks, activity groups
and the error envelope. Models accept and emit the service's camelCase field
names while exposing snake_case attributes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DirectLineModel(BaseModel):
    """Base model using Direct Line's camelCase wire names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using wire names, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AuthKind(str, Enum):
    """How the credential was obtained from the Bot Framework portal."""
    SECRET = "secret"
    TOKEN = "token"


class Auth(BaseModel):
    """Credential used to start or resume a conversation."""
    model_config = ConfigDict(frozen=True)

    kind: AuthKind = Field(..., description="Credential kind")
    credential: str = Field(..., repr=False, description="Direct Line secret or token")

    @field_validator('credential')
    @classmethod
    def validate_credential(cls, v):
        if not v or not v.strip():
            raise ValueError("Direct Line credential cannot be empty")
        return v.strip()

    @classmethod
    def secret(cls, value: str) -> "Auth":
        return cls(kind=AuthKind.SECRET, credential=value)

    @classmethod
    def token(cls, value: str) -> "Auth":
        return cls(kind=AuthKind.TOKEN, credential=value)

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.credential}"


class Conversation(DirectLineModel):
    """A conversation started with the Direct Line service."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    conversation_id: str = Field(..., description="Conversation identifier, stable across token refreshes")
    token: str = Field(..., repr=False, description="Token authorizing activity exchange")
    expires_in: Optional[int] = Field(None, alias="expires_in", ge=0, description="Token lifetime in seconds")
    stream_url: Optional[str] = Field(None, description="WebSocket URL for the activity stream")
    reference_grammar_id: Optional[str] = Field(None, description="Reference grammar identifier")
    e_tag: Optional[str] = Field(None, alias="eTag", description="Entity tag")

    @field_validator('conversation_id')
    @classmethod
    def validate_conversation_id(cls, v):
        if not v or not v.strip():
            raise ValueError("Conversation id cannot be empty")
        return v


class TextFormat(str, Enum):
    """Format of an activity's text."""
    PLAIN = "plain"
    MARKDOWN = "markdown"
    XML = "xml"


class InputHint(str, Enum):
    """Whether the sender expects a response."""
    ACCEPTING_INPUT = "acceptingInput"
    IGNORING_INPUT = "ignoringInput"
    EXPECTING_INPUT = "expectingInput"


class AttachmentLayout(str, Enum):
    """Layout of the rich card attachments of a message."""
    LIST = "list"
    CAROUSEL = "carousel"


class ChannelAccount(DirectLineModel):
    """A user or bot taking part in a conversation."""
    id: str = Field(..., description="Channel-specific account identifier")
    name: Optional[str] = Field(None, description="Display name")
    role: Optional[str] = Field(None, description="Account role (user or bot)")


class ConversationAccount(DirectLineModel):
    """Reference to the conversation an activity belongs to."""
    id: str = Field(..., description="Conversation identifier")
    name: Optional[str] = Field(None, description="Display name")


class Attachment(DirectLineModel):
    """Media or rich card attached to a message."""
    content_type: str = Field(..., description="MIME type or card content type")
    content_url: Optional[str] = Field(None, description="URL of the attached content")
    content: Optional[Any] = Field(None, description="Embedded content, e.g. a card")
    name: Optional[str] = Field(None, description="Attachment name")
    thumbnail_url: Optional[str] = Field(None, description="Thumbnail URL")


class CardAction(DirectLineModel):
    """A clickable action."""
    type: str = Field(..., description="Action type, e.g. imBack or openUrl")
    title: Optional[str] = Field(None, description="Button text")
    value: Optional[Any] = Field(None, description="Value sent when the action is taken")
    image: Optional[str] = Field(None, description="Button image URL")


class SuggestedActions(DirectLineModel):
    """Actions the user may pick from."""
    to: List[str] = Field(default_factory=list, description="Recipients the actions are shown to")
    actions: List[CardAction] = Field(default_factory=list, description="Suggested actions")


class Activity(DirectLineModel):
    """
    A single activity exchanged with a bot.

    Only the commonly used Bot Framework fields are typed; any other field the
    service sends is preserved and serialized back unchanged.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: str = Field(default="message", description="Activity type")
    id: Optional[str] = Field(None, description="Service-assigned activity identifier")
    timestamp: Optional[datetime] = Field(None, description="Time the service received the activity")
    from_: Optional[ChannelAccount] = Field(None, alias="from", description="Sender")
    conversation: Optional[ConversationAccount] = Field(None, description="Owning conversation")
    reply_to_id: Optional[str] = Field(None, description="Activity this one replies to")

    text: Optional[str] = Field(None, description="Text content of the message")
    text_format: Optional[TextFormat] = Field(None, description="Format of the message text")
    locale: Optional[str] = Field(None, description="Locale used to display the text")
    speak: Optional[str] = Field(None, description="Text-to-speech rendering of the message")
    input_hint: Optional[InputHint] = Field(None, description="Whether a response is expected")
    attachments: List[Attachment] = Field(default_factory=list, description="Attached media and cards")
    attachment_layout: Optional[AttachmentLayout] = Field(None, description="Layout of card attachments")
    suggested_actions: Optional[SuggestedActions] = Field(None, description="Actions offered to the user")
    value: Optional[Any] = Field(None, description="Open-ended value")
    channel_data: Optional[Any] = Field(None, description="Channel-specific payload")

    @classmethod
    def message(
        cls,
        text: Optional[str] = None,
        sender: Optional[ChannelAccount] = None,
        text_format: Optional[TextFormat] = None,
        value: Optional[Any] = None,
        **fields: Any,
    ) -> "Activity":
        """Build a message activity."""
        return cls(type="message", text=text, from_=sender, text_format=text_format, value=value, **fields)

    @property
    def is_message(self) -> bool:
        return self.type == "message"

    @property
    def sender_id(self) -> Optional[str]:
        return self.from_.id if self.from_ else None


class ActivityGroup(DirectLineModel):
    """A batch of activities delivered by the service, plus its watermark."""
    activities: List[Activity] = Field(default_factory=list, description="Activities in delivery order")
    watermark: Optional[str] = Field(None, description="Continuation marker for the next fetch")


class ResourceResponse(DirectLineModel):
    """Identifier of a resource created by the service."""
    id: str = Field(..., description="Resource identifier")


class ErrorCode(str, Enum):
    """Error codes returned by the Direct Line service."""
    BAD_ARGUMENT = "BadArgument"
    BOT_ERROR = "BotError"
    BOT_NOT_FOUND = "BotNotFound"
    BOT_REJECTED_ACTIVITY = "BotRejectedActivity"
    BOT_TIMEOUT = "BotTimeout"
    CONVERSATION_NOT_FOUND = "ConversationNotFound"
    MISSING_PROPERTY = "MissingProperty"
    SERVICE_ERROR = "ServiceError"
    TOKEN_EXPIRED = "TokenExpired"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class ErrorDetail(DirectLineModel):
    """The ``error`` object of an error envelope."""
    code: str = Field(..., description="Service error code")
    message: Optional[str] = Field(None, description="Human-readable error message")

    @property
    def known_code(self) -> Optional[ErrorCode]:
        try:
            return ErrorCode(self.code)
        except ValueError:
            return None


class ErrorResponse(DirectLineModel):
    """Error envelope returned with non-success HTTP statuses."""
    error: ErrorDetail = Field(..., description="Error details")
