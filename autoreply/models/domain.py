"""Core domain models using Pydantic."""

import json
import re
from datetime import UTC, datetime, time
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def utc_now() -> datetime:
    """Get current UTC time with timezone awareness."""
    return datetime.now(UTC)


def new_idempotency_token() -> str:
    """Generate a fresh idempotency token for one dispatch attempt."""
    return str(uuid4())


# Enums
class ConversationKind(str, Enum):
    """Kind of messaging thread."""

    DIRECT = "direct"
    GROUP = "group"


class ContentKind(str, Enum):
    """Kind of content carried by an inbound message."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"
    VIDEO = "video"
    INTERACTIVE = "interactive"


class SenderKind(str, Enum):
    """Who sent an inbound message."""

    HUMAN = "human"
    AUTOMATED_AGENT = "automated-agent"
    SYSTEM = "system"


class ActionKind(str, Enum):
    """What a rule sends back."""

    TEXT = "text"
    CARD = "card"
    TEMPLATE = "template"


class EventType(str, Enum):
    """Normalized inbound event types."""

    MESSAGE_RECEIVED = "message-received"
    CHAT_CREATED = "chat-created"
    CHAT_MEMBER_ADDED = "chat-member-added"
    CHAT_MEMBER_REMOVED = "chat-member-removed"


class ExecutionState(str, Enum):
    """States an action execution passes through."""

    PENDING = "pending"
    DELAYED = "delayed"
    DISPATCHING = "dispatching"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Action had nothing to send
    ESCALATED = "escalated"


# Inbound
class InboundMessage(BaseModel):
    """One received message. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    conversation_id: str
    conversation_kind: ConversationKind
    content_kind: ContentKind
    content: str = ""
    sender_id: str = ""
    sender_kind: SenderKind
    created_at: datetime = Field(default_factory=utc_now)

    def text(self) -> str:
        """Extract the plain text of the serialized content payload."""
        try:
            parsed = json.loads(self.content)
        except (TypeError, ValueError):
            return self.content
        if isinstance(parsed, dict) and isinstance(parsed.get("text"), str):
            return parsed["text"]
        return self.content


class EventEnvelope(BaseModel):
    """Inbound event as delivered by the transport."""

    verification_token: str = ""
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)


# Rules
class TimeWindow(BaseModel):
    """Local wall-clock window, both ends inclusive.

    A window whose start is later than its end wraps past midnight.
    """

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _validate_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"Expected HH:MM, got {value!r}")
        return value

    @staticmethod
    def _minutes(value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    def contains(self, moment: time) -> bool:
        current = moment.hour * 60 + moment.minute
        start = self._minutes(self.start)
        end = self._minutes(self.end)
        if start <= end:
            return start <= current <= end
        return current >= start or current <= end


class RuleConditions(BaseModel):
    """Condition set. Absent or empty clauses do not constrain."""

    keywords: list[str] | None = None
    content_kinds: list[ContentKind] | None = None
    conversation_kinds: list[ConversationKind] | None = None
    sender_kinds: list[SenderKind] | None = None
    time_window: TimeWindow | None = None


class RuleAction(BaseModel):
    """What to do when a rule matches."""

    kind: ActionKind = ActionKind.TEXT
    content: str | dict[str, Any] | None = None
    template_name: str | None = None
    template_params: dict[str, Any] = Field(default_factory=dict)
    delay_ms: int = Field(0, ge=0)
    escalate_to_human: bool = False

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to send."""
        if self.kind == ActionKind.TEMPLATE:
            return not self.template_name
        if isinstance(self.content, str):
            return not self.content.strip()
        return not self.content


class ResponseRule(BaseModel):
    """Operator-authored condition and action pair."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: str = ""
    is_active: bool = True
    priority: int = 0

    # Assigned by the rule store, used to break priority ties
    sequence: int = 0

    conditions: RuleConditions = Field(default_factory=RuleConditions)
    action: RuleAction = Field(default_factory=RuleAction)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def escalate_to_human(self) -> bool:
        return self.action.escalate_to_human


# Dispatch
class DispatchAttempt(BaseModel):
    """A single call to the outbound send operation. Not persisted."""

    conversation_id: str
    action_kind: ActionKind
    payload: str | dict[str, Any]
    idempotency_token: str = Field(default_factory=new_idempotency_token)


class SendResult(BaseModel):
    """Outcome of a successful send."""

    message_id: str


class ExecutionRecord(BaseModel):
    """Trace of one action execution."""

    rule_id: str
    message_id: str
    states: list[ExecutionState] = Field(default_factory=lambda: [ExecutionState.PENDING])
    attempt: DispatchAttempt | None = None
    sent_message_id: str | None = None
    error: str | None = None

    @property
    def state(self) -> ExecutionState:
        return self.states[-1]

    def transition(self, state: ExecutionState) -> None:
        self.states.append(state)


# Hand-off
class HandoffRecord(BaseModel):
    """Human hand-off flag stored for a conversation."""

    conversation_id: str
    rule_id: str
    message_id: str
    reason: str
    flagged_at: datetime = Field(default_factory=utc_now)


# Request/Response Models for API
class CreateRuleRequest(BaseModel):
    """Request to create a new rule."""

    name: str
    description: str = ""
    is_active: bool = True
    priority: int = 0
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    action: RuleAction


class UpdateRuleRequest(BaseModel):
    """Request to update a rule. Omitted fields are left unchanged."""

    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    priority: int | None = None
    conditions: RuleConditions | None = None
    action: RuleAction | None = None
