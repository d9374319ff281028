"""Domain models."""

from autoreply.models.domain import (
    ActionKind,
    ContentKind,
    ConversationKind,
    CreateRuleRequest,
    DispatchAttempt,
    EventEnvelope,
    EventType,
    ExecutionRecord,
    ExecutionState,
    HandoffRecord,
    InboundMessage,
    ResponseRule,
    RuleAction,
    RuleConditions,
    SendResult,
    SenderKind,
    TimeWindow,
    UpdateRuleRequest,
)

__all__ = [
    "ActionKind",
    "ContentKind",
    "ConversationKind",
    "CreateRuleRequest",
    "DispatchAttempt",
    "EventEnvelope",
    "EventType",
    "ExecutionRecord",
    "ExecutionState",
    "HandoffRecord",
    "InboundMessage",
    "ResponseRule",
    "RuleAction",
    "RuleConditions",
    "SendResult",
    "SenderKind",
    "TimeWindow",
    "UpdateRuleRequest",
]
