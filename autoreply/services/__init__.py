"""Core services for the auto-reply engine."""

from autoreply.services.action_executor import ActionExecutor
from autoreply.services.credential_cache import CredentialCache, CredentialEntry
from autoreply.services.engine import AutoReplyEngine
from autoreply.services.event_verifier import EventVerifier
from autoreply.services.handoff_service import EscalationHandler, HandoffService
from autoreply.services.rule_matcher import RuleMatcher, evaluate_conditions, sort_rules
from autoreply.services.rule_store import RuleStore
from autoreply.services.template_renderer import DictTemplateRenderer, TemplateRenderer

__all__ = [
    "ActionExecutor",
    "AutoReplyEngine",
    "CredentialCache",
    "CredentialEntry",
    "DictTemplateRenderer",
    "EscalationHandler",
    "EventVerifier",
    "HandoffService",
    "RuleMatcher",
    "RuleStore",
    "TemplateRenderer",
    "evaluate_conditions",
    "sort_rules",
]
