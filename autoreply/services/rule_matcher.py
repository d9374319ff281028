"""First-match-wins rule selection.

Everything here is a pure function of (message, rule, now): no I/O, no
mutation, so matching can be tested without any network or storage fakes.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

from autoreply.models.domain import InboundMessage, ResponseRule, RuleConditions

logger = logging.getLogger(__name__)


def _keywords_match(keywords: list[str], message: InboundMessage) -> bool:
    text = message.text().lower()
    return any(keyword.lower() in text for keyword in keywords)


def evaluate_conditions(message: InboundMessage, rule: ResponseRule, now: datetime) -> bool:
    """Check whether all present clauses of a rule hold for a message.

    Args:
        message: Inbound message
        rule: Rule whose conditions are evaluated
        now: Current local wall-clock time

    Returns:
        True if every present clause holds
    """
    conditions: RuleConditions = rule.conditions

    if conditions.content_kinds and message.content_kind not in conditions.content_kinds:
        return False

    if (
        conditions.conversation_kinds
        and message.conversation_kind not in conditions.conversation_kinds
    ):
        return False

    if conditions.sender_kinds and message.sender_kind not in conditions.sender_kinds:
        return False

    if conditions.keywords and not _keywords_match(conditions.keywords, message):
        return False

    if conditions.time_window and not conditions.time_window.contains(now.time()):
        return False

    return True


def sort_rules(rules: Iterable[ResponseRule]) -> list[ResponseRule]:
    """Active rules in precedence order: priority, then creation order."""
    active = [rule for rule in rules if rule.is_active]
    return sorted(active, key=lambda rule: (rule.priority, rule.sequence))


class RuleMatcher:
    """Selects at most one rule for an inbound message."""

    def __init__(self, timezone: str = "UTC"):
        """Initialize matcher.

        Args:
            timezone: IANA zone used as local wall clock for time windows
        """
        self.timezone = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def match(
        self,
        message: InboundMessage,
        rules: Iterable[ResponseRule],
        now: datetime | None = None,
    ) -> ResponseRule | None:
        """Return the first active rule whose conditions hold, or None.

        Args:
            message: Inbound message
            rules: Candidate rules in any order
            now: Local time to evaluate time windows against (defaults to now)

        Returns:
            The winning rule, or None if nothing matches
        """
        if now is None:
            now = self.now()
        elif now.tzinfo is not None:
            now = now.astimezone(self.timezone)

        for rule in sort_rules(rules):
            try:
                matched = evaluate_conditions(message, rule, now)
            except Exception as e:
                logger.warning(
                    f"Condition evaluation failed for rule {rule.id}, treating as no match: {e}"
                )
                continue
            if matched:
                logger.debug(f"Message {message.message_id} matched rule {rule.id}")
                return rule

        return None
