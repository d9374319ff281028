"""Executes the action of a matched rule against the outbound messaging API."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from autoreply.adapters.base import MessagingClient
from autoreply.errors import CredentialError, DispatchError, TemplateRenderError
from autoreply.models.domain import (
    ActionKind,
    DispatchAttempt,
    ExecutionRecord,
    ExecutionState,
    InboundMessage,
    ResponseRule,
)
from autoreply.services.credential_cache import CredentialCache
from autoreply.services.handoff_service import EscalationHandler
from autoreply.services.template_renderer import TemplateRenderer

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Carries out one rule action per call.

    State machine per call::

        PENDING -> [DELAYED] -> DISPATCHING -> SENT | FAILED -> [ESCALATED]
        PENDING -> [DELAYED] -> SKIPPED -> [ESCALATED]   (empty action)

    A failed send is logged and never retried; escalation still follows.
    """

    def __init__(
        self,
        client: MessagingClient,
        credentials: CredentialCache,
        template_renderer: TemplateRenderer | None = None,
        escalation_handler: EscalationHandler | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize executor.

        Args:
            client: Outbound messaging client
            credentials: Credential cache supplying bearer tokens
            template_renderer: Renderer for template actions
            escalation_handler: Receives conversations flagged for a human
            sleep: Coroutine used to wait out action delays
        """
        self.client = client
        self.credentials = credentials
        self.template_renderer = template_renderer
        self.escalation_handler = escalation_handler
        self._sleep = sleep

    async def execute(self, rule: ResponseRule, message: InboundMessage) -> ExecutionRecord:
        """Execute a rule's action for a message.

        Args:
            rule: Matched rule
            message: Message the rule matched

        Returns:
            ExecutionRecord with the states passed through
        """
        record = ExecutionRecord(rule_id=rule.id, message_id=message.message_id)
        action = rule.action

        if action.delay_ms > 0:
            record.transition(ExecutionState.DELAYED)
            await self._sleep(action.delay_ms / 1000)

        if action.is_empty:
            record.transition(ExecutionState.SKIPPED)
            logger.info(f"Rule {rule.id} has no content to send for message {message.message_id}")
        else:
            await self._dispatch(rule, message, record)

        if rule.escalate_to_human:
            await self._escalate(rule, message, record)

        return record

    async def _dispatch(
        self, rule: ResponseRule, message: InboundMessage, record: ExecutionRecord
    ) -> None:
        record.transition(ExecutionState.DISPATCHING)
        try:
            payload = self._resolve_payload(rule)
            attempt = DispatchAttempt(
                conversation_id=message.conversation_id,
                action_kind=rule.action.kind,
                payload=payload,
            )
            record.attempt = attempt

            token = await self.credentials.get_token()
            result = await self.client.send(
                token,
                attempt.conversation_id,
                attempt.action_kind,
                attempt.payload,
                attempt.idempotency_token,
            )
        except (DispatchError, CredentialError) as e:
            self._fail(rule, message, record, e)
            return
        except Exception as e:
            self._fail(rule, message, record, DispatchError(f"Unexpected send failure: {e}"))
            return

        record.sent_message_id = result.message_id
        record.transition(ExecutionState.SENT)
        logger.info(f"Rule {rule.id} replied to message {message.message_id}")

    def _resolve_payload(self, rule: ResponseRule) -> str | dict[str, Any]:
        action = rule.action
        if action.kind == ActionKind.TEMPLATE:
            if self.template_renderer is None:
                raise TemplateRenderError("No template renderer configured")
            return self.template_renderer.render(action.template_name, action.template_params)
        return action.content

    def _fail(
        self,
        rule: ResponseRule,
        message: InboundMessage,
        record: ExecutionRecord,
        error: Exception,
    ) -> None:
        record.error = str(error)
        record.transition(ExecutionState.FAILED)
        logger.error(
            f"Dispatch failed for rule {rule.id}, message {message.message_id}: {error}",
            exc_info=error,
        )

    async def _escalate(
        self, rule: ResponseRule, message: InboundMessage, record: ExecutionRecord
    ) -> None:
        if self.escalation_handler is None:
            logger.warning(f"Rule {rule.id} requests escalation but no handler is configured")
            return

        if record.state == ExecutionState.FAILED:
            reason = f"Auto-reply failed: {record.error}"
        elif record.state == ExecutionState.SKIPPED:
            reason = "Rule requests human agent"
        else:
            reason = "Auto-reply sent, human follow-up requested"

        try:
            await self.escalation_handler.escalate(message.conversation_id, message, rule, reason)
        except Exception as e:
            logger.error(
                f"Escalation failed for rule {rule.id}, message {message.message_id}: {e}",
                exc_info=True,
            )
            return

        record.transition(ExecutionState.ESCALATED)
