"""Inbound event handling: verify, match, execute."""

import asyncio
import logging

from pydantic import ValidationError

from autoreply.adapters.base import MessagingClient
from autoreply.config import EngineConfig
from autoreply.models.domain import (
    EventEnvelope,
    EventType,
    ExecutionRecord,
    InboundMessage,
    ResponseRule,
    SenderKind,
)
from autoreply.services.action_executor import ActionExecutor
from autoreply.services.credential_cache import CredentialCache
from autoreply.services.event_verifier import EventVerifier
from autoreply.services.handoff_service import HandoffService
from autoreply.services.rule_matcher import RuleMatcher
from autoreply.services.rule_store import RuleStore

logger = logging.getLogger(__name__)


class AutoReplyEngine:
    """Owns one tenant's rule store and turns inbound events into replies.

    ``handle_event`` never raises: anything that goes wrong degrades to
    no auto-response for that event.
    """

    def __init__(
        self,
        config: EngineConfig,
        client: MessagingClient,
        rule_store: RuleStore,
        matcher: RuleMatcher,
        executor: ActionExecutor,
        verifier: EventVerifier,
        credentials: CredentialCache | None = None,
        handoff: HandoffService | None = None,
    ):
        self.config = config
        self.client = client
        self.rule_store = rule_store
        self.matcher = matcher
        self.executor = executor
        self.verifier = verifier
        self.credentials = credentials
        self.handoff = handoff
        self._pending: set[asyncio.Task[ExecutionRecord]] = set()

    async def handle_event(self, envelope: EventEnvelope | dict) -> None:
        """Sole ingress for transport events.

        Args:
            envelope: Envelope model, or its dict form
        """
        try:
            if not isinstance(envelope, EventEnvelope):
                envelope = EventEnvelope.model_validate(envelope)
        except ValidationError as e:
            logger.warning(f"Dropping malformed envelope: {e}")
            return

        if not self.verifier.verify(envelope):
            logger.warning(f"Dropping {envelope.event_type} event that failed verification")
            return

        if envelope.event_type != EventType.MESSAGE_RECEIVED.value:
            logger.debug(f"Ignoring event type {envelope.event_type}")
            return

        try:
            message = await self.client.receive_message(envelope.payload)
        except ValueError as e:
            logger.warning(f"Dropping unparseable message event: {e}")
            return
        except Exception as e:
            logger.warning(f"Dropping message event that failed to parse: {e}", exc_info=True)
            return

        await self.handle_message(message)

    async def handle_message(self, message: InboundMessage) -> ResponseRule | None:
        """Match a parsed message and schedule the winning rule's action.

        Args:
            message: Inbound message

        Returns:
            The matched rule, or None if no reply is scheduled
        """
        if self.config.ignore_automated_senders and message.sender_kind == SenderKind.AUTOMATED_AGENT:
            logger.debug(f"Ignoring message {message.message_id} from automated sender")
            return None

        try:
            rules = await self.rule_store.list()
        except Exception as e:
            logger.error(f"Failed to load rules, skipping message {message.message_id}: {e}", exc_info=True)
            return None

        rule = self.matcher.match(message, rules)
        if rule is None:
            logger.debug(f"No rule matched message {message.message_id}")
            return None

        logger.info(f"Message {message.message_id} matched rule {rule.id} ({rule.name})")
        task = asyncio.create_task(self.executor.execute(rule, message))
        self._pending.add(task)
        task.add_done_callback(self._on_execution_done)
        return rule

    def _on_execution_done(self, task: asyncio.Task[ExecutionRecord]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Action execution crashed: {error}", exc_info=error)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> list[ExecutionRecord]:
        """Wait for all in-flight executions to finish.

        Returns:
            Records of the executions that completed normally
        """
        records = []
        while self._pending:
            results = await asyncio.gather(*list(self._pending), return_exceptions=True)
            records.extend(result for result in results if isinstance(result, ExecutionRecord))
        return records
