"""Service for flagging conversations for human hand-off."""

import logging
from typing import Protocol, runtime_checkable

import aiohttp

from autoreply.database.base import KeyValueStore
from autoreply.errors import EscalationError
from autoreply.models.domain import HandoffRecord, InboundMessage, ResponseRule

logger = logging.getLogger(__name__)


@runtime_checkable
class EscalationHandler(Protocol):
    """Anything that can hand a conversation over to a human agent."""

    async def escalate(
        self,
        conversation_id: str,
        message: InboundMessage,
        rule: ResponseRule,
        reason: str,
    ) -> None: ...


class HandoffService:
    """Stores hand-off flags and optionally notifies a webhook."""

    def __init__(
        self,
        storage: KeyValueStore,
        webhook_url: str | None = None,
        namespace: str = "default",
    ):
        """Initialize hand-off service.

        Args:
            storage: Key-value store for hand-off flags
            webhook_url: Optional endpoint notified on every escalation
            namespace: Key prefix, one per tenant sharing the store
        """
        self.storage = storage
        self.webhook_url = webhook_url
        self.namespace = namespace

    def _key(self, conversation_id: str) -> str:
        return f"{self.namespace}:handoff:{conversation_id}"

    async def escalate(
        self,
        conversation_id: str,
        message: InboundMessage,
        rule: ResponseRule,
        reason: str,
    ) -> None:
        """Flag a conversation for human hand-off.

        Args:
            conversation_id: Conversation to flag
            message: Message that triggered the escalation
            rule: Rule that requested escalation
            reason: Short description of why

        Raises:
            EscalationError: If the flag could not be stored
        """
        record = HandoffRecord(
            conversation_id=conversation_id,
            rule_id=rule.id,
            message_id=message.message_id,
            reason=reason,
        )
        try:
            await self.storage.put(
                self._key(conversation_id), record.model_dump_json().encode("utf-8")
            )
        except Exception as e:
            raise EscalationError(f"Failed to flag conversation {conversation_id}: {e}") from e

        logger.info(f"Conversation {conversation_id} flagged for human hand-off: {reason}")

        if self.webhook_url:
            try:
                await self.send_webhook(record)
            except Exception as e:
                # The flag is stored; a lost notification is not fatal
                logger.error(f"Failed to send hand-off notification: {e}", exc_info=True)

    async def get(self, conversation_id: str) -> HandoffRecord | None:
        raw = await self.storage.get(self._key(conversation_id))
        if raw is None:
            return None
        return HandoffRecord.model_validate_json(raw)

    async def is_flagged(self, conversation_id: str) -> bool:
        return await self.get(conversation_id) is not None

    async def clear(self, conversation_id: str) -> None:
        """Remove the hand-off flag once a human has taken over."""
        await self.storage.delete(self._key(conversation_id))
        logger.info(f"Cleared hand-off flag for conversation {conversation_id}")

    async def send_webhook(self, record: HandoffRecord) -> None:
        """Post a hand-off notification to the configured webhook.

        Args:
            record: Hand-off record to send
        """
        payload = {"title": "Human hand-off requested", **record.model_dump(mode="json")}

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.webhook_url, json=payload, timeout=aiohttp.ClientTimeout(total=10)
            ) as response:
                response.raise_for_status()
                logger.info(f"Hand-off notification sent to {self.webhook_url}")
