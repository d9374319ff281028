"""Base messaging client interface and capability protocols."""

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from autoreply.models.domain import ActionKind, InboundMessage, SendResult


@runtime_checkable
class Authenticator(Protocol):
    """Anything that can exchange application credentials for a bearer token."""

    async def authenticate(self, app_id: str, app_secret: str) -> tuple[str, int]:
        """Return (token, ttl_seconds)."""
        ...


class MessagingClient(ABC):
    """Base class for outbound messaging APIs. Minimal required interface."""

    # AUTHENTICATION
    @abstractmethod
    async def authenticate(self, app_id: str, app_secret: str) -> tuple[str, int]:
        """Exchange application credentials for a bearer token.

        Args:
            app_id: Application identifier
            app_secret: Application secret

        Returns:
            Tuple of (token, ttl_seconds)

        Raises:
            CredentialError: If the call fails or the response is malformed
        """
        pass

    # RECEIVING
    @abstractmethod
    async def receive_message(self, payload: dict) -> InboundMessage:
        """Parse a message-received event payload.

        Args:
            payload: Event payload from the transport envelope

        Returns:
            InboundMessage built from the payload

        Raises:
            ValueError: If the payload is malformed
        """
        pass

    # SENDING
    @abstractmethod
    async def send(
        self,
        token: str,
        conversation_id: str,
        action_kind: ActionKind,
        payload: str | dict[str, Any],
        idempotency_token: str,
    ) -> SendResult:
        """Send one message to a conversation.

        Args:
            token: Bearer token from the credential cache
            conversation_id: Target conversation
            action_kind: Kind of action being sent
            payload: Text or structured card payload
            idempotency_token: Deduplication token for this attempt

        Returns:
            SendResult with the remote message id

        Raises:
            DispatchError: On any non-success status
        """
        pass
