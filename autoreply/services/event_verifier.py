"""Inbound event envelope verification."""

import hmac
import logging

from autoreply.models.domain import EventEnvelope

logger = logging.getLogger(__name__)


class EventVerifier:
    """Checks the verification token carried by every inbound envelope.

    Encrypted callbacks must be decrypted before they reach this check;
    the webhook route does not accept them.
    """

    def __init__(self, verification_token: str):
        self.verification_token = verification_token
        if not verification_token:
            logger.warning("No verification token configured, all events will be rejected")

    def verify(self, envelope: EventEnvelope) -> bool:
        """Return True only if the envelope token equals the configured one."""
        if not self.verification_token:
            return False
        supplied = envelope.verification_token or ""
        return hmac.compare_digest(supplied.encode(), self.verification_token.encode())
