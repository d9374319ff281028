import pytest

from autoreply.models.domain import EventEnvelope
from autoreply.services.event_verifier import EventVerifier


def envelope(token: str) -> EventEnvelope:
    return EventEnvelope(verification_token=token, event_type="message-received")


@pytest.mark.unit
def test_matching_token_is_accepted() -> None:
    assert EventVerifier("secret-token").verify(envelope("secret-token"))


@pytest.mark.unit
@pytest.mark.parametrize("token", ["", "secret", "secret-token ", "SECRET-TOKEN"])
def test_other_tokens_are_rejected(token: str) -> None:
    assert not EventVerifier("secret-token").verify(envelope(token))


@pytest.mark.unit
def test_unconfigured_verifier_rejects_everything() -> None:
    verifier = EventVerifier("")

    assert not verifier.verify(envelope(""))
    assert not verifier.verify(envelope("anything"))
