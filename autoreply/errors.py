"""Exception hierarchy for the auto-reply engine."""


class AutoReplyError(Exception):
    """Base exception for all engine errors."""

    pass


class CredentialError(AutoReplyError):
    """Authentication call failed or returned malformed data."""

    pass


class RuleNotFoundError(AutoReplyError):
    """A rule store operation referenced a missing rule identifier."""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule {rule_id} not found")
        self.rule_id = rule_id


class DispatchError(AutoReplyError):
    """Outbound send failed."""

    pass


class TemplateRenderError(DispatchError):
    """A template action could not be rendered into a payload."""

    pass


class EscalationError(AutoReplyError):
    """Flagging a conversation for human hand-off failed."""

    pass
