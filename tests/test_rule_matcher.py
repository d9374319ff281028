from datetime import UTC, datetime

import pytest

from autoreply.models.domain import ContentKind, ConversationKind, SenderKind
from autoreply.services.rule_matcher import RuleMatcher, evaluate_conditions, sort_rules
from fakes import make_message, make_rule

NOON = datetime(2024, 5, 1, 12, 0)


@pytest.fixture
def matcher() -> RuleMatcher:
    return RuleMatcher(timezone="UTC")


@pytest.mark.unit
def test_empty_rule_set_matches_nothing(matcher: RuleMatcher) -> None:
    assert matcher.match(make_message(), [], now=NOON) is None


@pytest.mark.unit
def test_rule_with_no_conditions_matches_everything(matcher: RuleMatcher) -> None:
    rule = make_rule(name="catch-all")
    message = make_message(content_kind=ContentKind.IMAGE, conversation_kind=ConversationKind.DIRECT)

    assert matcher.match(message, [rule], now=NOON) is rule


@pytest.mark.unit
def test_lower_priority_number_wins(matcher: RuleMatcher) -> None:
    low = make_rule(name="low", priority=1, sequence=2)
    high = make_rule(name="high", priority=5, sequence=1)

    assert matcher.match(make_message(), [high, low], now=NOON) is low


@pytest.mark.unit
def test_priority_tie_broken_by_creation_order(matcher: RuleMatcher) -> None:
    first = make_rule(name="first", priority=3, sequence=1)
    second = make_rule(name="second", priority=3, sequence=2)

    assert matcher.match(make_message(), [second, first], now=NOON) is first


@pytest.mark.unit
def test_inactive_rules_never_match(matcher: RuleMatcher) -> None:
    inactive = make_rule(name="off", priority=0, is_active=False)
    active = make_rule(name="on", priority=9)

    assert matcher.match(make_message(), [inactive, active], now=NOON) is active
    assert matcher.match(make_message(), [inactive], now=NOON) is None


@pytest.mark.unit
def test_keywords_are_case_insensitive_substrings(matcher: RuleMatcher) -> None:
    rule = make_rule(conditions={"keywords": ["PRICE", "refund"]})

    assert matcher.match(make_message(content='{"text":"what is the price?"}'), [rule], now=NOON) is rule
    assert matcher.match(make_message(content='{"text":"Need a Refund"}'), [rule], now=NOON) is rule
    assert matcher.match(make_message(content='{"text":"hello"}'), [rule], now=NOON) is None


@pytest.mark.unit
def test_keywords_fall_back_to_raw_content(matcher: RuleMatcher) -> None:
    rule = make_rule(conditions={"keywords": ["help"]})

    assert matcher.match(make_message(content="please help"), [rule], now=NOON) is rule


@pytest.mark.unit
def test_empty_clause_lists_do_not_constrain() -> None:
    rule = make_rule(conditions={"keywords": [], "content_kinds": [], "sender_kinds": []})

    assert evaluate_conditions(make_message(content_kind=ContentKind.FILE), rule, NOON)


@pytest.mark.unit
def test_all_present_clauses_must_hold() -> None:
    rule = make_rule(
        conditions={
            "keywords": ["hello"],
            "conversation_kinds": ["direct"],
            "sender_kinds": ["human"],
        }
    )

    assert evaluate_conditions(
        make_message(conversation_kind=ConversationKind.DIRECT), rule, NOON
    )
    assert not evaluate_conditions(
        make_message(conversation_kind=ConversationKind.GROUP), rule, NOON
    )
    assert not evaluate_conditions(
        make_message(conversation_kind=ConversationKind.DIRECT, sender_kind=SenderKind.SYSTEM),
        rule,
        NOON,
    )


@pytest.mark.unit
def test_content_kind_clause() -> None:
    rule = make_rule(conditions={"content_kinds": ["image", "video"]})

    assert evaluate_conditions(make_message(content_kind=ContentKind.IMAGE), rule, NOON)
    assert not evaluate_conditions(make_message(content_kind=ContentKind.TEXT), rule, NOON)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("hour", "minute", "expected"),
    [
        (9, 0, True),
        (12, 30, True),
        (18, 0, True),
        (18, 1, False),
        (8, 59, False),
    ],
)
def test_time_window_inclusive_bounds(hour: int, minute: int, expected: bool) -> None:
    rule = make_rule(conditions={"time_window": {"start": "09:00", "end": "18:00"}})
    now = datetime(2024, 5, 1, hour, minute)

    assert evaluate_conditions(make_message(), rule, now) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("hour", "minute", "expected"),
    [
        (23, 0, True),
        (1, 0, True),
        (22, 0, True),
        (2, 0, True),
        (12, 0, False),
        (2, 1, False),
    ],
)
def test_time_window_wraps_past_midnight(hour: int, minute: int, expected: bool) -> None:
    rule = make_rule(conditions={"time_window": {"start": "22:00", "end": "02:00"}})
    now = datetime(2024, 5, 1, hour, minute)

    assert evaluate_conditions(make_message(), rule, now) is expected


@pytest.mark.unit
def test_aware_now_is_converted_to_matcher_timezone() -> None:
    matcher = RuleMatcher(timezone="Asia/Shanghai")
    rule = make_rule(conditions={"time_window": {"start": "09:00", "end": "18:00"}})

    # 02:00 UTC is 10:00 in Shanghai
    assert matcher.match(make_message(), [rule], now=datetime(2024, 5, 1, 2, 0, tzinfo=UTC)) is rule
    # 12:00 UTC is 20:00 in Shanghai
    assert matcher.match(make_message(), [rule], now=datetime(2024, 5, 1, 12, 0, tzinfo=UTC)) is None


@pytest.mark.unit
def test_failing_condition_is_treated_as_no_match(
    matcher: RuleMatcher, monkeypatch: pytest.MonkeyPatch
) -> None:
    broken = make_rule(name="broken", priority=0, conditions={"keywords": ["x"]})
    fallback = make_rule(name="fallback", priority=1)

    from autoreply.services import rule_matcher

    real_evaluate = rule_matcher.evaluate_conditions

    def evaluate(message, rule, now):  # type: ignore[no-untyped-def]
        if rule is broken:
            raise RuntimeError("bad clause")
        return real_evaluate(message, rule, now)

    monkeypatch.setattr(rule_matcher, "evaluate_conditions", evaluate)

    assert matcher.match(make_message(), [broken, fallback], now=NOON) is fallback


@pytest.mark.unit
def test_at_most_one_rule_is_returned(matcher: RuleMatcher) -> None:
    rules = [make_rule(name=f"r{i}", priority=i % 3, sequence=i) for i in range(10)]

    winner = matcher.match(make_message(), rules, now=NOON)

    assert winner is sort_rules(rules)[0]


@pytest.mark.unit
def test_sort_rules_excludes_inactive() -> None:
    rules = [
        make_rule(name="b", priority=2, sequence=1),
        make_rule(name="off", priority=0, is_active=False),
        make_rule(name="a", priority=1, sequence=3),
    ]

    assert [rule.name for rule in sort_rules(rules)] == ["a", "b"]


@pytest.mark.unit
def test_time_window_rejects_bad_format() -> None:
    with pytest.raises(ValueError):
        make_rule(conditions={"time_window": {"start": "9am", "end": "18:00"}})
