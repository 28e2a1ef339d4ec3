import pytest

from badger.domain.eligibility.validator import ReservedBadge, Rule, evaluate
from badger.domain.errors import ValidationError
from badger.models import BadgeCategory, BadgeLevel


def badges(*specs):
    return [
        ReservedBadge(badge_application_id=f"ba-{i}", category=BadgeCategory(c), level=BadgeLevel(l))
        for i, (c, l) in enumerate(specs)
    ]


def test_gold_does_not_satisfy_silver_rule():
    rules = [{"category": "technical", "level": "silver", "count": 6}]
    result = evaluate(rules, badges(*[("technical", "gold")] * 6))

    assert result.is_valid is False
    assert [m.to_dict() for m in result.missing] == [{"category": "technical", "level": "silver", "count": 6}]


def test_any_and_specific_rule_with_two_gold_badges():
    rules = [
        {"category": "any", "level": "gold", "count": 1},
        {"category": "technical", "level": "gold", "count": 1},
    ]
    result = evaluate(rules, badges(("technical", "gold"), ("organizational", "gold")))

    assert result.is_valid is True
    assert result.satisfied is True
    assert result.missing == []


def test_single_badge_covers_only_one_rule():
    rules = [
        {"category": "any", "level": "gold", "count": 1},
        {"category": "technical", "level": "gold", "count": 1},
    ]
    result = evaluate(rules, badges(("technical", "gold")))

    assert result.is_valid is False
    assert [m.to_dict() for m in result.missing] == [{"category": "any", "level": "gold", "count": 1}]
    technical = result.requirements[1]
    assert technical.current == 1 and technical.satisfied


def test_surplus_of_specific_category_flows_to_any_rule():
    rules = [
        {"category": "technical", "level": "gold", "count": 1},
        {"category": "any", "level": "gold", "count": 1},
    ]
    assert evaluate(rules, badges(("technical", "gold"), ("technical", "gold"))).is_valid


def test_any_rule_respects_level():
    rules = [{"category": "any", "level": "bronze", "count": 2}]
    result = evaluate(rules, badges(("softskilled", "bronze"), ("technical", "silver")))

    assert not result.is_valid
    assert result.missing[0].count == 1


def test_shortfall_is_reported_per_rule():
    rules = [
        {"category": "technical", "level": "silver", "count": 6},
        {"category": "organizational", "level": "bronze", "count": 1},
    ]
    result = evaluate(rules, badges(*[("technical", "silver")] * 4, ("organizational", "bronze")))

    assert [m.to_dict() for m in result.missing] == [{"category": "technical", "level": "silver", "count": 2}]
    assert [r.to_dict()["current"] for r in result.requirements] == [4, 1]


def test_extra_badges_do_not_invalidate():
    rules = [{"category": "technical", "level": "silver", "count": 1}]
    assert evaluate(rules, badges(("technical", "silver"), ("softskilled", "gold"))).is_valid


def test_template_without_rules_is_valid():
    assert evaluate([], []).is_valid


@pytest.mark.parametrize("raw", [
    {"category": "technical", "level": "platinum", "count": 1},
    {"category": "cooking", "level": "gold", "count": 1},
    {"category": "technical", "level": "gold", "count": 0},
    {"level": "gold", "count": 1},
])
def test_malformed_rule_is_rejected(raw):
    with pytest.raises(ValidationError):
        Rule.from_dict(raw)
