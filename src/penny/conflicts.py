from penny.matcher import matches_pattern, resolve_fields
from penny.models import CategoryRule, Pattern, Transaction
from penny.store import RuleStore
from penny.validators import scorable_rules


def find_pattern_conflicts(
    new_pattern: Pattern,
    target_rule_name: str,
    transaction: Transaction,
    rules: list[CategoryRule],
) -> list[str]:
    """Names of other rules that already fire on ``transaction``.

    Only patterns sharing at least one field with ``new_pattern`` are checked.
    Each rule is reported once. The result is a warning for the user and never
    blocks saving the pattern.
    """
    new_fields = set(resolve_fields(new_pattern))
    conflicts = []
    for rule in rules:
        if rule.name == target_rule_name or rule.name in conflicts:
            continue
        for pattern in rule.patterns:
            if new_fields.isdisjoint(resolve_fields(pattern)):
                continue
            if matches_pattern(transaction, pattern):
                conflicts.append(rule.name)
                break
    return conflicts


def detect_pattern_conflicts(
    store: RuleStore,
    new_pattern: Pattern,
    target_rule_name: str,
    transaction: Transaction,
) -> list[str]:
    """``find_pattern_conflicts`` against the store's current rules."""
    rules = scorable_rules(store.list_rules())
    return find_pattern_conflicts(new_pattern, target_rule_name, transaction, rules)
