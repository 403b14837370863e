from penny.conflicts import find_pattern_conflicts
from penny.log import get_logger
from penny.merger import merge_patterns
from penny.models import CategoryRule, Pattern, PatternWord, Transaction
from penny.store import RecordNotFoundError, RuleStore
from penny.suggestions import calculate_pattern_weight
from penny.validators import scorable_rules

logger = get_logger("penny.learning")


def assign_category(store: RuleStore, transaction_id: int, category: str | None) -> None:
    """Record a user's categorization. Automatic sweeps will leave it alone."""
    store.update_transaction(
        transaction_id,
        {"category": category, "category_confidence": None, "manually_edited": True},
    )


def build_wordlist_pattern(
    text: str, fields: list[str], weight: float | None = None, negated: bool = False,
) -> Pattern:
    return Pattern(
        match_type="wordlist",
        fields=list(fields),
        words=[PatternWord(text=text, negated=negated)],
        weight=weight if weight is not None else calculate_pattern_weight(text),
    )


def _find_rule(rules: list[CategoryRule], rule_name: str) -> CategoryRule:
    for rule in rules:
        if rule.name == rule_name:
            return rule
    raise RecordNotFoundError(f"No rule named {rule_name!r}")


def learn_patterns(
    store: RuleStore,
    rule_name: str,
    patterns: list[Pattern],
    transaction: Transaction | None = None,
) -> dict:
    """Merge learned patterns into a rule and save it.

    When the triggering transaction is given, the other rules that already
    match it are returned as ``conflicts`` so the caller can warn the user.
    """
    rules = store.list_rules()
    rule = _find_rule(rules, rule_name)

    conflicts: list[str] = []
    if transaction is not None:
        candidates = scorable_rules(rules)
        for pattern in patterns:
            for name in find_pattern_conflicts(pattern, rule_name, transaction, candidates):
                if name not in conflicts:
                    conflicts.append(name)
        if conflicts:
            logger.warning(
                "Patterns for %r also match rule(s): %s", rule_name, ", ".join(conflicts)
            )

    merged = merge_patterns(rule.patterns, patterns)
    store.update_rule(rule.id, {"patterns": merged})
    rule.patterns = merged
    return {"rule": rule, "conflicts": conflicts}
