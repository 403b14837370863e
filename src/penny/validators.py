from penny.log import get_logger
from penny.matcher import compile_regex, resolve_fields
from penny.models import AMOUNT_OPERATORS, MATCH_FIELD_NAMES, CategoryRule, Pattern

logger = get_logger("penny.validators")

MIN_PRIORITY = 1
MAX_PRIORITY = 10


def pattern_errors(pattern: Pattern) -> list[str]:
    """Return human-readable problems with a pattern; empty when valid."""
    errors = []

    fields = resolve_fields(pattern)
    if not fields:
        errors.append("pattern must select at least one field")
    else:
        unknown = [f for f in fields if f not in MATCH_FIELD_NAMES]
        if unknown:
            errors.append(f"unknown field(s): {', '.join(unknown)}")

    if not isinstance(pattern.weight, (int, float)) or pattern.weight <= 0:
        errors.append("weight must be greater than 0")

    if not isinstance(pattern.case_sensitive, bool):
        errors.append("case_sensitive must be a boolean")

    if pattern.match_type == "wordlist":
        words = pattern.words or []
        if not words:
            errors.append("wordlist pattern needs at least one word")
        elif any(not w.text or not w.text.strip() for w in words):
            errors.append("words must not be blank")
    elif pattern.match_type == "regex":
        if not pattern.regex or not pattern.regex.strip():
            errors.append("regex pattern needs a regex")
        else:
            result = compile_regex(pattern.regex, pattern.regex_flags or "")
            if not result.ok:
                errors.append(f"invalid regex: {result.error}")
    else:
        errors.append(f"unknown match type: {pattern.match_type!r}")

    condition = pattern.amount_condition
    if condition is not None:
        if condition.operator not in AMOUNT_OPERATORS:
            errors.append(f"unknown amount operator: {condition.operator!r}")
        if condition.value < 0:
            errors.append("amount condition value must be >= 0")

    return errors


def is_valid_pattern(pattern: Pattern) -> bool:
    return not pattern_errors(pattern)


def rule_errors(rule: CategoryRule) -> list[str]:
    errors = []
    if not rule.name or not rule.name.strip():
        errors.append("rule name must not be blank")
    if not rule.patterns:
        errors.append("rule needs at least one pattern")
    for i, pattern in enumerate(rule.patterns, 1):
        errors.extend(f"pattern {i}: {e}" for e in pattern_errors(pattern))
    if (
        not isinstance(rule.priority, int)
        or isinstance(rule.priority, bool)
        or not MIN_PRIORITY <= rule.priority <= MAX_PRIORITY
    ):
        errors.append(f"priority must be an integer from {MIN_PRIORITY} to {MAX_PRIORITY}")
    if rule.pattern_logic not in ("OR", "AND"):
        errors.append(f"pattern logic must be OR or AND, got {rule.pattern_logic!r}")
    if rule.type not in ("income", "expense"):
        errors.append(f"rule type must be income or expense, got {rule.type!r}")
    return errors


def is_valid_rule(rule: CategoryRule) -> bool:
    return not rule_errors(rule)


def scorable_rules(rules: list[CategoryRule]) -> list[CategoryRule]:
    """Drop rules without a single valid pattern. Kept rules stay whole.

    Invalid patterns inside a kept rule simply never match, so an AND rule
    holding one still scores 0.
    """
    kept = []
    for rule in rules:
        valid = sum(1 for p in rule.patterns if is_valid_pattern(p))
        if not valid:
            logger.warning("Rule %r has no valid patterns, skipping", rule.name)
            continue
        if valid != len(rule.patterns):
            logger.warning(
                "Rule %r has %d invalid pattern(s)",
                rule.name, len(rule.patterns) - valid,
            )
        kept.append(rule)
    return kept
