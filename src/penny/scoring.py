from penny.matcher import matches_pattern
from penny.models import CategoryRule, Transaction

PRIORITY_STEP = 0.1


def priority_multiplier(priority: int) -> float:
    """1.1 for priority 1 up to 2.0 for priority 10."""
    return 1 + priority * PRIORITY_STEP


def calculate_match_score(transaction: Transaction, rule: CategoryRule) -> float:
    """Weighted, priority-adjusted strength of a rule's match. 0 means no match.

    OR rules add up the weight of every matching pattern. AND rules score the
    sum of all weights only when every pattern matches, and an AND rule with no
    patterns never matches.
    """
    if rule.pattern_logic == "AND":
        if not rule.patterns:
            return 0.0
        if not all(matches_pattern(transaction, p) for p in rule.patterns):
            return 0.0
        total = sum(p.weight for p in rule.patterns)
    else:
        total = sum(p.weight for p in rule.patterns if matches_pattern(transaction, p))

    if total <= 0:
        return 0.0
    return total * priority_multiplier(rule.priority)
