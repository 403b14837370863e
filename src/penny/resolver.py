import math
from dataclasses import replace

from penny.log import get_logger
from penny.models import CategoryMatch, CategoryRule, Transaction
from penny.scoring import calculate_match_score
from penny.store import RuleStore
from penny.validators import scorable_rules

logger = get_logger("penny.resolver")

# A score at or above this maps to 100% confidence.
MAX_REASONABLE_SCORE = 100


def score_to_confidence(score: float) -> int:
    """Normalize a score to 0-100, rounding half up."""
    confidence = min(100.0, (score / MAX_REASONABLE_SCORE) * 100)
    return int(math.floor(confidence + 0.5))


def _tie_break_key(rule: CategoryRule) -> tuple:
    # Among equal scores: higher priority, then lower id (missing ids last), then name.
    return (-rule.priority, rule.id is None, rule.id or 0, rule.name)


def categorize_transaction(
    transaction: Transaction, rules: list[CategoryRule]
) -> CategoryMatch | None:
    """Best-scoring rule for a transaction, or None when nothing matches."""
    best: tuple[float, CategoryRule] | None = None
    for rule in sorted(rules, key=_tie_break_key):
        score = calculate_match_score(transaction, rule)
        if score > 0 and (best is None or score > best[0]):
            best = (score, rule)

    if best is None:
        return None

    score, rule = best
    return CategoryMatch(
        category=rule.name,
        confidence=score_to_confidence(score),
        score=score,
        rule_id=rule.id,
    )


def categorize_batch(
    transactions: list[Transaction], rules: list[CategoryRule]
) -> list[Transaction]:
    """Categorize every transaction, returning updated copies.

    This is authoritative: the manual-edit flag is always cleared, so only run
    it over fresh imports or sets the user asked to recompute.
    """
    result = []
    for txn in transactions:
        match = categorize_transaction(txn, rules)
        if match is not None:
            result.append(replace(
                txn,
                category=match.category,
                category_confidence=match.confidence,
                manually_edited=False,
            ))
        else:
            result.append(replace(
                txn, category=None, category_confidence=None, manually_edited=False,
            ))
    return result


def recategorize_all(store: RuleStore) -> dict:
    """Recompute categories for every transaction the user has not edited.

    Only changed transactions are written. A failed write is logged and the
    sweep moves on. Returns counts plus the ids whose write failed.
    """
    rules = scorable_rules(store.list_rules())
    transactions = store.list_transactions()

    updated = 0
    unchanged = 0
    skipped_manual = 0
    failed: list = []

    for txn in transactions:
        if txn.manually_edited:
            skipped_manual += 1
            continue

        match = categorize_transaction(txn, rules)
        category = match.category if match else None
        confidence = match.confidence if match else None

        if category == txn.category and confidence == txn.category_confidence:
            unchanged += 1
            continue

        try:
            store.update_transaction(
                txn.id, {"category": category, "category_confidence": confidence}
            )
        except Exception:
            logger.exception("Failed to update transaction %s during recategorization", txn.id)
            failed.append(txn.id)
            continue
        updated += 1

    logger.info(
        "Recategorized %d transaction(s), %d unchanged, %d manual, %d failed",
        updated, unchanged, skipped_manual, len(failed),
    )
    return {
        "updated": updated,
        "unchanged": unchanged,
        "skipped_manual": skipped_manual,
        "failed": failed,
    }


def categorize_uncategorized(store: RuleStore) -> dict:
    """Apply rules to non-manual transactions that have no category yet.

    Like ``recategorize_all``, a failed write is logged and skipped.
    """
    rules = scorable_rules(store.list_rules())
    pending = [
        t for t in store.list_transactions()
        if t.category is None and not t.manually_edited
    ]

    categorized = 0
    failed: list = []
    for txn in categorize_batch(pending, rules):
        if txn.category is None:
            continue
        try:
            store.update_transaction(
                txn.id,
                {"category": txn.category, "category_confidence": txn.category_confidence},
            )
        except Exception:
            logger.exception("Failed to categorize transaction %s", txn.id)
            failed.append(txn.id)
            continue
        categorized += 1

    return {
        "categorized": categorized,
        "still_uncategorized": len(pending) - categorized,
        "failed": failed,
    }
