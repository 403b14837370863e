import pytest

from penny.learning import assign_category, build_wordlist_pattern, learn_patterns
from penny.models import CategoryRule, Pattern, PatternWord, Transaction
from penny.resolver import recategorize_all
from penny.store import RecordNotFoundError


def _rule(name: str, word: str, weight: float = 5) -> CategoryRule:
    return CategoryRule(
        id=None, name=name,
        patterns=[Pattern(fields=["payee"], words=[PatternWord(text=word)], weight=weight)],
    )


def _txn(payee: str) -> Transaction:
    return Transaction(id=None, date="2025-03-10", payee=payee, description="", amount=-20.0)


def test_assign_category_marks_manual(store):
    txn_id = store.add_transaction(_txn("Mystery"))
    assign_category(store, txn_id, "Gifts")

    txn = store.get_transaction(txn_id)
    assert txn.category == "Gifts"
    assert txn.category_confidence is None
    assert txn.manually_edited is True


def test_assigned_category_survives_recategorize(store):
    store.add_rule(_rule("Groceries", "mystery", weight=10))
    txn_id = store.add_transaction(_txn("Mystery"))
    assign_category(store, txn_id, "Gifts")

    recategorize_all(store)

    assert store.get_transaction(txn_id).category == "Gifts"


def test_assign_category_unknown_transaction(store):
    with pytest.raises(RecordNotFoundError):
        assign_category(store, 999, "Gifts")


def test_build_wordlist_pattern_uses_automatic_weight():
    pattern = build_wordlist_pattern("Selver Kristiine", ["payee"])
    assert pattern.match_type == "wordlist"
    assert pattern.fields == ["payee"]
    assert pattern.words == [PatternWord(text="Selver Kristiine", negated=False)]
    assert pattern.weight == 6


def test_build_wordlist_pattern_explicit_weight():
    assert build_wordlist_pattern("Bolt", ["payee"], weight=9).weight == 9


def test_learn_patterns_merges_and_persists(store):
    store.add_rule(_rule("Groceries", "rimi", weight=5))

    result = learn_patterns(store, "Groceries", [build_wordlist_pattern("Prisma", ["payee"], weight=8)])

    saved = store.get_rule_by_name("Groceries")
    assert len(saved.patterns) == 1
    assert [w.text for w in saved.patterns[0].words] == ["rimi", "Prisma"]
    assert saved.patterns[0].weight == 8
    assert result["rule"].patterns == saved.patterns
    assert result["conflicts"] == []


def test_learn_patterns_reports_conflicts(store):
    store.add_rule(_rule("Groceries", "selver"))
    store.add_rule(_rule("Restaurants", "kohvik"))

    result = learn_patterns(
        store, "Restaurants",
        [build_wordlist_pattern("Kohvik", ["payee"])],
        transaction=_txn("Selver Kohvik"),
    )

    assert result["conflicts"] == ["Groceries"]
    assert len(store.get_rule_by_name("Restaurants").patterns) == 1


def test_learn_patterns_unknown_rule(store):
    with pytest.raises(RecordNotFoundError):
        learn_patterns(store, "Nope", [build_wordlist_pattern("x", ["payee"])])


def test_learn_patterns_reads_rules_once(store, monkeypatch):
    store.add_rule(_rule("Groceries", "selver"))
    store.add_rule(_rule("Restaurants", "kohvik"))
    calls = []
    list_rules = store.list_rules
    monkeypatch.setattr(store, "list_rules", lambda: calls.append(1) or list_rules())

    result = learn_patterns(
        store, "Restaurants",
        [build_wordlist_pattern("Selver", ["payee"]), build_wordlist_pattern("Kohvik", ["payee"])],
        transaction=_txn("Selver Kohvik"),
    )

    assert result["conflicts"] == ["Groceries"]
    assert len(calls) == 1
