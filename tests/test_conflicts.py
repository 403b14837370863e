from penny.conflicts import detect_pattern_conflicts, find_pattern_conflicts
from penny.models import CategoryRule, Pattern, PatternWord, Transaction


def _pattern(word: str, fields: list[str] | None = None) -> Pattern:
    return Pattern(fields=fields or ["payee"], words=[PatternWord(text=word)], weight=5)


TXN = Transaction(id=1, date="2025-03-10", payee="Selver Kohvik", description="Lunch", amount=-9.5)


def test_reports_other_rules_matching_transaction():
    rules = [
        CategoryRule(id=1, name="Groceries", patterns=[_pattern("selver")]),
        CategoryRule(id=2, name="Transport", patterns=[_pattern("bolt")]),
    ]
    assert find_pattern_conflicts(_pattern("kohvik"), "Restaurants", TXN, rules) == ["Groceries"]


def test_target_rule_is_not_a_conflict():
    rules = [CategoryRule(id=1, name="Restaurants", patterns=[_pattern("selver")])]
    assert find_pattern_conflicts(_pattern("kohvik"), "Restaurants", TXN, rules) == []


def test_rule_reported_once():
    rules = [CategoryRule(id=1, name="Groceries", patterns=[_pattern("selver"), _pattern("kohvik")])]
    assert find_pattern_conflicts(_pattern("kohvik"), "Restaurants", TXN, rules) == ["Groceries"]


def test_disjoint_fields_are_not_checked():
    rules = [CategoryRule(id=1, name="Meals", patterns=[_pattern("lunch", fields=["description"])])]
    assert find_pattern_conflicts(_pattern("kohvik"), "Restaurants", TXN, rules) == []
    new = _pattern("kohvik", fields=["payee", "description"])
    assert find_pattern_conflicts(new, "Restaurants", TXN, rules) == ["Meals"]


def test_legacy_field_counts_as_field_set():
    legacy = Pattern(field="payee", words=[PatternWord(text="selver")], weight=5)
    rules = [CategoryRule(id=1, name="Groceries", patterns=[legacy])]
    assert find_pattern_conflicts(_pattern("kohvik"), "Restaurants", TXN, rules) == ["Groceries"]


def test_detect_uses_store_rules(store):
    store.add_rule(CategoryRule(id=None, name="Groceries", patterns=[_pattern("selver")]))
    store.add_rule(CategoryRule(id=None, name="Restaurants", patterns=[_pattern("kohvik")]))
    assert detect_pattern_conflicts(store, _pattern("kohvik"), "Restaurants", TXN) == ["Groceries"]
