from dataclasses import replace

from penny.matcher import resolve_fields
from penny.models import Pattern, PatternWord


def patterns_fields_equal(a: Pattern, b: Pattern) -> bool:
    """Same field set, ignoring order."""
    return set(resolve_fields(a)) == set(resolve_fields(b))


def _dedupe_words(words: list[PatternWord]) -> list[PatternWord]:
    # Case-insensitive on text; the first occurrence keeps its casing and flag.
    seen: dict[str, PatternWord] = {}
    for word in words:
        key = word.text.lower()
        if key not in seen:
            seen[key] = replace(word)
    return list(seen.values())


def _merge_wordlists(existing: Pattern, incoming: Pattern) -> Pattern:
    return replace(
        existing,
        fields=list(existing.fields) if existing.fields is not None else None,
        words=_dedupe_words([*(existing.words or []), *(incoming.words or [])]),
        weight=max(existing.weight, incoming.weight),
    )


def _can_merge(existing: Pattern, incoming: Pattern) -> bool:
    return (
        existing.match_type == "wordlist"
        and incoming.match_type == "wordlist"
        and patterns_fields_equal(existing, incoming)
    )


def merge_patterns(existing: list[Pattern], incoming: list[Pattern]) -> list[Pattern]:
    """Fold newly learned patterns into a rule's pattern list.

    Each incoming wordlist pattern joins the first wordlist slot with the same
    fields: words are unioned without case-insensitive duplicates and the higher
    weight wins. Anything else, including every regex pattern, is appended.
    Neither input list is modified.
    """
    result = list(existing)
    for pattern in incoming:
        for i, slot in enumerate(result):
            if _can_merge(slot, pattern):
                result[i] = _merge_wordlists(slot, pattern)
                break
        else:
            result.append(pattern)
    return result
