import re

_SEPARATORS = re.compile(r"[\s,;:\-_/\\]+")
_DIGITS_ONLY = re.compile(r"^\d+$")
_NO_LETTERS = re.compile(r"^[^a-zA-Z]+$")
_REGEX_SPECIALS = re.compile(r"([.*+?^${}()|\[\]\\])")
_ESCAPED_SPECIAL = re.compile(r"\\([.*+?^${}()|\[\]\\])")
_WORD_ALTERNATION = re.compile(r"^\\b\(\?:([^)]+)\)\\b$")

MAX_FULL_TEXT_SUGGESTION = 50


def extract_pattern_suggestions(text: str | None) -> list[str]:
    """Up to three candidate patterns from a payee or description, short to long."""
    if not text or not text.strip():
        return []

    cleaned = text.strip()
    parts = [p for p in _SEPARATORS.split(cleaned) if p]
    meaningful = [
        p for p in parts
        if len(p) >= 3 and not _DIGITS_ONLY.match(p) and not _NO_LETTERS.match(p)
    ]

    if not meaningful:
        first = next((p for p in parts if len(p) >= 3), None)
        return [first] if first else []

    suggestions = [meaningful[0]]

    if len(meaningful) >= 2:
        suggestions.append(" ".join(meaningful[:2]))
    elif len(parts) >= 2:
        suggestions.append(" ".join(parts[:2]))

    if len(meaningful) >= 3:
        suggestions.append(" ".join(meaningful[:3]))
    elif len(meaningful) == 2 and len(parts) >= 3:
        suggestions.append(" ".join(parts[:3]))
    elif len(cleaned) <= MAX_FULL_TEXT_SUGGESTION:
        suggestions.append(cleaned)

    return list(dict.fromkeys(suggestions))


def calculate_pattern_weight(text: str) -> int:
    """Longer, multi-word patterns are more specific and weigh more (1-10)."""
    stripped = text.strip()
    length = len(stripped)
    word_count = len(stripped.split()) or 1

    if length > 30:
        weight = 9
    elif length > 20:
        weight = 7
    elif length > 10:
        weight = 5
    elif length > 5:
        weight = 3
    else:
        weight = 2

    weight += min(word_count - 1, 3)
    return max(1, min(10, weight))


def _escape(word: str) -> str:
    return _REGEX_SPECIALS.sub(r"\\\1", word)


def word_list_to_regex(words: list[str], case_sensitive: bool = False) -> str:
    """``\\b(?:a|b)\\b`` for the given words, prefixed with ``(?i)`` unless case sensitive."""
    if not words:
        return ""
    pattern = r"\b(?:" + "|".join(_escape(w) for w in words) + r")\b"
    return pattern if case_sensitive else "(?i)" + pattern


def regex_to_word_list(regex: str) -> list[str] | None:
    """Reverse of ``word_list_to_regex``; None when the regex is anything else."""
    match = _WORD_ALTERNATION.match(regex.removeprefix("(?i)"))
    if not match:
        return None

    words = match.group(1).split("|")
    unescaped = [_ESCAPED_SPECIAL.sub(r"\1", w) for w in words]
    if any(_escape(u) != w for u, w in zip(unescaped, words)):
        return None
    return unescaped
