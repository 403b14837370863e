import operator
import re
import string
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from penny.log import get_logger
from penny.models import MatchField, Pattern, Transaction

logger = get_logger("penny.matcher")

DEFAULT_FIELDS = (MatchField.PAYEE.value,)

FIELD_ACCESSORS: dict[str, Callable[[Transaction], str | None]] = {
    MatchField.PAYEE.value: lambda t: t.payee,
    MatchField.DESCRIPTION.value: lambda t: t.description,
    MatchField.ACCOUNT_NUMBER.value: lambda t: t.account_number,
    MatchField.TRANSACTION_TYPE.value: lambda t: t.transaction_type,
    MatchField.CURRENCY.value: lambda t: t.currency,
    MatchField.ARCHIVE_ID.value: lambda t: t.archive_id,
}

AMOUNT_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
    "gte": operator.ge,
    "gt": operator.gt,
}

# JavaScript-style flag letters as stored with regex patterns. g, u and y have
# no meaning for a single search and are accepted as no-ops.
REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "y": 0,
}

_APOSTROPHES = "'’`"
_PUNCT_TABLE = str.maketrans(
    {c: (None if c in _APOSTROPHES else " ") for c in string.punctuation + "’"}
)
_WHITESPACE = re.compile(r"\s+")


def get_field_value(transaction: Transaction, field_name: str) -> str:
    """Text of a transaction field. Unknown fields and None are empty."""
    accessor = FIELD_ACCESSORS.get(field_name)
    if accessor is None:
        return ""
    value = accessor(transaction)
    return "" if value is None else str(value)


def resolve_fields(pattern: Pattern) -> tuple[str, ...]:
    """Fields a pattern inspects. An explicit empty list stays empty."""
    if pattern.fields is not None:
        return tuple(pattern.fields)
    return DEFAULT_FIELDS


def normalize_text(text: str, case_sensitive: bool = False) -> str:
    """Drop apostrophes, turn other punctuation into spaces, collapse whitespace."""
    text = _WHITESPACE.sub(" ", text.translate(_PUNCT_TABLE)).strip()
    return text if case_sensitive else text.lower()


@dataclass(frozen=True)
class CompiledRegex:
    """Outcome of compiling a stored regex: a pattern or the reason it failed."""
    source: str
    compiled: re.Pattern | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.compiled is not None

    def search(self, value: str) -> bool:
        return self.compiled is not None and self.compiled.search(value) is not None


@lru_cache(maxsize=512)
def compile_regex(source: str, flags: str = "") -> CompiledRegex:
    re_flags = 0
    for letter in flags or "":
        if letter not in REGEX_FLAGS:
            return CompiledRegex(source, error=f"unknown regex flag {letter!r}")
        re_flags |= REGEX_FLAGS[letter]
    try:
        return CompiledRegex(source, compiled=re.compile(source, re_flags))
    except re.error as e:
        return CompiledRegex(source, error=str(e))


@lru_cache(maxsize=512)
def _log_invalid_regex(source: str, flags: str, error: str) -> None:
    logger.error("Invalid regex pattern %r (flags %r): %s", source, flags, error)


def _wordlist_predicate(pattern: Pattern) -> Callable[[str], bool]:
    case_sensitive = pattern.case_sensitive
    positive = [normalize_text(w.text, case_sensitive) for w in pattern.positive_words]
    negated = [normalize_text(w.text, case_sensitive) for w in pattern.negated_words]
    positive = [w for w in positive if w]
    negated = [w for w in negated if w]

    def predicate(value: str) -> bool:
        text = normalize_text(value, case_sensitive)
        positive_ok = not positive or any(w in text for w in positive)
        negated_ok = not any(w in text for w in negated)
        return positive_ok and negated_ok

    return predicate


def _regex_predicate(pattern: Pattern) -> Callable[[str], bool]:
    source = pattern.regex or ""
    if not source:
        return lambda value: True
    flags = pattern.regex_flags or ""
    result = compile_regex(source, flags)
    if not result.ok:
        _log_invalid_regex(source, flags, result.error)
        return lambda value: False
    return result.search


def amount_satisfies(transaction: Transaction, pattern: Pattern) -> bool:
    """Compare the amount's magnitude against the pattern's amount condition."""
    condition = pattern.amount_condition
    if condition is None:
        return True
    compare = AMOUNT_COMPARATORS.get(condition.operator)
    if compare is None:
        logger.warning("Unknown amount operator %r, pattern never matches", condition.operator)
        return False
    return compare(abs(transaction.amount or 0.0), condition.value)


def matches_pattern(transaction: Transaction, pattern: Pattern) -> bool:
    """True if any of the pattern's fields satisfies it and the amount condition holds."""
    if not amount_satisfies(transaction, pattern):
        return False

    if pattern.match_type == "regex":
        predicate = _regex_predicate(pattern)
    else:
        predicate = _wordlist_predicate(pattern)

    return any(predicate(get_field_value(transaction, f)) for f in resolve_fields(pattern))
