from dataclasses import dataclass, field
from enum import Enum


class MatchField(str, Enum):
    """Transaction fields a pattern can inspect."""
    PAYEE = "payee"
    DESCRIPTION = "description"
    ACCOUNT_NUMBER = "account_number"
    TRANSACTION_TYPE = "transaction_type"
    CURRENCY = "currency"
    ARCHIVE_ID = "archive_id"


MATCH_FIELD_NAMES = tuple(f.value for f in MatchField)

AMOUNT_OPERATORS = ("lt", "lte", "eq", "gte", "gt")


@dataclass
class Transaction:
    id: int | None
    date: str  # ISO 8601
    payee: str | None = None
    description: str | None = None
    amount: float = 0.0  # negative = money out, positive = money in
    currency: str | None = None
    type: str = "debit"  # debit or credit
    account_number: str | None = None
    transaction_type: str | None = None
    archive_id: str | None = None
    category: str | None = None
    category_confidence: int | None = None  # 0-100
    manually_edited: bool = False
    ignored: bool = False


@dataclass
class PatternWord:
    text: str
    negated: bool = False

    def to_dict(self) -> dict:
        return {"text": self.text, "negated": self.negated}

    @classmethod
    def from_dict(cls, data: dict) -> "PatternWord":
        return cls(text=data.get("text") or "", negated=bool(data.get("negated", False)))


@dataclass
class AmountCondition:
    operator: str  # lt, lte, eq, gte, gt
    value: float

    def to_dict(self) -> dict:
        return {"operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "AmountCondition":
        return cls(operator=data.get("operator") or "", value=float(data.get("value") or 0.0))


@dataclass
class Pattern:
    """One matching unit of a rule.

    ``fields`` is the canonical field list. ``field`` is the legacy single-field
    form; when given without ``fields`` it is folded into ``fields`` on
    construction and cleared, so the rest of the engine only ever sees the list.
    ``fields=None`` means "not specified" and resolves to payee at match time,
    while ``fields=[]`` means "no field selected".
    """
    match_type: str = "wordlist"  # wordlist or regex
    fields: list[str] | None = None
    words: list[PatternWord] | None = None
    case_sensitive: bool = False
    regex: str | None = None
    regex_flags: str | None = None
    weight: float = 1.0
    amount_condition: AmountCondition | None = None
    field: str | None = None

    def __post_init__(self):
        if self.fields is None and self.field:
            self.fields = [self.field]
        self.field = None
        if self.fields is not None:
            self.fields = list(self.fields)

    @property
    def positive_words(self) -> list[PatternWord]:
        return [w for w in self.words or [] if not w.negated]

    @property
    def negated_words(self) -> list[PatternWord]:
        return [w for w in self.words or [] if w.negated]

    def to_dict(self) -> dict:
        data: dict = {
            "match_type": self.match_type,
            "fields": list(self.fields) if self.fields is not None else None,
            "case_sensitive": self.case_sensitive,
            "weight": self.weight,
        }
        if self.match_type == "regex":
            data["regex"] = self.regex or ""
            data["regex_flags"] = self.regex_flags or ""
        else:
            data["words"] = [w.to_dict() for w in self.words or []]
        if self.amount_condition is not None:
            data["amount_condition"] = self.amount_condition.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Pattern":
        words = data.get("words")
        condition = data.get("amount_condition")
        return cls(
            match_type=data.get("match_type") or "wordlist",
            fields=data.get("fields"),
            field=data.get("field"),
            words=[PatternWord.from_dict(w) for w in words] if words is not None else None,
            case_sensitive=bool(data.get("case_sensitive", False)),
            regex=data.get("regex"),
            regex_flags=data.get("regex_flags"),
            weight=float(data.get("weight") or 0.0),
            amount_condition=AmountCondition.from_dict(condition) if condition else None,
        )


@dataclass
class CategoryRule:
    id: int | None
    name: str
    patterns: list[Pattern] = field(default_factory=list)
    pattern_logic: str = "OR"  # OR or AND
    priority: int = 1  # 1-10, higher = more specific
    type: str = "expense"  # income or expense
    group_id: str | None = None
    color_variant: int | None = None


@dataclass
class CategoryMatch:
    """Best rule for a transaction."""
    category: str
    confidence: int  # 0-100
    score: float
    rule_id: int | None = None
