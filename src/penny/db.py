import json
import sqlite3
from pathlib import Path

from penny.models import CategoryRule, Pattern, Transaction
from penny.store import RecordNotFoundError

SCHEMA = """
CREATE TABLE IF NOT EXISTS rules (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    patterns TEXT NOT NULL DEFAULT '[]',
    pattern_logic TEXT NOT NULL DEFAULT 'OR',
    priority INTEGER NOT NULL DEFAULT 1,
    rule_type TEXT NOT NULL DEFAULT 'expense',
    group_id TEXT,
    color_variant INTEGER,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY,
    date TEXT NOT NULL,
    payee TEXT,
    description TEXT,
    amount REAL NOT NULL,
    currency TEXT,
    txn_type TEXT DEFAULT 'debit',
    account_number TEXT,
    transaction_type TEXT,
    archive_id TEXT,
    category TEXT,
    category_confidence INTEGER,
    manually_edited INTEGER DEFAULT 0,
    ignored INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now'))
);
"""

# model attribute -> column, where they differ
RULE_COLUMNS = {
    "name": "name",
    "patterns": "patterns",
    "pattern_logic": "pattern_logic",
    "priority": "priority",
    "type": "rule_type",
    "group_id": "group_id",
    "color_variant": "color_variant",
}

TRANSACTION_COLUMNS = {
    "date": "date",
    "payee": "payee",
    "description": "description",
    "amount": "amount",
    "currency": "currency",
    "type": "txn_type",
    "account_number": "account_number",
    "transaction_type": "transaction_type",
    "archive_id": "archive_id",
    "category": "category",
    "category_confidence": "category_confidence",
    "manually_edited": "manually_edited",
    "ignored": "ignored",
}


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables. Idempotent."""
    conn.executescript(SCHEMA)
    conn.commit()


def _encode_patterns(patterns: list) -> str:
    return json.dumps([p.to_dict() if isinstance(p, Pattern) else p for p in patterns])


def _row_to_rule(row: sqlite3.Row) -> CategoryRule:
    return CategoryRule(
        id=row["id"],
        name=row["name"],
        patterns=[Pattern.from_dict(p) for p in json.loads(row["patterns"] or "[]")],
        pattern_logic=row["pattern_logic"],
        priority=row["priority"],
        type=row["rule_type"],
        group_id=row["group_id"],
        color_variant=row["color_variant"],
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        date=row["date"],
        payee=row["payee"],
        description=row["description"],
        amount=row["amount"],
        currency=row["currency"],
        type=row["txn_type"],
        account_number=row["account_number"],
        transaction_type=row["transaction_type"],
        archive_id=row["archive_id"],
        category=row["category"],
        category_confidence=row["category_confidence"],
        manually_edited=bool(row["manually_edited"]),
        ignored=bool(row["ignored"]),
    )


def _patch_columns(patch: dict, columns: dict[str, str]) -> tuple[list[str], list]:
    unknown = set(patch) - set(columns)
    if unknown:
        raise ValueError(f"Unknown field(s) in patch: {', '.join(sorted(unknown))}")
    names, values = [], []
    for key, value in patch.items():
        if key == "patterns":
            value = _encode_patterns(value)
        elif isinstance(value, bool):
            value = int(value)
        names.append(f"{columns[key]} = ?")
        values.append(value)
    return names, values


class SqliteStore:
    """Rule/transaction store backed by a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # --- Rules ---

    def list_rules(self) -> list[CategoryRule]:
        rows = self.conn.execute("SELECT * FROM rules ORDER BY id").fetchall()
        return [_row_to_rule(r) for r in rows]

    def get_rule_by_name(self, name: str) -> CategoryRule | None:
        row = self.conn.execute("SELECT * FROM rules WHERE name = ?", (name,)).fetchone()
        return _row_to_rule(row) if row else None

    def list_raw_patterns(self) -> list[tuple[int, str, list[dict]]]:
        """Stored pattern dicts per rule, before any normalization."""
        rows = self.conn.execute("SELECT id, name, patterns FROM rules ORDER BY id").fetchall()
        return [(r["id"], r["name"], json.loads(r["patterns"] or "[]")) for r in rows]

    def add_rule(self, rule: CategoryRule) -> int:
        cursor = self.conn.execute(
            "INSERT INTO rules (name, patterns, pattern_logic, priority, rule_type, group_id, "
            "color_variant) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                rule.name, _encode_patterns(rule.patterns), rule.pattern_logic, rule.priority,
                rule.type, rule.group_id, rule.color_variant,
            ),
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_rule(self, rule_id: int, patch: dict) -> None:
        names, values = _patch_columns(patch, RULE_COLUMNS)
        if not names:
            return
        names.append("updated_at = datetime('now')")
        cursor = self.conn.execute(
            f"UPDATE rules SET {', '.join(names)} WHERE id = ?", (*values, rule_id)
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"No rule with id {rule_id}")
        self.conn.commit()

    # --- Transactions ---

    def list_transactions(self) -> list[Transaction]:
        rows = self.conn.execute("SELECT * FROM transactions ORDER BY date, id").fetchall()
        return [_row_to_transaction(r) for r in rows]

    def get_transaction(self, transaction_id: int) -> Transaction | None:
        row = self.conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
        ).fetchone()
        return _row_to_transaction(row) if row else None

    def add_transaction(self, txn: Transaction) -> int:
        cursor = self.conn.execute(
            "INSERT INTO transactions (date, payee, description, amount, currency, txn_type, "
            "account_number, transaction_type, archive_id, category, category_confidence, "
            "manually_edited, ignored) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                txn.date, txn.payee, txn.description, txn.amount, txn.currency, txn.type,
                txn.account_number, txn.transaction_type, txn.archive_id, txn.category,
                txn.category_confidence, int(txn.manually_edited), int(txn.ignored),
            ),
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_transaction(self, transaction_id: int, patch: dict) -> None:
        names, values = _patch_columns(patch, TRANSACTION_COLUMNS)
        if not names:
            return
        cursor = self.conn.execute(
            f"UPDATE transactions SET {', '.join(names)} WHERE id = ?", (*values, transaction_id)
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"No transaction with id {transaction_id}")
        self.conn.commit()
