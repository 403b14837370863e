import os
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from penny.conflicts import find_pattern_conflicts
from penny.db import SqliteStore, get_connection, init_db
from penny.learning import assign_category, learn_patterns
from penny.log import LOG_LEVEL_ENV, configure_logging
from penny.migration import migrate_all_patterns, validate_migration
from penny.models import AmountCondition, CategoryRule, Pattern, PatternWord, Transaction
from penny.resolver import categorize_batch, categorize_uncategorized, recategorize_all
from penny.settings import DEFAULTS, get_db_path, get_log_level, load_settings, save_settings
from penny.store import RecordNotFoundError
from penny.suggestions import calculate_pattern_weight, extract_pattern_suggestions
from penny.validators import pattern_errors, rule_errors, scorable_rules

app = typer.Typer(help="Penny — rule-based transaction categorization.", invoke_without_command=True)

rules_app = typer.Typer(help="Manage category rules.")
app.add_typer(rules_app, name="rules")

transactions_app = typer.Typer(help="Manage transactions.")
app.add_typer(transactions_app, name="transactions")

console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Logging level, e.g. INFO or DEBUG"),
):
    """Penny — rule-based transaction categorization."""
    configure_logging(log_level or os.getenv(LOG_LEVEL_ENV) or get_log_level())


def open_store() -> SqliteStore:
    conn = get_connection(get_db_path())
    init_db(conn)
    return SqliteStore(conn)


def _fail(message: str) -> None:
    typer.echo(message)
    raise typer.Exit(1)


def _parse_words(words: list[str] | None) -> list[PatternWord]:
    """'!word' marks a negated word."""
    parsed = []
    for w in words or []:
        if w.startswith("!") and len(w) > 1:
            parsed.append(PatternWord(text=w[1:], negated=True))
        else:
            parsed.append(PatternWord(text=w))
    return parsed


def _parse_amount(raw: str | None) -> AmountCondition | None:
    """'gt:100' -> AmountCondition('gt', 100.0)."""
    if not raw:
        return None
    op, _, value = raw.partition(":")
    try:
        return AmountCondition(operator=op.strip(), value=float(value))
    except ValueError:
        _fail(f"Invalid amount condition: {raw} (expected OP:VALUE, e.g. gt:100)")


def build_pattern(
    words: list[str] | None,
    regex: str | None,
    flags: str | None,
    fields: list[str] | None,
    weight: float | None,
    case_sensitive: bool,
    amount: str | None,
) -> Pattern:
    """Pattern from CLI options. Weight defaults to one derived from the text."""
    if regex is not None:
        pattern = Pattern(match_type="regex", regex=regex, regex_flags=flags or "")
        text = regex
    else:
        pattern = Pattern(match_type="wordlist", words=_parse_words(words))
        text = " ".join(w.text for w in pattern.positive_words)
    pattern.fields = list(fields) if fields else ["payee"]
    pattern.case_sensitive = case_sensitive
    pattern.weight = weight if weight is not None else calculate_pattern_weight(text or "x")
    pattern.amount_condition = _parse_amount(amount)
    return pattern


def _describe_pattern(pattern: Pattern) -> str:
    if pattern.match_type == "regex":
        body = f"/{pattern.regex}/{pattern.regex_flags or ''}"
    else:
        body = ", ".join(("!" if w.negated else "") + w.text for w in pattern.words or [])
    if pattern.amount_condition:
        body += f" [amount {pattern.amount_condition.operator} {pattern.amount_condition.value:g}]"
    return body


@app.command()
def init(
    data_dir: str = typer.Option(None, "--data-dir", help="Path for Penny data (default: ~/Documents/penny)"),
):
    """Choose a data directory and initialize the database."""
    settings = load_settings()

    if data_dir:
        settings["data_dir"] = str(Path(data_dir).expanduser().resolve())
    elif settings == DEFAULTS:
        chosen = typer.prompt("Data directory", default=settings["data_dir"])
        settings["data_dir"] = str(Path(chosen).expanduser().resolve())

    save_settings(settings)

    resolved = Path(settings["data_dir"])
    resolved.mkdir(parents=True, exist_ok=True)
    conn = get_connection(resolved / "penny.db")
    init_db(conn)
    conn.close()

    typer.echo(f"Initialized penny at {resolved}")


# --- Rules ---


@rules_app.command("add")
def rules_add(
    name: str = typer.Argument(help="Category name, e.g. 'Groceries'"),
    word: list[str] = typer.Option(None, "--word", help="Word to match; prefix with ! to exclude"),
    regex: str = typer.Option(None, help="Regex to match instead of words"),
    flags: str = typer.Option(None, help="Regex flags, e.g. i"),
    field: list[str] = typer.Option(None, "--field", help="Field(s) to match (default: payee)"),
    weight: float = typer.Option(None, help="Pattern weight (default: from pattern length)"),
    priority: int = typer.Option(5, help="Rule priority 1-10 (higher wins)"),
    logic: str = typer.Option("OR", help="How patterns combine: OR or AND"),
    type: str = typer.Option("expense", help="income or expense"),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", help="Match case exactly"),
    amount: str = typer.Option(None, help="Amount condition OP:VALUE, OP in lt/lte/eq/gte/gt"),
):
    """Add a category rule with one pattern."""
    pattern = build_pattern(word, regex, flags, field, weight, case_sensitive, amount)
    rule = CategoryRule(
        id=None, name=name, patterns=[pattern],
        pattern_logic=logic.upper(), priority=priority, type=type,
    )
    errors = rule_errors(rule)
    if errors:
        _fail("Invalid rule:\n  " + "\n  ".join(errors))

    store = open_store()
    if store.get_rule_by_name(name) is not None:
        store.conn.close()
        _fail(f"Rule already exists: {name} (use 'rules merge' to add patterns)")
    store.add_rule(rule)
    store.conn.close()
    typer.echo(f"Added rule: {name} ← {_describe_pattern(pattern)}")


@rules_app.command("list")
def rules_list():
    """List all category rules."""
    store = open_store()
    rules = store.list_rules()
    store.conn.close()

    table = Table(title="Rules")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Logic")
    table.add_column("Priority", justify="right")
    table.add_column("Patterns", justify="right")
    for rule in sorted(rules, key=lambda r: (-r.priority, r.name)):
        table.add_row(
            str(rule.id), rule.name, rule.type, rule.pattern_logic,
            str(rule.priority), str(len(rule.patterns)),
        )
    console.print(table)


@rules_app.command("show")
def rules_show(name: str = typer.Argument(help="Rule name")):
    """Show a rule's patterns."""
    store = open_store()
    rule = store.get_rule_by_name(name)
    store.conn.close()
    if rule is None:
        _fail(f"Unknown rule: {name}")

    table = Table(title=escape(f"{rule.name} ({rule.pattern_logic}, priority {rule.priority})"))
    table.add_column("#", style="dim")
    table.add_column("Type")
    table.add_column("Fields")
    table.add_column("Match")
    table.add_column("Weight", justify="right")
    for i, p in enumerate(rule.patterns, 1):
        table.add_row(
            str(i), p.match_type, ", ".join(p.fields or ["payee"]),
            escape(_describe_pattern(p)), f"{p.weight:g}",
        )
    console.print(table)


@rules_app.command("validate")
def rules_validate():
    """Report rules with structural problems."""
    store = open_store()
    rules = store.list_rules()
    store.conn.close()

    bad = 0
    for rule in rules:
        errors = rule_errors(rule)
        if errors:
            bad += 1
            console.print(f"[red]{rule.name}[/red]")
            for e in errors:
                console.print(f"  {e}")
    if bad:
        raise typer.Exit(1)
    typer.echo(f"All {len(rules)} rules are valid.")


@rules_app.command("merge")
def rules_merge(
    name: str = typer.Argument(help="Rule to add patterns to"),
    word: list[str] = typer.Option(None, "--word", help="Word to match; prefix with ! to exclude"),
    regex: str = typer.Option(None, help="Regex to match instead of words"),
    flags: str = typer.Option(None, help="Regex flags, e.g. i"),
    field: list[str] = typer.Option(None, "--field", help="Field(s) to match (default: payee)"),
    weight: float = typer.Option(None, help="Pattern weight"),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", help="Match case exactly"),
    amount: str = typer.Option(None, help="Amount condition OP:VALUE"),
    transaction: int = typer.Option(None, help="Transaction id to check for conflicts"),
):
    """Merge a new pattern into an existing rule."""
    pattern = build_pattern(word, regex, flags, field, weight, case_sensitive, amount)
    errors = pattern_errors(pattern)
    if errors:
        _fail("Invalid pattern:\n  " + "\n  ".join(errors))

    store = open_store()
    txn = None
    if transaction is not None:
        txn = store.get_transaction(transaction)
        if txn is None:
            store.conn.close()
            _fail(f"Unknown transaction: {transaction}")
    try:
        result = learn_patterns(store, name, [pattern], transaction=txn)
    except RecordNotFoundError:
        store.conn.close()
        _fail(f"Unknown rule: {name}")
    store.conn.close()

    if result["conflicts"]:
        console.print(
            f"[yellow]Warning: this transaction also matches {', '.join(result['conflicts'])}[/yellow]"
        )
    typer.echo(f"Merged into {name}: {len(result['rule'].patterns)} pattern(s)")


@rules_app.command("suggest")
def rules_suggest(text: str = typer.Argument(help="Payee or description to learn from")):
    """Suggest patterns, short to long, with their automatic weights."""
    suggestions = extract_pattern_suggestions(text)
    if not suggestions:
        typer.echo("No suggestions.")
        return
    table = Table(title="Suggested patterns")
    table.add_column("Pattern")
    table.add_column("Weight", justify="right")
    for s in suggestions:
        table.add_row(s, str(calculate_pattern_weight(s)))
    console.print(table)


# --- Transactions ---


@transactions_app.command("add")
def transactions_add(
    date: str = typer.Option(help="Date: YYYY-MM-DD"),
    amount: float = typer.Option(help="Signed amount, negative = money out"),
    payee: str = typer.Option(None, help="Payee / recipient"),
    description: str = typer.Option(None, help="Description"),
    currency: str = typer.Option("EUR", help="Currency code"),
    account_number: str = typer.Option(None, help="Account number"),
    transaction_type: str = typer.Option(None, help="Bank transaction type"),
    archive_id: str = typer.Option(None, help="Bank archive id"),
):
    """Add a transaction and categorize it with the current rules."""
    txn = Transaction(
        id=None, date=date, payee=payee, description=description, amount=amount,
        currency=currency, type="debit" if amount < 0 else "credit",
        account_number=account_number, transaction_type=transaction_type,
        archive_id=archive_id,
    )
    store = open_store()
    [txn] = categorize_batch([txn], scorable_rules(store.list_rules()))
    txn_id = store.add_transaction(txn)
    store.conn.close()

    if txn.category:
        typer.echo(f"Added transaction {txn_id}: {txn.category} ({txn.category_confidence}%)")
    else:
        typer.echo(f"Added transaction {txn_id}: uncategorized")


@transactions_app.command("list")
def transactions_list(
    uncategorized: bool = typer.Option(False, "--uncategorized", help="Only uncategorized"),
):
    """List transactions."""
    store = open_store()
    rows = store.list_transactions()
    store.conn.close()
    if uncategorized:
        rows = [t for t in rows if t.category is None]

    table = Table(title=f"Transactions ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Payee")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    table.add_column("Conf.", justify="right")
    table.add_column("Manual")
    for t in rows:
        color = "red" if t.amount < 0 else "green"
        table.add_row(
            str(t.id), t.date, t.payee or "",
            f"[{color}]{t.amount:,.2f} {t.currency or ''}[/{color}]",
            t.category or "",
            "" if t.category_confidence is None else f"{t.category_confidence}%",
            "yes" if t.manually_edited else "",
        )
    console.print(table)


@transactions_app.command("set-category")
def transactions_set_category(
    transaction_id: int = typer.Argument(help="Transaction id"),
    category: str = typer.Argument(help="Category name"),
):
    """Categorize a transaction by hand. Recategorization will not touch it."""
    store = open_store()
    try:
        assign_category(store, transaction_id, category)
    except RecordNotFoundError:
        store.conn.close()
        _fail(f"Unknown transaction: {transaction_id}")
    store.conn.close()
    typer.echo(f"Transaction {transaction_id} → {category} (manual)")


# --- Categorization ---


@app.command()
def categorize():
    """Apply rules to uncategorized transactions."""
    store = open_store()
    result = categorize_uncategorized(store)
    store.conn.close()
    typer.echo(
        f"{result['categorized']} categorized, {result['still_uncategorized']} still uncategorized"
    )
    if result["failed"]:
        console.print(f"[red]{len(result['failed'])} failed: {result['failed']}[/red]")
        raise typer.Exit(1)


@app.command()
def recategorize():
    """Re-run all rules over every transaction not edited by hand."""
    store = open_store()
    result = recategorize_all(store)
    store.conn.close()
    typer.echo(
        f"{result['updated']} updated, {result['unchanged']} unchanged, "
        f"{result['skipped_manual']} manual (kept)"
    )
    if result["failed"]:
        console.print(f"[red]{len(result['failed'])} failed: {result['failed']}[/red]")
        raise typer.Exit(1)


@app.command()
def conflicts(
    name: str = typer.Argument(help="Rule the new pattern would join"),
    transaction: int = typer.Option(help="Transaction id the pattern was learned from"),
    word: list[str] = typer.Option(None, "--word", help="Word to match; prefix with ! to exclude"),
    regex: str = typer.Option(None, help="Regex to match instead of words"),
    flags: str = typer.Option(None, help="Regex flags"),
    field: list[str] = typer.Option(None, "--field", help="Field(s) to match (default: payee)"),
):
    """Show which other rules already match a transaction."""
    pattern = build_pattern(word, regex, flags, field, 1.0, False, None)
    store = open_store()
    txn = store.get_transaction(transaction)
    if txn is None:
        store.conn.close()
        _fail(f"Unknown transaction: {transaction}")
    found = find_pattern_conflicts(pattern, name, txn, scorable_rules(store.list_rules()))
    store.conn.close()

    if found:
        console.print(f"[yellow]Also matched by: {', '.join(found)}[/yellow]")
    else:
        typer.echo("No conflicts.")


@app.command()
def migrate():
    """Rewrite legacy single-field patterns to the field-list form."""
    store = open_store()
    result = migrate_all_patterns(store)
    check = validate_migration(store)
    store.conn.close()
    typer.echo(f"{result['migrated']}/{result['total']} rules migrated")
    for e in result["errors"]:
        console.print(f"[red]{e}[/red]")
    if not check["valid"]:
        console.print(f"[red]Still unmigrated: {', '.join(check['unmigrated'])}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
