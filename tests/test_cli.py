from typer.testing import CliRunner

from penny.cli import app
from penny.db import SqliteStore, get_connection

runner = CliRunner()


def _init(tmp_path, monkeypatch):
    """Point settings at tmp_path and run init with a custom data dir."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr("penny.settings.CONFIG_DIR", config_dir)
    monkeypatch.setattr("penny.settings.SETTINGS_PATH", config_dir / "settings.json")
    data_dir = tmp_path / "data"
    result = runner.invoke(app, ["init", "--data-dir", str(data_dir)])
    assert result.exit_code == 0
    return data_dir


def _store(data_dir) -> SqliteStore:
    return SqliteStore(get_connection(data_dir / "penny.db"))


def _add_txn(payee: str, amount: str = "-12.50"):
    return runner.invoke(
        app, ["transactions", "add", "--date", "2025-03-10", f"--amount={amount}", "--payee", payee]
    )


def test_init_creates_data_dir_and_db(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    assert (data_dir / "penny.db").exists()
    assert (tmp_path / "config" / "settings.json").exists()


def test_init_is_idempotent(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["init", "--data-dir", str(data_dir)])
    assert result.exit_code == 0


def test_rules_add_and_list(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)

    result = runner.invoke(
        app, ["rules", "add", "Groceries", "--word", "rimi", "--word", "!kohvik", "--priority", "5"]
    )
    assert result.exit_code == 0
    assert "Added rule: Groceries" in result.output

    result = runner.invoke(app, ["rules", "list"])
    assert result.exit_code == 0
    assert "Groceries" in result.output

    result = runner.invoke(app, ["rules", "show", "Groceries"])
    assert result.exit_code == 0
    assert "!kohvik" in result.output


def test_rules_add_rejects_invalid_rule(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["rules", "add", "Broken", "--regex", "[a-"])
    assert result.exit_code == 1
    assert "invalid regex" in result.output


def test_rules_add_rejects_duplicate_name(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["rules", "add", "Groceries", "--word", "rimi"])
    result = runner.invoke(app, ["rules", "add", "Groceries", "--word", "maxima"])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_transactions_add_categorizes(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["rules", "add", "Fast food", "--word", "McDonald", "--weight", "10", "--priority", "5"])

    result = _add_txn("McDonald's")
    assert result.exit_code == 0
    assert "Fast food (15%)" in result.output

    result = _add_txn("Unknown shop")
    assert "uncategorized" in result.output


def test_set_category_survives_recategorize(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    _add_txn("McDonald's")

    result = runner.invoke(app, ["transactions", "set-category", "1", "Manual"])
    assert result.exit_code == 0

    runner.invoke(app, ["rules", "add", "Fast food", "--word", "mcdonald", "--weight", "50"])
    result = runner.invoke(app, ["recategorize"])
    assert result.exit_code == 0
    assert "1 manual (kept)" in result.output

    store = _store(data_dir)
    assert store.get_transaction(1).category == "Manual"
    store.conn.close()


def test_recategorize_updates_after_new_rule(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    _add_txn("Bolt.eu")
    runner.invoke(app, ["rules", "add", "Taxi", "--word", "bolt", "--weight", "8"])

    result = runner.invoke(app, ["recategorize"])
    assert result.exit_code == 0
    assert "1 updated" in result.output

    store = _store(data_dir)
    assert store.get_transaction(1).category == "Taxi"
    store.conn.close()


def test_categorize_command(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    _add_txn("Rimi Hyper")
    _add_txn("Bolt")
    runner.invoke(app, ["rules", "add", "Groceries", "--word", "rimi"])

    result = runner.invoke(app, ["categorize"])
    assert result.exit_code == 0
    assert "1 categorized, 1 still uncategorized" in result.output


def test_rules_merge_and_conflicts(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    runner.invoke(app, ["rules", "add", "Groceries", "--word", "selver"])
    runner.invoke(app, ["rules", "add", "Restaurants", "--word", "restoran"])
    _add_txn("Selver Kohvik")

    result = runner.invoke(app, ["conflicts", "Restaurants", "--transaction", "1", "--word", "kohvik"])
    assert result.exit_code == 0
    assert "Groceries" in result.output

    result = runner.invoke(
        app, ["rules", "merge", "Restaurants", "--word", "kohvik", "--transaction", "1"]
    )
    assert result.exit_code == 0
    assert "Warning" in result.output
    assert "Merged into Restaurants: 1 pattern(s)" in result.output

    store = _store(data_dir)
    words = [w.text for w in store.get_rule_by_name("Restaurants").patterns[0].words]
    store.conn.close()
    assert words == ["restoran", "kohvik"]


def test_rules_merge_unknown_rule(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["rules", "merge", "Nope", "--word", "x"])
    assert result.exit_code == 1
    assert "Unknown rule" in result.output


def test_rules_suggest(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["rules", "suggest", "Rimi Hyper Ulemiste"])
    assert result.exit_code == 0
    assert "Rimi Hyper" in result.output


def test_migrate_command(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    conn = get_connection(data_dir / "penny.db")
    conn.execute(
        "INSERT INTO rules (name, patterns) VALUES ('Rent', "
        "'[{\"field\": \"description\", \"match_type\": \"wordlist\", "
        "\"words\": [{\"text\": \"rent\", \"negated\": false}], \"weight\": 3}]')"
    )
    conn.commit()
    conn.close()

    result = runner.invoke(app, ["migrate"])
    assert result.exit_code == 0
    assert "1/1 rules migrated" in result.output
