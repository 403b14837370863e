"""Rewrite stored patterns from the single ``field`` form to ``fields``.

Patterns are normalized on load anyway, so this only tidies what is on disk.
It works on the raw stored dicts because the loaded models no longer carry
the legacy key.
"""

from typing import Protocol

from penny.log import get_logger
from penny.models import MatchField

logger = get_logger("penny.migration")


class RawPatternStore(Protocol):
    def list_raw_patterns(self) -> list[tuple[int, str, list[dict]]]: ...

    def update_rule(self, rule_id: int, patch: dict) -> None: ...


def needs_migration(pattern: dict) -> bool:
    return pattern.get("field") is not None and pattern.get("fields") is None


def migrate_pattern(pattern: dict) -> dict:
    if not needs_migration(pattern):
        return pattern
    migrated = {k: v for k, v in pattern.items() if k != "field"}
    migrated["fields"] = [pattern["field"] or MatchField.PAYEE.value]
    return migrated


def migrate_all_patterns(store: RawPatternStore) -> dict:
    """Migrate every rule holding legacy patterns. Returns counts and errors."""
    migrated = 0
    errors: list[str] = []
    stored = store.list_raw_patterns()

    for rule_id, name, patterns in stored:
        if not any(needs_migration(p) for p in patterns):
            continue
        try:
            store.update_rule(rule_id, {"patterns": [migrate_pattern(p) for p in patterns]})
        except Exception as e:
            msg = f"Failed to migrate rule {rule_id} ({name}): {e}"
            logger.error(msg)
            errors.append(msg)
            continue
        migrated += 1

    logger.info("Pattern migration complete: %d/%d rules migrated", migrated, len(stored))
    return {"migrated": migrated, "total": len(stored), "errors": errors}


def validate_migration(store: RawPatternStore) -> dict:
    unmigrated = [
        name for _, name, patterns in store.list_raw_patterns()
        if any(needs_migration(p) for p in patterns)
    ]
    return {"valid": not unmigrated, "unmigrated": unmigrated}
