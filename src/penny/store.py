from typing import Protocol

from penny.models import CategoryRule, Transaction


class RecordNotFoundError(LookupError):
    """A rule or transaction id that the store does not hold."""


class RuleStore(Protocol):
    """What the engine needs from persistence.

    Updates are keyed by id and take a partial patch of model field names. No
    multi-record atomicity is expected.
    """

    def list_rules(self) -> list[CategoryRule]: ...

    def list_transactions(self) -> list[Transaction]: ...

    def update_transaction(self, transaction_id: int, patch: dict) -> None: ...

    def update_rule(self, rule_id: int, patch: dict) -> None: ...
