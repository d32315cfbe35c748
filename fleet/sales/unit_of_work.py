"""
Ordered application of the writes produced by a sale.

The store has no transaction spanning a vehicle and its refrigeration unit,
so the writes are applied one at a time: vehicle first, refrigeration unit
second.  Nothing is written until every precondition has been re-checked
against fresh store state.  When a later write fails after an earlier one
succeeded, ``PartialCommitError`` names both; there is no rollback and no
retry.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fleet.core.errors import PartialCommitError
from fleet.store import EntityStore

logger = logging.getLogger("fleet.sales")

WRITE_ORDER = ("vehicle", "refrigeration_unit")


@dataclass(frozen=True)
class Write:
    target: str
    record_id: str
    changes: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.target}:{self.record_id}"


Check = Callable[[EntityStore], None]


class SaleUnitOfWork:
    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self._writes: list[Write] = []
        self._checks: list[Check] = []

    def register(self, write: Write, check: Optional[Check] = None) -> None:
        if write.target not in WRITE_ORDER:
            raise ValueError(f"Destino de escrita desconhecido: {write.target}")
        self._writes.append(write)
        if check is not None:
            self._checks.append(check)

    def _apply(self, write: Write) -> None:
        if write.target == "vehicle":
            self.store.update_vehicle(write.record_id, write.changes, sale_transition=True)
        else:
            self.store.update_refrigeration_unit(write.record_id, write.changes, sale_transition=True)

    def commit(self) -> tuple[Write, ...]:
        for check in self._checks:
            check(self.store)

        ordered = sorted(self._writes, key=lambda w: WRITE_ORDER.index(w.target))
        applied: list[Write] = []
        for write in ordered:
            try:
                self._apply(write)
            except Exception as exc:
                if not applied:
                    raise
                logger.error(
                    "venda parcialmente gravada failed=%s applied=%s",
                    write.label,
                    ",".join(w.label for w in applied),
                )
                raise PartialCommitError(write.label, [w.label for w in applied], exc) from exc
            applied.append(write)
        logger.info("venda gravada writes=%s", ",".join(w.label for w in applied))
        return tuple(applied)
