"""
Per-invocation import state and result types.

An IdentifierMap and a ConflictLog are created fresh for every import call, passed
explicitly to each stage, and dropped when the call returns.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .tables import TableName


class IdentifierMap:
    """
    Maps source-side identifiers to persisted identifiers, per table.

    Both the original row id and the client id of a row map to the same persisted
    id. Composite-key tables have no single identifier and never get entries.
    """

    def __init__(self, composite_tables: Iterable[TableName] = ()):
        self._composite_tables = frozenset(composite_tables)
        self._maps: Dict[TableName, Dict[str, str]] = {}

    def register(self, table: TableName, source_id: Optional[str], persisted_id: Optional[str]) -> None:
        if table in self._composite_tables:
            raise ValueError(f"Composite-key table '{table.value}' cannot hold identifier mappings")
        if not source_id or not persisted_id:
            return
        self._maps.setdefault(table, {})[source_id] = persisted_id

    def register_existing(self, table: TableName, persisted_id: str, client_id: Optional[str] = None) -> None:
        """Map an already-persisted row's own id (and its client id) to itself."""
        self.register(table, persisted_id, persisted_id)
        self.register(table, client_id, persisted_id)

    def resolve(self, table: TableName, source_id: Any) -> Optional[str]:
        return self._maps.get(table, {}).get(source_id)

    def entries(self, table: TableName) -> Dict[str, str]:
        return dict(self._maps.get(table, {}))

    def __contains__(self, table: TableName) -> bool:
        return bool(self._maps.get(table))


@dataclass(frozen=True)
class ConflictRecord:
    table: TableName
    field: str
    value: Any


class ConflictLog:
    """Append-only record of uniqueness collisions, kept for diagnostics."""

    def __init__(self):
        self._records: List[ConflictRecord] = []

    def record(self, table: TableName, field: str, value: Any) -> None:
        self._records.append(ConflictRecord(table=table, field=field, value=value))

    @property
    def records(self) -> Tuple[ConflictRecord, ...]:
        return tuple(self._records)

    def for_table(self, table: TableName) -> List[ConflictRecord]:
        return [r for r in self._records if r.table == table]

    def summary(self) -> Dict[str, int]:
        return dict(Counter(r.table.value for r in self._records))

    def __len__(self) -> int:
        return len(self._records)


@dataclass
class ImportResult:
    added: int = 0
    updated: int = 0
    skips: int = 0
    errors: int = 0
    conflict_fields: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": self.added,
            "updated": self.updated,
            "skips": self.skips,
            "errors": self.errors,
            "conflict_fields": sorted(self.conflict_fields),
        }


@dataclass
class ImportErrorInfo:
    message: str
    details: Any


@dataclass
class AggregateResult:
    success: bool
    results: Mapping[str, Union[ImportResult, Mapping[str, Any]]] = field(default_factory=dict)
    error: Optional[ImportErrorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "results": {
                table: result.to_dict() if isinstance(result, ImportResult) else result
                for table, result in self.results.items()
            },
        }
        if self.error is not None:
            payload["error"] = {"message": self.error.message, "details": self.error.details}
        return payload
