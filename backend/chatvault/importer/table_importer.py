"""
Per-table import pipeline.

For one table plan and that table's snapshot rows, TableImporter:

1. finds rows the store already has (owner + client id, and id for preserve-id tables)
2. seeds the IdentifierMap from them
3. drops incoming rows that match an existing row
4. prepares the rest: identity, timestamps, owner, transforms, relation remapping
5. resolves uniqueness collisions per the plan's conflict strategy
6. inserts in batches, each inside a SAVEPOINT, registering the new identifiers

A rejected batch is contained: its rows count as errors and the next batch runs.
Any other failure propagates, and the caller's transaction rolls back.
"""

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import TypeAdapter
from sqlalchemy import insert, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from .diagnostics import classify_unique_violation
from .plans import ConflictStrategy, ImportPlan
from .precheck import collect_client_ids, collect_values, effective_client_id
from .state import ConflictLog, IdentifierMap, ImportResult
from .tables import (
    CLIENT_ID_COLUMN,
    ID_COLUMN,
    OWNER_COLUMN,
    column_names,
    datetime_columns,
    get_column,
    get_model,
    has_column,
    identity_columns,
    primary_key_columns,
    supports_owner_lookup,
)
from .transforms import SuffixSource, apply_transform, generate_suffix

logger = logging.getLogger(__name__)

BATCH_SIZE = 100

_datetime_adapter = TypeAdapter(datetime)


class Disposition(str, enum.Enum):
    INSERT = "insert"
    MERGE = "merge"
    SKIP = "skip"


@dataclass(frozen=True)
class Candidate:
    """A prepared row plus what the pipeline decided to do with it."""

    source_id: Optional[str]
    values: Mapping[str, Any]
    disposition: Disposition = Disposition.INSERT


@dataclass(frozen=True)
class ExistingRow:
    id: Optional[str]
    client_id: Optional[str]


def to_datetime(value: Any) -> datetime:
    """Parse ISO strings, epoch numbers or datetimes into a naive UTC datetime."""
    parsed = _datetime_adapter.validate_python(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class TableImporter:
    """Runs the import pipeline for one table at a time inside an open transaction."""

    def __init__(
        self,
        session: AsyncSession,
        owner_id: str,
        id_map: IdentifierMap,
        conflict_log: ConflictLog,
        batch_size: int = BATCH_SIZE,
        suffix_source: Optional[SuffixSource] = None,
    ):
        self.session = session
        self.owner_id = owner_id
        self.id_map = id_map
        self.conflict_log = conflict_log
        self.batch_size = batch_size
        self.suffix_source = suffix_source or generate_suffix

    async def import_table(self, plan: ImportPlan, rows: Sequence[Mapping[str, Any]]) -> ImportResult:
        result = ImportResult()
        if not rows:
            return result

        existing = await self._find_existing(plan, rows)
        result.skips = len(existing)

        if not plan.is_composite_key:
            for row in existing:
                self.id_map.register_existing(plan.table, row.id, row.client_id)

        retained = []
        for row in rows:
            match = self._match_existing(plan, row, existing)
            if match is None:
                retained.append(row)
            elif not plan.is_composite_key:
                # the snapshot may reference this row by its source id
                self.id_map.register(plan.table, row.get(ID_COLUMN), match.id)
        if not retained:
            return result

        candidates = [self._prepare(plan, row) for row in retained]

        resolved: List[Candidate] = []
        for candidate in candidates:
            resolved.append(await self._resolve_unique_conflicts(plan, candidate, result))

        await self._insert_batches(
            plan,
            [c for c in resolved if c.disposition is Disposition.INSERT],
            result,
        )
        return result

    # -- existing rows -------------------------------------------------------

    async def _find_existing(self, plan: ImportPlan, rows: Sequence[Mapping[str, Any]]) -> List[ExistingRow]:
        table = plan.table
        columns = identity_columns(table)
        found: Dict[Any, ExistingRow] = {}

        if supports_owner_lookup(table):
            client_ids = collect_client_ids(rows)
            if client_ids:
                result = await self.session.execute(
                    select(*columns).where(
                        get_column(table, OWNER_COLUMN) == self.owner_id,
                        get_column(table, CLIENT_ID_COLUMN).in_(client_ids),
                    )
                )
                for row in result.all():
                    existing = self._existing_row(row)
                    found[existing.id or existing.client_id] = existing

        if plan.preserve_id and not plan.is_composite_key:
            ids = collect_values(rows, ID_COLUMN)
            if ids:
                result = await self.session.execute(
                    select(*columns).where(get_column(table, ID_COLUMN).in_(ids))
                )
                for row in result.all():
                    existing = self._existing_row(row)
                    found.setdefault(existing.id, existing)

        return list(found.values())

    @staticmethod
    def _existing_row(row) -> ExistingRow:
        mapping = row._mapping
        return ExistingRow(id=mapping.get(ID_COLUMN), client_id=mapping.get(CLIENT_ID_COLUMN))

    @staticmethod
    def _match_existing(
        plan: ImportPlan, row: Mapping[str, Any], existing: Sequence[ExistingRow]
    ) -> Optional[ExistingRow]:
        client_id = effective_client_id(row)
        match_ids = plan.preserve_id and not plan.is_composite_key
        for record in existing:
            if record.client_id and record.client_id == client_id:
                return record
            if match_ids and record.id is not None and record.id == row.get(ID_COLUMN):
                return record
        return None

    # -- preparation ---------------------------------------------------------

    def _prepare(self, plan: ImportPlan, row: Mapping[str, Any]) -> Candidate:
        table = plan.table
        columns = column_names(table)
        source_id = row.get(ID_COLUMN)
        values: Dict[str, Any] = {key: value for key, value in row.items() if key in columns}

        if plan.is_composite_key or not plan.preserve_id:
            values.pop(ID_COLUMN, None)
        elif values.get(ID_COLUMN) is None:
            values.pop(ID_COLUMN, None)

        for name in datetime_columns(table) & values.keys():
            if values[name] in (None, ""):
                # let the column default apply
                del values[name]
            else:
                values[name] = to_datetime(values[name])

        if CLIENT_ID_COLUMN in columns:
            values[CLIENT_ID_COLUMN] = effective_client_id(row)
        if OWNER_COLUMN in columns:
            values[OWNER_COLUMN] = self.owner_id

        for field, transform in plan.field_transforms.items():
            if field in values:
                values[field] = apply_transform(transform, values[field], self.suffix_source)

        if plan.pin_id_to_owner:
            values[ID_COLUMN] = self.owner_id

        for relation in plan.relations:
            value = values.get(relation.field)
            if not value:
                continue
            mapped = self.id_map.resolve(relation.source_table, value)
            if mapped:
                values[relation.field] = mapped
            else:
                logger.warning(
                    f"Could not find mapped ID for {relation.field}={value} "
                    f"in table {relation.source_table.value}"
                )
                values[relation.field] = None

        # Links between rows of the same table are not rebuilt
        for self_reference in plan.self_references:
            values[self_reference.field] = None

        return Candidate(source_id=source_id, values=values)

    # -- uniqueness conflicts ------------------------------------------------

    async def _resolve_unique_conflicts(
        self, plan: ImportPlan, candidate: Candidate, result: ImportResult
    ) -> Candidate:
        for field in plan.unique_fields:
            value = candidate.values.get(field)
            if not value:
                continue
            if not await self._value_exists(plan, field, value):
                continue

            self.conflict_log.record(plan.table, field, value)
            result.conflict_fields.add(field)

            if plan.conflict_strategy is ConflictStrategy.SKIP:
                result.skips += 1
                return replace(candidate, disposition=Disposition.SKIP)

            if plan.conflict_strategy is ConflictStrategy.MERGE:
                await self._merge(plan, field, value, candidate.values)
                result.updated += 1
                return replace(candidate, disposition=Disposition.MERGE)

            transform = plan.field_transforms.get(field)
            if transform is None:
                logger.debug(f"No transform for {plan.table.value}.{field}; leaving value {value!r} as is")
                continue
            candidate = replace(
                candidate,
                values={**candidate.values, field: apply_transform(transform, value, self.suffix_source)},
            )

        return candidate

    def _owner_scoped(self, plan: ImportPlan, field: str) -> bool:
        return field != ID_COLUMN and has_column(plan.table, OWNER_COLUMN)

    async def _value_exists(self, plan: ImportPlan, field: str, value: Any) -> bool:
        column = get_column(plan.table, field)
        stmt = select(column).where(column == value)
        if self._owner_scoped(plan, field):
            stmt = stmt.where(get_column(plan.table, OWNER_COLUMN) == self.owner_id)
        result = await self.session.execute(stmt.limit(1))
        return result.first() is not None

    async def _merge(self, plan: ImportPlan, field: str, value: Any, values: Mapping[str, Any]) -> None:
        identity = primary_key_columns(plan.table)
        changes = {key: val for key, val in values.items() if key not in identity}
        if not changes:
            return

        model = get_model(plan.table)
        stmt = update(model).where(get_column(plan.table, field) == value)
        if self._owner_scoped(plan, field):
            stmt = stmt.where(get_column(plan.table, OWNER_COLUMN) == self.owner_id)
        await self.session.execute(
            stmt.values(**changes).execution_options(synchronize_session=False)
        )

    # -- insertion -----------------------------------------------------------

    async def _insert_batches(self, plan: ImportPlan, candidates: List[Candidate], result: ImportResult) -> None:
        table = plan.table
        model = get_model(table)

        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start:start + self.batch_size]
            params = [dict(candidate.values) for candidate in batch]

            try:
                async with self.session.begin_nested():
                    if plan.is_composite_key:
                        await self.session.execute(insert(model), params)
                        inserted = []
                    else:
                        stmt = insert(model).returning(
                            *identity_columns(table), sort_by_parameter_order=True
                        )
                        inserted = (await self.session.execute(stmt, params)).all()
            except DBAPIError as e:
                logger.error(f"Error batch inserting {table.value} ({len(batch)} rows): {e}")
                violation = classify_unique_violation(e)
                if violation is not None:
                    result.conflict_fields.add(violation.field)
                    self.conflict_log.record(table, violation.field, violation.value)
                result.errors += len(batch)
                continue

            result.added += len(batch)

            for candidate, row in zip(batch, inserted):
                persisted = self._existing_row(row)
                self.id_map.register(table, candidate.source_id, persisted.id)
                self.id_map.register(table, persisted.client_id, persisted.id)
