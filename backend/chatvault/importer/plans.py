"""
Ordered import plans, one per importable table.

The order of IMPORT_PLANS is significant: a table's relations are resolved against
identifiers registered by tables imported before it, so parents must come first.
validate_import_plans() enforces that, along with every field and transform a plan
names, and runs when this module is imported.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple

from .exceptions import ImportPlanError
from .tables import ID_COLUMN, TABLE_MODELS, TableName, has_column
from .transforms import FIELD_TRANSFORMS


class ConflictStrategy(str, enum.Enum):
    """What to do when an incoming row collides on a unique field."""

    SKIP = "skip"
    MODIFY = "modify"
    MERGE = "merge"


@dataclass(frozen=True)
class Relation:
    """A foreign key on ``field`` pointing at ``source_table``'s identifier."""

    field: str
    source_table: TableName


@dataclass(frozen=True)
class SelfReference:
    """A foreign key on ``field`` pointing at another row of the same table."""

    field: str


@dataclass(frozen=True)
class ImportPlan:
    table: TableName
    conflict_strategy: ConflictStrategy = ConflictStrategy.MODIFY
    preserve_id: bool = False
    is_composite_key: bool = False
    # Per-owner singleton: the row id is always the owner's id
    pin_id_to_owner: bool = False
    unique_fields: Tuple[str, ...] = ()
    field_transforms: Mapping[str, str] = field(default_factory=dict)
    relations: Tuple[Relation, ...] = ()
    self_references: Tuple[SelfReference, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.value,
            "conflict_strategy": self.conflict_strategy.value,
            "preserve_id": self.preserve_id,
            "is_composite_key": self.is_composite_key,
            "unique_fields": list(self.unique_fields),
            "field_transforms": dict(self.field_transforms),
            "relations": [
                {"field": r.field, "source_table": r.source_table.value} for r in self.relations
            ],
            "self_references": [s.field for s in self.self_references],
        }


IMPORT_PLANS: Tuple[ImportPlan, ...] = (
    ImportPlan(
        table=TableName.USER_SETTINGS,
        conflict_strategy=ConflictStrategy.MERGE,
        preserve_id=True,
        pin_id_to_owner=True,
        unique_fields=("id",),
    ),
    ImportPlan(
        table=TableName.USER_INSTALLED_PLUGINS,
        conflict_strategy=ConflictStrategy.MERGE,
        is_composite_key=True,
        unique_fields=("identifier",),
    ),
    ImportPlan(
        table=TableName.AI_PROVIDERS,
        conflict_strategy=ConflictStrategy.SKIP,
        preserve_id=True,
        unique_fields=("id",),
    ),
    ImportPlan(
        table=TableName.AI_MODELS,
        conflict_strategy=ConflictStrategy.SKIP,
        preserve_id=True,
        unique_fields=("id", "provider_id"),
        relations=(Relation("provider_id", TableName.AI_PROVIDERS),),
    ),
    ImportPlan(table=TableName.SESSION_GROUPS),
    ImportPlan(
        table=TableName.AGENTS,
        unique_fields=("slug",),
        field_transforms={"slug": "suffixed_or_null"},
    ),
    ImportPlan(
        table=TableName.SESSIONS,
        unique_fields=("slug",),
        field_transforms={"slug": "suffixed"},
        relations=(Relation("group_id", TableName.SESSION_GROUPS),),
    ),
    ImportPlan(
        table=TableName.TOPICS,
        relations=(Relation("session_id", TableName.SESSIONS),),
    ),
    ImportPlan(
        table=TableName.AGENTS_TO_SESSIONS,
        is_composite_key=True,
        relations=(
            Relation("agent_id", TableName.AGENTS),
            Relation("session_id", TableName.SESSIONS),
        ),
    ),
    ImportPlan(table=TableName.FILES),
    ImportPlan(table=TableName.CHUNKS),
    ImportPlan(
        table=TableName.EMBEDDINGS,
        relations=(Relation("chunk_id", TableName.CHUNKS),),
    ),
    ImportPlan(
        table=TableName.THREADS,
        relations=(Relation("topic_id", TableName.TOPICS),),
        self_references=(SelfReference("parent_thread_id"),),
    ),
    ImportPlan(
        table=TableName.MESSAGES,
        relations=(
            Relation("session_id", TableName.SESSIONS),
            Relation("topic_id", TableName.TOPICS),
            Relation("agent_id", TableName.AGENTS),
            Relation("thread_id", TableName.THREADS),
        ),
        self_references=(SelfReference("parent_id"), SelfReference("quota_id")),
    ),
    ImportPlan(
        table=TableName.MESSAGE_PLUGINS,
        conflict_strategy=ConflictStrategy.SKIP,
        preserve_id=True,
        unique_fields=("id",),
        relations=(Relation("id", TableName.MESSAGES),),
    ),
    ImportPlan(
        table=TableName.MESSAGE_CHUNKS,
        is_composite_key=True,
        relations=(
            Relation("message_id", TableName.MESSAGES),
            Relation("chunk_id", TableName.CHUNKS),
        ),
    ),
    ImportPlan(
        table=TableName.MESSAGE_QUERIES,
        relations=(
            Relation("message_id", TableName.MESSAGES),
            Relation("embeddings_id", TableName.EMBEDDINGS),
        ),
    ),
    ImportPlan(
        table=TableName.MESSAGE_QUERY_CHUNKS,
        is_composite_key=True,
        relations=(
            Relation("message_id", TableName.MESSAGES),
            Relation("query_id", TableName.MESSAGE_QUERIES),
            Relation("chunk_id", TableName.CHUNKS),
        ),
    ),
    ImportPlan(
        table=TableName.MESSAGE_TRANSLATES,
        conflict_strategy=ConflictStrategy.SKIP,
        preserve_id=True,
        unique_fields=("id",),
        relations=(Relation("id", TableName.MESSAGES),),
    ),
    ImportPlan(
        table=TableName.MESSAGE_TTS,
        conflict_strategy=ConflictStrategy.SKIP,
        preserve_id=True,
        unique_fields=("id",),
        relations=(
            Relation("id", TableName.MESSAGES),
            Relation("file_id", TableName.FILES),
        ),
    ),
)


def _check_fields(plan: ImportPlan, kind: str, fields: Iterable[str]) -> None:
    for name in fields:
        if not has_column(plan.table, name):
            raise ImportPlanError(plan.table.value, f"{kind} field '{name}' is not a column")


def validate_import_plans(plans: Sequence[ImportPlan]) -> None:
    """
    Fail fast on a plan list the pipeline cannot execute correctly.

    Checks that relations only point at tables imported earlier (so the list is a
    topological order of the relation graph), that every named field exists on the
    table and every transform is registered, and that identity flags agree with
    the model's columns.
    """
    seen: set[TableName] = set()
    for plan in plans:
        name = plan.table.value
        if plan.table not in TABLE_MODELS:
            raise ImportPlanError(name, "table has no registered model")
        if plan.table in seen:
            raise ImportPlanError(name, "table is planned more than once")

        has_id = has_column(plan.table, ID_COLUMN)
        if plan.is_composite_key:
            if has_id:
                raise ImportPlanError(name, "composite-key table must not have an 'id' column")
            if plan.preserve_id or plan.pin_id_to_owner:
                raise ImportPlanError(name, "composite-key table has no identifier to preserve")
        elif not has_id:
            raise ImportPlanError(name, "table has no 'id' column; mark it as composite-key")

        for relation in plan.relations:
            if relation.source_table == plan.table:
                raise ImportPlanError(
                    name, f"relation '{relation.field}' targets its own table; declare a self reference"
                )
            if relation.source_table not in seen:
                raise ImportPlanError(
                    name,
                    f"relation '{relation.field}' targets '{relation.source_table.value}', "
                    "which is not planned before it",
                )

        _check_fields(plan, "relation", (r.field for r in plan.relations))
        _check_fields(plan, "self reference", (s.field for s in plan.self_references))
        _check_fields(plan, "unique", plan.unique_fields)
        _check_fields(plan, "transform", plan.field_transforms)

        for field_name, transform in plan.field_transforms.items():
            if transform not in FIELD_TRANSFORMS:
                raise ImportPlanError(name, f"unknown transform '{transform}' for field '{field_name}'")

        seen.add(plan.table)


def get_plan(table: TableName, plans: Sequence[ImportPlan] = IMPORT_PLANS) -> ImportPlan:
    for plan in plans:
        if plan.table == table:
            return plan
    raise KeyError(table)


validate_import_plans(IMPORT_PLANS)
