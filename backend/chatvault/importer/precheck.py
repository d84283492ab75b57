"""
Client-id precheck, run before the import transaction opens.

Seeds the IdentifierMap with rows the owner already has, so that relations in any
later table resolve whether the snapshot references a row by its original id or
by its client id.
"""

import logging
from typing import Any, List, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .plans import ImportPlan
from .state import IdentifierMap
from .tables import CLIENT_ID_COLUMN, ID_COLUMN, OWNER_COLUMN, get_column, supports_owner_lookup

logger = logging.getLogger(__name__)


def collect_values(rows: Sequence[Mapping[str, Any]], field: str) -> List[Any]:
    """Distinct non-empty values of ``field`` across ``rows``, in first-seen order."""
    return list(dict.fromkeys(row[field] for row in rows if row.get(field)))


def effective_client_id(row: Mapping[str, Any]) -> Any:
    """The client id a row is stored under: its own, else its source id."""
    return row.get(CLIENT_ID_COLUMN) or row.get(ID_COLUMN)


def collect_client_ids(rows: Sequence[Mapping[str, Any]]) -> List[Any]:
    return list(dict.fromkeys(value for value in map(effective_client_id, rows) if value))


async def precheck_client_ids(
    session: AsyncSession,
    data: Mapping[str, Sequence[Mapping[str, Any]]],
    owner_id: str,
    id_map: IdentifierMap,
    plans: Sequence[ImportPlan],
) -> int:
    """
    Register ``client_id -> id`` and ``id -> id`` for every existing owner row whose
    client id appears in the snapshot (a row without one is looked up by its source
    id, which is what it is stored under). Read-only. Returns the number of rows matched.
    """
    matched = 0
    for plan in plans:
        table = plan.table
        rows = data.get(table.value) or []
        if not rows or plan.is_composite_key or not supports_owner_lookup(table):
            continue

        client_ids = collect_client_ids(rows)
        if not client_ids:
            continue

        result = await session.execute(
            select(get_column(table, ID_COLUMN), get_column(table, CLIENT_ID_COLUMN)).where(
                get_column(table, OWNER_COLUMN) == owner_id,
                get_column(table, CLIENT_ID_COLUMN).in_(client_ids),
            )
        )
        existing = result.all()
        for row in existing:
            id_map.register_existing(table, row.id, row.client_id)
        matched += len(existing)

        if existing:
            logger.debug(f"Precheck: {len(existing)} existing {table.value} rows matched by client id")

    return matched
