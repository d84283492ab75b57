"""
Data Import Service.

Merges an exported snapshot of a user's data into the live store:
- client-id precheck against committed state, before the transaction opens
- every table imported in plan order inside one transaction
- all-or-nothing: an unexpected failure rolls back every table of the call

Per-batch insert failures are not fatal; they show up as per-table error counts
in a committed result.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatvault.config import settings
from chatvault.database import async_session_maker

from .diagnostics import extract_error_details
from .exceptions import LegacyImporterNotConfiguredError
from .plans import IMPORT_PLANS, ImportPlan
from .precheck import precheck_client_ids
from .state import AggregateResult, ConflictLog, IdentifierMap, ImportErrorInfo, ImportResult
from .table_importer import TableImporter
from .transforms import SuffixSource

logger = logging.getLogger(__name__)

SnapshotData = Mapping[str, Sequence[Mapping[str, Any]]]


class LegacyImporter(Protocol):
    """Importer for the older, pre-table-snapshot export format."""

    async def import_data(self, data: Mapping[str, Any], owner_id: str) -> Mapping[str, Any]:
        ...


class DataImportService:
    """
    Coordinates a snapshot import for one owner.

    Holds only configuration; the identifier map and conflict log live for the
    duration of a single import_snapshot() call.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        plans: Sequence[ImportPlan] = IMPORT_PLANS,
        batch_size: Optional[int] = None,
        suffix_source: Optional[SuffixSource] = None,
        legacy_importer: Optional[LegacyImporter] = None,
    ):
        self._session_maker = session_maker
        self._plans = tuple(plans)
        self._batch_size = batch_size or settings.import_batch_size
        self._suffix_source = suffix_source
        self._legacy_importer = legacy_importer
        self._known_tables = {plan.table.value for plan in self._plans}

    @property
    def plans(self) -> Sequence[ImportPlan]:
        return self._plans

    def set_legacy_importer(self, importer: Optional[LegacyImporter]) -> None:
        self._legacy_importer = importer

    @property
    def has_legacy_importer(self) -> bool:
        return self._legacy_importer is not None

    async def import_snapshot(self, data: SnapshotData, owner_id: str) -> AggregateResult:
        """
        Import every planned table from ``data`` on behalf of ``owner_id``.

        Returns per-table counts on success. On failure nothing is persisted, every
        table reports zero, and ``error`` carries a best-effort description.
        """
        id_map = IdentifierMap(p.table for p in self._plans if p.is_composite_key)
        conflict_log = ConflictLog()
        results: Dict[str, ImportResult] = {}

        unknown = sorted(set(data) - self._known_tables)
        if unknown:
            logger.debug(f"Ignoring snapshot tables with no import plan: {', '.join(unknown)}")

        try:
            async with self._session_maker() as session:
                matched = await precheck_client_ids(session, data, owner_id, id_map, self._plans)
            if matched:
                logger.info(f"Precheck matched {matched} existing rows by client id")

            async with self._session_maker() as session:
                async with session.begin():
                    importer = TableImporter(
                        session,
                        owner_id,
                        id_map,
                        conflict_log,
                        batch_size=self._batch_size,
                        suffix_source=self._suffix_source,
                    )
                    for plan in self._plans:
                        table_name = plan.table.value
                        rows = data.get(table_name) or []
                        if not rows:
                            results[table_name] = ImportResult()
                            continue

                        logger.info(f"Importing table: {table_name}, records: {len(rows)}")
                        results[table_name] = await importer.import_table(plan, rows)
        except Exception as e:
            logger.exception(f"Import failed for user {owner_id}: {e}")
            return AggregateResult(
                success=False,
                results={plan.table.value: ImportResult() for plan in self._plans},
                error=ImportErrorInfo(message=str(e), details=extract_error_details(e)),
            )

        if conflict_log:
            logger.info(f"Import for user {owner_id} resolved {len(conflict_log)} conflicts: {conflict_log.summary()}")
        return AggregateResult(success=True, results=results)

    async def import_legacy_data(self, data: Mapping[str, Any], owner_id: str) -> AggregateResult:
        """Run the legacy importer and wrap its results unchanged."""
        if self._legacy_importer is None:
            raise LegacyImporterNotConfiguredError()
        results = await self._legacy_importer.import_data(data, owner_id)
        return AggregateResult(success=True, results=dict(results))

    def get_plan_summaries(self) -> list:
        return [plan.to_dict() for plan in self._plans]


data_import_service = DataImportService(async_session_maker)


def get_data_import_service() -> DataImportService:
    return data_import_service

