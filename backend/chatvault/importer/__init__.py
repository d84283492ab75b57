from chatvault.importer.tables import TableName, TABLE_MODELS
from chatvault.importer.plans import (
    ConflictStrategy,
    ImportPlan,
    IMPORT_PLANS,
    Relation,
    SelfReference,
    validate_import_plans,
)
from chatvault.importer.state import (
    AggregateResult,
    ConflictLog,
    ConflictRecord,
    IdentifierMap,
    ImportErrorInfo,
    ImportResult,
)
from chatvault.importer.exceptions import ImporterError, ImportPlanError, LegacyImporterNotConfiguredError
from chatvault.importer.table_importer import TableImporter
from chatvault.importer.service import (
    DataImportService,
    LegacyImporter,
    data_import_service,
    get_data_import_service,
)

__all__ = [
    # Registry
    "TableName",
    "TABLE_MODELS",
    "ConflictStrategy",
    "ImportPlan",
    "IMPORT_PLANS",
    "Relation",
    "SelfReference",
    "validate_import_plans",
    # Invocation state and results
    "AggregateResult",
    "ConflictLog",
    "ConflictRecord",
    "IdentifierMap",
    "ImportErrorInfo",
    "ImportResult",
    # Errors
    "ImporterError",
    "ImportPlanError",
    "LegacyImporterNotConfiguredError",
    # Pipeline
    "TableImporter",
    "DataImportService",
    "LegacyImporter",
    # Singleton instance
    "data_import_service",
    "get_data_import_service",
]
