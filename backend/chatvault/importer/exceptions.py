"""
Custom exceptions for the data importer.
"""


class ImporterError(Exception):
    """Base exception for importer errors."""
    pass


class ImportPlanError(ImporterError):
    """The import plan registry is inconsistent with itself or with the schema."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Invalid import plan for '{table}': {message}")


class LegacyImporterNotConfiguredError(ImporterError):
    """A legacy-format import was requested but no legacy importer is installed."""

    def __init__(self, message: str = None):
        super().__init__(message or "No legacy importer is configured for this service")
