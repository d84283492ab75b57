from chatvault.routes.data_import import router as data_import_router

__all__ = ["data_import_router"]
