from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Database
    chatvault_database_url: str = Field(
        default="sqlite+aiosqlite:///./chatvault.db",
        alias="CHATVAULT_DATABASE_URL"
    )

    # Application
    debug: bool = True
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    # Data import
    # Rows per INSERT batch; a rejected batch counts all of its rows as errors
    import_batch_size: int = 100
    # Length of the random suffix used to de-collide slugs and other naming fields
    import_suffix_length: int = 8

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite (any driver)."""
        return self.chatvault_database_url.startswith("sqlite")


settings = Settings()
