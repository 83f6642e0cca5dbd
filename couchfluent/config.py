"""Client configuration loaded from environment variables.

Connection location, database name prefixing and HTTP timeouts are read
from one typed source so the façade and the transport agree on them.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed environment-backed configuration for the CouchDB access layer."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    couchdb_url: str = Field(default="http://localhost:5984", alias="COUCHDB_URL")
    couchdb_db_prefix: str = Field(default="", alias="COUCHDB_DB_PREFIX")
    couchdb_timeout_seconds: float = Field(default=30.0, alias="COUCHDB_TIMEOUT_SECONDS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance for the current process."""

    return Settings()
