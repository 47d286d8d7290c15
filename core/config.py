from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """
    Centralized application settings. Pydantic's BaseSettings will automatically
    load these from environment variables or a .env file.
    """
    # --- Document Store ---
    MONGO_URI: str = Field("mongodb://127.0.0.1:27017", description="MongoDB connection string.")
    MONGO_DB_NAME: str = Field("scp", description="Database holding both collections.")
    MONGO_TIMEOUT_MS: int = Field(5000, description="How long to wait for a reachable MongoDB server.")
    SCP_COLLECTION: str = Field("SCPs", description="Collection of SCP entities.")
    TALE_COLLECTION: str = Field("SCPTales", description="Collection of tales referencing SCPs.")
    STORE_BACKEND: Literal["mongo", "memory"] = Field("mongo", description="Which document store implementation to use.")

    # --- Pagination ---
    DEFAULT_PAGE_SIZE: int = Field(50, description="Number of documents returned when no limit is given.")
    MAX_PAGE_SIZE: int = Field(200, description="Upper bound accepted for the limit parameter.")

    # --- Referential Integrity ---
    ENTITY_DELETE_POLICY: Literal["tolerate", "block", "detach"] = Field(
        "tolerate",
        description="What deleting a referenced SCP does: leave dangling refs, refuse, or strip the refs from tales.",
    )

    # --- Server ---
    API_HOST: str = Field("127.0.0.1", description="Interface the API server binds to.")
    API_PORT: int = Field(3000, description="Port the API server listens on.")
    CORS_ORIGINS: List[str] = Field(["http://localhost", "http://localhost:3000"], description="Origins allowed by CORS.")
    LOG_LEVEL: str = Field("INFO", description="Level for all application loggers.")

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

settings = Settings()
