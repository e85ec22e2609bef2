from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parents[3] / ".env"
if not ENV_PATH.exists():
    ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_PATH, encoding="utf-8")


class Settings(BaseSettings):
    # Supabase Postgres connection parameters; POSTGRES_* and SUPABASE_DB_* are accepted too
    db_host: str = Field(
        "localhost", validation_alias=AliasChoices("DB_HOST", "POSTGRES_HOST", "SUPABASE_DB_HOST")
    )
    db_port: int = Field(
        5432, validation_alias=AliasChoices("DB_PORT", "POSTGRES_PORT", "SUPABASE_DB_PORT")
    )
    db_name: str = Field(
        "postgres", validation_alias=AliasChoices("DB_NAME", "POSTGRES_DB", "SUPABASE_DB_NAME")
    )
    db_user: str = Field(
        "postgres", validation_alias=AliasChoices("DB_USER", "POSTGRES_USER", "SUPABASE_DB_USER")
    )
    db_password: str = Field(
        "", validation_alias=AliasChoices("DB_PASSWORD", "POSTGRES_PASSWORD", "SUPABASE_DB_PASSWORD")
    )
    db_conn_retries: int = 10
    db_conn_retry_delay: float = 2.0

    # Supabase auth (GoTrue) endpoint
    supabase_url: str = Field("http://localhost:54321")
    supabase_anon_key: str = Field("")
    auth_timeout: float = 10.0
    password_reset_redirect: Optional[str] = None

    # Follow-up dates are compared at local midnight in this zone.
    # When unset the server's local timezone is used.
    timezone: Optional[str] = None

    log_level: str = "INFO"
    cors_allow_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
