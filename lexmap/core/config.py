from __future__ import annotations

import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_project_root() -> Path:
    """Returns the directory holding the lexmap package (2 levels up from lexmap/core/config.py)."""
    return Path(__file__).resolve().parent.parent.parent


_project_root = _get_project_root()

# Determine environment mode (e.g., 'dev', 'prod', 'test')
# Default to 'dev' if ENV system environment variable is not set
_env_mode = os.getenv("ENV", "dev")

# Later files override earlier ones; real environment variables win over both.
_env_files = [
    str(_project_root / ".env"),
    str(_project_root / f".env.{_env_mode}"),
]

_common_config = SettingsConfigDict(
    env_file=tuple(_env_files),
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_ignore_empty=True,
    populate_by_name=True,
)


class EmbeddingConfig(BaseSettings):
    """Embedding endpoint configuration (OpenAI-compatible /v1/embeddings)."""
    model_config = _common_config

    host: str = Field(default="127.0.0.1", alias="LOCAL_SERVICE_EMBEDDING_HOST")
    port: int = Field(default=8001, alias="LOCAL_SERVICE_EMBEDDING_PORT")
    model: str = Field(default="paraphrase-multilingual-MiniLM-L12-v2", alias="LOCAL_EMBEDDING_MODEL")
    timeout: float = Field(default=60.0, gt=0, alias="LOCAL_EMBEDDING_TIMEOUT")

    @property
    def url(self) -> str: return f"http://{self.host}:{self.port}"


class QdrantConfig(BaseSettings):
    """Qdrant vector database configuration."""
    model_config = _common_config

    url: Optional[str] = Field(default=None, alias="LOCAL_QDRANT_URL")
    data_path: str = Field(default="<LOCAL_RUNTIME_ROOT>/qdrant", alias="LOCAL_QDRANT_DATA_PATH")
    embedding_dim: int = Field(default=384, ge=1, alias="LOCAL_QDRANT_EMBEDDING_DIM")
    metric_type: Literal["COSINE", "DOT", "EUCLID"] = Field(default="COSINE", alias="LOCAL_QDRANT_METRIC_TYPE")
    root_collection: str = Field(default="word_roots", alias="LOCAL_QDRANT_ROOT_COLLECTION")
    field_collection: str = Field(default="standard_fields", alias="LOCAL_QDRANT_FIELD_COLLECTION")


class Settings(BaseSettings):
    """Main application settings with automatic .env file loading."""
    model_config = _common_config

    env: str = _env_mode

    # Path settings
    runtime_root: Path = Field(default=_project_root / "runtime", alias="LOCAL_RUNTIME_ROOT")
    db_name: str = Field(default="lexmap.sqlite", alias="LOCAL_LEXMAP_DB_NAME")

    main_host: str = Field(default="127.0.0.1", alias="LOCAL_SERVICE_MAIN_HOST")
    main_port: int = Field(default=3000, alias="LOCAL_SERVICE_MAIN_PORT")
    cors_origins: str = Field(default="*", alias="LOCAL_CORS_ORIGINS")

    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)

    # Vocabulary settings
    vocab_dictionary_path: Optional[Path] = Field(default=None, alias="LOCAL_VOCAB_DICTIONARY_PATH")
    vocab_term_weight: int = Field(default=99999, ge=1, alias="LOCAL_VOCAB_TERM_WEIGHT")

    # Search settings
    lexical_limit: int = Field(default=10, ge=1, alias="LOCAL_SEARCH_LEXICAL_LIMIT")
    semantic_k: int = Field(default=5, ge=1, alias="LOCAL_SEARCH_SEMANTIC_K")

    # Mirror settings
    embed_batch_size: int = Field(default=32, ge=1, alias="LOCAL_EMBED_BATCH_SIZE")
    resync_on_startup: bool = Field(default=True, alias="LOCAL_RESYNC_ON_STARTUP")

    # Logging settings
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_to_file: bool = Field(default=False, alias="LOCAL_SERVICE_LOG_TO_FILE")

    @property
    def db_path(self) -> Path:
        self.runtime_root.mkdir(parents=True, exist_ok=True)
        return self.runtime_root / self.db_name

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @model_validator(mode='after')
    def resolve_all_placeholders(self) -> 'Settings':
        """
        Resolve <LOCAL_RUNTIME_ROOT> placeholders once every source (env, .env, .env.mode)
        has been merged, so derived paths follow an overridden runtime root.
        """
        replacements = {
            "<LOCAL_RUNTIME_ROOT>": str(self.runtime_root),
        }

        def _resolve_str(v: Any) -> Any:
            if isinstance(v, str):
                for placeholder, replacement in replacements.items():
                    if placeholder in v:
                        v = v.replace(placeholder, replacement)
            return v

        self.qdrant.data_path = _resolve_str(self.qdrant.data_path)
        if self.vocab_dictionary_path is not None:
            self.vocab_dictionary_path = Path(_resolve_str(str(self.vocab_dictionary_path)))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    logging.getLogger(__name__).debug("Settings loaded for env=%s (runtime_root=%s)", s.env, s.runtime_root)
    return s


settings = get_settings()
