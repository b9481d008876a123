"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)


def find_env_file() -> Optional[Path]:
    """Find .env file in the package directory, the package root or the working directory."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(current_dir, ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
        os.path.join(os.getcwd(), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.info(f"Found .env file at: {path}")
            return path

    LOGGER.debug("No .env file found, using environment and defaults")
    return None


ENV_FILE = find_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=str(ENV_FILE) if ENV_FILE else None,
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_prefix="",
)


class Neo4jSettings(BaseSettings):
    """Neo4j connection settings."""
    host: str = Field(default="localhost", validation_alias="NEO4J_HOST")
    port: int = Field(default=7687, validation_alias="NEO4J_PORT")
    username: str = Field(default="neo4j", validation_alias="NEO4J_USERNAME")
    password: str = Field(default="password", validation_alias="NEO4J_PASSWORD")
    database: str = Field(default="neo4j", validation_alias="NEO4J_DATABASE")
    use_local_neo4j: bool = Field(default=True, validation_alias="USE_LOCAL_NEO4J")
    max_retries: int = Field(default=3, validation_alias="NEO4J_MAX_RETRIES")
    retry_delay: float = Field(default=1.0, validation_alias="NEO4J_RETRY_DELAY")

    @property
    def uri(self) -> str:
        """Get the connection URI with the correct protocol."""
        if "://" in self.host:
            return self.host

        protocol = "neo4j" if self.use_local_neo4j else "neo4j+s"
        return f"{protocol}://{self.host}:{self.port}"

    model_config = _SETTINGS_CONFIG


class ResolutionSettings(BaseSettings):
    """Entity resolution and header matching thresholds."""
    min_similarity: float = Field(default=0.85, ge=0.0, le=1.0, validation_alias="MIN_SIMILARITY")
    header_match_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, validation_alias="HEADER_MATCH_THRESHOLD"
    )
    cache_size: int = Field(default=1000, gt=0, validation_alias="RESOLUTION_CACHE_SIZE")

    model_config = _SETTINGS_CONFIG


class PathSettings(BaseSettings):
    """Path search bounds."""
    max_hops: int = Field(default=4, gt=0, validation_alias="MAX_HOPS")
    limit: int = Field(default=3, gt=0, validation_alias="PATH_LIMIT")

    model_config = _SETTINGS_CONFIG


class ScoringSettings(BaseSettings):
    """Weights of the four path-level scoring factors."""
    path_length_weight: float = Field(default=0.4, ge=0.0, validation_alias="PATH_LENGTH_WEIGHT")
    connection_type_weight: float = Field(default=0.3, ge=0.0, validation_alias="CONNECTION_TYPE_WEIGHT")
    connection_strength_weight: float = Field(
        default=0.2, ge=0.0, validation_alias="CONNECTION_STRENGTH_WEIGHT"
    )
    mutual_ties_weight: float = Field(default=0.1, ge=0.0, validation_alias="MUTUAL_TIES_WEIGHT")

    model_config = _SETTINGS_CONFIG


class GraphSettings(BaseSettings):
    """Graph construction defaults."""
    seed_source_type: str = Field(default="seed", validation_alias="SEED_SOURCE_TYPE")
    default_knows_strength: float = Field(
        default=0.5, ge=0.0, le=1.0, validation_alias="DEFAULT_KNOWS_STRENGTH"
    )
    api_mutual_weight: float = Field(default=0.8, ge=0.0, le=1.0, validation_alias="API_MUTUAL_WEIGHT")
    automation_mutual_weight: float = Field(
        default=0.7, ge=0.0, le=1.0, validation_alias="AUTOMATION_MUTUAL_WEIGHT"
    )

    model_config = _SETTINGS_CONFIG


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="warmpath", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    neo4j: Neo4jSettings = Field(default_factory=lambda: Neo4jSettings())
    resolution: ResolutionSettings = Field(default_factory=lambda: ResolutionSettings())
    paths: PathSettings = Field(default_factory=lambda: PathSettings())
    scoring: ScoringSettings = Field(default_factory=lambda: ScoringSettings())
    graph: GraphSettings = Field(default_factory=lambda: GraphSettings())

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_log_level(self) -> "Settings":
        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {self.log_level}")
        return self

    @property
    def min_similarity(self) -> float:
        return self.resolution.min_similarity

    @property
    def max_hops(self) -> int:
        return self.paths.max_hops

    @property
    def path_limit(self) -> int:
        return self.paths.limit


settings = Settings()

LOGGER.debug(
    f"Settings initialized with environment: {settings.environment}",
    extra={"neo4j_host": settings.neo4j.host, "max_hops": settings.paths.max_hops},
)
