"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DOMAIN_KEYWORDS = [
    "sp_SetView",
    "sp_SetDropdown",
    "sp_SetWhereClause",
    "sp_SetQueryColumn",
    "sp_SetViewsetAlias",
    "ezConfiguration",
    "viewset",
    "dropdown",
    "pano:grid",
    "pano:form",
    "pano:field",
    "tiles:insert",
]


class GitLabConfig(BaseModel):
    """GitLab-specific configuration."""

    url: str = "https://gitlab.com"
    token: str
    default_group: str = "8"
    timeout: float = Field(30.0, gt=0, le=300)
    requests_per_second: float | None = Field(None, gt=0)
    verify_ssl: bool = True
    # The "a | b" OR syntax needs advanced search (Elasticsearch)
    advanced_search: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize the GitLab base URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"GitLab URL must start with http:// or https://: {v}")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Reject empty tokens."""
        if not v.strip():
            raise ValueError("GitLab token must not be empty")
        return v

    @field_validator("default_group")
    @classmethod
    def validate_default_group(cls, v: str) -> str:
        """Validate group identifier format."""
        from ..utils.security import validate_group_path

        if not validate_group_path(v):
            raise ValueError(f"Invalid group identifier: {v}. Expected an id or group/subgroup")
        return v


class SearchConfig(BaseModel):
    """Similar issue search configuration."""

    similarity_threshold: float = Field(0.4, ge=0.0, le=1.0)
    max_terms: int = Field(5, ge=1, le=20)
    max_results: int | None = Field(10, ge=1)
    max_concurrent: int = Field(4, ge=1, le=20)
    per_page: int = Field(100, ge=1, le=100)
    issue_state: Literal["closed", "opened", "all"] = "closed"
    domain_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_DOMAIN_KEYWORDS))
    search_cache_ttl: int = Field(300, ge=0)


class ScoringConfig(BaseModel):
    """Similarity weights. Defaults reproduce the reference formula."""

    lexical_weight: float = Field(0.7, ge=0.0, le=1.0)
    order_weight: float = Field(0.3, ge=0.0, le=1.0)
    label_weight: float = Field(0.2, ge=0.0, le=1.0)
    keyword_bonus: float = Field(0.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_title_weights(self) -> "ScoringConfig":
        """The title sub-score needs at least one non-zero weight."""
        if self.lexical_weight + self.order_weight <= 0:
            raise ValueError("lexical_weight and order_weight cannot both be 0")
        return self


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/gitlab-change-advisor/advisor.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime configuration."""

    max_concurrent_fetches: int = Field(
        8, ge=1, le=50, description="Max concurrent merge request and diff fetches"
    )
    request_timeout: float | None = Field(
        None, gt=0, le=600, description="Per-call timeout for fan-out branches in seconds"
    )


class RetryConfig(BaseModel):
    """Retry configuration for transient failures."""

    max_attempts: int = Field(3, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.1, le=10.0)
    max_delay: float = Field(30.0, ge=1.0, le=300.0)
    exponential_base: float = Field(2.0, ge=1.5, le=4.0)


class AdvisorConfig(BaseSettings):
    """Root configuration for the GitLab change advisor."""

    gitlab: GitLabConfig
    search: SearchConfig = SearchConfig()
    scoring: ScoringConfig = ScoringConfig()
    logging: LoggingConfig = LoggingConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
    )
