"""Centralized configuration for docs-search-index using Pydantic Settings."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docs_search_index.search.results import QueryOptions
from docs_search_index.search.scoring import DEFAULT_MAX_RESULTS, DEFAULT_PHRASE_BONUS
from docs_search_index.search.snippet import DEFAULT_SNIPPET_CHARS


_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Hosts normally build one ``Settings`` at startup and hand it to every
    ``SearchIndex`` they create; nothing in the package reads it implicitly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Query defaults
    search_max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=0, description="Default maximum results per query")
    prefix_enabled: bool = Field(default=True, description="Enable trailing '*' prefix matching by default")
    strict_phrases: bool = Field(
        default=True, description="Require quoted phrases to match instead of only boosting documents"
    )

    # Scoring
    phrase_bonus: float = Field(default=DEFAULT_PHRASE_BONUS, ge=0.0, description="Score bonus per satisfied phrase")

    # Snippets
    snippet_length: int = Field(default=DEFAULT_SNIPPET_CHARS, ge=16, description="Maximum snippet window in characters")

    # Observability
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus/OTel metrics")

    @model_validator(mode="after")
    def _check_log_level(self) -> "Settings":
        normalized = self.log_level.strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}")
        self.log_level = normalized.lower()
        return self

    def default_query_options(self) -> QueryOptions:
        """Return the query options implied by these settings."""
        return QueryOptions(
            max_results=self.search_max_results,
            prefix_enabled=self.prefix_enabled,
            strict_phrases=self.strict_phrases,
            snippet_length=self.snippet_length,
        )
