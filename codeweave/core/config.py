"""Runtime settings for the orchestrator.

Values are read from the environment with the ``CODEWEAVE_`` prefix. Complex
values (weights, boundary lists) are given as JSON, e.g.
``CODEWEAVE_QUALITY_WEIGHTS='{"security": 0.4}'``.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class QualityWeights(BaseModel):
    """Weights of the quality sub-scores in the derived ``quality`` value."""

    maintainability: float = Field(default=0.25, ge=0)
    reliability: float = Field(default=0.20, ge=0)
    security: float = Field(default=0.25, ge=0)
    coverage: float = Field(default=0.15, ge=0)
    documentation: float = Field(default=0.15, ge=0)

    @model_validator(mode="after")
    def _check_total(self) -> "QualityWeights":
        if self.total <= 0:
            raise ValueError("At least one quality weight must be positive")
        return self

    @property
    def total(self) -> float:
        return (
            self.maintainability
            + self.reliability
            + self.security
            + self.coverage
            + self.documentation
        )


class Settings(BaseSettings):
    """Orchestrator settings."""

    model_config = SettingsConfigDict(
        env_prefix="CODEWEAVE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Analysis cache
    cache_ttl_seconds: float = Field(default=3600.0, gt=0)

    # Aggregator
    analyzer_timeout_seconds: float = Field(default=30.0, gt=0)
    quality_weights: QualityWeights = Field(default_factory=QualityWeights)

    # Dependency graph cycle severity policy
    cycle_high_min_nodes: int = Field(default=3, ge=2)
    architecture_boundaries: list[str] = Field(default_factory=list)

    # Default LLM generator
    llm_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 8192

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
