"""
Configuration management for DealPulse.

Provides centralized, validated configuration from environment variables
with proper type checking and defaults. Settings are built once at startup
and handed to components through their constructors.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_SOURCES = ("news", "discussion", "enrichment")


def _parse_bool(v) -> bool:
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes", "y")
    return bool(v)


class ResearchConfig(BaseSettings):
    """Research connector configuration."""

    sources_raw: str = Field(default=",".join(KNOWN_SOURCES), alias="RESEARCH_SOURCES")
    cooldown_hours: float = Field(default=12.0, alias="RESEARCH_COOLDOWN_HOURS")
    refetch_all_sources: bool = Field(default=False, alias="RESEARCH_REFETCH_ALL_SOURCES")
    connector_timeout: float = Field(default=20.0, alias="CONNECTOR_TIMEOUT_SECONDS")

    # News (SerpAPI Google News)
    serpapi_api_key: Optional[str] = Field(default=None, alias="SERPAPI_API_KEY")
    news_max_results: int = Field(default=5, alias="NEWS_MAX_RESULTS")

    # Public discussion (Reddit search)
    reddit_user_agent: str = Field(
        default="dealpulse/0.1 (research connector)", alias="REDDIT_USER_AGENT"
    )
    discussion_max_results: int = Field(default=10, alias="DISCUSSION_MAX_RESULTS")

    # People Data Labs enrichment
    pdl_api_key: Optional[str] = Field(default=None, alias="PDL_API_KEY")

    @field_validator("sources_raw", mode="before")
    @classmethod
    def parse_sources(cls, v):
        if isinstance(v, (list, tuple)):
            return ",".join(v)
        return v or ""

    @field_validator("refetch_all_sources", mode="before")
    @classmethod
    def parse_refetch_all(cls, v):
        return _parse_bool(v)

    @property
    def sources(self) -> List[str]:
        """Enabled source names, lower-cased, in configured order."""
        return [s.strip().lower() for s in self.sources_raw.split(",") if s.strip()]

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class GenerationConfig(BaseSettings):
    """Generative service configuration."""

    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_CHAT_MODEL")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    max_tokens: int = Field(default=800, alias="OPENAI_MAX_TOKENS")
    temperature: float = Field(default=0.7, alias="OPENAI_TEMPERATURE")
    timeout_seconds: float = Field(default=30.0, alias="GENERATION_TIMEOUT_SECONDS")
    max_attempts: int = Field(default=2, alias="GENERATION_MAX_ATTEMPTS")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class ScoringConfig(BaseSettings):
    """Deal scoring configuration."""

    taxonomy: str = Field(default="default", alias="STAGE_TAXONOMY")
    seed: Optional[int] = Field(default=None, alias="SCORING_SEED")

    @field_validator("taxonomy", mode="before")
    @classmethod
    def normalize_taxonomy(cls, v):
        return (v or "default").strip().lower()

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class BatchConfig(BaseSettings):
    """Batch and worker throttling configuration."""

    batch_size: int = Field(default=5, alias="BATCH_SIZE")
    batch_delay_seconds: float = Field(default=3.0, alias="BATCH_DELAY_SECONDS")
    max_concurrent_entities: int = Field(default=5, alias="MAX_CONCURRENT_ENTITIES")
    worker_interval_seconds: float = Field(default=3600.0, alias="WORKER_INTERVAL_SECONDS")

    @field_validator("batch_size", "max_concurrent_entities")
    @classmethod
    def positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Data locations
    roster_path: str = Field(default="data/roster.json", alias="ROSTER_PATH")
    store_path: str = Field(default="data/research_store.json", alias="STORE_PATH")

    # Component configurations
    research: ResearchConfig = Field(default_factory=ResearchConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        return _parse_bool(v)

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def validate_required_settings(
    for_workflow: str = "intelligence", config: Optional[Settings] = None
) -> List[str]:
    """
    List settings missing for a workflow.

    Args:
        for_workflow: "research", "intelligence", or "minimal"
        config: Settings to check (defaults to the global instance)

    Returns:
        List of missing setting names
    """
    config = config or get_settings()
    missing = []

    if for_workflow == "research":
        sources = config.research.sources
        if "news" in sources and not config.research.serpapi_api_key:
            missing.append("SERPAPI_API_KEY")
        if "enrichment" in sources and not config.research.pdl_api_key:
            missing.append("PDL_API_KEY")
    elif for_workflow == "intelligence":
        if not config.generation.openai_api_key:
            missing.append("OPENAI_API_KEY")

    return missing


def configuration_status(config: Optional[Settings] = None) -> Dict[str, str]:
    """Summarise which services are usable with the current configuration."""
    config = config or get_settings()
    research = config.research
    status = {
        "news": "available" if research.serpapi_api_key else "missing_api_key",
        "discussion": "available",
        "enrichment": "available" if research.pdl_api_key else "missing_api_key",
        "generation": "available" if config.generation.openai_api_key else "fallback_only",
    }
    for source in KNOWN_SOURCES:
        if source not in research.sources:
            status[source] = "disabled"
    return status


def print_configuration_summary(console=None, config: Optional[Settings] = None) -> None:
    """Print a summary of the current configuration for debugging."""
    from rich.console import Console

    console = console or Console()
    config = config or get_settings()

    console.print("[bold]=== DealPulse Configuration Summary ===[/bold]")
    console.print(f"Environment: {config.environment}")
    console.print(f"Debug Mode: {config.debug}")
    console.print(f"Roster: {config.roster_path}")
    console.print(f"Store: {config.store_path}")
    console.print()
    console.print(f"Sources: {', '.join(config.research.sources) or '(none)'}")
    console.print(f"Cooldown: {config.research.cooldown_hours}h")
    console.print(f"Refetch all sources when stale: {config.research.refetch_all_sources}")
    console.print(f"Stage taxonomy: {config.scoring.taxonomy}")
    console.print(
        f"Batch size: {config.batch.batch_size} (delay {config.batch.batch_delay_seconds}s)"
    )
    console.print(f"Model: {config.generation.openai_model}")
    console.print()
    for service, state in configuration_status(config).items():
        mark = "✓" if state == "available" else "✗"
        console.print(f"  {mark} {service}: {state}")
