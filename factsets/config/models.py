from pydantic import BaseModel, Field
from typing import Literal

from factsets.freshness.thresholds import DEFAULT_THRESHOLD_HOURS
from factsets.freshness.categories import FreshnessCategory
from factsets.snapshots.overflow import DEFAULT_NOISE_PATTERNS


class ConfigError(ValueError):
    """A configuration value rejected at the configuration boundary."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


ClientType = Literal["github-copilot", "cursor", "claude", "generic"]

CLIENT_SKILLS_DIRS: dict[str, str] = {
    "github-copilot": ".github/prompts/skills",
    "cursor": ".cursor/prompts/skills",
    "claude": ".claude/skills",
    "generic": ".factsets/skills",
}


def _hours(category: FreshnessCategory):
    return Field(default=DEFAULT_THRESHOLD_HOURS[category], gt=0)


class FreshnessConfig(BaseModel):
    source_code: float = _hours(FreshnessCategory.source_code)
    lock_files: float = _hours(FreshnessCategory.lock_files)
    config_files: float = _hours(FreshnessCategory.config_files)
    documentation: float = _hours(FreshnessCategory.documentation)
    generated_files: float = _hours(FreshnessCategory.generated_files)
    api_schemas: float = _hours(FreshnessCategory.api_schemas)
    database: float = _hours(FreshnessCategory.database)
    scripts: float = _hours(FreshnessCategory.scripts)
    tests: float = _hours(FreshnessCategory.tests)
    assets: float = _hours(FreshnessCategory.assets)
    infrastructure: float = _hours(FreshnessCategory.infrastructure)
    default: float = _hours(FreshnessCategory.default)

    def hours_for(self, category: FreshnessCategory) -> float:
        return getattr(self, category.name)


class FactLifecycleConfig(BaseModel):
    auto_verify_after_days: float | None = Field(default=None, gt=0)
    expiration_days: float | None = Field(default=None, gt=0)


class SnapshotConfig(BaseModel):
    max_size_kb: int = Field(default=100, gt=0)
    overflow_behavior: Literal["truncate", "summarize", "remove_noise", "auto"] = "summarize"
    retention_versions: int = Field(default=1, ge=1)
    noise_patterns: list[str] = list(DEFAULT_NOISE_PATTERNS)


class MaintenanceConfig(BaseModel):
    auto_prune_orphan_tags: bool = False
    soft_delete_retention_days: int = Field(default=7, ge=1)


class WorkerConfig(BaseModel):
    """Task intervals in seconds."""

    poll_interval: float = Field(default=60, gt=0)
    auto_verify: float = Field(default=60 * 60, gt=0)
    expire_facts: float = Field(default=6 * 60 * 60, gt=0)
    prune_snapshots: float = Field(default=24 * 60 * 60, gt=0)
    prune_tags: float = Field(default=24 * 60 * 60, gt=0)
    hard_delete: float = Field(default=24 * 60 * 60, gt=0)


class FactsetsConfig(BaseModel):
    database_url: str = ".facts.db"
    client: ClientType = "github-copilot"
    skills_dir: str | None = None
    freshness: FreshnessConfig = Field(default_factory=FreshnessConfig)
    staleness_warning_threshold: float = Field(default=0.8, gt=0, le=1)
    facts: FactLifecycleConfig = Field(default_factory=FactLifecycleConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    def effective_skills_dir(self) -> str:
        """Explicit skills_dir wins, otherwise the client's conventional directory."""
        if self.skills_dir:
            return self.skills_dir
        return CLIENT_SKILLS_DIRS.get(self.client, CLIENT_SKILLS_DIRS["generic"])
