"""Configuration management for Test Medic."""

from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file at import time
load_dotenv()


class ActionsConfig(BaseModel):
    """Retry and wait defaults for resilient actions."""

    retries: int = 3
    click_delay_ms: int = 1000
    fill_delay_ms: int = 500
    action_timeout_ms: int = 5000
    wait_timeout_ms: int = 10000
    test_id_attribute: str = "data-testid"
    screenshot_dir: str = "test-results/screenshots"


class DiscoveryConfig(BaseModel):
    """Element discovery and test synthesis configuration."""

    base_url: str = "http://localhost:3000"
    output_dir: Path = Path("tests/e2e/generated")
    screenshot_dir: str = "test-results/screenshots"
    headless: bool = True


class RepairConfig(BaseModel):
    """Repair behavior configuration."""

    mode: Literal["suggest", "auto-heal"] = "suggest"
    validate_python: bool = True


class MonitorConfig(BaseModel):
    """Test health monitoring configuration."""

    report_dir: Path = Path("test-reports")
    history_limit: int = Field(1000, ge=1)
    flaky_window: int = 5
    passing_threshold: float = 95.0
    failing_threshold: float = 50.0
    slow_threshold_ms: float = 30000
    very_slow_threshold_ms: float = 60000
    failing_penalty: int = 5
    flaky_penalty: int = 3
    slow_penalty: int = 2
    never_passed_min_runs: int = 4
    flaky_alert_count: int = 5
    recommendation_threshold: int = 5
    report_history: int = 100


class Config(BaseSettings):
    """Main configuration for Test Medic."""

    model_config = SettingsConfigDict(
        env_prefix="TEST_MEDIC_",
        env_nested_delimiter="__",
    )

    # Test command to run (e.g., "pytest tests/e2e")
    test_command: str = "pytest"

    # Sub-configurations
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; the environment must win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file and environment variables."""
    config_data: dict = {}

    # Try to find config file
    if config_path is None:
        for name in ["test_medic.yaml", "test_medic.yml", ".test_medic.yaml"]:
            if Path(name).exists():
                config_path = Path(name)
                break

    # Load from YAML if exists
    if config_path and config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if raw and "test_medic" in raw:
                config_data = raw["test_medic"]
            elif raw:
                config_data = raw

    # Environment variables override YAML
    return Config(**config_data)
