"""
Configuration models.

Defaults target one exploration run of a few hundred steps against an
ordinary web application; every value can be overridden from YAML or
the environment.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class BrowserSettings(BaseModel):
    """Playwright browser configuration."""

    headless: bool = Field(
        default=True,
        description="Launch without a visible window",
    )
    timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=120000,
        description="Default Playwright timeout for page calls (ms)",
    )
    navigation_timeout_ms: int = Field(
        default=60000,
        ge=5000,
        le=180000,
        description="Timeout for goto, reload and history navigation (ms)",
    )
    action_timeout_ms: int = Field(
        default=5000,
        ge=500,
        le=60000,
        description="Timeout for a single click/fill/hover in milliseconds",
    )
    user_agent: str | None = Field(
        default=None,
        description="User-Agent override; None keeps the engine default",
    )
    viewport_width: int = Field(
        default=1280,
        ge=320,
        le=3840,
        description="Viewport width (px)",
    )
    viewport_height: int = Field(
        default=720,
        ge=240,
        le=2160,
        description="Viewport height (px)",
    )
    ignore_https_errors: bool = Field(
        default=False,
        description="Accept self-signed or invalid TLS certificates",
    )
    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Playwright engine to launch",
    )


class ExplorerSettings(BaseModel):
    """Search loop configuration shared by both explorers."""

    strategy: Literal["coverage_guided", "breadth_first", "depth_first", "random"] = Field(
        default="coverage_guided",
        description="How the beam of candidate actions is chosen each step",
    )
    beam_width: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of candidate actions considered per step",
    )
    max_depth: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of state changes before backtracking",
    )
    enable_backtracking: bool = Field(
        default=True,
        description="Return to earlier states when a branch is exhausted",
    )
    stability_wait_ms: int = Field(
        default=300,
        ge=0,
        le=10000,
        description="Quiet window the page must hold before it counts as settled",
    )
    stability_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="Upper bound on waiting for the page to settle",
    )
    screenshot_on_action: bool = Field(
        default=False,
        description="Capture a screenshot after every executed action",
    )
    screenshot_dir: Path = Field(
        default=Path("screenshots"),
        description="Directory for action screenshots",
    )
    base_domain: str | None = Field(
        default=None,
        description="Domain to stay on. None uses the start URL's host.",
    )

    @field_validator("screenshot_dir", mode="before")
    @classmethod
    def expand_screenshot_dir(cls, v: str | Path) -> Path:
        return Path(v).expanduser()


class BudgetSettings(BaseModel):
    """Resource ceilings for a single exploration run."""

    max_total_steps: int = Field(
        default=500,
        ge=1,
        le=100000,
        description="Maximum number of executed actions",
    )
    max_unique_states: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Maximum number of distinct UI states",
    )
    max_depth: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum exploration depth",
    )
    stagnation_threshold: int = Field(
        default=15,
        ge=1,
        le=10000,
        description="Consecutive steps without coverage gain before stopping",
    )
    max_time_ms: int | None = Field(
        default=600000,
        ge=1000,
        description="Wall-clock limit in milliseconds. None disables it.",
    )


class ActionSelectorSettings(BaseModel):
    """Weights and decay for multi-factor action scoring."""

    novelty_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    business_criticality_weight: float = Field(default=0.25, ge=0.0, le=1.0)
    risk_weight: float = Field(default=0.25, ge=0.0, le=1.0)
    branch_factor_weight: float = Field(default=0.15, ge=0.0, le=1.0)
    decay_rate: float = Field(
        default=0.7,
        gt=0.0,
        le=1.0,
        description="Multiplier applied once per previous attempt",
    )
    max_retries: int = Field(
        default=2,
        ge=1,
        le=20,
        description="Attempts after which a candidate is no longer selected",
    )


class NavigatorSettings(BaseModel):
    """Heuristic-first decision layer configuration."""

    enabled: bool = Field(
        default=True,
        description="Whether LLM escalation is available at all",
    )
    enable_heuristic_first: bool = Field(
        default=True,
        description="Try deterministic rules before calling the LLM",
    )
    heuristic_confidence_threshold: int = Field(
        default=75,
        ge=0,
        le=100,
        description="Minimum heuristic confidence that skips the LLM",
    )
    dominant_score_ratio: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="How far ahead the top candidate must be to dominate",
    )
    smart_interactions: bool = Field(
        default=True,
        description="Ask the LLM for search/form values instead of fixed defaults",
    )
    max_ai_candidates: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Candidates included in the compact escalation prompt",
    )
    history_window: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Recent steps passed to the decision layer",
    )


class APILLMSettings(BaseModel):
    """Chat completion API configuration."""

    provider: Literal["openrouter", "openai"] = Field(
        default="openrouter",
        description="Which hosted endpoint the key belongs to",
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    model_name: str = Field(
        default="openai/gpt-4o-mini",
        description="Model id sent with every request",
    )
    api_key_env_var: str = Field(
        default="OPENROUTER_API_KEY",
        description="Environment variable holding the API key",
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Completion token limit",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature; low keeps choices stable",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for a full-context API request in seconds",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retry attempts for full-context decisions",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Base of the exponential retry backoff (s)",
    )
    ai_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout for a compact escalation request in seconds",
    )
    max_ai_retries: int = Field(
        default=1,
        ge=0,
        le=10,
        description="Retry attempts for compact escalation requests",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Threshold for the ui_explorer logger",
    )
    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="logging.Formatter pattern",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime pattern for asctime",
    )
    file_path: Path | None = Field(
        default=None,
        description="Rotating log file; None disables file output",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Rotate after this many megabytes",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Rotated files kept beside the active one",
    )
    log_to_console: bool = Field(
        default=True,
        description="Also log to stdout",
    )

    @field_validator("file_path", mode="before")
    @classmethod
    def expand_file_path(cls, v: str | Path | None) -> Path | None:
        return None if v is None else Path(v).expanduser()


class Settings(BaseModel):
    """
    Complete configuration, one section per subsystem.

    Built by ``config.loader.load_config``; unknown sections are rejected.
    """

    browser: BrowserSettings = Field(
        default_factory=BrowserSettings,
        description="Playwright launch and timeouts",
    )
    explorer: ExplorerSettings = Field(
        default_factory=ExplorerSettings,
        description="Exploration loop settings",
    )
    budget: BudgetSettings = Field(
        default_factory=BudgetSettings,
        description="Exploration budget settings",
    )
    action_selector: ActionSelectorSettings = Field(
        default_factory=ActionSelectorSettings,
        description="Action scoring settings",
    )
    navigator: NavigatorSettings = Field(
        default_factory=NavigatorSettings,
        description="Decision layer settings",
    )
    api_llm: APILLMSettings = Field(
        default_factory=APILLMSettings,
        description="Chat completion endpoint",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log handlers and format",
    )

    model_config = {
        "extra": "forbid",
        "validate_default": True,
    }

    @model_validator(mode="after")
    def check_depth_limits(self) -> "Settings":
        """The explorer cannot go deeper than the budget allows."""
        if self.explorer.max_depth > self.budget.max_depth:
            raise ValueError(
                f"explorer.max_depth ({self.explorer.max_depth}) exceeds "
                f"budget.max_depth ({self.budget.max_depth})"
            )
        return self
